"""
Tests for page fetching, extraction and crawling
"""

import threading
from unittest.mock import Mock

import httpx
import pytest

from siteagents.projects import ProjectService
from siteagents.scraper import PageFetcher, FetchError, extract_content
from siteagents.scraper.crawler import ScraperService
from siteagents.scraper.types import ScrapedContent, CrawlOptions, parse_bool, parse_max_pages


HTML = """
<html>
  <head>
    <title>Acme Widgets</title>
    <meta name="description" content="Widgets for everyone">
    <meta name="keywords" content="widgets, acme">
  </head>
  <body>
    <h1>Welcome to Acme</h1>
    <h3>Our <em>best</em> widgets</h3>
    <p>We sell widgets.</p>
    <p>Fast shipping worldwide.</p>
    <a href="/about">About us</a>
    <a href="https://other.com/page">Partner</a>
    <ul><li>Blue widget</li><li>Red widget</li></ul>
  </body>
</html>
"""


class TestExtractContent:
    def test_extracts_page_parts(self):
        page = extract_content(HTML, 'https://acme.test/')

        assert page.title == 'Acme Widgets'
        assert page.meta_description == 'Widgets for everyone'
        assert page.meta_keywords == 'widgets, acme'
        assert page.headings == [
            {'text': 'Welcome to Acme', 'tag': 'h1'},
            {'text': 'Our best widgets', 'tag': 'h3'},
        ]
        assert page.paragraphs == ['We sell widgets.', 'Fast shipping worldwide.']
        assert page.list_items == ['Blue widget', 'Red widget']

    def test_links_are_absolute(self):
        page = extract_content(HTML, 'https://acme.test/')
        assert page.links == [
            {'text': 'About us', 'url': 'https://acme.test/about'},
            {'text': 'Partner', 'url': 'https://other.com/page'},
        ]

    def test_missing_meta(self):
        page = extract_content('<html><body><p>Hi</p></body></html>', 'https://acme.test/')
        assert page.title == ''
        assert page.meta_description is None


class TestPageFetcher:
    def test_direct_fetch(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text=HTML))
        fetcher = PageFetcher(proxy_url='', transport=transport)

        page = fetcher.scrape_url('https://acme.test/')
        assert page.title == 'Acme Widgets'
        assert not page.is_error

    def test_falls_back_to_proxy(self):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            if request.url.host == 'proxy.test':
                return httpx.Response(200, text=HTML)
            return httpx.Response(403)

        fetcher = PageFetcher(proxy_url='https://proxy.test/raw?url=', transport=httpx.MockTransport(handler))
        html = fetcher.fetch('https://acme.test/')

        assert 'Acme Widgets' in html
        assert requested[0] == 'https://acme.test/'
        assert requested[1].startswith('https://proxy.test/raw?url=https%3A%2F%2Facme.test')

    def test_fetch_error_without_proxy(self):
        fetcher = PageFetcher(proxy_url='', transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        with pytest.raises(FetchError):
            fetcher.fetch('https://acme.test/')

    def test_scrape_failure_returns_error_page(self):
        fetcher = PageFetcher(proxy_url='', transport=httpx.MockTransport(lambda request: httpx.Response(404)))
        page = fetcher.scrape_url('https://acme.test/missing')

        assert page.is_error
        assert page.url == 'https://acme.test/missing'


def page(url, title, *links):
    return ScrapedContent(url=url, title=title, links=[{'text': '', 'url': link} for link in links])


SITE = {
    'https://acme.test/': page(
        'https://acme.test/', 'Home',
        'https://acme.test/about', 'https://acme.test/blog', 'https://elsewhere.test/'
    ),
    'https://acme.test/about': page('https://acme.test/about', 'About', 'https://acme.test/'),
    'https://acme.test/blog': page('https://acme.test/blog', 'Blog', 'https://acme.test/blog/post'),
    'https://acme.test/blog/post': page('https://acme.test/blog/post', 'Post'),
}


class FakeFetcher:
    def __init__(self, site, on_fetch=None):
        self.site = site
        self.fetched = []
        self.on_fetch = on_fetch

    def scrape_url(self, url):
        self.fetched.append(url)
        if self.on_fetch:
            self.on_fetch(url)
        source = self.site.get(url)
        if source is None:
            return ScrapedContent.error(url)
        return ScrapedContent(url=source.url, title=source.title, links=list(source.links))


@pytest.fixture
def projects():
    return ProjectService()


class TestCrawler:
    def test_crawls_same_host_breadth_first(self, projects):
        fetcher = FakeFetcher(SITE)
        scraper = ScraperService(fetcher, projects)

        results = scraper.crawl_site('https://acme.test/', CrawlOptions(crawl_entire_site=True), 'p1')

        assert fetcher.fetched == [
            'https://acme.test/',
            'https://acme.test/about',
            'https://acme.test/blog',
            'https://acme.test/blog/post',
        ]
        assert [r.project_id for r in results] == ['p1'] * 4
        assert not scraper.is_crawling
        assert scraper.base_domain == 'acme.test'

    def test_creates_project_with_sitemap(self, projects):
        scraper = ScraperService(FakeFetcher(SITE), projects)
        scraper.crawl_site('https://acme.test/', CrawlOptions(crawl_entire_site=True), 'p1')

        project = projects.get_project('p1')
        assert project.name == 'acme.test'
        assert project.page_count == 4
        sitemap = projects.get_sitemap_data('p1')
        assert len(sitemap.nodes) == 4
        assert {'home-page-1', 'home-page-2', 'page-1-home'} <= {edge.id for edge in sitemap.edges}

    def test_respects_max_pages(self, projects):
        fetcher = FakeFetcher(SITE)
        scraper = ScraperService(fetcher, projects)

        results = scraper.crawl_site(
            'https://acme.test/', CrawlOptions(crawl_entire_site=True, max_pages=2), 'p1'
        )
        assert len(results) == 2
        assert projects.get_project('p1').page_count == 2

    def test_stop_crawling(self, projects):
        scraper = None

        def stop_after_home(url):
            if url == 'https://acme.test/':
                scraper.stop_crawling()

        scraper = ScraperService(FakeFetcher(SITE, on_fetch=stop_after_home), projects)
        results = scraper.crawl_site('https://acme.test/', CrawlOptions(crawl_entire_site=True), 'p1')

        assert len(results) == 1
        assert not scraper.is_crawling

    def test_invalid_start_url(self, projects):
        scraper = ScraperService(FakeFetcher(SITE), projects)
        assert scraper.crawl_site('not a url', CrawlOptions(crawl_entire_site=True), 'p1') == []
        assert not scraper.is_crawling
        assert projects.get_project('p1') is None

    def test_existing_project_accumulates_page_count(self, projects):
        projects.create_project('p1', 'Acme', 'https://acme.test/')
        projects.update_project_page_count('p1', 3)
        scraper = ScraperService(FakeFetcher(SITE), projects)

        options = CrawlOptions(crawl_entire_site=True, max_pages=1, use_existing_project_id='p1')
        scraper.crawl_site('https://acme.test/', options, 'p1')

        assert projects.get_project('p1').page_count == 4
        assert projects.get_project('p1').name == 'Acme'

    def test_embeddings_generated_when_requested(self, projects):
        embeddings = Mock()
        embeddings.process_project.return_value = True
        scraper = ScraperService(FakeFetcher(SITE), projects, embeddings)

        options = CrawlOptions(crawl_entire_site=True, max_pages=2, generate_embeddings=True)
        scraper.crawl_site('https://acme.test/', options, 'p1')

        project_id, pages = embeddings.process_project.call_args[0]
        assert project_id == 'p1'
        assert len(pages) == 2

    def test_embedding_failure_does_not_break_crawl(self, projects):
        embeddings = Mock()
        embeddings.process_project.side_effect = RuntimeError('embedding backend down')
        scraper = ScraperService(FakeFetcher(SITE), projects, embeddings)

        options = CrawlOptions(crawl_entire_site=True, max_pages=1, generate_embeddings=True)
        results = scraper.crawl_site('https://acme.test/', options, 'p1')
        assert len(results) == 1


class TestScrapeWebsite:
    def test_rescrape_replaces_page(self, projects):
        scraper = ScraperService(FakeFetcher(SITE), projects)
        options = CrawlOptions(use_existing_project_id='p9')
        scraper.scrape_website('https://acme.test/about', options)
        scraper.scrape_website('https://acme.test/about', options)

        assert [p.url for p in scraper.get_results_by_project('p9')] == ['https://acme.test/about']
        assert [p.url for p in scraper.get_all_results()] == ['https://acme.test/about']

    def test_single_page_embeddings(self, projects):
        embeddings = Mock()
        embeddings.process_project.return_value = True
        scraper = ScraperService(FakeFetcher(SITE), projects, embeddings)

        result = scraper.scrape_website(
            'https://acme.test/about', CrawlOptions(generate_embeddings=True, use_existing_project_id='p1')
        )
        embeddings.process_project.assert_called_once_with('p1', [result])

    def test_generate_embeddings_for_page(self, projects):
        embeddings = Mock()
        embeddings.process_project.return_value = True
        scraper = ScraperService(FakeFetcher(SITE), projects, embeddings)

        assert scraper.generate_embeddings_for_page(page('https://acme.test/', 'Home'), 'p1') is True
        assert scraper.generate_embeddings_for_page(ScrapedContent.error('https://acme.test/x'), 'p1') is False
        assert embeddings.process_project.call_count == 1

        without_service = ScraperService(FakeFetcher(SITE), projects)
        assert without_service.generate_embeddings_for_page(page('https://acme.test/', 'Home'), 'p1') is False

    def test_single_page(self, projects):
        scraper = ScraperService(FakeFetcher(SITE), projects)
        result = scraper.scrape_website('https://acme.test/about', CrawlOptions(use_existing_project_id='p9'))

        assert result.title == 'About'
        assert result.project_id == 'p9'
        assert scraper.get_results_by_project('p9') == [result]

    def test_single_page_error_skips_embeddings(self, projects):
        embeddings = Mock()
        scraper = ScraperService(FakeFetcher(SITE), projects, embeddings)

        result = scraper.scrape_website('https://acme.test/nope', CrawlOptions(generate_embeddings=True))
        assert result.is_error
        embeddings.process_project.assert_not_called()

    def test_crawl_returns_first_page(self, projects):
        scraper = ScraperService(FakeFetcher(SITE), projects)
        result = scraper.scrape_website('https://acme.test/', CrawlOptions(crawl_entire_site=True))
        assert result.url == 'https://acme.test/'


def test_crawl_options_from_dict():
    options = CrawlOptions.from_dict({
        'crawl_entire_site': True,
        'max_pages': '10',
        'project_name': '',
        'project_id': 'abc',
    })
    assert options.crawl_entire_site is True
    assert options.max_pages == 10
    assert options.project_name is None
    assert options.use_existing_project_id == 'abc'


def test_crawl_options_default_page_limit():
    options = CrawlOptions.from_dict({'crawl_entire_site': True})
    assert options.max_pages == 50


@pytest.mark.parametrize('value, expected', [
    (None, False), (True, True), (False, False), ('false', False), ('False', False),
    ('TRUE', True), ('0', False), ('1', True), (1, True), (0, False), ('off', False),
])
def test_parse_bool(value, expected):
    assert parse_bool(value, 'flag') is expected


@pytest.mark.parametrize('value', ['maybe', 2, [], {}])
def test_parse_bool_rejects(value):
    with pytest.raises(ValueError, match='flag must be a boolean'):
        parse_bool(value, 'flag')


def test_string_flags_from_dict():
    options = CrawlOptions.from_dict({'crawl_entire_site': 'false', 'generate_embeddings': 'true'})
    assert options.crawl_entire_site is False
    assert options.generate_embeddings is True

    with pytest.raises(ValueError):
        CrawlOptions.from_dict({'crawl_entire_site': 'maybe'})


@pytest.mark.parametrize('value', [0, -3, True, 'lots'])
def test_parse_max_pages_rejects(value):
    with pytest.raises(ValueError):
        parse_max_pages(value)


ONE = {
    'https://one.test/': page('https://one.test/', 'One', 'https://one.test/more'),
    'https://one.test/more': page('https://one.test/more', 'More'),
}
TWO = {
    'https://two.test/': page('https://two.test/', 'Two', 'https://two.test/x'),
    'https://two.test/x': page('https://two.test/x', 'X'),
}


class TestCrawlSlot:
    def test_second_claim_refused(self, projects):
        scraper = ScraperService(FakeFetcher(SITE), projects)

        assert scraper.begin_crawl('p1') is not None
        assert scraper.begin_crawl('p2') is None
        assert scraper.crawl_site('https://acme.test/', CrawlOptions(crawl_entire_site=True), 'p2') == []
        assert scraper.is_crawling_project('p1')
        assert not scraper.is_crawling_project('p2')

    def test_stopped_crawl_does_not_disturb_next_one(self, projects):
        entered = threading.Event()
        release = threading.Event()

        def hold_first_page(url):
            if url == 'https://one.test/':
                entered.set()
                release.wait(5)

        scraper = ScraperService(FakeFetcher({**ONE, **TWO}, on_fetch=hold_first_page), projects)
        options = CrawlOptions(crawl_entire_site=True)

        first_token = scraper.begin_crawl('a')
        first = threading.Thread(
            target=scraper.crawl_site,
            args=('https://one.test/', options, 'a'),
            kwargs={'token': first_token}
        )
        first.start()
        assert entered.wait(5)

        assert scraper.begin_crawl('b') is None
        scraper.stop_crawling()
        second_token = scraper.begin_crawl('b')
        assert second_token is not None

        release.set()
        first.join(5)
        assert not first.is_alive()

        # The old crawl ended without releasing the new claim
        assert scraper.is_crawling_project('b')
        assert [p.url for p in scraper.get_results_by_project('a')] == ['https://one.test/']

        results = scraper.crawl_site('https://two.test/', options, 'b', token=second_token)

        assert [p.url for p in results] == ['https://two.test/', 'https://two.test/x']
        assert not scraper.is_crawling
        assert projects.get_project('b').page_count == 2
        sitemap_urls = {node.data['url'] for node in projects.get_sitemap_data('b').nodes}
        assert sitemap_urls == {'https://two.test/', 'https://two.test/x'}
        assert [p.url for p in scraper.get_results_by_project('a')] == ['https://one.test/']
