"""
Tests for content comparison and project rescans
"""

from unittest.mock import Mock

import pytest

from siteagents.projects import ProjectService
from siteagents.rescan import RescanService, RescanError, compare_content, has_content_changed, RESCAN_EXTRA_PAGES
from siteagents.scraper.types import ScrapedContent


def page(url, title='Page', paragraphs=None, **kwargs):
    return ScrapedContent(url=url, title=title, paragraphs=list(paragraphs or []), **kwargs)


class TestHasContentChanged:
    def test_identical(self):
        assert not has_content_changed(page('https://a.test/', paragraphs=['x']), page('https://a.test/', paragraphs=['x']))

    @pytest.mark.parametrize('changes', [
        {'title': 'Other'},
        {'meta_description': 'New description'},
        {'meta_keywords': 'a, b'},
        {'paragraphs': ['x', 'y']},
        {'headings': [{'text': 'Intro', 'tag': 'h2'}]},
        {'list_items': ['one']},
    ])
    def test_field_changes(self, changes):
        base = dict(url='https://a.test/', title='Page', paragraphs=['x'], headings=[{'text': 'Intro', 'tag': 'h1'}])
        updated = dict(base, **changes)
        assert has_content_changed(ScrapedContent(**base), ScrapedContent(**updated))

    def test_links_ignored(self):
        old = page('https://a.test/', links=[{'text': 'A', 'url': 'https://a.test/a'}])
        new = page('https://a.test/', links=[])
        assert not has_content_changed(old, new)


def test_compare_content_buckets():
    existing = [
        page('https://a.test/', paragraphs=['home']),
        page('https://a.test/about', paragraphs=['old']),
        page('https://a.test/gone'),
    ]
    scraped = [
        page('https://a.test/', paragraphs=['home']),
        page('https://a.test/about', paragraphs=['new']),
        page('https://a.test/pricing'),
    ]

    comparison = compare_content(existing, scraped)

    assert comparison.to_dict() == {
        'new_urls': ['https://a.test/pricing'],
        'changed_urls': ['https://a.test/about'],
        'unchanged_urls': ['https://a.test/'],
        'removed_urls': ['https://a.test/gone'],
    }


class TestRescanService:
    @pytest.fixture
    def setup(self, local_store):
        projects = ProjectService()
        projects.create_project('p1', 'Acme', 'https://a.test/')
        local_store.store_scraped_content('p1', 'https://a.test/', 'Page', page('https://a.test/', paragraphs=['home']).to_dict())
        local_store.store_scraped_content('p1', 'https://a.test/about', 'Page', page('https://a.test/about').to_dict())
        local_store.insert_document_chunk('p1', 'stale about chunk', [1.0], {'source': 'https://a.test/about'})
        local_store.insert_document_chunk('p1', 'home chunk', [1.0], {'source': 'https://a.test/'})

        scraper = Mock()
        scraper.begin_crawl.return_value = 'token'
        scraper.crawl_site.return_value = [
            page('https://a.test/', paragraphs=['home']),
            page('https://a.test/about', paragraphs=['rewritten']),
            ScrapedContent.error('https://a.test/broken'),
        ]
        embeddings = Mock()
        embeddings.process_content.return_value = True
        return RescanService(scraper, projects, local_store, embeddings), scraper, embeddings, projects

    def test_crawl_options(self, setup):
        service, scraper, _, _ = setup
        service.rescan_project('p1', generate_embeddings=False)

        url, options, project_id = scraper.crawl_site.call_args[0]
        assert url == 'https://a.test/'
        assert project_id == 'p1'
        assert scraper.crawl_site.call_args.kwargs == {'token': 'token'}
        assert options.crawl_entire_site is True
        assert options.generate_embeddings is False
        assert options.use_existing_project_id == 'p1'
        assert options.max_pages == 2 + RESCAN_EXTRA_PAGES

        service.rescan_project('p1', generate_embeddings=False, max_pages=5)
        assert scraper.crawl_site.call_args[0][1].max_pages == 5

    def test_changed_page_chunks_replaced(self, setup, local_store):
        service, _, embeddings, projects = setup

        result = service.rescan_project('p1')

        assert result['comparison']['changed_urls'] == ['https://a.test/about']
        assert result['comparison']['removed_urls'] == []
        assert result['pages_stored'] == 1
        assert result['pages_embedded'] == 1
        assert [call.args[0].url for call in embeddings.process_content.call_args_list] == ['https://a.test/about']
        assert local_store.count_document_chunks('p1', source='https://a.test/about') == 0
        assert local_store.count_document_chunks('p1', source='https://a.test/') == 1
        assert local_store.get_scraped_content('p1', url='https://a.test/about')[0]['content']['paragraphs'] == ['rewritten']
        assert projects.get_project('p1').page_count == 3

    def test_force_reprocess_all(self, setup, local_store):
        service, _, embeddings, _ = setup

        result = service.rescan_project('p1', force_reprocess_all=True)

        assert result['pages_embedded'] == 2
        embedded = [call.args[0].url for call in embeddings.process_content.call_args_list]
        assert embedded == ['https://a.test/', 'https://a.test/about']
        assert local_store.count_document_chunks('p1') == 0

    def test_errors(self, setup, local_store):
        service, scraper, _, projects = setup

        with pytest.raises(RescanError) as missing:
            service.rescan_project('missing')
        assert missing.value.code == 'NOT_FOUND'

        projects.create_project('empty', 'Empty', 'https://b.test/')
        with pytest.raises(RescanError) as empty:
            service.rescan_project('empty')
        assert empty.value.code == 'NO_CONTENT'

        scraper.begin_crawl.return_value = None
        with pytest.raises(RescanError) as busy:
            service.rescan_project('p1')
        assert busy.value.code == 'CRAWL_IN_PROGRESS'
        scraper.crawl_site.assert_not_called()
