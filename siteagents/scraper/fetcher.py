"""
Page Fetching and HTML Extraction
"""

import logging
from typing import Optional
from urllib.parse import quote, urljoin

import httpx
from bs4 import BeautifulSoup

from siteagents.config import get_crawler_config
from siteagents.scraper.types import ScrapedContent

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised when a page cannot be fetched directly or through the proxy."""
    pass


class PageFetcher:
    """Fetches pages directly, falling back to a pass-through proxy."""

    def __init__(
        self,
        timeout: float = None,
        proxy_url: Optional[str] = None,
        user_agent: str = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        config = get_crawler_config()
        self.timeout = timeout if timeout is not None else config.get('timeout', 15.0)
        self.proxy_url = proxy_url if proxy_url is not None else config.get('proxy_url', '')
        self.client = httpx.Client(
            timeout=self.timeout,
            follow_redirects=True,
            transport=transport,
            headers={'User-Agent': user_agent or config.get('user_agent', 'SiteAgents/1.0')}
        )

    def _get(self, url: str) -> str:
        response = self.client.get(url)
        response.raise_for_status()
        return response.text

    def fetch(self, url: str) -> str:
        """Fetch raw HTML for url."""
        try:
            return self._get(url)
        except httpx.HTTPError as e:
            if not self.proxy_url:
                raise FetchError(f"Failed to fetch {url}: {e}") from e
            logger.info(f"Direct access failed, trying proxy for {url}")

        try:
            return self._get(self.proxy_url + quote(url, safe=''))
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch URL via proxy: {e}") from e

    def scrape_url(self, url: str) -> ScrapedContent:
        """Fetch and extract a page. Failures produce an error page."""
        try:
            html = self.fetch(url)
            return extract_content(html, url)
        except FetchError as e:
            logger.error(f"Error scraping {url}: {e}")
            return ScrapedContent.error(url)

    def close(self):
        self.client.close()


def _text(element) -> str:
    return element.get_text(" ", strip=True)


def extract_content(html: str, url: str) -> ScrapedContent:
    """Extract title, meta, headings, paragraphs, links and list items from HTML."""
    soup = BeautifulSoup(html, 'html.parser')

    title = _text(soup.title) if soup.title else ''

    description_tag = soup.find('meta', attrs={'name': 'description'})
    keywords_tag = soup.find('meta', attrs={'name': 'keywords'})

    headings = [
        {'text': _text(h), 'tag': h.name.lower()}
        for h in soup.find_all(['h1', 'h2', 'h3', 'h4', 'h5', 'h6'])
    ]
    paragraphs = [_text(p) for p in soup.find_all('p')]

    links = []
    for a in soup.find_all('a', href=True):
        href = a['href'].strip()
        try:
            absolute_url = urljoin(url, href)
        except ValueError:
            logger.debug(f"Failed to resolve URL: {href}")
            absolute_url = href
        links.append({'text': _text(a), 'url': absolute_url})

    list_items = [_text(li) for li in soup.find_all('li')]

    return ScrapedContent(
        url=url,
        title=title,
        headings=headings,
        paragraphs=paragraphs,
        links=links,
        list_items=list_items,
        meta_description=(description_tag.get('content') or None) if description_tag else None,
        meta_keywords=(keywords_tag.get('content') or None) if keywords_tag else None,
    )
