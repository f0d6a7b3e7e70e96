"""
Website Crawler
"""

import uuid
import logging
import threading
from typing import Dict, List, Optional
from urllib.parse import urlparse

from siteagents.projects import ProjectService
from siteagents.scraper.fetcher import PageFetcher
from siteagents.scraper.sitemap import get_project_name_from_url
from siteagents.scraper.types import ScrapedContent, CrawlOptions, CrawlProject

logger = logging.getLogger(__name__)


class ScraperService:
    """
    Scrapes single pages or crawls whole sites breadth-first.

    One crawl runs at a time. A caller claims the crawl slot with
    begin_crawl(), which hands back a token; the crawl keeps going only
    while that token is still the active one, so stop_crawling() from
    another thread ends it and a newer crawl is never cleared by an older
    one finishing. Results are kept per project.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        projects: ProjectService,
        embeddings=None
    ):
        self.fetcher = fetcher
        self.projects = projects
        self.embeddings = embeddings

        self._lock = threading.Lock()
        self._results: Dict[str, List[ScrapedContent]] = {}
        self._last_project_id: Optional[str] = None
        self._current_project: Optional[CrawlProject] = None
        self._active_token: Optional[str] = None
        self._active_project_id: Optional[str] = None
        self._base_url = ''
        self._base_domain = ''

    # ------------------------------------------------------------------
    # Crawl slot
    # ------------------------------------------------------------------

    def begin_crawl(self, project_id: Optional[str] = None) -> Optional[str]:
        """Claim the crawl slot. Returns a token, or None when a crawl is running."""
        with self._lock:
            if self._active_token is not None:
                return None
            self._active_token = str(uuid.uuid4())
            self._active_project_id = project_id
            return self._active_token

    def _is_active(self, token: str) -> bool:
        with self._lock:
            return self._active_token == token

    def _finish_crawl(self, token: str) -> None:
        with self._lock:
            if self._active_token == token:
                self._active_token = None
                self._active_project_id = None

    @property
    def is_crawling(self) -> bool:
        with self._lock:
            return self._active_token is not None

    def is_crawling_project(self, project_id: str) -> bool:
        with self._lock:
            return self._active_token is not None and self._active_project_id == project_id

    def stop_crawling(self) -> None:
        with self._lock:
            if self._active_token is not None:
                logger.info(f"Stop requested for running crawl of project {self._active_project_id}")
            self._active_token = None
            self._active_project_id = None

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def base_domain(self) -> str:
        return self._base_domain

    def get_all_results(self) -> List[ScrapedContent]:
        """Pages of the most recent scrape or crawl."""
        with self._lock:
            return list(self._results.get(self._last_project_id, []))

    def get_results_by_project(self, project_id: str) -> List[ScrapedContent]:
        with self._lock:
            return list(self._results.get(project_id, []))

    def get_current_project(self) -> Optional[CrawlProject]:
        return self._current_project

    # ------------------------------------------------------------------
    # Scraping
    # ------------------------------------------------------------------

    def scrape_content(self, url: str) -> ScrapedContent:
        return self.fetcher.scrape_url(url)

    def scrape_website(self, url: str, options: CrawlOptions) -> Optional[ScrapedContent]:
        """Scrape one page, or crawl the site when options.crawl_entire_site is set."""
        project_id = options.use_existing_project_id or str(uuid.uuid4())

        if options.crawl_entire_site:
            results = self.crawl_site(url, options, project_id)
            return results[0] if results else None

        result = self.scrape_content(url)
        result.project_id = project_id

        with self._lock:
            pages = [page for page in self._results.get(project_id, []) if page.url != result.url]
            pages.append(result)
            self._results[project_id] = pages
            self._last_project_id = project_id

        if options.generate_embeddings:
            self.generate_embeddings_for_page(result, project_id)

        return result

    def crawl_site(
        self,
        start_url: str,
        options: CrawlOptions,
        project_id: str,
        token: Optional[str] = None
    ) -> List[ScrapedContent]:
        """
        Breadth-first crawl of every page on the start URL's host.

        Pass the token from begin_crawl() when the slot was claimed up
        front; otherwise the slot is claimed here and [] is returned when
        another crawl holds it.
        """
        if token is None:
            token = self.begin_crawl(project_id)
            if token is None:
                logger.warning(f"Crawl of {start_url} refused, another crawl is running")
                return []

        try:
            return self._crawl(start_url, options, project_id, token)
        finally:
            self._finish_crawl(token)

    def _crawl(self, start_url: str, options: CrawlOptions, project_id: str, token: str) -> List[ScrapedContent]:
        parsed = urlparse(start_url)
        if not parsed.scheme or not parsed.hostname:
            logger.error(f"Invalid URL: {start_url}")
            return []

        base_url = start_url
        base_domain = parsed.hostname
        self._base_url = base_url
        self._base_domain = base_domain

        results: List[ScrapedContent] = []
        with self._lock:
            self._results[project_id] = results
            self._last_project_id = project_id

        existing = None
        if options.use_existing_project_id:
            existing = self.projects.get_project(options.use_existing_project_id)

        if existing:
            self._current_project = existing
        else:
            project_name = options.project_name or get_project_name_from_url(start_url)
            self._current_project = self.projects.create_project(project_id, project_name, start_url)

        visited = set()
        queue = [start_url]
        page_count = 0

        while queue and self._is_active(token) and (options.max_pages is None or page_count < options.max_pages):
            url = queue.pop(0)
            if url in visited:
                continue
            visited.add(url)

            logger.info(f"Crawling {url}")
            content = self.scrape_content(url)
            content.project_id = project_id
            with self._lock:
                results.append(content)
            page_count += 1

            for link in content.links:
                link_url = link.get('url', '')
                try:
                    hostname = urlparse(link_url).hostname
                except ValueError:
                    logger.debug(f"Invalid URL: {link_url}")
                    continue
                if hostname == base_domain and link_url not in visited:
                    queue.append(link_url)

        if existing:
            self.projects.update_project_page_count(project_id, existing.page_count + page_count)
        else:
            self.projects.update_project_page_count(project_id, page_count)

        with self._lock:
            crawled = list(results)
        self.projects.update_project_sitemap(project_id, crawled, start_url, base_url, base_domain)
        logger.info(f"Crawl finished: {page_count} pages for project {project_id}")

        if options.generate_embeddings:
            self._process_embeddings(project_id, crawled)

        return crawled

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def _process_embeddings(self, project_id: str, pages: List[ScrapedContent]) -> bool:
        if self.embeddings is None:
            logger.warning("Embeddings requested but no embedding service is configured")
            return False
        try:
            return self.embeddings.process_project(project_id, pages)
        except Exception as e:
            logger.error(f"Failed to process embeddings: {e}")
            return False

    def generate_embeddings_for_page(self, content: ScrapedContent, project_id: str) -> bool:
        if content.is_error:
            logger.info(f"Skipping embedding generation for error content at {content.url}")
            return False
        return self._process_embeddings(project_id, [content])
