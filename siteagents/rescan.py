"""
Project Rescan

Re-crawls a project's site, compares the fresh pages with the stored ones
and re-embeds only what is new or changed.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from siteagents.knowledge.store import KnowledgeStore, StoreError
from siteagents.projects import ProjectService
from siteagents.scraper.types import ScrapedContent, CrawlOptions

logger = logging.getLogger(__name__)

# Rescans without max_pages may find this many pages beyond the stored ones
RESCAN_EXTRA_PAGES = 10


class RescanError(Exception):
    """Raised when a rescan cannot start. code is NOT_FOUND, NO_CONTENT or CRAWL_IN_PROGRESS."""

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


@dataclass
class ContentComparison:
    new_content: List[ScrapedContent] = field(default_factory=list)
    changed_content: List[ScrapedContent] = field(default_factory=list)
    unchanged_content: List[ScrapedContent] = field(default_factory=list)
    removed_urls: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'new_urls': [page.url for page in self.new_content],
            'changed_urls': [page.url for page in self.changed_content],
            'unchanged_urls': [page.url for page in self.unchanged_content],
            'removed_urls': list(self.removed_urls),
        }


def has_content_changed(existing: ScrapedContent, updated: ScrapedContent) -> bool:
    """Compare the fields that feed embeddings. Links are ignored."""
    if existing.title != updated.title:
        return True
    if existing.meta_description != updated.meta_description:
        return True
    if existing.meta_keywords != updated.meta_keywords:
        return True
    if existing.paragraphs != updated.paragraphs:
        return True

    old_headings = [(h.get('text'), h.get('tag')) for h in existing.headings]
    new_headings = [(h.get('text'), h.get('tag')) for h in updated.headings]
    if old_headings != new_headings:
        return True

    return existing.list_items != updated.list_items


def compare_content(existing: List[ScrapedContent], scraped: List[ScrapedContent]) -> ContentComparison:
    """Bucket freshly scraped pages against the stored ones by URL."""
    existing_by_url = {page.url: page for page in existing}
    scraped_urls = {page.url for page in scraped}
    comparison = ContentComparison(
        removed_urls=[url for url in existing_by_url if url not in scraped_urls]
    )

    for page in scraped:
        previous = existing_by_url.get(page.url)
        if previous is None:
            comparison.new_content.append(page)
        elif has_content_changed(previous, page):
            comparison.changed_content.append(page)
        else:
            comparison.unchanged_content.append(page)

    return comparison


class RescanService:
    def __init__(self, scraper, projects: ProjectService, store: KnowledgeStore, embeddings=None):
        self.scraper = scraper
        self.projects = projects
        self.store = store
        self.embeddings = embeddings

    def _stored_pages(self, project_id: str) -> List[ScrapedContent]:
        records = self.store.get_scraped_content(project_id)
        return [
            ScrapedContent.from_dict(dict(record.get('content') or {}, url=record['url'], project_id=project_id))
            for record in records
        ]

    def rescan_project(
        self,
        project_id: str,
        generate_embeddings: bool = True,
        force_reprocess_all: bool = False,
        max_pages: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Re-crawl the project and refresh what changed.

        New and changed pages are written back to the store. With
        generate_embeddings, their old chunks are dropped and they are
        embedded again; force_reprocess_all does that for every page
        crawled. Raises RescanError when the rescan cannot start and
        StoreError when stored pages cannot be read.
        """
        project = self.projects.get_project(project_id)
        if project is None:
            raise RescanError('Project not found', 'NOT_FOUND')

        existing = self._stored_pages(project_id)
        if not existing:
            raise RescanError('No content to compare', 'NO_CONTENT')

        token = self.scraper.begin_crawl(project_id)
        if token is None:
            raise RescanError('A crawl is already running', 'CRAWL_IN_PROGRESS')

        options = CrawlOptions(
            crawl_entire_site=True,
            max_pages=max_pages or len(existing) + RESCAN_EXTRA_PAGES,
            generate_embeddings=False,
            use_existing_project_id=project_id,
        )
        logger.info(f"Rescanning project {project_id} from {project.start_url} ({len(existing)} stored pages)")
        crawled = self.scraper.crawl_site(project.start_url, options, project_id, token=token)
        pages = [page for page in crawled if not page.is_error]
        self.projects.update_project_page_count(project_id, len(crawled))

        comparison = compare_content(existing, pages)
        updated = comparison.new_content + comparison.changed_content

        stored = 0
        for page in updated:
            try:
                self.store.store_scraped_content(project_id, page.url, page.title, page.to_dict())
                stored += 1
            except StoreError as e:
                logger.error(f"Failed to store rescanned content for {page.url}: {e}")

        embedded = 0
        if generate_embeddings:
            to_embed = pages if force_reprocess_all else updated
            embedded = self._reembed(project_id, to_embed)

        logger.info(
            f"Rescan of {project_id}: {len(comparison.new_content)} new, "
            f"{len(comparison.changed_content)} changed, {len(comparison.removed_urls)} removed"
        )
        return {
            'project_id': project_id,
            'project_name': project.name,
            'start_url': project.start_url,
            'pages_crawled': len(crawled),
            'pages_stored': stored,
            'pages_embedded': embedded,
            'comparison': comparison.to_dict(),
        }

    def _reembed(self, project_id: str, pages: List[ScrapedContent]) -> int:
        if self.embeddings is None:
            logger.warning("Embeddings requested but no embedding service is configured")
            return 0

        embedded = 0
        for page in pages:
            try:
                self.store.delete_document_chunks(project_id, page.url)
            except StoreError as e:
                logger.error(f"Failed to clear chunks for {page.url}: {e}")
                continue
            if self.embeddings.process_content(page, project_id):
                embedded += 1
        return embedded
