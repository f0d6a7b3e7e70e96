"""
Project Registry
"""

import logging
import threading
from typing import Dict, List, Optional

from siteagents.scraper.types import CrawlProject, ScrapedContent, SitemapData
from siteagents.scraper import sitemap

logger = logging.getLogger(__name__)


class ProjectService:
    """In-memory registry of crawl projects."""

    def __init__(self):
        self._projects: Dict[str, CrawlProject] = {}
        self._lock = threading.Lock()

    def create_project(self, project_id: str, name: str, start_url: str) -> CrawlProject:
        project = CrawlProject(id=project_id, name=name, start_url=start_url)
        with self._lock:
            self._projects[project_id] = project
        logger.info(f"Created project {project_id} ({name})")
        return project

    def update_project_page_count(self, project_id: str, count: int) -> None:
        with self._lock:
            project = self._projects.get(project_id)
            if project:
                project.page_count = count

    def update_project_sitemap(
        self,
        project_id: str,
        results: List[ScrapedContent],
        start_url: str,
        base_url: str,
        base_domain: str
    ) -> None:
        """Regenerate the sitemap for a project from crawl results."""
        with self._lock:
            project = self._projects.get(project_id)
            if project:
                project.sitemap_data = sitemap.generate_for_project(
                    results, start_url, base_url, base_domain
                )

    def get_project(self, project_id: str) -> Optional[CrawlProject]:
        with self._lock:
            return self._projects.get(project_id)

    def get_all_projects(self) -> List[CrawlProject]:
        with self._lock:
            return list(self._projects.values())

    def get_sitemap_data(self, project_id: str) -> Optional[SitemapData]:
        project = self.get_project(project_id)
        return project.sitemap_data if project else None
