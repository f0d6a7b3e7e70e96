"""
Scraper Data Types
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from siteagents.config import get_crawler_config

ERROR_TITLE = 'Error'

TRUE_STRINGS = {'true', '1', 'yes', 'on'}
FALSE_STRINGS = {'false', '0', 'no', 'off', ''}


def parse_bool(value: Any, name: str, default: bool = False) -> bool:
    """Read a request flag. Accepts JSON booleans, 0/1 and the usual strings."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise ValueError(f"{name} must be a boolean")


def parse_max_pages(value: Any) -> Optional[int]:
    """Read a page limit. None stays None; anything else must be a positive integer."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError('max_pages must be an integer')
    try:
        max_pages = int(value)
    except (TypeError, ValueError):
        raise ValueError('max_pages must be an integer')
    if max_pages < 1:
        raise ValueError('max_pages must be positive')
    return max_pages


@dataclass
class ScrapedContent:
    url: str
    title: str = ''
    headings: List[Dict[str, str]] = field(default_factory=list)  # {'text', 'tag'}
    paragraphs: List[str] = field(default_factory=list)
    links: List[Dict[str, str]] = field(default_factory=list)  # {'text', 'url'}
    list_items: List[str] = field(default_factory=list)
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    project_id: Optional[str] = None

    @classmethod
    def error(cls, url: str) -> 'ScrapedContent':
        return cls(url=url, title=ERROR_TITLE)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScrapedContent':
        """Rebuild a page from its stored to_dict() form."""
        return cls(
            url=data.get('url', ''),
            title=data.get('title') or '',
            headings=list(data.get('headings') or []),
            paragraphs=list(data.get('paragraphs') or []),
            links=list(data.get('links') or []),
            list_items=list(data.get('list_items') or []),
            meta_description=data.get('meta_description'),
            meta_keywords=data.get('meta_keywords'),
            project_id=data.get('project_id'),
        )

    @property
    def is_error(self) -> bool:
        return self.title == ERROR_TITLE

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SitemapNode:
    id: str
    position: Dict[str, float]
    data: Dict[str, Any]  # label, path, handles, url, description?
    type: str = 'siteNode'

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SitemapEdge:
    id: str
    source: str
    target: str
    animated: bool = True
    style: Dict[str, str] = field(default_factory=lambda: {'stroke': '#3b82f6'})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SitemapData:
    nodes: List[SitemapNode] = field(default_factory=list)
    edges: List[SitemapEdge] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nodes': [n.to_dict() for n in self.nodes],
            'edges': [e.to_dict() for e in self.edges],
        }


@dataclass
class CrawlProject:
    id: str
    name: str
    start_url: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    page_count: int = 0
    sitemap_data: Optional[SitemapData] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'start_url': self.start_url,
            'created_at': self.created_at.isoformat(),
            'page_count': self.page_count,
            'has_sitemap': self.sitemap_data is not None,
        }


@dataclass
class CrawlOptions:
    crawl_entire_site: bool = False
    max_pages: Optional[int] = None
    project_name: Optional[str] = None
    generate_embeddings: bool = False
    use_existing_project_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CrawlOptions':
        """
        Build options from a request body.

        A missing max_pages falls back to crawler.max_pages from config.
        Raises ValueError for flags or page limits that do not parse.
        """
        max_pages = data.get('max_pages')
        if max_pages is None:
            max_pages = get_crawler_config().get('max_pages')
        max_pages = parse_max_pages(max_pages)

        return cls(
            crawl_entire_site=parse_bool(data.get('crawl_entire_site'), 'crawl_entire_site'),
            max_pages=max_pages,
            project_name=data.get('project_name') or None,
            generate_embeddings=parse_bool(data.get('generate_embeddings'), 'generate_embeddings'),
            use_existing_project_id=data.get('project_id') or data.get('use_existing_project_id') or None,
        )
