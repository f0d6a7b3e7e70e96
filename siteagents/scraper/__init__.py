"""
Scraper Package
"""

from siteagents.scraper.types import (
    ScrapedContent, CrawlProject, CrawlOptions, SitemapData, SitemapNode, SitemapEdge
)
from siteagents.scraper.fetcher import PageFetcher, FetchError, extract_content

__all__ = [
    'ScrapedContent',
    'CrawlProject',
    'CrawlOptions',
    'SitemapData',
    'SitemapNode',
    'SitemapEdge',
    'PageFetcher',
    'FetchError',
    'extract_content',
]
