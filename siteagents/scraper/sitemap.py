"""
Sitemap Generation and Layout
"""

import logging
from dataclasses import replace
from typing import Dict, Any, List, Optional, Set
from urllib.parse import urlparse

from siteagents.scraper.types import ScrapedContent, SitemapData, SitemapNode, SitemapEdge

logger = logging.getLogger(__name__)

HOME_NODE_ID = 'home'
ALL_HANDLES = ['top', 'bottom', 'left', 'right']
MAX_NODES_PER_ROW = 5
EDGE_COLOR = '#3b82f6'
LAYOUT_EDGE_COLOR = '#aaa'


# ----------------------------------------------------------------------
# URL helpers
# ----------------------------------------------------------------------

def _parse(url: str):
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid URL: {url}")
    return parsed


def get_domain_from_url(url: str) -> str:
    try:
        return _parse(url).hostname or url
    except ValueError:
        return url


def get_path_from_url(url: str) -> str:
    try:
        return _parse(url).path or '/'
    except ValueError:
        return url


def is_main_url(url: str) -> bool:
    """True when url points at the domain root."""
    try:
        return _parse(url).path in ('', '/')
    except ValueError:
        return False


def get_project_name_from_url(url: str) -> str:
    try:
        return _parse(url).hostname or "Untitled Project"
    except ValueError:
        return "Untitled Project"


# ----------------------------------------------------------------------
# Sitemap generation
# ----------------------------------------------------------------------

def generate_for_single_page(page: ScrapedContent) -> SitemapData:
    """Sitemap with just the main page."""
    node = SitemapNode(
        id=HOME_NODE_ID,
        position={'x': 250, 'y': 0},
        data={
            'label': page.title or 'Home Page',
            'path': '/',
            'handles': list(ALL_HANDLES),
            'url': page.url,
        }
    )
    return SitemapData(nodes=[node], edges=[])


def generate_for_project(
    results: List[ScrapedContent],
    start_url: str,
    base_url: str,
    base_domain: str
) -> SitemapData:
    """
    Build a sitemap graph from crawled pages.

    Nodes are laid out on a grid below the start page; edges follow the
    links between crawled pages on the same domain.
    """
    nodes: List[SitemapNode] = []
    edges: List[SitemapEdge] = []
    node_map: Dict[str, str] = {}

    if not results:
        return SitemapData(nodes=nodes, edges=edges)

    home_page = next((page for page in results if page.url == start_url), results[0])
    node_map[home_page.url] = HOME_NODE_ID

    nodes.append(SitemapNode(
        id=HOME_NODE_ID,
        position={'x': 250, 'y': 0},
        data={
            'label': home_page.title or 'Home Page',
            'path': '/',
            'handles': ['bottom'],
            'url': home_page.url,
        }
    ))

    def get_node_id(url: str) -> str:
        if url not in node_map:
            node_map[url] = f"page-{len(node_map)}"
        return node_map[url]

    processed: Set[str] = {home_page.url}

    for i, page in enumerate(results):
        if page.url in processed:
            continue
        processed.add(page.url)

        node_id = get_node_id(page.url)
        col = (i - 1) % MAX_NODES_PER_ROW
        row = (i - 1) // MAX_NODES_PER_ROW + 1

        nodes.append(SitemapNode(
            id=node_id,
            position={'x': 100 + col * 200, 'y': row * 150},
            data={
                'label': page.title or get_path_from_url(page.url),
                'path': get_path_from_url(page.url),
                'handles': list(ALL_HANDLES),
                'url': page.url,
            }
        ))

    seen_edges: Set[str] = set()
    for page in results:
        source_id = node_map.get(page.url)
        if not source_id:
            continue

        for link in page.links:
            link_url = link.get('url', '')

            if link_url.startswith('/'):
                link_url = base_url + link_url
            elif not link_url.startswith('http'):
                continue

            try:
                hostname = _parse(link_url).hostname
            except ValueError:
                continue

            if hostname != base_domain or link_url not in node_map:
                continue

            target_id = node_map[link_url]
            edge_id = f"{source_id}-{target_id}"
            if edge_id in seen_edges:
                continue
            seen_edges.add(edge_id)
            edges.append(SitemapEdge(
                id=edge_id,
                source=source_id,
                target=target_id,
                animated=True,
                style={'stroke': EDGE_COLOR}
            ))

    logger.debug(f"Generated sitemap with {len(nodes)} nodes and {len(edges)} edges")
    return SitemapData(nodes=nodes, edges=edges)


def simplify_edges(edges: List[SitemapEdge], limit: int = 3) -> List[SitemapEdge]:
    """Keep at most `limit` outgoing edges per source node."""
    by_source: Dict[str, List[SitemapEdge]] = {}
    for edge in edges:
        by_source.setdefault(edge.source, []).append(edge)

    simplified: List[SitemapEdge] = []
    for source_edges in by_source.values():
        simplified.extend(source_edges[:limit])
    return simplified


# ----------------------------------------------------------------------
# Waterfall layout
# ----------------------------------------------------------------------

def organize_sitemap(sitemap: Optional[SitemapData], spacing: int = 300, level_height: int = 200) -> SitemapData:
    """
    Re-position nodes into a top-down waterfall below the homepage.

    Children are centred under their parent and expanded depth-first.
    Nodes unreachable from the homepage are stacked underneath.
    """
    if not sitemap or not sitemap.nodes:
        return SitemapData()

    nodes_by_id = {node.id: node for node in sitemap.nodes}
    homepage = next((node for node in sitemap.nodes if node.data.get('path') == '/'), None)
    if homepage is None:
        return sitemap

    layout_nodes: List[SitemapNode] = []
    layout_edges: List[SitemapEdge] = []
    processed: Set[str] = set()
    state = {'current_y': level_height}

    def place(node: SitemapNode, x: float, y: float) -> SitemapNode:
        placed = replace(node, position={'x': x, 'y': y})
        layout_nodes.append(placed)
        processed.add(node.id)
        return placed

    def link(parent_id: str, child_id: str):
        layout_edges.append(SitemapEdge(
            id=f"edge-{parent_id}-{child_id}",
            source=parent_id,
            target=child_id,
            animated=True,
            style={'stroke': LAYOUT_EDGE_COLOR}
        ))

    children_by_id: Dict[str, List[SitemapNode]] = {}
    for edge in sitemap.edges:
        if edge.target in nodes_by_id:
            children_by_id.setdefault(edge.source, []).append(nodes_by_id[edge.target])

    def expand(parent: SitemapNode) -> Dict[str, Any]:
        children = children_by_id.get(parent.id, [])
        return {
            'parent': parent,
            'children': children,
            'index': 0,
            'x': -((len(children) - 1) * spacing) / 2,
        }

    # Depth-first over an explicit stack
    stack = [expand(place(homepage, 0, 0))]
    while stack:
        frame = stack[-1]
        if frame['index'] >= len(frame['children']):
            stack.pop()
            if frame['children']:
                state['current_y'] += level_height
            continue

        child = frame['children'][frame['index']]
        frame['index'] += 1
        link(frame['parent'].id, child.id)
        if child.id not in processed:
            placed = place(child, frame['x'], state['current_y'])
            frame['x'] += spacing
            stack.append(expand(placed))

    for node in sitemap.nodes:
        if node.id not in processed:
            place(node, 0, state['current_y'])
            state['current_y'] += level_height

    layout_ids = {edge.id for edge in layout_edges}
    for edge in sitemap.edges:
        if edge.id not in layout_ids:
            layout_edges.append(edge)
            layout_ids.add(edge.id)

    return SitemapData(nodes=layout_nodes, edges=layout_edges)
