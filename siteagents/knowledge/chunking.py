"""
Text Chunking
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Any, List, Union

from siteagents.scraper.types import ScrapedContent

HEADING_CHUNK_SIZE = 1000
PARAGRAPH_CHUNK_SIZE = 1500
LIST_CHUNK_SIZE = 1500
MIN_CHUNK_LENGTH = 20


@dataclass
class TextChunk:
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)  # source, title, type


def _chunk_metadata(content: ScrapedContent, chunk_type: str) -> Dict[str, Any]:
    return {'source': content.url, 'title': content.title, 'type': chunk_type}


def _pack(pieces: List[str], limit: int, separator: str = '') -> List[str]:
    """Greedily pack pieces into strings no longer than limit (a single oversized piece stands alone)."""
    packed = []
    current = ''
    for piece in pieces:
        if current and len(current) + len(piece) > limit:
            packed.append(current)
            current = piece
        else:
            current += (separator if current else '') + piece
    if current:
        packed.append(current)
    return packed


def generate_chunks(content: ScrapedContent) -> List[TextChunk]:
    """Split a scraped page into chunks suitable for embedding."""
    chunks: List[TextChunk] = []

    if content.title:
        chunks.append(TextChunk(
            text=f"Page Title: {content.title}",
            metadata=_chunk_metadata(content, 'title')
        ))

    if content.meta_description:
        chunks.append(TextChunk(
            text=f"Page Description: {content.meta_description}",
            metadata=_chunk_metadata(content, 'meta_description')
        ))

    heading_lines = [f"{h.get('tag', '').upper()}: {h.get('text', '')}\n" for h in content.headings]
    for text in _pack(heading_lines, HEADING_CHUNK_SIZE):
        chunks.append(TextChunk(text=text, metadata=_chunk_metadata(content, 'headings')))

    paragraphs = [p for p in content.paragraphs if p.strip()]
    for text in _pack(paragraphs, PARAGRAPH_CHUNK_SIZE, separator='\n\n'):
        chunks.append(TextChunk(text=text, metadata=_chunk_metadata(content, 'paragraphs')))

    list_lines = [f"• {item}\n" for item in content.list_items]
    for text in _pack(list_lines, LIST_CHUNK_SIZE):
        chunks.append(TextChunk(text=text, metadata=_chunk_metadata(content, 'list_items')))

    return chunks


def split_text_into_chunks(text: str, max_chunk_size: int = 1000) -> List[str]:
    """Split free text on sentence boundaries into chunks of at most max_chunk_size."""
    if not text or len(text) <= max_chunk_size:
        return [text] if text else []

    sentences = [s.strip() for s in re.split(r'[.!?]+', text) if s.strip()]
    chunks = []
    current = ''

    for sentence in sentences:
        candidate = current + ('. ' if current else '') + sentence
        if len(candidate) <= max_chunk_size:
            current = candidate
        else:
            if current:
                chunks.append(current + '.')
            current = sentence

    if current:
        chunks.append(current + '.')

    return [chunk for chunk in chunks if len(chunk) > MIN_CHUNK_LENGTH]


_ESCAPES = [
    ('\\u0026', '&'),
    ('\\u003c', '<'),
    ('\\u003e', '>'),
    ('\\u0027', "'"),
    ('\\u0022', '"'),
    ('\\n', '\n'),
    ('\\"', '"'),
]


def clean_text(text: str) -> str:
    """Decode literal JSON escapes and collapse whitespace."""
    if not text:
        return ''
    for escaped, plain in _ESCAPES:
        text = text.replace(escaped, plain)
    return re.sub(r'\s+', ' ', text).strip()


def extract_text_from_content(content: Union[str, Dict[str, Any]]) -> str:
    """Flatten a stored content record (or plain string) into one text blob."""
    if isinstance(content, str):
        return content

    parts = []
    headings = content.get('headings')
    if headings:
        parts.append(' '.join(h.get('text', '') for h in headings))
    paragraphs = content.get('paragraphs')
    if paragraphs:
        parts.append(' '.join(paragraphs))
    if content.get('meta_description'):
        parts.append(content['meta_description'])

    return ' '.join(parts).strip()
