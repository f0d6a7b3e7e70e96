"""
Shared test fixtures
"""

import hashlib
from unittest.mock import Mock

import pytest

from siteagents.knowledge.store import LocalKnowledgeStore
from siteagents.scraper.types import ScrapedContent


def fake_embedding(text: str, dims: int = 8):
    """Deterministic non-zero vector derived from text."""
    digest = hashlib.sha256(text.encode('utf-8')).digest()
    return [(byte % 17) + 1.0 for byte in digest[:dims]]


@pytest.fixture
def mock_llm():
    """LLM client double with deterministic embeddings and a canned completion."""
    llm = Mock()
    llm.embed.side_effect = lambda text, model=None: fake_embedding(text)
    llm.complete.return_value = {
        'content': 'Mock completion',
        'model': 'gpt-4o-mini',
        'usage': {},
        'elapsed': 0.0,
    }
    llm.complete_json.return_value = {'content': '{}', 'parsed': {}}
    return llm


@pytest.fixture
def local_store(tmp_path):
    return LocalKnowledgeStore(str(tmp_path / 'knowledge.db'))


@pytest.fixture
def sample_page():
    return ScrapedContent(
        url='https://example.com/',
        title='Example Home',
        headings=[{'text': 'Welcome', 'tag': 'h1'}, {'text': 'Services', 'tag': 'h2'}],
        paragraphs=[
            'We build marketing sites for small businesses.',
            'Our team has ten years of experience in SEO.',
        ],
        links=[
            {'text': 'About', 'url': 'https://example.com/about'},
            {'text': 'Twitter', 'url': 'https://twitter.com/example'},
        ],
        list_items=['Web design', 'Content writing'],
        meta_description='Example agency homepage',
    )
