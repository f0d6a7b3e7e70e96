"""
Search Query Expansion
"""

import re
from typing import List

_ARTICLE_RE = re.compile(r'^(the|a|an)\s+', re.IGNORECASE)
_QUESTION_RE = re.compile(r'^(what is|tell me about|describe)\s+')
_LIST_RE = re.compile(r'^(?:list|overview)(?: of)?\s+(.*)$', re.IGNORECASE)
_SUMMARY_RE = re.compile(r'^summary of\s+(.*)$', re.IGNORECASE)
_DETAILS_RE = re.compile(r'^(?:project details|details)(?: for| of)?\s+(.*)$', re.IGNORECASE)


def _unique(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


def preprocess_search_text(text: str) -> List[str]:
    """Lowercased variants of text: as-is, article-stripped, significant words and joined forms."""
    if not text:
        return []

    cleaned = text.lower().strip()
    variants = [cleaned, _ARTICLE_RE.sub('', cleaned)]

    words = [word for word in cleaned.split() if len(word) > 2]
    variants.extend(words)

    if len(words) > 1:
        variants.append(' '.join(words))
        variants.append(''.join(words))

    return _unique(variants)


def create_search_queries(original_query: str) -> List[str]:
    """Expand a user query into ordered, de-duplicated search variants."""
    queries = [original_query]
    lower_query = original_query.lower().strip()

    if _QUESTION_RE.match(lower_query):
        subject = _QUESTION_RE.sub('', lower_query, count=1)
        queries.extend([subject, f"{subject} project", f"{subject} development"])

    match = _LIST_RE.match(lower_query) or _SUMMARY_RE.match(lower_query) or _DETAILS_RE.match(lower_query)
    if match:
        subject = match.group(1).strip()
        queries.extend([subject, f"{subject} project", f"{subject} projects"])
        words = subject.split()
        if len(words) > 1:
            for i in range(2, len(words) + 1):
                queries.append(' '.join(words[:i]))
        queries.extend(preprocess_search_text(subject))

    queries.extend(preprocess_search_text(original_query))
    return _unique(queries)
