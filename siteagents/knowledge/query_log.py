"""
RAG Query Log
"""

import logging
from typing import Dict, Any, List

from siteagents.knowledge.store import KnowledgeStore, StoreError

logger = logging.getLogger(__name__)


class RAGQueryService:
    """Records answered queries and summarises them per project."""

    def __init__(self, store: KnowledgeStore):
        self.store = store

    def log_query(self, project_id: str, query: str, source_ids: List[str], confidence: float) -> None:
        try:
            self.store.log_rag_query(project_id, query, source_ids, confidence)
        except StoreError as e:
            logger.error(f"Failed to log RAG query: {e}")

    def get_stats(self, project_id: str) -> Dict[str, Any]:
        try:
            stats = self.store.get_rag_query_stats(project_id)
        except StoreError as e:
            logger.error(f"Failed to load RAG query stats: {e}")
            stats = None

        if not stats:
            return {'avg_confidence': None, 'frequent_queries': []}

        return {
            'avg_confidence': stats.get('avg_confidence'),
            'frequent_queries': stats.get('frequent_queries') or [],
        }