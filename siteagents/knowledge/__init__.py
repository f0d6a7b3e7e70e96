"""
Knowledge Package
"""

from siteagents.knowledge.store import (
    KnowledgeStore, SupabaseKnowledgeStore, LocalKnowledgeStore, StoreError, create_knowledge_store
)
from siteagents.knowledge.embeddings import EmbeddingService
from siteagents.knowledge.global_knowledge import GlobalKnowledgeService
from siteagents.knowledge.query_log import RAGQueryService
from siteagents.knowledge.conversations import ChatService

__all__ = [
    'KnowledgeStore',
    'SupabaseKnowledgeStore',
    'LocalKnowledgeStore',
    'StoreError',
    'create_knowledge_store',
    'EmbeddingService',
    'GlobalKnowledgeService',
    'RAGQueryService',
    'ChatService',
]
