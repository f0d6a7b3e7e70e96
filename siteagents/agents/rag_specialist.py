"""
RAG Specialist Agent
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Any, List, Optional

from siteagents.agents.base_agent import BaseAgent, AgentContext, AgentResponse
from siteagents.config import get_retrieval_config, get_embedding_config
from siteagents.knowledge.store import SOURCE_GLOBAL, StoreError
from siteagents.llm_client import LLMError
from siteagents.utils.search import create_search_queries

logger = logging.getLogger(__name__)

MIN_QUALITY = 0.5
MIN_SIMILARITY = 0.25
HIGH_RELEVANCE = 0.6
MEDIUM_RELEVANCE = 0.4
MAX_QUERY_VARIANTS = 3


class RAGSpecialistAgent(BaseAgent):
    """Multi-strategy retrieval over project content and global knowledge."""

    AGENT_NAME = "rag_specialist"
    DISPLAY_NAME = "RAG Specialist"
    DESCRIPTION = "Advanced knowledge retrieval and context optimization"

    def __init__(self, llm_client, store):
        super().__init__(llm_client, store)
        self.retrieval = get_retrieval_config()

    def process(self, context: AgentContext) -> AgentResponse:
        reasoning = [f'Analyzing query: "{context.query}"']

        try:
            embedding = self._generate_embedding(context.query)
            if embedding is None:
                return AgentResponse.failed(reasoning + ['Failed to generate query embedding'])

            reasoning.append('Generated query embedding successfully')

            with ThreadPoolExecutor(max_workers=3) as pool:
                project_future = pool.submit(
                    self.retrieve_project_content, embedding, context.project_id, context.query
                )
                global_future = pool.submit(self.retrieve_global_knowledge, embedding, context.task_type)
                cluster_future = pool.submit(self.retrieve_semantic_clusters, embedding, context.project_id)
                project_content = project_future.result()
                global_knowledge = global_future.result()
                semantic_clusters = cluster_future.result()

            reasoning.append(f"Retrieved {len(project_content)} project documents")
            reasoning.append(f"Retrieved {len(global_knowledge)} global knowledge items")
            reasoning.append(f"Found {len(semantic_clusters)} semantic clusters")

            sources = self.assess_content_quality(project_content + global_knowledge + semantic_clusters)
            reasoning.append(f"Quality filtering retained {len(sources)} high-quality sources")

            optimized_context = self.optimize_context(sources)

            confidence = self.calculate_confidence(sources)
            reasoning.append(f"Calculated retrieval confidence: {round(confidence * 100)}%")

            return AgentResponse(
                success=True,
                confidence=confidence,
                data={
                    'sources': sources,
                    'optimized_context': optimized_context,
                    'retrieval_stats': {
                        'project_sources': len(project_content),
                        'global_sources': len(global_knowledge),
                        'semantic_clusters': len(semantic_clusters),
                        'quality_filtered': len(sources),
                    }
                },
                reasoning=reasoning,
                metadata={
                    'query_embedding': embedding,
                    'retrieval_method': 'multi-strategy',
                }
            )
        except Exception as e:
            logger.error(f"RAG retrieval error: {e}")
            reasoning.append(f"Error during retrieval: {e}")
            return AgentResponse.failed(reasoning)

    def _generate_embedding(self, text: str) -> Optional[List[float]]:
        try:
            return self.llm_client.embed(text, model=get_embedding_config().get('model', 'text-embedding-3-small'))
        except LLMError as e:
            logger.error(f"Error generating embedding: {e}")
            return None

    # ------------------------------------------------------------------
    # Retrieval strategies
    # ------------------------------------------------------------------

    def retrieve_project_content(
        self,
        embedding: List[float],
        project_id: str,
        query: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Project chunks closest to the query embedding.

        When nothing clears the threshold and the query text is known, a few
        rewritten variants of the query are embedded and searched as well.
        """
        rows = self._match_project(embedding, project_id)
        if rows or not query:
            return rows

        merged: Dict[str, Dict[str, Any]] = {}
        for variant in create_search_queries(query)[1:MAX_QUERY_VARIANTS + 1]:
            variant_embedding = self._generate_embedding(variant)
            if variant_embedding is None:
                continue
            for row in self._match_project(variant_embedding, project_id):
                current = merged.get(row['id'])
                if current is None or (row.get('weighted_score') or 0) > (current.get('weighted_score') or 0):
                    merged[row['id']] = row

        if merged:
            logger.info(f"Query variants recovered {len(merged)} project documents")
        return sorted(merged.values(), key=lambda r: r.get('weighted_score') or 0, reverse=True)

    def _match_project(self, embedding: List[float], project_id: str) -> List[Dict[str, Any]]:
        params = self.retrieval.get('project', {})
        try:
            return self.store.match_documents_quality_weighted(
                embedding,
                match_threshold=params.get('match_threshold', 0.25),
                match_count=params.get('match_count', 8),
                project_id=project_id,
                min_quality_score=params.get('min_quality_score', 50)
            )
        except StoreError as e:
            logger.error(f"Error retrieving project content: {e}")
            return []

    def retrieve_global_knowledge(self, embedding: List[float], task_type: str) -> List[Dict[str, Any]]:
        params = self.retrieval.get('global', {})
        try:
            rows = self.store.match_documents_quality_weighted(
                embedding,
                match_threshold=params.get('match_threshold', 0.3),
                match_count=params.get('match_count', 5),
                include_global=True,
                marketing_domain='marketing' if task_type == 'marketing' else None,
                min_quality_score=params.get('min_quality_score', 70)
            )
        except StoreError as e:
            logger.error(f"Error retrieving global knowledge: {e}")
            return []
        return [row for row in rows if row.get('source_type') == SOURCE_GLOBAL]

    def retrieve_semantic_clusters(self, embedding: List[float], project_id: str) -> List[Dict[str, Any]]:
        return []

    # ------------------------------------------------------------------
    # Ranking and context
    # ------------------------------------------------------------------

    def assess_content_quality(self, sources: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        min_length = self.retrieval.get('min_source_length', 50)
        max_sources = self.retrieval.get('max_sources', 10)

        kept = [
            source for source in sources
            if len(source.get('content') or '') > min_length
            and (source.get('quality_score') or 0) >= MIN_QUALITY
            and (source.get('similarity') or 0) >= MIN_SIMILARITY
        ]
        kept.sort(key=lambda s: s.get('weighted_score') or s.get('similarity') or 0, reverse=True)
        return kept[:max_sources]

    def optimize_context(self, sources: List[Dict[str, Any]]) -> str:
        if not sources:
            return ''

        high = [s['content'] for s in sources if (s.get('similarity') or 0) > HIGH_RELEVANCE]
        medium = [
            s['content'] for s in sources
            if MEDIUM_RELEVANCE < (s.get('similarity') or 0) <= HIGH_RELEVANCE
        ]

        context = ''
        if high:
            context += 'High Relevance Information:\n' + '\n\n'.join(high) + '\n\n'
        if medium:
            context += 'Supporting Information:\n' + '\n\n'.join(medium)
        return context

    def calculate_confidence(self, sources: List[Dict[str, Any]]) -> float:
        if not sources:
            return 0.0

        avg_similarity = sum(s.get('similarity') or 0 for s in sources) / len(sources)
        avg_quality = sum(s.get('quality_score') or 0.5 for s in sources) / len(sources)
        coverage = min(len(sources) / 10, 1)

        return avg_similarity * 0.4 + avg_quality * 0.4 + coverage * 0.2
