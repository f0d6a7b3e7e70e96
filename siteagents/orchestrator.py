"""
Orchestrator Module
"""

import time
import logging
from typing import Dict, Any, List, Optional

from siteagents.agents import (
    BaseAgent, AgentContext, AgentResponse, RAGSpecialistAgent, MarketingExpertAgent,
    QualityControlAgent, ThinkingAgent
)
from siteagents.graph import build_orchestration_graph
from siteagents.knowledge.query_log import RAGQueryService
from siteagents.knowledge.store import KnowledgeStore
from siteagents.llm_client import OpenAIClient

logger = logging.getLogger(__name__)

PROCESSING_FAILED = 'I encountered an issue processing your request. Please try again.'
UNEXPECTED_ERROR = 'An unexpected error occurred while processing your request.'


class OrchestratorAgent(BaseAgent):
    """
    Coordinates the specialist agents.

    Runs retrieval, marketing analysis and quality control in order and
    synthesizes their outputs into one answer.
    """

    AGENT_NAME = "orchestrator"
    DISPLAY_NAME = "Orchestrator"
    DESCRIPTION = "Coordinates multi-agent collaboration and response synthesis"

    def __init__(self, llm_client: OpenAIClient, store: KnowledgeStore):
        super().__init__(llm_client, store)
        self.rag_agent = RAGSpecialistAgent(llm_client, store)
        self.marketing_agent = MarketingExpertAgent(llm_client, store)
        self.quality_agent = QualityControlAgent(llm_client, store)
        self.graph = build_orchestration_graph(self.rag_agent, self.marketing_agent, self.quality_agent)

    @property
    def specialists(self) -> List[BaseAgent]:
        return [self.rag_agent, self.marketing_agent, self.quality_agent]

    def process(self, context: AgentContext) -> AgentResponse:
        reasoning = ['Initiating multi-agent collaboration workflow']

        try:
            final_state = self.graph.invoke({
                'context': context,
                'agent_results': {},
                'reasoning': reasoning,
            })
        except Exception as e:
            logger.error(f"Orchestration error: {e}")
            return AgentResponse.failed(reasoning + [f"Error in orchestration: {e}"])

        agent_results = final_state.get('agent_results', {})
        synthesized = final_state.get('synthesized', {})
        rag_result = agent_results.get('rag_specialist')
        quality_result = agent_results.get('quality_control')

        has_knowledge = bool(
            rag_result and rag_result.success and (rag_result.data or {}).get('sources')
        )
        quality_approved = bool(
            quality_result and quality_result.data and quality_result.data.get('approved')
        )

        return AgentResponse(
            success=True,
            confidence=final_state.get('confidence', 0.0),
            data=synthesized,
            reasoning=final_state.get('reasoning', []),
            metadata={
                'agent_count': len(agent_results),
                'quality_approved': quality_approved,
                'has_knowledge_context': has_knowledge,
            }
        )


class MultiAgentService:
    """Entry point for chat queries answered by the agent team."""

    def __init__(
        self,
        orchestrator: OrchestratorAgent,
        thinking_agent: Optional[ThinkingAgent] = None,
        query_log: Optional[RAGQueryService] = None
    ):
        self.orchestrator = orchestrator
        self.thinking_agent = thinking_agent
        self.query_log = query_log

    @staticmethod
    def _failure(response: str, reasoning: List[str], metadata: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'success': False,
            'response': response,
            'confidence': 0,
            'sources': [],
            'reasoning': reasoning,
            'quality': {'score': 0, 'approved': False, 'improvements': []},
            'metadata': metadata,
        }

    def process_query(
        self,
        message: str,
        project_id: str,
        task_type: str = 'marketing',
        user_context: Optional[Dict[str, Any]] = None,
        history: Optional[List[Dict[str, str]]] = None
    ) -> Dict[str, Any]:
        """Answer a chat message with the multi-agent workflow. history holds earlier turns, oldest first."""
        start_time = time.time()
        logger.info(f"Processing query with multi-agent system: \"{message}\"")
        logger.info(f"Project ID: {project_id}, Task Type: {task_type}")

        try:
            context = AgentContext(
                query=message,
                project_id=project_id,
                task_type=task_type,
                user_context=user_context,
                history=list(history or [])
            )
            result = self.orchestrator.process(context)

            if not result.success:
                logger.error(f"Multi-agent processing failed: {result.reasoning}")
                return self._failure(PROCESSING_FAILED, result.reasoning or ['Processing failed'], {})

            data = result.data
            logger.info(f"Multi-agent processing completed with confidence: {round(result.confidence * 100)}%")
            logger.info(f"Quality approved: {data['quality']['approved']}")

            self._log_query(project_id, message, data['sources'], result.confidence)

            metadata = dict(result.metadata)
            metadata['elapsed'] = time.time() - start_time
            return {
                'success': True,
                'response': data['final_answer'],
                'confidence': result.confidence,
                'sources': data['sources'],
                'reasoning': data['reasoning'],
                'quality': data['quality'],
                'metadata': metadata,
            }
        except Exception as e:
            logger.error(f"Error in multi-agent service: {e}")
            return self._failure(UNEXPECTED_ERROR, [f"Error: {e}"], {'error': True})

    def process_thinking_query(
        self,
        message: str,
        project_id: str,
        task_type: str = 'general',
        categories: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """Answer a chat message with the three-step thinking agent."""
        if self.thinking_agent is None:
            return self._failure(PROCESSING_FAILED, ['Thinking agent not configured'], {})

        context = AgentContext(
            query=message,
            project_id=project_id,
            task_type=task_type,
            allowed_categories=categories
        )
        result = self.thinking_agent.process(context)
        if not result.success:
            return self._failure(PROCESSING_FAILED, result.reasoning, {})

        sources = result.data['sources']
        self._log_query(project_id, message, sources, result.confidence)

        return {
            'success': True,
            'response': result.data['final_answer'],
            'confidence': result.confidence,
            'sources': sources,
            'reasoning': result.reasoning,
            'thinking_session': result.data['thinking_session'],
            'metadata': dict(result.metadata),
        }

    def _log_query(self, project_id: str, message: str, sources: List[Dict[str, Any]], confidence: float):
        if self.query_log is None or not project_id:
            return
        source_ids = [str(source['id']) for source in sources if source.get('id') is not None]
        self.query_log.log_query(project_id, message, source_ids, confidence)

    def get_agent_info(self) -> Dict[str, Any]:
        specialists = [
            {'name': agent.name, 'description': agent.description}
            for agent in self.orchestrator.specialists
        ]
        if self.thinking_agent is not None:
            specialists.append({
                'name': self.thinking_agent.name,
                'description': self.thinking_agent.description,
            })
        return {
            'orchestrator': self.orchestrator.description,
            'specialists': specialists,
        }

    def is_ready(self) -> bool:
        return self.orchestrator is not None
