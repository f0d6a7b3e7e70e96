"""
Multi-Agent Workflow Graph
"""

import logging
import operator
from typing import Dict, Any, List, TypedDict, Annotated

from langgraph.graph import StateGraph, END

from siteagents.agents.base_agent import AgentContext, AgentResponse
from siteagents.agents.rag_specialist import RAGSpecialistAgent
from siteagents.agents.marketing_expert import MarketingExpertAgent
from siteagents.agents.quality_control import QualityControlAgent

logger = logging.getLogger(__name__)

RAG_SPECIALIST = 'rag_specialist'
MARKETING_EXPERT = 'marketing_expert'
QUALITY_CONTROL = 'quality_control'

AGENT_WEIGHTS = {
    RAG_SPECIALIST: 0.3,
    MARKETING_EXPERT: 0.4,
    QUALITY_CONTROL: 0.3,
}
DEFAULT_AGENT_WEIGHT = 0.25

MISSING_ANALYSIS = 'I apologize, but I encountered issues generating marketing insights for your query.'


def _merge_results(left: Dict[str, AgentResponse], right: Dict[str, AgentResponse]) -> Dict[str, AgentResponse]:
    merged = dict(left or {})
    merged.update(right or {})
    return merged


# --- State Definition (Schema) ---
class OrchestrationState(TypedDict, total=False):
    """The state passed between workflow phases."""

    context: AgentContext
    agent_results: Annotated[Dict[str, AgentResponse], _merge_results]
    reasoning: Annotated[List[str], operator.add]

    # Filled in by synthesis
    synthesized: Dict[str, Any]
    confidence: float


# --- Synthesis helpers ---

def calculate_overall_confidence(agent_results: Dict[str, AgentResponse]) -> float:
    """Weighted mean confidence over the agents that succeeded."""
    weighted_sum = 0.0
    total_weight = 0.0
    for agent_name, result in agent_results.items():
        if result.success:
            weight = AGENT_WEIGHTS.get(agent_name, DEFAULT_AGENT_WEIGHT)
            weighted_sum += result.confidence * weight
            total_weight += weight
    return weighted_sum / total_weight if total_weight > 0 else 0.0


def combine_reasoning(agent_results: Dict[str, AgentResponse]) -> List[str]:
    combined = []
    for agent_name, result in agent_results.items():
        if result.reasoning:
            combined.append(f"--- {agent_name.upper()} REASONING ---")
            combined.extend(result.reasoning)
            combined.append('')
    return combined


def _data(agent_results: Dict[str, AgentResponse], name: str) -> Dict[str, Any]:
    result = agent_results.get(name)
    return (result.data if result else None) or {}


def synthesize_response(agent_results: Dict[str, AgentResponse]) -> Dict[str, Any]:
    """Assemble the final answer from the specialist outputs."""
    rag_data = _data(agent_results, RAG_SPECIALIST)
    marketing_data = _data(agent_results, MARKETING_EXPERT)
    quality_data = _data(agent_results, QUALITY_CONTROL)

    final_answer = (marketing_data.get('insights') or {}).get('analysis') or MISSING_ANALYSIS

    sources = rag_data.get('sources') or []
    if sources:
        final_answer += '\n\n**Sources and Context:**\n'
        final_answer += (
            f"This analysis is based on {len(sources)} relevant sources "
            f"from your knowledge base and marketing expertise."
        )

    recommendations = marketing_data.get('recommendations') or []
    if recommendations:
        final_answer += '\n\n**Key Recommendations:**\n'
        for index, recommendation in enumerate(recommendations, 1):
            final_answer += f"{index}. {recommendation}\n"

    improvements = quality_data.get('improvements') or []
    if improvements and not quality_data.get('approved'):
        final_answer += '\n\n**Quality Improvements:**\n'
        final_answer += 'To enhance this marketing strategy, consider:\n'
        for improvement in improvements:
            final_answer += f"• {improvement}\n"

    brand_voice = marketing_data.get('brand_voice')
    if brand_voice:
        final_answer += '\n\n**Brand Voice Alignment:**\n'
        final_answer += (
            f"This recommendation has been tailored to your brand's "
            f"{brand_voice.get('tone')} tone and {brand_voice.get('style')} style."
        )

    return {
        'final_answer': final_answer,
        'confidence': calculate_overall_confidence(agent_results),
        'sources': sources,
        'agent_results': agent_results,
        'reasoning': combine_reasoning(agent_results),
        'quality': {
            'score': quality_data.get('quality_score') or 0.5,
            'approved': bool(quality_data.get('approved')),
            'improvements': improvements,
        }
    }


# --- Nodes ---

class WorkflowNodes:
    def __init__(
        self,
        rag_agent: RAGSpecialistAgent,
        marketing_agent: MarketingExpertAgent,
        quality_agent: QualityControlAgent
    ):
        self.rag_agent = rag_agent
        self.marketing_agent = marketing_agent
        self.quality_agent = quality_agent

    def rag_retrieval(self, state: OrchestrationState) -> Dict[str, Any]:
        """Phase 1: Knowledge retrieval"""
        logger.info("--- Phase 1: Knowledge Retrieval ---")
        reasoning = ['Phase 1: Knowledge retrieval and context optimization']

        result = self.rag_agent.process(state['context'])
        if result.success:
            reasoning.append(f"RAG retrieval successful with confidence: {round(result.confidence * 100)}%")
        else:
            reasoning.append('RAG retrieval failed, proceeding with limited context')

        return {'agent_results': {RAG_SPECIALIST: result}, 'reasoning': reasoning}

    def marketing_analysis(self, state: OrchestrationState) -> Dict[str, Any]:
        """Phase 2: Marketing analysis"""
        logger.info("--- Phase 2: Marketing Analysis ---")
        reasoning = ['Phase 2: Marketing expertise and strategy analysis']

        context = state['context'].with_results(state.get('agent_results', {}))
        result = self.marketing_agent.process(context)
        if result.success:
            reasoning.append(f"Marketing analysis completed with confidence: {round(result.confidence * 100)}%")
        else:
            reasoning.append('Marketing analysis encountered issues')

        return {'agent_results': {MARKETING_EXPERT: result}, 'reasoning': reasoning}

    def quality_control(self, state: OrchestrationState) -> Dict[str, Any]:
        """Phase 3: Quality control"""
        logger.info("--- Phase 3: Quality Control ---")
        reasoning = ['Phase 3: Quality control and ethics validation']

        context = state['context'].with_results(state.get('agent_results', {}))
        result = self.quality_agent.process(context)
        if result.success:
            reasoning.append(f"Quality validation completed with score: {round(result.confidence * 100)}%")
        else:
            reasoning.append('Quality control validation failed')

        return {'agent_results': {QUALITY_CONTROL: result}, 'reasoning': reasoning}

    def synthesis(self, state: OrchestrationState) -> Dict[str, Any]:
        """Phase 4: Response synthesis"""
        logger.info("--- Phase 4: Response Synthesis ---")
        agent_results = state.get('agent_results', {})

        synthesized = synthesize_response(agent_results)
        confidence = calculate_overall_confidence(agent_results)

        return {
            'synthesized': synthesized,
            'confidence': confidence,
            'reasoning': [
                'Phase 4: Response synthesis and final optimization',
                f"Overall system confidence: {round(confidence * 100)}%",
            ]
        }


# --- Graph Construction ---

def build_orchestration_graph(
    rag_agent: RAGSpecialistAgent,
    marketing_agent: MarketingExpertAgent,
    quality_agent: QualityControlAgent
):
    nodes = WorkflowNodes(rag_agent, marketing_agent, quality_agent)
    workflow = StateGraph(OrchestrationState)

    workflow.add_node("rag_retrieval", nodes.rag_retrieval)
    workflow.add_node("marketing_analysis", nodes.marketing_analysis)
    workflow.add_node("quality_control", nodes.quality_control)
    workflow.add_node("synthesis", nodes.synthesis)

    workflow.set_entry_point("rag_retrieval")
    workflow.add_edge("rag_retrieval", "marketing_analysis")
    workflow.add_edge("marketing_analysis", "quality_control")
    workflow.add_edge("quality_control", "synthesis")
    workflow.add_edge("synthesis", END)

    return workflow.compile()
