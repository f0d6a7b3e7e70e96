"""
Thinking Agent

Retrieves context once, then reasons over it in three self-prompting steps
before writing a final answer.
"""

import re
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, List, Optional, Tuple

from siteagents.agents.base_agent import BaseAgent, AgentContext, AgentResponse
from siteagents.config import get_retrieval_config, get_embedding_config
from siteagents.knowledge.store import StoreError
from siteagents.llm_client import LLMError

logger = logging.getLogger(__name__)

STEP_QUESTIONS = [
    'Given the query "{query}" and the provided context, what are the key aspects I need to consider?',
    'Based on my initial analysis, what specific insights can I extract and what gaps in understanding do I need to address?',
    'Now I need to synthesize my understanding and validate my conclusions. What is the most accurate and helpful answer I can provide?',
]

STEP_SYSTEM_MESSAGE = 'You are an expert analyst conducting deep reasoning. Provide thorough, step-by-step analysis.'
FINAL_ANSWER_APOLOGY = 'I apologize, but I encountered an issue generating the final answer. Please try again.'

_REASONING_RE = re.compile(r'REASONING:\s*(.*?)(?=CONCLUSION:|$)', re.DOTALL)
_CONCLUSION_RE = re.compile(r'CONCLUSION:\s*(.*?)(?=CONFIDENCE:|$)', re.DOTALL)
_CONFIDENCE_RE = re.compile(r'CONFIDENCE:\s*(\d+)')


@dataclass
class ThinkingStep:
    step: int
    question: str
    reasoning: str
    conclusion: str
    confidence: float


@dataclass
class ThinkingSession:
    query: str
    context: str
    steps: List[ThinkingStep]
    final_answer: str
    overall_confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ThinkingAgent(BaseAgent):
    """Deep reasoning through iterative self-prompting."""

    AGENT_NAME = "thinking"
    DISPLAY_NAME = "Thinking Agent"
    DESCRIPTION = "Deep reasoning and iterative self-prompting for accurate answers"

    def process(self, context: AgentContext) -> AgentResponse:
        reasoning = ['Initiating deep thinking workflow with RAG integration']

        try:
            sources, optimized_context = self.get_rag_context(
                context.query, context.project_id, context.allowed_categories
            )
            reasoning.append(f"Retrieved {len(sources)} relevant knowledge sources")

            session = self.conduct_thinking_session(context.query, optimized_context, context.task_type)
            reasoning.append(f"Completed thinking session with {len(session.steps)} reasoning steps")
            reasoning.append(f"Final confidence: {round(session.overall_confidence * 100)}%")

            return AgentResponse(
                success=True,
                confidence=session.overall_confidence,
                data={
                    'thinking_session': session.to_dict(),
                    'sources': sources,
                    'final_answer': session.final_answer,
                },
                reasoning=reasoning,
                metadata={
                    'thinking_steps': len(session.steps),
                    'rag_sources': len(sources),
                }
            )
        except Exception as e:
            logger.error(f"Thinking workflow error: {e}")
            reasoning.append(f"Error in thinking workflow: {e}")
            return AgentResponse.failed(reasoning)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def get_rag_context(
        self,
        query: str,
        project_id: str,
        categories: Optional[List[str]] = None
    ) -> Tuple[List[Dict[str, Any]], str]:
        params = get_retrieval_config().get('thinking', {})
        try:
            embedding = self.llm_client.embed(
                query, model=get_embedding_config().get('model', 'text-embedding-3-small')
            )
            sources = self.store.match_documents_quality_weighted(
                embedding,
                match_threshold=params.get('match_threshold', 0.25),
                match_count=params.get('match_count', 10),
                project_id=project_id,
                include_global=True,
                min_quality_score=params.get('min_quality_score', 60),
                categories=categories or None
            )
        except (LLMError, StoreError) as e:
            logger.error(f"Error getting RAG context: {e}")
            return [], ''

        if not sources:
            return [], ''
        return sources, self.optimize_context_for_thinking(sources, query)

    def optimize_context_for_thinking(self, sources: List[Dict[str, Any]], query: str) -> str:
        if not sources:
            return ''

        def quality_pct(source):
            return (source.get('quality_score') or 0) * 100

        high = [s for s in sources if (s.get('similarity') or 0) > 0.6 and quality_pct(s) > 70]
        medium = [s for s in sources if (s.get('similarity') or 0) > 0.4 and quality_pct(s) > 50]

        context = f"Query: {query}\n\nRelevant Knowledge:\n\n"

        if high:
            context += 'HIGH CONFIDENCE SOURCES:\n'
            for index, source in enumerate(high, 1):
                context += f"{index}. {source['content'][:500]}...\n"
                context += f"   (Confidence: {round((source.get('similarity') or 0) * 100)}%)\n\n"

        if medium:
            context += 'SUPPORTING SOURCES:\n'
            for index, source in enumerate(medium, 1):
                context += f"{index}. {source['content'][:300]}...\n"
                context += f"   (Confidence: {round((source.get('similarity') or 0) * 100)}%)\n\n"

        return context

    # ------------------------------------------------------------------
    # Thinking session
    # ------------------------------------------------------------------

    def conduct_thinking_session(self, query: str, context: str, task_type: str) -> ThinkingSession:
        steps: List[ThinkingStep] = []
        current_thinking = context

        for number, template in enumerate(STEP_QUESTIONS, 1):
            question = template.replace('{query}', query)
            step = self.thinking_step(number, question, current_thinking, task_type)
            steps.append(step)
            if number < len(STEP_QUESTIONS):
                current_thinking += f"\n\nStep {number} Analysis: {step.reasoning}\nConclusion: {step.conclusion}\n"

        final_answer = self.generate_final_answer(query, steps, task_type)

        return ThinkingSession(
            query=query,
            context=context,
            steps=steps,
            final_answer=final_answer,
            overall_confidence=self.calculate_overall_confidence(steps)
        )

    def thinking_step(self, number: int, question: str, context: str, task_type: str) -> ThinkingStep:
        prompt = self._render_prompt('thinking_step.txt', {
            'step': number,
            'question': question,
            'task_type': task_type,
            'context': context,
        })
        messages = [
            {"role": "system", "content": STEP_SYSTEM_MESSAGE},
            {"role": "user", "content": prompt}
        ]

        try:
            response = self.llm_client.complete(
                messages=messages,
                model=self.config.get('model', 'gpt-4o-mini'),
                temperature=self.config.get('temperature', 0.3),
                max_tokens=self.config.get('max_tokens', 1500)
            )
        except LLMError as e:
            logger.error(f"Error in thinking step {number}: {e}")
            return ThinkingStep(
                step=number,
                question=question,
                reasoning='Error occurred during reasoning',
                conclusion='Unable to reach conclusion due to error',
                confidence=0.0
            )

        return parse_thinking_step(number, question, response['content'])

    def generate_final_answer(self, query: str, steps: List[ThinkingStep], task_type: str) -> str:
        steps_context = '\n'.join(
            f"Step {step.step}: {step.question}\n"
            f"Reasoning: {step.reasoning}\n"
            f"Conclusion: {step.conclusion}\n"
            f"Confidence: {round(step.confidence * 100)}%\n"
            for step in steps
        )
        prompt = self._render_prompt('thinking_final.txt', {
            'task_type': task_type,
            'steps': steps_context,
            'query': query,
        })
        messages = [
            {"role": "system", "content": f"You are an expert in {task_type}. Provide clear, actionable answers based on thorough analysis."},
            {"role": "user", "content": prompt}
        ]

        try:
            response = self.llm_client.complete(
                messages=messages,
                model=self.config.get('model', 'gpt-4o-mini'),
                temperature=self.config.get('final_temperature', 0.4),
                max_tokens=self.config.get('max_tokens', 1500)
            )
        except LLMError as e:
            logger.error(f"Error generating final answer: {e}")
            return FINAL_ANSWER_APOLOGY

        return response['content'] or FINAL_ANSWER_APOLOGY

    def calculate_overall_confidence(self, steps: List[ThinkingStep]) -> float:
        if not steps:
            return 0.0
        return sum(step.confidence for step in steps) / len(steps)


def parse_thinking_step(number: int, question: str, text: str) -> ThinkingStep:
    """Pull REASONING / CONCLUSION / CONFIDENCE sections out of a step response."""
    reasoning = _REASONING_RE.search(text)
    conclusion = _CONCLUSION_RE.search(text)
    confidence = _CONFIDENCE_RE.search(text)

    return ThinkingStep(
        step=number,
        question=question,
        reasoning=(reasoning.group(1).strip() if reasoning else '') or 'Unable to extract reasoning',
        conclusion=(conclusion.group(1).strip() if conclusion else '') or 'Unable to extract conclusion',
        confidence=int(confidence.group(1)) / 100 if confidence else 0.5
    )
