"""
Global Knowledge Ingestion
"""

import logging
from typing import Dict, Any, Optional, Sequence

from siteagents.config import get_agent_config, get_embedding_config
from siteagents.llm_client import OpenAIClient, LLMError
from siteagents.knowledge.store import KnowledgeStore, StoreError
from siteagents.prompts import load_prompt_template, render_prompt

logger = logging.getLogger(__name__)

QUALITY_WEIGHTS = {
    'clarity': 0.25,
    'accuracy': 0.25,
    'relevance': 0.2,
    'completeness': 0.15,
    'marketing_value': 0.15,
}
DEFAULT_CRITERION_SCORE = 0.7
MAX_ASSESSED_CHARS = 2000


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class GlobalKnowledgeService:
    """Adds quality-scored entries to the shared marketing knowledge base."""

    AGENT_NAME = "knowledge_assessor"

    def __init__(self, llm_client: OpenAIClient, store: KnowledgeStore):
        self.llm_client = llm_client
        self.store = store
        self.config = get_agent_config(self.AGENT_NAME)

    def assess_quality(
        self,
        content: str,
        content_type: Optional[str] = None,
        marketing_domain: Optional[str] = None
    ) -> Dict[str, Any]:
        """Score content on five criteria and return them with the weighted overall_score."""
        prompt = render_prompt(load_prompt_template('knowledge_assessment.txt'), {
            'marketing_domain': marketing_domain or 'marketing',
            'content_type': content_type or 'general knowledge',
            'content': content[:MAX_ASSESSED_CHARS],
        })
        messages = [
            {"role": "system", "content": "You are a precise content quality assessor. Always respond with valid JSON only."},
            {"role": "user", "content": prompt}
        ]

        try:
            response = self.llm_client.complete_json(
                messages=messages,
                model=self.config.get('model', 'gpt-4o-mini'),
                temperature=self.config.get('temperature', 0.1),
                max_tokens=self.config.get('max_tokens', 500)
            )
            parsed = response.get('parsed', {})
            reasoning = parsed.get('reasoning') or "AI quality assessment completed"
            if 'error' in parsed:
                parsed = {}
                reasoning = "Failed to parse AI assessment, using default score"
        except LLMError as e:
            logger.error(f"Error assessing content quality: {e}")
            parsed = {}
            reasoning = f"Assessment failed: {e}. Using fallback score."

        assessment: Dict[str, Any] = {}
        for criterion in QUALITY_WEIGHTS:
            try:
                value = float(parsed.get(criterion) or DEFAULT_CRITERION_SCORE)
            except (TypeError, ValueError):
                value = DEFAULT_CRITERION_SCORE
            assessment[criterion] = _clamp(value)

        assessment['overall_score'] = _clamp(sum(
            assessment[criterion] * weight for criterion, weight in QUALITY_WEIGHTS.items()
        ))
        assessment['reasoning'] = reasoning
        return assessment

    def add_knowledge(
        self,
        content: str,
        title: Optional[str],
        source: str,
        content_type: str,
        marketing_domain: str,
        complexity_level: str = "beginner",
        tags: Sequence[str] = (),
        metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        """Embed, assess and store one knowledge entry. Returns its id, or None on failure."""
        if not content or not content.strip():
            logger.warning("Refusing to add empty knowledge entry")
            return None

        try:
            embedding = self.llm_client.embed(
                content, model=get_embedding_config().get('model', 'text-embedding-3-small')
            )
        except LLMError as e:
            logger.error(f"Failed to embed knowledge entry: {e}")
            return None

        assessment = self.assess_quality(content, content_type, marketing_domain)
        entry_metadata = dict(metadata or {})
        entry_metadata['quality_assessment'] = assessment

        try:
            knowledge_id = self.store.insert_global_knowledge(
                content=content,
                embedding=embedding,
                title=title,
                source=source,
                content_type=content_type,
                marketing_domain=marketing_domain,
                complexity_level=complexity_level,
                quality_score=assessment['overall_score'],
                tags=list(tags),
                metadata=entry_metadata
            )
        except StoreError as e:
            logger.error(f"Failed to store knowledge entry: {e}")
            return None

        logger.info(f"Added global knowledge {knowledge_id} (quality {assessment['overall_score']:.2f})")
        return knowledge_id
