"""
Marketing Expert Agent
"""

import logging
from typing import Dict, Any, List, Optional

from siteagents.agents.base_agent import BaseAgent, AgentContext, AgentResponse
from siteagents.knowledge.store import StoreError
from siteagents.llm_client import LLMError

logger = logging.getLogger(__name__)

MARKETING_KEYWORDS = {
    'strategy': ['strategy', 'plan', 'approach', 'framework', 'methodology'],
    'campaign': ['campaign', 'promotion', 'launch', 'advertising', 'ads'],
    'content': ['content', 'copy', 'messaging', 'blog', 'social'],
    'seo': ['seo', 'search', 'keywords', 'ranking', 'optimization'],
    'email': ['email', 'newsletter', 'automation', 'sequence', 'drip'],
    'social': ['social', 'facebook', 'instagram', 'twitter', 'linkedin'],
    'analytics': ['analytics', 'metrics', 'roi', 'performance', 'tracking'],
    'branding': ['brand', 'identity', 'voice', 'positioning', 'perception'],
}

CATEGORY_FOCUS = {
    'strategy': 'Focus on strategic planning, market analysis, competitive positioning, and long-term growth.',
    'campaign': 'Focus on campaign development, audience targeting, channel selection, and performance optimization.',
    'content': 'Focus on content strategy, messaging frameworks, storytelling, and engagement optimization.',
    'seo': 'Focus on SEO strategy, keyword optimization, technical SEO, and search visibility.',
    'email': 'Focus on email marketing strategy, automation, segmentation, and conversion optimization.',
    'social': 'Focus on social media strategy, community building, engagement, and platform optimization.',
    'analytics': 'Focus on marketing analytics, KPI development, ROI measurement, and data-driven insights.',
    'branding': 'Focus on brand strategy, positioning, messaging, and brand experience design.',
}

CATEGORY_RECOMMENDATIONS = {
    'strategy': [
        'Conduct competitive analysis',
        'Define clear target audience personas',
        'Establish measurable marketing objectives',
    ],
    'campaign': [
        'A/B test campaign elements',
        'Implement conversion tracking',
        'Optimize for mobile experience',
    ],
    'content': [
        'Create content calendar',
        'Develop content distribution strategy',
        'Measure content engagement metrics',
    ],
}
DEFAULT_RECOMMENDATIONS = [
    'Monitor key performance indicators',
    'Test and iterate based on data',
    'Align with overall business objectives',
]

MARKETING_SYSTEM_MESSAGE = "You are a helpful AI assistant that specializes in content marketing and research."

FAILED_INSIGHTS = {
    'analysis': 'Unable to generate marketing insights at this time.',
    'confidence': 0,
    'reasoning': ['Marketing analysis failed'],
}


class MarketingExpertAgent(BaseAgent):
    """Turns retrieved context into marketing analysis and recommendations."""

    AGENT_NAME = "marketing_expert"
    DISPLAY_NAME = "Marketing Expert"
    DESCRIPTION = "Specialized marketing strategy and campaign optimization"

    def process(self, context: AgentContext) -> AgentResponse:
        reasoning = ['Analyzing marketing context and strategy requirements']

        try:
            rag_result = context.previous_agent_results.get('rag_specialist')
            rag_data = (rag_result.data if rag_result else None) or {}
            sources = rag_data.get('sources') or []
            optimized_context = rag_data.get('optimized_context') or ''

            reasoning.append(f"Working with {len(sources)} knowledge sources")

            intent = self.analyze_marketing_intent(context.query)
            reasoning.append(f"Detected marketing intent: {intent['category']}")

            brand_voice = self.get_brand_voice(context.project_id)
            if brand_voice:
                reasoning.append('Applied brand voice consistency analysis')

            prompt = self.build_marketing_prompt(context.query, optimized_context, intent, brand_voice)
            reasoning.append('Built specialized marketing analysis prompt')

            insights = self.generate_marketing_insights(prompt, context.history)
            reasoning.append('Generated marketing insights and recommendations')

            confidence = self.calculate_confidence(insights, sources, intent)
            reasoning.append(f"Marketing expertise confidence: {round(confidence * 100)}%")

            return AgentResponse(
                success=True,
                confidence=confidence,
                data={
                    'insights': insights,
                    'intent': intent,
                    'brand_voice': brand_voice,
                    'recommendations': self.generate_recommendations(intent),
                    'sources': len(sources),
                },
                reasoning=reasoning,
                metadata={
                    'marketing_category': intent['category'],
                    'has_context_sources': len(sources) > 0,
                    'has_brand_voice': bool(brand_voice),
                }
            )
        except Exception as e:
            logger.error(f"Marketing analysis error: {e}")
            reasoning.append(f"Error in marketing analysis: {e}")
            return AgentResponse.failed(reasoning)

    def analyze_marketing_intent(self, query: str) -> Dict[str, Any]:
        """Pick the keyword category with the highest share of matched keywords."""
        best = {'category': 'general', 'subcategory': 'general', 'confidence': 0}
        query_lower = query.lower()

        for category, keywords in MARKETING_KEYWORDS.items():
            matches = sum(1 for keyword in keywords if keyword in query_lower)
            score = matches / len(keywords)
            if score > best['confidence']:
                best = {'category': category, 'subcategory': category, 'confidence': score}

        return best

    def get_brand_voice(self, project_id: str) -> Optional[Dict[str, Any]]:
        if not project_id or self.store is None:
            return None
        try:
            voice = self.store.get_brand_voice(project_id)
        except StoreError as e:
            logger.error(f"Error analyzing brand voice: {e}")
            return None
        if not voice:
            return None

        return {
            'tone': voice.get('tone'),
            'style': voice.get('style'),
            'audience': voice.get('audience'),
            'key_messages': voice.get('key_messages'),
            'terminology': voice.get('terminology'),
            'avoid_phrases': voice.get('avoid_phrases'),
        }

    def build_marketing_prompt(
        self,
        query: str,
        context: str,
        intent: Dict[str, Any],
        brand_voice: Optional[Dict[str, Any]] = None
    ) -> str:
        context_section = f"\n\nRelevant Context:\n{context}" if context else ''

        brand_voice_section = ''
        if brand_voice:
            parts = []
            if brand_voice.get('tone'):
                parts.append(f"Tone: {brand_voice['tone']}")
            if brand_voice.get('style'):
                parts.append(f"Style: {brand_voice['style']}")
            if brand_voice.get('audience'):
                parts.append(f"Primary Audience: {brand_voice['audience']}")
            if parts:
                brand_voice_section = "\n\nBrand Voice Guidelines:\n" + '\n'.join(parts)

        category = intent['category']
        return self._render_prompt('marketing_prompt.txt', {
            'category': category,
            'focus': CATEGORY_FOCUS.get(category, CATEGORY_FOCUS['strategy']),
            'context_section': context_section,
            'brand_voice_section': brand_voice_section,
            'query': query,
        }).strip()

    def generate_marketing_insights(
        self,
        prompt: str,
        history: Optional[List[Dict[str, str]]] = None
    ) -> Dict[str, Any]:
        """Earlier turns of the conversation go between the system message and the prompt."""
        messages = [{"role": "system", "content": MARKETING_SYSTEM_MESSAGE}]
        messages.extend(
            {"role": turn["role"], "content": turn["content"]}
            for turn in history or []
        )
        messages.append({"role": "user", "content": prompt})
        try:
            response = self.llm_client.complete(
                messages=messages,
                model=self.config.get('model', 'gpt-4o'),
                temperature=self.config.get('temperature', 0.7),
                max_tokens=self.config.get('max_tokens', 1500)
            )
        except LLMError as e:
            logger.error(f"Error generating marketing insights: {e}")
            return dict(FAILED_INSIGHTS, reasoning=list(FAILED_INSIGHTS['reasoning']))

        return {
            'analysis': response['content'],
            'confidence': 0.8,
            'reasoning': [],
        }

    def generate_recommendations(self, intent: Dict[str, Any]) -> List[str]:
        return list(CATEGORY_RECOMMENDATIONS.get(intent['category'], DEFAULT_RECOMMENDATIONS))

    def calculate_confidence(self, insights: Dict[str, Any], sources: List[Any], intent: Dict[str, Any]) -> float:
        confidence = 0.5

        if insights.get('confidence'):
            confidence += insights['confidence'] * 0.3

        if sources:
            confidence += min(len(sources) / 10, 0.2)

        if intent['confidence'] > 0.5:
            confidence += 0.1

        return min(confidence, 1.0)
