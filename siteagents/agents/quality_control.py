"""
Quality Control Agent

Heuristic review of the marketing analysis: content quality, marketing
ethics, best practices and basic regulatory compliance. No LLM calls.
"""

import re
import logging
from typing import Dict, Any, List

from siteagents.agents.base_agent import BaseAgent, AgentContext, AgentResponse
from siteagents.config import get_quality_config

logger = logging.getLogger(__name__)

ACTION_WORDS = ['recommend', 'suggest', 'implement', 'consider', 'optimize', 'improve']
SPECIFIC_TERMS = ['kpi', 'roi', 'conversion', 'targeting', 'segmentation', 'analytics']

MISLEADING_TERMS = ['guaranteed results', 'instant success', 'get rich quick', 'no risk']
SPAM_INDICATORS = ['click here now', 'limited time only', 'act now', 'urgent']
AGGRESSIVE_TACTICS = ['buy now or lose forever', 'last chance', 'dont miss out']

DATA_TERMS = ['analytics', 'metrics', 'data', 'measurement', 'tracking']
AUDIENCE_TERMS = ['audience', 'target', 'persona', 'customer', 'user']
TESTING_TERMS = ['test', 'experiment', 'a/b', 'optimize', 'iterate']
CHANNEL_TERMS = ['email', 'social', 'content', 'seo', 'paid', 'organic']

_HEADING_RE = re.compile(r'#{1,3}\s')


class QualityControlAgent(BaseAgent):
    """Validates marketing output for quality, ethics and compliance."""

    AGENT_NAME = "quality_control"
    DISPLAY_NAME = "Quality Control"
    DESCRIPTION = "Marketing ethics and best practices validation"

    def __init__(self, llm_client=None, store=None):
        super().__init__(llm_client, store)
        self.approval_threshold = get_quality_config().get('approval_threshold', 0.7)

    def process(self, context: AgentContext) -> AgentResponse:
        reasoning = ['Initiating quality control and marketing ethics validation']

        try:
            marketing_result = context.previous_agent_results.get('marketing_expert')
            marketing_data = (marketing_result.data if marketing_result else None) or {}
            insights = (marketing_data.get('insights') or {}).get('analysis') or ''
            recommendations = marketing_data.get('recommendations') or []

            reasoning.append('Analyzing marketing recommendations for quality and ethics')

            quality_score = self.assess_content_quality(insights)
            reasoning.append(f"Content quality score: {round(quality_score * 100)}%")

            ethics = self.validate_ethics(insights, recommendations)
            reasoning.append(f"Ethics validation: {'Passed' if ethics['passed'] else 'Issues detected'}")

            best_practices = self.check_best_practices(insights)
            reasoning.append(f"Best practices compliance: {best_practices['score']}%")

            compliance = self.check_compliance(insights)
            reasoning.append(f"Regulatory compliance: {compliance['status']}")

            improvements = self.generate_improvements(insights, ethics, best_practices)

            overall = (quality_score + ethics['score'] + best_practices['score'] / 100) / 3
            reasoning.append(f"Overall quality assessment: {round(overall * 100)}%")

            return AgentResponse(
                success=True,
                confidence=overall,
                data={
                    'quality_score': quality_score,
                    'ethics_validation': ethics,
                    'best_practices_check': best_practices,
                    'compliance_check': compliance,
                    'improvements': improvements,
                    'approved': overall >= self.approval_threshold,
                    'original_insights': insights,
                },
                reasoning=reasoning,
                metadata={
                    'quality_threshold': self.approval_threshold,
                    'ethics_passed': ethics['passed'],
                    'needs_improvement': overall < self.approval_threshold,
                }
            )
        except Exception as e:
            logger.error(f"Quality control error: {e}")
            reasoning.append(f"Error during quality control: {e}")
            return AgentResponse.failed(reasoning)

    def assess_content_quality(self, content: str) -> float:
        if not content or len(content) < 50:
            return 0.1

        score = 0.5
        if len(content) > 500:
            score += 0.1
        if len(content) > 1000:
            score += 0.1

        if _HEADING_RE.search(content) or '\n\n' in content:
            score += 0.1

        lower = content.lower()
        score += min(sum(1 for word in ACTION_WORDS if word in lower) * 0.05, 0.2)
        score += min(sum(1 for term in SPECIFIC_TERMS if term in lower) * 0.03, 0.15)

        return min(score, 1.0)

    def validate_ethics(self, content: str, recommendations: List[str]) -> Dict[str, Any]:
        issues = []
        lower = content.lower()
        all_recommendations = ' '.join(recommendations).lower()

        for term in MISLEADING_TERMS:
            if term in lower or term in all_recommendations:
                issues.append(f'Potentially misleading claim: "{term}"')

        for indicator in SPAM_INDICATORS:
            if indicator in lower:
                issues.append(f'Spam-like language detected: "{indicator}"')

        for tactic in AGGRESSIVE_TACTICS:
            if tactic in lower:
                issues.append(f'Aggressive sales tactic: "{tactic}"')

        if 'collect personal data' in lower and 'privacy policy' not in lower:
            issues.append('Data collection mentioned without privacy policy reference')

        return {
            'passed': not issues,
            'score': max(0.0, 1 - len(issues) * 0.2),
            'issues': issues,
        }

    def check_best_practices(self, content: str) -> Dict[str, Any]:
        recommendations = []
        score = 70
        lower = content.lower()

        checks = [
            (any(term in lower for term in DATA_TERMS), 'Include data-driven measurement strategies'),
            (any(term in lower for term in AUDIENCE_TERMS), 'Consider target audience in recommendations'),
            (any(term in lower for term in TESTING_TERMS), 'Include testing and optimization strategies'),
            (sum(1 for term in CHANNEL_TERMS if term in lower) >= 2, 'Consider multi-channel marketing approach'),
        ]
        for passed, recommendation in checks:
            if passed:
                score += 10
            else:
                recommendations.append(recommendation)

        return {'score': min(score, 100), 'recommendations': recommendations}

    def check_compliance(self, content: str) -> Dict[str, Any]:
        warnings = []
        lower = content.lower()

        # GDPR
        if ('personal data' in lower or 'email list' in lower) and \
                'consent' not in lower and 'permission' not in lower:
            warnings.append('Consider GDPR compliance for data collection')

        # CAN-SPAM
        if 'email marketing' in lower and 'unsubscribe' not in lower and 'opt-out' not in lower:
            warnings.append('Include unsubscribe options for email marketing')

        if ('website' in lower or 'landing page' in lower) and \
                'accessible' not in lower and 'accessibility' not in lower:
            warnings.append('Consider accessibility standards for web content')

        return {
            'status': 'Compliant' if not warnings else 'Needs Review',
            'warnings': warnings,
        }

    def generate_improvements(
        self,
        content: str,
        ethics: Dict[str, Any],
        best_practices: Dict[str, Any]
    ) -> List[str]:
        improvements = []

        if not ethics['passed']:
            improvements.extend(f"Ethics: {issue}" for issue in ethics['issues'])

        if best_practices['score'] < 80:
            improvements.extend(f"Best Practice: {rec}" for rec in best_practices['recommendations'])

        if len(content) < 300:
            improvements.append('Provide more detailed and comprehensive analysis')

        # Case-sensitive
        if 'ROI' not in content and 'return on investment' not in content:
            improvements.append('Include ROI considerations in recommendations')

        return improvements
