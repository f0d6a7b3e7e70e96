"""
Agents Package
"""

from siteagents.agents.base_agent import BaseAgent, AgentContext, AgentResponse
from siteagents.agents.rag_specialist import RAGSpecialistAgent
from siteagents.agents.marketing_expert import MarketingExpertAgent
from siteagents.agents.quality_control import QualityControlAgent
from siteagents.agents.thinking_agent import ThinkingAgent

__all__ = [
    'BaseAgent',
    'AgentContext',
    'AgentResponse',
    'RAGSpecialistAgent',
    'MarketingExpertAgent',
    'QualityControlAgent',
    'ThinkingAgent',
]
