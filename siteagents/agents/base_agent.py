"""
Base Agent Class
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Dict, Any, List, Optional

from siteagents.llm_client import OpenAIClient
from siteagents.config import get_agent_config
from siteagents.knowledge.store import KnowledgeStore
from siteagents.prompts import load_prompt_template, render_prompt

logger = logging.getLogger(__name__)


@dataclass
class AgentContext:
    query: str
    project_id: str
    task_type: str = 'marketing'
    allowed_categories: Optional[List[str]] = None
    user_context: Optional[Dict[str, Any]] = None
    previous_agent_results: Dict[str, 'AgentResponse'] = field(default_factory=dict)
    history: List[Dict[str, str]] = field(default_factory=list)  # {'role', 'content'}

    def with_results(self, results: Dict[str, 'AgentResponse']) -> 'AgentContext':
        return replace(self, previous_agent_results=dict(results))


@dataclass
class AgentResponse:
    success: bool
    confidence: float
    data: Any
    reasoning: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failed(cls, reasoning: List[str]) -> 'AgentResponse':
        return cls(success=False, confidence=0.0, data=None, reasoning=reasoning)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'confidence': self.confidence,
            'data': self.data,
            'reasoning': list(self.reasoning),
            'metadata': dict(self.metadata),
        }


class BaseAgent(ABC):
    """Abstract base class for all agents."""

    AGENT_NAME: str = "base"
    DISPLAY_NAME: str = "Base Agent"
    DESCRIPTION: str = ""

    def __init__(self, llm_client: Optional[OpenAIClient] = None, store: Optional[KnowledgeStore] = None):
        self.llm_client = llm_client
        self.store = store
        self.config = get_agent_config(self.AGENT_NAME)
        logger.debug(f"Initialized {self.AGENT_NAME} agent")

    @property
    def name(self) -> str:
        return self.DISPLAY_NAME

    @property
    def description(self) -> str:
        return self.DESCRIPTION

    def _render_prompt(self, filename: str, params: Dict[str, Any]) -> str:
        return render_prompt(load_prompt_template(filename), params)

    @abstractmethod
    def process(self, context: AgentContext) -> AgentResponse:
        """Run the agent. Failures are reported in the response, never raised."""
