"""
Tests for response synthesis and the multi-agent workflow
"""

from unittest.mock import Mock

import pytest

from siteagents.agents import AgentContext, AgentResponse, ThinkingAgent
from siteagents.agents.marketing_expert import MARKETING_SYSTEM_MESSAGE
from siteagents.graph import (
    calculate_overall_confidence, combine_reasoning, synthesize_response, MISSING_ANALYSIS
)
from siteagents.knowledge import RAGQueryService
from siteagents.orchestrator import OrchestratorAgent, MultiAgentService, PROCESSING_FAILED, UNEXPECTED_ERROR

from tests.conftest import fake_embedding


def ok(confidence, data=None, reasoning=None):
    return AgentResponse(success=True, confidence=confidence, data=data or {}, reasoning=reasoning or [])


class TestSynthesis:
    def test_weighted_confidence_skips_failures(self):
        results = {
            'rag_specialist': ok(0.5),
            'marketing_expert': ok(1.0),
            'quality_control': AgentResponse.failed(['broken']),
        }
        assert calculate_overall_confidence(results) == pytest.approx((0.15 + 0.4) / 0.7)
        assert calculate_overall_confidence({}) == 0.0

    def test_combine_reasoning(self):
        combined = combine_reasoning({'rag_specialist': ok(0.5, reasoning=['one']), 'marketing_expert': ok(0.5)})
        assert combined == ['--- RAG_SPECIALIST REASONING ---', 'one', '']

    def test_answer_sections(self):
        results = {
            'rag_specialist': ok(0.6, {'sources': [{'id': 1}, {'id': 2}]}),
            'marketing_expert': ok(0.8, {
                'insights': {'analysis': 'Base analysis'},
                'recommendations': ['Do A', 'Do B'],
                'brand_voice': {'tone': 'warm', 'style': 'direct'},
            }),
            'quality_control': ok(0.5, {
                'quality_score': 0.4, 'approved': False, 'improvements': ['Add ROI'],
            }),
        }
        synthesized = synthesize_response(results)
        answer = synthesized['final_answer']

        assert answer.startswith('Base analysis')
        assert 'based on 2 relevant sources' in answer
        assert '1. Do A\n2. Do B\n' in answer
        assert '• Add ROI' in answer
        assert "brand's warm tone and direct style" in answer
        assert synthesized['quality'] == {'score': 0.4, 'approved': False, 'improvements': ['Add ROI']}
        assert synthesized['sources'] == [{'id': 1}, {'id': 2}]

    def test_approved_answer_omits_improvements(self):
        results = {
            'marketing_expert': ok(0.8, {'insights': {'analysis': 'Base'}}),
            'quality_control': ok(0.9, {'quality_score': 0.9, 'approved': True, 'improvements': ['x']}),
        }
        assert 'Quality Improvements' not in synthesize_response(results)['final_answer']

    def test_missing_analysis(self):
        synthesized = synthesize_response({})
        assert synthesized['final_answer'] == MISSING_ANALYSIS
        assert synthesized['quality']['score'] == 0.5


class TestOrchestratorWorkflow:
    def test_runs_all_phases(self, mock_llm, local_store):
        query = 'Email newsletter automation ideas'
        local_store.insert_document_chunk(
            'p1', 'Our newsletter reaches twelve thousand subscribers every single week.',
            fake_embedding(query), {'source': 'https://a.test/'}
        )
        orchestrator = OrchestratorAgent(mock_llm, local_store)

        result = orchestrator.process(AgentContext(query=query, project_id='p1'))

        assert result.success
        assert result.metadata['agent_count'] == 3
        assert result.metadata['has_knowledge_context'] is True
        assert result.data['final_answer'].startswith('Mock completion')
        assert len(result.data['sources']) == 1

        reasoning = result.reasoning
        assert reasoning[0] == 'Initiating multi-agent collaboration workflow'
        phases = [line for line in reasoning if line.startswith('Phase')]
        assert [phase.split(':')[0] for phase in phases] == ['Phase 1', 'Phase 2', 'Phase 3', 'Phase 4']
        assert reasoning[-1].startswith('Overall system confidence:')

    def test_graph_failure_reported(self, mock_llm, local_store):
        orchestrator = OrchestratorAgent(mock_llm, local_store)
        orchestrator.graph = Mock()
        orchestrator.graph.invoke.side_effect = RuntimeError('graph exploded')

        result = orchestrator.process(AgentContext(query='q', project_id='p1'))
        assert not result.success
        assert result.reasoning[-1] == 'Error in orchestration: graph exploded'

    def test_specialists(self, mock_llm, local_store):
        names = [agent.name for agent in OrchestratorAgent(mock_llm, local_store).specialists]
        assert names == ['RAG Specialist', 'Marketing Expert', 'Quality Control']


class TestMultiAgentService:
    @pytest.fixture
    def service(self, mock_llm, local_store):
        return MultiAgentService(
            OrchestratorAgent(mock_llm, local_store),
            thinking_agent=ThinkingAgent(mock_llm, local_store),
            query_log=RAGQueryService(local_store)
        )

    def test_process_query_logs_result(self, service, local_store):
        result = service.process_query('How do we grow?', 'p1')

        assert result['success'] is True
        assert result['response'].startswith('Mock completion')
        assert set(result['quality']) == {'score', 'approved', 'improvements'}
        assert 'elapsed' in result['metadata']
        assert local_store.get_rag_query_stats('p1')['frequent_queries'][0]['query_text'] == 'How do we grow?'

    def test_history_reaches_marketing_completion(self, service, mock_llm):
        history = [{'role': 'user', 'content': 'Earlier question'}, {'role': 'assistant', 'content': 'Earlier answer'}]
        service.process_query('How do we grow?', 'p1', history=history)

        marketing_calls = [
            call.kwargs['messages'] for call in mock_llm.complete.call_args_list
            if call.kwargs['messages'][0]['content'] == MARKETING_SYSTEM_MESSAGE
        ]
        assert len(marketing_calls) == 1
        assert marketing_calls[0][1:3] == history

    def test_failed_orchestration(self):
        orchestrator = Mock()
        orchestrator.process.return_value = AgentResponse.failed(['Error in orchestration: x'])
        result = MultiAgentService(orchestrator).process_query('q', 'p1')

        assert result['success'] is False
        assert result['response'] == PROCESSING_FAILED
        assert result['quality'] == {'score': 0, 'approved': False, 'improvements': []}

    def test_unexpected_error(self):
        orchestrator = Mock()
        orchestrator.process.side_effect = RuntimeError('boom')
        result = MultiAgentService(orchestrator).process_query('q', 'p1')

        assert result['response'] == UNEXPECTED_ERROR
        assert result['metadata'] == {'error': True}

    def test_thinking_query(self, service, mock_llm):
        mock_llm.complete.return_value = {'content': 'REASONING: r\nCONCLUSION: c\nCONFIDENCE: 90'}
        result = service.process_thinking_query('Why?', 'p1', categories=['seo'])

        assert result['success'] is True
        assert result['confidence'] == pytest.approx(0.9)
        assert len(result['thinking_session']['steps']) == 3

    def test_thinking_not_configured(self):
        result = MultiAgentService(Mock()).process_thinking_query('Why?', 'p1')
        assert result['success'] is False

    def test_agent_info(self, service):
        info = service.get_agent_info()
        assert [agent['name'] for agent in info['specialists']] == [
            'RAG Specialist', 'Marketing Expert', 'Quality Control', 'Thinking Agent'
        ]
        assert service.is_ready()
