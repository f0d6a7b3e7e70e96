"""
Tests for the OpenAI client
"""

import json

import httpx
import pytest

from siteagents.llm_client import OpenAIClient, LLMError, RateLimitError, extract_json_object


def completion_body(content):
    return {
        'model': 'gpt-4o-mini',
        'choices': [{'message': {'role': 'assistant', 'content': content}}],
        'usage': {'total_tokens': 42},
    }


def make_client(handler, retries=3):
    return OpenAIClient(
        api_key='test-key',
        retries=retries,
        backoff=0,
        transport=httpx.MockTransport(handler)
    )


class TestComplete:
    def test_returns_content_and_usage(self):
        seen = {}

        def handler(request):
            seen['path'] = request.url.path
            seen['auth'] = request.headers['Authorization']
            seen['body'] = json.loads(request.content)
            return httpx.Response(200, json=completion_body('Hello there'))

        client = make_client(handler)
        result = client.complete([{'role': 'user', 'content': 'Hi'}], model='gpt-4o', temperature=0.2)

        assert result['content'] == 'Hello there'
        assert result['usage'] == {'total_tokens': 42}
        assert seen['path'].endswith('/chat/completions')
        assert seen['auth'] == 'Bearer test-key'
        assert seen['body']['model'] == 'gpt-4o'
        assert seen['body']['temperature'] == 0.2

    def test_retries_after_rate_limit(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, json={'error': 'slow down'})
            return httpx.Response(200, json=completion_body('ok'))

        client = make_client(handler)
        assert client.complete([{'role': 'user', 'content': 'Hi'}])['content'] == 'ok'
        assert len(calls) == 2

    def test_rate_limit_exhausted(self):
        client = make_client(lambda request: httpx.Response(429), retries=2)
        with pytest.raises(RateLimitError):
            client.complete([{'role': 'user', 'content': 'Hi'}])

    def test_server_error_raises(self):
        client = make_client(lambda request: httpx.Response(500, text='boom'))
        with pytest.raises(LLMError, match='500'):
            client.complete([{'role': 'user', 'content': 'Hi'}])

    def test_malformed_response_raises(self):
        client = make_client(lambda request: httpx.Response(200, json={'choices': []}))
        with pytest.raises(LLMError):
            client.complete([{'role': 'user', 'content': 'Hi'}])


class TestCompleteJson:
    def test_parses_fenced_json(self):
        content = 'Here you go:\n```json\n{"clarity": 0.9}\n```'
        client = make_client(lambda request: httpx.Response(200, json=completion_body(content)))

        result = client.complete_json([{'role': 'user', 'content': 'Assess'}])
        assert result['parsed'] == {'clarity': 0.9}

    def test_unparseable_content_marks_error(self):
        client = make_client(lambda request: httpx.Response(200, json=completion_body('no json here')))

        result = client.complete_json([{'role': 'user', 'content': 'Assess'}])
        assert result['parsed']['error'] == 'JSON parsing failed'
        assert result['parsed']['raw_content'] == 'no json here'


class TestEmbed:
    def test_returns_vector(self):
        def handler(request):
            body = json.loads(request.content)
            assert body['input'] == 'hello'
            return httpx.Response(200, json={'data': [{'embedding': [0.1, 0.2, 0.3]}]})

        client = make_client(handler)
        assert client.embed('hello') == [0.1, 0.2, 0.3]

    def test_empty_text_rejected(self):
        client = make_client(lambda request: httpx.Response(200, json={}))
        with pytest.raises(LLMError):
            client.embed('   ')


def test_missing_api_key(monkeypatch):
    monkeypatch.delenv('OPENAI_API_KEY', raising=False)
    with pytest.raises(ValueError):
        OpenAIClient()


class TestExtractJsonObject:
    def test_plain_json(self):
        assert extract_json_object('{"a": 1}') == {'a': 1}

    def test_embedded_object(self):
        assert extract_json_object('Result: {"a": {"b": 2}} done') == {'a': {'b': 2}}

    def test_no_object(self):
        assert extract_json_object('[1, 2, 3]') is None
        assert extract_json_object('') is None
