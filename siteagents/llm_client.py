"""
OpenAI LLM Client
"""

import os
import re
import json
import time
import logging
import threading
from typing import Dict, Any, Optional, List

import httpx

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base exception for LLM errors."""
    pass


class RateLimitError(LLMError):
    """Rate limit exceeded."""
    pass


class OpenAIClient:
    """Client for the OpenAI chat completion and embedding endpoints."""

    BASE_URL = "https://api.openai.com/v1"
    DEFAULT_CHAT_MODEL = "gpt-4o-mini"
    DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        timeout: float = 60.0,
        retries: int = 3,
        backoff: float = 1.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.api_key = api_key or os.getenv('OPENAI_API_KEY')
        self.base_url = base_url or os.getenv('OPENAI_BASE_URL') or self.BASE_URL
        self.timeout = timeout
        self.retries = max(1, retries)
        self.backoff = backoff

        # Global lock for serializing requests
        self._lock = threading.Lock()

        if not self.api_key:
            raise ValueError("OpenAI API key is required")

        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                'Authorization': f'Bearer {self.api_key}',
                'Content-Type': 'application/json',
            }
        )
        logger.info(f"OpenAI client initialized ({self.base_url})")

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST with retry on 429 and transport errors."""
        with self._lock:
            for attempt in range(self.retries):
                try:
                    response = self.client.post(path, json=payload)
                except httpx.HTTPError as e:
                    if attempt < self.retries - 1:
                        sleep_time = self.backoff * (2 ** attempt)
                        logger.warning(f"Request to {path} failed ({e}). Retrying in {sleep_time}s...")
                        time.sleep(sleep_time)
                        continue
                    logger.error(f"LLM request error: {e}")
                    raise LLMError(f"Request failed: {e}") from e

                if response.status_code == 429:
                    if attempt < self.retries - 1:
                        sleep_time = self.backoff * (2 ** attempt)
                        logger.warning(f"Rate limited (429). Retrying in {sleep_time}s...")
                        time.sleep(sleep_time)
                        continue
                    logger.error("Rate limit exceeded after retries")
                    raise RateLimitError("Rate limit exceeded")

                if response.is_error:
                    if response.status_code == 401:
                        logger.error("401 Unauthorized: Invalid API Key")
                    logger.error(f"OpenAI Error Status: {response.status_code}")
                    logger.error(f"OpenAI Error Body: {response.text}")
                    raise LLMError(f"OpenAI API error {response.status_code}: {response.text[:500]}")

                try:
                    return response.json()
                except ValueError as e:
                    raise LLMError(f"Invalid JSON from OpenAI: {e}") from e

        raise LLMError("Request failed")

    def complete(
        self,
        messages: List[Dict[str, str]],
        model: str = DEFAULT_CHAT_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 1500,
        **kwargs
    ) -> Dict[str, Any]:
        """Generate a completion."""
        start_time = time.time()
        payload = {
            'model': model,
            'messages': messages,
            'temperature': temperature,
            'max_tokens': max_tokens,
            **kwargs
        }

        logger.debug(f"Sending chat completion to {model}")
        data = self._post('/chat/completions', payload)

        try:
            content = data['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Malformed completion response: {e}") from e
        if content is None:
            raise LLMError("Completion returned no content")

        logger.info(f"Completion successful. Tokens: {data.get('usage', {}).get('total_tokens', 'unknown')}")

        return {
            'content': content,
            'model': data.get('model', model),
            'usage': data.get('usage', {}),
            'elapsed': time.time() - start_time
        }

    def complete_json(
        self,
        messages: List[Dict[str, str]],
        model: str = DEFAULT_CHAT_MODEL,
        **kwargs
    ) -> Dict[str, Any]:
        """Generate a completion and parse a JSON object out of it."""
        response = self.complete(messages=messages, model=model, **kwargs)
        content = response['content']

        parsed = extract_json_object(content)
        if parsed is None:
            logger.error(f"Failed to parse JSON from {model}")
            logger.debug(f"Raw content: {content}")
            parsed = {
                'error': 'JSON parsing failed',
                'raw_content': content
            }
        else:
            logger.debug(f"Parsed JSON from {model}. Keys: {list(parsed.keys())}")

        response['parsed'] = parsed
        return response

    def embed(self, text: str, model: str = DEFAULT_EMBEDDING_MODEL) -> List[float]:
        """Generate an embedding vector for text."""
        if not text or not text.strip():
            raise LLMError("Cannot embed empty text")

        logger.debug(f"Generating embedding for text of length: {len(text)}")
        data = self._post('/embeddings', {'input': text, 'model': model})

        try:
            embedding = data['data'][0]['embedding']
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Malformed embedding response: {e}") from e

        logger.debug(f"Generated embedding with {len(embedding)} dimensions")
        return embedding

    def close(self):
        self.client.close()


def extract_json_object(content: str) -> Optional[Dict[str, Any]]:
    """Best-effort extraction of a JSON object from free-form LLM text."""
    if not content:
        return None

    # 0. Pure JSON response
    try:
        parsed = json.loads(content)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    # 1. Markdown block, tolerant of casing and a missing language tag
    json_block = re.search(r'```(?:json|JSON)?\s*(\{.*?\})\s*```', content, re.DOTALL)
    if json_block:
        try:
            parsed = json.loads(json_block.group(1))
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            logger.warning("Found markdown block but failed to parse JSON content.")

    # 2. First balanced {...} that parses
    starts = [i for i, char in enumerate(content) if char == '{']
    for start in starts:
        balance = 0
        for i in range(start, len(content)):
            if content[i] == '{':
                balance += 1
            elif content[i] == '}':
                balance -= 1
            if balance == 0:
                try:
                    parsed = json.loads(content[start:i + 1])
                except json.JSONDecodeError:
                    break
                if isinstance(parsed, dict):
                    return parsed
                break

    return None
