"""
Embedding Generation
"""

import time
import logging
from typing import Dict, Any, List, Optional, Callable

from siteagents.config import get_embedding_config
from siteagents.llm_client import OpenAIClient, LLMError
from siteagents.knowledge.chunking import (
    TextChunk, generate_chunks, split_text_into_chunks, extract_text_from_content, clean_text
)
from siteagents.knowledge.store import KnowledgeStore, StoreError
from siteagents.scraper.types import ScrapedContent

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def _looks_like_error_text(text: str, metadata: Dict[str, Any]) -> bool:
    return 'Error' in text and (metadata.get('type') == 'title' or len(text) < 20)


class EmbeddingService:
    """Chunks scraped pages, embeds each chunk and stores it."""

    def __init__(self, llm_client: OpenAIClient, store: KnowledgeStore):
        self.llm_client = llm_client
        self.store = store
        self.config = get_embedding_config()
        self.model = self.config.get('model', 'text-embedding-3-small')
        self.batch_size = self.config.get('batch_size', 5)
        self.batch_delay = self.config.get('batch_delay', 0.1)

    def embed_chunk(self, text: str, project_id: str, metadata: Optional[Dict[str, Any]] = None) -> bool:
        """Embed and store one chunk. Error-page text is skipped, not stored."""
        metadata = metadata or {}
        if not text or not project_id:
            return False

        if _looks_like_error_text(text, metadata):
            logger.info(f"Skipping embedding generation for likely error content: {text!r}")
            return True

        try:
            embedding = self.llm_client.embed(text, model=self.model)
            self.store.insert_document_chunk(project_id, text, embedding, metadata)
            return True
        except (LLMError, StoreError) as e:
            logger.error(f"Chunk embedding error: {e}")
            return False

    def process_chunks(self, chunks: List[TextChunk], project_id: str) -> bool:
        """Embed chunks in batches. True only when every chunk succeeded."""
        logger.info(f"Processing {len(chunks)} chunks for project {project_id}")
        success = True

        for start in range(0, len(chunks), self.batch_size):
            batch = chunks[start:start + self.batch_size]
            results = [self.embed_chunk(chunk.text, project_id, chunk.metadata) for chunk in batch]
            if not all(results):
                logger.error("Some chunks failed to process")
                success = False
            if start + self.batch_size < len(chunks):
                time.sleep(self.batch_delay)

        return success

    def process_content(self, content: ScrapedContent, project_id: str) -> bool:
        if content.is_error:
            logger.info(f"Skipping embedding generation for error content at {content.url}")
            return False

        chunks = generate_chunks(content)
        logger.info(f"Generated {len(chunks)} chunks from content at {content.url}")
        return self.process_chunks(chunks, project_id)

    def process_project(self, project_id: str, pages: List[ScrapedContent]) -> bool:
        success = True
        for page in pages:
            if not self.process_content(page, project_id):
                success = False
        return success

    def process_batched_embeddings(
        self,
        chunks: List[str],
        project_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        batch_size: Optional[int] = None,
        delay: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> Dict[str, int]:
        """Embed plain-text chunks in batches, reporting progress after each batch."""
        batch_size = batch_size or self.batch_size
        delay = self.batch_delay if delay is None else delay
        successful = 0
        failed = 0

        for start in range(0, len(chunks), batch_size):
            batch = chunks[start:start + batch_size]
            for chunk in batch:
                if self.embed_chunk(chunk, project_id, dict(metadata or {})):
                    successful += 1
                else:
                    failed += 1

            if on_progress:
                on_progress(start + len(batch), len(chunks))

            if start + batch_size < len(chunks):
                time.sleep(delay)

        return {'successful': successful, 'failed': failed}

    def check_embedding_health(self, project_id: str) -> Dict[str, Any]:
        """Compare stored page count with stored chunk count."""
        try:
            content_count = self.store.count_scraped_content(project_id)
            embedding_count = self.store.count_document_chunks(project_id)
        except StoreError as e:
            logger.error(f"Error checking embedding health: {e}")
            content_count = 0
            embedding_count = 0

        has_content = content_count > 0
        has_embeddings = embedding_count > 0

        health_score = 0
        if has_content and has_embeddings:
            health_score = min(100, round(embedding_count / max(content_count, 1) * 100))

        return {
            'has_content': has_content,
            'has_embeddings': has_embeddings,
            'content_count': content_count,
            'embedding_count': embedding_count,
            'health_score': health_score,
        }

    def process_missing_embeddings(
        self,
        project_id: str,
        on_progress: Optional[ProgressCallback] = None
    ) -> Dict[str, Any]:
        """Embed stored pages that have no chunks yet."""
        try:
            records = self.store.get_scraped_content(project_id)
        except StoreError as e:
            logger.error(f"Error processing missing embeddings: {e}")
            return {'successful': 0, 'failed': 1, 'message': 'Failed to process embeddings'}

        if not records:
            return {'successful': 0, 'failed': 0, 'message': 'No content found to process'}

        successful = 0
        failed = 0

        for index, record in enumerate(records):
            try:
                if self.store.count_document_chunks(project_id, source=record['url']) > 0:
                    successful += 1
                    continue
            except StoreError as e:
                logger.error(f"Error processing content {record.get('id')}: {e}")
                failed += 1
                continue

            text = clean_text(extract_text_from_content(record.get('content') or ''))
            counts = self.process_batched_embeddings(
                split_text_into_chunks(text),
                project_id,
                metadata={
                    'type': 'scraped_content',
                    'title': record.get('title'),
                    'source': record['url'],
                    'content_id': record.get('id'),
                }
            )
            successful += counts['successful']
            failed += counts['failed']

            if on_progress:
                on_progress(index + 1, len(records))

        return {
            'successful': successful,
            'failed': failed,
            'message': f"Processed {successful} chunks successfully, {failed} failed",
        }
