"""
Knowledge Store

Persistence for document chunks, scraped pages, global knowledge, brand
voices, RAG query logs and chat conversations. Two backends share one
interface: Supabase for deployments and SQLite for local development.
"""

import json
import math
import uuid
import sqlite3
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence

logger = logging.getLogger(__name__)

SOURCE_PROJECT = 'project'
SOURCE_GLOBAL = 'global'

# Quality assigned to scraped chunks, which are never scored individually
DEFAULT_CHUNK_QUALITY = 0.75

SIMILARITY_WEIGHT = 0.7
QUALITY_WEIGHT = 0.3


class StoreError(Exception):
    """Raised when a knowledge store backend fails."""
    pass


def weighted_score(similarity: float, quality_score: Optional[float]) -> float:
    quality = quality_score if quality_score is not None else DEFAULT_CHUNK_QUALITY
    return similarity * SIMILARITY_WEIGHT + quality * QUALITY_WEIGHT


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class KnowledgeStore(ABC):
    """Interface shared by the knowledge store backends."""

    @abstractmethod
    def match_documents_quality_weighted(
        self,
        query_embedding: List[float],
        match_threshold: float,
        match_count: int,
        project_id: Optional[str] = None,
        include_global: bool = False,
        min_quality_score: Optional[float] = None,
        marketing_domain: Optional[str] = None,
        categories: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Similarity search over project chunks and, optionally, global knowledge.

        min_quality_score is a percentage. Rows come back as dicts with id,
        content, metadata, similarity, source_type, source_info,
        quality_score and weighted_score, best weighted_score first.
        """

    @abstractmethod
    def insert_document_chunk(
        self,
        project_id: str,
        content: str,
        embedding: List[float],
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        pass

    @abstractmethod
    def count_document_chunks(self, project_id: str, source: Optional[str] = None) -> int:
        pass

    @abstractmethod
    def delete_document_chunks(self, project_id: str, source: str) -> None:
        """Remove every chunk of the project that came from source."""

    @abstractmethod
    def store_scraped_content(
        self,
        project_id: str,
        url: str,
        title: str,
        content: Dict[str, Any]
    ) -> str:
        """Insert or update the page stored for (project_id, url). Returns the row id."""

    @abstractmethod
    def get_scraped_content(self, project_id: str, url: Optional[str] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def count_scraped_content(self, project_id: str) -> int:
        pass

    @abstractmethod
    def insert_global_knowledge(
        self,
        content: str,
        embedding: List[float],
        title: Optional[str],
        source: str,
        content_type: str,
        marketing_domain: str,
        complexity_level: str = 'beginner',
        quality_score: Optional[float] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        pass

    @abstractmethod
    def get_brand_voice(self, project_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def save_brand_voice(self, project_id: str, voice: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def log_rag_query(
        self,
        project_id: str,
        query_text: str,
        source_ids: List[str],
        confidence: float
    ) -> None:
        pass

    @abstractmethod
    def get_rag_query_stats(self, project_id: str) -> Optional[Dict[str, Any]]:
        """Return {avg_confidence, frequent_queries} or None when nothing is logged."""

    @abstractmethod
    def create_conversation(self, project_id: str, title: str) -> str:
        pass

    @abstractmethod
    def get_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_conversations(self, project_id: str) -> List[Dict[str, Any]]:
        """Conversations of the project, newest first."""

    @abstractmethod
    def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation and its messages."""

    @abstractmethod
    def add_chat_message(self, conversation_id: str, role: str, content: str) -> str:
        pass

    @abstractmethod
    def get_chat_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        """Messages of the conversation, oldest first."""


BRAND_VOICE_FIELDS = ['tone', 'style', 'audience', 'key_messages', 'terminology', 'avoid_phrases', 'language']
_JSON_BRAND_FIELDS = {'key_messages', 'terminology', 'avoid_phrases'}


# ----------------------------------------------------------------------
# Supabase backend
# ----------------------------------------------------------------------

class SupabaseKnowledgeStore(KnowledgeStore):
    """Supabase tables plus the match_documents_quality_weighted RPC."""

    def __init__(self, url: str, key: str, client=None):
        if client is None:
            from supabase import create_client
            client = create_client(url, key)
        self.client = client
        logger.info("Supabase knowledge store initialized")

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except Exception as e:
            logger.error(f"Supabase {action} failed: {e}")
            raise StoreError(f"{action} failed: {e}") from e

    def match_documents_quality_weighted(
        self,
        query_embedding,
        match_threshold,
        match_count,
        project_id=None,
        include_global=False,
        min_quality_score=None,
        marketing_domain=None,
        categories=None
    ):
        params = {
            'query_embedding': query_embedding,
            'match_threshold': match_threshold,
            'match_count': match_count,
            'include_global': include_global,
        }
        if project_id:
            params['p_project_id'] = project_id
        if min_quality_score is not None:
            params['p_min_quality_score'] = min_quality_score
        if marketing_domain:
            params['p_marketing_domain'] = marketing_domain
        if categories:
            params['p_categories'] = list(categories)

        response = self._execute(
            self.client.rpc('match_documents_quality_weighted', params),
            'match_documents_quality_weighted'
        )
        return response.data or []

    def insert_document_chunk(self, project_id, content, embedding, metadata=None):
        chunk_id = str(uuid.uuid4())
        self._execute(
            self.client.table('document_chunks').insert({
                'id': chunk_id,
                'project_id': project_id,
                'content': content,
                'embedding': embedding,
                'metadata': metadata or {},
            }),
            'insert document chunk'
        )
        return chunk_id

    def count_document_chunks(self, project_id, source=None):
        query = self.client.table('document_chunks').select('id', count='exact').eq('project_id', project_id)
        if source:
            query = query.eq('metadata->>source', source)
        response = self._execute(query, 'count document chunks')
        return response.count or 0

    def delete_document_chunks(self, project_id, source):
        self._execute(
            self.client.table('document_chunks').delete()
            .eq('project_id', project_id).eq('metadata->>source', source),
            'delete document chunks'
        )

    def store_scraped_content(self, project_id, url, title, content):
        existing = self._execute(
            self.client.table('scraped_content').select('id').eq('project_id', project_id).eq('url', url).limit(1),
            'check existing content'
        )
        if existing.data:
            content_id = existing.data[0]['id']
            self._execute(
                self.client.table('scraped_content').update({'title': title, 'content': content}).eq('id', content_id),
                'update scraped content'
            )
            return content_id

        content_id = str(uuid.uuid4())
        self._execute(
            self.client.table('scraped_content').insert({
                'id': content_id,
                'project_id': project_id,
                'url': url,
                'title': title,
                'content': content,
            }),
            'store scraped content'
        )
        return content_id

    def get_scraped_content(self, project_id, url=None):
        query = self.client.table('scraped_content').select('id, url, title, content').eq('project_id', project_id)
        if url:
            query = query.eq('url', url)
        return self._execute(query, 'get scraped content').data or []

    def count_scraped_content(self, project_id):
        response = self._execute(
            self.client.table('scraped_content').select('id', count='exact').eq('project_id', project_id),
            'count scraped content'
        )
        return response.count or 0

    def insert_global_knowledge(
        self,
        content,
        embedding,
        title,
        source,
        content_type,
        marketing_domain,
        complexity_level='beginner',
        quality_score=None,
        tags=None,
        metadata=None
    ):
        knowledge_id = str(uuid.uuid4())
        self._execute(
            self.client.table('global_knowledge').insert({
                'id': knowledge_id,
                'content': content,
                'embedding': embedding,
                'title': title,
                'source': source,
                'content_type': content_type,
                'marketing_domain': marketing_domain,
                'complexity_level': complexity_level,
                'quality_score': quality_score,
                'tags': list(tags or []),
                'metadata': metadata or {},
            }),
            'insert global knowledge'
        )
        return knowledge_id

    def get_brand_voice(self, project_id):
        response = self._execute(
            self.client.table('brand_voices').select('*').eq('project_id', project_id).limit(1),
            'get brand voice'
        )
        return response.data[0] if response.data else None

    def save_brand_voice(self, project_id, voice):
        row = {key: voice.get(key) for key in BRAND_VOICE_FIELDS if key in voice}
        row['project_id'] = project_id
        self._execute(
            self.client.table('brand_voices').upsert(row, on_conflict='project_id'),
            'save brand voice'
        )

    def log_rag_query(self, project_id, query_text, source_ids, confidence):
        self._execute(
            self.client.table('rag_queries').insert({
                'project_id': project_id,
                'query_text': query_text,
                'source_ids': list(source_ids),
                'confidence': confidence,
            }),
            'log rag query'
        )

    def get_rag_query_stats(self, project_id):
        response = self._execute(
            self.client.rpc('get_rag_query_stats', {'p_project_id': project_id}),
            'get_rag_query_stats'
        )
        return response.data[0] if response.data else None

    def create_conversation(self, project_id, title):
        conversation_id = str(uuid.uuid4())
        self._execute(
            self.client.table('chat_conversations').insert({
                'id': conversation_id,
                'project_id': project_id,
                'title': title,
            }),
            'create conversation'
        )
        return conversation_id

    def get_conversation(self, conversation_id):
        response = self._execute(
            self.client.table('chat_conversations').select('*').eq('id', conversation_id).limit(1),
            'get conversation'
        )
        return response.data[0] if response.data else None

    def get_conversations(self, project_id):
        response = self._execute(
            self.client.table('chat_conversations').select('*')
            .eq('project_id', project_id).order('created_at', desc=True),
            'get conversations'
        )
        return response.data or []

    def delete_conversation(self, conversation_id):
        self._execute(
            self.client.table('chat_messages').delete().eq('conversation_id', conversation_id),
            'delete chat messages'
        )
        self._execute(
            self.client.table('chat_conversations').delete().eq('id', conversation_id),
            'delete conversation'
        )

    def add_chat_message(self, conversation_id, role, content):
        message_id = str(uuid.uuid4())
        self._execute(
            self.client.table('chat_messages').insert({
                'id': message_id,
                'conversation_id': conversation_id,
                'role': role,
                'content': content,
            }),
            'add chat message'
        )
        return message_id

    def get_chat_messages(self, conversation_id):
        response = self._execute(
            self.client.table('chat_messages').select('*')
            .eq('conversation_id', conversation_id).order('created_at'),
            'get chat messages'
        )
        return response.data or []


# ----------------------------------------------------------------------
# SQLite backend
# ----------------------------------------------------------------------

class LocalKnowledgeStore(KnowledgeStore):
    """Local knowledge store using SQLite. Similarity is computed in Python."""

    def __init__(self, db_path: str = "storage/data/knowledge.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_db()
        logger.info(f"Local knowledge store initialized: {db_path}")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS document_chunks (
                    id TEXT PRIMARY KEY,
                    project_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    embedding TEXT NOT NULL,
                    metadata TEXT,
                    source TEXT,
                    quality_score REAL,
                    created_at TEXT
                );
                CREATE INDEX IF NOT EXISTS idx_chunks_project ON document_chunks (project_id);
                CREATE TABLE IF NOT EXISTS scraped_content (
                    id TEXT PRIMARY KEY,
                    project_id TEXT NOT NULL,
                    url TEXT NOT NULL,
                    title TEXT,
                    content TEXT,
                    created_at TEXT
                );
                CREATE TABLE IF NOT EXISTS global_knowledge (
                    id TEXT PRIMARY KEY,
                    content TEXT NOT NULL,
                    embedding TEXT NOT NULL,
                    title TEXT,
                    source TEXT,
                    content_type TEXT,
                    marketing_domain TEXT,
                    complexity_level TEXT,
                    quality_score REAL,
                    tags TEXT,
                    metadata TEXT,
                    created_at TEXT
                );
                CREATE TABLE IF NOT EXISTS brand_voices (
                    project_id TEXT PRIMARY KEY,
                    tone TEXT,
                    style TEXT,
                    audience TEXT,
                    key_messages TEXT,
                    terminology TEXT,
                    avoid_phrases TEXT,
                    language TEXT,
                    updated_at TEXT
                );
                CREATE TABLE IF NOT EXISTS rag_queries (
                    id INTEGER PRIMARY KEY,
                    project_id TEXT,
                    query_text TEXT,
                    source_ids TEXT,
                    confidence REAL,
                    created_at TEXT
                );
                CREATE TABLE IF NOT EXISTS chat_conversations (
                    id TEXT PRIMARY KEY,
                    project_id TEXT NOT NULL,
                    title TEXT,
                    created_at TEXT,
                    updated_at TEXT
                );
                CREATE TABLE IF NOT EXISTS chat_messages (
                    id TEXT PRIMARY KEY,
                    conversation_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT
                );
                CREATE INDEX IF NOT EXISTS idx_messages_conversation ON chat_messages (conversation_id);
            """)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def _write(self, sql: str, params: tuple, action: str):
        try:
            with self._lock, self._connect() as conn:
                conn.execute(sql, params)
        except sqlite3.Error as e:
            logger.error(f"SQLite {action} failed: {e}")
            raise StoreError(f"{action} failed: {e}") from e

    def _read(self, sql: str, params: tuple, action: str) -> List[sqlite3.Row]:
        try:
            with self._connect() as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"SQLite {action} failed: {e}")
            raise StoreError(f"{action} failed: {e}") from e

    def match_documents_quality_weighted(
        self,
        query_embedding,
        match_threshold,
        match_count,
        project_id=None,
        include_global=False,
        min_quality_score=None,
        marketing_domain=None,
        categories=None
    ):
        min_quality = (min_quality_score / 100.0) if min_quality_score is not None else None
        matches = []

        if project_id:
            chunk_rows = self._read(
                "SELECT * FROM document_chunks WHERE project_id = ?", (project_id,), 'match documents'
            )
        else:
            chunk_rows = self._read("SELECT * FROM document_chunks", (), 'match documents')

        for row in chunk_rows:
            quality = row['quality_score'] if row['quality_score'] is not None else DEFAULT_CHUNK_QUALITY
            similarity = cosine_similarity(query_embedding, json.loads(row['embedding']))
            if similarity < match_threshold:
                continue
            if min_quality is not None and quality < min_quality:
                continue
            matches.append({
                'id': row['id'],
                'content': row['content'],
                'metadata': json.loads(row['metadata'] or '{}'),
                'similarity': similarity,
                'source_type': SOURCE_PROJECT,
                'source_info': row['source'] or '',
                'quality_score': quality,
                'weighted_score': weighted_score(similarity, quality),
            })

        if include_global:
            for row in self._read("SELECT * FROM global_knowledge", (), 'match global knowledge'):
                if marketing_domain and row['marketing_domain'] != marketing_domain:
                    continue
                if categories and row['marketing_domain'] not in categories:
                    continue
                quality = row['quality_score']
                if min_quality is not None and (quality is None or quality < min_quality):
                    continue
                similarity = cosine_similarity(query_embedding, json.loads(row['embedding']))
                if similarity < match_threshold:
                    continue
                matches.append({
                    'id': row['id'],
                    'content': row['content'],
                    'metadata': json.loads(row['metadata'] or '{}'),
                    'similarity': similarity,
                    'source_type': SOURCE_GLOBAL,
                    'source_info': row['source'] or '',
                    'quality_score': quality,
                    'weighted_score': weighted_score(similarity, quality),
                })

        matches.sort(key=lambda match: match['weighted_score'], reverse=True)
        return matches[:match_count]

    def insert_document_chunk(self, project_id, content, embedding, metadata=None):
        chunk_id = str(uuid.uuid4())
        metadata = metadata or {}
        self._write(
            "INSERT INTO document_chunks VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (chunk_id, project_id, content, json.dumps(embedding), json.dumps(metadata),
             metadata.get('source'), metadata.get('quality_score'), self._now()),
            'insert document chunk'
        )
        return chunk_id

    def count_document_chunks(self, project_id, source=None):
        if source:
            rows = self._read(
                "SELECT COUNT(*) FROM document_chunks WHERE project_id = ? AND source = ?",
                (project_id, source), 'count document chunks'
            )
        else:
            rows = self._read(
                "SELECT COUNT(*) FROM document_chunks WHERE project_id = ?",
                (project_id,), 'count document chunks'
            )
        return rows[0][0]

    def delete_document_chunks(self, project_id, source):
        self._write(
            "DELETE FROM document_chunks WHERE project_id = ? AND source = ?",
            (project_id, source), 'delete document chunks'
        )

    def store_scraped_content(self, project_id, url, title, content):
        try:
            with self._lock, self._connect() as conn:
                row = conn.execute(
                    "SELECT id FROM scraped_content WHERE project_id = ? AND url = ?", (project_id, url)
                ).fetchone()
                if row:
                    conn.execute(
                        "UPDATE scraped_content SET title = ?, content = ? WHERE id = ?",
                        (title, json.dumps(content), row['id'])
                    )
                    return row['id']

                content_id = str(uuid.uuid4())
                conn.execute(
                    "INSERT INTO scraped_content VALUES (?, ?, ?, ?, ?, ?)",
                    (content_id, project_id, url, title, json.dumps(content), self._now())
                )
                return content_id
        except sqlite3.Error as e:
            logger.error(f"SQLite store scraped content failed: {e}")
            raise StoreError(f"store scraped content failed: {e}") from e

    def get_scraped_content(self, project_id, url=None):
        if url:
            rows = self._read(
                "SELECT id, url, title, content FROM scraped_content WHERE project_id = ? AND url = ? ORDER BY created_at",
                (project_id, url), 'get scraped content'
            )
        else:
            rows = self._read(
                "SELECT id, url, title, content FROM scraped_content WHERE project_id = ? ORDER BY created_at",
                (project_id,), 'get scraped content'
            )
        return [
            {'id': row['id'], 'url': row['url'], 'title': row['title'], 'content': json.loads(row['content'] or '{}')}
            for row in rows
        ]

    def count_scraped_content(self, project_id):
        rows = self._read(
            "SELECT COUNT(*) FROM scraped_content WHERE project_id = ?", (project_id,), 'count scraped content'
        )
        return rows[0][0]

    def insert_global_knowledge(
        self,
        content,
        embedding,
        title,
        source,
        content_type,
        marketing_domain,
        complexity_level='beginner',
        quality_score=None,
        tags=None,
        metadata=None
    ):
        knowledge_id = str(uuid.uuid4())
        self._write(
            "INSERT INTO global_knowledge VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (knowledge_id, content, json.dumps(embedding), title, source, content_type,
             marketing_domain, complexity_level, quality_score, json.dumps(list(tags or [])),
             json.dumps(metadata or {}), self._now()),
            'insert global knowledge'
        )
        return knowledge_id

    def get_brand_voice(self, project_id):
        rows = self._read(
            "SELECT * FROM brand_voices WHERE project_id = ?", (project_id,), 'get brand voice'
        )
        if not rows:
            return None
        row = rows[0]
        voice = {'project_id': row['project_id']}
        for key in BRAND_VOICE_FIELDS:
            value = row[key]
            voice[key] = json.loads(value) if key in _JSON_BRAND_FIELDS and value else value
        return voice

    def save_brand_voice(self, project_id, voice):
        values = []
        for key in BRAND_VOICE_FIELDS:
            value = voice.get(key)
            values.append(json.dumps(value) if key in _JSON_BRAND_FIELDS and value is not None else value)
        self._write(
            "INSERT OR REPLACE INTO brand_voices VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (project_id, *values, self._now()),
            'save brand voice'
        )

    def log_rag_query(self, project_id, query_text, source_ids, confidence):
        self._write(
            "INSERT INTO rag_queries (project_id, query_text, source_ids, confidence, created_at) VALUES (?, ?, ?, ?, ?)",
            (project_id, query_text, json.dumps(list(source_ids)), confidence, self._now()),
            'log rag query'
        )

    def get_rag_query_stats(self, project_id):
        rows = self._read(
            "SELECT AVG(confidence) FROM rag_queries WHERE project_id = ?", (project_id,), 'get rag query stats'
        )
        avg_confidence = rows[0][0]
        if avg_confidence is None:
            return None

        frequent = self._read(
            """
            SELECT query_text, COUNT(*) AS query_count FROM rag_queries
            WHERE project_id = ?
            GROUP BY query_text
            ORDER BY query_count DESC, query_text
            LIMIT 10
            """,
            (project_id,), 'get rag query stats'
        )
        return {
            'avg_confidence': avg_confidence,
            'frequent_queries': [
                {'query_text': row['query_text'], 'query_count': row['query_count']} for row in frequent
            ],
        }

    def create_conversation(self, project_id, title):
        conversation_id = str(uuid.uuid4())
        now = self._now()
        self._write(
            "INSERT INTO chat_conversations VALUES (?, ?, ?, ?, ?)",
            (conversation_id, project_id, title, now, now),
            'create conversation'
        )
        return conversation_id

    def get_conversation(self, conversation_id):
        rows = self._read(
            "SELECT * FROM chat_conversations WHERE id = ?", (conversation_id,), 'get conversation'
        )
        return dict(rows[0]) if rows else None

    def get_conversations(self, project_id):
        rows = self._read(
            "SELECT * FROM chat_conversations WHERE project_id = ? ORDER BY created_at DESC, rowid DESC",
            (project_id,), 'get conversations'
        )
        return [dict(row) for row in rows]

    def delete_conversation(self, conversation_id):
        try:
            with self._lock, self._connect() as conn:
                conn.execute("DELETE FROM chat_messages WHERE conversation_id = ?", (conversation_id,))
                conn.execute("DELETE FROM chat_conversations WHERE id = ?", (conversation_id,))
        except sqlite3.Error as e:
            logger.error(f"SQLite delete conversation failed: {e}")
            raise StoreError(f"delete conversation failed: {e}") from e

    def add_chat_message(self, conversation_id, role, content):
        message_id = str(uuid.uuid4())
        now = self._now()
        try:
            with self._lock, self._connect() as conn:
                conn.execute(
                    "INSERT INTO chat_messages VALUES (?, ?, ?, ?, ?)",
                    (message_id, conversation_id, role, content, now)
                )
                conn.execute(
                    "UPDATE chat_conversations SET updated_at = ? WHERE id = ?", (now, conversation_id)
                )
        except sqlite3.Error as e:
            logger.error(f"SQLite add chat message failed: {e}")
            raise StoreError(f"add chat message failed: {e}") from e
        return message_id

    def get_chat_messages(self, conversation_id):
        rows = self._read(
            "SELECT * FROM chat_messages WHERE conversation_id = ? ORDER BY rowid",
            (conversation_id,), 'get chat messages'
        )
        return [dict(row) for row in rows]


def create_knowledge_store(
    supabase_url: Optional[str] = None,
    supabase_key: Optional[str] = None,
    local_db_path: str = "storage/data/knowledge.db"
) -> KnowledgeStore:
    """Supabase when credentials are present, SQLite otherwise."""
    if supabase_url and supabase_key:
        return SupabaseKnowledgeStore(supabase_url, supabase_key)
    logger.warning("Supabase not configured, using local SQLite knowledge store")
    return LocalKnowledgeStore(local_db_path)
