"""
Vector Store with PostgreSQL + pgvector

Stores legislation chunks with their embeddings and a generated tsvector
(`simple` configuration, so English and French share one keyword index),
plus document and section rows used to hydrate full acts and regulations.

InMemoryVectorStore implements the same read/write surface with numpy for
offline runs and tests.
"""

import os
import re
import json
import logging
from typing import Optional
from dataclasses import asdict, dataclass, field
from contextlib import contextmanager

import numpy as np

from .language_config import VALID_FTS_CONFIGS

try:
    import psycopg2
    import psycopg2.extras
    import psycopg2.pool
except ImportError:
    psycopg2 = None  # Will be caught at connect() time

logger = logging.getLogger(__name__)


@dataclass
class VectorStoreConfig:
    """Configuration for vector store."""
    connection_string: Optional[str] = None
    table_name: str = "legislation_chunks"
    documents_table: str = "legislation_documents"
    sections_table: str = "legislation_sections"
    embedding_dimensions: int = 1024
    hnsw_ef_search: int = 40
    # Connection pooling settings
    pool_min_connections: int = 2
    pool_max_connections: int = 20
    use_pooling: bool = True  # Set to False for simple single-connection mode


@dataclass
class SearchResult:
    """A single search hit with its leg-specific score."""
    chunk_id: str
    source_id: str
    source_type: str
    document_id: str
    language: str
    content: str
    score: float
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "chunk_id": self.chunk_id,
            "source_id": self.source_id,
            "source_type": self.source_type,
            "document_id": self.document_id,
            "language": self.language,
            "content": self.content,
            "score": self.score,
            "metadata": self.metadata,
        }


def _document_row(document) -> dict:
    enabling = next(
        (a.get("act_title") for a in document.enabling_authorities if a.get("act_title")),
        None,
    )
    return {
        "document_type": document.document_type,
        "document_id": document.document_id,
        "language": document.language,
        "title": document.title,
        "long_title": document.long_title,
        "status": document.status,
        "consolidation_date": document.consolidation_date,
        "enabling_act_title": enabling,
        "metadata": {
            "in_force_date": document.in_force_date,
            "enacted_date": document.enacted_date,
            "last_amended_date": document.last_amended_date,
            "registration_date": document.registration_date,
            "enabling_authorities": document.enabling_authorities,
            "regulation_type": document.regulation_type,
            "gazette_part": document.gazette_part,
            "bill_history": asdict(document.bill_history) if document.bill_history else None,
            "recent_amendments": [asdict(a) for a in document.recent_amendments],
            "related_provisions": [asdict(p) for p in document.related_provisions],
        },
    }


def _section_rows(document) -> list[dict]:
    return [
        {
            "id": s.canonical_section_id,
            "document_type": document.document_type,
            "document_id": document.document_id,
            "language": document.language,
            "section_order": s.order,
            "section_label": s.label,
            "section_type": s.section_type,
            "marginal_note": s.marginal_note,
            "content": s.content,
            "status": s.status,
        }
        for s in document.sections
    ]


class VectorStore:
    """
    PostgreSQL vector store with pgvector.

    Features:
    - Cosine similarity search
    - Full-text keyword search with ts_rank
    - Language and source type filtering
    - Batch insert for efficiency
    - Document/section reads for hydration
    """

    def __init__(self, config: Optional[VectorStoreConfig] = None):
        """
        Initialize vector store.

        Args:
            config: Optional configuration. Uses env vars if not provided.
        """
        self.config = config or VectorStoreConfig()
        self._conn = None
        self._pool = None
        self._connection_string = (
            self.config.connection_string or
            os.getenv("POSTGRES_URL") or
            os.getenv("DATABASE_URL") or
            "postgresql://localhost:5432/legis_rag"
        )

    def connect(self) -> None:
        """Establish database connection (with optional pooling)."""
        if psycopg2 is None:
            raise ImportError(
                "psycopg2 not installed. Run: pip install psycopg2-binary"
            )
        from psycopg2.extras import RealDictCursor

        try:
            if self.config.use_pooling:
                self._pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self.config.pool_min_connections,
                    maxconn=self.config.pool_max_connections,
                    dsn=self._connection_string,
                    cursor_factory=RealDictCursor,
                )
                conn = self._pool.getconn()
                try:
                    with conn.cursor() as cur:
                        cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                    conn.commit()
                finally:
                    self._pool.putconn(conn)
                logger.info(
                    f"Connection pool initialized (min={self.config.pool_min_connections}, "
                    f"max={self.config.pool_max_connections})"
                )
            else:
                self._conn = psycopg2.connect(
                    self._connection_string,
                    cursor_factory=RealDictCursor
                )
                self._conn.autocommit = False
                with self._conn.cursor() as cur:
                    cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                    self._conn.commit()
                logger.info("Connected to PostgreSQL with pgvector (single connection)")

        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            raise

    def _get_connection(self):
        """Get a database connection (from pool or single connection)."""
        if self._pool:
            return self._pool.getconn()

        if self._conn is None or self._conn.closed:
            if self._conn is not None:
                logger.warning("Connection closed, reconnecting...")
            self.connect()
        return self._conn

    def _release_connection(self, conn):
        """Release a connection back to the pool (if pooling is enabled)."""
        if self._pool and conn:
            self._pool.putconn(conn)

    def _ensure_connection(self):
        """Ensure we have a connection (pool or single) and return it."""
        if not self._conn and not self._pool:
            self.connect()

        try:
            return self._get_connection()
        except (psycopg2.OperationalError, psycopg2.InterfaceError):
            logger.warning("Database error in _ensure_connection, retrying after reconnect...")
            self.connect()
            return self._get_connection()

    @contextmanager
    def get_connection(self):
        """
        Context manager for getting a database connection.

        Usage:
            with store.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
        """
        conn = self._ensure_connection()
        try:
            yield conn
        finally:
            self._release_connection(conn)

    def _safe_rollback(self, conn) -> None:
        """Rollback a connection, ignoring errors if the connection is dead."""
        try:
            conn.rollback()
        except (psycopg2.InterfaceError, psycopg2.OperationalError):
            pass

    def _execute_with_retry(self, operation, label="db_operation"):
        """Execute a DB operation with one retry on stale connection.

        Args:
            operation: Callable(conn) that performs the DB work and returns a result.
            label: Human-readable name for logging.

        Returns:
            Whatever ``operation`` returns.
        """
        for attempt in range(2):
            conn = self._ensure_connection()
            try:
                result = operation(conn)
                self._release_connection(conn)
                return result
            except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                self._safe_rollback(conn)
                if self._pool:
                    self._pool.putconn(conn, close=True)
                if attempt == 0:
                    logger.warning(f"{label}: stale conn, reconnecting: {e}")
                    self.close()
                    self.connect()
                    continue
                raise
            except Exception:
                self._safe_rollback(conn)
                self._release_connection(conn)
                raise

    def close(self) -> None:
        """Close database connection(s)."""
        if self._pool:
            self._pool.closeall()
            self._pool = None
            logger.info("Connection pool closed")
        if self._conn:
            self._conn.close()
            self._conn = None

    # =========================================================================
    # Schema
    # =========================================================================

    def initialize_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        t = self.config.table_name
        schema_sql = f"""
        CREATE TABLE IF NOT EXISTS {self.config.documents_table} (
            document_type TEXT NOT NULL,
            document_id TEXT NOT NULL,
            language VARCHAR(2) NOT NULL,
            title TEXT NOT NULL,
            long_title TEXT,
            status TEXT,
            consolidation_date TEXT,
            enabling_act_title TEXT,
            metadata JSONB DEFAULT '{{}}',
            created_at TIMESTAMPTZ DEFAULT NOW(),
            PRIMARY KEY (document_type, document_id, language)
        );

        CREATE TABLE IF NOT EXISTS {self.config.sections_table} (
            id TEXT PRIMARY KEY,
            document_type TEXT NOT NULL,
            document_id TEXT NOT NULL,
            language VARCHAR(2) NOT NULL,
            section_order INT NOT NULL,
            section_label TEXT NOT NULL,
            section_type TEXT NOT NULL,
            marginal_note TEXT,
            content TEXT,
            status TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_leg_sections_document
            ON {self.config.sections_table}(document_type, document_id, language, section_order);

        CREATE TABLE IF NOT EXISTS {t} (
            id UUID PRIMARY KEY,
            source_id TEXT NOT NULL,
            resource_key TEXT NOT NULL,
            source_type TEXT NOT NULL,
            document_id TEXT NOT NULL,
            language VARCHAR(2) NOT NULL,
            content TEXT NOT NULL,
            token_count INT,
            metadata JSONB DEFAULT '{{}}',
            embedding VECTOR({self.config.embedding_dimensions}),
            tsv TSVECTOR GENERATED ALWAYS AS (to_tsvector('simple', content)) STORED,
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_leg_chunks_document
            ON {t}(document_id, language);
        CREATE INDEX IF NOT EXISTS idx_leg_chunks_lang_type
            ON {t}(language, source_type);
        CREATE INDEX IF NOT EXISTS idx_leg_chunks_tsv
            ON {t} USING GIN (tsv);
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(schema_sql)
            conn.commit()
            logger.info("Schema initialized successfully")

        self._execute_with_retry(_op, "initialize_schema")

    def create_hnsw_index(self, m: int = 16, ef_construction: int = 64) -> None:
        """Create the HNSW cosine index. Run after the bulk load."""
        sql = f"""
        CREATE INDEX IF NOT EXISTS idx_leg_chunks_embedding_hnsw
            ON {self.config.table_name}
            USING hnsw (embedding vector_cosine_ops)
            WITH (m = {int(m)}, ef_construction = {int(ef_construction)})
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql)
            conn.commit()
            logger.info(f"HNSW index ready (m={m}, ef_construction={ef_construction})")

        self._execute_with_retry(_op, "create_hnsw_index")

    # =========================================================================
    # Writes
    # =========================================================================

    def _write_document(self, cur, doc: dict, sections: list[dict]) -> None:
        from psycopg2.extras import execute_values

        cur.execute(f"""
        INSERT INTO {self.config.documents_table}
            (document_type, document_id, language, title, long_title, status,
             consolidation_date, enabling_act_title, metadata)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (document_type, document_id, language) DO UPDATE SET
            title = EXCLUDED.title,
            long_title = EXCLUDED.long_title,
            status = EXCLUDED.status,
            consolidation_date = EXCLUDED.consolidation_date,
            enabling_act_title = EXCLUDED.enabling_act_title,
            metadata = EXCLUDED.metadata
        """, (
            doc["document_type"], doc["document_id"], doc["language"], doc["title"],
            doc["long_title"], doc["status"], doc["consolidation_date"],
            doc["enabling_act_title"], json.dumps(doc["metadata"]),
        ))
        cur.execute(
            f"DELETE FROM {self.config.sections_table} "
            "WHERE document_type = %s AND document_id = %s AND language = %s",
            (doc["document_type"], doc["document_id"], doc["language"]),
        )
        if sections:
            execute_values(cur, f"""
            INSERT INTO {self.config.sections_table}
                (id, document_type, document_id, language, section_order, section_label,
                 section_type, marginal_note, content, status)
            VALUES %s
            """, [
                (
                    s["id"], s["document_type"], s["document_id"], s["language"],
                    s["section_order"], s["section_label"], s["section_type"],
                    s["marginal_note"], s["content"], s["status"],
                )
                for s in sections
            ], page_size=1000)

    def _write_chunks(self, cur, chunks: list[dict], embeddings: list[list[float]]) -> None:
        from psycopg2.extras import execute_values

        sql = f"""
        INSERT INTO {self.config.table_name}
            (id, source_id, resource_key, source_type, document_id, language,
             content, token_count, metadata, embedding)
        VALUES %s
        ON CONFLICT (id) DO UPDATE SET
            content = EXCLUDED.content,
            resource_key = EXCLUDED.resource_key,
            token_count = EXCLUDED.token_count,
            metadata = EXCLUDED.metadata,
            embedding = EXCLUDED.embedding
        """

        values = [
            (
                chunk["chunk_id"],
                chunk["source_id"],
                chunk["resource_key"],
                chunk["source_type"],
                chunk["document_id"],
                chunk["language"],
                chunk["content"],
                chunk.get("token_count"),
                json.dumps(chunk.get("metadata", {})),
                embedding,
            )
            for chunk, embedding in zip(chunks, embeddings)
        ]
        execute_values(
            cur,
            sql,
            values,
            template="(%s::uuid, %s, %s, %s, %s, %s, %s, %s, %s, %s::vector)",
            page_size=1000,
        )

    def _delete_chunks_sql(self, document_id: str, language: Optional[str]) -> tuple[str, list]:
        sql = f"DELETE FROM {self.config.table_name} WHERE document_id = %s"
        params = [document_id]
        if language:
            sql += " AND language = %s"
            params.append(language)
        return sql, params

    def upsert_document(self, document) -> None:
        """Store document and section rows of a parsed LegalDocument (one language)."""
        doc = _document_row(document)
        sections = _section_rows(document)

        def _op(conn):
            with conn.cursor() as cur:
                self._write_document(cur, doc, sections)
            conn.commit()
            logger.info(
                f"Stored {doc['document_type']} {doc['document_id']} ({doc['language']}) "
                f"with {len(sections)} sections"
            )

        self._execute_with_retry(_op, "upsert_document")

    def replace_document(self, document, chunks: list[dict], embeddings: list[list[float]]) -> None:
        """
        Store a document with its sections and swap in its chunk set, all in
        one transaction. Either every row of the new version is written or
        the previous version stays untouched.

        Args:
            document: Parsed LegalDocument (one language)
            chunks: Chunk dictionaries for that document (may be empty)
            embeddings: Corresponding embedding vectors
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Mismatch: {len(chunks)} chunks, {len(embeddings)} embeddings"
            )

        doc = _document_row(document)
        sections = _section_rows(document)
        delete_sql, delete_params = self._delete_chunks_sql(doc["document_id"], doc["language"])

        def _op(conn):
            with conn.cursor() as cur:
                self._write_document(cur, doc, sections)
                cur.execute(delete_sql, delete_params)
                if chunks:
                    self._write_chunks(cur, chunks, embeddings)
            conn.commit()
            logger.info(
                f"Replaced {doc['document_type']} {doc['document_id']} ({doc['language']}): "
                f"{len(sections)} sections, {len(chunks)} chunks"
            )

        self._execute_with_retry(_op, "replace_document")

    def insert_chunks(self, chunks: list[dict], embeddings: list[list[float]]) -> None:
        """
        Batch insert chunks with embeddings using execute_values.

        Args:
            chunks: List of chunk dictionaries (from Chunk.to_dict())
            embeddings: Corresponding embedding vectors
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Mismatch: {len(chunks)} chunks, {len(embeddings)} embeddings"
            )
        if not chunks:
            return

        def _op(conn):
            with conn.cursor() as cur:
                self._write_chunks(cur, chunks, embeddings)
            conn.commit()
            logger.info(f"Batch inserted {len(chunks)} chunks")

        self._execute_with_retry(_op, "insert_chunks")

    def delete_document(self, document_id: str, language: Optional[str] = None) -> int:
        """Remove a document's chunks (optionally one language). Returns rows deleted."""
        sql, params = self._delete_chunks_sql(document_id, language)

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                deleted = cur.rowcount
            conn.commit()
            return deleted

        return self._execute_with_retry(_op, "delete_document")

    # =========================================================================
    # Search
    # =========================================================================

    @staticmethod
    def _filters(language: Optional[str], source_types: Optional[list[str]]) -> tuple[str, list]:
        filters = []
        params = []
        if language:
            filters.append("c.language = %s")
            params.append(language)
        if source_types:
            placeholders = ",".join(["%s"] * len(source_types))
            filters.append(f"c.source_type IN ({placeholders})")
            params.extend(source_types)
        return " AND ".join(filters), params

    @staticmethod
    def _to_result(row) -> SearchResult:
        row_dict = dict(row)
        metadata = row_dict.get("metadata") or {}
        if isinstance(metadata, str):
            metadata = json.loads(metadata)
        return SearchResult(
            chunk_id=str(row_dict["chunk_id"]),
            source_id=row_dict["source_id"],
            source_type=row_dict["source_type"],
            document_id=row_dict["document_id"],
            language=row_dict["language"],
            content=row_dict["content"],
            score=float(row_dict["score"]),
            metadata=metadata,
        )

    def search(
        self,
        query_embedding: list[float],
        top_k: int = 10,
        language: Optional[str] = None,
        source_types: Optional[list[str]] = None,
        min_score: float = 0.0,
    ) -> list[SearchResult]:
        """
        Semantic search using vector similarity.

        Args:
            query_embedding: Query embedding vector
            top_k: Number of results to return
            language: Optional language filter ("en" / "fr")
            source_types: Optional source type filter
            min_score: Minimum cosine similarity (0-1)

        Returns:
            List of SearchResult objects, most similar first
        """
        where, filter_params = self._filters(language, source_types)
        where_clause = f"WHERE {where}" if where else ""

        sql = f"""
        SELECT
            c.id as chunk_id,
            c.source_id,
            c.source_type,
            c.document_id,
            c.language,
            c.content,
            c.metadata,
            1 - (c.embedding <=> %s::vector) as score
        FROM {self.config.table_name} c
        {where_clause}
        ORDER BY c.embedding <=> %s::vector
        LIMIT %s
        """
        params = [query_embedding] + filter_params + [query_embedding, top_k]

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(f"SET hnsw.ef_search = {int(self.config.hnsw_ef_search)}")
                cur.execute(sql, params)
                rows = cur.fetchall()
            results = [self._to_result(row) for row in rows]
            return [r for r in results if r.score >= min_score]

        return self._execute_with_retry(_op, "search")

    def keyword_search(
        self,
        query: str,
        top_k: int = 10,
        language: Optional[str] = None,
        source_types: Optional[list[str]] = None,
        fts_language: str = "simple",
    ) -> list[SearchResult]:
        """
        Full-text keyword search using PostgreSQL ts_rank.

        The stored tsvector uses the `simple` configuration; any other
        configuration is computed on the fly.
        """
        if fts_language not in VALID_FTS_CONFIGS:
            logger.warning(f"Invalid FTS language '{fts_language}', falling back to 'simple'")
            fts_language = "simple"

        if fts_language == "simple":
            vector_expr = "c.tsv"
            vector_params = []
        else:
            vector_expr = "to_tsvector(%s, c.content)"
            vector_params = [fts_language]

        where, filter_params = self._filters(language, source_types)
        where_extra = f" AND {where}" if where else ""

        sql = f"""
        SELECT
            c.id as chunk_id,
            c.source_id,
            c.source_type,
            c.document_id,
            c.language,
            c.content,
            c.metadata,
            ts_rank({vector_expr}, websearch_to_tsquery(%s, %s)) as score
        FROM {self.config.table_name} c
        WHERE {vector_expr} @@ websearch_to_tsquery(%s, %s)
        {where_extra}
        ORDER BY score DESC
        LIMIT %s
        """
        params = (
            vector_params + [fts_language, query]
            + vector_params + [fts_language, query]
            + filter_params + [top_k]
        )

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
            return [self._to_result(row) for row in rows]

        return self._execute_with_retry(_op, "keyword_search")

    # =========================================================================
    # Hydration reads
    # =========================================================================

    def get_document(self, document_type: str, document_id: str, language: str) -> Optional[dict]:
        """Document row for one language, or None."""
        sql = f"""
        SELECT document_type, document_id, language, title, long_title, status,
               consolidation_date, enabling_act_title, metadata
        FROM {self.config.documents_table}
        WHERE document_type = %s AND document_id = %s AND language = %s
        LIMIT 1
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (document_type, document_id, language))
                row = cur.fetchone()
            return dict(row) if row else None

        return self._execute_with_retry(_op, "get_document")

    def get_document_sections(
        self,
        document_type: str,
        document_id: str,
        language: str,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Sections in document order, optionally limited."""
        sql = f"""
        SELECT section_label, marginal_note, content, section_type, status
        FROM {self.config.sections_table}
        WHERE document_type = %s AND document_id = %s AND language = %s
        ORDER BY section_order
        """
        params = [document_type, document_id, language]
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return [dict(row) for row in cur.fetchall()]

        return self._execute_with_retry(_op, "get_document_sections")

    def count_document_sections(self, document_type: str, document_id: str, language: str) -> int:
        sql = f"""
        SELECT COUNT(*) as count
        FROM {self.config.sections_table}
        WHERE document_type = %s AND document_id = %s AND language = %s
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (document_type, document_id, language))
                row = cur.fetchone()
            return int(row["count"]) if row else 0

        return self._execute_with_retry(_op, "count_document_sections")


# =============================================================================
# In-memory store
# =============================================================================

_TOKEN = re.compile(r"\w+", re.UNICODE)


def _tokens(text: str) -> list[str]:
    return _TOKEN.findall((text or "").lower())


class InMemoryVectorStore:
    """
    Process-local store with the VectorStore interface.

    Vector search is exact cosine similarity over a numpy matrix. Keyword
    rank is the fraction of distinct query terms present in the chunk, so
    it is deterministic and needs no database.
    """

    def __init__(self, config: Optional[VectorStoreConfig] = None):
        self.config = config or VectorStoreConfig()
        self._chunks: dict[str, dict] = {}
        self._vectors: dict[str, np.ndarray] = {}
        self._documents: dict[tuple, dict] = {}
        self._sections: dict[tuple, list[dict]] = {}

    def connect(self) -> None:
        return None

    def close(self) -> None:
        return None

    def initialize_schema(self) -> None:
        return None

    def upsert_document(self, document) -> None:
        doc = _document_row(document)
        key = (doc["document_type"], doc["document_id"], doc["language"])
        self._documents[key] = doc
        self._sections[key] = sorted(_section_rows(document), key=lambda s: s["section_order"])

    def replace_document(self, document, chunks: list[dict], embeddings: list[list[float]]) -> None:
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Mismatch: {len(chunks)} chunks, {len(embeddings)} embeddings"
            )
        self.upsert_document(document)
        self.delete_document(document.document_id, language=document.language)
        self.insert_chunks(chunks, embeddings)

    def insert_chunks(self, chunks: list[dict], embeddings: list[list[float]]) -> None:
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Mismatch: {len(chunks)} chunks, {len(embeddings)} embeddings"
            )
        for chunk, embedding in zip(chunks, embeddings):
            self._chunks[chunk["chunk_id"]] = dict(chunk)
            self._vectors[chunk["chunk_id"]] = np.asarray(embedding, dtype=float)
        logger.info(f"Stored {len(chunks)} chunks in memory")

    def delete_document(self, document_id: str, language: Optional[str] = None) -> int:
        doomed = [
            cid for cid, c in self._chunks.items()
            if c["document_id"] == document_id and (language is None or c["language"] == language)
        ]
        for cid in doomed:
            del self._chunks[cid]
            del self._vectors[cid]
        return len(doomed)

    def _candidates(self, language: Optional[str], source_types: Optional[list[str]]):
        for cid, chunk in self._chunks.items():
            if language and chunk["language"] != language:
                continue
            if source_types and chunk["source_type"] not in source_types:
                continue
            yield cid, chunk

    @staticmethod
    def _to_result(chunk: dict, score: float) -> SearchResult:
        return SearchResult(
            chunk_id=chunk["chunk_id"],
            source_id=chunk["source_id"],
            source_type=chunk["source_type"],
            document_id=chunk["document_id"],
            language=chunk["language"],
            content=chunk["content"],
            score=score,
            metadata=dict(chunk.get("metadata") or {}),
        )

    def search(
        self,
        query_embedding: list[float],
        top_k: int = 10,
        language: Optional[str] = None,
        source_types: Optional[list[str]] = None,
        min_score: float = 0.0,
    ) -> list[SearchResult]:
        query = np.asarray(query_embedding, dtype=float)
        query_norm = np.linalg.norm(query)
        scored = []
        for cid, chunk in self._candidates(language, source_types):
            vector = self._vectors[cid]
            denom = query_norm * np.linalg.norm(vector)
            score = float(np.dot(query, vector) / denom) if denom else 0.0
            if score >= min_score:
                scored.append((score, chunk))
        scored.sort(key=lambda item: (-item[0], item[1]["source_id"]))
        return [self._to_result(chunk, score) for score, chunk in scored[:top_k]]

    def keyword_search(
        self,
        query: str,
        top_k: int = 10,
        language: Optional[str] = None,
        source_types: Optional[list[str]] = None,
        fts_language: str = "simple",
    ) -> list[SearchResult]:
        terms = set(_tokens(query))
        if not terms:
            return []
        scored = []
        for _, chunk in self._candidates(language, source_types):
            present = terms & set(_tokens(chunk["content"]))
            if present:
                scored.append((len(present) / len(terms), chunk))
        scored.sort(key=lambda item: (-item[0], item[1]["source_id"]))
        return [self._to_result(chunk, score) for score, chunk in scored[:top_k]]

    def get_document(self, document_type: str, document_id: str, language: str) -> Optional[dict]:
        doc = self._documents.get((document_type, document_id, language))
        return dict(doc) if doc else None

    def get_document_sections(
        self,
        document_type: str,
        document_id: str,
        language: str,
        limit: Optional[int] = None,
    ) -> list[dict]:
        sections = self._sections.get((document_type, document_id, language), [])
        if limit is not None:
            sections = sections[:limit]
        return [dict(s) for s in sections]

    def count_document_sections(self, document_type: str, document_id: str, language: str) -> int:
        return len(self._sections.get((document_type, document_id, language), []))
