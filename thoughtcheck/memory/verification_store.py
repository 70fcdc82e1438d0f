"""Durable, similarity-indexed storage of past verifications."""

import asyncio
import inspect
import json
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

import aiosqlite
import numpy as np

from ..logging_config import get_logger
from ..verification.interfaces import VerificationMemoryGateway
from ..verification.models import VerificationSearchResult, VerificationStatus
from .similarity import cosine_similarity, text_similarity

logger = get_logger(__name__)

# Keyword matching is coarser than embeddings, so it gets its own, lower bar
TEXT_MATCH_THRESHOLD = 0.65 * 0.9

EmbedCallback = Callable[[str], Awaitable[list[float]] | list[float]]

_COLUMNS = (
    "id, session_id, text, status, confidence, sources, embedding, created_at, expires_at"
)


@dataclass
class StoredVerification:
    """A verification persisted in the store."""
    id: str
    session_id: str
    text: str
    status: VerificationStatus
    confidence: float
    sources: list[str]
    created_at: datetime
    expires_at: datetime
    embedding: list[float] | None = None

    @classmethod
    def from_row(cls, row) -> "StoredVerification":
        return cls(
            id=row[0],
            session_id=row[1],
            text=row[2],
            status=VerificationStatus(row[3]),
            confidence=row[4],
            sources=json.loads(row[5]) if row[5] else [],
            embedding=json.loads(row[6]) if row[6] else None,
            created_at=datetime.fromisoformat(row[7]),
            expires_at=datetime.fromisoformat(row[8]),
        )

    def to_search_result(self, similarity: float) -> VerificationSearchResult:
        return VerificationSearchResult(
            id=self.id,
            text=self.text,
            status=self.status,
            confidence=self.confidence,
            sources=self.sources,
            similarity=similarity,
            timestamp=self.created_at,
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'session_id': self.session_id,
            'text': self.text,
            'status': self.status.value,
            'confidence': self.confidence,
            'sources': self.sources,
            'created_at': self.created_at.isoformat(),
            'expires_at': self.expires_at.isoformat(),
        }


class VerificationMemoryStore(VerificationMemoryGateway):
    """SQLite-backed memory of verifications, scoped by session.

    Lookups score every unexpired entry of the session against the query:
    identical text scores 1.0, otherwise embedding cosine similarity when an
    ``embed_callback`` is configured, falling back to keyword overlap.
    """

    def __init__(
        self,
        db_path: str = "verifications.db",
        ttl_seconds: int = 24 * 60 * 60,
        embed_callback: EmbedCallback | None = None,
        text_match_threshold: float = TEXT_MATCH_THRESHOLD,
    ):
        """Initialize the verification store.

        Args:
            db_path: Path to SQLite database
            ttl_seconds: Lifetime of a stored verification
            embed_callback: Optional (async) function returning an embedding for a text
            text_match_threshold: Minimum keyword similarity for a fallback match
        """
        self.db_path = Path(db_path)
        self.ttl_seconds = ttl_seconds
        self.embed_callback = embed_callback
        self.text_match_threshold = text_match_threshold
        self._init_lock = asyncio.Lock()
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        """Ensure database is initialized (lazy initialization)."""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            await self._init_db()
            self._initialized = True

    async def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS verifications (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    text TEXT NOT NULL,
                    status TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    sources TEXT,
                    embedding TEXT,
                    created_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL
                )
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_verification_session
                ON verifications(session_id, expires_at)
            """)
            await conn.commit()

    async def _embed(self, text: str) -> list[float] | None:
        if self.embed_callback is None:
            return None
        try:
            embedding = self.embed_callback(text)
            if inspect.isawaitable(embedding):
                embedding = await embedding
            return [float(x) for x in embedding]
        except Exception:
            logger.warning("Embedding failed, using keyword matching", exc_info=True)
            return None

    async def _session_entries(self, session_id: str) -> list[StoredVerification]:
        now = datetime.now().isoformat()
        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute(f"""
                SELECT {_COLUMNS}
                FROM verifications
                WHERE session_id = ? AND expires_at > ?
                ORDER BY created_at DESC
            """, (session_id, now))
            rows = await cursor.fetchall()
        return [StoredVerification.from_row(row) for row in rows]

    async def find_verification(
        self,
        text: str,
        session_id: str,
        similarity_threshold: float,
    ) -> VerificationSearchResult | None:
        """Best unexpired verification of the session similar enough to ``text``."""
        await self._ensure_initialized()
        entries = await self._session_entries(session_id)
        if not entries:
            logger.debug("No stored verifications for session %s", session_id)
            return None

        for entry in entries:
            if entry.text == text:
                return entry.to_search_result(1.0)

        query_embedding = await self._embed(text)
        embedded = [e for e in entries if e.embedding]
        if query_embedding is not None and embedded:
            try:
                scores = cosine_similarity(
                    np.asarray(query_embedding, dtype=float),
                    np.asarray([e.embedding for e in embedded], dtype=float),
                )
            except ValueError:
                logger.warning("Stored embeddings have mismatched dimensions", exc_info=True)
            else:
                best = int(np.argmax(scores))
                if scores[best] >= similarity_threshold:
                    similarity = float(min(scores[best], 1.0))
                    logger.debug("Embedding match %.3f for session %s", similarity, session_id)
                    return embedded[best].to_search_result(similarity)

        scored = [(text_similarity(text, e.text), e) for e in entries]
        similarity, best_entry = max(scored, key=lambda item: item[0])
        if similarity >= self.text_match_threshold:
            logger.debug("Keyword match %.3f for session %s", similarity, session_id)
            return best_entry.to_search_result(similarity)
        return None

    async def add_verification(
        self,
        text: str,
        status: VerificationStatus,
        confidence: float,
        sources: list[str],
        session_id: str,
        ttl_seconds: int | None = None,
    ) -> str:
        """Store a verification; an identical text in the same session is updated.

        Returns:
            ID of the stored verification
        """
        await self._ensure_initialized()
        now = datetime.now()
        expires_at = now + timedelta(seconds=ttl_seconds or self.ttl_seconds)
        status = VerificationStatus(status)
        embedding = await self._embed(text)

        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute("""
                SELECT id FROM verifications
                WHERE session_id = ? AND text = ?
                LIMIT 1
            """, (session_id, text))
            row = await cursor.fetchone()

            try:
                if row:
                    verification_id = row[0]
                    await conn.execute("""
                        UPDATE verifications
                        SET status = ?, confidence = ?, sources = ?, embedding = ?,
                            created_at = ?, expires_at = ?
                        WHERE id = ?
                    """, (
                        status.value,
                        confidence,
                        json.dumps(sources),
                        json.dumps(embedding) if embedding else None,
                        now.isoformat(),
                        expires_at.isoformat(),
                        verification_id,
                    ))
                else:
                    verification_id = f"verification-{uuid.uuid4().hex[:12]}"
                    await conn.execute(f"""
                        INSERT INTO verifications ({_COLUMNS})
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        verification_id,
                        session_id,
                        text,
                        status.value,
                        confidence,
                        json.dumps(sources),
                        json.dumps(embedding) if embedding else None,
                        now.isoformat(),
                        expires_at.isoformat(),
                    ))
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

        logger.debug(
            "Stored verification %s (%s, %.2f) for session %s",
            verification_id, status.value, confidence, session_id,
        )
        return verification_id

    async def get_session_verifications(
        self,
        session_id: str,
        status: VerificationStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[StoredVerification]:
        """Unexpired verifications of a session, newest first."""
        await self._ensure_initialized()
        sql = f"""
            SELECT {_COLUMNS}
            FROM verifications
            WHERE session_id = ? AND expires_at > ?
        """
        params: list = [session_id, datetime.now().isoformat()]
        if status is not None:
            sql += " AND status = ?"
            params.append(VerificationStatus(status).value)
        sql += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()
        return [StoredVerification.from_row(row) for row in rows]

    async def clear_session(self, session_id: str) -> int:
        """Delete every verification of a session. Returns the number removed."""
        await self._ensure_initialized()
        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute(
                "DELETE FROM verifications WHERE session_id = ?", (session_id,)
            )
            await conn.commit()
            return cursor.rowcount

    async def purge_expired(self) -> int:
        """Delete expired verifications. Returns the number removed."""
        await self._ensure_initialized()
        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute(
                "DELETE FROM verifications WHERE expires_at <= ?",
                (datetime.now().isoformat(),),
            )
            await conn.commit()
            return cursor.rowcount

    async def get_stats(self) -> dict:
        """Counts of stored verifications, overall and by status."""
        await self._ensure_initialized()
        now = datetime.now().isoformat()
        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute("""
                SELECT status, COUNT(*) FROM verifications
                WHERE expires_at > ?
                GROUP BY status
            """, (now,))
            by_status = {row[0]: row[1] for row in await cursor.fetchall()}

            cursor = await conn.execute(
                "SELECT COUNT(DISTINCT session_id) FROM verifications WHERE expires_at > ?",
                (now,),
            )
            session_count = (await cursor.fetchone())[0]

        return {
            "total_entries": sum(by_status.values()),
            "session_count": session_count,
            "entries_by_status": {
                status.value: by_status.get(status.value, 0) for status in VerificationStatus
            },
        }
