from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from memory_ai.config import DATABASE_URL
from memory_ai.hashing import content_hash


@dataclass(frozen=True)
class CacheEntry:
    text: str
    vector: List[float]
    created_at: datetime


def _to_epoch(ts: datetime) -> float:
    return ts.timestamp()


def _from_epoch(value) -> datetime:
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def _serialize_embedding(embedding: Sequence[float]) -> str:
    """
    Store vectors as JSON text so the same schema works on SQLite and Postgres.
    """
    return json.dumps([float(x) for x in embedding])


def _decode_embedding(value) -> List[float]:
    if isinstance(value, str):
        return [float(x) for x in json.loads(value)]
    return [float(x) for x in value]


def _make_engine(database_url: str) -> Engine:
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set")

    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            # one shared connection, otherwise every pooled connection is a new empty DB
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, future=True, **kwargs)

    return create_engine(database_url, pool_pre_ping=True, future=True)


class EmbeddingStore:
    """
    Durable tier of the embedding cache: one row per exact text.

    Rows are keyed by ``content_hash(text)``; the text itself is stored
    alongside so recent entries can be preloaded into memory.
    """

    def __init__(self, database_url: str = DATABASE_URL, *, engine: Optional[Engine] = None):
        self._engine = engine or _make_engine(database_url)
        self._SessionLocal = sessionmaker(
            bind=self._engine,
            autoflush=False,
            autocommit=False,
            future=True,
        )
        self.init_schema()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def init_schema(self) -> None:
        with self._engine.begin() as conn:
            conn.execute(text("""
                CREATE TABLE IF NOT EXISTS embedding_cache (
                  text_hash   TEXT PRIMARY KEY,
                  text        TEXT NOT NULL,
                  embedding   TEXT NOT NULL,
                  dimension   INTEGER NOT NULL,
                  created_at  DOUBLE PRECISION NOT NULL
                )
            """))
            conn.execute(text("""
                CREATE INDEX IF NOT EXISTS ix_embedding_cache_created_at
                ON embedding_cache (created_at)
            """))

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------

    def get(self, text_: str) -> Optional[CacheEntry]:
        with self._session() as db:
            row = db.execute(
                text(
                    """
                    SELECT text, embedding, created_at
                    FROM embedding_cache
                    WHERE text_hash = :h
                    """
                ),
                {"h": content_hash(text_)},
            ).fetchone()

        if not row:
            return None
        return CacheEntry(text=str(row[0]), vector=_decode_embedding(row[1]), created_at=_from_epoch(row[2]))

    def exists(self, text_: str) -> bool:
        with self._session() as db:
            row = db.execute(
                text("SELECT 1 FROM embedding_cache WHERE text_hash = :h"),
                {"h": content_hash(text_)},
            ).fetchone()
        return row is not None

    def count(self) -> int:
        with self._session() as db:
            return int(db.execute(text("SELECT COUNT(*) FROM embedding_cache")).scalar_one())

    def recent(self, limit: int) -> List[CacheEntry]:
        """Most recently created entries first."""
        if limit <= 0:
            return []
        with self._session() as db:
            rows = db.execute(
                text(
                    """
                    SELECT text, embedding, created_at
                    FROM embedding_cache
                    ORDER BY created_at DESC
                    LIMIT :limit
                    """
                ),
                {"limit": int(limit)},
            ).fetchall()

        return [
            CacheEntry(text=str(t), vector=_decode_embedding(e), created_at=_from_epoch(c))
            for t, e, c in rows
        ]

    def time_bounds(self) -> Tuple[Optional[datetime], Optional[datetime]]:
        with self._session() as db:
            row = db.execute(
                text("SELECT MIN(created_at), MAX(created_at) FROM embedding_cache")
            ).fetchone()

        if not row or row[0] is None:
            return None, None
        return _from_epoch(row[0]), _from_epoch(row[1])

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------

    def put(self, entry: CacheEntry) -> datetime:
        """
        Insert or replace the vector for ``entry.text``.

        The original ``created_at`` of an existing row is kept; the stored
        value is returned.
        """
        h = content_hash(entry.text)
        with self._session() as db:
            db.execute(
                text(
                    """
                    INSERT INTO embedding_cache
                      (text_hash, text, embedding, dimension, created_at)
                    VALUES
                      (:h, :t, :vec, :dim, :ts)
                    ON CONFLICT (text_hash) DO UPDATE SET
                      embedding = excluded.embedding,
                      dimension = excluded.dimension
                    """
                ),
                {
                    "h": h,
                    "t": entry.text,
                    "vec": _serialize_embedding(entry.vector),
                    "dim": len(entry.vector),
                    "ts": _to_epoch(entry.created_at),
                },
            )
            ts = db.execute(
                text("SELECT created_at FROM embedding_cache WHERE text_hash = :h"),
                {"h": h},
            ).scalar_one()
            db.commit()
        return _from_epoch(ts)

    def clear(self) -> None:
        with self._session() as db:
            db.execute(text("DELETE FROM embedding_cache"))
            db.commit()

    def dispose(self) -> None:
        self._engine.dispose()
