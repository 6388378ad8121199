"""SQLite memory store for the four memory kinds, the prompt cache and the session index."""

import json
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from memoria.core.errors import StoreUnavailable
from memoria.core.logging import get_logger
from memoria.memory.base import (
    EpisodicEntry,
    ImportanceEntry,
    MemoryStore,
    PromptCacheEntry,
    SemanticEntry,
    STMEntry,
)

logger = get_logger("memory.store")


# Python 3.12+ fix: Register datetime adapters explicitly
def _adapt_datetime(dt: datetime) -> str:
    """Convert datetime to ISO format string for SQLite storage."""
    return dt.isoformat()


def _convert_datetime(val: bytes) -> datetime:
    """Convert ISO format string from SQLite to datetime."""
    return datetime.fromisoformat(val.decode())


sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("DATETIME", _convert_datetime)

SCHEMA = """
-- Short-term memory: bounded FIFO of recent turns per session
CREATE TABLE IF NOT EXISTS short_term_memory (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    turn_number INTEGER NOT NULL,
    user_text TEXT NOT NULL,
    agent_text TEXT NOT NULL,
    created_at DATETIME NOT NULL,
    UNIQUE (session_id, turn_number)
);

-- Importance memory: priority-ranked durable facts per user
CREATE TABLE IF NOT EXISTS importance_memory (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    content TEXT NOT NULL,
    tags TEXT,  -- JSON array
    priority INTEGER NOT NULL CHECK (priority BETWEEN 1 AND 5),
    last_updated DATETIME NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_importance_user
    ON importance_memory(user_id, priority DESC, last_updated DESC);

-- Semantic memory: key/value facts per user
CREATE TABLE IF NOT EXISTS semantic_memory (
    user_id TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    updated_at DATETIME NOT NULL,
    PRIMARY KEY (user_id, key)
);

-- Episodic memory: session summaries
CREATE TABLE IF NOT EXISTS episodic_memory (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    summary TEXT NOT NULL,
    tags TEXT,  -- JSON array
    importance REAL DEFAULT 0.5,
    created_at DATETIME NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_episodic_session
    ON episodic_memory(session_id, importance DESC, created_at DESC);

-- Precomputed system prompt per session
CREATE TABLE IF NOT EXISTS system_prompt_cache (
    session_id TEXT PRIMARY KEY,
    prompt TEXT NOT NULL,
    last_updated DATETIME NOT NULL
);

-- Session -> user index
CREATE TABLE IF NOT EXISTS sessions (
    session_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    last_active DATETIME NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_user
    ON sessions(user_id, last_active DESC);
"""

_IMPORTANCE_COLUMNS = "id, user_id, content, tags, priority, last_updated"
_EPISODE_COLUMNS = "id, session_id, summary, tags, importance, created_at"


def _limit(limit: int | None) -> int:
    # SQLite treats a negative LIMIT as unbounded
    return -1 if limit is None else limit


def _dump_tags(tags: list[str]) -> str | None:
    return json.dumps(list(tags)) if tags else None


def _load_tags(raw: str | None) -> list[str]:
    return json.loads(raw) if raw else []


class SQLiteMemoryStore(MemoryStore):
    """SQLite-backed memory store."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            # Use detect_types to enable our custom datetime converters
            self._conn = await aiosqlite.connect(
                self.db_path,
                detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
            )
            await self._conn.executescript(SCHEMA)
            await self._conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise StoreUnavailable(f"Cannot open memory store at {self.db_path}: {e}") from e
        logger.info(f"Connected to memory store: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreUnavailable("Memory store not connected. Call connect() first.")
        return self._conn

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Translate driver errors into StoreUnavailable."""
        conn = self.conn
        try:
            yield conn
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Store operation '{operation}' failed: {e}")
            raise StoreUnavailable(f"{operation} failed: {e}") from e

    # Short-term memory

    async def count_stm(self, session_id: str) -> int:
        async with self._guard("count_stm") as conn:
            async with conn.execute(
                "SELECT COUNT(*) FROM short_term_memory WHERE session_id = ?", (session_id,)
            ) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    async def last_turn_number(self, session_id: str) -> int:
        async with self._guard("last_turn_number") as conn:
            async with conn.execute(
                "SELECT MAX(turn_number) FROM short_term_memory WHERE session_id = ?",
                (session_id,),
            ) as cursor:
                row = await cursor.fetchone()
                return row[0] if row and row[0] is not None else 0

    async def insert_stm(self, entry: STMEntry) -> None:
        async with self._guard("insert_stm") as conn:
            await conn.execute(
                """INSERT INTO short_term_memory
                   (session_id, turn_number, user_text, agent_text, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    entry.session_id,
                    entry.turn_number,
                    entry.user_text,
                    entry.agent_text,
                    entry.created_at,
                ),
            )
            await conn.commit()

    async def delete_oldest_stm(self, session_id: str) -> int | None:
        async with self._guard("delete_oldest_stm") as conn:
            async with conn.execute(
                """SELECT id, turn_number FROM short_term_memory
                   WHERE session_id = ? ORDER BY turn_number ASC LIMIT 1""",
                (session_id,),
            ) as cursor:
                row = await cursor.fetchone()
            if not row:
                return None
            await conn.execute("DELETE FROM short_term_memory WHERE id = ?", (row[0],))
            await conn.commit()
            return row[1]

    async def list_stm(self, session_id: str, limit: int | None = None) -> list[STMEntry]:
        results = []
        async with self._guard("list_stm") as conn:
            async with conn.execute(
                """SELECT session_id, turn_number, user_text, agent_text, created_at
                   FROM short_term_memory WHERE session_id = ?
                   ORDER BY turn_number DESC LIMIT ?""",
                (session_id, _limit(limit)),
            ) as cursor:
                async for row in cursor:
                    results.append(
                        STMEntry(
                            session_id=row[0],
                            turn_number=row[1],
                            user_text=row[2],
                            agent_text=row[3],
                            created_at=row[4],
                        )
                    )
        results.reverse()
        return results

    async def clear_stm(self, session_id: str) -> int:
        async with self._guard("clear_stm") as conn:
            cursor = await conn.execute(
                "DELETE FROM short_term_memory WHERE session_id = ?", (session_id,)
            )
            await conn.commit()
            return cursor.rowcount

    # Importance memory

    def _row_to_importance(self, row: Any) -> ImportanceEntry:
        return ImportanceEntry(
            id=row[0],
            user_id=row[1],
            content=row[2],
            tags=_load_tags(row[3]),
            priority=row[4],
            last_updated=row[5],
        )

    async def insert_importance(self, entry: ImportanceEntry) -> str:
        async with self._guard("insert_importance") as conn:
            await conn.execute(
                f"INSERT INTO importance_memory ({_IMPORTANCE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    entry.id,
                    entry.user_id,
                    entry.content,
                    _dump_tags(entry.tags),
                    entry.priority,
                    entry.last_updated,
                ),
            )
            await conn.commit()
        return entry.id

    async def get_importance(self, entry_id: str) -> ImportanceEntry | None:
        async with self._guard("get_importance") as conn:
            async with conn.execute(
                f"SELECT {_IMPORTANCE_COLUMNS} FROM importance_memory WHERE id = ?", (entry_id,)
            ) as cursor:
                row = await cursor.fetchone()
                return self._row_to_importance(row) if row else None

    async def update_importance(self, entry_id: str, **fields: Any) -> ImportanceEntry | None:
        allowed_fields = ["content", "tags", "priority"]
        updates = []
        values: list[Any] = []

        for key, value in fields.items():
            if key in allowed_fields:
                updates.append(f"{key} = ?")
                values.append(_dump_tags(value) if key == "tags" else value)

        updates.append("last_updated = ?")
        values.append(fields.get("last_updated") or datetime.now())
        values.append(entry_id)

        async with self._guard("update_importance") as conn:
            cursor = await conn.execute(
                f"UPDATE importance_memory SET {', '.join(updates)} WHERE id = ?", values
            )
            await conn.commit()
            if cursor.rowcount == 0:
                return None
        return await self.get_importance(entry_id)

    async def delete_importance(self, entry_id: str) -> bool:
        async with self._guard("delete_importance") as conn:
            cursor = await conn.execute("DELETE FROM importance_memory WHERE id = ?", (entry_id,))
            await conn.commit()
            return cursor.rowcount > 0

    async def list_importance(
        self,
        user_id: str,
        min_priority: int = 1,
        limit: int | None = None,
    ) -> list[ImportanceEntry]:
        async with self._guard("list_importance") as conn:
            async with conn.execute(
                f"""SELECT {_IMPORTANCE_COLUMNS} FROM importance_memory
                    WHERE user_id = ? AND priority >= ?
                    ORDER BY priority DESC, last_updated DESC, id ASC
                    LIMIT ?""",
                (user_id, min_priority, _limit(limit)),
            ) as cursor:
                return [self._row_to_importance(row) async for row in cursor]

    async def count_importance(self, user_id: str) -> int:
        async with self._guard("count_importance") as conn:
            async with conn.execute(
                "SELECT COUNT(*) FROM importance_memory WHERE user_id = ?", (user_id,)
            ) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    # Semantic memory

    async def upsert_semantic(self, entry: SemanticEntry) -> None:
        async with self._guard("upsert_semantic") as conn:
            await conn.execute(
                """INSERT INTO semantic_memory (user_id, key, value, updated_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(user_id, key) DO UPDATE SET value=?, updated_at=?""",
                (
                    entry.user_id,
                    entry.key,
                    entry.value,
                    entry.updated_at,
                    entry.value,
                    entry.updated_at,
                ),
            )
            await conn.commit()

    async def get_semantic(self, user_id: str, key: str) -> SemanticEntry | None:
        async with self._guard("get_semantic") as conn:
            async with conn.execute(
                """SELECT user_id, key, value, updated_at FROM semantic_memory
                   WHERE user_id = ? AND key = ?""",
                (user_id, key),
            ) as cursor:
                row = await cursor.fetchone()
                if row:
                    return SemanticEntry(user_id=row[0], key=row[1], value=row[2], updated_at=row[3])
        return None

    async def list_semantic(self, user_id: str, limit: int | None = None) -> list[SemanticEntry]:
        async with self._guard("list_semantic") as conn:
            async with conn.execute(
                """SELECT user_id, key, value, updated_at FROM semantic_memory
                   WHERE user_id = ? ORDER BY updated_at DESC, key ASC LIMIT ?""",
                (user_id, _limit(limit)),
            ) as cursor:
                return [
                    SemanticEntry(user_id=row[0], key=row[1], value=row[2], updated_at=row[3])
                    async for row in cursor
                ]

    async def delete_semantic(self, user_id: str, key: str) -> bool:
        async with self._guard("delete_semantic") as conn:
            cursor = await conn.execute(
                "DELETE FROM semantic_memory WHERE user_id = ? AND key = ?", (user_id, key)
            )
            await conn.commit()
            return cursor.rowcount > 0

    # Episodic memory

    async def insert_episode(self, entry: EpisodicEntry) -> str:
        async with self._guard("insert_episode") as conn:
            await conn.execute(
                f"INSERT INTO episodic_memory ({_EPISODE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    entry.id,
                    entry.session_id,
                    entry.summary,
                    _dump_tags(entry.tags),
                    entry.importance,
                    entry.created_at,
                ),
            )
            await conn.commit()
        return entry.id

    async def list_episodes(self, session_id: str, limit: int | None = None) -> list[EpisodicEntry]:
        async with self._guard("list_episodes") as conn:
            async with conn.execute(
                f"""SELECT {_EPISODE_COLUMNS} FROM episodic_memory
                    WHERE session_id = ?
                    ORDER BY importance DESC, created_at DESC, id ASC
                    LIMIT ?""",
                (session_id, _limit(limit)),
            ) as cursor:
                return [
                    EpisodicEntry(
                        id=row[0],
                        session_id=row[1],
                        summary=row[2],
                        tags=_load_tags(row[3]),
                        importance=row[4],
                        created_at=row[5],
                    )
                    async for row in cursor
                ]

    # Prompt cache

    async def get_prompt_cache(self, session_id: str) -> PromptCacheEntry | None:
        async with self._guard("get_prompt_cache") as conn:
            async with conn.execute(
                "SELECT session_id, prompt, last_updated FROM system_prompt_cache WHERE session_id = ?",
                (session_id,),
            ) as cursor:
                row = await cursor.fetchone()
                if row:
                    return PromptCacheEntry(session_id=row[0], prompt=row[1], last_updated=row[2])
        return None

    async def upsert_prompt_cache(self, entry: PromptCacheEntry) -> None:
        async with self._guard("upsert_prompt_cache") as conn:
            await conn.execute(
                """INSERT INTO system_prompt_cache (session_id, prompt, last_updated)
                   VALUES (?, ?, ?)
                   ON CONFLICT(session_id) DO UPDATE SET prompt=?, last_updated=?""",
                (
                    entry.session_id,
                    entry.prompt,
                    entry.last_updated,
                    entry.prompt,
                    entry.last_updated,
                ),
            )
            await conn.commit()

    # Session index

    async def touch_session(self, session_id: str, user_id: str, when: datetime) -> None:
        async with self._guard("touch_session") as conn:
            await conn.execute(
                """INSERT INTO sessions (session_id, user_id, last_active)
                   VALUES (?, ?, ?)
                   ON CONFLICT(session_id) DO UPDATE SET user_id=?, last_active=?""",
                (session_id, user_id, when, user_id, when),
            )
            await conn.commit()

    async def get_session_user(self, session_id: str) -> str | None:
        async with self._guard("get_session_user") as conn:
            async with conn.execute(
                "SELECT user_id FROM sessions WHERE session_id = ?", (session_id,)
            ) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else None

    async def recent_sessions(self, user_id: str, limit: int) -> list[str]:
        async with self._guard("recent_sessions") as conn:
            async with conn.execute(
                """SELECT session_id FROM sessions WHERE user_id = ?
                   ORDER BY last_active DESC, session_id ASC LIMIT ?""",
                (user_id, limit),
            ) as cursor:
                return [row[0] async for row in cursor]
