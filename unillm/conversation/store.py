"""
SQLite-backed conversation store.

The core transforms are pure; persisting the conversation between turns is
the caller's job.  This store is the reference persistence boundary: every
payload is boxed with :func:`unillm.conversation.codec.serialize` before it
reaches ``json.dumps``, so raw bytes never hit the encoder.

Uses ``aiosqlite`` with a write lock to serialise mutations.  There is no
compare-and-swap: when two turns save the same conversation, the last
writer wins.

Schema is version-tracked via a ``schema_version`` table.  Migrations are
applied automatically on ``init()``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from unillm.conversation import codec
from unillm.conversation.meta import get_meta

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Schema management
# ---------------------------------------------------------------------------

SCHEMA_VERSION = 1

MIGRATIONS: dict[int, list[str]] = {
    1: [
        """CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER NOT NULL
        )""",
        """CREATE TABLE IF NOT EXISTS conversations (
            conversation_id TEXT PRIMARY KEY,
            provider TEXT NOT NULL,
            turn_number INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            payload TEXT NOT NULL
        )""",
        """CREATE INDEX IF NOT EXISTS idx_conversations_updated
           ON conversations(updated_at)""",
    ],
}


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ConversationStore:
    """
    Async SQLite store for conversations in their stored form.

    Usage::

        store = ConversationStore("~/.unillm/conversations.db")
        await store.init()
        await store.save("c1", "bedrock", result.conversation)
        conversation = await store.load("c1")
        await store.close()
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path).expanduser().resolve()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._write_lock = asyncio.Lock()
        self._db: aiosqlite.Connection | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> None:
        """Open the database and ensure the schema is up to date."""
        self._db = await aiosqlite.connect(str(self.db_path))
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._run_migrations()

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> "ConversationStore":
        await self.init()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("ConversationStore is not initialised; call init() first")
        return self._db

    # ------------------------------------------------------------------
    # Migration runner
    # ------------------------------------------------------------------

    async def _get_schema_version(self) -> int:
        """Return the current schema version, or 0 if not initialised."""
        db = self._conn()
        cursor = await db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if await cursor.fetchone() is None:
            return 0
        cursor = await db.execute("SELECT version FROM schema_version LIMIT 1")
        row = await cursor.fetchone()
        return 0 if row is None else int(row[0])

    async def _set_schema_version(self, version: int) -> None:
        db = self._conn()
        await db.execute("DELETE FROM schema_version")
        await db.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))

    async def _run_migrations(self) -> None:
        db = self._conn()
        current = await self._get_schema_version()
        if current >= SCHEMA_VERSION:
            return

        for version in range(current + 1, SCHEMA_VERSION + 1):
            stmts = MIGRATIONS.get(version)
            if stmts is None:
                raise RuntimeError(f"Missing migration for schema version {version}")
            for stmt in stmts:
                await db.execute(stmt)
            await self._set_schema_version(version)
            logger.debug("Applied conversation store migration %d", version)

        await db.commit()

    async def get_schema_version(self) -> int:
        return await self._get_schema_version()

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def save(self, conversation_id: str, provider: str, conversation: Any) -> int:
        """
        Insert or replace a conversation and return its turn number.

        *conversation* should be the stored form produced by the turn
        orchestrator; any bytes still present are boxed.
        """
        db = self._conn()
        turn = get_meta(conversation).turn_number
        payload = json.dumps(codec.serialize(conversation))
        now = datetime.now(timezone.utc).isoformat()

        async with self._write_lock:
            await db.execute(
                """INSERT INTO conversations
                   (conversation_id, provider, turn_number, created_at, updated_at, payload)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(conversation_id) DO UPDATE SET
                       provider = excluded.provider,
                       turn_number = excluded.turn_number,
                       updated_at = excluded.updated_at,
                       payload = excluded.payload""",
                (conversation_id, provider, turn, now, now, payload),
            )
            await db.commit()

        logger.debug("Saved conversation %s at turn %d", conversation_id, turn)
        return turn

    async def load(self, conversation_id: str, *, unbox: bool = False) -> Any | None:
        """
        Return the stored conversation, or ``None`` if not found.

        Boxed binary is left boxed unless *unbox* is set.  The stored form
        is what the orchestrator expects, so most callers leave it boxed.
        """
        db = self._conn()
        cursor = await db.execute(
            "SELECT payload FROM conversations WHERE conversation_id = ?",
            (conversation_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        conversation = json.loads(row[0])
        return codec.deserialize(conversation) if unbox else conversation

    async def list_conversations(self) -> list[dict]:
        """Return conversation summaries, most recently updated first."""
        db = self._conn()
        cursor = await db.execute(
            """SELECT conversation_id, provider, turn_number, created_at, updated_at
               FROM conversations ORDER BY updated_at DESC"""
        )
        rows = await cursor.fetchall()
        return [
            {
                "conversation_id": row[0],
                "provider": row[1],
                "turn_number": row[2],
                "created_at": row[3],
                "updated_at": row[4],
            }
            for row in rows
        ]

    async def delete(self, conversation_id: str) -> bool:
        """Delete a conversation.  Returns ``False`` if it did not exist."""
        db = self._conn()
        async with self._write_lock:
            cursor = await db.execute(
                "DELETE FROM conversations WHERE conversation_id = ?",
                (conversation_id,),
            )
            await db.commit()
        return cursor.rowcount > 0
