"""Aiosqlite persistence for conversations, memory, prompts and settings."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, TypeVar

from vivica.chat.models import Conversation
from vivica.db import get_connection
from vivica.errors import StorageError
from vivica.memory.models import MemoryEntry
from vivica.storage.models import PromptTemplate

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterable
    from pathlib import Path

    import aiosqlite

logger = logging.getLogger(__name__)

# aiosqlite re-raises the sqlite3 exception types unchanged.
_STORAGE_ERRORS = (sqlite3.Error, OSError)

T = TypeVar("T")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS conversations (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL DEFAULT '',
        messages TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_conversations_created_at ON conversations (created_at)",
    """
    CREATE TABLE IF NOT EXISTS memory (
        id TEXT PRIMARY KEY,
        content TEXT NOT NULL,
        category TEXT NOT NULL,
        importance INTEGER NOT NULL,
        tags TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL,
        last_accessed TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_memory_category ON memory (category)",
    "CREATE INDEX IF NOT EXISTS idx_memory_importance ON memory (importance)",
    "CREATE INDEX IF NOT EXISTS idx_memory_last_accessed ON memory (last_accessed)",
    """
    CREATE TABLE IF NOT EXISTS prompts (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        content TEXT NOT NULL,
        tags TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_prompts_name ON prompts (name)",
    "CREATE INDEX IF NOT EXISTS idx_prompts_created_at ON prompts (created_at)",
    """
    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
)


def _decode(action: str, decode: Callable[[Any], T], rows: Iterable[Any]) -> list[T]:
    """Decode stored rows, reporting corrupt data as StorageError."""
    try:
        return [decode(row) for row in rows]
    except (ValueError, KeyError, TypeError) as exc:
        raise StorageError(f"Corrupt data while trying to {action}: {exc}") from exc


class Store:
    """Local durable storage for the four collections.

    Defaults to ``settings.database_path``; pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).  Every write is a
    whole-entry ``INSERT OR REPLACE``; there is no partial update.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        db = await get_connection(self._db_path)
        if self._initialised:
            return db
        try:
            for statement in _SCHEMA:
                await db.execute(statement)
            await db.commit()
        except BaseException:
            await db.close()
            raise
        self._initialised = True
        logger.debug("Store schema ready")
        return db

    @asynccontextmanager
    async def _transaction(self, action: str) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection, commit on success, and map driver errors to StorageError."""
        try:
            db = await self._connect()
        except _STORAGE_ERRORS as exc:
            raise StorageError(f"Could not open database to {action}: {exc}") from exc
        try:
            yield db
            await db.commit()
        except _STORAGE_ERRORS as exc:
            raise StorageError(f"Failed to {action}: {exc}") from exc
        finally:
            await db.close()

    async def _delete(self, table: str, entry_id: str) -> bool:
        async with self._transaction(f"delete from {table}") as db:
            cursor = await db.execute(f"DELETE FROM {table} WHERE id = ?", (entry_id,))  # noqa: S608
            return cursor.rowcount > 0

    # -- Conversations ---------------------------------------------------------

    async def put_conversation(self, conversation: Conversation) -> None:
        """Insert or fully overwrite a conversation."""
        async with self._transaction("save conversation") as db:
            await db.execute(
                """
                INSERT OR REPLACE INTO conversations
                    (id, title, messages, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                conversation.to_row(),
            )

    async def get_conversations(self) -> list[Conversation]:
        """Return all conversations, newest-created first."""
        async with self._transaction("load conversations") as db:
            cursor = await db.execute(
                "SELECT id, title, messages, created_at, updated_at FROM conversations "
                "ORDER BY created_at DESC"
            )
            rows = await cursor.fetchall()
        return _decode("load conversations", Conversation.from_row, rows)

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Fetch a conversation by ID, or None if not found."""
        async with self._transaction("load conversation") as db:
            cursor = await db.execute(
                "SELECT id, title, messages, created_at, updated_at FROM conversations "
                "WHERE id = ?",
                (conversation_id,),
            )
            row = await cursor.fetchone()
        return _decode("load conversation", Conversation.from_row, [row])[0] if row else None

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation. Returns True if a row was removed."""
        return await self._delete("conversations", conversation_id)

    # -- Memory ----------------------------------------------------------------

    async def put_memory(self, entry: MemoryEntry) -> None:
        """Insert or fully overwrite a memory entry."""
        async with self._transaction("save memory") as db:
            await db.execute(
                """
                INSERT OR REPLACE INTO memory
                    (id, content, category, importance, tags, created_at, last_accessed)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                entry.to_row(),
            )

    async def get_memories(self, limit: int | None = None) -> list[MemoryEntry]:
        """Return memory entries by importance (highest first), newest first on ties.

        *limit* caps the result (top-N by importance); None returns everything.
        """
        async with self._transaction("load memories") as db:
            cursor = await db.execute(
                "SELECT id, content, category, importance, tags, created_at, last_accessed "
                "FROM memory ORDER BY importance DESC, created_at DESC LIMIT ?",
                (-1 if limit is None else limit,),
            )
            rows = await cursor.fetchall()
        return _decode("load memories", MemoryEntry.from_row, rows)

    async def get_memories_by_category(self, category: str) -> list[MemoryEntry]:
        """Return entries stored under *category*, highest importance first."""
        async with self._transaction("load memories by category") as db:
            cursor = await db.execute(
                "SELECT id, content, category, importance, tags, created_at, last_accessed "
                "FROM memory WHERE category = ? ORDER BY importance DESC, created_at DESC",
                (category,),
            )
            rows = await cursor.fetchall()
        return _decode("load memories", MemoryEntry.from_row, rows)

    async def delete_memory(self, memory_id: str) -> bool:
        """Delete a memory entry. Returns True if a row was removed."""
        return await self._delete("memory", memory_id)

    # -- Prompt templates ------------------------------------------------------

    async def put_prompt(self, prompt: PromptTemplate) -> None:
        """Insert or fully overwrite a prompt template."""
        async with self._transaction("save prompt") as db:
            await db.execute(
                """
                INSERT OR REPLACE INTO prompts
                    (id, name, content, tags, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                prompt.to_row(),
            )

    async def get_prompts(self) -> list[PromptTemplate]:
        """Return all prompt templates, oldest first."""
        async with self._transaction("load prompts") as db:
            cursor = await db.execute(
                "SELECT id, name, content, tags, created_at, updated_at FROM prompts "
                "ORDER BY created_at"
            )
            rows = await cursor.fetchall()
        return _decode("load prompts", PromptTemplate.from_row, rows)

    async def delete_prompt(self, prompt_id: str) -> bool:
        """Delete a prompt template. Returns True if a row was removed."""
        return await self._delete("prompts", prompt_id)

    # -- Settings --------------------------------------------------------------

    async def get_setting(self, key: str, default: Any = None) -> Any:
        """Return the JSON-decoded value stored under *key*, or *default*."""
        async with self._transaction("read setting") as db:
            cursor = await db.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = await cursor.fetchone()
        if not row:
            return default
        return _decode(f"read setting {key}", json.loads, [row[0]])[0]

    async def set_setting(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under *key*."""
        async with self._transaction("write setting") as db:
            await db.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (key, json.dumps(value)),
            )

    async def delete_setting(self, key: str) -> bool:
        """Remove *key*. Returns True if a row was removed."""
        async with self._transaction("delete setting") as db:
            cursor = await db.execute("DELETE FROM settings WHERE key = ?", (key,))
            return cursor.rowcount > 0
