"""Async SQLite connections for the local store.

Every store operation opens its own ``aiosqlite`` connection, runs, commits
and closes. The database file lives at ``settings.database_path`` unless the
caller passes an explicit path (test isolation).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite

from vivica.config import settings

if TYPE_CHECKING:
    from pathlib import Path

BUSY_TIMEOUT_MS = 5000


async def get_connection(path_override: Path | None = None) -> aiosqlite.Connection:
    """Open a local connection with WAL mode and a busy timeout.

    Parent directories are created on demand.
    """
    path = path_override or settings.database_path
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(str(path))
    try:
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    except BaseException:
        await conn.close()
        raise
    return conn
