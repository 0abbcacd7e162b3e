"""DAO Notifier — Database Query Operations.

All async database read/write operations. Every function:
  - Uses parameterized queries (? placeholders, never f-strings for values)
  - Handles connection via the Database instance
  - Commits after writes
  - Returns clean dataclasses or dictionaries (converts Row objects)
  - Logs operations at DEBUG level

A NULL messageThreadId means "the chat itself". SQL equality never
matches NULL, so destination-scoped queries switch to ``IS NULL``.
"""

from __future__ import annotations

from typing import Any, Optional

from dao_notifier.database.db import Database
from dao_notifier.database.models import Destination, Registration
from dao_notifier.utils.logger import get_logger

logger = get_logger(__name__)


def _row_to_dict(row: Any) -> dict[str, Any]:
    """Convert an aiosqlite Row to a plain dictionary."""
    return dict(row)


def _thread_clause(message_thread_id: Optional[str]) -> tuple[str, tuple[Any, ...]]:
    """Build the messageThreadId predicate and its parameters.

    Args:
        message_thread_id: Topic ID string, or None for the chat itself.

    Returns:
        (SQL fragment, params) to append to a WHERE clause.
    """
    if message_thread_id is None:
        return "messageThreadId IS NULL", ()
    return "messageThreadId = ?", (message_thread_id,)


# ═══════════════════════════════════════════════════════════
# Fan-out Lookup
# ═══════════════════════════════════════════════════════════


async def get_destinations_for_dao(
    db: Database, chain_id: str, dao: str,
) -> list[Destination]:
    """Return every destination registered for a DAO.

    Order is whatever SQLite returns; callers must not rely on it.

    Args:
        db: Active database instance.
        chain_id: Chain the DAO lives on.
        dao: DAO address.

    Returns:
        List of destinations, possibly empty.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT chatId, messageThreadId FROM registrations "
        "WHERE chainId = ? AND dao = ?",
        (chain_id, dao),
    )
    rows = await cursor.fetchall()
    destinations = [
        Destination(row["chatId"], row["messageThreadId"]) for row in rows
    ]
    logger.debug(
        "get_destinations_for_dao(%s, %s) → %d", chain_id, dao, len(destinations),
    )
    return destinations


# ═══════════════════════════════════════════════════════════
# Registration CRUD
# ═══════════════════════════════════════════════════════════


async def get_registration(
    db: Database,
    chain_id: str,
    dao: str,
    chat_id: str,
    message_thread_id: Optional[str] = None,
) -> Optional[Registration]:
    """Find the registration for an exact (chain, DAO, chat, topic) tuple.

    Returns:
        The Registration, or None if not found.
    """
    thread_sql, thread_params = _thread_clause(message_thread_id)
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT * FROM registrations "
        f"WHERE chainId = ? AND dao = ? AND chatId = ? AND {thread_sql} LIMIT 1",
        (chain_id, dao, chat_id, *thread_params),
    )
    row = await cursor.fetchone()
    logger.debug(
        "get_registration(%s, %s, %s/%s) → %s",
        chain_id, dao, chat_id, message_thread_id,
        "found" if row else "not found",
    )
    return Registration.from_db_row(_row_to_dict(row)) if row else None


async def insert_registration(db: Database, registration: Registration) -> bool:
    """Insert a registration unless the exact destination already tracks the DAO.

    The UNIQUE constraint does not catch duplicates with a NULL topic
    (SQLite treats NULLs as distinct), so existence is checked first.

    Args:
        db: Active database instance.
        registration: The registration to persist.

    Returns:
        True if a row was inserted, False if it already existed.
    """
    existing = await get_registration(
        db,
        registration.chain_id,
        registration.dao,
        registration.chat_id,
        registration.message_thread_id,
    )
    if existing is not None:
        return False

    conn = await db.get_connection()
    d = registration.to_db_dict()
    cursor = await conn.execute(
        """
        INSERT OR IGNORE INTO registrations (chainId, dao, chatId, messageThreadId)
        VALUES (?, ?, ?, ?)
        """,
        (d["chainId"], d["dao"], d["chatId"], d["messageThreadId"]),
    )
    await conn.commit()
    inserted = cursor.rowcount > 0
    logger.debug(
        "insert_registration(%s, %s, %s) → %s",
        registration.chain_id, registration.dao, registration.destination,
        inserted,
    )
    return inserted


async def delete_registration(
    db: Database,
    dao: str,
    chat_id: str,
    message_thread_id: Optional[str] = None,
) -> int:
    """Stop a destination from tracking a DAO.

    Args:
        db: Active database instance.
        dao: DAO address.
        chat_id: Destination chat.
        message_thread_id: Destination topic, or None for the chat itself.

    Returns:
        Number of rows deleted.
    """
    thread_sql, thread_params = _thread_clause(message_thread_id)
    conn = await db.get_connection()
    cursor = await conn.execute(
        f"DELETE FROM registrations WHERE dao = ? AND chatId = ? AND {thread_sql}",
        (dao, chat_id, *thread_params),
    )
    await conn.commit()
    logger.debug(
        "delete_registration(%s, %s/%s) → %d",
        dao, chat_id, message_thread_id, cursor.rowcount,
    )
    return cursor.rowcount


async def delete_registrations_for_chat(db: Database, chat_id: str) -> int:
    """Remove every registration of a chat, in any topic.

    Args:
        db: Active database instance.
        chat_id: Chat the bot lost membership in.

    Returns:
        Number of rows deleted.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "DELETE FROM registrations WHERE chatId = ?",
        (chat_id,),
    )
    await conn.commit()
    logger.debug("delete_registrations_for_chat(%s) → %d", chat_id, cursor.rowcount)
    return cursor.rowcount


async def list_registrations_for_destination(
    db: Database,
    chat_id: str,
    message_thread_id: Optional[str] = None,
) -> list[Registration]:
    """List the registrations of one chat/topic, oldest first.

    Returns:
        List of Registration instances.
    """
    thread_sql, thread_params = _thread_clause(message_thread_id)
    conn = await db.get_connection()
    cursor = await conn.execute(
        f"SELECT * FROM registrations WHERE chatId = ? AND {thread_sql} ORDER BY id",
        (chat_id, *thread_params),
    )
    rows = await cursor.fetchall()
    logger.debug(
        "list_registrations_for_destination(%s/%s) → %d",
        chat_id, message_thread_id, len(rows),
    )
    return [Registration.from_db_row(_row_to_dict(row)) for row in rows]


async def count_registrations(db: Database) -> int:
    """Count all registrations (for health reporting)."""
    conn = await db.get_connection()
    cursor = await conn.execute("SELECT COUNT(*) FROM registrations")
    row = await cursor.fetchone()
    return row[0] if row else 0
