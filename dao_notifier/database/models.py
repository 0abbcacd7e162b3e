"""DAO Notifier — Data Models.

Dataclasses for the persisted registration rows and the delivery
destinations derived from them.

Registration includes:
  - to_db_dict(): converts to a dict suitable for SQLite insertion
  - from_db_row(row): classmethod to reconstruct from a DB row dict
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


def to_id_string(value: Any) -> Optional[str]:
    """Normalize a Telegram chat/thread ID to its decimal string form.

    Telegram IDs can exceed the 53-bit range of JSON doubles, so they are
    stored and compared as strings. ``None`` passes through.

    Args:
        value: An int, a decimal string, or None.

    Returns:
        The canonical decimal string, or None.

    Raises:
        ValueError: If the value is not an integer.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a valid Telegram ID: {value!r}")
    return str(int(value))


@dataclass(frozen=True)
class Destination:
    """A (chat, optional topic) pair; the unit of message delivery.

    Attributes:
        chat_id: Decimal string chat ID (negative for groups).
        message_thread_id: Decimal string forum topic ID, or None for
            the chat itself.
    """

    chat_id: str
    message_thread_id: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.chat_id}/{self.message_thread_id}"


@dataclass
class Registration:
    """A subscription of one destination to one DAO.

    Attributes:
        chain_id: Blockchain network identifier (e.g. "osmosis-1").
        dao: DAO contract address.
        chat_id: Destination chat, as a decimal string.
        message_thread_id: Forum topic within the chat, or None.
        id: Row ID, set once persisted.
        created_at: Row creation timestamp from SQLite.
        updated_at: Row update timestamp from SQLite.
    """

    chain_id: str
    dao: str
    chat_id: str
    message_thread_id: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def destination(self) -> Destination:
        return Destination(self.chat_id, self.message_thread_id)

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for SQLite insertion.

        Returns:
            Dict keyed by column name.
        """
        return {
            "chainId": self.chain_id,
            "dao": self.dao,
            "chatId": self.chat_id,
            "messageThreadId": self.message_thread_id,
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "Registration":
        """Construct a Registration from a database row dictionary.

        Args:
            row: Dictionary with column names as keys.

        Returns:
            A Registration instance.
        """
        return cls(
            chain_id=row["chainId"],
            dao=row["dao"],
            chat_id=row["chatId"],
            message_thread_id=row.get("messageThreadId"),
            id=row.get("id"),
            created_at=row.get("createdAt"),
            updated_at=row.get("updatedAt"),
        )
