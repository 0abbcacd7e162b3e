"""DAO Notifier — Notification Events.

The closed set of governance event kinds and the transient event
payload that drives one fan-out. Events are built per request and
never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventKind(str, Enum):
    """Governance event kinds the renderer has a template for."""

    PROPOSAL_CREATED = "proposal_created"
    PROPOSAL_EXECUTED = "proposal_executed"
    PROPOSAL_EXECUTION_FAILED = "proposal_execution_failed"
    PROPOSAL_CLOSED = "proposal_closed"


# Producers that predate typed events send no type at all.
DEFAULT_EVENT_KIND = EventKind.PROPOSAL_CREATED.value


@dataclass(frozen=True)
class NotificationEvent:
    """One governance event for one DAO.

    ``kind`` holds the raw tag from the producer. It is only checked
    against EventKind when rendering, so an unknown tag is rejected
    before any lookup or delivery happens.

    Attributes:
        kind: Event tag, e.g. "proposal_created".
        proposal_id: Proposal identifier within the DAO (e.g. "A42").
        dao_name: Display name of the DAO.
        dao_url: Link to the DAO page.
        url: Link to the proposal page.
        proposal_title: Proposal title, if provided.
        proposal_description: Long-form description, if provided.
        winning_choice: Winning option of a passed vote, if provided.
    """

    kind: str
    proposal_id: str
    dao_name: str
    dao_url: str
    url: str
    proposal_title: Optional[str] = None
    proposal_description: Optional[str] = None
    winning_choice: Optional[str] = None
