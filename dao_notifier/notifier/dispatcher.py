"""DAO Notifier — Notification Dispatcher.

Fans one governance event out to every chat registered for its DAO:
render once, look up destinations, deliver in fixed-size concurrent
batches with a per-destination retry budget, and report how many
destinations received the message.

A destination whose retries run out is logged and counted as failed.
It never aborts the rest of the fan-out and never unregisters the chat.
"""

from __future__ import annotations

import asyncio
import hmac
import time
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence

from dao_notifier.config import NotifyConfig
from dao_notifier.database import queries
from dao_notifier.database.db import Database
from dao_notifier.database.models import Destination
from dao_notifier.notifier.events import NotificationEvent
from dao_notifier.notifier.formatters import RenderError, render
from dao_notifier.notifier.telegram_bot import TelegramNotifier
from dao_notifier.utils.health import HealthMonitor
from dao_notifier.utils.logger import get_logger
from dao_notifier.utils.resilience import retry_async

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════
# Errors & Results
# ═══════════════════════════════════════════════════════════


class DispatchError(Exception):
    """A notification request rejected before any delivery started.

    Attributes:
        status_code: HTTP status the API layer responds with.
        message: Error text for the response body.
    """

    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MissingParameterError(DispatchError):
    """The chain ID or DAO address is missing."""

    status_code = 400


class UnauthorizedError(DispatchError):
    """The caller's API key does not match the shared secret."""

    status_code = 401


class InvalidNotificationError(DispatchError):
    """The event kind is not one the renderer knows."""

    status_code = 400


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of an accepted notification.

    Attributes:
        count: Destinations that received the message.
        success: Always True once the request passed validation.
    """

    count: int
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "count": self.count}


def _batched(items: Sequence[Destination], size: int) -> Iterator[Sequence[Destination]]:
    """Yield consecutive slices of at most ``size`` items, in order."""
    for start in range(0, len(items), size):
        yield items[start:start + size]


# ═══════════════════════════════════════════════════════════
# Dispatcher
# ═══════════════════════════════════════════════════════════


class NotificationDispatcher:
    """Delivers rendered events to every registered destination.

    At most ``config.batch_size`` sends are in flight at any time:
    a batch is sent concurrently and fully awaited before the next one
    starts. Each destination gets ``config.max_attempts`` attempts.

    Attributes:
        config: Fan-out settings and the shared API key.
        db: Registration store.
        telegram: Delivery client.
        health: Optional health monitor fed with dispatch outcomes.
    """

    def __init__(
        self,
        config: NotifyConfig,
        db: Database,
        telegram: TelegramNotifier,
        health: Optional[HealthMonitor] = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            config: NotifyConfig from the app configuration.
            db: Active database instance.
            telegram: Client performing single sends.
            health: Monitor to record dispatch outcomes in.
        """
        self.config = config
        self.db = db
        self.telegram = telegram
        self.health = health
        self._send = retry_async(
            max_attempts=config.max_attempts,
            base_delay=config.retry_delay_seconds,
        )(telegram.send)

    @staticmethod
    def check_target(chain_id: Optional[str], dao: Optional[str]) -> None:
        """Raise MissingParameterError if chain_id or dao is empty."""
        if not chain_id or not chain_id.strip():
            raise MissingParameterError("Missing `chainId`.")
        if not dao or not dao.strip():
            raise MissingParameterError("Missing `dao`.")

    def check_request(
        self,
        chain_id: Optional[str],
        dao: Optional[str],
        api_key: Any,
    ) -> None:
        """Reject a request missing its target or carrying a wrong API key.

        Runs before the event body is parsed, so unauthenticated callers
        never see body validation errors.

        Raises:
            MissingParameterError: chain_id or dao is empty.
            UnauthorizedError: api_key is not the configured string.
        """
        self.check_target(chain_id, dao)

        if not isinstance(api_key, str) or not hmac.compare_digest(
            api_key.encode("utf-8"), self.config.api_key.encode("utf-8"),
        ):
            logger.warning("Rejected notification for %s/%s: invalid API key", chain_id, dao)
            raise UnauthorizedError("Invalid API key.")

    async def notify(
        self,
        chain_id: Optional[str],
        dao: Optional[str],
        api_key: Optional[str],
        event: NotificationEvent,
    ) -> DispatchResult:
        """Validate a notification request and fan it out.

        Args:
            chain_id: Chain the DAO lives on.
            dao: DAO address.
            api_key: Credential supplied by the caller.
            event: The governance event to announce.

        Returns:
            DispatchResult with the number of successful deliveries.

        Raises:
            MissingParameterError: chain_id or dao is empty.
            UnauthorizedError: api_key does not match.
            InvalidNotificationError: the event kind cannot be rendered.
        """
        self.check_request(chain_id, dao, api_key)

        try:
            text = render(event, self.config.description_max_length)
        except RenderError as e:
            logger.warning("Rejected notification for %s/%s: %s", chain_id, dao, e)
            raise InvalidNotificationError("Invalid notification type.") from e

        destinations = await queries.get_destinations_for_dao(self.db, chain_id, dao)
        if not destinations:
            logger.info("No registrations for %s/%s, nothing to send", chain_id, dao)
            if self.health:
                self.health.record_dispatch(chain_id, dao, 0, 0, 0.0)
            return DispatchResult(count=0)

        started = time.monotonic()
        delivered = await self._fan_out(chain_id, dao, destinations, text)
        elapsed = time.monotonic() - started

        logger.info(
            "Notified %s/%s (%s, proposal %s): %d/%d delivered in %.2fs",
            chain_id, dao, event.kind, event.proposal_id,
            delivered, len(destinations), elapsed,
        )
        if self.health:
            self.health.record_dispatch(
                chain_id, dao, len(destinations), delivered, elapsed,
            )

        return DispatchResult(count=delivered)

    async def _fan_out(
        self,
        chain_id: str,
        dao: str,
        destinations: Sequence[Destination],
        text: str,
    ) -> int:
        """Deliver ``text`` batch by batch and count the successes."""
        delivered = 0
        batch_size = self.config.batch_size

        for number, batch in enumerate(_batched(destinations, batch_size), 1):
            logger.debug(
                "Batch %d for %s/%s: %d destinations", number, chain_id, dao, len(batch),
            )
            results = await asyncio.gather(
                *(self._deliver(chain_id, dao, dest, text) for dest in batch)
            )
            delivered += sum(1 for ok in results if ok)

        return delivered

    async def _deliver(
        self,
        chain_id: str,
        dao: str,
        destination: Destination,
        text: str,
    ) -> bool:
        """Send to one destination within its retry budget.

        Returns:
            True on success, False once every attempt has failed.
        """
        try:
            msg_id = await self._send(
                destination.chat_id,
                destination.message_thread_id,
                text,
                self.config.disable_link_preview,
            )
        except Exception as e:
            logger.error(
                "Notification to chat %s failed %d times for %s/%s: %s",
                destination, self.config.max_attempts, chain_id, dao, e,
            )
            if self.health:
                self.health.record_error("telegram", f"{destination}: {e}")
            return False

        logger.info(
            "Sent notification to chat %s for %s/%s (msg=%s)",
            destination, chain_id, dao, msg_id,
        )
        return True
