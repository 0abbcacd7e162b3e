"""DAO Notifier — Notifier Package.

Telegram notification system for DAO governance events.
Components:
  - events: notification event model and kinds
  - formatters: MarkdownV2 message templates per event kind
  - telegram_bot: Async Telegram bot client
  - dispatcher: batched fan-out to registered chats with retry
  - commands: Telegram webhook command handling
"""

from dao_notifier.notifier.events import EventKind, NotificationEvent
from dao_notifier.notifier.formatters import RenderError, escape_markdown_v2, render
from dao_notifier.notifier.telegram_bot import TelegramNotifier
from dao_notifier.notifier.dispatcher import (
    DispatchError,
    DispatchResult,
    InvalidNotificationError,
    MissingParameterError,
    NotificationDispatcher,
    UnauthorizedError,
)
from dao_notifier.notifier.commands import CommandHandler

__all__ = [
    "EventKind",
    "NotificationEvent",
    "RenderError",
    "escape_markdown_v2",
    "render",
    "TelegramNotifier",
    "DispatchError",
    "DispatchResult",
    "InvalidNotificationError",
    "MissingParameterError",
    "NotificationDispatcher",
    "UnauthorizedError",
    "CommandHandler",
]
