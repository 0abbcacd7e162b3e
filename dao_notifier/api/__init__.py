"""DAO Notifier — HTTP API Package.

FastAPI application exposing:
  - POST /notify/{chain_id}/{dao}: fan a governance event out to chats
  - POST /telegram: Telegram webhook for bot commands
  - GET /health: fan-out health status
"""

from dao_notifier.api.app import AppComponents, create_app
from dao_notifier.api.schemas import NotifyRequest

__all__ = [
    "AppComponents",
    "create_app",
    "NotifyRequest",
]
