"""DAO Notifier — Main Entry Point.

Wires config, database, Telegram bot, DAO info client, dispatcher and
command handler together and serves the HTTP API with uvicorn.

Usage:
    python -m dao_notifier.main
    python scripts/run.py
"""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from dao_notifier.api.app import AppComponents, create_app
from dao_notifier.config import AppConfig, load_config
from dao_notifier.dao_info.client import DaoInfoClient
from dao_notifier.database.db import Database
from dao_notifier.notifier.commands import CommandHandler
from dao_notifier.notifier.dispatcher import NotificationDispatcher
from dao_notifier.notifier.telegram_bot import TelegramNotifier
from dao_notifier.utils.health import HealthMonitor
from dao_notifier.utils.logger import get_logger, set_log_level

logger = get_logger(__name__)


def build_components(config: AppConfig) -> AppComponents:
    """Construct every component from the configuration.

    Nothing touches the network or the database here; the app's
    lifespan opens connections.

    Args:
        config: Loaded application configuration.

    Returns:
        Wired AppComponents.
    """
    health = HealthMonitor()
    db = Database(config.database_path)
    telegram = TelegramNotifier(
        config.telegram, connection_pool_size=config.notify.batch_size,
    )
    dao_info = DaoInfoClient(config.dao_info)

    dispatcher = NotificationDispatcher(config.notify, db, telegram, health)
    commands = CommandHandler(config.telegram, db, telegram, dao_info, health)

    return AppComponents(
        config=config,
        db=db,
        telegram=telegram,
        dao_info=dao_info,
        dispatcher=dispatcher,
        commands=commands,
        health=health,
    )


def create_default_app() -> FastAPI:
    """Load configuration from disk/env and build the app.

    Usable as a uvicorn factory: ``uvicorn dao_notifier.main:create_default_app --factory``.
    """
    config = load_config()
    set_log_level(config.log_level)
    return create_app(build_components(config))


def main() -> None:
    """Application entry point."""
    config = load_config()
    set_log_level(config.log_level)

    app = create_app(build_components(config))
    logger.info(
        "═══ Starting DAO Notifier on %s:%d ═══", config.server.host, config.server.port,
    )
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_config=None)


if __name__ == "__main__":
    main()
