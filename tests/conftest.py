"""Shared fixtures and fakes for the DAO Notifier test suite.

Async code is driven with asyncio.run() inside plain test functions, so
each test owns its event loop and its SQLite connection.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from pathlib import Path
from typing import Optional

import pytest
from telegram import Bot
from telegram.error import TelegramError

from dao_notifier.config import (
    AppConfig,
    DaoInfoConfig,
    NotifyConfig,
    ServerConfig,
    TelegramConfig,
)
from dao_notifier.dao_info.client import DaoInfo
from dao_notifier.database import queries
from dao_notifier.database.db import Database
from dao_notifier.database.models import Registration

API_KEY = "test-api-key"
WEBHOOK_SECRET = "test-webhook-secret"
BOT_USERNAME = "dao_dao_notifier_bot"


def make_config(db_path: str, **notify_overrides) -> AppConfig:
    """Build an AppConfig without touching settings.yaml or the environment."""
    notify = {"api_key": API_KEY}
    notify.update(notify_overrides)
    return AppConfig(
        telegram=TelegramConfig(
            bot_token="123456:TEST-TOKEN",
            webhook_secret=WEBHOOK_SECRET,
            bot_username=BOT_USERNAME,
        ),
        notify=NotifyConfig(**notify),
        dao_info=DaoInfoConfig(base_url="https://indexer.test/q/daodao-dao-info"),
        server=ServerConfig(),
        database_path=db_path,
        log_level="DEBUG",
    )


class FakeTelegram:
    """Stands in for TelegramNotifier.

    ``failures`` maps a chat ID to how many attempts fail before one
    succeeds. Every send yields once to the event loop so concurrent
    sends actually overlap.
    """

    def __init__(self, failures: Optional[dict[str, int]] = None) -> None:
        self.failures = dict(failures or {})
        self.attempts: Counter[str] = Counter()
        self.sent: list[tuple[str, Optional[str], str]] = []
        self.completed_at_start: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.admins: set[int] = set()
        self.closed = False
        self.bot = Bot("123456:TEST-TOKEN")

    async def send(
        self,
        chat_id: str,
        message_thread_id: Optional[str],
        text: str,
        disable_link_preview: bool = False,
    ) -> str:
        self.attempts[chat_id] += 1
        self.completed_at_start.append(len(self.sent))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if self.attempts[chat_id] <= self.failures.get(chat_id, 0):
                raise TelegramError("Bad Gateway")
            self.sent.append((chat_id, message_thread_id, text))
            return str(len(self.sent))
        finally:
            self.in_flight -= 1

    async def is_chat_admin(self, chat_id: int, user_id: int) -> bool:
        return user_id in self.admins

    async def close(self) -> None:
        self.closed = True


class FakeDaoInfo:
    """Stands in for DaoInfoClient with a fixed set of known DAOs."""

    def __init__(self, *daos: DaoInfo) -> None:
        self.daos = {dao.address: dao for dao in daos}
        self.lookups: list[str] = []
        self.closed = False

    async def get_dao_info(self, address: str) -> Optional[DaoInfo]:
        self.lookups.append(address)
        return self.daos.get(address)

    async def close(self) -> None:
        self.closed = True


SPARKLE = DaoInfo(
    address="dao1sparkle",
    chain_id="osmosis-1",
    name="Sparkle DAO",
    url="https://daodao.zone/dao/dao1sparkle",
)


async def seed(db: Database, chain_id: str, dao: str, *destinations) -> None:
    """Register each (chat_id, thread_id) destination for a DAO."""
    for chat_id, thread_id in destinations:
        await queries.insert_registration(
            db, Registration(chain_id, dao, chat_id, thread_id),
        )


def seed_file(db_path: str, chain_id: str, dao: str, *destinations) -> None:
    """Seed a database file from synchronous test code."""

    async def _run() -> None:
        async with Database(db_path) as db:
            await seed(db, chain_id, dao, *destinations)

    asyncio.run(_run())


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "notifier.db")
