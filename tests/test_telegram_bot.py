"""Tests for the Telegram delivery client."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from telegram.constants import ChatMemberStatus, ParseMode
from telegram.error import NetworkError, TelegramError

from conftest import make_config
from dao_notifier.notifier.telegram_bot import TelegramNotifier


class StubBot:
    def __init__(self, error=None, admins=()):
        self.error = error
        self.admins = list(admins)
        self.calls = []

    async def send_message(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(message_id=77)

    async def get_chat_administrators(self, chat_id):
        if self.error:
            raise self.error
        return self.admins


def _notifier(bot):
    return TelegramNotifier(make_config("unused.db").telegram, bot=bot)


def test_send_converts_ids_at_the_boundary():
    bot = StubBot()
    msg_id = asyncio.run(_notifier(bot).send("-1001234567890123", "7", "*hi*", True))

    assert msg_id == "77"
    call = bot.calls[0]
    assert call["chat_id"] == -1001234567890123
    assert call["message_thread_id"] == 7
    assert call["parse_mode"] == ParseMode.MARKDOWN_V2
    assert call["link_preview_options"].is_disabled is True


def test_send_without_topic():
    bot = StubBot()
    asyncio.run(_notifier(bot).send("42", None, "hi"))

    assert bot.calls[0]["message_thread_id"] is None
    assert bot.calls[0]["link_preview_options"].is_disabled is False


def test_send_failure_propagates():
    bot = StubBot(error=NetworkError("timed out"))
    with pytest.raises(TelegramError):
        asyncio.run(_notifier(bot).send("42", None, "hi"))


def test_is_chat_admin():
    admins = [
        SimpleNamespace(user=SimpleNamespace(id=1), status=ChatMemberStatus.OWNER),
        SimpleNamespace(user=SimpleNamespace(id=2), status=ChatMemberStatus.ADMINISTRATOR),
    ]
    notifier = _notifier(StubBot(admins=admins))

    assert asyncio.run(notifier.is_chat_admin(-100, 1)) is True
    assert asyncio.run(notifier.is_chat_admin(-100, 2)) is True
    assert asyncio.run(notifier.is_chat_admin(-100, 3)) is False


def test_failed_admin_lookup_means_not_admin():
    notifier = _notifier(StubBot(error=TelegramError("Forbidden")))
    assert asyncio.run(notifier.is_chat_admin(-100, 1)) is False
