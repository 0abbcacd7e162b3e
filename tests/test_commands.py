"""Tests for Telegram webhook command handling."""

from __future__ import annotations

import asyncio
from itertools import count

from conftest import SPARKLE, FakeDaoInfo, FakeTelegram, make_config, seed
from dao_notifier.database import queries
from dao_notifier.database.db import Database
from dao_notifier.database.models import Destination
from dao_notifier.notifier.commands import (
    REPLY_ADD_INSTRUCTIONS,
    UNRECOGNIZED_DAO,
    CommandHandler,
)

PRIVATE_CHAT = {"id": 42, "type": "private", "first_name": "Ada"}
GROUP_CHAT = {"id": -100123, "type": "supergroup", "title": "DAO Chat", "is_forum": True}
ADA = {"id": 42, "is_bot": False, "first_name": "Ada"}
BOT_USER = {
    "id": 999, "is_bot": True, "first_name": "DAO Bot", "username": "dao_dao_notifier_bot",
}

_ids = count(1)


def _message(text, chat=PRIVATE_CHAT, thread_id=None, reply_to=None, sender=ADA):
    message = {
        "message_id": next(_ids),
        "date": 1700000000,
        "chat": chat,
        "from": sender,
        "text": text,
    }
    if thread_id is not None:
        message["message_thread_id"] = thread_id
        message["is_topic_message"] = True
    if reply_to is not None:
        message["reply_to_message"] = reply_to
    return {"update_id": next(_ids), "message": message}


def _membership(old_status, new_status, chat=GROUP_CHAT):
    return {
        "update_id": next(_ids),
        "my_chat_member": {
            "chat": chat,
            "from": ADA,
            "date": 1700000000,
            "old_chat_member": {"user": BOT_USER, "status": old_status},
            "new_chat_member": {"user": BOT_USER, "status": new_status},
        },
    }


def _handle(db_path, *updates, admins=(), seeded=()):
    """Feed updates through a CommandHandler.

    Returns:
        (replies, destinations registered for the Sparkle DAO)
    """
    telegram = FakeTelegram()
    telegram.admins.update(admins)

    async def main():
        async with Database(db_path) as db:
            await seed(db, SPARKLE.chain_id, SPARKLE.address, *seeded)
            handler = CommandHandler(
                make_config(db_path).telegram, db, telegram, FakeDaoInfo(SPARKLE),
            )
            replies = [await handler.handle_update(update) for update in updates]
            destinations = await queries.get_destinations_for_dao(
                db, SPARKLE.chain_id, SPARKLE.address,
            )
            return replies, destinations

    return asyncio.run(main())


# ═══ Help & welcome ═════════════════════════════════════


def test_help_in_private_chat(db_path):
    (reply,), _ = _handle(db_path, _message("/help"))

    assert reply["method"] == "sendMessage"
    assert reply["chat_id"] == 42
    assert reply["parse_mode"] == "MarkdownV2"
    assert "/add \\- start tracking a DAO" in reply["text"]
    assert "message_thread_id" not in reply


def test_help_in_group_mentions_the_bot(db_path):
    (reply,), _ = _handle(
        db_path, _message("/help", chat=GROUP_CHAT, thread_id=7), admins={42},
    )

    assert reply["chat_id"] == -100123
    assert reply["message_thread_id"] == 7
    assert "/add@dao\\_dao\\_notifier\\_bot \\- start tracking a DAO" in reply["text"]


def test_non_admins_are_ignored_in_groups(db_path):
    (reply,), destinations = _handle(
        db_path, _message("/add dao1sparkle", chat=GROUP_CHAT),
    )

    assert reply is None
    assert destinations == []


def test_start_sends_welcome(db_path):
    (reply,), _ = _handle(db_path, _message("/start"))
    assert reply["text"].startswith("Hello\\! I'll send a message")


# ═══ Add / remove ═══════════════════════════════════════


def test_add_in_private_chat(db_path):
    first, second = _handle(
        db_path, _message("/add dao1sparkle"), _message("/add dao1sparkle"),
    )[0]
    _, destinations = _handle(db_path)

    assert first["text"].startswith("Got it\\!")
    assert "[Sparkle DAO](https://daodao.zone/dao/dao1sparkle)" in first["text"]
    assert second["text"].startswith("You're already tracking")
    assert destinations == [Destination("42")]


def test_add_by_link_in_forum_topic(db_path):
    (reply,), destinations = _handle(
        db_path,
        _message(
            "/add@dao_dao_notifier_bot https://daodao.zone/dao/dao1sparkle/proposals",
            chat=GROUP_CHAT,
            thread_id=7,
        ),
        admins={42},
    )

    assert reply["message_thread_id"] == 7
    assert "Got it" in reply["text"]
    assert destinations == [Destination("-100123", "7")]


def test_add_without_address_asks_for_one(db_path):
    (reply,), _ = _handle(db_path, _message("/add"))

    assert reply["text"] == REPLY_ADD_INSTRUCTIONS
    assert "parse_mode" not in reply


def test_add_unknown_dao(db_path):
    (reply,), destinations = _handle(db_path, _message("/add dao1nope"))

    assert reply["text"] == UNRECOGNIZED_DAO
    assert destinations == []


def test_reply_to_add_prompt_counts_as_add(db_path):
    prompt = _message(REPLY_ADD_INSTRUCTIONS, sender=BOT_USER)["message"]
    (reply,), destinations = _handle(
        db_path, _message("https://daodao.zone/dao/dao1sparkle", reply_to=prompt),
    )

    assert "Got it" in reply["text"]
    assert destinations == [Destination("42")]


def test_plain_chatter_is_ignored(db_path):
    (reply,), _ = _handle(db_path, _message("gm everyone"))
    assert reply is None


def test_remove(db_path):
    (reply,), destinations = _handle(
        db_path, _message("/remove dao1sparkle"), seeded=[("42", None)],
    )

    assert reply["text"].startswith("Ok, you're no longer tracking")
    assert destinations == []


def test_remove_when_not_tracking(db_path):
    (reply,), destinations = _handle(
        db_path, _message("/remove dao1sparkle"), seeded=[("42", "7")],
    )

    assert reply["text"].startswith("You're not tracking")
    assert destinations == [Destination("42", "7")]


# ═══ List ═══════════════════════════════════════════════


def test_list_empty(db_path):
    (reply,), _ = _handle(db_path, _message("/list"))
    assert reply["text"].startswith("You're not tracking any DAOs")


def test_list_shows_tracked_daos(db_path):
    (reply,), _ = _handle(db_path, _message("/list"), seeded=[("42", None)])

    assert reply["text"] == (
        "You're tracking the following DAOs:\n\n"
        "– [Sparkle DAO](https://daodao.zone/dao/dao1sparkle)"
    )


# ═══ Membership changes ═════════════════════════════════


def test_bot_removed_from_chat_drops_its_registrations(db_path):
    (reply,), destinations = _handle(
        db_path,
        _membership("member", "left"),
        seeded=[("-100123", None), ("-100123", "7"), ("42", None)],
    )

    assert reply is None
    assert destinations == [Destination("42")]


def test_bot_added_to_group_sends_welcome(db_path):
    (reply,), _ = _handle(db_path, _membership("left", "member"))

    assert reply["chat_id"] == -100123
    assert "_Only admins or owners can use the commands above_" in reply["text"]


def test_update_without_message_is_ignored(db_path):
    (reply,), _ = _handle(db_path, {"update_id": 1})
    assert reply is None
