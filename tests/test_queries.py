"""Tests for the registration store."""

from __future__ import annotations

import asyncio

from dao_notifier.database import queries
from dao_notifier.database.db import Database
from dao_notifier.database.models import Destination, Registration, to_id_string

import pytest


def _run(db_path, scenario):
    async def _main():
        async with Database(db_path) as db:
            return await scenario(db)

    return asyncio.run(_main())


def test_to_id_string_normalizes_ids():
    assert to_id_string(-1001234567890123) == "-1001234567890123"
    assert to_id_string("42") == "42"
    assert to_id_string(None) is None
    with pytest.raises(ValueError):
        to_id_string(True)
    with pytest.raises(ValueError):
        to_id_string("abc")


def test_initialize_is_idempotent(db_path):
    async def scenario(db):
        await db.initialize()
        await queries.insert_registration(db, Registration("osmosis-1", "dao1", "1"))
        await db.initialize()
        return await queries.count_registrations(db)

    assert _run(db_path, scenario) == 1


def test_insert_is_idempotent_for_chat_without_topic(db_path):
    async def scenario(db):
        reg = Registration("osmosis-1", "dao1abc", "-100123")
        first = await queries.insert_registration(db, reg)
        second = await queries.insert_registration(db, reg)
        return first, second, await queries.count_registrations(db)

    assert _run(db_path, scenario) == (True, False, 1)


def test_topics_of_one_chat_are_separate_destinations(db_path):
    async def scenario(db):
        for thread in (None, "7", "8", "7"):
            await queries.insert_registration(
                db, Registration("osmosis-1", "dao1abc", "-100123", thread),
            )
        return await queries.get_destinations_for_dao(db, "osmosis-1", "dao1abc")

    destinations = _run(db_path, scenario)
    assert sorted(destinations, key=str) == [
        Destination("-100123", "7"),
        Destination("-100123", "8"),
        Destination("-100123", None),
    ]


def test_lookup_is_scoped_to_chain_and_dao(db_path):
    async def scenario(db):
        await queries.insert_registration(db, Registration("osmosis-1", "dao1abc", "1"))
        await queries.insert_registration(db, Registration("juno-1", "dao1abc", "2"))
        await queries.insert_registration(db, Registration("osmosis-1", "dao1xyz", "3"))
        return await queries.get_destinations_for_dao(db, "osmosis-1", "dao1abc")

    assert _run(db_path, scenario) == [Destination("1")]


def test_get_registration_matches_null_topic_exactly(db_path):
    async def scenario(db):
        await queries.insert_registration(db, Registration("osmosis-1", "dao1abc", "1", "7"))
        in_chat = await queries.get_registration(db, "osmosis-1", "dao1abc", "1")
        in_topic = await queries.get_registration(db, "osmosis-1", "dao1abc", "1", "7")
        return in_chat, in_topic

    in_chat, in_topic = _run(db_path, scenario)
    assert in_chat is None
    assert in_topic.message_thread_id == "7"
    assert in_topic.id is not None
    assert in_topic.created_at


def test_delete_registration_only_touches_one_destination(db_path):
    async def scenario(db):
        await queries.insert_registration(db, Registration("osmosis-1", "dao1abc", "1"))
        await queries.insert_registration(db, Registration("osmosis-1", "dao1abc", "1", "7"))
        deleted = await queries.delete_registration(db, "dao1abc", "1")
        left = await queries.list_registrations_for_destination(db, "1", "7")
        return deleted, left, await queries.count_registrations(db)

    deleted, left, total = _run(db_path, scenario)
    assert deleted == 1
    assert [r.dao for r in left] == ["dao1abc"]
    assert total == 1


def test_delete_registrations_for_chat_covers_all_topics(db_path):
    async def scenario(db):
        await queries.insert_registration(db, Registration("osmosis-1", "dao1", "1"))
        await queries.insert_registration(db, Registration("osmosis-1", "dao2", "1", "7"))
        await queries.insert_registration(db, Registration("osmosis-1", "dao1", "2"))
        deleted = await queries.delete_registrations_for_chat(db, "1")
        return deleted, await queries.count_registrations(db)

    assert _run(db_path, scenario) == (2, 1)


def test_list_registrations_oldest_first(db_path):
    async def scenario(db):
        for dao in ("dao3", "dao1", "dao2"):
            await queries.insert_registration(db, Registration("osmosis-1", dao, "1"))
        return await queries.list_registrations_for_destination(db, "1")

    assert [r.dao for r in _run(db_path, scenario)] == ["dao3", "dao1", "dao2"]
