"""Tests for the DAO indexer client."""

from __future__ import annotations

import asyncio

import httpx

from dao_notifier.config import DaoInfoConfig
from dao_notifier.dao_info.client import DaoInfo, DaoInfoClient

CONFIG = DaoInfoConfig(base_url="https://indexer.test/q/daodao-dao-info")

VALID = {
    "chainId": "osmosis-1",
    "url": "https://daodao.zone/dao/dao1abc",
    "value": {"config": {"name": "Sparkle DAO", "description": "..."}},
}


def _lookup(handler, address="dao1abc"):
    async def _main():
        async with DaoInfoClient(CONFIG, transport=httpx.MockTransport(handler)) as client:
            return await client.get_dao_info(address)

    return asyncio.run(_main())


def test_resolves_dao():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=VALID)

    info = _lookup(handler)
    assert info == DaoInfo(
        address="dao1abc",
        chain_id="osmosis-1",
        name="Sparkle DAO",
        url="https://daodao.zone/dao/dao1abc",
    )
    assert seen[0].url.params["address"] == "dao1abc"
    assert seen[0].url.path == "/q/daodao-dao-info"


def test_http_error_yields_none():
    assert _lookup(lambda request: httpx.Response(404, json={"error": "not found"})) is None


def test_invalid_json_yields_none():
    assert _lookup(lambda request: httpx.Response(200, content=b"<html>")) is None


def test_unexpected_shape_yields_none():
    assert _lookup(lambda request: httpx.Response(200, json={"chainId": "osmosis-1"})) is None
    assert _lookup(lambda request: httpx.Response(200, json=[VALID])) is None


def test_network_error_yields_none():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    assert _lookup(handler) is None
