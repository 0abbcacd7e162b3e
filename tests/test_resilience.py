"""Tests for the retry decorator."""

from __future__ import annotations

import asyncio

import pytest

from dao_notifier.utils.resilience import retry_async


class Flaky:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"attempt {self.calls}")
        return value


def test_returns_after_transient_failures():
    flaky = Flaky(failures=2)
    wrapped = retry_async(max_attempts=3)(flaky)

    assert asyncio.run(wrapped("ok")) == "ok"
    assert flaky.calls == 3


def test_reraises_last_error_when_exhausted():
    flaky = Flaky(failures=5)
    wrapped = retry_async(max_attempts=3)(flaky)

    with pytest.raises(ConnectionError, match="attempt 3"):
        asyncio.run(wrapped("ok"))
    assert flaky.calls == 3


def test_unlisted_exceptions_are_not_retried():
    calls = []

    @retry_async(max_attempts=3, exceptions=(ConnectionError,))
    async def broken():
        calls.append(1)
        raise KeyError("nope")

    with pytest.raises(KeyError):
        asyncio.run(broken())
    assert len(calls) == 1


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        retry_async(max_attempts=0)
