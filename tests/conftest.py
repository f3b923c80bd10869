"""Pytest fixtures for pairlink tests."""

from __future__ import annotations

import asyncio
from typing import Callable

import pytest

from adapters.session_store import SessionStore
from core.config import AppSettings
from core.services.pairing import PairingService
from fakes import FakeClient, StaticProvider

VALID_NUMBER = "16502530000"


@pytest.fixture
def settings(tmp_path):
    """Settings with every delay zeroed and sessions under tmp_path."""
    return AppSettings(
        _env_file=None,
        sessions_dir=tmp_path / "sessions",
        pairing_code_delay_seconds=0,
        open_grace_seconds=0,
        flush_grace_seconds=0,
        teardown_delay_seconds=0,
        restart_backoff_seconds=0,
        pairing_timeout_seconds=2.0,
        pastebin_api_key="test-key",
    )


@pytest.fixture
def store(settings):
    return SessionStore.from_settings(settings)


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def providers():
    return [
        StaticProvider("primary"),
        StaticProvider("secondary", url="https://files.example/creds.json"),
        StaticProvider("tertiary", url="https://never.example/creds.json"),
    ]


@pytest.fixture
def service(settings, client, store, providers):
    return PairingService(settings=settings, client=client, store=store, providers=providers)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until `predicate()` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)
