"""Pytest fixtures for matterhook tests."""

import tempfile
from pathlib import Path

import pytest

from matterhook.bus import Message, MessageBus
from matterhook.config.schema import ENV_VARS
from matterhook.telemetry.metrics import RelayMetrics


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every environment variable the config layer reads."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture
def metrics():
    """Counters on a private registry."""
    return RelayMetrics()


@pytest.fixture
def buffered_bus():
    """A bus that never blocks the publisher in tests."""
    return MessageBus(capacity=100)


@pytest.fixture
def sample_message():
    return Message(
        text="hello world",
        channel="general",
        username="alice",
        userid="u-1",
        account="discord.mine",
        protocol="discord",
        gateway="gw1",
        parent_id="p-9",
        timestamp="2024-05-01T10:00:00Z",
        id="m-1",
    )
