"""Pytest configuration and fixtures."""

import threading
import time
from typing import Callable

import pytest

from clinassist.client import StreamingClient
from clinassist.context import Context
from clinassist.dispatch import StateDispatcher
from clinassist.models import ProviderName, StoredSettings
from clinassist.prompts import PromptStore
from clinassist.settings import InMemorySecretStore, SecureSettings

from tests.fakes.fake_session import FakeSession


class RecordingContext(Context):
    """Context that keeps messages in memory instead of printing them."""

    def __init__(self) -> None:
        super().__init__(verbose=True)
        self.logs = []
        self.errors = []
        self._lock = threading.Lock()

    def log(self, message: str) -> None:
        with self._lock:
            self.logs.append(message)

    def error_message(self, message: str) -> None:
        with self._lock:
            self.errors.append(message)


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll predicate until it holds or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def ctx():
    return RecordingContext()


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def client(fake_session, ctx):
    return StreamingClient(session=fake_session, ctx=ctx, timeout=(1.0, 5.0), http_dump_dir="")


@pytest.fixture
def prompt_store(ctx):
    return PromptStore.load(ctx=ctx)


@pytest.fixture
def dispatcher():
    d = StateDispatcher()
    yield d
    d.shutdown()


@pytest.fixture
def make_settings():
    def _make(provider: ProviderName = ProviderName.anthropic, api_key="test-key", model=None) -> SecureSettings:
        store = InMemorySecretStore(StoredSettings(provider=provider, api_key=api_key, model=model))
        return SecureSettings(store, env_overrides=False)

    return _make
