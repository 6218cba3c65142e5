"""Integration-test fixtures for deterministic provider and credential behavior."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import pytest

from tests.fakes import FakeProvider
from transbatch.telemetry.logger import configure_logging


class InMemoryCredentialStore:
    """Simple in-memory credential store used for CLI tests."""

    def __init__(self, initial_api_key: str | None = None) -> None:
        """Initialize the store with an optional pre-seeded API key."""

        self._api_key = initial_api_key
        self.available = True

    def is_available(self) -> bool:
        """Return availability flag expected by the CLI status command."""

        return self.available

    def get_api_key(self) -> str | None:
        """Return currently stored API key value."""

        return self._api_key

    def set_api_key(self, api_key: str) -> None:
        """Persist a normalized API key value."""

        self._api_key = " ".join(api_key.split())

    def clear_api_key(self) -> bool:
        """Clear API key and return whether one existed."""

        existed = self._api_key is not None
        self._api_key = None
        return existed


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Provide the scripted provider every CLI-built engine will use."""

    return FakeProvider()


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    """Provide the credential store every CLI command will use."""

    return InMemoryCredentialStore()


@pytest.fixture(autouse=True)
def _isolate_cli(
    monkeypatch: pytest.MonkeyPatch,
    fake_provider: FakeProvider,
    credential_store: InMemoryCredentialStore,
) -> Iterator[None]:
    """Replace providers and keyring access, and drop ambient `TRANSBATCH_*` settings."""

    for key in list(os.environ):
        if key.startswith("TRANSBATCH_"):
            monkeypatch.delenv(key)
    monkeypatch.setattr("transbatch.cli.ProviderFactory", lambda _config: fake_provider)
    monkeypatch.setattr("transbatch.cli.create_credential_store", lambda: credential_store)
    yield
    configure_logging()


@pytest.fixture
def database_path(tmp_path: Path) -> Path:
    """Provide a per-test SQLite database path."""

    return tmp_path / "db" / "transbatch.sqlite3"
