from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from conftest import FixedClock
from emission_ledger import (
    FileSystemLedgerStore,
    InMemoryLedgerStore,
    LedgerSettings,
    build_ledger,
    build_store,
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ("BACKEND", "WORKSPACE", "FSYNC", "MAX_TOTAL_BITS", "LOG_LEVEL"):
        monkeypatch.delenv(f"EMISSION_LEDGER_{name}", raising=False)
    # keep a developer .env out of the picture
    monkeypatch.chdir(tmp_path)


def test_defaults_use_memory_backend() -> None:
    settings = LedgerSettings()
    assert settings.backend == "memory"
    assert settings.max_total is None
    assert isinstance(build_store(settings), InMemoryLedgerStore)


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("EMISSION_LEDGER_BACKEND", "filesystem")
    monkeypatch.setenv("EMISSION_LEDGER_WORKSPACE", str(tmp_path / "ws"))
    monkeypatch.setenv("EMISSION_LEDGER_FSYNC", "true")
    monkeypatch.setenv("EMISSION_LEDGER_MAX_TOTAL_BITS", "256")

    settings = LedgerSettings()
    assert settings.workspace == tmp_path / "ws"
    assert settings.fsync is True
    assert settings.max_total == 2**256 - 1

    store = build_store(settings)
    assert isinstance(store, FileSystemLedgerStore)
    assert store.fsync is True
    assert (tmp_path / "ws" / "store" / "ledgers").is_dir()


def test_filesystem_backend_requires_workspace() -> None:
    with pytest.raises(ValidationError):
        LedgerSettings(backend="filesystem")


def test_max_total_bits_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        LedgerSettings(max_total_bits=0)


def test_build_ledger_wires_store_and_bound(tmp_path: Path) -> None:
    settings = LedgerSettings(backend="filesystem", workspace=tmp_path, max_total_bits=8)
    ledger = build_ledger(settings, clock=FixedClock(42))

    assert ledger.max_total == 255
    ledger.record("acct-a", 200, "energy")
    assert ledger.get_history("acct-a")[0].timestamp == 42
    assert ledger.get_total("acct-a") == 200
