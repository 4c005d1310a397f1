from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from emission_ledger.service import EmissionLedger
from emission_ledger.store import Clock, FileSystemLedgerStore, InMemoryLedgerStore, LedgerStore


class LedgerSettings(BaseSettings):
    """
    Runtime configuration, read from EMISSION_LEDGER_* environment variables.

    Notes:
    - `filesystem` needs a workspace directory; `memory` keeps nothing across restarts.
    - `max_total_bits` bounds every sum to 2**bits - 1; unset means unbounded.
    """

    model_config = SettingsConfigDict(
        env_prefix="EMISSION_LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: Literal["memory", "filesystem"] = "memory"
    workspace: Optional[Path] = None
    fsync: bool = False
    max_total_bits: Optional[int] = Field(default=None, gt=0)
    log_level: str = "WARNING"

    @model_validator(mode="after")
    def _require_workspace(self) -> LedgerSettings:
        if self.backend == "filesystem" and self.workspace is None:
            raise ValueError("workspace is required for the filesystem backend")
        return self

    @property
    def max_total(self) -> Optional[int]:
        if self.max_total_bits is None:
            return None
        return 2**self.max_total_bits - 1


@lru_cache(maxsize=1)
def get_settings() -> LedgerSettings:
    return LedgerSettings()


def build_store(settings: LedgerSettings, *, clock: Clock | None = None) -> LedgerStore:
    if settings.backend == "filesystem":
        return FileSystemLedgerStore(settings.workspace, clock=clock, fsync=settings.fsync)
    return InMemoryLedgerStore(clock=clock)


def build_ledger(settings: LedgerSettings | None = None, *, clock: Clock | None = None) -> EmissionLedger:
    settings = settings or get_settings()
    logging.getLogger("emission_ledger").setLevel(settings.log_level.upper())
    return EmissionLedger(build_store(settings, clock=clock), max_total=settings.max_total)
