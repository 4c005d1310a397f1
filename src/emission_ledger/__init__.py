from emission_ledger.aggregation import (
    AccountSummary,
    summarize,
    total,
    total_by_category,
    total_by_time_window,
    totals_by_category,
)
from emission_ledger.config import LedgerSettings, build_ledger, build_store, get_settings
from emission_ledger.conversion import convert
from emission_ledger.records import (
    AggregationOverflow,
    EmissionRecord,
    InvalidAmount,
    LedgerError,
    RecordId,
    StorageUnavailable,
)
from emission_ledger.service import EmissionLedger
from emission_ledger.store import FileSystemLedgerStore, InMemoryLedgerStore, LedgerStore

__all__ = [
    "AccountSummary",
    "AggregationOverflow",
    "EmissionLedger",
    "EmissionRecord",
    "FileSystemLedgerStore",
    "InMemoryLedgerStore",
    "InvalidAmount",
    "LedgerError",
    "LedgerSettings",
    "LedgerStore",
    "RecordId",
    "StorageUnavailable",
    "build_ledger",
    "build_store",
    "convert",
    "get_settings",
    "summarize",
    "total",
    "total_by_category",
    "total_by_time_window",
    "totals_by_category",
]
