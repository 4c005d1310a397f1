from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from emission_ledger import aggregation
from emission_ledger.aggregation import AccountSummary
from emission_ledger.records import EmissionRecord, RecordId
from emission_ledger.store import FileSystemLedgerStore, LedgerStore

logger = logging.getLogger(__name__)


class EmissionLedger:
    """Caller-facing operations over a ledger store.

    `caller_identity` must already be authenticated; it is the only account a
    caller can write to.
    """

    def __init__(self, store: LedgerStore, *, max_total: int | None = None) -> None:
        self.store = store
        self.max_total = max_total

    def record(self, caller_identity: str, amount: int, category: str) -> RecordId:
        return self.store.record(caller_identity, amount, category)

    def get_history(self, account: str) -> tuple[EmissionRecord, ...]:
        return self.store.get_all(account)

    def get_total(self, account: str) -> int:
        return aggregation.total(self.store.get_all(account), max_total=self.max_total)

    def get_total_by_category(self, account: str, category: str) -> int:
        return aggregation.total_by_category(
            self.store.get_all(account),
            category,
            max_total=self.max_total,
        )

    def get_total_by_time_window(self, account: str, start_time: int, end_time: int) -> int:
        return aggregation.total_by_time_window(
            self.store.get_all(account),
            start_time,
            end_time,
            max_total=self.max_total,
        )

    def get_total_filtered(
        self,
        account: str,
        *,
        category: str | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> int:
        """
        Sum an account's amounts under exactly one filter.

        - `category`: exact category match
        - `start_time` and `end_time`: inclusive time window
        """
        has_window = start_time is not None or end_time is not None
        if category is not None and has_window:
            raise ValueError("filter by category or by time window, not both")
        if category is not None:
            return self.get_total_by_category(account, category)
        if not has_window:
            raise ValueError("a category or time window filter is required")
        if start_time is None or end_time is None:
            raise ValueError("a time window filter needs both start_time and end_time")
        return self.get_total_by_time_window(account, start_time, end_time)

    def summarize(self, account: str) -> AccountSummary:
        return aggregation.summarize(account, self.store.get_all(account), max_total=self.max_total)

    def write_summary_snapshot(self, account: str, snapshot_time: datetime | None = None) -> Path:
        """Persist the account summary next to the ledger partitions."""
        if not isinstance(self.store, FileSystemLedgerStore):
            raise TypeError(f"{type(self.store).__name__} does not support snapshots")
        summary = self.summarize(account)
        name = f"summary__{self.store.partition_path(account).stem}"
        path = self.store.write_snapshot(name, summary.to_dict(), snapshot_time=snapshot_time)
        logger.debug("wrote summary snapshot for %r to %s", account, path)
        return path
