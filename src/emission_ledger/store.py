from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Protocol

from metaspn_schemas import EmissionEnvelope, EntityRef

from emission_ledger.records import (
    EmissionRecord,
    RecordId,
    StorageUnavailable,
    validate_amount,
    validate_category,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], int]
EMISSION_RECORDED = "EmissionRecorded"


def system_clock() -> int:
    return int(time.time())


class LedgerStore(Protocol):
    def record(self, caller_identity: str, amount: int, category: str) -> RecordId:
        ...

    def get_all(self, account: str) -> tuple[EmissionRecord, ...]:
        ...

    def count(self, account: str) -> int:
        ...


class _AccountLocks:
    """Lazily created per-account locks; creation itself is race-safe."""

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, account: str) -> threading.Lock:
        lock = self._locks.get(account)
        if lock is not None:
            return lock
        with self._registry_lock:
            return self._locks.setdefault(account, threading.Lock())


class InMemoryLedgerStore:
    """Process-local ledger store.

    Each account's history is an immutable tuple that is replaced, never
    mutated, under that account's lock. Readers pick up the current tuple
    without locking, so they always see either all of an append or none of it.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or system_clock
        self._locks = _AccountLocks()
        self._ledgers: dict[str, tuple[EmissionRecord, ...]] = {}

    def record(self, caller_identity: str, amount: int, category: str) -> RecordId:
        """Append an emission to the caller's own ledger."""
        amount = validate_amount(amount)
        category = validate_category(category)
        with self._locks.get(caller_identity):
            current = self._ledgers.get(caller_identity, ())
            entry = EmissionRecord(timestamp=self.clock(), amount=amount, category=category)
            self._ledgers[caller_identity] = current + (entry,)
            record_id = RecordId(account=caller_identity, sequence=len(current))
        logger.debug("recorded emission %s category=%r", record_id, category)
        return record_id

    def get_all(self, account: str) -> tuple[EmissionRecord, ...]:
        return self._ledgers.get(account, ())

    def count(self, account: str) -> int:
        return len(self.get_all(account))


def partition_name(account: str) -> str:
    return hashlib.sha256(account.encode("utf-8")).hexdigest()


def _to_envelope(record_id: RecordId, entry: EmissionRecord) -> EmissionEnvelope:
    return EmissionEnvelope(
        emission_id=str(record_id),
        timestamp=datetime.fromtimestamp(entry.timestamp, tz=timezone.utc),
        emission_type=EMISSION_RECORDED,
        payload=entry.to_dict(),
        caused_by=record_id.account,
        entity_refs=(EntityRef(ref_type="entity_id", value=record_id.account),),
    )


def _encode_line(envelope: EmissionEnvelope) -> bytes:
    text = json.dumps(envelope.to_dict(), sort_keys=True, separators=(",", ":"))
    return text.encode("utf-8") + b"\n"


class FileSystemLedgerStore:
    """Append-only filesystem ledger store, one JSONL partition per account."""

    def __init__(self, workspace: str | Path, *, clock: Clock | None = None, fsync: bool = False) -> None:
        self.workspace = Path(workspace)
        self.store_root = self.workspace / "store"
        self.ledgers_dir = self.store_root / "ledgers"
        self.snapshots_dir = self.store_root / "snapshots"
        self.clock = clock or system_clock
        self.fsync = fsync
        self._locks = _AccountLocks()
        self._counts: dict[str, int] = {}
        self._ensure_dirs()

    def _ensure_dirs(self) -> None:
        try:
            self.ledgers_dir.mkdir(parents=True, exist_ok=True)
            self.snapshots_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("could not create ledger workspace %s: %s", self.store_root, exc)
            raise StorageUnavailable(f"ledger workspace unavailable: {self.store_root}") from exc

    def partition_path(self, account: str) -> Path:
        return self.ledgers_dir / f"{partition_name(account)}.jsonl"

    def _read_partition(self, partition: Path) -> tuple[list[EmissionRecord], int]:
        """Return the complete records of a partition and the byte offset where they end."""
        entries: list[EmissionRecord] = []
        valid_end = 0
        if not partition.exists():
            return entries, valid_end
        with partition.open("rb") as handle:
            for raw in handle:
                if not raw.endswith(b"\n"):
                    logger.debug("skipping torn trailing line in %s", partition)
                    break
                valid_end += len(raw)
                if not raw.strip():
                    continue
                try:
                    envelope = EmissionEnvelope.from_dict(json.loads(raw))
                    entries.append(EmissionRecord.from_dict(envelope.payload))
                except (ValueError, KeyError, TypeError) as exc:
                    raise StorageUnavailable(f"undecodable ledger line in {partition}") from exc
        return entries, valid_end

    def _load_count(self, account: str, partition: Path) -> int:
        # caller holds the account lock
        count = self._counts.get(account)
        if count is not None:
            return count
        entries, valid_end = self._read_partition(partition)
        if partition.exists() and partition.stat().st_size > valid_end:
            # a torn tail was never visible to readers; drop it so the next line starts clean
            with partition.open("r+b") as handle:
                handle.truncate(valid_end)
        self._counts[account] = len(entries)
        return len(entries)

    def record(self, caller_identity: str, amount: int, category: str) -> RecordId:
        """Append an emission to the caller's own partition."""
        amount = validate_amount(amount)
        category = validate_category(category)
        partition = self.partition_path(caller_identity)
        with self._locks.get(caller_identity):
            try:
                sequence = self._load_count(caller_identity, partition)
            except OSError as exc:
                logger.warning("could not read ledger partition %s: %s", partition, exc)
                raise StorageUnavailable(f"ledger for {caller_identity!r} unavailable") from exc

            record_id = RecordId(account=caller_identity, sequence=sequence)
            entry = EmissionRecord(timestamp=self.clock(), amount=amount, category=category)
            try:
                self._append_line(partition, _encode_line(_to_envelope(record_id, entry)))
            except StorageUnavailable:
                # reload on the next append so any leftover tail gets repaired
                self._counts.pop(caller_identity, None)
                raise
            self._counts[caller_identity] = sequence + 1
        logger.debug("recorded emission %s category=%r", record_id, category)
        return record_id

    def _append_line(self, partition: Path, line: bytes) -> None:
        try:
            with partition.open("ab", buffering=0) as handle:
                fd = handle.fileno()
                offset = os.lseek(fd, 0, os.SEEK_END)
                try:
                    view = memoryview(line)
                    while view:
                        written = os.write(fd, view)
                        view = view[written:]
                    if self.fsync:
                        os.fsync(fd)
                except OSError:
                    os.ftruncate(fd, offset)
                    raise
        except OSError as exc:
            logger.warning("append to %s failed: %s", partition, exc)
            raise StorageUnavailable(f"could not append to {partition}") from exc

    def get_all(self, account: str) -> tuple[EmissionRecord, ...]:
        """Read an account's full history in append order."""
        partition = self.partition_path(account)
        try:
            entries, _ = self._read_partition(partition)
        except OSError as exc:
            logger.warning("could not read ledger partition %s: %s", partition, exc)
            raise StorageUnavailable(f"ledger for {account!r} unavailable") from exc
        return tuple(entries)

    def count(self, account: str) -> int:
        return len(self.get_all(account))

    def write_snapshot(
        self,
        name: str,
        snapshot_state: dict[str, Any],
        snapshot_time: datetime | None = None,
    ) -> Path:
        """Write a point-in-time snapshot JSON document."""
        ts = snapshot_time or datetime.now(timezone.utc)
        ts = ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts.astimezone(timezone.utc)
        timestamp_token = ts.strftime("%Y-%m-%dT%H%M%SZ")
        destination = self.snapshots_dir / f"{name}__{timestamp_token}.json"
        text = json.dumps(snapshot_state, sort_keys=True, separators=(",", ":")) + "\n"
        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.snapshots_dir, suffix=".tmp", delete=False
            ) as handle:
                temp_path = Path(handle.name)
                handle.write(text)
            os.replace(temp_path, destination)
        except OSError as exc:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            logger.warning("snapshot write to %s failed: %s", destination, exc)
            raise StorageUnavailable(f"could not write snapshot {destination}") from exc
        return destination

    def read_snapshot(self, path: str | Path) -> dict[str, Any] | None:
        source = Path(path)
        if not source.is_absolute():
            source = self.snapshots_dir / source
        if not source.exists():
            return None
        try:
            with source.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, ValueError) as exc:
            raise StorageUnavailable(f"could not read snapshot {source}") from exc
