"""Durable state store: one checksummed JSON snapshot, rewritten atomically per record."""

import hashlib
import json
import os
import tempfile
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional
from pydantic import ValidationError
from ..contracts.state import StateRecord, StateSnapshot
from ..contracts.values import fingerprint
from ..utils.errors import CorruptStateError, StateError
from ..utils.logging import get_logger
from .lock import StateLock

logger = get_logger("state.store")

STATE_FORMAT_VERSION = 1
_KNOWN_KEYS = {"format_version", "lineage", "serial", "records", "checksum"}


def compute_checksum(document: Dict[str, Any]) -> str:
    """sha256 over the canonical JSON of the document without its checksum."""
    body = {k: v for k, v in document.items() if k != "checksum"}
    payload = json.dumps(body, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def state_fingerprint(records: Dict[str, StateRecord], lineage: str) -> str:
    return fingerprint({
        "lineage": lineage,
        "records": [records[rid].model_dump(mode="json") for rid in sorted(records)],
    })


class StateStore:
    """
    Key-value mapping from resource id to StateRecord, persisted as a single snapshot.

    Every commit/remove rewrites the whole document through a temporary file and
    os.replace, so a crash leaves either the previous or the new snapshot on disk.
    Writes require the cycle lock to be held.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._records: Dict[str, StateRecord] = {}
        self._serial = 0
        self._lineage = ""
        self._extra: Dict[str, Any] = {}
        self._loaded = False
        self._mutex = threading.RLock()
        self._lock = StateLock(self.path)

    @property
    def lock(self) -> StateLock:
        return self._lock

    @contextmanager
    def locked(self, operation: str = "cycle") -> Iterator["StateStore"]:
        """Hold the advisory lock for the duration of a cycle."""
        self._lock.acquire(operation)
        try:
            yield self
        finally:
            self._lock.release()

    def load(self) -> StateSnapshot:
        """
        Read the snapshot from disk.

        Raises:
            CorruptStateError: Unparsable document, bad checksum, invalid records
                or a format version newer than this release understands
        """
        with self._mutex:
            if not self.path.exists():
                logger.info(f"No state at {self.path}, starting empty")
                self._records, self._serial, self._lineage, self._extra = {}, 0, "", {}
                self._loaded = True
                return self.snapshot()

            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    document = json.load(f)
            except json.JSONDecodeError as e:
                raise CorruptStateError(f"State file {self.path} is not valid JSON: {e}")
            except OSError as e:
                raise CorruptStateError(f"Error reading state file {self.path}: {e}")

            records, serial, lineage, extra = _parse_document(document, self.path)
            self._records, self._serial, self._lineage, self._extra = records, serial, lineage, extra
            self._loaded = True
            logger.info(f"Loaded state from {self.path} (serial: {serial}, records: {len(records)})")
            return self.snapshot()

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def snapshot(self) -> StateSnapshot:
        """Immutable copy of the current state for one planning cycle."""
        with self._mutex:
            self._ensure_loaded()
            return StateSnapshot(
                records=self._records,
                serial=self._serial,
                lineage=self._lineage,
                fingerprint=state_fingerprint(self._records, self._lineage),
            )

    @property
    def fingerprint(self) -> str:
        with self._mutex:
            self._ensure_loaded()
            return state_fingerprint(self._records, self._lineage)

    def get(self, record_id: str) -> Optional[StateRecord]:
        with self._mutex:
            self._ensure_loaded()
            record = self._records.get(record_id)
            return record.model_copy(deep=True) if record is not None else None

    def commit(self, record: StateRecord) -> None:
        """Insert or replace one record and persist immediately."""
        with self._mutex:
            self._ensure_loaded()
            records = dict(self._records)
            records[record.id] = record.model_copy(deep=True)
            self._persist(records)
            logger.debug(f"Committed state record {record.id} (serial: {self._serial})")

    def remove(self, record_id: str) -> None:
        """Delete one record and persist immediately."""
        with self._mutex:
            self._ensure_loaded()
            if record_id not in self._records:
                return
            records = dict(self._records)
            del records[record_id]
            self._persist(records)
            logger.debug(f"Removed state record {record_id} (serial: {self._serial})")

    def _persist(self, records: Dict[str, StateRecord]) -> None:
        if not self._lock.held:
            raise StateError(f"State {self.path} must be locked before it is written")

        lineage = self._lineage or str(uuid.uuid4())
        serial = self._serial + 1
        document: Dict[str, Any] = dict(self._extra)
        document.update({
            "format_version": STATE_FORMAT_VERSION,
            "lineage": lineage,
            "serial": serial,
            "records": [records[rid].model_dump(mode="json") for rid in sorted(records)],
        })
        document["checksum"] = compute_checksum(document)

        _atomic_write(self.path, json.dumps(document, indent=2, sort_keys=True))
        self._records, self._serial, self._lineage = records, serial, lineage

    def close(self) -> None:
        """Drop in-memory state; the next access reloads from disk."""
        with self._mutex:
            self._records, self._serial, self._lineage, self._extra = {}, 0, "", {}
            self._loaded = False


def _parse_document(document: Any, path: Path):
    if not isinstance(document, dict):
        raise CorruptStateError(f"State file {path} must contain a JSON object")

    checksum = document.get("checksum")
    if not isinstance(checksum, str):
        raise CorruptStateError(f"State file {path} has no checksum")
    if compute_checksum(document) != checksum:
        raise CorruptStateError(
            f"State file {path} failed checksum verification. "
            "Restore it from a backup; converge does not repair state automatically."
        )

    version = document.get("format_version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise CorruptStateError(f"State file {path} has an invalid format_version: {version!r}")
    if version > STATE_FORMAT_VERSION:
        raise CorruptStateError(
            f"State file {path} uses format version {version}; "
            f"this release supports up to {STATE_FORMAT_VERSION}"
        )

    serial = document.get("serial", 0)
    if not isinstance(serial, int) or serial < 0:
        raise CorruptStateError(f"State file {path} has an invalid serial: {serial!r}")

    raw_records = document.get("records", [])
    if not isinstance(raw_records, list):
        raise CorruptStateError(f"State file {path}: 'records' must be a list")

    records: Dict[str, StateRecord] = {}
    for idx, raw in enumerate(raw_records):
        try:
            record = StateRecord.model_validate(raw)
        except ValidationError as e:
            raise CorruptStateError(f"State file {path}: invalid record at index {idx}: {e}")
        if record.id in records:
            raise CorruptStateError(f"State file {path}: duplicate record {record.id}")
        records[record.id] = record

    extra = {k: v for k, v in document.items() if k not in _KNOWN_KEYS}
    return records, serial, str(document.get("lineage") or ""), extra


def _atomic_write(path: Path, content: str) -> None:
    """Write to a temporary file in the same directory, fsync, then rename over path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
