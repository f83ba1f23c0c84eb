"""Append-only audit trail persisted as a single JSON document.

The whole array is the unit of read-modify-write, so appends must never
race.  ``AuditSink`` funnels every append through one worker thread that
drains a FIFO queue; submitters get a Future back as the completion
signal.

Usage:
    sink = AuditSink(JsonFileAuditStore("data/audit-log.json"))
    sink.append(record).result()   # blocks until persisted
    sink.close()
"""

from __future__ import annotations
import json
import logging
import os
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

from .errors import WriteError
from .types import BreakerPhase, Outcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """One persisted, immutable log entry per processed request."""
    user_id: str
    encrypted_original: str           # EncryptedEnvelope token
    redacted_message: str
    outcome: Outcome
    breaker_phase: BreakerPhase       # phase after the downstream decision
    answer: str | None = None         # set only for ANSWER outcomes
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "createdAt": self.created_at,
            "encryptedOriginal": self.encrypted_original,
            "redactedMessage": self.redacted_message,
            "outcome": self.outcome.value,
            "answer": self.answer,
            "breakerPhase": self.breaker_phase.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditRecord":
        return cls(
            id=data["id"],
            user_id=data["userId"],
            created_at=data["createdAt"],
            encrypted_original=data["encryptedOriginal"],
            redacted_message=data["redactedMessage"],
            outcome=Outcome(data["outcome"]),
            answer=data.get("answer"),
            breaker_phase=BreakerPhase(data["breakerPhase"]),
        )


class CorruptStoreError(ValueError):
    """The stored document could not be parsed as a JSON array."""


class JsonFileAuditStore:
    """A JSON array of audit records in a single file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text("[]", encoding="utf-8")

    def read_all(self) -> list[dict[str, Any]]:
        """Read the full collection.

        Raises:
            CorruptStoreError: Content is not a JSON array.
            OSError: The file could not be read.
        """
        if not self.path.exists():
            return []
        raw = self.path.read_bytes()
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptStoreError(str(e)) from e
        if not isinstance(data, list):
            raise CorruptStoreError(f"expected a JSON array, got {type(data).__name__}")
        return data

    def write_all(self, records: list[dict[str, Any]]) -> None:
        """Persist the full collection, replacing the file atomically."""
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)


_STOP = object()


class AuditSink:
    """Serializes concurrent appends into one ordered write sequence."""

    def __init__(self, store: JsonFileAuditStore) -> None:
        self.store = store
        self._queue: queue.Queue = queue.Queue()
        self._closed = False
        self._close_lock = threading.Lock()
        self._stats = {"appended": 0, "recovered_corruptions": 0, "write_errors": 0}
        self._worker = threading.Thread(
            target=self._run, name="audit-writer", daemon=True
        )
        self._worker.start()

    def append(self, record: AuditRecord) -> Future:
        """Enqueue a record. The returned future resolves once it is persisted.

        The future fails with WriteError on an unrecoverable storage fault.
        """
        future: Future = Future()
        with self._close_lock:
            if self._closed:
                future.set_exception(WriteError("Audit sink is closed"))
                return future
            self._queue.put((record, future))
        return future

    def read_records(self) -> list[AuditRecord]:
        """Return the persisted records, in write order."""
        return [AuditRecord.from_dict(d) for d in self.store.read_all()]

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

    def close(self, timeout: float | None = None) -> None:
        """Drain pending appends and stop the worker."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_STOP)
        self._worker.join(timeout)

    def __enter__(self) -> "AuditSink":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            record, future = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                self._write(record)
            except WriteError as e:
                self._stats["write_errors"] += 1
                future.set_exception(e)
            except Exception as e:
                # Keep the writer alive; the submitter sees the fault
                logger.exception("Unexpected audit writer failure")
                self._stats["write_errors"] += 1
                future.set_exception(WriteError(str(e)))
            else:
                self._stats["appended"] += 1
                future.set_result(None)

    def _write(self, record: AuditRecord) -> None:
        try:
            records = self.store.read_all()
        except CorruptStoreError as e:
            # Availability over history: start a fresh collection
            self._stats["recovered_corruptions"] += 1
            logger.error(
                "Audit store %s is corrupt (%s); continuing with an empty collection",
                self.store.path, e,
            )
            records = []
        except OSError as e:
            raise WriteError(f"Failed to read audit store: {e}") from e

        records.append(record.to_dict())
        try:
            self.store.write_all(records)
        except OSError as e:
            logger.error("Failed to write audit log %s: %s", self.store.path, e)
            raise WriteError(f"Failed to write audit store: {e}") from e
