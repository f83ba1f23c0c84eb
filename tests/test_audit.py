"""Tests for the serialized JSON audit sink."""

import sys, os, json, threading
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from secure_inquiry import AuditRecord, AuditSink, JsonFileAuditStore, BreakerPhase, Outcome, WriteError


def _record(i: int = 0) -> AuditRecord:
    return AuditRecord(
        user_id=f"user-{i}",
        encrypted_original="token",
        redacted_message=f"msg {i}",
        outcome=Outcome.ANSWER,
        answer="Generated Answer.",
        breaker_phase=BreakerPhase.CLOSED,
    )


# ── Store ────────────────────────────────────────────────────────────

def test_store_creates_empty_document(tmp_path):
    path = tmp_path / "nested" / "audit-log.json"
    store = JsonFileAuditStore(path)
    assert path.exists()
    assert json.loads(path.read_text()) == []
    assert store.read_all() == []


def test_record_dict_roundtrip():
    rec = _record(3)
    data = rec.to_dict()
    assert data["userId"] == "user-3"
    assert data["outcome"] == "ANSWER"
    assert data["breakerPhase"] == "CLOSED"
    assert AuditRecord.from_dict(data) == rec


def test_record_ids_unique():
    assert _record().id != _record().id


# ── Sink ─────────────────────────────────────────────────────────────

def test_append_persists(tmp_path):
    with AuditSink(JsonFileAuditStore(tmp_path / "a.json")) as sink:
        rec = _record()
        assert sink.append(rec).result(timeout=5) is None
        assert sink.read_records() == [rec]
        assert sink.stats["appended"] == 1


def test_appends_keep_submission_order(tmp_path):
    with AuditSink(JsonFileAuditStore(tmp_path / "a.json")) as sink:
        futures = [sink.append(_record(i)) for i in range(20)]
        for f in futures:
            f.result(timeout=5)
        assert [r.user_id for r in sink.read_records()] == [f"user-{i}" for i in range(20)]


def test_concurrent_appends_lose_nothing(tmp_path):
    n_threads, per_thread = 8, 15
    barrier = threading.Barrier(n_threads)
    with AuditSink(JsonFileAuditStore(tmp_path / "a.json")) as sink:
        def worker(t):
            barrier.wait()
            for i in range(per_thread):
                sink.append(_record(t * 100 + i)).result(timeout=10)

        threads = [threading.Thread(target=worker, args=(t,)) for t in range(n_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        records = sink.read_records()
        assert len(records) == n_threads * per_thread
        assert len({r.id for r in records}) == n_threads * per_thread


def test_corrupt_store_recovers_as_empty(tmp_path, caplog):
    path = tmp_path / "a.json"
    path.write_text("{not json")
    with AuditSink(JsonFileAuditStore(path)) as sink:
        rec = _record()
        sink.append(rec).result(timeout=5)
        assert sink.read_records() == [rec]
        assert sink.stats["recovered_corruptions"] == 1
    assert "corrupt" in caplog.text


def test_non_array_document_recovers(tmp_path):
    path = tmp_path / "a.json"
    path.write_text('{"records": []}')
    with AuditSink(JsonFileAuditStore(path)) as sink:
        sink.append(_record()).result(timeout=5)
        assert len(sink.read_records()) == 1


def test_write_failure_surfaces_write_error(tmp_path, monkeypatch):
    store = JsonFileAuditStore(tmp_path / "a.json")

    def broken(records):
        raise OSError("disk full")

    monkeypatch.setattr(store, "write_all", broken)
    with AuditSink(store) as sink:
        with pytest.raises(WriteError):
            sink.append(_record()).result(timeout=5)
        assert sink.stats["write_errors"] == 1


def test_append_after_close_fails(tmp_path):
    sink = AuditSink(JsonFileAuditStore(tmp_path / "a.json"))
    sink.close()
    with pytest.raises(WriteError):
        sink.append(_record()).result(timeout=5)


def test_close_drains_pending(tmp_path):
    sink = AuditSink(JsonFileAuditStore(tmp_path / "a.json"))
    futures = [sink.append(_record(i)) for i in range(10)]
    sink.close()
    assert all(f.done() for f in futures)
    assert len(sink.read_records()) == 10
