"""HistoryStore unit tests."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from analyzer.services.history_service import HistoryStore, Submission, SubmittedImage
from analyzer.services.storage_service import CredentialStore, StorageError, StorageService

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_submission(index: int, **overrides) -> Submission:
    values = dict(
        images=(SubmittedImage(display_name=f"shot-{index}.png", payload=b"\x89PNG" + bytes([index % 256])),),
        prompt_text="Describe the flow",
        analysis_text=f"analysis {index}",
        timestamp=BASE_TIME + timedelta(minutes=index),
    )
    values.update(overrides)
    return Submission(**values)


class FailingStorage(StorageService):
    """Storage whose writes always fail."""

    def __init__(self, root) -> None:
        super().__init__(root)
        self.attempts = 0

    def save(self, key: str, blob: str) -> None:
        self.attempts += 1
        raise StorageError("disk full")


def test_insert_front_orders_newest_first():
    store = HistoryStore()
    store.insert_front(make_submission(1))
    store.insert_front(make_submission(2))

    assert [entry.analysis_text for entry in store.entries()] == ["analysis 2", "analysis 1"]
    assert store.get(0).analysis_text == "analysis 2"
    assert store.get(5) is None
    assert store.get(-1) is None


def test_capacity_evicts_earliest_timestamp():
    store = HistoryStore()
    submissions = [make_submission(i) for i in range(51)]
    for submission in submissions:
        store.insert_front(submission)

    assert store.size() == 50
    assert store.find_by_id(submissions[0].id) is None
    assert store.find_by_id(submissions[1].id) is not None
    assert store.get(0).id == submissions[50].id


def test_eviction_uses_timestamp_not_position():
    store = HistoryStore(capacity=2)
    old = make_submission(0)
    newer = make_submission(5)
    store.insert_front(newer)
    store.insert_front(make_submission(9))

    evicted = store.insert_front(old)

    assert evicted == [old]
    assert store.size() == 2


def test_delete_by_id_and_clear():
    store = HistoryStore()
    first = make_submission(1)
    store.insert_front(first)
    store.insert_front(make_submission(2))

    assert store.delete_by_id(first.id) is True
    assert store.delete_by_id(first.id) is False
    assert store.size() == 1

    store.clear()
    assert len(store) == 0


def test_contents_survive_reload(tmp_path):
    storage = StorageService(tmp_path)
    store = HistoryStore(storage)
    submission = make_submission(3, project="Checkout", tags=("payment", "mobile"))
    store.insert_front(submission)

    reloaded = HistoryStore(StorageService(tmp_path))

    assert reloaded.entries() == [submission]


def test_every_mutation_is_persisted(tmp_path):
    storage = StorageService(tmp_path)
    store = HistoryStore(storage)
    submission = make_submission(1)
    store.insert_front(submission)
    assert len(json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))) == 1

    store.delete_by_id(submission.id)
    assert json.loads((tmp_path / "history.json").read_text(encoding="utf-8")) == []


@pytest.mark.parametrize("content", [b"{broken", b'{"not": "a list"}', b"\xff\xfe\x00garbage"])
def test_corrupt_blob_loads_as_empty(tmp_path, content):
    (tmp_path / "history.json").write_bytes(content)

    store = HistoryStore(StorageService(tmp_path))

    assert store.size() == 0


def test_undecodable_credential_file_uses_fallback(tmp_path):
    (tmp_path / "config.json").write_bytes(b"\xff\xfe\x00garbage")

    credentials = CredentialStore(tmp_path / "config.json", fallback="sk-env")

    assert credentials.load_credential() == "sk-env"


def test_malformed_entries_are_skipped(tmp_path):
    good = make_submission(1).to_dict()
    (tmp_path / "history.json").write_text(json.dumps([{"id": "x"}, good]), encoding="utf-8")

    store = HistoryStore(StorageService(tmp_path))

    assert [entry.id for entry in store.entries()] == [good["id"]]


def test_write_failure_degrades_to_memory(tmp_path):
    storage = FailingStorage(tmp_path)
    store = HistoryStore(storage)

    store.insert_front(make_submission(1))
    store.insert_front(make_submission(2))

    assert store.size() == 2
    assert store.memory_only is True
    assert storage.attempts == 1


def test_failed_write_keeps_previous_snapshot(tmp_path, monkeypatch):
    storage = StorageService(tmp_path)
    store = HistoryStore(storage)
    store.insert_front(make_submission(1))
    before = (tmp_path / "history.json").read_text(encoding="utf-8")

    def broken_replace(src, dst):
        raise OSError("crash during swap")

    monkeypatch.setattr("analyzer.services.storage_service.os.replace", broken_replace)
    store.insert_front(make_submission(2))

    assert (tmp_path / "history.json").read_text(encoding="utf-8") == before
    assert [p.name for p in tmp_path.iterdir()] == ["history.json"]


def test_submission_is_immutable():
    submission = make_submission(1)
    with pytest.raises(AttributeError):
        submission.analysis_text = "changed"  # type: ignore[misc]
