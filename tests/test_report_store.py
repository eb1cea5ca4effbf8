"""Tests for the report repository: drafts, saves and persist-on-change."""

import pytest

from models import load_reports
from utils import update_engine
from utils.kv_store import MemoryKeyValueStore, PersistenceError
from utils.report_store import DEFAULT_STORAGE_KEY, ReportRepository
from utils.update_engine import NotFoundError

CORRUPT_PAYLOADS = [b"{not json", b"\xff\xfe", b"[1]", b"[{\"createdAt\": 1}]", b"{\"id\": \"r1\"}"]


class FailingStore(MemoryKeyValueStore):
    """Store whose writes fail while ``broken`` is set."""

    def __init__(self):
        super().__init__()
        self.broken = False

    def set(self, key, value):
        if self.broken:
            raise PersistenceError("store unavailable")
        super().set(key, value)


@pytest.fixture
def store():
    return FailingStore()


@pytest.fixture
def repo(store):
    return ReportRepository(store)


def _stored(store):
    return load_reports(store.get(DEFAULT_STORAGE_KEY))


def _kitchen_id(report):
    return next(room.id for room in report.rooms if room.name == "Kitchen")


class TestCollection:
    def test_create_persists(self, repo, store):
        report = repo.create(now=100)
        assert [r.id for r in _stored(store)] == [report.id]
        assert repo.open_draft(report.id) is report

    def test_load_round_trip(self, repo, store):
        report = repo.create(now=100)
        fresh = ReportRepository(store)
        assert fresh.load() == [report]

    def test_delete(self, repo, store):
        report = repo.create()
        assert repo.delete(report.id) is True
        assert repo.delete(report.id) is False
        assert _stored(store) == []
        with pytest.raises(NotFoundError):
            repo.open_draft(report.id)

    def test_get_unknown(self, repo):
        with pytest.raises(NotFoundError):
            repo.get("report-missing")

    def test_set_status_keeps_last_modified(self, repo, store):
        report = repo.create(now=100)
        updated = repo.set_status(report.id, "archived")
        assert updated.status == "archived"
        assert updated.last_modified == 100
        assert repo.open_draft(report.id).status == "archived"
        assert _stored(store)[0].status == "archived"

    def test_list_saved_uses_committed_state(self, repo):
        report = repo.create(now=100)
        repo.edit(report.id, update_engine.add_snag, _kitchen_id(report))
        assert repo.list_saved()[0].total_snags == 0
        repo.save(report.id, now=200)
        saved = repo.list_saved()[0]
        assert saved.total_snags == 1
        assert saved.last_modified == 200


class TestDrafts:
    def test_edit_returns_created_item(self, repo):
        report = repo.create()
        snag = repo.edit(report.id, update_engine.add_snag, _kitchen_id(report))
        draft = repo.open_draft(report.id)
        assert update_engine.get_snag(draft, _kitchen_id(report), snag.id) == snag

    def test_not_found_leaves_draft_unchanged(self, repo):
        report = repo.create()
        repo.edit(report.id, update_engine.add_snag, _kitchen_id(report))
        before = repo.open_draft(report.id)
        with pytest.raises(NotFoundError):
            repo.edit(report.id, update_engine.update_snag, _kitchen_id(report), "snag-missing", description="x")
        assert repo.open_draft(report.id) is before

    def test_discard_draft_reverts_to_committed(self, repo):
        report = repo.create()
        repo.edit(report.id, update_engine.add_snag, _kitchen_id(report))
        repo.discard_draft(report.id)
        assert repo.open_draft(report.id) == report

    def test_save_stores_draft(self, repo, store):
        report = repo.create(now=100)
        repo.edit(report.id, update_engine.update_report_fields, report.id, client_name="Adams")
        saved = repo.save(report.id, now=500)
        assert saved.client_name == "Adams"
        assert saved.last_modified == 500
        assert _stored(store)[0].client_name == "Adams"


class TestPersistenceFailure:
    def test_failed_write_keeps_memory_state(self, repo, store):
        report = repo.create(now=100)
        store.broken = True
        repo.edit(report.id, update_engine.update_report_fields, report.id, client_name="Adams")
        saved = repo.save(report.id, now=200)

        assert repo.has_unsaved_changes is True
        assert repo.get(report.id) == saved
        assert _stored(store)[0].client_name == ""

    def test_next_successful_write_clears_flag(self, repo, store):
        report = repo.create()
        store.broken = True
        repo.set_status(report.id, "complete")
        assert repo.has_unsaved_changes is True
        store.broken = False
        assert repo.persist() is True
        assert repo.has_unsaved_changes is False
        assert _stored(store)[0].status == "complete"


class TestCorruptStore:
    @pytest.mark.parametrize("raw", CORRUPT_PAYLOADS)
    def test_load_raises_persistence_error(self, raw):
        repo = ReportRepository(MemoryKeyValueStore({DEFAULT_STORAGE_KEY: raw}))
        with pytest.raises(PersistenceError):
            repo.load()

    def test_unreadable_collection_is_never_overwritten(self):
        store = MemoryKeyValueStore({DEFAULT_STORAGE_KEY: b"{not json"})
        repo = ReportRepository(store)
        with pytest.raises(PersistenceError):
            repo.load()

        repo.create()
        assert repo.persist() is False
        assert repo.has_unsaved_changes is True
        assert store.get(DEFAULT_STORAGE_KEY) == b"{not json"

    def test_app_refuses_to_start(self):
        from app import create_app

        store = MemoryKeyValueStore({DEFAULT_STORAGE_KEY: b"{not json"})
        with pytest.raises(PersistenceError):
            create_app("testing", store=store)
        assert store.get(DEFAULT_STORAGE_KEY) == b"{not json"
