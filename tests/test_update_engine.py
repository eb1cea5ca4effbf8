"""
Tests for the copy-on-write update engine.

Tests cover:
- Report creation from the room catalog
- Field patches preserving identity and the room subtree
- Snag add / update / template / delete
- Photo add / remove and the cover photo
- Not-found handling and status changes
"""

import pytest

from models import DEFAULT_ROOMS, SNAG_TEMPLATES
from utils import update_engine
from utils.update_engine import NotFoundError


@pytest.fixture
def report(id_factory):
    return update_engine.create_report(now=1_000, id_factory=id_factory)


def _kitchen(report):
    return next(room for room in report.rooms if room.name == "Kitchen")


class TestCreateReport:
    def test_defaults(self, report):
        assert report.id == "report-1"
        assert report.created_at == report.last_modified == 1_000
        assert report.status == "working"
        assert report.cover_photo is None
        assert [room.name for room in report.rooms] == list(DEFAULT_ROOMS)
        assert all(room.snags == () for room in report.rooms)

    def test_room_ids_are_unique(self, report):
        ids = [room.id for room in report.rooms]
        assert len(ids) == len(set(ids))

    def test_fresh_ids_per_report(self):
        first = update_engine.create_report()
        second = update_engine.create_report()
        assert first.id != second.id
        assert {r.id for r in first.rooms}.isdisjoint({r.id for r in second.rooms})


class TestReportFields:
    def test_patch_preserves_identity_and_rooms(self, report):
        updated = update_engine.update_report_fields(
            report, report.id, property_address="12 Oak Lane", client_name="J. Smith"
        )
        assert updated.property_address == "12 Oak Lane"
        assert updated.client_name == "J. Smith"
        assert updated.id == report.id
        assert updated.created_at == report.created_at
        assert updated.rooms is report.rooms
        assert report.property_address == ""

    def test_wrong_report_id(self, report):
        with pytest.raises(NotFoundError):
            update_engine.update_report_fields(report, "report-missing", client_name="x")

    def test_unknown_field(self, report):
        with pytest.raises(ValueError):
            update_engine.update_report_fields(report, report.id, status="complete")

    def test_empty_patch_is_identity(self, report):
        assert update_engine.update_report_fields(report, report.id) is report


class TestSnags:
    def test_add_snag_defaults(self, report):
        kitchen = _kitchen(report)
        updated, snag = update_engine.add_snag(report, kitchen.id, now=2_000)
        assert snag.location == ""
        assert snag.description == ""
        assert snag.priority == "medium"
        assert snag.status == "open"
        assert snag.created_at == 2_000
        assert _kitchen(updated).snags == (snag,)
        assert _kitchen(report).snags == ()

    def test_untouched_rooms_are_shared(self, report):
        kitchen = _kitchen(report)
        updated, _ = update_engine.add_snag(report, kitchen.id)
        for before, after in zip(report.rooms, updated.rooms):
            if before.id != kitchen.id:
                assert after is before

    def test_add_then_delete_restores_room(self, report):
        kitchen = _kitchen(report)
        with_one, _ = update_engine.add_snag(report, kitchen.id)
        with_two, second = update_engine.add_snag(with_one, kitchen.id)
        restored = update_engine.delete_snag(with_two, kitchen.id, second.id)
        assert _kitchen(restored).snags == _kitchen(with_one).snags

    def test_delete_twice_equals_once(self, report):
        kitchen = _kitchen(report)
        updated, snag = update_engine.add_snag(report, kitchen.id)
        once = update_engine.delete_snag(updated, kitchen.id, snag.id)
        twice = update_engine.delete_snag(once, kitchen.id, snag.id)
        assert twice == once
        assert twice is once

    def test_delete_unknown_room_is_noop(self, report):
        assert update_engine.delete_snag(report, "room-missing", "snag-missing") is report

    def test_update_snag(self, report):
        kitchen = _kitchen(report)
        updated, snag = update_engine.add_snag(report, kitchen.id)
        patched = update_engine.update_snag(
            updated, kitchen.id, snag.id, location="Under sink", description="Leak", priority="critical"
        )
        result = update_engine.get_snag(patched, kitchen.id, snag.id)
        assert (result.location, result.description, result.priority, result.status) == (
            "Under sink",
            "Leak",
            "critical",
            "open",
        )
        assert result.created_at == snag.created_at
        assert update_engine.get_snag(updated, kitchen.id, snag.id) == snag

    def test_update_unknown_snag_leaves_input(self, report):
        kitchen = _kitchen(report)
        updated, _ = update_engine.add_snag(report, kitchen.id)
        with pytest.raises(NotFoundError):
            update_engine.update_snag(updated, kitchen.id, "snag-missing", description="x")
        assert _kitchen(updated).snags[0].description == ""

    def test_update_unknown_room(self, report):
        with pytest.raises(NotFoundError):
            update_engine.update_snag(report, "room-missing", "snag-1", description="x")

    @pytest.mark.parametrize(
        "patch",
        [{"priority": "urgent"}, {"status": "done"}, {"colour": "red"}],
    )
    def test_update_rejects_invalid_values(self, report, patch):
        kitchen = _kitchen(report)
        updated, snag = update_engine.add_snag(report, kitchen.id)
        with pytest.raises(ValueError):
            update_engine.update_snag(updated, kitchen.id, snag.id, **patch)

    def test_apply_template(self, report):
        kitchen = _kitchen(report)
        updated, snag = update_engine.add_snag(report, kitchen.id)
        patched = update_engine.apply_template(updated, kitchen.id, snag.id, "Doors", 3)
        assert update_engine.get_snag(patched, kitchen.id, snag.id).description == SNAG_TEMPLATES["Doors"][3]

    @pytest.mark.parametrize("category,index", [("Roofing", 0), ("Doors", 99), ("Doors", -1), ("Doors", "1")])
    def test_apply_template_rejects_unknown(self, report, category, index):
        kitchen = _kitchen(report)
        updated, snag = update_engine.add_snag(report, kitchen.id)
        with pytest.raises(ValueError):
            update_engine.apply_template(updated, kitchen.id, snag.id, category, index)


class TestPhotos:
    def test_add_photos_in_order(self, report, id_factory):
        kitchen = _kitchen(report)
        updated, snag = update_engine.add_snag(report, kitchen.id)
        updated, first = update_engine.add_photo(updated, kitchen.id, snag.id, "data:a", "a.png", id_factory=id_factory)
        updated, second = update_engine.add_photo(updated, kitchen.id, snag.id, "data:b", id_factory=id_factory)
        photos = update_engine.get_snag(updated, kitchen.id, snag.id).photos
        assert photos == (first, second)
        assert first.name == "a.png"
        assert second.name is None

    def test_remove_photo_is_idempotent(self, report):
        kitchen = _kitchen(report)
        updated, snag = update_engine.add_snag(report, kitchen.id)
        updated, photo = update_engine.add_photo(updated, kitchen.id, snag.id, "data:a")
        removed = update_engine.remove_photo(updated, kitchen.id, snag.id, photo.id)
        assert update_engine.get_snag(removed, kitchen.id, snag.id).photos == ()
        assert update_engine.remove_photo(removed, kitchen.id, snag.id, photo.id) is removed

    def test_add_photo_to_missing_snag(self, report):
        with pytest.raises(NotFoundError):
            update_engine.add_photo(report, _kitchen(report).id, "snag-missing", "data:a")

    def test_cover_photo(self, report):
        covered = update_engine.set_cover_photo(report, "data:cover", "front.jpg")
        assert covered.cover_photo.url == "data:cover"
        assert covered.cover_photo.name == "front.jpg"
        cleared = update_engine.clear_cover_photo(covered)
        assert cleared.cover_photo is None
        assert update_engine.clear_cover_photo(cleared) is cleared


class TestStatusAndSave:
    def test_set_status_keeps_last_modified(self, report):
        updated = update_engine.set_status(report, "complete")
        assert updated.status == "complete"
        assert updated.last_modified == report.last_modified

    def test_set_status_rejects_unknown(self, report):
        with pytest.raises(ValueError):
            update_engine.set_status(report, "deleted")

    def test_commit_save_bumps_last_modified(self, report):
        assert update_engine.commit_save(report, now=5_000).last_modified == 5_000

    def test_commit_save_never_precedes_created_at(self, report):
        assert update_engine.commit_save(report, now=10).last_modified == report.created_at
