"""Copy-on-write edits for the Report -> Room -> Snag -> Photo tree.

Every function takes a Report and returns a new one; the input value is never
mutated. Only the targeted node and its ancestors are rebuilt, untouched
siblings are shared by reference.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Callable, Optional, Tuple

from models import (
    REPORT_STATUSES,
    REPORT_TEXT_FIELDS,
    SNAG_PATCH_FIELDS,
    SNAG_PRIORITIES,
    SNAG_STATUSES,
    SNAG_TEMPLATES,
    Photo,
    Report,
    Room,
    Snag,
    build_default_rooms,
    generate_id,
    now_ms,
    today_iso,
)

IdFactory = Callable[[str], str]


class NotFoundError(LookupError):
    """Raised when an edit references a report, room or snag that is not in the tree."""


def _room_index(report: Report, room_id: str) -> int:
    for idx, room in enumerate(report.rooms):
        if room.id == room_id:
            return idx
    raise NotFoundError(f"Room {room_id} not found")


def _snag_index(room: Room, snag_id: str) -> int:
    for idx, snag in enumerate(room.snags):
        if snag.id == snag_id:
            return idx
    raise NotFoundError(f"Snag {snag_id} not found in room {room.id}")


def _replace_room(report: Report, idx: int, room: Room) -> Report:
    rooms = report.rooms[:idx] + (room,) + report.rooms[idx + 1 :]
    return replace(report, rooms=rooms)


def _map_snag(report: Report, room_id: str, snag_id: str, change: Callable[[Snag], Snag]) -> Report:
    room_idx = _room_index(report, room_id)
    room = report.rooms[room_idx]
    snag_idx = _snag_index(room, snag_id)
    snags = room.snags[:snag_idx] + (change(room.snags[snag_idx]),) + room.snags[snag_idx + 1 :]
    return _replace_room(report, room_idx, replace(room, snags=snags))


def create_report(now: Optional[int] = None, id_factory: IdFactory = generate_id) -> Report:
    stamp = now_ms() if now is None else now
    return Report(
        id=id_factory("report"),
        created_at=stamp,
        last_modified=stamp,
        inspection_date=today_iso(),
        status="working",
        rooms=build_default_rooms(id_factory),
        cover_photo=None,
    )


def update_report_fields(report: Report, report_id: str, **patch: str) -> Report:
    if report.id != report_id:
        raise NotFoundError(f"Report {report_id} not found")
    unknown = set(patch) - set(REPORT_TEXT_FIELDS)
    if unknown:
        raise ValueError(f"Unsupported report fields: {', '.join(sorted(unknown))}")
    if not patch:
        return report
    return replace(report, **{key: str(value or "") for key, value in patch.items()})


def add_snag(
    report: Report,
    room_id: str,
    now: Optional[int] = None,
    id_factory: IdFactory = generate_id,
) -> Tuple[Report, Snag]:
    room_idx = _room_index(report, room_id)
    room = report.rooms[room_idx]
    snag = Snag(id=id_factory("snag"), created_at=now_ms() if now is None else now)
    updated = _replace_room(report, room_idx, replace(room, snags=room.snags + (snag,)))
    return updated, snag


def _validate_snag_patch(patch: dict) -> dict:
    unknown = set(patch) - set(SNAG_PATCH_FIELDS)
    if unknown:
        raise ValueError(f"Unsupported snag fields: {', '.join(sorted(unknown))}")
    if "priority" in patch and patch["priority"] not in SNAG_PRIORITIES:
        raise ValueError(f"Invalid priority: {patch['priority']}")
    if "status" in patch and patch["status"] not in SNAG_STATUSES:
        raise ValueError(f"Invalid status: {patch['status']}")
    cleaned = dict(patch)
    for key in ("location", "description"):
        if key in cleaned:
            cleaned[key] = str(cleaned[key] or "")
    return cleaned


def update_snag(report: Report, room_id: str, snag_id: str, **patch: str) -> Report:
    cleaned = _validate_snag_patch(patch)
    return _map_snag(report, room_id, snag_id, lambda snag: replace(snag, **cleaned))


def apply_template(report: Report, room_id: str, snag_id: str, category: str, index: int) -> Report:
    """Fill a snag's description from the canned template catalog."""
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise ValueError(f"Template {index!r} not available in {category}")
    try:
        description = SNAG_TEMPLATES[category][index]
    except KeyError as exc:
        raise ValueError(f"Unknown template category: {category}") from exc
    except (IndexError, TypeError) as exc:
        raise ValueError(f"Template {index!r} not available in {category}") from exc
    return update_snag(report, room_id, snag_id, description=description)


def delete_snag(report: Report, room_id: str, snag_id: str) -> Report:
    """Remove a snag. Missing rooms or snags leave the report as it is."""
    try:
        room_idx = _room_index(report, room_id)
    except NotFoundError:
        return report
    room = report.rooms[room_idx]
    snags = tuple(s for s in room.snags if s.id != snag_id)
    if len(snags) == len(room.snags):
        return report
    return _replace_room(report, room_idx, replace(room, snags=snags))


def add_photo(
    report: Report,
    room_id: str,
    snag_id: str,
    url: str,
    name: Optional[str] = None,
    id_factory: IdFactory = generate_id,
) -> Tuple[Report, Photo]:
    photo = Photo(id=id_factory("photo"), url=url, name=name)
    updated = _map_snag(report, room_id, snag_id, lambda snag: replace(snag, photos=snag.photos + (photo,)))
    return updated, photo


def remove_photo(report: Report, room_id: str, snag_id: str, photo_id: str) -> Report:
    try:
        room = report.rooms[_room_index(report, room_id)]
        snag = room.snags[_snag_index(room, snag_id)]
    except NotFoundError:
        return report
    if not any(p.id == photo_id for p in snag.photos):
        return report
    return _map_snag(
        report,
        room_id,
        snag_id,
        lambda s: replace(s, photos=tuple(p for p in s.photos if p.id != photo_id)),
    )


def set_cover_photo(
    report: Report,
    url: str,
    name: Optional[str] = None,
    id_factory: IdFactory = generate_id,
) -> Report:
    return replace(report, cover_photo=Photo(id=id_factory("photo"), url=url, name=name))


def clear_cover_photo(report: Report) -> Report:
    if report.cover_photo is None:
        return report
    return replace(report, cover_photo=None)


def set_status(report: Report, status: str) -> Report:
    # Status changes are not content edits: last_modified stays put.
    if status not in REPORT_STATUSES:
        raise ValueError(f"Invalid report status: {status}")
    return replace(report, status=status)


def commit_save(report: Report, now: Optional[int] = None) -> Report:
    stamp = now_ms() if now is None else now
    return replace(report, last_modified=max(stamp, report.created_at))


def get_snag(report: Report, room_id: str, snag_id: str) -> Snag:
    room = report.rooms[_room_index(report, room_id)]
    return room.snags[_snag_index(room, snag_id)]
