"""Core data models for snagging reports, their catalogs, and the key-value table."""
import json
import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from extensions import db


def generate_id(prefix: str) -> str:
	return f"{prefix}-{uuid.uuid4().hex}"


def now_ms() -> int:
	return int(time.time() * 1000)


REPORT_STATUSES: tuple[str, ...] = (
	"working",
	"complete",
	"archived",
)

SNAG_PRIORITIES: tuple[str, ...] = (
	"critical",
	"high",
	"medium",
	"low",
)

SNAG_STATUSES: tuple[str, ...] = (
	"open",
	"in-progress",
	"resolved",
)

# Lower rank is more severe.
PRIORITY_RANK: dict[str, int] = {name: rank for rank, name in enumerate(SNAG_PRIORITIES)}

DEFAULT_ROOMS: tuple[str, ...] = (
	"Front Elevation",
	"Rear Elevation",
	"Driveway/Parking",
	"Garden/Landscaping",
	"Hallway/Entrance",
	"Living Room",
	"Kitchen",
	"Dining Room",
	"Utility Room",
	"WC/Cloakroom",
	"Landing",
	"Master Bedroom",
	"En-Suite",
	"Bedroom 2",
	"Bedroom 3",
	"Bedroom 4",
	"Family Bathroom",
	"Garage",
	"Loft Space",
	"General/Miscellaneous",
)

SNAG_TEMPLATES: dict[str, tuple[str, ...]] = {
	"Paint & Decoration": (
		"Paint finish requires touch-up - visible brush marks/roller marks",
		"Emulsion not rubbed down or finished properly",
		"Paint splashes on floor/surfaces to be cleaned",
		"Sealant around frame needs finishing",
		"Filler visible through paint - requires sanding and repainting",
	),
	"Doors": (
		"Door not closing properly - requires adjustment",
		"Door furniture loose/scratched - requires tightening/replacement",
		"Fire door not self-closing correctly",
		"Door sticking on frame - requires easing",
		"Door handle mechanism not operating smoothly",
	),
	"Windows": (
		"Window mechanism stiff - requires adjustment/lubrication",
		"Scratches on glass to be replaced",
		"Window seal incomplete/requires attention",
		"Window not locking properly",
		"Condensation between panes - sealed unit failure",
	),
	"Flooring": (
		"Flooring not level - noticeable dip/rise",
		"Scratches/damage to floor finish",
		"Skirting board gap to floor - requires filler",
		"Floor tile loose/cracked",
		"Carpet fitting poor - requires re-stretching",
	),
	"Plumbing": (
		"Tap dripping - requires washer replacement",
		"Waste pipe leaking under sink",
		"Toilet not flushing correctly",
		"Radiator not heating properly - requires bleeding",
		"Low water pressure at outlet",
	),
	"Electrical": (
		"Light fitting not working",
		"Socket plate loose/damaged",
		"Switch not operating correctly",
		"Extractor fan noisy/not working",
		"Doorbell not functioning",
	),
	"Kitchen": (
		"Kitchen unit door misaligned",
		"Drawer runner not operating smoothly",
		"Worktop joint visible/poor finish",
		"Appliance not functioning correctly",
		"Splashback tile cracked/missing grout",
	),
	"Bathroom": (
		"Silicone sealant around bath/shower incomplete",
		"Tile grouting missing/incomplete",
		"Shower screen not sealing properly",
		"Extractor fan not working",
		"Toilet seat loose",
	),
}

REPORT_TEXT_FIELDS: tuple[str, ...] = (
	"property_address",
	"developer_name",
	"client_name",
	"plot_number",
	"inspection_date",
)

SNAG_PATCH_FIELDS: tuple[str, ...] = (
	"location",
	"description",
	"priority",
	"status",
)


@dataclass(frozen=True)
class Photo:
	id: str
	url: str
	name: Optional[str] = None


@dataclass(frozen=True)
class Snag:
	id: str
	created_at: int
	location: str = ""
	description: str = ""
	priority: str = "medium"
	status: str = "open"
	photos: tuple[Photo, ...] = ()


@dataclass(frozen=True)
class Room:
	id: str
	name: str
	snags: tuple[Snag, ...] = ()


@dataclass(frozen=True)
class Report:
	id: str
	created_at: int
	last_modified: int
	property_address: str = ""
	developer_name: str = ""
	client_name: str = ""
	plot_number: str = ""
	inspection_date: str = ""
	status: str = "working"
	rooms: tuple[Room, ...] = ()
	cover_photo: Optional[Photo] = None

	def room(self, room_id: str) -> Optional[Room]:
		return next((r for r in self.rooms if r.id == room_id), None)

	def iter_snags(self) -> Iterable[Snag]:
		for room in self.rooms:
			yield from room.snags


@dataclass(frozen=True)
class SavedReport:
	"""Flattened listing row; the counts are derived, never stored."""

	id: str
	property_address: str
	developer_name: str
	client_name: str
	plot_number: str
	inspection_date: str
	last_modified: int
	status: str
	total_snags: int
	open_snags: int

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"propertyAddress": self.property_address,
			"developerName": self.developer_name,
			"clientName": self.client_name,
			"plotNumber": self.plot_number,
			"inspectionDate": self.inspection_date,
			"lastModified": self.last_modified,
			"status": self.status,
			"totalSnags": self.total_snags,
			"openSnags": self.open_snags,
		}


def today_iso() -> str:
	return date.today().isoformat()


def build_default_rooms(id_factory=generate_id) -> tuple[Room, ...]:
	return tuple(Room(id=id_factory("room"), name=name) for name in DEFAULT_ROOMS)


# Serialization keeps the camelCase layout of the stored collection.

def photo_to_dict(photo: Photo) -> Dict[str, Any]:
	data: Dict[str, Any] = {"id": photo.id, "url": photo.url}
	if photo.name is not None:
		data["name"] = photo.name
	return data


def photo_from_dict(data: Dict[str, Any]) -> Photo:
	return Photo(id=str(data["id"]), url=str(data.get("url") or ""), name=data.get("name"))


def snag_to_dict(snag: Snag) -> Dict[str, Any]:
	return {
		"id": snag.id,
		"location": snag.location,
		"description": snag.description,
		"priority": snag.priority,
		"status": snag.status,
		"photos": [photo_to_dict(p) for p in snag.photos],
		"createdAt": snag.created_at,
	}


def snag_from_dict(data: Dict[str, Any]) -> Snag:
	priority = data.get("priority") or "medium"
	status = data.get("status") or "open"
	if priority not in SNAG_PRIORITIES:
		raise ValueError(f"Unknown snag priority: {priority}")
	if status not in SNAG_STATUSES:
		raise ValueError(f"Unknown snag status: {status}")
	return Snag(
		id=str(data["id"]),
		created_at=int(data.get("createdAt") or 0),
		location=data.get("location") or "",
		description=data.get("description") or "",
		priority=priority,
		status=status,
		photos=tuple(photo_from_dict(p) for p in data.get("photos") or []),
	)


def room_to_dict(room: Room) -> Dict[str, Any]:
	return {"id": room.id, "name": room.name, "snags": [snag_to_dict(s) for s in room.snags]}


def room_from_dict(data: Dict[str, Any]) -> Room:
	return Room(
		id=str(data["id"]),
		name=data.get("name") or "",
		snags=tuple(snag_from_dict(s) for s in data.get("snags") or []),
	)


def report_to_dict(report: Report) -> Dict[str, Any]:
	return {
		"id": report.id,
		"propertyAddress": report.property_address,
		"developerName": report.developer_name,
		"clientName": report.client_name,
		"plotNumber": report.plot_number,
		"inspectionDate": report.inspection_date,
		"status": report.status,
		"rooms": [room_to_dict(r) for r in report.rooms],
		"coverPhoto": photo_to_dict(report.cover_photo) if report.cover_photo else None,
		"createdAt": report.created_at,
		"lastModified": report.last_modified,
	}


def report_from_dict(data: Dict[str, Any]) -> Report:
	status = data.get("status") or "working"
	if status not in REPORT_STATUSES:
		raise ValueError(f"Unknown report status: {status}")
	rooms = tuple(room_from_dict(r) for r in data.get("rooms") or [])
	if not rooms:
		rooms = build_default_rooms()
	cover = data.get("coverPhoto")
	created_at = int(data.get("createdAt") or 0)
	last_modified = max(int(data.get("lastModified") or created_at), created_at)
	return Report(
		id=str(data["id"]),
		created_at=created_at,
		last_modified=last_modified,
		property_address=data.get("propertyAddress") or "",
		developer_name=data.get("developerName") or "",
		client_name=data.get("clientName") or "",
		plot_number=data.get("plotNumber") or "",
		inspection_date=data.get("inspectionDate") or "",
		status=status,
		rooms=rooms,
		cover_photo=photo_from_dict(cover) if cover else None,
	)


def dump_reports(reports: Iterable[Report]) -> bytes:
	payload = [report_to_dict(r) for r in reports]
	return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def load_reports(raw: Optional[bytes]) -> List[Report]:
	if not raw:
		return []
	payload = json.loads(raw.decode("utf-8"))
	if not isinstance(payload, list):
		raise ValueError("Stored report collection must be a JSON array")
	return [report_from_dict(item) for item in payload]


class KeyValueEntry(db.Model):
	__tablename__ = "kv_entries"

	key = db.Column(db.String(255), primary_key=True)
	value = db.Column(db.LargeBinary, nullable=False)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
