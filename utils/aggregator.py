"""Deterministic snag counts and dashboard listing helpers."""
from __future__ import annotations

from typing import Iterable, List, NamedTuple

from models import REPORT_STATUSES, Report, Room, SavedReport, Snag

_SORTERS = {
    "date": lambda r: r.last_modified,
    "address": lambda r: (r.property_address or "").lower(),
    "client": lambda r: (r.client_name or "").lower(),
}
SORT_KEYS = tuple(_SORTERS)
SORT_ORDERS = ("asc", "desc")


class SnagCounts(NamedTuple):
    total: int
    open: int
    critical: int

    def to_dict(self) -> dict:
        return {"total": self.total, "open": self.open, "critical": self.critical}


def _count(snags: Iterable[Snag]) -> SnagCounts:
    total = open_count = critical = 0
    for snag in snags:
        total += 1
        if snag.status == "open":
            open_count += 1
        if snag.priority == "critical":
            critical += 1
    return SnagCounts(total, open_count, critical)


def count_snags(report: Report) -> SnagCounts:
    return _count(report.iter_snags())


def room_counts(room: Room) -> SnagCounts:
    return _count(room.snags)


def to_saved_report(report: Report) -> SavedReport:
    counts = count_snags(report)
    return SavedReport(
        id=report.id,
        property_address=report.property_address,
        developer_name=report.developer_name,
        client_name=report.client_name,
        plot_number=report.plot_number,
        inspection_date=report.inspection_date,
        last_modified=report.last_modified,
        status=report.status or "working",
        total_snags=counts.total,
        open_snags=counts.open,
    )


def filter_reports(
    reports: Iterable[SavedReport],
    status: str = "all",
    query: str = "",
    sort_by: str = "date",
    order: str = "desc",
) -> List[SavedReport]:
    """Apply the dashboard's status tab, free-text search and sort settings."""
    if status != "all" and status not in REPORT_STATUSES:
        raise ValueError(f"Unknown status filter: {status}")
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort_by}")
    if order not in SORT_ORDERS:
        raise ValueError(f"Unknown sort order: {order}")

    needle = (query or "").strip().lower()
    selected = []
    for row in reports:
        if status != "all" and row.status != status:
            continue
        haystacks = (row.property_address, row.client_name, row.developer_name)
        if needle and not any(needle in (value or "").lower() for value in haystacks):
            continue
        selected.append(row)

    return sorted(selected, key=_SORTERS[sort_by], reverse=order == "desc")
