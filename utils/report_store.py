"""Report repository: the committed collection, editor drafts and persist-on-change.

The committed collection is what the dashboard lists and what gets written to
the key-value store. Opening a report in the editor creates a draft; edits go
through the update engine against the latest draft and only reach the
collection on ``save``.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional

from models import Report, dump_reports, load_reports
from utils import update_engine
from utils.aggregator import filter_reports, to_saved_report
from utils.kv_store import KeyValueStore, PersistenceError
from utils.update_engine import NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "snagging-reports"


class ReportRepository:
    def __init__(self, store: KeyValueStore, storage_key: str = DEFAULT_STORAGE_KEY):
        self.store = store
        self.storage_key = storage_key
        self._lock = threading.RLock()
        self._reports: List[Report] = []
        self._drafts: Dict[str, Report] = {}
        self.has_unsaved_changes = False
        # Set when the stored collection could not be read; writes would destroy it.
        self._write_blocked = False

    def load(self) -> List[Report]:
        """Replace the in-memory collection with the stored one."""
        try:
            raw = self.store.get(self.storage_key)
        except PersistenceError:
            logger.exception("Unable to load stored reports; starting from the in-memory collection")
            return self.reports()
        try:
            reports = load_reports(raw)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            self._write_blocked = True
            logger.exception("Stored report collection under %s is unreadable; leaving it untouched", self.storage_key)
            raise PersistenceError(f"Stored collection {self.storage_key} is corrupt") from exc
        with self._lock:
            self._write_blocked = False
            self._reports = reports
            self._drafts.clear()
            self.has_unsaved_changes = False
            logger.info("Loaded %d reports from %s", len(self._reports), self.storage_key)
            return list(self._reports)

    def _persist(self) -> bool:
        if self._write_blocked:
            self.has_unsaved_changes = True
            logger.error("Refusing to overwrite unreadable collection %s", self.storage_key)
            return False
        payload = dump_reports(self._reports)
        try:
            self.store.set(self.storage_key, payload)
        except PersistenceError:
            self.has_unsaved_changes = True
            logger.exception("Report collection not persisted; keeping in-memory state")
            return False
        self.has_unsaved_changes = False
        return True

    def persist(self) -> bool:
        with self._lock:
            return self._persist()

    # Committed collection

    def reports(self) -> List[Report]:
        with self._lock:
            return list(self._reports)

    def get(self, report_id: str) -> Report:
        with self._lock:
            for report in self._reports:
                if report.id == report_id:
                    return report
        raise NotFoundError(f"Report {report_id} not found")

    def list_saved(self, status: str = "all", query: str = "", sort_by: str = "date", order: str = "desc"):
        rows = [to_saved_report(r) for r in self.reports()]
        return filter_reports(rows, status=status, query=query, sort_by=sort_by, order=order)

    def create(self, **kwargs) -> Report:
        report = update_engine.create_report(**kwargs)
        with self._lock:
            self._reports.append(report)
            self._drafts[report.id] = report
            self._persist()
        logger.info("Created report %s", report.id)
        return report

    def delete(self, report_id: str) -> bool:
        with self._lock:
            remaining = [r for r in self._reports if r.id != report_id]
            if len(remaining) == len(self._reports):
                return False
            self._reports = remaining
            self._drafts.pop(report_id, None)
            self._persist()
        logger.info("Deleted report %s", report_id)
        return True

    def _replace(self, report: Report) -> None:
        self._reports = [report if r.id == report.id else r for r in self._reports]

    def set_status(self, report_id: str, status: str) -> Report:
        with self._lock:
            updated = update_engine.set_status(self.get(report_id), status)
            self._replace(updated)
            if report_id in self._drafts:
                self._drafts[report_id] = update_engine.set_status(self._drafts[report_id], status)
            self._persist()
            return updated

    # Editor drafts

    def open_draft(self, report_id: str) -> Report:
        with self._lock:
            if report_id not in self._drafts:
                self._drafts[report_id] = self.get(report_id)
            return self._drafts[report_id]

    def discard_draft(self, report_id: str) -> None:
        with self._lock:
            self._drafts.pop(report_id, None)

    def edit(self, report_id: str, operation: Callable, *args, **kwargs):
        """Apply one update-engine operation to the latest draft.

        Operations returning ``(report, created)`` yield ``created``; plain
        operations yield the new draft. A NotFoundError leaves the draft as it
        was and is re-raised to the caller.
        """
        with self._lock:
            current = self.open_draft(report_id)
            try:
                result = operation(current, *args, **kwargs)
            except NotFoundError:
                logger.warning("Rejected edit on report %s", report_id, extra={"operation": operation.__name__})
                raise
            if isinstance(result, tuple):
                updated, created = result
            else:
                updated, created = result, result
            self._drafts[report_id] = updated
            return created

    def save(self, report_id: str, now: Optional[int] = None) -> Report:
        with self._lock:
            committed = update_engine.commit_save(self.open_draft(report_id), now=now)
            self._replace(committed)
            self._drafts[report_id] = committed
            self._persist()
        logger.info("Saved report %s", report_id)
        return committed
