"""Work-order lifecycle: creation, listing, updates, completion, deletion."""
from __future__ import annotations

import time
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from app.core.errors import InvalidStatusTransitionError, ToolValidationError, WorkOrderNotFoundError
from app.core.logging import logger
from app.models.maintenance import (
    ACTIVE_STATUSES,
    RESOLVED_STATUSES,
    Priority,
    WorkOrder,
    WorkOrderAttachment,
    WorkOrderStatus,
)
from app.services.directory import Directory, directory
from app.services.record_store import WORK_ORDERS, JsonRecordStore, record_store


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# Older records were written with camelCase keys by the previous chat client.
FIELD_ALIASES = {
    "workOrderId": "id",
    "tenantId": "tenant_id",
    "contractorId": "contractor_id",
    "contractorName": "contractor_name",
    "issueSummary": "issue_summary",
    "issue": "issue_summary",
    "description": "issue_summary",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "resolvedAt": "resolved_at",
    "resolutionNotes": "resolution_notes",
}

CANONICAL_FIELDS = (
    "id",
    "tenant_id",
    "contractor_id",
    "contractor_name",
    "trade",
    "issue_summary",
    "priority",
    "status",
    "created_at",
    "updated_at",
    "resolved_at",
    "resolution_notes",
    "attachments",
)


def normalize_attachment(row: Dict[str, Any]) -> Dict[str, Any]:
    normalized = dict(row)
    if "mediaType" in normalized:
        normalized.setdefault("media_type", normalized.pop("mediaType"))
    return normalized


def normalize_work_order(row: Dict[str, Any]) -> Dict[str, Any]:
    """Map a stored record onto the canonical field shape."""
    normalized: Dict[str, Any] = {}
    for key, value in row.items():
        canonical = FIELD_ALIASES.get(key, key)
        if canonical in normalized and normalized[canonical] not in (None, ""):
            continue
        normalized[canonical] = value
    for field in CANONICAL_FIELDS:
        normalized.setdefault(field, None)
    attachments = normalized.get("attachments")
    if not isinstance(attachments, list):
        attachments = []
    normalized["attachments"] = [normalize_attachment(a) for a in attachments if isinstance(a, dict)]
    return normalized


def summarize_attachments(row: Dict[str, Any]) -> Dict[str, Any]:
    """Replace the attachment payload with a count and a presence flag."""
    summary = {key: value for key, value in row.items() if key != "attachments"}
    attachments = row.get("attachments") or []
    count = len(attachments) if isinstance(attachments, list) else 0
    summary["attachment_count"] = count
    summary["has_attachments"] = count > 0
    return summary


class WorkOrderStateMachine:
    """Owns every mutation of the work-order collection."""

    ALLOWED_STATUS_TRANSITIONS = {
        WorkOrderStatus.ASSIGNED.value: {
            WorkOrderStatus.PENDING.value,
            WorkOrderStatus.IN_PROGRESS.value,
            WorkOrderStatus.COMPLETED.value,
            WorkOrderStatus.SOLVED.value,
        },
        WorkOrderStatus.PENDING.value: {
            WorkOrderStatus.IN_PROGRESS.value,
            WorkOrderStatus.COMPLETED.value,
            WorkOrderStatus.SOLVED.value,
        },
        WorkOrderStatus.IN_PROGRESS.value: {
            WorkOrderStatus.PENDING.value,
            WorkOrderStatus.COMPLETED.value,
            WorkOrderStatus.SOLVED.value,
        },
        WorkOrderStatus.COMPLETED.value: set(),
        WorkOrderStatus.SOLVED.value: set(),
    }

    _id_lock = Lock()
    _last_id_ms = 0

    def __init__(self, store: Optional[JsonRecordStore] = None, contractors: Optional[Directory] = None) -> None:
        self._store = store or record_store
        self._directory = contractors or directory

    @classmethod
    def next_work_order_id(cls) -> str:
        with cls._id_lock:
            now_ms = int(time.time() * 1000)
            value = max(now_ms, cls._last_id_ms + 1)
            cls._last_id_ms = value
        return f"wo-{value}"

    @classmethod
    def validate_transition(cls, current_status: Optional[str], next_status: str) -> None:
        # Records stored without a status are treated as freshly assigned.
        current_status = current_status or WorkOrderStatus.ASSIGNED.value
        if current_status == next_status:
            return
        allowed = cls.ALLOWED_STATUS_TRANSITIONS.get(current_status)
        if allowed is None:
            raise InvalidStatusTransitionError(f"Unknown current status '{current_status}'")
        if next_status not in allowed:
            raise InvalidStatusTransitionError(
                f"Invalid status transition {current_status} -> {next_status}. "
                f"Allowed: {sorted(allowed)}"
            )

    def _records(self) -> List[Dict[str, Any]]:
        return [normalize_work_order(row) for row in self._store.read_all(WORK_ORDERS) or []]

    @staticmethod
    def _find_index(rows: List[Dict[str, Any]], work_order_id: str, tenant_id: Optional[str]) -> int:
        for idx, row in enumerate(rows):
            if str(row.get("id") or "") != work_order_id:
                continue
            if tenant_id and str(row.get("tenant_id") or "") != tenant_id:
                continue
            return idx
        raise WorkOrderNotFoundError(work_order_id)

    def create(
        self,
        tenant_id: str,
        issue_summary: str,
        contractor_ref: str,
        priority: Priority | str,
        attachments: Optional[Iterable[WorkOrderAttachment | Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        contractor = self._directory.resolve_contractor(contractor_ref)
        try:
            order = WorkOrder(
                id=self.next_work_order_id(),
                tenant_id=tenant_id,
                contractor_id=contractor.id,
                contractor_name=contractor.name,
                trade=contractor.service.strip().lower(),
                issue_summary=issue_summary,
                priority=priority,
                status=WorkOrderStatus.ASSIGNED,
                attachments=list(attachments or []),
            )
        except ValidationError as exc:
            raise ToolValidationError(str(exc)) from exc

        record = normalize_work_order(order.model_dump(mode="json"))
        with self._store.transaction(WORK_ORDERS) as tx:
            rows = [normalize_work_order(row) for row in tx.records]
            rows.append(record)
            tx.replace(rows)

        logger.info(
            "Work order created",
            work_order_id=record["id"],
            tenant_id=tenant_id,
            contractor_id=contractor.id,
            priority=record["priority"],
            attachments=len(record["attachments"]),
        )
        return record

    def list(
        self,
        tenant_id: str,
        status: Optional[WorkOrderStatus | str] = None,
        include_attachments: bool = False,
    ) -> List[Dict[str, Any]]:
        wanted_status = status.value if isinstance(status, WorkOrderStatus) else (status or None)
        rows = [
            row for row in self._records()
            if str(row.get("tenant_id") or "") == tenant_id
            and (wanted_status is None or row.get("status") == wanted_status)
        ]
        if include_attachments:
            return rows
        return [summarize_attachments(row) for row in rows]

    def active_for_tenant(self, tenant_id: str) -> List[Dict[str, Any]]:
        return [row for row in self.list(tenant_id) if row.get("status") in ACTIVE_STATUSES]

    def get(self, work_order_id: str, tenant_id: Optional[str] = None) -> Dict[str, Any]:
        rows = self._records()
        return rows[self._find_index(rows, work_order_id, tenant_id)]

    def update(
        self,
        work_order_id: str,
        issue_summary: Optional[str] = None,
        priority: Optional[Priority | str] = None,
        status: Optional[WorkOrderStatus | str] = None,
        tenant_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        if issue_summary is None and priority is None and status is None:
            raise ToolValidationError("Provide at least one of issue_summary, priority, or status to update")
        try:
            next_priority = Priority(priority).value if priority is not None else None
            next_status = WorkOrderStatus(status).value if status is not None else None
        except ValueError as exc:
            raise ToolValidationError(str(exc)) from exc

        with self._store.transaction(WORK_ORDERS) as tx:
            rows = [normalize_work_order(row) for row in tx.records]
            idx = self._find_index(rows, work_order_id, tenant_id)
            row = dict(rows[idx])
            now = _utc_now_iso()

            if next_status is not None:
                self.validate_transition(str(row.get("status") or ""), next_status)
                row["status"] = next_status
                if next_status in RESOLVED_STATUSES and not row.get("resolved_at"):
                    row["resolved_at"] = now
            if issue_summary is not None:
                row["issue_summary"] = issue_summary
            if next_priority is not None:
                row["priority"] = next_priority
            row["updated_at"] = now

            rows[idx] = row
            tx.replace(rows)

        logger.info("Work order updated", work_order_id=work_order_id, status=row.get("status"))
        return row

    def complete(
        self,
        work_order_id: str,
        resolution_notes: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        with self._store.transaction(WORK_ORDERS) as tx:
            rows = [normalize_work_order(row) for row in tx.records]
            idx = self._find_index(rows, work_order_id, tenant_id)
            row = dict(rows[idx])
            now = _utc_now_iso()
            row["status"] = WorkOrderStatus.SOLVED.value
            row["updated_at"] = now
            row["resolved_at"] = now
            if resolution_notes:
                row["resolution_notes"] = resolution_notes
            rows[idx] = row
            tx.replace(rows)

        logger.info("Work order completed", work_order_id=work_order_id)
        return row

    def delete(self, work_order_id: str, tenant_id: Optional[str] = None) -> Dict[str, Any]:
        with self._store.transaction(WORK_ORDERS) as tx:
            rows = [normalize_work_order(row) for row in tx.records]
            idx = self._find_index(rows, work_order_id, tenant_id)
            snapshot = rows.pop(idx)
            tx.replace(rows)

        logger.info("Work order deleted", work_order_id=work_order_id, status=snapshot.get("status"))
        return snapshot


work_order_machine = WorkOrderStateMachine()
