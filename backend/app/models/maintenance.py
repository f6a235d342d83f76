"""Domain models for tenant maintenance requests and work orders."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Priority(str, Enum):
    """Ordered urgency levels for a work order."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    EMERGENCY = "Emergency"


class WorkOrderStatus(str, Enum):
    """Lifecycle status for a work order."""

    ASSIGNED = "assigned"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SOLVED = "solved"


ACTIVE_STATUSES = frozenset(
    {WorkOrderStatus.ASSIGNED.value, WorkOrderStatus.PENDING.value, WorkOrderStatus.IN_PROGRESS.value}
)
RESOLVED_STATUSES = frozenset({WorkOrderStatus.COMPLETED.value, WorkOrderStatus.SOLVED.value})


class Trade(str, Enum):
    """Contractor trades a tenant issue can be routed to."""

    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    GAS = "gas"
    GENERAL = "general"
    LOCKSMITH = "locksmith"


class Tenant(BaseModel):
    """Resident reference data."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    unit: str = ""


class Contractor(BaseModel):
    """Tradesperson reference data."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    service: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    hourly_rate: Optional[float] = None
    callout_fee: Optional[float] = None
    availability: Optional[str] = None


class KnowledgeArticle(BaseModel):
    """Self-help guide used for lexical retrieval."""

    model_config = ConfigDict(extra="allow")

    id: str
    title: Optional[str] = None
    content: str = ""
    tags: List[str] = Field(default_factory=list)


class WorkOrderAttachment(BaseModel):
    """Photo attached by the tenant when reporting an issue."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(default_factory=lambda: f"att-{uuid4().hex[:12]}")
    url: str
    filename: str = ""
    media_type: str = Field(default="", alias="mediaType")


class WorkOrder(BaseModel):
    """Persisted work order record."""

    id: str
    tenant_id: str
    contractor_id: str
    contractor_name: str
    trade: Trade
    issue_summary: str
    priority: Priority
    status: WorkOrderStatus = WorkOrderStatus.ASSIGNED
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    attachments: List[WorkOrderAttachment] = Field(default_factory=list)


# Tool argument records, one per tool exposed to the reasoning engine.
# tenant_id fields are always overwritten with the session tenant before use.

class _ToolArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SearchKnowledgeArgs(_ToolArgs):
    query: str = Field(min_length=1)


class CheckSimilarIssuesArgs(_ToolArgs):
    tenant_id: str = ""
    new_issue_description: str = Field(min_length=1)


class GetAvailableContractorsArgs(_ToolArgs):
    trade: Trade


class CreateWorkOrderArgs(_ToolArgs):
    tenant_id: str = ""
    issue_summary: str = Field(min_length=1)
    contractor_id: str = Field(min_length=1)
    priority: Priority
    attachments: List[WorkOrderAttachment] = Field(default_factory=list)


class GetWorkOrdersArgs(_ToolArgs):
    tenant_id: str = ""
    status: Optional[WorkOrderStatus] = None


class UpdateWorkOrderArgs(_ToolArgs):
    work_order_id: str = Field(min_length=1)
    issue_summary: Optional[str] = Field(default=None, min_length=1)
    priority: Optional[Priority] = None
    status: Optional[WorkOrderStatus] = None


class CompleteWorkOrderArgs(_ToolArgs):
    work_order_id: str = Field(min_length=1)
    resolution_notes: Optional[str] = None


class DeleteWorkOrderArgs(_ToolArgs):
    work_order_id: str = Field(min_length=1)


class SimilarityVerdict(BaseModel):
    """Structured answer from the duplicate-comparison reasoning call."""

    model_config = ConfigDict(extra="ignore")

    is_similar: bool = False
    matching_order_id: Optional[str] = None
    reasoning: str = ""


class DuplicateCheckResult(BaseModel):
    """Outcome of comparing a new issue against a tenant's active work orders."""

    has_similar: bool
    similar_work_order: Optional[Dict[str, Any]] = None
    reasoning: Optional[str] = None
    active_work_orders: List[Dict[str, Any]] = Field(default_factory=list)
    active_count: int = 0
    message: str = ""
    error: Optional[str] = None
