"""Error taxonomy shared by the maintenance agent services."""
from __future__ import annotations


class ToolValidationError(ValueError):
    """Tool arguments were malformed, incomplete, or outside an enumeration."""

    error_type = "validation"


class InvalidStatusTransitionError(ValueError):
    """Requested work-order status change is not allowed from the current state."""

    error_type = "invalid_transition"


class RecordNotFoundError(LookupError):
    """Base class for lookups that reference a missing record."""

    error_type = "not_found"


class WorkOrderNotFoundError(RecordNotFoundError):
    def __init__(self, work_order_id: str) -> None:
        super().__init__(f"Work order '{work_order_id}' not found")
        self.work_order_id = work_order_id


class ContractorNotFoundError(RecordNotFoundError):
    pass


class TenantNotFoundError(RecordNotFoundError):
    pass


class ReasoningEngineError(RuntimeError):
    """The reasoning engine is disabled or the call failed."""

    error_type = "reasoning_engine"


class TurnFailedError(RuntimeError):
    """A chat turn was abandoned (iteration cap or top-level failure)."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def error_type_for(exc: BaseException) -> str:
    """Classify an exception into the tool-result error taxonomy."""
    return str(getattr(exc, "error_type", "internal"))
