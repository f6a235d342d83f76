"""Validates, routes, and normalizes tool calls requested by the reasoning engine."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Tuple, Type

from pydantic import BaseModel, ValidationError

from app.core.errors import ToolValidationError, error_type_for
from app.core.logging import logger
from app.models.maintenance import (
    CheckSimilarIssuesArgs,
    CompleteWorkOrderArgs,
    CreateWorkOrderArgs,
    DeleteWorkOrderArgs,
    GetAvailableContractorsArgs,
    GetWorkOrdersArgs,
    Priority,
    SearchKnowledgeArgs,
    Trade,
    UpdateWorkOrderArgs,
    WorkOrderAttachment,
    WorkOrderStatus,
)
from app.services.directory import Directory
from app.services.duplicate_detector import DuplicateIssueDetector
from app.services.knowledge import KnowledgeRetriever
from app.services.work_orders import WorkOrderStateMachine, summarize_attachments


UNKNOWN_TOOL_RESULT = {"error": "Unknown tool"}


def _enum_values(enum_cls: Any) -> List[str]:
    return [member.value for member in enum_cls]


TOOL_SCHEMAS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "search_knowledge_base",
            "description": "Search the knowledge base for self-help guides and policies.",
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": 'The search query, e.g., "smoke alarm beeping" or "reset boiler".',
                    }
                },
                "required": ["query"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "check_similar_issues",
            "description": (
                "Check whether the tenant already has an active work order for the same underlying problem. "
                "Call this BEFORE create_work_order."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "tenant_id": {"type": "string", "description": "The tenant ID from the chat context."},
                    "new_issue_description": {
                        "type": "string",
                        "description": "The issue the tenant just described.",
                    },
                },
                "required": ["tenant_id", "new_issue_description"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_available_contractors",
            "description": (
                "Get a list of available contractors for a specific trade. Returns contractor details including "
                "their ID (e.g., 'contractor-001'), name, phone, email, rates, and availability."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "trade": {"type": "string", "enum": _enum_values(Trade), "description": "The trade needed."}
                },
                "required": ["trade"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "create_work_order",
            "description": (
                "Create a new work order to dispatch a contractor. You must call check_similar_issues and "
                "get_available_contractors first, and pass the contractor ID."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "tenant_id": {"type": "string", "description": "The tenant ID from the chat context."},
                    "issue_summary": {"type": "string", "description": "Brief summary of the issue."},
                    "contractor_id": {
                        "type": "string",
                        "description": "The ID of the contractor to assign (e.g., 'contractor-001').",
                    },
                    "priority": {
                        "type": "string",
                        "enum": _enum_values(Priority),
                        "description": "Priority level of the work order.",
                    },
                },
                "required": ["tenant_id", "issue_summary", "contractor_id", "priority"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_work_orders",
            "description": "List the tenant's work orders, optionally filtered by status.",
            "parameters": {
                "type": "object",
                "properties": {
                    "tenant_id": {"type": "string", "description": "The tenant ID from the chat context."},
                    "status": {"type": "string", "enum": _enum_values(WorkOrderStatus)},
                },
                "required": ["tenant_id"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "update_work_order",
            "description": "Update the issue summary, priority, or status of an existing work order.",
            "parameters": {
                "type": "object",
                "properties": {
                    "work_order_id": {"type": "string"},
                    "issue_summary": {"type": "string"},
                    "priority": {"type": "string", "enum": _enum_values(Priority)},
                    "status": {"type": "string", "enum": _enum_values(WorkOrderStatus)},
                },
                "required": ["work_order_id"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "complete_work_order",
            "description": "Mark a work order as solved once the tenant confirms the issue is resolved.",
            "parameters": {
                "type": "object",
                "properties": {
                    "work_order_id": {"type": "string"},
                    "resolution_notes": {"type": "string"},
                },
                "required": ["work_order_id"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "delete_work_order",
            "description": "Delete a duplicate or erroneous work order. Use sparingly.",
            "parameters": {
                "type": "object",
                "properties": {"work_order_id": {"type": "string"}},
                "required": ["work_order_id"],
            },
        },
    },
]


def strip_attachment_payloads(value: Any) -> Any:
    """Recursively replace attachment lists with a count and a presence flag."""
    if isinstance(value, list):
        return [strip_attachment_payloads(item) for item in value]
    if isinstance(value, dict):
        if isinstance(value.get("attachments"), list):
            value = summarize_attachments(value)
        return {key: strip_attachment_payloads(item) for key, item in value.items()}
    return value


@dataclass
class TurnContext:
    """Trusted per-turn values injected over whatever the reasoning engine sent."""

    tenant_id: str
    attachments: List[WorkOrderAttachment] = field(default_factory=list)


@dataclass
class DispatchRecord:
    name: str
    arguments: Dict[str, Any]


@dataclass
class ToolOutcome:
    name: str
    ok: bool
    arguments: Dict[str, Any]
    result: Any

    def conversation_payload(self) -> Any:
        """Result as it re-enters the conversation, attachments stripped."""
        return strip_attachment_payloads(self.result)

    def conversation_content(self) -> str:
        return json.dumps(self.conversation_payload(), ensure_ascii=True, default=str)


Handler = Callable[[Any], Awaitable[Any]]


class ToolDispatcher:
    """One dispatcher per chat turn; ``trace`` records each successful dispatch in order."""

    def __init__(
        self,
        context: TurnContext,
        knowledge: KnowledgeRetriever,
        contractors: Directory,
        work_orders: WorkOrderStateMachine,
        detector: DuplicateIssueDetector,
    ) -> None:
        self.context = context
        self._knowledge = knowledge
        self._directory = contractors
        self._work_orders = work_orders
        self._detector = detector
        self.trace: List[DispatchRecord] = []
        self._handlers: Dict[str, Tuple[Type[BaseModel], Handler]] = {
            "search_knowledge_base": (SearchKnowledgeArgs, self._search_knowledge_base),
            "check_similar_issues": (CheckSimilarIssuesArgs, self._check_similar_issues),
            "get_available_contractors": (GetAvailableContractorsArgs, self._get_available_contractors),
            "create_work_order": (CreateWorkOrderArgs, self._create_work_order),
            "get_work_orders": (GetWorkOrdersArgs, self._get_work_orders),
            "update_work_order": (UpdateWorkOrderArgs, self._update_work_order),
            "complete_work_order": (CompleteWorkOrderArgs, self._complete_work_order),
            "delete_work_order": (DeleteWorkOrderArgs, self._delete_work_order),
        }

    @staticmethod
    def tool_schemas() -> List[Dict[str, Any]]:
        return TOOL_SCHEMAS

    def known_tools(self) -> List[str]:
        return list(self._handlers)

    @staticmethod
    def _parse_payload(raw_arguments: Any) -> Dict[str, Any]:
        if raw_arguments is None or raw_arguments == "":
            return {}
        if isinstance(raw_arguments, dict):
            return dict(raw_arguments)
        try:
            parsed = json.loads(str(raw_arguments))
        except ValueError as exc:
            raise ToolValidationError(f"Tool arguments are not valid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ToolValidationError("Tool arguments must be a JSON object")
        return parsed

    def _inject_context(self, name: str, payload: Dict[str, Any], args_model: Type[BaseModel]) -> Dict[str, Any]:
        injected = dict(payload)
        if "tenant_id" in args_model.model_fields:
            injected["tenant_id"] = self.context.tenant_id
        if name == "create_work_order":
            injected["attachments"] = [a.model_dump(mode="json") for a in self.context.attachments]
        return injected

    async def dispatch(self, name: str, raw_arguments: Any) -> ToolOutcome:
        """Run one tool call; never raises."""
        entry = self._handlers.get(name)
        if entry is None:
            logger.warning("Unknown tool requested", tool=name, tenant_id=self.context.tenant_id)
            return ToolOutcome(name=name, ok=False, arguments={}, result=dict(UNKNOWN_TOOL_RESULT))

        args_model, handler = entry
        arguments: Dict[str, Any] = {}
        try:
            payload = self._inject_context(name, self._parse_payload(raw_arguments), args_model)
            try:
                args = args_model(**payload)
            except ValidationError as exc:
                raise ToolValidationError(self._describe_validation_error(exc)) from exc
            arguments = strip_attachment_payloads(args.model_dump(mode="json", exclude_none=True))
            logger.info("Tool dispatched", tool=name, tenant_id=self.context.tenant_id, arguments=arguments)
            result = await handler(args)
        except Exception as exc:
            error_type = error_type_for(exc)
            logger.warning(
                "Tool execution failed",
                tool=name,
                tenant_id=self.context.tenant_id,
                error_type=error_type,
                error=str(exc),
            )
            return ToolOutcome(
                name=name,
                ok=False,
                arguments=arguments,
                result={"error": str(exc), "error_type": error_type},
            )

        self.trace.append(DispatchRecord(name=name, arguments=arguments))
        return ToolOutcome(name=name, ok=True, arguments=arguments, result=result)

    @staticmethod
    def _describe_validation_error(exc: ValidationError) -> str:
        parts = []
        for error in exc.errors():
            location = ".".join(str(item) for item in error.get("loc", ())) or "arguments"
            parts.append(f"{location}: {error.get('msg')}")
        return "Invalid arguments - " + "; ".join(parts)

    async def _search_knowledge_base(self, args: SearchKnowledgeArgs) -> List[Dict[str, Any]]:
        return self._knowledge.search(args.query)

    async def _check_similar_issues(self, args: CheckSimilarIssuesArgs) -> Dict[str, Any]:
        result = await self._detector.check(args.tenant_id, args.new_issue_description)
        return result.model_dump(mode="json")

    async def _get_available_contractors(self, args: GetAvailableContractorsArgs) -> List[Dict[str, Any]]:
        return self._directory.available_contractors(args.trade)

    async def _create_work_order(self, args: CreateWorkOrderArgs) -> Dict[str, Any]:
        return self._work_orders.create(
            tenant_id=args.tenant_id,
            issue_summary=args.issue_summary,
            contractor_ref=args.contractor_id,
            priority=args.priority,
            attachments=args.attachments,
        )

    async def _get_work_orders(self, args: GetWorkOrdersArgs) -> Dict[str, Any]:
        rows = self._work_orders.list(args.tenant_id, status=args.status)
        return {"work_orders": rows, "count": len(rows)}

    async def _update_work_order(self, args: UpdateWorkOrderArgs) -> Dict[str, Any]:
        return self._work_orders.update(
            args.work_order_id,
            issue_summary=args.issue_summary,
            priority=args.priority,
            status=args.status,
            tenant_id=self.context.tenant_id,
        )

    async def _complete_work_order(self, args: CompleteWorkOrderArgs) -> Dict[str, Any]:
        return self._work_orders.complete(
            args.work_order_id,
            resolution_notes=args.resolution_notes,
            tenant_id=self.context.tenant_id,
        )

    async def _delete_work_order(self, args: DeleteWorkOrderArgs) -> Dict[str, Any]:
        deleted = self._work_orders.delete(args.work_order_id, tenant_id=self.context.tenant_id)
        return {"deleted": True, "work_order": deleted}
