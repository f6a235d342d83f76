"""Conversation controller for the tenant maintenance assistant."""
from __future__ import annotations

import json
import time
from typing import Any, Dict, List, Optional, Protocol, Tuple

from app.core.config import get_settings
from app.core.errors import TurnFailedError
from app.core.logging import logger
from app.models.chat import (
    AssistantMessage,
    ChatTurnRequest,
    ChatTurnResponse,
    ReasoningDecision,
    ToolCallTrace,
    ToolResultTrace,
)
from app.models.maintenance import SimilarityVerdict, Tenant
from app.services.directory import Directory, directory
from app.services.duplicate_detector import DuplicateIssueDetector
from app.services.knowledge import KnowledgeRetriever, knowledge_retriever
from app.services.reasoning import reasoning_engine
from app.services.tool_dispatcher import ToolDispatcher, TurnContext, strip_attachment_payloads
from app.services.work_orders import WorkOrderStateMachine, work_order_machine


class ReasoningEngine(Protocol):
    async def complete(self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]) -> ReasoningDecision: ...

    async def judge(self, prompt: str) -> SimilarityVerdict: ...


SYSTEM_PROMPT = """You are a helpful Maintenance Support Agent for a property management company.
Your goal is to assist tenants with maintenance issues by:
1. Collecting the necessary information (what, where, how urgent).
2. Resolving simple issues with the knowledge base.
3. Dispatching a contractor when the issue cannot be self-resolved or is an emergency.

CONTEXT:
Tenant ID: {tenant_id}
Tenant: {tenant_name}
Unit: {tenant_unit}

GUIDELINES:
- EMERGENCY: fire, gas leak, active flooding, or immediate danger -> tell the tenant to contact emergency services first. Create a work order afterwards if appropriate.
- KNOWLEDGE: search the knowledge base for a how-to guide before suggesting a contractor and summarize what you find.
- TONE: professional, empathetic, efficient.
- ACTION: a work order only exists once create_work_order has returned. Never claim an action you did not perform.
- Call one tool at a time and wait for its result before the next call.

BOOKING A CONTRACTOR (in this order):
1. check_similar_issues with the issue the tenant described.
2. If has_similar is true, tell the tenant about the existing work order and ask whether this is the same problem. Only continue if they say it is different.
   If the result carries an error, show the listed active work orders and ask the tenant to confirm before continuing.
3. get_available_contractors for the right trade and pick a contractor.
4. create_work_order with the contractor's ID (e.g. "contractor-005"), never their name, a short issue_summary, and a priority of Low, Medium, High, or Emergency.
Tell the tenant the Work Order ID once it is created.

WORK ORDER MANAGEMENT:
- get_work_orders when the tenant asks about their orders.
- update_work_order to change the summary, priority, or status.
- complete_work_order when the tenant confirms the issue is resolved.
- delete_work_order only for duplicate or erroneous orders.
"""

ATTACHMENT_NOTE = (
    "\n\nNOTE: The tenant has attached {count} photo(s) of the issue. They will be included "
    "automatically in any work order you create."
)

EMPTY_ANSWER_FALLBACK = "I've taken care of that. Is there anything else I can help you with?"

HISTORY_ROLES = {"user", "assistant"}


class MaintenanceAgent:
    """
    Runs one chat turn: ask the reasoning engine for the next action, execute
    any requested tool calls one at a time, fold the results back into the
    conversation, and repeat until a plain answer or the loop cap.
    """

    def __init__(
        self,
        engine: Optional[ReasoningEngine] = None,
        knowledge: Optional[KnowledgeRetriever] = None,
        contractors: Optional[Directory] = None,
        work_orders: Optional[WorkOrderStateMachine] = None,
        max_loops: Optional[int] = None,
        history_messages: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.engine = engine or reasoning_engine
        self._knowledge = knowledge or knowledge_retriever
        self._directory = contractors or directory
        self._work_orders = work_orders or work_order_machine
        self.max_loops = max(1, int(max_loops if max_loops is not None else settings.agent_max_loops))
        self.history_messages = max(0, int(
            history_messages if history_messages is not None else settings.agent_history_messages
        ))

    @staticmethod
    def build_system_prompt(tenant: Tenant, attachment_count: int = 0) -> str:
        prompt = SYSTEM_PROMPT.format(tenant_id=tenant.id, tenant_name=tenant.name, tenant_unit=tenant.unit)
        if attachment_count > 0:
            prompt += ATTACHMENT_NOTE.format(count=attachment_count)
        return prompt

    def split_history(self, request: ChatTurnRequest) -> Tuple[List[Dict[str, str]], str]:
        """Return (trimmed prior turns, new utterance)."""
        history = [
            {"role": row.role, "content": row.content}
            for row in request.messages
            if row.role in HISTORY_ROLES and (row.content or "").strip()
        ]
        utterance = (request.message or "").strip()
        if not utterance and history and history[-1]["role"] == "user":
            utterance = history.pop()["content"].strip()
        if not utterance:
            raise ValueError("A tenant message is required")

        if len(history) > self.history_messages:
            trimmed = history[-self.history_messages:] if self.history_messages else []
            logger.info(
                "Trimmed conversation history",
                original_messages=len(history),
                kept_messages=len(trimmed),
            )
            history = trimmed
        return history, utterance

    def _dispatcher(self, context: TurnContext) -> ToolDispatcher:
        return ToolDispatcher(
            context=context,
            knowledge=self._knowledge,
            contractors=self._directory,
            work_orders=self._work_orders,
            detector=DuplicateIssueDetector(self.engine, work_orders=self._work_orders),
        )

    @staticmethod
    def _assistant_tool_message(decision: ReasoningDecision) -> Dict[str, Any]:
        return {
            "role": "assistant",
            "content": decision.content,
            "tool_calls": [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in decision.tool_calls
            ],
        }

    @staticmethod
    def _requested_arguments(raw: str) -> Dict[str, Any]:
        try:
            parsed = json.loads(raw or "{}")
        except ValueError:
            return {}
        return strip_attachment_payloads(parsed) if isinstance(parsed, dict) else {}

    async def run_turn(self, request: ChatTurnRequest) -> ChatTurnResponse:
        started = time.perf_counter()
        tenant = self._directory.resolve_session_tenant(request.tenant_id)
        history, utterance = self.split_history(request)

        conversation: List[Dict[str, Any]] = [
            {"role": "system", "content": self.build_system_prompt(tenant, len(request.attachments))},
            *history,
            {"role": "user", "content": utterance},
        ]
        dispatcher = self._dispatcher(TurnContext(tenant_id=tenant.id, attachments=list(request.attachments)))
        tools = dispatcher.tool_schemas()
        tool_calls: List[ToolCallTrace] = []
        tool_results: List[ToolResultTrace] = []

        for iteration in range(1, self.max_loops + 1):
            try:
                decision = await self.engine.complete(conversation, tools)
            except Exception as exc:
                logger.error("Reasoning engine call failed", tenant_id=tenant.id, iteration=iteration, error=str(exc))
                raise TurnFailedError("Reasoning engine call failed") from exc

            if decision.is_final:
                answer = (decision.content or "").strip() or EMPTY_ANSWER_FALLBACK
                logger.info(
                    "Chat turn completed",
                    tenant_id=tenant.id,
                    iterations=iteration,
                    tool_calls=len(tool_calls),
                    dispatched=[record.name for record in dispatcher.trace],
                    elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
                )
                return ChatTurnResponse(
                    message=AssistantMessage(content=answer),
                    tool_calls=tool_calls,
                    tool_results=tool_results,
                    iterations=iteration,
                )

            conversation.append(self._assistant_tool_message(decision))
            # Sequential on purpose: a duplicate check must finish before any create runs.
            for call in decision.tool_calls:
                outcome = await dispatcher.dispatch(call.name, call.arguments)
                tool_calls.append(
                    ToolCallTrace(
                        id=call.id,
                        name=call.name,
                        arguments=outcome.arguments or self._requested_arguments(call.arguments),
                    )
                )
                tool_results.append(
                    ToolResultTrace(tool_call_id=call.id, name=call.name, ok=outcome.ok, content=outcome.result)
                )
                conversation.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.id,
                        "name": call.name,
                        "content": outcome.conversation_content(),
                    }
                )

        logger.error(
            "Agent loop limit exceeded",
            tenant_id=tenant.id,
            max_loops=self.max_loops,
            tool_calls=len(tool_calls),
            dispatched=[record.name for record in dispatcher.trace],
        )
        raise TurnFailedError("Agent loop limit exceeded")


maintenance_agent = MaintenanceAgent()
