"""Semantic duplicate check run before a contractor is dispatched."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Protocol

from app.core.logging import logger
from app.models.maintenance import DuplicateCheckResult, SimilarityVerdict
from app.services.work_orders import WorkOrderStateMachine, work_order_machine


class SimilarityJudge(Protocol):
    async def judge(self, prompt: str) -> SimilarityVerdict: ...


COMPARISON_FIELDS = ("id", "issue_summary", "trade", "priority", "status", "created_at")

COMPARISON_PROMPT = """A tenant has reported a new maintenance issue. Decide whether it describes the SAME underlying problem as one of their active work orders.

NEW ISSUE:
{description}

ACTIVE WORK ORDERS:
{orders}

Rules:
- Judge by root cause and location, not by wording. Treat synonyms and paraphrases as equivalent ("tap" and "faucet", "dripping" and "leaking").
- Different fixtures, rooms, or systems are different problems even when the trade is the same.
- Only set is_similar to true when you can name the matching work order id from the list above.

Respond with JSON: {{"is_similar": boolean, "matching_order_id": string or null, "reasoning": string}}"""


class DuplicateIssueDetector:
    """
    Compares a newly reported issue with the tenant's active work orders.

    The check is a safety net, not a gate: when the reasoning call fails or
    names an order that is not in the active set, the result fails open
    (``has_similar`` false) and carries the active orders plus an ``error``
    so the caller can review them by hand.
    """

    def __init__(self, judge: SimilarityJudge, work_orders: Optional[WorkOrderStateMachine] = None) -> None:
        self._judge = judge
        self._work_orders = work_orders or work_order_machine

    @staticmethod
    def build_prompt(description: str, active: List[Dict[str, Any]]) -> str:
        orders = [{field: row.get(field) for field in COMPARISON_FIELDS} for row in active]
        return COMPARISON_PROMPT.format(
            description=description.strip(),
            orders=json.dumps(orders, indent=2, ensure_ascii=True),
        )

    async def check(self, tenant_id: str, new_issue_description: str) -> DuplicateCheckResult:
        active = self._work_orders.active_for_tenant(tenant_id)
        if not active:
            return DuplicateCheckResult(
                has_similar=False,
                active_count=0,
                message="No active work orders for this tenant.",
            )

        try:
            verdict = await self._judge.judge(self.build_prompt(new_issue_description, active))
        except Exception as exc:
            logger.warning(
                "Duplicate check degraded; reasoning call failed",
                tenant_id=tenant_id,
                active_count=len(active),
                error=str(exc),
            )
            return self._degraded(active, f"Similarity check unavailable: {exc}")

        if not verdict.is_similar:
            return DuplicateCheckResult(
                has_similar=False,
                reasoning=verdict.reasoning or None,
                active_count=len(active),
                message="No active work order describes the same problem.",
            )

        match_id = str(verdict.matching_order_id or "").strip()
        match = next((row for row in active if str(row.get("id")) == match_id), None)
        if match is None:
            logger.warning(
                "Duplicate check degraded; matching order not in active set",
                tenant_id=tenant_id,
                matching_order_id=match_id or None,
            )
            return self._degraded(
                active,
                f"Similarity check named unknown work order '{match_id}'",
                reasoning=verdict.reasoning or None,
            )

        return DuplicateCheckResult(
            has_similar=True,
            similar_work_order=match,
            reasoning=verdict.reasoning or None,
            active_count=len(active),
            message=f"Existing work order {match_id} appears to cover the same problem.",
        )

    @staticmethod
    def _degraded(active: List[Dict[str, Any]], error: str, reasoning: Optional[str] = None) -> DuplicateCheckResult:
        return DuplicateCheckResult(
            has_similar=False,
            reasoning=reasoning,
            active_work_orders=active,
            active_count=len(active),
            message="Could not verify duplicates automatically; review the active work orders with the tenant.",
            error=error,
        )
