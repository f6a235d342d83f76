"""OpenAI-compatible reasoning engine used by the maintenance agent."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from app.core.config import Settings, get_settings
from app.core.errors import ReasoningEngineError
from app.core.logging import logger
from app.models.chat import ReasoningDecision, ToolCallRequest
from app.models.maintenance import SimilarityVerdict


JUDGE_SYSTEM_PROMPT = (
    "You compare property-maintenance issues. Answer only with a JSON object "
    'of the form {"is_similar": boolean, "matching_order_id": string or null, '
    '"reasoning": string}.'
)


class OpenAIReasoningEngine:
    """Chat-completions client for the dialogue loop and the duplicate judge."""

    def __init__(self, settings: Optional[Settings] = None, client: Any = None) -> None:
        self.settings = settings or get_settings()
        self._client = client
        if self._client is None:
            key = self.settings.resolved_openai_api_key()
            if key:
                self._client = AsyncOpenAI(
                    api_key=key,
                    base_url=self.settings.openai_base_url or None,
                    timeout=httpx.Timeout(float(self.settings.llm_timeout_seconds), connect=5.0),
                )
            else:
                logger.info("Reasoning engine disabled (missing OPENAI_API_KEY).")

    def is_enabled(self) -> bool:
        return self._client is not None

    def _require_client(self) -> Any:
        if self._client is None:
            raise ReasoningEngineError("Reasoning engine is not configured")
        return self._client

    async def complete(self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]) -> ReasoningDecision:
        """Ask for the next action; tool calls come back as one sequential batch."""
        client = self._require_client()
        try:
            completion = await client.chat.completions.create(
                model=self.settings.llm_model,
                messages=messages,
                tools=tools,
                tool_choice="auto",
                parallel_tool_calls=False,
                temperature=self.settings.llm_temperature,
                max_tokens=self.settings.llm_max_tokens,
            )
        except (OpenAIError, httpx.HTTPError) as exc:
            raise ReasoningEngineError(f"Chat completion failed: {exc}") from exc

        message = completion.choices[0].message
        tool_calls = [
            ToolCallRequest(
                id=str(call.id),
                name=str(call.function.name or ""),
                arguments=str(call.function.arguments or "{}"),
            )
            for call in (message.tool_calls or [])
        ]
        return ReasoningDecision(content=message.content, tool_calls=tool_calls)

    async def judge(self, prompt: str) -> SimilarityVerdict:
        """Single-shot structured comparison for the duplicate detector."""
        client = self._require_client()
        try:
            completion = await client.chat.completions.create(
                model=self.settings.resolved_duplicate_check_model(),
                messages=[
                    {"role": "system", "content": JUDGE_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0,
                max_tokens=300,
            )
        except (OpenAIError, httpx.HTTPError) as exc:
            raise ReasoningEngineError(f"Similarity judgement failed: {exc}") from exc

        raw = completion.choices[0].message.content or "{}"
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise ReasoningEngineError(f"Similarity judgement was not JSON: {raw[:120]}") from exc
        if not isinstance(payload, dict):
            raise ReasoningEngineError("Similarity judgement was not a JSON object")
        return SimilarityVerdict(**payload)


reasoning_engine = OpenAIReasoningEngine()
