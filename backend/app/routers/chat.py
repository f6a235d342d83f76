"""API route for tenant maintenance chat turns."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException

from app.core.errors import TenantNotFoundError, TurnFailedError
from app.core.logging import logger
from app.models.chat import ChatTurnRequest, ChatTurnResponse
from app.services.maintenance_agent import maintenance_agent


router = APIRouter(prefix="/chat", tags=["chat"])

GENERIC_FAILURE_MESSAGE = "Sorry, something went wrong while handling your request. Please try again."


@router.post("", response_model=ChatTurnResponse)
async def chat_turn(request: ChatTurnRequest):
    try:
        return await maintenance_agent.run_turn(request)
    except TurnFailedError as exc:
        logger.error("Chat turn abandoned", tenant_id=request.tenant_id, reason=exc.reason)
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)
    except TenantNotFoundError as exc:
        logger.error("Chat turn has no tenant", tenant_id=request.tenant_id, error=str(exc))
        raise HTTPException(status_code=500, detail=GENERIC_FAILURE_MESSAGE)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
