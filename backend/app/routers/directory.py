"""Read-only API routes for tenant and contractor reference data."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from app.models.maintenance import Trade
from app.services.directory import directory


router = APIRouter(tags=["directory"])


@router.get("/tenants")
def list_tenants():
    return {"items": [row.model_dump(mode="json") for row in directory.list_tenants()]}


@router.get("/tenants/{tenant_id}")
def get_tenant(tenant_id: str):
    tenant = directory.get_tenant(tenant_id)
    if tenant is None:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return tenant.model_dump(mode="json")


@router.get("/contractors")
def list_contractors(trade: Optional[Trade] = Query(default=None)):
    if trade is not None:
        return {"items": directory.available_contractors(trade), "trade": trade.value}
    return {"items": [row.model_dump(mode="json", exclude_none=True) for row in directory.list_contractors()]}
