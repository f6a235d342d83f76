"""Read-only API routes for a tenant's work orders."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from app.core.errors import WorkOrderNotFoundError
from app.models.maintenance import WorkOrderStatus
from app.services.work_orders import work_order_machine


router = APIRouter(prefix="/work-orders", tags=["work-orders"])


@router.get("")
def list_work_orders(
    tenant_id: str = Query(..., min_length=1),
    status: Optional[WorkOrderStatus] = Query(default=None),
):
    rows = work_order_machine.list(tenant_id, status=status, include_attachments=True)
    return {"items": rows, "tenant_id": tenant_id}


@router.get("/{work_order_id}")
def get_work_order(work_order_id: str, tenant_id: Optional[str] = Query(default=None)):
    try:
        return work_order_machine.get(work_order_id, tenant_id=tenant_id)
    except WorkOrderNotFoundError:
        raise HTTPException(status_code=404, detail="Work order not found")
