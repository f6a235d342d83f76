"""Read-only lookups over tenant and contractor reference data."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from app.core.config import get_settings
from app.core.errors import ContractorNotFoundError, TenantNotFoundError
from app.core.logging import logger
from app.models.maintenance import Contractor, Tenant, Trade
from app.services.record_store import CONTRACTORS, TENANTS, JsonRecordStore, record_store


class Directory:
    """Tenants and contractors, resolved from the record store on every call."""

    def __init__(self, store: Optional[JsonRecordStore] = None) -> None:
        self._store = store or record_store

    def list_tenants(self) -> List[Tenant]:
        return [Tenant(**row) for row in self._store.read_all(TENANTS) or []]

    def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        wanted = str(tenant_id or "").strip()
        if not wanted:
            return None
        return next((tenant for tenant in self.list_tenants() if tenant.id == wanted), None)

    def resolve_session_tenant(self, tenant_id: Optional[str]) -> Tenant:
        """
        Resolve the tenant a chat turn runs as.

        Unknown ids fall back to the configured default tenant, then to the
        first tenant on file.
        """
        tenants = self.list_tenants()
        if not tenants:
            raise TenantNotFoundError("No tenants on file")
        wanted = str(tenant_id or "").strip()
        for tenant in tenants:
            if tenant.id == wanted:
                return tenant

        default_id = (get_settings().default_tenant_id or "").strip()
        fallback = next((tenant for tenant in tenants if tenant.id == default_id), tenants[0])
        logger.warning("Unknown tenant for chat turn; using fallback", requested=wanted, tenant_id=fallback.id)
        return fallback

    def list_contractors(self) -> List[Contractor]:
        return [Contractor(**row) for row in self._store.read_all(CONTRACTORS) or []]

    def available_contractors(self, trade: Trade | str) -> List[Dict[str, Any]]:
        needle = (trade.value if isinstance(trade, Trade) else str(trade or "")).strip().lower()
        if not needle:
            return []
        return [
            contractor.model_dump(mode="json", exclude_none=True)
            for contractor in self.list_contractors()
            if contractor.service.lower() == needle or needle in contractor.name.lower()
        ]

    def resolve_contractor(self, reference: str) -> Contractor:
        """Match by id, then exact name, then name substring (case-insensitive)."""
        contractors = self.list_contractors()
        ref = str(reference or "").strip()
        lowered = ref.lower()

        match = next((c for c in contractors if c.id == ref), None)
        if match is None and lowered:
            match = next((c for c in contractors if c.name.lower() == lowered), None)
        if match is None and lowered:
            match = next((c for c in contractors if lowered in c.name.lower()), None)
        if match is None:
            available = ", ".join(f"{c.id} ({c.name})" for c in contractors)
            raise ContractorNotFoundError(
                f'Contractor with ID or name "{ref}" not found. Available contractors: {available}'
            )
        return match


directory = Directory()
