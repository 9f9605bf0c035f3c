from fastapi import Depends, Header, HTTPException

from outreach_flow.store import EntityStore


def get_tenant_id(x_tenant_id: str | None = Header(default=None)) -> str:
    if not x_tenant_id or not x_tenant_id.strip():
        raise HTTPException(status_code=400, detail="X-Tenant-ID header is required")
    return x_tenant_id.strip()


def get_store(tenant_id: str = Depends(get_tenant_id)) -> EntityStore:
    return EntityStore(tenant_id=tenant_id)
