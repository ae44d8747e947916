"""
Audit Log Endpoint

Tenant admins read their own tenant's trail; super admins may pass any
tenant_id or none for the platform-wide trail.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from taskboard.api.deps import get_current_principal, get_db
from taskboard.core.identity import Principal
from taskboard.schemas.audit import AuditEntryListResponse, AuditEntryResponse
from taskboard.services import audit_log

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("", response_model=AuditEntryListResponse)
def list_audit_entries(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    tenant_id: Optional[str] = None,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    entries, total = audit_log.list_audit_entries(
        db, principal, tenant_id=tenant_id, action=action, entity_type=entity_type,
        page=page, limit=limit,
    )
    return AuditEntryListResponse(
        entries=[AuditEntryResponse.model_validate(entry) for entry in entries],
        total=total,
        page=page,
        limit=limit,
    )
