"""
Audit Trail Listing

Read-only view of a tenant's audit entries for its tenant admins (and for
super admins, any tenant's). Entries are never modified from here.
"""
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from taskboard.core.identity import Principal
from taskboard.core.permissions import Action, ResourceKind, authorize
from taskboard.models.audit import AuditEntry
from taskboard.repository import TenantScope, paginate


def list_audit_entries(
    db: Session,
    principal: Principal,
    tenant_id: Optional[str] = None,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> Tuple[list, int]:
    """Newest entries first. ``tenant_id`` defaults to the principal's tenant."""
    tenant_id = tenant_id or principal.tenant_id
    authorize(principal, ResourceKind.AUDIT, Action.LIST, tenant_id)

    if tenant_id:
        query = TenantScope.for_tenant(db, principal, tenant_id).query(AuditEntry)
    else:
        # Super admin without a tenant filter: platform-wide trail
        query = TenantScope.global_scope(db).query(AuditEntry)

    if action:
        query = query.filter(AuditEntry.action == action)
    if entity_type:
        query = query.filter(AuditEntry.entity_type == entity_type)

    return paginate(query.order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc()), page, limit)
