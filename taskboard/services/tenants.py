"""
Tenant Operations

Listing (super admin only), details with usage stats, and updates. Tenant
admins may rename their own tenant; status, plan and quotas belong to the
super admin.
"""
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from taskboard.core import audit
from taskboard.core.audit import AuditAction
from taskboard.core.exceptions import TenantNotFoundError, ValidationFailed
from taskboard.core.identity import Principal
from taskboard.core.permissions import Action, ResourceKind, authorize
from taskboard.database import transaction
from taskboard.models.project import Project
from taskboard.models.task import Task
from taskboard.models.tenant import Tenant, TenantStatus, SubscriptionPlan
from taskboard.models.user import User
from taskboard.repository import TenantScope, paginate
from taskboard.utils.logging import get_logger

logger = get_logger(__name__)

SETTINGS_FIELDS = ("status", "subscription_plan", "max_users", "max_projects")
UPDATABLE_FIELDS = ("name",) + SETTINGS_FIELDS
_ENUM_FIELDS = {"status": TenantStatus, "subscription_plan": SubscriptionPlan}


def list_tenants(
    db: Session,
    principal: Principal,
    status: Optional[str] = None,
    subscription_plan: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[list, int]:
    """
    Page through all tenants with user and project counts.

    Returns ``([(tenant, total_users, total_projects), ...], total)``.
    """
    authorize(
        principal, ResourceKind.TENANT, Action.LIST, principal.tenant_id,
        detail="Only super admin can list tenants"
    )

    query = TenantScope.global_scope(db).query(Tenant)
    if status:
        query = query.filter(Tenant.status == status)
    if subscription_plan:
        query = query.filter(Tenant.subscription_plan == subscription_plan)

    tenants, total = paginate(query.order_by(Tenant.created_at.desc()), page, limit)

    items = []
    for tenant in tenants:
        scope = TenantScope(db, tenant.id)
        items.append((tenant, scope.count(User), scope.count(Project)))
    return items, total


def get_tenant_details(db: Session, principal: Principal, tenant_id: str) -> Tuple[Tenant, dict]:
    """Tenant record plus user, project and task totals."""
    authorize(principal, ResourceKind.TENANT, Action.READ, tenant_id)

    scope = TenantScope.for_tenant(db, principal, tenant_id)
    tenant = scope.get(Tenant, tenant_id, TenantNotFoundError)

    stats = {
        "total_users": scope.count(User),
        "total_projects": scope.count(Project),
        "total_tasks": scope.count(Task),
    }
    return tenant, stats


def update_tenant(db: Session, principal: Principal, tenant_id: str, changes: dict) -> Tenant:
    """
    Apply ``changes`` (only the keys that were sent) to a tenant.

    Any settings field in the payload requires super admin, even if the
    name is also being changed.
    """
    changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
    if not changes:
        raise ValidationFailed("No fields to update")
    if any(value is None for value in changes.values()):
        raise ValidationFailed("Tenant fields cannot be null")

    if "name" in changes:
        authorize(principal, ResourceKind.TENANT, Action.RENAME, tenant_id)
    if any(field in changes for field in SETTINGS_FIELDS):
        authorize(
            principal, ResourceKind.TENANT, Action.CONFIGURE, tenant_id,
            detail="Only super admin can update these fields"
        )

    scope = TenantScope.for_tenant(db, principal, tenant_id)
    with transaction(db):
        tenant = scope.get(Tenant, tenant_id, TenantNotFoundError)
        for field, value in changes.items():
            if field in _ENUM_FIELDS:
                value = _ENUM_FIELDS[field](value)
            setattr(tenant, field, value)
        audit.record(db, principal, AuditAction.UPDATE_TENANT, "tenant", tenant.id, tenant_id=tenant.id)

    logger.info(
        f"Tenant updated: {tenant.id} fields={sorted(changes)} by {principal.id}",
        extra={"tenant_id": tenant.id, "user_id": principal.id}
    )
    return tenant
