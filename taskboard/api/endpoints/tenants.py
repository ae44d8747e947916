"""
Tenant Endpoints

RBAC:
- List tenants: super admin
- Get tenant: super admin or members of the tenant
- Update tenant: super admin (all fields), tenant admin (name only)
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from taskboard.api.deps import get_current_principal, get_db
from taskboard.core.identity import Principal
from taskboard.models.tenant import SubscriptionPlan, TenantStatus
from taskboard.schemas.tenant import (
    TenantDetailResponse,
    TenantListResponse,
    TenantResponse,
    TenantStats,
    TenantSummary,
    TenantUpdate,
)
from taskboard.services import tenants as tenant_service

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.get("", response_model=TenantListResponse)
def list_tenants(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[TenantStatus] = None,
    subscription_plan: Optional[SubscriptionPlan] = None,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    items, total = tenant_service.list_tenants(
        db, principal, status=status, subscription_plan=subscription_plan, page=page, limit=limit
    )
    tenants = [
        TenantSummary(
            **TenantResponse.model_validate(tenant).model_dump(),
            total_users=users,
            total_projects=projects,
        )
        for tenant, users, projects in items
    ]
    return TenantListResponse(tenants=tenants, total=total, page=page, limit=limit)


@router.get("/{tenant_id}", response_model=TenantDetailResponse)
def get_tenant(
    tenant_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    tenant, stats = tenant_service.get_tenant_details(db, principal, tenant_id)
    return TenantDetailResponse(
        **TenantResponse.model_validate(tenant).model_dump(),
        stats=TenantStats(**stats),
    )


@router.put("/{tenant_id}", response_model=TenantResponse)
def update_tenant(
    tenant_id: str,
    payload: TenantUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return tenant_service.update_tenant(db, principal, tenant_id, payload.model_dump(exclude_unset=True))
