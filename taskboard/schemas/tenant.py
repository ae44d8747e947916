"""
Tenant Schemas

Request/response models for tenant administration.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from taskboard.models.tenant import TenantStatus, SubscriptionPlan


class TenantUpdate(BaseModel):
    """
    Tenant changes. Tenant admins may only send name; the other fields are
    reserved for super admins.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[TenantStatus] = None
    subscription_plan: Optional[SubscriptionPlan] = None
    max_users: Optional[int] = Field(None, ge=1)
    max_projects: Optional[int] = Field(None, ge=1)


class TenantStats(BaseModel):
    total_users: int
    total_projects: int
    total_tasks: int


class TenantResponse(BaseModel):
    id: str
    name: str
    subdomain: str
    status: TenantStatus
    subscription_plan: SubscriptionPlan
    max_users: int
    max_projects: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TenantDetailResponse(TenantResponse):
    stats: TenantStats


class TenantSummary(TenantResponse):
    total_users: int
    total_projects: int


class TenantListResponse(BaseModel):
    tenants: list[TenantSummary]
    total: int
    page: int
    limit: int
