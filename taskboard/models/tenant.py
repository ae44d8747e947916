"""
Tenant Model

The tenant is the isolation boundary: every user (except the platform
super admin), project, task and audit entry belongs to exactly one tenant.

Shared database, shared schema with a tenant_id column on each owned table.
Tenants are never deleted in normal operation; suspending one blocks login.
"""
from sqlalchemy import Column, String, DateTime, Integer, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from taskboard.database import Base
import uuid
import enum


class TenantStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class SubscriptionPlan(str, enum.Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class Tenant(Base):
    __tablename__ = "tenants"

    # UUIDs avoid enumeration attacks across tenants
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(255), nullable=False)

    # Always stored lowercase, used for tenant-scoped login
    subdomain = Column(String(63), unique=True, nullable=False, index=True)

    status = Column(
        SQLEnum(TenantStatus, values_callable=lambda e: [m.value for m in e]),
        default=TenantStatus.ACTIVE,
        nullable=False,
        index=True
    )
    subscription_plan = Column(
        SQLEnum(SubscriptionPlan, values_callable=lambda e: [m.value for m in e]),
        default=SubscriptionPlan.FREE,
        nullable=False
    )

    # Quotas, enforced by taskboard.core.quota at creation time
    max_users = Column(Integer, default=5, nullable=False)
    max_projects = Column(Integer, default=3, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # No ORM cascades: tenants are never deleted
    users = relationship("User", back_populates="tenant")
    projects = relationship("Project", back_populates="tenant")

    __table_args__ = (
        Index('idx_tenant_status_plan', 'status', 'subscription_plan'),
    )

    def __repr__(self):
        return f"<Tenant {self.subdomain}>"

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE
