"""
User Model

Users belong to a tenant and carry one of three roles.

IMPORTANT: tenant_id is the critical field for data isolation. It is NULL
only for super admins, who operate across all tenants and log in without
a tenant subdomain.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from taskboard.database import Base
import uuid
import enum


class UserRole(str, enum.Enum):
    """
    User roles.

    SUPER_ADMIN: Platform operator, no tenant, bypasses tenant scoping
    TENANT_ADMIN: Full rights inside one tenant, manages its users
    USER: Regular member of one tenant
    """
    SUPER_ADMIN = "super_admin"
    TENANT_ADMIN = "tenant_admin"
    USER = "user"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Tenant binding, fixed for the lifetime of the account
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id"),
        nullable=True,
        index=True
    )

    # Stored lowercase so uniqueness is case-insensitive
    email = Column(String(255), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)

    role = Column(
        SQLEnum(UserRole, values_callable=lambda e: [m.value for m in e]),
        default=UserRole.USER,
        nullable=False,
        index=True
    )

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="users")

    __table_args__ = (
        # Same email may exist in different tenants
        Index('idx_user_tenant_email', 'tenant_id', 'email', unique=True),
        Index('idx_user_tenant_active', 'tenant_id', 'is_active'),
        Index('idx_user_tenant_role', 'tenant_id', 'role'),
    )

    def __repr__(self):
        return f"<User {self.email} (tenant={self.tenant_id})>"

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN
