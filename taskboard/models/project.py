"""
Project Model

Projects are tenant-scoped and remember who created them. The creator and
tenant admins are the only members allowed to change or delete a project.
Deleting a project deletes its tasks.
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from taskboard.database import Base
import uuid
import enum


class ProjectStatus(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    COMPLETED = "completed"


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Set from the creator's tenant, never changed afterwards
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id"),
        nullable=False,
        index=True
    )

    # Nullable so that deleting the creator keeps the project
    created_by = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        SQLEnum(ProjectStatus, values_callable=lambda e: [m.value for m in e]),
        default=ProjectStatus.ACTIVE,
        nullable=False,
        index=True
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="projects")
    creator = relationship("User")
    tasks = relationship(
        "Task",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        Index('idx_project_tenant_status', 'tenant_id', 'status'),
        Index('idx_project_tenant_name', 'tenant_id', 'name'),
    )

    def __repr__(self):
        return f"<Project {self.name} (tenant={self.tenant_id})>"
