"""
Task Model

Tasks live inside a project. tenant_id is duplicated from the project so
that tenant filters never need a join, which makes it an invariant rather
than a field: it is copied from the project at construction and can't be
reassigned afterwards.
"""
from sqlalchemy import Column, String, Text, Date, DateTime, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship, validates
from datetime import datetime
from taskboard.database import Base
import uuid
import enum


class TaskStatus(str, enum.Enum):
    """
    Task workflow states.

    No transition is blocked: a completed task can be reopened and an
    in-progress task can go back to todo.
    """
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    project_id = Column(
        String(36),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Always equal to project.tenant_id
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id"),
        nullable=False,
        index=True
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        SQLEnum(TaskStatus, values_callable=lambda e: [m.value for m in e]),
        default=TaskStatus.TODO,
        nullable=False,
        index=True
    )
    priority = Column(
        SQLEnum(TaskPriority, values_callable=lambda e: [m.value for m in e]),
        default=TaskPriority.MEDIUM,
        nullable=False
    )

    # Deleting the assignee unassigns the task instead of deleting it
    assigned_to = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    due_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="tasks")
    assignee = relationship("User")

    __table_args__ = (
        Index('idx_task_project_status', 'project_id', 'status'),
        Index('idx_task_tenant_assignee', 'tenant_id', 'assigned_to'),
    )

    def __repr__(self):
        return f"<Task {self.title} (project={self.project_id})>"

    @classmethod
    def for_project(cls, project, **fields) -> "Task":
        """Build a task that inherits its tenant from the project."""
        return cls(project_id=project.id, tenant_id=project.tenant_id, **fields)

    @validates("tenant_id", "project_id")
    def _validate_immutable(self, key, value):
        current = getattr(self, key)
        if current is not None and current != value:
            raise ValueError(f"Task.{key} cannot be changed once set")
        return value
