"""
Database Models

Every tenant-owned model carries tenant_id for isolation. The tenant
scope in taskboard.repository relies on that column being present.
"""
from taskboard.models.tenant import Tenant, TenantStatus, SubscriptionPlan
from taskboard.models.user import User, UserRole
from taskboard.models.project import Project, ProjectStatus
from taskboard.models.task import Task, TaskStatus, TaskPriority
from taskboard.models.audit import AuditEntry

__all__ = [
    "Tenant",
    "TenantStatus",
    "SubscriptionPlan",
    "User",
    "UserRole",
    "Project",
    "ProjectStatus",
    "Task",
    "TaskStatus",
    "TaskPriority",
    "AuditEntry",
]
