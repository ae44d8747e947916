"""
Project Operations

RBAC:
- List / create projects: any member of the tenant
- Update / delete: the project's creator or a tenant admin

Creation is quota-checked against the tenant's max_projects under the
tenant lock, in the same transaction as the insert and its audit entry.
"""
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from taskboard.core import audit, quota
from taskboard.core.audit import AuditAction
from taskboard.core.exceptions import ProjectNotFoundError, TenantNotFoundError, ValidationFailed
from taskboard.core.identity import Principal
from taskboard.core.permissions import Action, OwnershipFacts, ResourceKind, authorize
from taskboard.core.quota import QuotaKind
from taskboard.database import transaction
from taskboard.models.project import Project, ProjectStatus
from taskboard.models.task import Task, TaskStatus
from taskboard.repository import TenantScope, paginate
from taskboard.utils.logging import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "description", "status")


def create_project(
    db: Session,
    principal: Principal,
    name: str,
    description: Optional[str] = None,
    status: ProjectStatus = ProjectStatus.ACTIVE,
) -> Project:
    """Create a project in the principal's tenant."""
    tenant_id = principal.tenant_id
    if not tenant_id:
        # Super admins have no tenant to create projects in
        raise TenantNotFoundError()
    authorize(principal, ResourceKind.PROJECT, Action.CREATE, tenant_id)

    scope = TenantScope.for_principal(db, principal)
    with transaction(db):
        quota.reserve(db, tenant_id, QuotaKind.PROJECTS)
        project = scope.add(Project(
            name=name,
            description=description or None,
            status=ProjectStatus(status),
            created_by=principal.id,
        ))
        scope.flush()
        audit.record(db, principal, AuditAction.CREATE_PROJECT, "project", project.id)

    logger.info(f"Project created: {project.id} by {principal.id}", extra={"tenant_id": tenant_id})
    return project


def list_projects(
    db: Session,
    principal: Principal,
    status: Optional[ProjectStatus] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[list, int]:
    """
    Page through the principal's projects, newest first.

    Super admins see every tenant's projects. Returns
    ``([(project, task_count, completed_task_count), ...], total)``.
    """
    authorize(principal, ResourceKind.PROJECT, Action.LIST, principal.tenant_id)

    scope = TenantScope.for_principal(db, principal)
    query = scope.query(Project)
    if status:
        query = query.filter(Project.status == ProjectStatus(status))
    if search:
        query = query.filter(Project.name.ilike(f"%{search}%"))

    projects, total = paginate(query.order_by(Project.created_at.desc()), page, limit)

    items = []
    for project in projects:
        task_count = scope.count(Task, Task.project_id == project.id)
        completed = scope.count(Task, Task.project_id == project.id, Task.status == TaskStatus.COMPLETED)
        items.append((project, task_count, completed))
    return items, total


def update_project(db: Session, principal: Principal, project_id: str, changes: dict) -> Project:
    changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
    if not changes:
        raise ValidationFailed("No fields to update")
    if changes.get("name", "") is None or changes.get("status", "") is None:
        raise ValidationFailed("Name and status cannot be null")

    scope = TenantScope.for_principal(db, principal)
    with transaction(db):
        project = scope.get(Project, project_id, ProjectNotFoundError)
        authorize(
            principal, ResourceKind.PROJECT, Action.UPDATE, project.tenant_id,
            OwnershipFacts(owner_id=project.created_by)
        )

        if "status" in changes:
            changes["status"] = ProjectStatus(changes["status"])
        for field, value in changes.items():
            setattr(project, field, value)
        audit.record(
            db, principal, AuditAction.UPDATE_PROJECT, "project", project.id,
            tenant_id=project.tenant_id
        )

    logger.info(f"Project updated: {project.id} by {principal.id}", extra={"tenant_id": project.tenant_id})
    return project


def delete_project(db: Session, principal: Principal, project_id: str) -> None:
    """Delete a project together with all of its tasks."""
    scope = TenantScope.for_principal(db, principal)
    with transaction(db):
        project = scope.get(Project, project_id, ProjectNotFoundError)
        authorize(
            principal, ResourceKind.PROJECT, Action.DELETE, project.tenant_id,
            OwnershipFacts(owner_id=project.created_by)
        )

        tenant_id = project.tenant_id
        removed = TenantScope(db, tenant_id).query(Task).filter(
            Task.project_id == project.id
        ).delete(synchronize_session="fetch")
        scope.delete(project)
        audit.record(db, principal, AuditAction.DELETE_PROJECT, "project", project_id, tenant_id=tenant_id)

    logger.info(
        f"Project deleted: {project_id} ({removed} tasks) by {principal.id}",
        extra={"tenant_id": tenant_id}
    )
