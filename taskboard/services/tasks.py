"""
Task Operations

Any member of the tenant that owns a project may create, list and update
its tasks. Tasks always inherit their tenant from the project, and an
assignee has to be a user of that same tenant.

Status changes are unrestricted: todo, in_progress and completed can all
be reached from each other.
"""
from datetime import date
from typing import Optional, Tuple

from sqlalchemy import case
from sqlalchemy.orm import Session

from taskboard.core import audit
from taskboard.core.audit import AuditAction
from taskboard.core.exceptions import ProjectNotFoundError, TaskNotFoundError, ValidationFailed
from taskboard.core.identity import Principal
from taskboard.core.permissions import Action, ResourceKind, authorize
from taskboard.database import transaction
from taskboard.models.project import Project
from taskboard.models.task import Task, TaskPriority, TaskStatus
from taskboard.models.user import User
from taskboard.repository import TenantScope, paginate
from taskboard.utils.logging import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("title", "description", "status", "priority", "assigned_to", "due_date")
REQUIRED_FIELDS = ("title", "status", "priority")

_PRIORITY_ORDER = case(
    (Task.priority == TaskPriority.HIGH, 0),
    (Task.priority == TaskPriority.MEDIUM, 1),
    else_=2,
)


def _check_assignee(db: Session, tenant_id: str, user_id: str) -> None:
    assignee = TenantScope(db, tenant_id).query(User).filter(User.id == user_id).first()
    if assignee is None:
        raise ValidationFailed("Assigned user does not belong to your tenant")


def _load_task(scope: TenantScope, task_id: str, project_id: Optional[str]) -> Task:
    task = scope.get(Task, task_id, TaskNotFoundError)
    if project_id is not None and task.project_id != project_id:
        raise TaskNotFoundError()
    return task


def create_task(
    db: Session,
    principal: Principal,
    project_id: str,
    title: str,
    description: Optional[str] = None,
    assigned_to: Optional[str] = None,
    priority: TaskPriority = TaskPriority.MEDIUM,
    due_date: Optional[date] = None,
) -> Task:
    """Create a task in a project. New tasks start as todo."""
    scope = TenantScope.for_principal(db, principal)
    with transaction(db):
        project = scope.get(Project, project_id, ProjectNotFoundError)
        authorize(principal, ResourceKind.TASK, Action.CREATE, project.tenant_id)

        if assigned_to:
            _check_assignee(db, project.tenant_id, assigned_to)

        task = Task.for_project(
            project,
            title=title,
            description=description or None,
            status=TaskStatus.TODO,
            priority=TaskPriority(priority),
            assigned_to=assigned_to or None,
            due_date=due_date,
        )
        scope.add(task)
        scope.flush()
        audit.record(db, principal, AuditAction.CREATE_TASK, "task", task.id, tenant_id=task.tenant_id)

    logger.info(f"Task created: {task.id} in project {project_id}", extra={"tenant_id": task.tenant_id})
    return task


def list_tasks(
    db: Session,
    principal: Principal,
    project_id: str,
    status: Optional[TaskStatus] = None,
    assigned_to: Optional[str] = None,
    priority: Optional[TaskPriority] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> Tuple[list, int]:
    """Page through a project's tasks, highest priority and earliest due first."""
    scope = TenantScope.for_principal(db, principal)
    project = scope.get(Project, project_id, ProjectNotFoundError)
    authorize(principal, ResourceKind.TASK, Action.LIST, project.tenant_id)

    query = TenantScope(db, project.tenant_id).query(Task).filter(Task.project_id == project.id)
    if status:
        query = query.filter(Task.status == TaskStatus(status))
    if assigned_to:
        query = query.filter(Task.assigned_to == assigned_to)
    if priority:
        query = query.filter(Task.priority == TaskPriority(priority))
    if search:
        query = query.filter(Task.title.ilike(f"%{search}%"))

    query = query.order_by(_PRIORITY_ORDER, Task.due_date.is_(None), Task.due_date.asc(), Task.created_at)
    return paginate(query, page, limit)


def update_task_status(
    db: Session,
    principal: Principal,
    task_id: str,
    status: TaskStatus,
    project_id: Optional[str] = None,
) -> Task:
    scope = TenantScope.for_principal(db, principal)
    with transaction(db):
        task = _load_task(scope, task_id, project_id)
        authorize(principal, ResourceKind.TASK, Action.UPDATE, task.tenant_id)

        task.status = TaskStatus(status)
        audit.record(db, principal, AuditAction.UPDATE_TASK_STATUS, "task", task.id, tenant_id=task.tenant_id)

    logger.info(f"Task {task.id} status -> {task.status.value}", extra={"tenant_id": task.tenant_id})
    return task


def update_task(
    db: Session,
    principal: Principal,
    task_id: str,
    changes: dict,
    project_id: Optional[str] = None,
) -> Task:
    """
    Update any subset of a task's fields.

    ``assigned_to=None`` unassigns; any other assignee must belong to the
    task's tenant.
    """
    changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
    if not changes:
        raise ValidationFailed("No fields to update")
    if any(changes.get(field, "") is None for field in REQUIRED_FIELDS):
        raise ValidationFailed("Title, status and priority cannot be null")

    scope = TenantScope.for_principal(db, principal)
    with transaction(db):
        task = _load_task(scope, task_id, project_id)
        authorize(principal, ResourceKind.TASK, Action.UPDATE, task.tenant_id)

        if changes.get("assigned_to"):
            _check_assignee(db, task.tenant_id, changes["assigned_to"])
        if "status" in changes:
            changes["status"] = TaskStatus(changes["status"])
        if "priority" in changes:
            changes["priority"] = TaskPriority(changes["priority"])

        if "assigned_to" in changes:
            changes["assigned_to"] = changes["assigned_to"] or None
        for field, value in changes.items():
            setattr(task, field, value)
        audit.record(db, principal, AuditAction.UPDATE_TASK, "task", task.id, tenant_id=task.tenant_id)

    logger.info(f"Task updated: {task.id} by {principal.id}", extra={"tenant_id": task.tenant_id})
    return task
