"""
Task Endpoints

Nested under their project. Any member of the owning tenant may work on
any task.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from taskboard.api.deps import get_current_principal, get_db
from taskboard.core.identity import Principal
from taskboard.models.task import TaskPriority, TaskStatus
from taskboard.schemas.task import (
    TaskCreate,
    TaskListResponse,
    TaskResponse,
    TaskStatusUpdate,
    TaskUpdate,
)
from taskboard.services import tasks as task_service

router = APIRouter(prefix="/projects/{project_id}/tasks", tags=["tasks"])


@router.get("", response_model=TaskListResponse)
def list_tasks(
    project_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    status: Optional[TaskStatus] = None,
    assigned_to: Optional[str] = None,
    priority: Optional[TaskPriority] = None,
    search: Optional[str] = None,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    tasks, total = task_service.list_tasks(
        db, principal, project_id,
        status=status, assigned_to=assigned_to, priority=priority, search=search,
        page=page, limit=limit,
    )
    return TaskListResponse(
        tasks=[TaskResponse.model_validate(task) for task in tasks],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    project_id: str,
    payload: TaskCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return task_service.create_task(
        db,
        principal,
        project_id,
        title=payload.title,
        description=payload.description,
        assigned_to=payload.assigned_to,
        priority=payload.priority,
        due_date=payload.due_date,
    )


@router.patch("/{task_id}/status", response_model=TaskResponse)
def update_task_status(
    project_id: str,
    task_id: str,
    payload: TaskStatusUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return task_service.update_task_status(db, principal, task_id, payload.status, project_id=project_id)


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(
    project_id: str,
    task_id: str,
    payload: TaskUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return task_service.update_task(
        db, principal, task_id, payload.model_dump(exclude_unset=True), project_id=project_id
    )
