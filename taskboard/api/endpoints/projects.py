"""
Project Management Endpoints

RBAC:
- List / create projects: any tenant member
- Update / delete project: creator or tenant admin
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from taskboard.api.deps import get_current_principal, get_db
from taskboard.core.identity import Principal
from taskboard.models.project import ProjectStatus
from taskboard.schemas.project import (
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectSummary,
    ProjectUpdate,
)
from taskboard.services import projects as project_service

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=ProjectListResponse)
def list_projects(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[ProjectStatus] = None,
    search: Optional[str] = None,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    items, total = project_service.list_projects(
        db, principal, status=status, search=search, page=page, limit=limit
    )
    projects = [
        ProjectSummary(
            **ProjectResponse.model_validate(project).model_dump(),
            task_count=task_count,
            completed_task_count=completed,
        )
        for project, task_count, completed in items
    ]
    return ProjectListResponse(projects=projects, total=total, page=page, limit=limit)


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Create a project in the caller's tenant, subject to max_projects."""
    return project_service.create_project(
        db, principal, name=payload.name, description=payload.description, status=payload.status
    )


@router.put("/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return project_service.update_project(db, principal, project_id, payload.model_dump(exclude_unset=True))


@router.delete("/{project_id}")
def delete_project(
    project_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Delete a project and all of its tasks."""
    project_service.delete_project(db, principal, project_id)
    return {"success": True, "message": "Project deleted successfully"}
