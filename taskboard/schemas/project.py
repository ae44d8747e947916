"""
Project Schemas

Request/response models for project operations.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from taskboard.models.project import ProjectStatus


class ProjectCreate(BaseModel):
    """Schema for creating a project."""
    name: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.ACTIVE


class ProjectUpdate(BaseModel):
    """Schema for updating a project. All fields optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None


class ProjectResponse(BaseModel):
    """Project response schema."""
    id: str
    tenant_id: str
    name: str
    description: Optional[str]
    status: ProjectStatus
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectSummary(ProjectResponse):
    """Project with task counters, used in listings."""
    task_count: int = 0
    completed_task_count: int = 0


class ProjectListResponse(BaseModel):
    """Paginated list of projects."""
    projects: list[ProjectSummary]
    total: int
    page: int
    limit: int
