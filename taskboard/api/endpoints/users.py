"""
User Management Endpoints

Users are addressed under their tenant. All tenant checks happen in the
service layer through the policy evaluator.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from taskboard.api.deps import get_current_principal, get_db
from taskboard.core.identity import Principal
from taskboard.models.user import UserRole
from taskboard.schemas.user import UserCreate, UserListResponse, UserResponse, UserUpdate
from taskboard.services import users as user_service

router = APIRouter(prefix="/tenants/{tenant_id}/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def add_user(
    tenant_id: str,
    payload: UserCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return user_service.add_user(
        db,
        principal,
        tenant_id,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=payload.role,
    )


@router.get("", response_model=UserListResponse)
def list_users(
    tenant_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    users, total = user_service.list_users(
        db, principal, tenant_id, search=search, role=role, page=page, limit=limit
    )
    return UserListResponse(
        users=[UserResponse.model_validate(user) for user in users],
        total=total,
        page=page,
        limit=limit,
    )


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    tenant_id: str,
    user_id: str,
    payload: UserUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return user_service.update_user(
        db, principal, user_id, payload.model_dump(exclude_unset=True), tenant_id=tenant_id
    )


@router.delete("/{user_id}")
def delete_user(
    tenant_id: str,
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    user_service.delete_user(db, principal, user_id, tenant_id=tenant_id)
    return {"success": True, "message": "User deleted successfully"}
