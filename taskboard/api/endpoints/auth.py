"""
Authentication Endpoints

Tenant registration, login, current user and logout.
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from taskboard.api.deps import client_ip, get_current_principal, get_db
from taskboard.config import get_settings
from taskboard.core.identity import Principal
from taskboard.schemas.auth import (
    CurrentUserResponse,
    LoginRequest,
    LoginResponse,
    RegisterTenantRequest,
    RegisterTenantResponse,
    TenantInfo,
)
from taskboard.schemas.user import UserResponse
from taskboard.services import auth as auth_service

settings = get_settings()

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register-tenant", response_model=RegisterTenantResponse, status_code=status.HTTP_201_CREATED)
def register_tenant(
    payload: RegisterTenantRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """Register a tenant and its first tenant admin. Public."""
    tenant, admin = auth_service.register_tenant(
        db,
        tenant_name=payload.tenant_name,
        subdomain=payload.subdomain,
        admin_email=payload.admin_email,
        admin_password=payload.admin_password,
        admin_full_name=payload.admin_full_name,
        ip_address=client_ip(request),
    )
    return RegisterTenantResponse(
        tenant_id=tenant.id,
        subdomain=tenant.subdomain,
        admin_user=UserResponse.model_validate(admin),
    )


@router.post("/login", response_model=LoginResponse)
def login(
    credentials: LoginRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Authenticate and return a JWT.

    Send tenant_subdomain for tenant accounts; omit it for super admins.
    """
    principal, token, user = auth_service.login(
        db,
        email=credentials.email,
        password=credentials.password,
        tenant_subdomain=credentials.tenant_subdomain,
        ip_address=client_ip(request),
    )
    return LoginResponse(
        user=UserResponse.model_validate(user),
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.get("/me", response_model=CurrentUserResponse)
def me(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    user, tenant = auth_service.get_current_user(db, principal)
    response = CurrentUserResponse.model_validate(user)
    if tenant is not None:
        response.tenant = TenantInfo.model_validate(tenant)
    return response


@router.post("/logout")
def logout(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Tokens are stateless; this only records the logout in the audit trail."""
    auth_service.logout(db, principal, ip_address=client_ip(request))
    return {"success": True, "message": "Logged out successfully"}
