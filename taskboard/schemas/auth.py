"""
Authentication Schemas

Request/response models for tenant registration, login and the current
user endpoint.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from taskboard.schemas.user import UserResponse


class RegisterTenantRequest(BaseModel):
    """Creates a tenant together with its first tenant admin."""
    tenant_name: str = Field(..., min_length=3, max_length=255)
    subdomain: str = Field(..., min_length=3, max_length=63, pattern="^[A-Za-z0-9]+$")
    admin_email: EmailStr
    admin_password: str = Field(..., min_length=8, max_length=100)
    admin_full_name: str = Field(..., min_length=1, max_length=255)

    model_config = {
        "json_schema_extra": {
            "example": {
                "tenant_name": "Acme Corp",
                "subdomain": "acme",
                "admin_email": "admin@acme.com",
                "admin_password": "securepassword123",
                "admin_full_name": "Jane Admin"
            }
        }
    }


class RegisterTenantResponse(BaseModel):
    tenant_id: str
    subdomain: str
    admin_user: UserResponse


class LoginRequest(BaseModel):
    """
    Login request body.

    Without tenant_subdomain only super admin accounts can log in.
    """
    email: EmailStr
    password: str = Field(..., min_length=1)
    tenant_subdomain: Optional[str] = None


class LoginResponse(BaseModel):
    user: UserResponse
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class TenantInfo(BaseModel):
    id: str
    name: str
    subdomain: str
    subscription_plan: str
    max_users: int
    max_projects: int

    model_config = {"from_attributes": True}


class CurrentUserResponse(UserResponse):
    tenant: Optional[TenantInfo] = None
