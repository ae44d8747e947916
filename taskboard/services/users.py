"""
User Management Operations

Adding, listing, updating and deleting users inside a tenant.

RBAC:
- List users: any member of the tenant
- Add / delete users, change role or is_active: tenant admin
- Update own profile (full_name): the user themself
- Nobody can delete their own account through this path
"""
from typing import Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskboard.core import audit, quota
from taskboard.core.audit import AuditAction
from taskboard.core.exceptions import (
    ConflictError,
    SelfDeleteDenied,
    UserNotFoundError,
    ValidationFailed,
)
from taskboard.core.identity import Principal
from taskboard.core.permissions import Action, OwnershipFacts, ResourceKind, authorize
from taskboard.core.quota import QuotaKind
from taskboard.core.security import get_password_hash
from taskboard.database import transaction
from taskboard.models.project import Project
from taskboard.models.task import Task
from taskboard.models.user import User, UserRole
from taskboard.repository import TenantScope, paginate
from taskboard.utils.logging import get_logger

logger = get_logger(__name__)

PROFILE_FIELDS = ("full_name",)
ADMIN_FIELDS = ("role", "is_active")
ASSIGNABLE_ROLES = (UserRole.TENANT_ADMIN, UserRole.USER)


def _load_user(scope: TenantScope, user_id: str, tenant_id: Optional[str]) -> User:
    user = scope.get(User, user_id, UserNotFoundError)
    if tenant_id is not None and user.tenant_id != tenant_id:
        raise UserNotFoundError()
    return user


def add_user(
    db: Session,
    principal: Principal,
    tenant_id: str,
    email: str,
    password: str,
    full_name: str,
    role: UserRole = UserRole.USER,
) -> User:
    """
    Add a user to a tenant, within the tenant's max_users quota.

    The quota check, the email check, the insert and the audit entry run
    in one transaction under the tenant lock.
    """
    authorize(principal, ResourceKind.USER, Action.CREATE, tenant_id)

    role = UserRole(role)
    if role not in ASSIGNABLE_ROLES:
        raise ValidationFailed("Role must be tenant_admin or user")

    email = email.lower()
    password_hash = get_password_hash(password)
    scope = TenantScope.for_tenant(db, principal, tenant_id)

    try:
        with transaction(db):
            quota.reserve(db, tenant_id, QuotaKind.USERS)

            if scope.query(User).filter(User.email == email).first():
                raise ConflictError("Email already exists in this tenant")

            user = scope.add(User(
                email=email,
                password_hash=password_hash,
                full_name=full_name,
                role=role,
                is_active=True,
            ))
            scope.flush()
            audit.record(db, principal, AuditAction.CREATE_USER, "user", user.id, tenant_id=tenant_id)
    except IntegrityError:
        raise ConflictError("Email already exists in this tenant")

    logger.info(f"User created: {user.id} by {principal.id}", extra={"tenant_id": tenant_id})
    return user


def list_users(
    db: Session,
    principal: Principal,
    tenant_id: str,
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    page: int = 1,
    limit: int = 50,
) -> Tuple[list, int]:
    """Page through a tenant's users, newest first."""
    authorize(principal, ResourceKind.USER, Action.LIST, tenant_id)

    query = TenantScope.for_tenant(db, principal, tenant_id).query(User)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.email.ilike(pattern), User.full_name.ilike(pattern)))
    if role:
        query = query.filter(User.role == UserRole(role))

    return paginate(query.order_by(User.created_at.desc()), page, limit)


def update_user(
    db: Session,
    principal: Principal,
    user_id: str,
    changes: dict,
    tenant_id: Optional[str] = None,
) -> User:
    """
    Update a user's profile, role or active flag.

    Users outside the caller's tenant, or outside ``tenant_id`` when given,
    are reported as not found.
    """
    changes = {k: v for k, v in changes.items() if k in PROFILE_FIELDS + ADMIN_FIELDS}
    if not changes:
        raise ValidationFailed("No fields to update")
    if any(value is None for value in changes.values()):
        raise ValidationFailed("User fields cannot be null")

    scope = TenantScope.for_principal(db, principal)
    with transaction(db):
        user = _load_user(scope, user_id, tenant_id)
        facts = OwnershipFacts(owner_id=user.id)

        if any(field in changes for field in PROFILE_FIELDS):
            authorize(principal, ResourceKind.USER, Action.UPDATE, user.tenant_id, facts)
        if any(field in changes for field in ADMIN_FIELDS):
            authorize(
                principal, ResourceKind.USER, Action.CHANGE_ROLE, user.tenant_id, facts,
                detail="Only tenant admin can update these fields"
            )

        if "role" in changes:
            changes["role"] = UserRole(changes["role"])
            if user.is_super_admin or changes["role"] not in ASSIGNABLE_ROLES:
                raise ValidationFailed("Role must be tenant_admin or user")

        for field, value in changes.items():
            setattr(user, field, value)
        audit.record(db, principal, AuditAction.UPDATE_USER, "user", user.id, tenant_id=user.tenant_id)

    logger.info(f"User updated: {user.id} by {principal.id}", extra={"tenant_id": user.tenant_id})
    return user


def delete_user(db: Session, principal: Principal, user_id: str, tenant_id: Optional[str] = None) -> None:
    """
    Delete a user.

    Their tasks stay and become unassigned; projects they created keep
    existing with no creator.
    """
    if user_id == principal.id:
        raise SelfDeleteDenied()

    scope = TenantScope.for_principal(db, principal)
    with transaction(db):
        user = _load_user(scope, user_id, tenant_id)
        authorize(principal, ResourceKind.USER, Action.DELETE, user.tenant_id)

        owned = TenantScope(db, user.tenant_id) if user.tenant_id else scope
        owned.query(Task).filter(Task.assigned_to == user.id).update(
            {Task.assigned_to: None}, synchronize_session="fetch"
        )
        owned.query(Project).filter(Project.created_by == user.id).update(
            {Project.created_by: None}, synchronize_session="fetch"
        )

        scope.delete(user)
        audit.record(db, principal, AuditAction.DELETE_USER, "user", user_id, tenant_id=user.tenant_id)

    logger.info(f"User deleted: {user_id} by {principal.id}", extra={"tenant_id": user.tenant_id})
