"""
Authentication Operations

Tenant registration, login, current-user lookup and logout.

Login has exactly two paths:
1. With a tenant subdomain: the user is looked up inside that tenant only.
2. Without one: only super admin accounts (no tenant) are considered.
"""
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskboard.config import get_settings
from taskboard.core import audit
from taskboard.core.audit import AuditAction
from taskboard.core.exceptions import (
    AuthenticationError,
    ConflictError,
    TenantInactiveError,
    UserNotFoundError,
)
from taskboard.core.identity import Principal
from taskboard.core.security import create_access_token, get_password_hash, verify_password
from taskboard.database import transaction
from taskboard.models.tenant import Tenant, TenantStatus, SubscriptionPlan
from taskboard.models.user import User, UserRole
from taskboard.repository import TenantScope
from taskboard.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)
settings = get_settings()


def register_tenant(
    db: Session,
    tenant_name: str,
    subdomain: str,
    admin_email: str,
    admin_password: str,
    admin_full_name: str,
    ip_address: Optional[str] = None,
) -> Tuple[Tenant, User]:
    """
    Create a tenant on the free plan together with its tenant admin.

    Tenant, admin and the REGISTER_TENANT audit entry commit together or
    not at all.
    """
    subdomain = subdomain.lower()
    admin_email = admin_email.lower()
    scope = TenantScope.global_scope(db)

    # Hash outside the transaction, bcrypt is slow
    password_hash = get_password_hash(admin_password)

    try:
        with transaction(db):
            if scope.query(Tenant).filter(Tenant.subdomain == subdomain).first():
                raise ConflictError("Subdomain already exists")
            if scope.query(User).filter(User.email == admin_email).first():
                raise ConflictError("Email already exists")

            tenant = Tenant(
                name=tenant_name,
                subdomain=subdomain,
                status=TenantStatus.ACTIVE,
                subscription_plan=SubscriptionPlan.FREE,
                max_users=settings.DEFAULT_MAX_USERS,
                max_projects=settings.DEFAULT_MAX_PROJECTS,
            )
            scope.add(tenant)
            scope.flush()

            admin = User(
                tenant_id=tenant.id,
                email=admin_email,
                password_hash=password_hash,
                full_name=admin_full_name,
                role=UserRole.TENANT_ADMIN,
                is_active=True,
            )
            TenantScope(db, tenant.id).add(admin)
            scope.flush()

            audit.record(
                db,
                Principal.from_user(admin),
                AuditAction.REGISTER_TENANT,
                "tenant",
                tenant.id,
                ip_address=ip_address,
            )
    except IntegrityError:
        # Lost a race against a concurrent registration
        raise ConflictError("Subdomain or email already exists")

    logger.info(f"Tenant registered: {tenant.subdomain} ({tenant.id})", extra={"tenant_id": tenant.id})
    return tenant, admin


def login(
    db: Session,
    email: str,
    password: str,
    tenant_subdomain: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Tuple[Principal, str, User]:
    """
    Authenticate and issue an access token.

    Unknown tenant, unknown email and wrong password all produce the same
    error so that callers can't probe for tenants or accounts.
    """
    email = email.lower()
    scope = TenantScope.global_scope(db)

    if tenant_subdomain:
        tenant = scope.query(Tenant).filter(Tenant.subdomain == tenant_subdomain.lower()).first()
        if tenant is None:
            log_security_event(
                "failed_login",
                {"reason": "tenant_not_found", "subdomain": tenant_subdomain},
                logger
            )
            raise AuthenticationError("Invalid credentials")
        if not tenant.is_active:
            log_security_event(
                "failed_login",
                {"reason": "tenant_inactive", "tenant_id": tenant.id},
                logger
            )
            raise TenantInactiveError()

        user = TenantScope(db, tenant.id).query(User).filter(User.email == email).first()
    else:
        user = scope.query(User).filter(
            User.email == email,
            User.tenant_id.is_(None),
            User.role == UserRole.SUPER_ADMIN,
        ).first()

    if user is None or not verify_password(password, user.password_hash):
        log_security_event(
            "failed_login",
            {"reason": "invalid_credentials", "subdomain": tenant_subdomain},
            logger
        )
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        log_security_event("failed_login", {"reason": "user_inactive", "user_id": user.id}, logger)
        raise AuthenticationError("Account is inactive")

    principal = Principal.from_user(user)
    token = create_access_token(
        principal.token_claims(),
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    with transaction(db):
        audit.record(db, principal, AuditAction.LOGIN, "user", user.id, ip_address=ip_address)

    logger.info(f"Successful login: user={user.id}", extra={"tenant_id": user.tenant_id, "user_id": user.id})
    return principal, token, user


def get_current_user(db: Session, principal: Principal) -> Tuple[User, Optional[Tenant]]:
    """Load the principal's own user record and, for tenant members, the tenant."""
    scope = TenantScope.for_principal(db, principal)
    user = scope.get(User, principal.id, UserNotFoundError)

    tenant = None
    if principal.tenant_id:
        tenant = scope.query(Tenant).first()
    return user, tenant


def logout(db: Session, principal: Principal, ip_address: Optional[str] = None) -> None:
    """
    Record a logout.

    Tokens are stateless; clients discard them. The entry exists for the
    trail only.
    """
    with transaction(db):
        audit.record(db, principal, AuditAction.LOGOUT, "user", principal.id, ip_address=ip_address)


def create_super_admin(db: Session, email: str, password: str, full_name: str = "Super Admin") -> User:
    """Create a platform-level super admin. They belong to no tenant."""
    email = email.lower()
    scope = TenantScope.global_scope(db)
    password_hash = get_password_hash(password)

    with transaction(db):
        existing = scope.query(User).filter(
            User.email == email,
            User.tenant_id.is_(None),
        ).first()
        if existing:
            raise ConflictError("Email already exists")

        user = User(
            tenant_id=None,
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            role=UserRole.SUPER_ADMIN,
            is_active=True,
        )
        scope.add(user)

    logger.info(f"Super admin created: {user.id}")
    return user


def ensure_super_admin(db: Session, email: str, password: str) -> User:
    """Startup bootstrap: create the configured super admin if it's missing."""
    existing = TenantScope.global_scope(db).query(User).filter(
        User.email == email.lower(),
        User.role == UserRole.SUPER_ADMIN,
    ).first()
    if existing:
        return existing
    return create_super_admin(db, email, password)
