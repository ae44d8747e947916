"""
Identity Resolution

Turns a bearer credential into a Principal. Signature and expiry checks
are delegated to the token verifier in taskboard.core.security; this module
only validates that the verified claims describe a coherent identity.

No database access happens here. Everything downstream trusts the
Principal for the rest of the request.
"""
from dataclasses import dataclass
from typing import Optional

from taskboard.core.exceptions import AuthenticationError
from taskboard.core.security import decode_access_token
from taskboard.models.user import UserRole
from taskboard.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated identity for the duration of one request."""

    id: str
    tenant_id: Optional[str]
    role: UserRole

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN

    @property
    def is_tenant_admin(self) -> bool:
        return self.role == UserRole.TENANT_ADMIN

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(id=user.id, tenant_id=user.tenant_id, role=UserRole(user.role))

    def token_claims(self) -> dict:
        return {
            "sub": self.id,
            "tenant_id": self.tenant_id,
            "role": self.role.value,
        }


def resolve(credential: Optional[str]) -> Principal:
    """
    Resolve a raw bearer token into a Principal.

    Raises AuthenticationError when the token is absent, fails
    verification, or carries claims that don't form a valid identity:
    unknown role, a tenant-bound role without a tenant, or a super admin
    bound to a tenant.
    """
    if not credential:
        raise AuthenticationError("Access token required")

    payload = decode_access_token(credential)
    if payload is None:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("sub")
    tenant_id = payload.get("tenant_id")
    raw_role = payload.get("role")

    if not user_id or not raw_role:
        raise AuthenticationError("Invalid token payload")

    try:
        role = UserRole(raw_role)
    except ValueError:
        logger.warning(f"Token with unknown role rejected: {raw_role!r}")
        raise AuthenticationError("Invalid token payload")

    if role == UserRole.SUPER_ADMIN:
        if tenant_id is not None:
            raise AuthenticationError("Invalid token payload")
    elif not tenant_id:
        raise AuthenticationError("Invalid token payload")

    return Principal(id=user_id, tenant_id=tenant_id, role=role)
