"""
Quota Enforcement

Plan limits (max_users, max_projects) are checked and reserved inside the
caller's transaction, under a lock on the tenant, before the new row is
inserted. Concurrent creations for the same tenant therefore queue up: the
second request only counts after the first has committed or rolled back.

- PostgreSQL: SELECT ... FOR UPDATE on the tenant row. Held until commit.
- SQLite: transactions already start with BEGIN IMMEDIATE (see
  taskboard.database), which serializes all writers.

Usage::

    with transaction(db):
        quota.reserve(db, tenant_id, QuotaKind.PROJECTS)
        db.add(project)
        audit.record(...)
"""
from dataclasses import dataclass
import enum

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from taskboard.core.exceptions import QuotaExceededError, TenantNotFoundError
from taskboard.models.project import Project
from taskboard.models.tenant import Tenant
from taskboard.models.user import User
from taskboard.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)


class QuotaKind(str, enum.Enum):
    USERS = "users"
    PROJECTS = "projects"


# kind -> (counted model, tenant column holding the limit)
_QUOTA_SOURCES = {
    QuotaKind.USERS: (User, "max_users"),
    QuotaKind.PROJECTS: (Project, "max_projects"),
}


@dataclass(frozen=True)
class QuotaUsage:
    kind: QuotaKind
    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)


def lock_tenant(db: Session, tenant_id: str) -> Tenant:
    """
    Load the tenant row with a write lock for the rest of the transaction.

    populate_existing makes sure the limits are re-read even if the tenant
    is already in the session's identity map.
    """
    tenant = db.execute(
        select(Tenant)
        .where(Tenant.id == tenant_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if tenant is None:
        raise TenantNotFoundError()
    return tenant


def usage(db: Session, tenant: Tenant, kind: QuotaKind) -> QuotaUsage:
    """Current count and limit for one resource kind."""
    model, limit_attr = _QUOTA_SOURCES[kind]
    used = db.execute(
        select(func.count()).select_from(model).where(model.tenant_id == tenant.id)
    ).scalar_one()
    return QuotaUsage(kind=kind, used=used, limit=getattr(tenant, limit_attr))


def reserve(db: Session, tenant_id: str, kind: QuotaKind) -> QuotaUsage:
    """
    Lock the tenant and make sure one more ``kind`` fits.

    Must be called inside an open transaction, before the insert it
    guards. Raises QuotaExceededError (and the caller's transaction rolls
    back) when the tenant is at its limit.
    """
    tenant = lock_tenant(db, tenant_id)
    current = usage(db, tenant, kind)

    if current.used >= current.limit:
        log_security_event(
            "quota_exceeded",
            {"tenant_id": tenant_id, "reason": f"{kind.value} {current.used}/{current.limit}"},
            logger
        )
        raise QuotaExceededError(kind.value, current.limit)

    logger.debug(
        f"Reserved {kind.value} slot {current.used + 1}/{current.limit}",
        extra={"tenant_id": tenant_id}
    )
    return current
