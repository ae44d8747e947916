"""
Permission System

One capability table and one pure decision function for every
authorization question the service asks.

Evaluation order:
1. super_admin is allowed everything, in every tenant.
2. Any other role acting on a different tenant is denied.
3. Inside the tenant, the action is allowed if some capability grants it
   to the principal's role and its ownership condition holds.

evaluate() has no side effects and reads nothing but its arguments, so it
can be unit-tested without a database. authorize() is the raising wrapper
used by the service layer.
"""
from dataclasses import dataclass
from typing import Optional
import enum

from taskboard.core.exceptions import AuthorizationDenied
from taskboard.core.identity import Principal
from taskboard.models.user import UserRole
from taskboard.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)


class ResourceKind(str, enum.Enum):
    TENANT = "tenant"
    USER = "user"
    PROJECT = "project"
    TASK = "task"
    AUDIT = "audit"


class Action(str, enum.Enum):
    LIST = "list"
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    # Tenant display name only
    RENAME = "rename"
    # Tenant status, plan and quotas
    CONFIGURE = "configure"
    # User role and is_active
    CHANGE_ROLE = "change_role"


class Condition(str, enum.Enum):
    ANY = "any"
    # principal.id == facts.owner_id (project creator, or the user record itself)
    OWNER = "owner"


@dataclass(frozen=True)
class Capability:
    kind: ResourceKind
    action: Action
    role: UserRole
    condition: Condition = Condition.ANY


@dataclass(frozen=True)
class OwnershipFacts:
    """What the evaluator needs to know about the target besides its tenant."""

    owner_id: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str

    def __bool__(self):
        return self.allowed


_ADMIN = UserRole.TENANT_ADMIN
_USER = UserRole.USER


def _members(kind: ResourceKind, *actions: Action) -> list:
    return [Capability(kind, action, role) for action in actions for role in (_ADMIN, _USER)]


# Tenant CONFIGURE and LIST are intentionally absent: super admin only.
CAPABILITIES = frozenset([
    *_members(ResourceKind.TENANT, Action.READ),
    Capability(ResourceKind.TENANT, Action.RENAME, _ADMIN),

    *_members(ResourceKind.USER, Action.LIST, Action.READ),
    Capability(ResourceKind.USER, Action.CREATE, _ADMIN),
    Capability(ResourceKind.USER, Action.DELETE, _ADMIN),
    Capability(ResourceKind.USER, Action.CHANGE_ROLE, _ADMIN),
    Capability(ResourceKind.USER, Action.UPDATE, _ADMIN),
    Capability(ResourceKind.USER, Action.UPDATE, _USER, Condition.OWNER),

    *_members(ResourceKind.PROJECT, Action.LIST, Action.READ, Action.CREATE),
    Capability(ResourceKind.PROJECT, Action.UPDATE, _ADMIN),
    Capability(ResourceKind.PROJECT, Action.UPDATE, _USER, Condition.OWNER),
    Capability(ResourceKind.PROJECT, Action.DELETE, _ADMIN),
    Capability(ResourceKind.PROJECT, Action.DELETE, _USER, Condition.OWNER),

    # Any member of the owning tenant may work on any of its tasks
    *_members(ResourceKind.TASK, Action.LIST, Action.READ, Action.CREATE, Action.UPDATE),

    Capability(ResourceKind.AUDIT, Action.LIST, _ADMIN),
])


def _condition_holds(condition: Condition, principal: Principal, facts: OwnershipFacts) -> bool:
    if condition == Condition.ANY:
        return True
    if condition == Condition.OWNER:
        return facts.owner_id is not None and facts.owner_id == principal.id
    return False


def evaluate(
    principal: Principal,
    kind: ResourceKind,
    action: Action,
    target_tenant_id: Optional[str],
    facts: Optional[OwnershipFacts] = None,
    capabilities: frozenset = CAPABILITIES,
) -> Decision:
    """Decide whether ``principal`` may perform ``action`` on a ``kind`` in a tenant."""
    if principal.is_super_admin:
        return Decision(True, "super_admin")

    if principal.tenant_id is None or target_tenant_id != principal.tenant_id:
        return Decision(False, "cross_tenant")

    facts = facts or OwnershipFacts()
    for cap in capabilities:
        if cap.kind == kind and cap.action == action and cap.role == principal.role:
            if _condition_holds(cap.condition, principal, facts):
                return Decision(True, f"{cap.role.value}:{cap.condition.value}")

    return Decision(False, "no_capability")


def authorize(
    principal: Principal,
    kind: ResourceKind,
    action: Action,
    target_tenant_id: Optional[str],
    facts: Optional[OwnershipFacts] = None,
    detail: str = "Access denied",
) -> Decision:
    """
    Evaluate and raise AuthorizationDenied on refusal.

    Cross-tenant refusals are logged as security events.
    """
    decision = evaluate(principal, kind, action, target_tenant_id, facts)
    if decision.allowed:
        return decision

    if decision.reason == "cross_tenant":
        log_security_event(
            "tenant_isolation_violation",
            {
                "user_id": principal.id,
                "tenant_id": principal.tenant_id,
                "target_tenant_id": target_tenant_id,
                "resource": kind.value,
                "action": action.value,
            },
            logger
        )
    else:
        logger.info(
            f"Denied {action.value} on {kind.value} for {principal.role.value} {principal.id}",
            extra={"tenant_id": principal.tenant_id, "user_id": principal.id}
        )
    raise AuthorizationDenied(detail)
