"""
Audit Recorder

Adds one AuditEntry to the caller's session per successful state change.
The entry is flushed and committed with the mutation it describes, so a
rolled-back change leaves no entry and a committed one always has exactly
one.
"""
from typing import Optional
import enum

from sqlalchemy.orm import Session

from taskboard.core.identity import Principal
from taskboard.models.audit import AuditEntry

_UNSET = object()


class AuditAction(str, enum.Enum):
    REGISTER_TENANT = "REGISTER_TENANT"
    UPDATE_TENANT = "UPDATE_TENANT"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    CREATE_PROJECT = "CREATE_PROJECT"
    UPDATE_PROJECT = "UPDATE_PROJECT"
    DELETE_PROJECT = "DELETE_PROJECT"
    CREATE_TASK = "CREATE_TASK"
    UPDATE_TASK = "UPDATE_TASK"
    UPDATE_TASK_STATUS = "UPDATE_TASK_STATUS"


def record(
    db: Session,
    principal: Principal,
    action: AuditAction,
    entity_type: str,
    entity_id: Optional[str],
    tenant_id=_UNSET,
    ip_address: Optional[str] = None,
) -> AuditEntry:
    """
    Append an audit entry to the current transaction.

    ``tenant_id`` defaults to the principal's tenant. Super admins acting
    inside a tenant pass the target tenant explicitly so the entry lands in
    that tenant's trail.
    """
    entry = AuditEntry(
        tenant_id=principal.tenant_id if tenant_id is _UNSET else tenant_id,
        actor_id=principal.id,
        action=AuditAction(action).value,
        entity_type=entity_type,
        entity_id=entity_id,
        ip_address=ip_address,
    )
    db.add(entry)
    return entry
