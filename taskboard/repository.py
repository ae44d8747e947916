"""
Tenant-Scoped Data Access

A TenantScope is built once per request from the resolved Principal and
is the only way services query tenant-owned tables. Every query it issues
carries the tenant filter; there is no code path that "forgets" it.

- Tenant-bound principals get a scope bound to their tenant_id. Building a
  bound scope without a tenant id fails immediately.
- Super admins get the explicit global scope, which is the only unfiltered
  handle and has to be asked for by name.

Rows outside the scope behave exactly like rows that don't exist.
"""
from typing import Optional, Tuple, Type

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from taskboard.core.exceptions import NotFoundError, TenantScopeError
from taskboard.core.identity import Principal
from taskboard.models.tenant import Tenant


def _tenant_column(model):
    if model is Tenant:
        return Tenant.id
    column = getattr(model, "tenant_id", None)
    if column is None:
        raise TenantScopeError(f"{model.__name__} is not a tenant-owned model")
    return column


class TenantScope:
    """Handle for tenant-filtered queries on one session."""

    def __init__(self, db: Session, tenant_id: Optional[str], *, global_access: bool = False):
        if global_access and tenant_id is not None:
            raise TenantScopeError("A global scope can't be bound to a tenant")
        if not global_access and not tenant_id:
            raise TenantScopeError("Tenant-bound scope requires a tenant_id")
        self.db = db
        self.tenant_id = tenant_id
        self.is_global = global_access

    def __repr__(self):
        return "<TenantScope global>" if self.is_global else f"<TenantScope tenant={self.tenant_id}>"

    @classmethod
    def for_principal(cls, db: Session, principal: Principal) -> "TenantScope":
        if principal.is_super_admin:
            return cls.global_scope(db)
        return cls(db, principal.tenant_id)

    @classmethod
    def for_tenant(cls, db: Session, principal: Principal, tenant_id: str) -> "TenantScope":
        """
        Scope bound to ``tenant_id`` on behalf of ``principal``.

        Only super admins may bind a scope to a tenant other than their own.
        Callers authorize first; this is the last line of defence.
        """
        if not principal.is_super_admin and tenant_id != principal.tenant_id:
            raise TenantScopeError("Principal can't bind a scope to another tenant")
        return cls(db, tenant_id)

    @classmethod
    def global_scope(cls, db: Session) -> "TenantScope":
        """Unfiltered access. Reserved for super admin requests and login."""
        return cls(db, None, global_access=True)

    def query(self, model: Type) -> Query:
        column = _tenant_column(model)
        query = self.db.query(model)
        if not self.is_global:
            query = query.filter(column == self.tenant_id)
        return query

    def get(self, model: Type, entity_id: str, not_found: Type[NotFoundError] = NotFoundError):
        """Load one row by id or raise ``not_found`` if it's missing or out of scope."""
        if not entity_id:
            raise not_found()
        instance = self.query(model).filter(model.id == entity_id).first()
        if instance is None:
            raise not_found()
        return instance

    def count(self, model: Type, *criteria) -> int:
        column = _tenant_column(model)
        query = self.db.query(func.count(model.id))
        if not self.is_global:
            query = query.filter(column == self.tenant_id)
        if criteria:
            query = query.filter(*criteria)
        return query.scalar()

    def add(self, instance):
        """
        Stage a new tenant-owned row.

        Bound scopes stamp their tenant on rows that don't have one yet and
        refuse rows that name another tenant.
        """
        if not self.is_global:
            if getattr(instance, "tenant_id", None) is None:
                instance.tenant_id = self.tenant_id
            elif instance.tenant_id != self.tenant_id:
                raise TenantScopeError(
                    f"Refusing to write {type(instance).__name__} for tenant "
                    f"{instance.tenant_id} through scope {self.tenant_id}"
                )
        self.db.add(instance)
        return instance

    def delete(self, instance) -> None:
        if not self.is_global and instance.tenant_id != self.tenant_id:
            raise TenantScopeError("Refusing to delete a row outside the scope")
        self.db.delete(instance)

    def flush(self) -> None:
        self.db.flush()


def paginate(query: Query, page: int, limit: int) -> Tuple[list, int]:
    """Return one page of ``query`` and the total row count before paging."""
    total = query.order_by(None).count()
    offset = (page - 1) * limit
    return query.offset(offset).limit(limit).all(), total
