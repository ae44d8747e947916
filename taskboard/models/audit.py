"""
Audit Entry Model

Append-only record of state changes. Entries are written in the same
transaction as the change they describe and are never updated or deleted:
the mapper events below refuse both at flush time.

Each entry stores a SHA-256 digest of its own content so that a row edited
directly in the database no longer verifies.
"""
from sqlalchemy import Column, String, DateTime, Index, Integer, event
from datetime import datetime
from taskboard.database import Base
import hashlib


class AuditEntry(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # NULL for super admin actions that don't belong to a tenant
    tenant_id = Column(String(36), nullable=True, index=True)
    actor_id = Column(String(36), nullable=True, index=True)

    action = Column(String(50), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36), nullable=True)
    ip_address = Column(String(45), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    digest = Column(String(64), nullable=False)

    __table_args__ = (
        Index('idx_audit_tenant_created', 'tenant_id', 'created_at'),
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
    )

    def __repr__(self):
        return f"<AuditEntry {self.action} {self.entity_type}={self.entity_id}>"

    def compute_digest(self) -> str:
        payload = "|".join([
            self.tenant_id or "",
            self.actor_id or "",
            self.action,
            self.entity_type,
            self.entity_id or "",
            self.created_at.isoformat(),
        ])
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def seal(self) -> None:
        """Fix the timestamp and digest. Called once, before insert."""
        if self.created_at is None:
            self.created_at = datetime.utcnow()
        self.digest = self.compute_digest()

    def verify(self) -> bool:
        return self.digest == self.compute_digest()


@event.listens_for(AuditEntry, "before_insert")
def _seal_on_insert(mapper, connection, target):
    target.seal()


@event.listens_for(AuditEntry, "before_update")
def _reject_update(mapper, connection, target):
    raise PermissionError("Audit entries are append-only")


@event.listens_for(AuditEntry, "before_delete")
def _reject_delete(mapper, connection, target):
    raise PermissionError("Audit entries are append-only")
