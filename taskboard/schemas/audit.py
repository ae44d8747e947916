"""
Audit Log Schemas
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class AuditEntryResponse(BaseModel):
    id: int
    tenant_id: Optional[str]
    actor_id: Optional[str]
    action: str
    entity_type: str
    entity_id: Optional[str]
    ip_address: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditEntryListResponse(BaseModel):
    entries: list[AuditEntryResponse]
    total: int
    page: int
    limit: int
