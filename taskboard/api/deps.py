"""
API Dependencies

Reusable FastAPI dependencies for authentication.

The bearer token is resolved into a Principal once per request. Services
receive that Principal and build their tenant-scoped handles from it.
"""
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from taskboard.core.identity import Principal, resolve
from taskboard.database import get_db  # noqa: F401  re-exported for routers
import logging

logger = logging.getLogger(__name__)

# auto_error=False so that a missing header goes through resolve() and
# yields the same 401 as a bad token
security = HTTPBearer(auto_error=False)


def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """
    Resolve the request's bearer token into a Principal.

    The result is also stored on request.state for logging and error
    handlers.
    """
    principal = resolve(credentials.credentials if credentials else None)
    request.state.principal = principal
    request.state.tenant_id = principal.tenant_id
    return principal


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None
