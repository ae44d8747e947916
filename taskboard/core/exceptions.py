"""
Custom Exceptions

Expected outcomes of the policy, quota and data layers. Each one is an
HTTPException with a stable, user-safe message and an error_type that the
API layer renders as-is. Anything else that escapes a request is treated
as an internal error and never shown to the caller.
"""
from fastapi import HTTPException, status


class ServiceError(HTTPException):
    """Base class for errors surfaced to the caller verbatim."""

    error_type = "error"

    def __init__(self, status_code: int, detail: str, headers: dict = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class AuthenticationError(ServiceError):
    """Missing, malformed, invalid or expired credentials."""

    error_type = "authentication_error"

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class TenantInactiveError(ServiceError):
    """Login attempted against a suspended tenant."""

    error_type = "tenant_inactive"

    def __init__(self, detail: str = "Tenant is not active"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class AuthorizationDenied(ServiceError):
    """
    The policy evaluator refused the action.

    Cross-tenant attempts end up here too and are logged as security events.
    """

    error_type = "authorization_denied"

    def __init__(self, detail: str = "Access denied"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class SelfDeleteDenied(AuthorizationDenied):
    error_type = "self_delete_denied"

    def __init__(self, detail: str = "Cannot delete yourself"):
        super().__init__(detail=detail)


class NotFoundError(ServiceError):
    """
    Resource doesn't exist or is outside the caller's tenant.

    The two cases are deliberately indistinguishable.
    """

    error_type = "not_found"
    resource_name = "Resource"

    def __init__(self, detail: str = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail or f"{self.resource_name} not found"
        )


class TenantNotFoundError(NotFoundError):
    resource_name = "Tenant"


class UserNotFoundError(NotFoundError):
    resource_name = "User"


class ProjectNotFoundError(NotFoundError):
    resource_name = "Project"


class TaskNotFoundError(NotFoundError):
    resource_name = "Task"


class ConflictError(ServiceError):
    """Unique constraint violation (subdomain, email)."""

    error_type = "conflict"

    def __init__(self, detail: str = "Resource already exists"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class QuotaExceededError(ServiceError):
    """Subscription plan limit reached for a resource kind."""

    error_type = "quota_exceeded"

    def __init__(self, kind: str = "", limit: int = None):
        detail = "Subscription limit reached"
        if kind:
            detail = f"{kind.capitalize()} limit reached for your subscription"
            if limit is not None:
                detail += f" ({limit})"
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        self.kind = kind
        self.limit = limit


class ValidationFailed(ServiceError):
    """Input is well-formed but not acceptable (e.g. assignee in another tenant)."""

    error_type = "validation_error"

    def __init__(self, detail: str = "Invalid input"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class RateLimitExceeded(ServiceError):
    """Raised when rate limit is exceeded."""

    error_type = "rate_limit_exceeded"

    def __init__(self, retry_after: int = 60):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
            headers={"Retry-After": str(retry_after)}
        )


class TenantScopeError(RuntimeError):
    """
    A data-access handle was built or used without a tenant binding.

    This is a programming error, not a caller error, so it is not an
    HTTPException and surfaces as an internal error.
    """
