import hmac
from typing import Optional
from fastapi import Header, HTTPException, status
from refund_workflow.config import API_KEY, ADMIN_API_KEY

_UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail={"error": {"code": "UNAUTHORIZED", "message": "Invalid or missing API key"}},
)

_ADMIN_REQUIRED = HTTPException(
    status_code=status.HTTP_403_FORBIDDEN,
    detail={"error": {"code": "ADMIN_REQUIRED", "message": "This action requires an administrator key"}},
)

_MISSING_USER = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail={"error": {"code": "MISSING_USER", "message": "X-User-Id header is required"}},
)


def _matches(candidate: Optional[str], expected: str) -> bool:
    """Constant-time comparison to prevent timing attacks."""
    if not candidate:
        return False
    return hmac.compare_digest(candidate.encode(), expected.encode())


async def require_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> str:
    if not _matches(x_api_key, API_KEY):
        raise _UNAUTHORIZED
    return x_api_key


async def require_admin_key(x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key")) -> str:
    if not _matches(x_admin_key, ADMIN_API_KEY):
        raise _ADMIN_REQUIRED
    return x_admin_key


async def require_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """Identity of the caller, asserted by the upstream authentication layer."""
    if not x_user_id or len(x_user_id) > 50:
        raise _MISSING_USER
    return x_user_id
