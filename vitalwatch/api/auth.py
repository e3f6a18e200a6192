"""
API authentication and caller identity.

Requests carry a shared ``X-API-KEY``. The upstream auth gateway
resolves the end user and forwards it as ``X-User-Id`` and
``X-User-Role``; these are trusted only behind a valid API key.
"""

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from vitalwatch.alerts.access import VALID_ROLES, AccessScope
from vitalwatch.config.settings import get_settings

api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)


def _valid_keys() -> list[str]:
    settings = get_settings()
    if not settings.api_keys:
        return []
    return [k.strip() for k in settings.api_keys.split(",") if k.strip()]


def is_valid_api_key(api_key: str | None) -> bool:
    """True if ``api_key`` is accepted, or no keys are configured (dev mode)."""
    settings = get_settings()
    if not settings.api_keys:
        return True
    if api_key is None:
        return False
    valid_keys = _valid_keys()
    return bool(valid_keys) and api_key in valid_keys


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    """
    Verify API key from X-API-KEY header.

    Raises:
        HTTPException: If API key is missing or invalid
    """
    settings = get_settings()

    # If no API keys configured, allow all requests (dev mode)
    if not settings.api_keys:
        return "dev-mode"

    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-KEY header.",
        )

    if not is_valid_api_key(api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    return api_key


def resolve_scope(user_id: str | None, role: str | None) -> AccessScope:
    """Build an AccessScope from forwarded identity values.

    Raises:
        HTTPException: 401 if the identity is missing or the role unknown.
    """
    if not user_id or not role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity. Provide X-User-Id and X-User-Role headers.",
        )
    role = role.strip().lower()
    if role not in VALID_ROLES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role {role!r}",
        )
    return AccessScope(user_id=user_id.strip(), role=role)


async def get_caller(
    api_key: str = Depends(verify_api_key),
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> AccessScope:
    """Resolve the authenticated caller for alert and reading endpoints."""
    return resolve_scope(x_user_id, x_user_role)
