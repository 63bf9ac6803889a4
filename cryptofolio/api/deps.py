"""FastAPI dependencies."""
from typing import Optional
from fastapi import Depends, HTTPException, status, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from cryptofolio.core.security import decode_access_token
from cryptofolio.core.config import get_settings
from cryptofolio.services.assistant_gateway import AssistantGateway, GatewayConfig

security = HTTPBearer(auto_error=False)


def _resolve_user(
    x_dev_user: Optional[str],
    credentials: Optional[HTTPAuthorizationCredentials],
    request: Optional[Request],
) -> Optional[dict]:
    """Return the caller's identity, None when no credentials were sent.

    Raises:
        HTTPException: 401 when a bearer token is present but invalid.
    """
    settings = get_settings()

    # Dev mode: trust X-Dev-User as the owner id (local only)
    if settings.enable_dev_auth and x_dev_user:
        return {"user_id": x_dev_user, "email": f"{x_dev_user}@dev.local"}

    if not credentials:
        return None

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )

    user_id = payload.get("user_id") or payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing required claim (user_id)"
        )

    if request:
        request.state.user_id = user_id

    return {"user_id": user_id, "email": payload.get("email")}


async def get_current_user(
    x_dev_user: Optional[str] = Header(None, alias="X-Dev-User"),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    request: Request = None
) -> dict:
    """Get current user from JWT or, with ENABLE_DEV_AUTH, the X-Dev-User header."""
    user = _resolve_user(x_dev_user, credentials, request)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    return user


async def get_optional_user(
    x_dev_user: Optional[str] = Header(None, alias="X-Dev-User"),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    request: Request = None
) -> Optional[dict]:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    return _resolve_user(x_dev_user, credentials, request)


def get_assistant_gateway() -> AssistantGateway:
    """Gateway built from current settings. Tests override this dependency."""
    return AssistantGateway(GatewayConfig.from_settings(get_settings()))
