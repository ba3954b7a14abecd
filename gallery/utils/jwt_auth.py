"""
Bearer token verification for admin endpoints.
Tokens are issued by the external identity provider; this API only verifies them.
"""
import logging
from typing import Optional

from fastapi import Header, Request
from jose import JWTError, jwt

from gallery.config import settings
from gallery.errors import AuthError

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"
ADMIN_ROLE = "admin"


def extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    """Bearer token from the Authorization header, falling back to the session cookie."""
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    return request.cookies.get(SESSION_COOKIE)


def verify_token(token: str) -> dict:
    """
    Verify and decode an identity provider token.

    Args:
        token: JWT token string

    Returns:
        dict: Decoded claims

    Raises:
        AuthError: If the token is invalid, expired, or lacks the admin role
    """
    options = {"verify_aud": False}
    try:
        claims = jwt.decode(
            token,
            settings.AUTH_JWT_KEY,
            algorithms=settings.AUTH_JWT_ALGORITHMS,
            issuer=settings.AUTH_JWT_ISSUER or None,
            options=options,
        )
    except JWTError as e:
        logger.warning(f"Rejected token: {str(e)}")
        raise AuthError("Authentication token is invalid or expired")

    if not claims.get("sub"):
        raise AuthError("Authentication token has no subject")

    role_claim = settings.AUTH_ADMIN_ROLE_CLAIM
    if role_claim and claims.get(role_claim) != ADMIN_ROLE:
        raise AuthError("Admin role required", details={"claim": role_claim})

    return claims


def require_admin(
    request: Request,
    authorization: Optional[str] = Header(None, description="Bearer token issued by the identity provider"),
) -> dict:
    """
    FastAPI dependency guarding mutating endpoints.

    With no verification key configured, development environments let the
    request through with a warning; production rejects it.

    Raises:
        AuthError: 401 if the token is missing or invalid
    """
    if not settings.AUTH_JWT_KEY:
        if settings.is_production:
            logger.error("AUTH_JWT_KEY not configured in production; rejecting admin request")
            raise AuthError("Authentication is not configured")
        logger.warning(f"AUTH_JWT_KEY not configured; allowing {request.method} {request.url.path} in development")
        return {"sub": "development", "role": ADMIN_ROLE}

    token = extract_token(request, authorization)
    if not token:
        raise AuthError("Authentication required")

    return verify_token(token)
