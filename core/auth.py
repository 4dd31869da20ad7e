"""Authentication and authorization utilities for API."""

import base64
import hashlib
import hmac

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from core.config import settings

# HTTPBasic security for admin endpoints
_security = HTTPBasic()


def _b64u_encode(data: bytes) -> str:
    """Base64-URL encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def sign_client_body(body: bytes) -> str:
    """Compute the signature a trusted client sends in X-Client-Signature."""
    mac = hmac.new(settings.internal_client_secret.encode(), body, hashlib.sha256).digest()
    return _b64u_encode(mac)


def verify_client_signature(body: bytes, signature: str) -> bool:
    """
    Verify HMAC-SHA256 signature of request body.

    Args:
        body: Raw request body bytes
        signature: Base64-URL encoded HMAC signature

    Returns:
        True if signature is valid
    """
    return hmac.compare_digest(sign_client_body(body), signature or "")


def _parse_header_id(raw: str | None, header: str) -> int:
    if not raw:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Missing {header} header")
    try:
        value = int(raw)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {header} format") from None
    if value <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {header} format")
    return value


async def admin_basic_auth(credentials: HTTPBasicCredentials = Depends(_security)) -> str:
    """
    Validate HTTP Basic Auth credentials for admin endpoints.

    Args:
        credentials: HTTP Basic credentials from request

    Returns:
        Username if authentication successful

    Raises:
        HTTPException: If credentials are invalid
    """
    user_ok = hmac.compare_digest(credentials.username, settings.admin_user)
    pass_ok = hmac.compare_digest(credentials.password, settings.admin_pass)
    if not (user_ok and pass_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return str(credentials.username)


async def admin_actor(request: Request, _admin: str = Depends(admin_basic_auth)) -> int:
    """
    Resolve the administrator acting on a moderation endpoint.

    Expects header X-Actor-Id with the admin's user ID, recorded on every
    moderation event.
    """
    return _parse_header_id(request.headers.get("X-Actor-Id"), "X-Actor-Id")


async def client_auth(request: Request) -> int:
    """
    Authenticate client->API requests using HMAC signature.

    Expects headers:
    - X-User-Id: ID of the user making the request
    - X-Client-Signature: HMAC-SHA256 signature of request body

    Args:
        request: FastAPI request object

    Returns:
        User ID of the caller

    Raises:
        HTTPException: If authentication fails
    """
    user_id_str = request.headers.get("X-User-Id")
    signature = request.headers.get("X-Client-Signature")

    if not user_id_str or not signature:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing auth headers (X-User-Id, X-Client-Signature)"
        )

    body = await request.body()

    if not verify_client_signature(body, signature):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    return _parse_header_id(user_id_str, "X-User-Id")
