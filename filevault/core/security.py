import logging
from typing import Optional

from fastapi import Request
from jose import ExpiredSignatureError, JWTError, jwt

from .config import settings
from .errors import AuthenticationError

logger = logging.getLogger(__name__)


def _extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    token = request.cookies.get("accessToken")
    return token or None


def decode_access_token(token: str, secret: str, algorithm: str = "HS256") -> dict:
    if not secret:
        raise AuthenticationError("Authentication is not configured", status_code=500)
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired, please login again")
    except JWTError:
        raise AuthenticationError("Invalid token, please login again")


async def get_current_user(request: Request) -> dict:
    """
    Resolves the authenticated principal from the access token.

    The token is issued by the auth service; only its `_id` claim is used here.
    """
    token = _extract_token(request)
    if not token:
        raise AuthenticationError("Please login to access this resource")

    claims = decode_access_token(token, settings.ACCESS_TOKEN_SECRET, settings.JWT_ALGORITHM)
    user_id = claims.get("_id") or claims.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token, please login again")
    return {"_id": str(user_id)}
