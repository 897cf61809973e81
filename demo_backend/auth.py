"""
Bearer token validation for the demo data routes. Access tokens are RS256 JWTs signed
by this backend, so verification uses the local public key.
"""
import logging
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from demo_backend.config import ISSUER
from demo_backend.keys import get_public_key

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Extract Bearer token from Authorization header. Raises 401 if missing or not Bearer."""
    if credentials is None:
        raise _unauthorized("Authorization header missing")
    if credentials.scheme.lower() != "bearer":
        raise _unauthorized("Bearer scheme required")
    return credentials.credentials


def verify_access_token(token: str) -> dict:
    """Verify signature, iss and exp. Returns decoded claims or raises 401."""
    try:
        return jwt.decode(
            token,
            get_public_key(),
            algorithms=["RS256"],
            issuer=ISSUER,
            options={"verify_exp": True, "verify_iss": True, "require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except jwt.InvalidIssuerError:
        raise _unauthorized("Invalid issuer")
    except jwt.PyJWTError as e:
        logger.debug("JWT verification failed: %s", e)
        raise _unauthorized("Token verification failed")


def get_customer_id(
    token: Annotated[str, Depends(get_bearer_token)],
) -> str:
    """Dependency: valid Bearer token -> customer id (sub claim)."""
    return str(verify_access_token(token)["sub"])


CurrentCustomer = Annotated[str, Depends(get_customer_id)]
