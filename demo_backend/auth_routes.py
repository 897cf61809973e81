"""
Sign-in and refresh for the dashboard: POST /api/auth/login and POST /api/auth/refresh.
Errors use {"message": ...} bodies; expiresAt is epoch milliseconds.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from demo_backend.config import (
    ACCESS_TOKEN_EXPIRES,
    ISSUER,
    RATE_LIMIT_LOGIN_PER_MINUTE,
    REFRESH_TOKEN_EXPIRES,
)
from demo_backend.database import get_db
from demo_backend.keys import KID, get_signing_key
from demo_backend.models import Customer, RefreshToken
from demo_backend.rate_limit import login_limiter
from demo_backend.seed import verify_token

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth")


def _message(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message}, headers=headers)


def _issue_access_token(customer_id: str) -> tuple[str, int]:
    """Signed access token for customer_id and its expiry in epoch ms."""
    now = datetime.now(timezone.utc)
    exp = now + timedelta(seconds=ACCESS_TOKEN_EXPIRES)
    payload = {
        "iss": ISSUER,
        "sub": customer_id,
        "exp": int(exp.timestamp()),
        "iat": int(now.timestamp()),
        # Two tokens issued in the same second must still differ
        "jti": secrets.token_hex(8),
    }
    token = jwt.encode(payload, get_signing_key(), algorithm="RS256", headers={"kid": KID, "typ": "JWT"})
    return token, int(exp.timestamp()) * 1000


def _issue_refresh_token(db: Session, customer_id: str) -> str:
    value = secrets.token_urlsafe(48)
    db.add(
        RefreshToken(
            token=value,
            customer_id=customer_id,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=REFRESH_TOKEN_EXPIRES),
        )
    )
    return value


@router.post("/login")
def login(request: Request, body: dict | None = Body(default=None), db: Session = Depends(get_db)):
    client_ip = request.client.host if request.client else "unknown"
    allowed, retry_after = login_limiter.check_and_consume(client_ip, RATE_LIMIT_LOGIN_PER_MINUTE)
    if not allowed:
        logger.warning("Sign-in rate limit exceeded for %s", client_ip)
        return _message(429, "Too many sign-in attempts", headers={"Retry-After": str(retry_after)})

    body = body or {}
    customer_id = body.get("customerId")
    token = body.get("token")
    if not customer_id or not token:
        return _message(400, "Customer ID and token are required")

    customer = db.query(Customer).filter(Customer.customer_id == customer_id).first()
    if customer is None or not verify_token(str(token), customer.token_hash):
        logger.info("Sign-in rejected for customer_id=%s", customer_id)
        return _message(401, "Invalid customer ID or token")

    access_token, expires_at = _issue_access_token(customer.customer_id)
    refresh_token = _issue_refresh_token(db, customer.customer_id)
    db.commit()
    logger.info("Sign-in: tokens issued for customer_id=%s", customer.customer_id)
    return {"accessToken": access_token, "refreshToken": refresh_token, "expiresAt": expires_at}


@router.post("/refresh")
def refresh(body: dict | None = Body(default=None), db: Session = Depends(get_db)):
    value = (body or {}).get("refreshToken")
    if not value:
        return _message(400, "Refresh token is required")

    rt = db.query(RefreshToken).filter(RefreshToken.token == value).first()
    if rt is None or rt.revoked:
        return _message(401, "Invalid or revoked refresh token")
    if rt.expires_at.replace(tzinfo=timezone.utc) < datetime.now(timezone.utc):
        return _message(401, "Refresh token expired")

    # Rotate: revoke old, issue new refresh token
    rt.revoked = True
    new_refresh = _issue_refresh_token(db, rt.customer_id)
    db.commit()
    access_token, expires_at = _issue_access_token(rt.customer_id)
    logger.info("Refresh: new access token issued for customer_id=%s (refresh token rotated)", rt.customer_id)
    return {"accessToken": access_token, "refreshToken": new_refresh, "expiresAt": expires_at}
