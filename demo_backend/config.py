"""
Demo backend configuration. Everything comes from env; no credentials in this file.
"""
import os

# Token issuer (public identifier, goes into the JWT iss claim)
ISSUER = os.environ.get("DEMO_ISSUER", "http://127.0.0.1:8100").rstrip("/")

# SQLite DB for demo data, refresh tokens and idempotency records
DATABASE_URL = os.environ.get("DEMO_DATABASE_URL", "sqlite:///./demo_backend.db")

# Access token lifetime (seconds). The dashboard refreshes when it runs out.
ACCESS_TOKEN_EXPIRES = int(os.environ.get("DEMO_ACCESS_TOKEN_EXPIRES", "3600"))

# Refresh token lifetime (seconds)
REFRESH_TOKEN_EXPIRES = int(os.environ.get("DEMO_REFRESH_TOKEN_EXPIRES", str(7 * 24 * 3600)))

# RSA private key PEM for signing access tokens; generated on first start if missing
SIGNING_KEY_PATH = os.environ.get("DEMO_SIGNING_KEY_PATH", ".demo_signing_key.pem")

# Sign-in attempts per IP per minute
RATE_LIMIT_LOGIN_PER_MINUTE = int(os.environ.get("DEMO_RATE_LIMIT_LOGIN_PER_MINUTE", "20"))

# Order lifecycle values accepted by PATCH /api/orders/{id}
ORDER_STATUSES = ("pending", "confirmed", "shipped", "delivered", "cancelled")
