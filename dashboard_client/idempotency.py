"""
Idempotency keys for mutating requests. Time + per-process counter + random suffix:
unique within a process, not meant to be a secret.
"""
import itertools
import secrets
import time

IDEMPOTENCY_HEADER = "Idempotency-Key"
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH"})

_counter = itertools.count()


def generate_idempotency_key() -> str:
    """New key on every call, e.g. idem_1760870400123_7_3f9a1c2e."""
    return f"idem_{int(time.time() * 1000)}_{next(_counter)}_{secrets.token_hex(4)}"


def needs_idempotency_key(method: str) -> bool:
    return method.upper() in MUTATING_METHODS
