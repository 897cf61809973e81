"""
RSA key for signing access tokens. Loaded from file or generated and saved on first use;
no key material in code.
"""
import logging
from pathlib import Path

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import generate_private_key

logger = logging.getLogger(__name__)

_KEY_BITS = 2048
KID = "demo-backend-key"


def _generate_key():
    return generate_private_key(65537, _KEY_BITS, default_backend())


def _serialize_private(key) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def load_or_create_signing_key(path: str | None):
    """Load RSA private key from path, or generate one and try to save it there."""
    if not path:
        return _generate_key()
    p = Path(path)
    if p.exists():
        try:
            return serialization.load_pem_private_key(p.read_bytes(), password=None, backend=default_backend())
        except (ValueError, TypeError) as e:
            logger.warning("Failed to load signing key from %s: %s; generating new key", path, e)
    key = _generate_key()
    try:
        p.write_bytes(_serialize_private(key))
        logger.info("Generated and saved signing key to %s", path)
    except OSError as e:
        logger.warning("Could not save signing key to %s: %s", path, e)
    return key


_private_key = None


def get_signing_key():
    """Private key for new access tokens (loaded once)."""
    global _private_key
    if _private_key is None:
        from demo_backend.config import SIGNING_KEY_PATH

        _private_key = load_or_create_signing_key(SIGNING_KEY_PATH)
    return _private_key


def get_public_key():
    """Public half of the signing key, for verifying bearer tokens."""
    return get_signing_key().public_key()
