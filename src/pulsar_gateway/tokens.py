"""HS256 access tokens for the broker's token authentication provider."""
from __future__ import annotations

import logging
import secrets
from pathlib import Path
from typing import Optional

import jwt

from .models import Token

logger = logging.getLogger(__name__)

SECRET_KEY_BYTES = 32
ALGORITHM = "HS256"


def generate_secret_key(path: Optional[str | Path] = None) -> bytes:
    """Return a fresh 32-byte signing key, optionally written to ``path``."""
    key = secrets.token_bytes(SECRET_KEY_BYTES)
    if path is not None:
        target = Path(path).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(key)
        logger.info("Wrote secret key to %s", target)
    return key


def load_secret_key(path: str | Path) -> bytes:
    return Path(path).expanduser().read_bytes()


def create_token(secret: bytes, subject: str) -> Token:
    """Sign a token whose only claim is the role name in ``sub``."""
    encoded = jwt.encode({"sub": subject}, secret, algorithm=ALGORITHM)
    return Token(name=subject, token=encoded)


def token_subject(token: str) -> str:
    """Read the subject back without checking the signature."""
    claims = jwt.decode(token, options={"verify_signature": False})
    return str(claims.get("sub", ""))
