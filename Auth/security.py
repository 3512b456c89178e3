# Auth/security.py
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from jose import jwt
from passlib.context import CryptContext

load_dotenv()
logger = logging.getLogger(__name__)

# argon2 for everything new; hex_sha256 only to read the old unsalted sheet hashes
pwd_context = CryptContext(schemes=["argon2", "hex_sha256"], deprecated=["hex_sha256"])

PEPPER = os.getenv("PEPPER", "")      # extra secret, never stored in the sheet
SECRET_KEY = os.getenv("JWT_TOKEN") or "dev-only-change-me"
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

if not os.getenv("JWT_TOKEN"):
    logger.warning("JWT_TOKEN not set - using the development signing key")


def _is_legacy(hashed: str) -> bool:
    return pwd_context.identify(hashed) == "hex_sha256"


def hash_password(password: str) -> str:
    return pwd_context.hash(password + PEPPER)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed or plain is None:
        return False
    try:
        if _is_legacy(hashed):
            # legacy hashes were made without the pepper
            return pwd_context.verify(plain, hashed)
        return pwd_context.verify(plain + PEPPER, hashed)
    except (ValueError, TypeError):
        # unrecognised or malformed hash
        return False


def needs_rehash(hashed: str) -> bool:
    try:
        return pwd_context.needs_update(hashed)
    except (ValueError, TypeError):
        return False


def create_access_token(user: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": user["user_id"],
        "email": user.get("email", ""),
        "role": user.get("role", ""),
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
