from datetime import datetime, timedelta
from typing import Optional, Any, Dict
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPBearer
from core.config import settings
from core.exceptions import InvalidTokenError
import logging
import uuid

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# Bearer scheme for routes that read the token from the Authorization header
bearer_scheme = HTTPBearer(auto_error=False)

def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # Unknown or corrupt hash format
        return False

def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return pwd_context.hash(password)

async def hash_password_async(password: str) -> str:
    """Hash on a worker thread so bcrypt never stalls the event loop."""
    return await run_in_threadpool(get_password_hash, password)

async def verify_password_async(plain_password: str, hashed_password: Optional[str]) -> bool:
    return await run_in_threadpool(verify_password, plain_password, hashed_password)


class TokenSigner:
    """Signs and verifies self-contained JWTs with an injected secret."""

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        if not secret_key:
            raise ValueError("secret_key is required")
        self._secret_key = secret_key
        self._algorithm = algorithm

    def sign(self, payload: Dict[str, Any], ttl: timedelta) -> str:
        to_encode = payload.copy()
        now = datetime.utcnow()
        to_encode.update({
            "iat": now,
            "exp": now + ttl,
            # Two tokens minted in the same second must still differ
            "jti": uuid.uuid4().hex,
        })
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        if not token or not isinstance(token, str):
            raise InvalidTokenError()
        try:
            return jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as e:
            logger.debug(f"JWT decode failed: {e}")
            raise InvalidTokenError() from e
