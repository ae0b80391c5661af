from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from core.config import settings
from core.exceptions import InvalidTokenError
from core.security import TokenSigner
from db.repository import IdentityRepository
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPayload:
    user_id: str


@dataclass(frozen=True)
class ClientInfo:
    """Request metadata stored alongside a session row."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class TokenIssuer:
    """Mints bearer tokens and keeps the bookkeeping ``sessions`` rows.

    ``validate`` and ``decode`` are stateless: they check signature and
    expiry only and never look at the sessions table, so a revoked token
    keeps decoding until it expires.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", ttl: timedelta = timedelta(hours=1)):
        self._signer = TokenSigner(secret_key, algorithm)
        self._ttl = ttl

    @classmethod
    def from_settings(cls, config=settings) -> "TokenIssuer":
        return cls(
            secret_key=config.SECRET_KEY,
            algorithm=config.ALGORITHM,
            ttl=timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def issue(self, db: AsyncSession, user_id: str, client: Optional[ClientInfo] = None) -> str:
        token = self._signer.sign({"userId": user_id}, self._ttl)
        client = client or ClientInfo()
        await IdentityRepository(db).create_session(
            user_id=user_id,
            token=token,
            expires_at=datetime.utcnow() + self._ttl,
            ip_address=client.ip_address,
            user_agent=(client.user_agent or "")[:512] or None,
        )
        logger.debug(f"Issued session token for user {user_id}")
        return token

    def decode(self, token: str) -> TokenPayload:
        payload = self._signer.verify(token)
        user_id = payload.get("userId")
        if not user_id:
            raise InvalidTokenError("Token carries no subject")
        return TokenPayload(user_id=str(user_id))

    def validate(self, token: str) -> bool:
        try:
            self.decode(token)
        except InvalidTokenError:
            return False
        return True

    async def revoke(self, db: AsyncSession, token: str) -> bool:
        """Delete the session row for ``token``; a missing row is not an error."""
        deleted = await IdentityRepository(db).delete_session_by_token(token)
        if not deleted:
            logger.debug("Revoke requested for unknown session token")
        return bool(deleted)
