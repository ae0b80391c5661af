from datetime import datetime, timedelta
from typing import Optional
import logging
import secrets
from sqlalchemy.ext.asyncio import AsyncSession
from core.config import settings
from core.exceptions import InvalidOrExpiredOtpError
from db.models.otp_code import OtpCode, OtpKind
from db.repository import IdentityRepository

logger = logging.getLogger(__name__)

OTP_MIN = 100000
OTP_MAX = 999999


def generate_otp_code() -> str:
    """Uniformly random 6-digit code in 100000-999999."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


class OtpManager:
    """Issues, matches and consumes one-time codes.

    All methods run inside the caller's session so they join its
    transaction; nothing here commits.
    """

    def __init__(self, expires_in: Optional[timedelta] = None):
        self._expires_in = expires_in or timedelta(minutes=settings.OTP_EXPIRE_MINUTES)

    @property
    def expires_in_minutes(self) -> int:
        return int(self._expires_in.total_seconds() // 60)

    async def generate(self, db: AsyncSession, user_id: str, kind: OtpKind) -> OtpCode:
        now = datetime.utcnow()
        otp = await IdentityRepository(db).create_otp_code(
            user_id=user_id,
            code=generate_otp_code(),
            kind=kind,
            expires_at=now + self._expires_in,
            created_at=now,
        )
        logger.info(f"Generated {kind.value} code for user {user_id}")
        return otp

    async def find_valid(
        self, db: AsyncSession, kind: OtpKind, code: str, user_id: Optional[str] = None
    ) -> Optional[OtpCode]:
        """Newest unexpired, unverified code of ``kind`` equal to ``code``.

        Without ``user_id`` the owner is taken from the matching row.
        """
        if not code:
            return None
        predicate = {"kind": kind, "code": code}
        if user_id is not None:
            predicate["user_id"] = user_id
        return await IdentityRepository(db).find_otp_code(predicate, now=datetime.utcnow())

    async def consume(self, db: AsyncSession, otp_id: str) -> OtpCode:
        """Mark a code verified. Consuming an already verified or unknown code is rejected."""
        otp = await IdentityRepository(db).mark_otp_verified(otp_id)
        if otp is None:
            logger.warning(f"Rejected consume of OTP {otp_id}: already used or missing")
            raise InvalidOrExpiredOtpError()
        return otp
