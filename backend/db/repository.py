"""Query helpers for the identity tables.

Every method runs against the caller's session and flushes, so constraint
violations surface inside the caller's unit of work.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import select, update, delete, desc, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from db.models.user import User
from db.models.agent_profile import AgentProfile
from db.models.corporate_profile import CorporateProfile
from db.models.user_session import UserSession
from db.models.otp_code import OtpCode, OtpKind


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class IdentityRepository:
    def __init__(self, session: AsyncSession):
        self._session = session

    # Users

    async def create_user(self, *, email: str, hashed_password: str, **attributes: Any) -> User:
        user = User(email=normalize_email(email), hashed_password=hashed_password, **attributes)
        self._session.add(user)
        await self._session.flush()
        return user

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self._session.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalars().first()

    async def get_user_by_id(self, user_id: str, with_profiles: bool = False) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        if with_profiles:
            stmt = stmt.options(
                selectinload(User.agent_profile),
                selectinload(User.corporate_profile),
            )
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def update_user(self, user_id: str, **values: Any) -> None:
        await self._session.execute(update(User).where(User.id == user_id).values(**values))

    # Role profiles

    async def create_agent_profile(self, user_id: str, **fields: Any) -> AgentProfile:
        profile = AgentProfile(user_id=user_id, **fields)
        self._session.add(profile)
        await self._session.flush()
        return profile

    async def create_corporate_profile(self, user_id: str, **fields: Any) -> CorporateProfile:
        profile = CorporateProfile(user_id=user_id, **fields)
        self._session.add(profile)
        await self._session.flush()
        return profile

    # Sessions

    async def create_session(
        self,
        *,
        user_id: str,
        token: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> UserSession:
        row = UserSession(
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def delete_session_by_token(self, token: str) -> int:
        result = await self._session.execute(delete(UserSession).where(UserSession.token == token))
        return result.rowcount or 0

    # OTP codes

    async def create_otp_code(
        self, *, user_id: str, code: str, kind: OtpKind, expires_at: datetime, created_at: datetime
    ) -> OtpCode:
        otp = OtpCode(
            user_id=user_id,
            code=code,
            kind=kind,
            expires_at=expires_at,
            created_at=created_at,
            verified=False,
        )
        self._session.add(otp)
        await self._session.flush()
        return otp

    async def find_otp_code(self, predicate: Dict[str, Any], now: datetime) -> Optional[OtpCode]:
        """Newest unverified, unexpired code matching ``predicate`` column values."""
        stmt = select(OtpCode).where(
            OtpCode.expires_at > now,
            OtpCode.verified.is_(False),
        )
        for column, value in predicate.items():
            stmt = stmt.where(getattr(OtpCode, column) == value)
        stmt = stmt.order_by(desc(OtpCode.created_at)).limit(1)
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def mark_otp_verified(self, otp_id: str) -> Optional[OtpCode]:
        """Flip ``verified`` only if it is still false; returns None if nothing changed."""
        result = await self._session.execute(
            update(OtpCode)
            .where(OtpCode.id == otp_id, OtpCode.verified.is_(False))
            .values(verified=True)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            return None
        otp = await self._session.get(OtpCode, otp_id)
        if otp is not None:
            await self._session.refresh(otp)
        return otp

    async def count_otp_codes(self, user_id: Optional[str] = None, kind: Optional[OtpKind] = None) -> int:
        stmt = select(func.count()).select_from(OtpCode)
        if user_id is not None:
            stmt = stmt.where(OtpCode.user_id == user_id)
        if kind is not None:
            stmt = stmt.where(OtpCode.kind == kind)
        result = await self._session.execute(stmt)
        return int(result.scalar_one() or 0)
