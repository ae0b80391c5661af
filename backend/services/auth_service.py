from datetime import datetime
from typing import Any, Dict, Optional, Union
import logging
import pydantic
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import async_sessionmaker
from core.exceptions import (
    InvalidCredentialsError,
    InvalidOrExpiredOtpError,
    InvalidTokenError,
    ValidationError,
)
from core.security import hash_password_async, verify_password_async
from db.models.otp_code import OtpKind
from db.repository import IdentityRepository
from db.session import SessionLocal, unit_of_work
from schemas.otp_schema import OtpCodeOut
from schemas.user_schema import (
    AgentAccount,
    CorporateAccount,
    RegisterRequest,
    StandardAccount,
    UserRole,
    resolve_account,
)
from services.otp_service import OtpManager
from services.token_service import ClientInfo, TokenIssuer, TokenPayload
from utils.email import send_otp_email
from utils.timing import timeit

logger = logging.getLogger(__name__)

AccountView = Union[StandardAccount, AgentAccount, CorporateAccount]


class IdentityService:
    """Registration, login and credential recovery for travel accounts.

    Each public method is one request's worth of work: it opens its own unit
    of work, and every failure surfaces as an ``IdentityError`` subclass.
    Only two outcomes are deliberately swallowed: a reset request for an
    unknown email and a logout whose session is already gone.
    """

    def __init__(
        self,
        token_issuer: TokenIssuer,
        otp_manager: Optional[OtpManager] = None,
        session_factory: Optional[async_sessionmaker] = None,
        send_email: bool = True,
    ):
        self._tokens = token_issuer
        self._otps = otp_manager or OtpManager()
        self._sessions = session_factory or SessionLocal
        self._send_email = send_email

    @property
    def tokens(self) -> TokenIssuer:
        return self._tokens

    def _decode_or_reject(self, token: str) -> TokenPayload:
        try:
            return self._tokens.decode(token)
        except InvalidTokenError as e:
            raise InvalidCredentialsError("Invalid or expired token") from e

    async def _notify(self, email: str, code: str, kind: OtpKind) -> None:
        # Delivery is best effort; the code is already persisted
        if not self._send_email:
            return
        sent = await run_in_threadpool(send_otp_email, email, code, kind, self._otps.expires_in_minutes)
        if not sent:
            logger.warning(f"{kind.value} code was stored but not delivered")

    @timeit("register")
    async def register(
        self, details: Union[RegisterRequest, Dict[str, Any]], client: Optional[ClientInfo] = None
    ) -> str:
        """Create a user (plus role profile), a verification code and a session token atomically."""
        if not isinstance(details, RegisterRequest):
            try:
                details = RegisterRequest.model_validate(details)
            except pydantic.ValidationError as e:
                raise ValidationError(str(e)) from e

        hashed_password = await hash_password_async(details.password)
        logger.info(f"Registering new {details.role.value} user")

        async with unit_of_work(self._sessions) as db:
            repo = IdentityRepository(db)
            user = await repo.create_user(
                email=details.email,
                hashed_password=hashed_password,
                **details.user_fields(),
            )
            if details.role is UserRole.AGENT:
                await repo.create_agent_profile(user.id, **details.profile_fields())
            elif details.role is UserRole.CORPORATE:
                await repo.create_corporate_profile(user.id, **details.profile_fields())
            otp = await self._otps.generate(db, user.id, OtpKind.EMAIL_VERIFICATION)
            token = await self._tokens.issue(db, user.id, client)
            user_id, email, code = user.id, user.email, otp.code

        logger.info(f"User {user_id} registered; email verification code issued")
        await self._notify(email, code, OtpKind.EMAIL_VERIFICATION)
        return token

    @timeit("login")
    async def login(self, email: str, password: str, client: Optional[ClientInfo] = None) -> str:
        async with unit_of_work(self._sessions) as db:
            user = await IdentityRepository(db).get_user_by_email(email)
            # Same failure for unknown email and wrong password
            if user is None:
                logger.warning("Login failed: unknown email")
                raise InvalidCredentialsError()
            if not await verify_password_async(password, user.hashed_password):
                logger.warning(f"Login failed: bad password for user {user.id}")
                raise InvalidCredentialsError()
            token = await self._tokens.issue(db, user.id, client)
        logger.info(f"User {user.id} logged in")
        return token

    async def logout(self, token: str) -> None:
        async with unit_of_work(self._sessions) as db:
            revoked = await self._tokens.revoke(db, token)
        logger.info("Logout completed" if revoked else "Logout for unknown session treated as success")

    async def refresh_token(self, token: str, client: Optional[ClientInfo] = None) -> str:
        """Mint a new token for the same user; the old session row stays until it expires."""
        payload = self._decode_or_reject(token)
        async with unit_of_work(self._sessions) as db:
            new_token = await self._tokens.issue(db, payload.user_id, client)
        logger.info(f"Token refreshed for user {payload.user_id}")
        return new_token

    def validate_token(self, token: str) -> bool:
        return self._tokens.validate(token)

    async def get_user_info(self, token: str) -> Optional[AccountView]:
        payload = self._decode_or_reject(token)
        async with unit_of_work(self._sessions) as db:
            user = await IdentityRepository(db).get_user_by_id(payload.user_id, with_profiles=True)
            if user is None:
                logger.warning(f"No user row for token subject {payload.user_id}")
                return None
            return resolve_account(user)

    @timeit("change_password")
    async def change_password(self, token: str, old_password: str, new_password: str) -> None:
        payload = self._decode_or_reject(token)
        async with unit_of_work(self._sessions) as db:
            repo = IdentityRepository(db)
            user = await repo.get_user_by_id(payload.user_id)
            if user is None or not await verify_password_async(old_password, user.hashed_password):
                logger.warning(f"Password change rejected for user {payload.user_id}")
                raise InvalidCredentialsError()
            await repo.update_user(user.id, hashed_password=await hash_password_async(new_password))
        logger.info(f"Password changed for user {payload.user_id}")

    @timeit("request_password_reset")
    async def request_password_reset(self, email: str) -> None:
        async with unit_of_work(self._sessions) as db:
            user = await IdentityRepository(db).get_user_by_email(email)
            if user is None:
                # Succeed silently so callers cannot probe for accounts
                logger.info("Password reset requested for unknown email")
                return
            otp = await self._otps.generate(db, user.id, OtpKind.PASSWORD_RESET)
            address, code = user.email, otp.code
        await self._notify(address, code, OtpKind.PASSWORD_RESET)

    async def reset_password(self, email: str) -> None:
        await self.request_password_reset(email)

    @timeit("verify_password_reset")
    async def verify_password_reset(self, code: str, new_password: str) -> None:
        hashed_password = await hash_password_async(new_password)
        async with unit_of_work(self._sessions) as db:
            otp = await self._otps.find_valid(db, OtpKind.PASSWORD_RESET, code)
            if otp is None:
                logger.warning("Password reset rejected: no matching code")
                raise InvalidOrExpiredOtpError()
            # Claim the code first so a concurrent duplicate fails before writing
            await self._otps.consume(db, otp.id)
            await IdentityRepository(db).update_user(otp.user_id, hashed_password=hashed_password)
            user_id = otp.user_id
        logger.info(f"Password reset completed for user {user_id}")

    async def verify_email(self, code: str) -> None:
        async with unit_of_work(self._sessions) as db:
            otp = await self._otps.find_valid(db, OtpKind.EMAIL_VERIFICATION, code)
            if otp is None:
                logger.warning("Email verification rejected: no matching code")
                raise InvalidOrExpiredOtpError()
            await self._otps.consume(db, otp.id)
            await IdentityRepository(db).update_user(
                otp.user_id, is_verified=True, email_verified_at=datetime.utcnow()
            )
            user_id = otp.user_id
        logger.info(f"Email verified for user {user_id}")

    async def request_email_verification(self, email: str) -> None:
        """Issue a fresh verification code; unknown or already verified emails are a no-op."""
        async with unit_of_work(self._sessions) as db:
            user = await IdentityRepository(db).get_user_by_email(email)
            if user is None or user.is_verified:
                logger.info("Verification resend skipped")
                return
            otp = await self._otps.generate(db, user.id, OtpKind.EMAIL_VERIFICATION)
            address, code = user.email, otp.code
        await self._notify(address, code, OtpKind.EMAIL_VERIFICATION)

    # Direct access to the one-time code store

    async def find_otp(self, user_id: str, kind: OtpKind, code: str) -> Optional[OtpCodeOut]:
        """The user's newest live code of ``kind`` matching ``code``, or None."""
        async with unit_of_work(self._sessions) as db:
            otp = await self._otps.find_valid(db, kind, code, user_id=user_id)
            return OtpCodeOut.model_validate(otp) if otp is not None else None

    async def verify_otp(self, otp_id: str) -> None:
        async with unit_of_work(self._sessions) as db:
            await self._otps.consume(db, otp_id)
        logger.info(f"OTP {otp_id} marked verified")
