"""
Unit tests for one-time code issuance, matching and consumption.
"""
import pytest
from datetime import datetime, timedelta
from unittest.mock import patch
from sqlalchemy import update

from core.exceptions import InvalidOrExpiredOtpError
from db.models.otp_code import OtpCode, OtpKind
from db.repository import IdentityRepository
from services.otp_service import OtpManager, generate_otp_code


async def _make_user(db, email="otp-owner@example.com"):
    return await IdentityRepository(db).create_user(email=email, hashed_password="x")


async def _expire(db, otp_id):
    await db.execute(
        update(OtpCode).where(OtpCode.id == otp_id).values(expires_at=datetime.utcnow() - timedelta(seconds=1))
    )


class TestGenerateOtpCode:

    def test_codes_are_six_digits_in_range(self):
        for _ in range(500):
            code = generate_otp_code()
            assert len(code) == 6
            assert code.isdigit()
            assert 100000 <= int(code) <= 999999

    def test_range_bounds_are_reachable(self):
        with patch("services.otp_service.secrets.randbelow", return_value=0):
            assert generate_otp_code() == "100000"
        with patch("services.otp_service.secrets.randbelow", return_value=899999):
            assert generate_otp_code() == "999999"


class TestOtpManager:

    @pytest.mark.asyncio
    async def test_generate_persists_unverified_code_with_expiry(self, db_session, otp_manager):
        user = await _make_user(db_session)
        before = datetime.utcnow()
        otp = await otp_manager.generate(db_session, user.id, OtpKind.PASSWORD_RESET)

        assert otp.user_id == user.id
        assert otp.kind == OtpKind.PASSWORD_RESET
        assert otp.verified is False
        assert before + timedelta(minutes=15) <= otp.expires_at <= datetime.utcnow() + timedelta(minutes=15)

    @pytest.mark.asyncio
    async def test_multiple_outstanding_codes_are_allowed(self, db_session, otp_manager):
        user = await _make_user(db_session)
        await otp_manager.generate(db_session, user.id, OtpKind.LOGIN)
        await otp_manager.generate(db_session, user.id, OtpKind.LOGIN)

        count = await IdentityRepository(db_session).count_otp_codes(user.id, OtpKind.LOGIN)
        assert count == 2

    @pytest.mark.asyncio
    async def test_find_valid_matches_kind_and_code(self, db_session, otp_manager):
        user = await _make_user(db_session)
        otp = await otp_manager.generate(db_session, user.id, OtpKind.EMAIL_VERIFICATION)

        found = await otp_manager.find_valid(db_session, OtpKind.EMAIL_VERIFICATION, otp.code)
        assert found is not None and found.id == otp.id
        assert await otp_manager.find_valid(db_session, OtpKind.PASSWORD_RESET, otp.code) is None

    @pytest.mark.asyncio
    async def test_find_valid_with_user_id_requires_owner(self, db_session, otp_manager):
        owner = await _make_user(db_session, "owner@example.com")
        other = await _make_user(db_session, "other@example.com")
        otp = await otp_manager.generate(db_session, owner.id, OtpKind.PHONE_VERIFICATION)

        assert await otp_manager.find_valid(db_session, OtpKind.PHONE_VERIFICATION, otp.code, user_id=other.id) is None
        found = await otp_manager.find_valid(db_session, OtpKind.PHONE_VERIFICATION, otp.code, user_id=owner.id)
        assert found.id == otp.id

    @pytest.mark.asyncio
    async def test_find_valid_prefers_most_recent(self, db_session, otp_manager):
        user = await _make_user(db_session)
        with patch("services.otp_service.generate_otp_code", return_value="123456"):
            older = await otp_manager.generate(db_session, user.id, OtpKind.LOGIN)
            newer = await otp_manager.generate(db_session, user.id, OtpKind.LOGIN)
        await db_session.execute(
            update(OtpCode).where(OtpCode.id == older.id).values(created_at=datetime.utcnow() - timedelta(minutes=5))
        )

        found = await otp_manager.find_valid(db_session, OtpKind.LOGIN, "123456")
        assert found.id == newer.id

    @pytest.mark.asyncio
    async def test_expired_code_is_not_found(self, db_session, otp_manager):
        user = await _make_user(db_session)
        otp = await otp_manager.generate(db_session, user.id, OtpKind.PASSWORD_RESET)
        await _expire(db_session, otp.id)

        assert await otp_manager.find_valid(db_session, OtpKind.PASSWORD_RESET, otp.code) is None

    @pytest.mark.asyncio
    async def test_empty_code_never_matches(self, db_session, otp_manager):
        assert await otp_manager.find_valid(db_session, OtpKind.PASSWORD_RESET, "") is None

    @pytest.mark.asyncio
    async def test_consume_marks_verified_once(self, db_session, otp_manager):
        user = await _make_user(db_session)
        otp = await otp_manager.generate(db_session, user.id, OtpKind.EMAIL_VERIFICATION)

        consumed = await otp_manager.consume(db_session, otp.id)
        assert consumed.verified is True
        assert await otp_manager.find_valid(db_session, OtpKind.EMAIL_VERIFICATION, otp.code) is None

        with pytest.raises(InvalidOrExpiredOtpError):
            await otp_manager.consume(db_session, otp.id)

    @pytest.mark.asyncio
    async def test_consume_unknown_id_is_rejected(self, db_session, otp_manager):
        with pytest.raises(InvalidOrExpiredOtpError):
            await otp_manager.consume(db_session, "does-not-exist")

    def test_expiry_window_defaults_to_settings(self):
        assert OtpManager().expires_in_minutes == 15
