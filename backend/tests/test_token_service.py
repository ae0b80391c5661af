"""
Unit tests for bearer token issuance, validation and revocation.
"""
import pytest
from datetime import datetime, timedelta
from jose import jwt
from sqlalchemy import select

from core.exceptions import InvalidTokenError
from db.models.user_session import UserSession
from db.repository import IdentityRepository
from services.token_service import ClientInfo, TokenIssuer


async def _make_user(db, email="traveller@example.com"):
    return await IdentityRepository(db).create_user(email=email, hashed_password="x")


class TestTokenIssuer:

    @pytest.mark.asyncio
    async def test_issue_persists_session_row(self, db_session, token_issuer):
        user = await _make_user(db_session)
        token = await token_issuer.issue(db_session, user.id, ClientInfo(ip_address="10.0.0.1", user_agent="pytest"))

        row = (await db_session.execute(select(UserSession).where(UserSession.token == token))).scalars().one()
        assert row.user_id == user.id
        assert row.ip_address == "10.0.0.1"
        assert row.user_agent == "pytest"
        remaining = row.expires_at - datetime.utcnow()
        assert timedelta(minutes=59) <= remaining <= timedelta(minutes=60)

    @pytest.mark.asyncio
    async def test_decode_round_trips_user_id(self, db_session, token_issuer):
        user = await _make_user(db_session)
        token = await token_issuer.issue(db_session, user.id)

        assert token_issuer.validate(token) is True
        assert token_issuer.decode(token).user_id == user.id

    @pytest.mark.asyncio
    async def test_tokens_issued_back_to_back_are_distinct(self, db_session, token_issuer):
        user = await _make_user(db_session)
        first = await token_issuer.issue(db_session, user.id)
        second = await token_issuer.issue(db_session, user.id)
        assert first != second

    def test_wrong_secret_is_rejected(self, token_issuer):
        forged = TokenIssuer(secret_key="another-secret")._signer.sign({"userId": "u1"}, timedelta(hours=1))

        assert token_issuer.validate(forged) is False
        with pytest.raises(InvalidTokenError):
            token_issuer.decode(forged)

    def test_expired_token_is_rejected(self, token_issuer):
        expired = token_issuer._signer.sign({"userId": "u1"}, timedelta(seconds=-5))

        assert token_issuer.validate(expired) is False
        with pytest.raises(InvalidTokenError):
            token_issuer.decode(expired)

    def test_token_without_subject_is_rejected(self, token_issuer):
        anonymous = token_issuer._signer.sign({"role": "x"}, timedelta(hours=1))
        with pytest.raises(InvalidTokenError):
            token_issuer.decode(anonymous)

    @pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", None])
    def test_validate_never_raises(self, token_issuer, garbage):
        assert token_issuer.validate(garbage) is False

    def test_payload_carries_user_id_and_expiry(self, token_issuer):
        token = token_issuer._signer.sign({"userId": "u42"}, token_issuer.ttl)
        claims = jwt.get_unverified_claims(token)
        assert claims["userId"] == "u42"
        assert claims["exp"] - claims["iat"] == 3600

    @pytest.mark.asyncio
    async def test_revoke_deletes_row_and_is_idempotent(self, db_session, token_issuer):
        user = await _make_user(db_session)
        token = await token_issuer.issue(db_session, user.id)

        assert await token_issuer.revoke(db_session, token) is True
        assert await token_issuer.revoke(db_session, token) is False
        remaining = (await db_session.execute(select(UserSession).where(UserSession.token == token))).scalars().all()
        assert remaining == []

    @pytest.mark.asyncio
    async def test_revoked_token_still_decodes_until_expiry(self, db_session, token_issuer):
        user = await _make_user(db_session)
        token = await token_issuer.issue(db_session, user.id)
        await token_issuer.revoke(db_session, token)

        # Decode is stateless and does not consult the sessions table
        assert token_issuer.validate(token) is True

    def test_secret_is_required(self):
        with pytest.raises(ValueError):
            TokenIssuer(secret_key="")
