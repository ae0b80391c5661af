"""
Tests for the /otp endpoints: owner-scoped lookup and one-shot verification.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from db.models.otp_code import OtpCode, OtpKind

pytestmark = pytest.mark.asyncio


async def _register_and_fetch_code(client: AsyncClient, session_factory, payload: dict):
    response = await client.post("/auth/register", json=payload)
    assert response.status_code == 201, response.text
    token = response.json()["access_token"]
    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    user_id = me.json()["user"]["id"]

    async with session_factory() as db:
        result = await db.execute(
            select(OtpCode).where(OtpCode.user_id == user_id, OtpCode.kind == OtpKind.EMAIL_VERIFICATION)
        )
        return user_id, result.scalars().first()


class TestOtpEndpoints:

    async def test_validate_returns_the_owners_code(self, async_client: AsyncClient, session_factory, sample_user_data):
        user_id, otp = await _register_and_fetch_code(async_client, session_factory, sample_user_data)

        response = await async_client.post(
            "/otp/validate", json={"user_id": user_id, "kind": "EMAIL_VERIFICATION", "code": otp.code}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == otp.id
        assert body["user_id"] == user_id
        assert body["kind"] == "EMAIL_VERIFICATION"
        assert body["verified"] is False
        assert "code" not in body

    async def test_validate_requires_matching_owner_and_kind(
        self, async_client: AsyncClient, session_factory, sample_user_data
    ):
        user_id, otp = await _register_and_fetch_code(async_client, session_factory, sample_user_data)

        other_owner = await async_client.post(
            "/otp/validate", json={"user_id": "someone-else", "kind": "EMAIL_VERIFICATION", "code": otp.code}
        )
        other_kind = await async_client.post(
            "/otp/validate", json={"user_id": user_id, "kind": "PASSWORD_RESET", "code": otp.code}
        )
        assert other_owner.status_code == other_kind.status_code == 404

    async def test_verify_consumes_the_code_once(self, async_client: AsyncClient, session_factory, sample_user_data):
        user_id, otp = await _register_and_fetch_code(async_client, session_factory, sample_user_data)

        first = await async_client.put(f"/otp/{otp.id}/verify")
        assert first.status_code == 204

        lookup = await async_client.post(
            "/otp/validate", json={"user_id": user_id, "kind": "EMAIL_VERIFICATION", "code": otp.code}
        )
        assert lookup.status_code == 404

        second = await async_client.put(f"/otp/{otp.id}/verify")
        assert second.status_code == 400

    async def test_verify_unknown_id_is_rejected(self, async_client: AsyncClient):
        response = await async_client.put("/otp/does-not-exist/verify")
        assert response.status_code == 400

    async def test_validate_rejects_malformed_code(self, async_client: AsyncClient):
        response = await async_client.post(
            "/otp/validate", json={"user_id": "u-1", "kind": "LOGIN", "code": "12ab56"}
        )
        assert response.status_code == 422
