"""
VIP码校验与兑换接口测试
"""

import pytest

from aiborn.api.deps import ip_rate_limit, validate_rate_limit
from aiborn.core.rate_limit import RateLimiter
from aiborn.models.code import CodeType


@pytest.mark.asyncio
class TestCodesApi:
    """/api/codes 接口测试类"""

    async def test_validate_success(self, client, code_factory):
        await code_factory(code="XYZ123", code_type=CodeType.VIP_BONUS, max_redemptions=1)

        response = await client.post("/api/codes/validate", json={"code": "xyz-123"})

        assert response.status_code == 200
        assert response.json() == {
            "valid": True,
            "code": {"type": "VIP_BONUS", "redemptionsRemaining": 1},
        }
        assert "X-RateLimit-Limit" in response.headers

    async def test_validate_unlimited_code_reports_null_remaining(self, client, code_factory):
        await code_factory(code="UNL234", code_type=CodeType.VIP_PREVIEW, max_redemptions=None)

        response = await client.post("/api/codes/validate", json={"code": "UNL234"})

        assert response.json() == {
            "valid": True,
            "code": {"type": "VIP_PREVIEW", "redemptionsRemaining": None},
        }

    async def test_redeem_unlimited_code_reports_null_remaining(self, client, code_factory, auth_headers):
        await code_factory(code="UNL234", code_type=CodeType.VIP_PREVIEW, max_redemptions=None)

        response = await client.post(
            "/api/codes/redeem", json={"code": "UNL234"}, headers=auth_headers("user_a")
        )

        body = response.json()
        assert body["valid"] is True
        assert body["code"] == {"type": "VIP_PREVIEW", "redemptionsRemaining": None}
        assert "error" not in body

    async def test_validate_malformed(self, client):
        response = await client.post("/api/codes/validate", json={"code": "12"})

        body = response.json()
        assert response.status_code == 200
        assert body["valid"] is False
        assert body["errorCode"] == "INVALID_FORMAT"
        assert set(body) == {"valid", "error", "errorCode"}

    async def test_validate_not_found(self, client):
        response = await client.post("/api/codes/validate", json={"code": "ZZZ999"})

        assert response.json()["errorCode"] == "NOT_FOUND"

    async def test_validate_missing_body(self, client):
        response = await client.post("/api/codes/validate", json={})

        assert response.status_code == 400
        assert response.json()["errorCode"] == "VALIDATION_ERROR"

    async def test_validate_rate_limited(self, app, client, fake_redis):
        limiter = RateLimiter("code-validate", 2, 60, manager=fake_redis)
        app.dependency_overrides[validate_rate_limit] = ip_rate_limit(limiter)

        statuses = [
            (await client.post("/api/codes/validate", json={"code": "ABC234"})).status_code
            for _ in range(3)
        ]

        assert statuses == [200, 200, 429]
        response = await client.post("/api/codes/validate", json={"code": "ABC234"})
        assert response.json()["errorCode"] == "RATE_LIMIT_EXCEEDED"
        assert response.headers["Retry-After"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "0"

    async def test_redeem_requires_login(self, client, code_factory):
        await code_factory(code="XYZ123")

        response = await client.post("/api/codes/redeem", json={"code": "XYZ123"})

        assert response.status_code == 401
        assert response.json()["errorCode"] == "UNAUTHENTICATED"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_redeem_rejects_bad_token(self, client):
        response = await client.post(
            "/api/codes/redeem",
            json={"code": "XYZ123"},
            headers={"Authorization": "Bearer not-a-token"}
        )

        assert response.status_code == 401

    async def test_redeem_flow(self, client, code_factory, auth_headers):
        await code_factory(code="XYZ123", code_type=CodeType.VIP_BONUS, max_redemptions=1)

        first = await client.post(
            "/api/codes/redeem", json={"code": "XYZ123"}, headers=auth_headers("user_a")
        )
        assert first.status_code == 200
        assert first.json()["valid"] is True
        assert first.json()["entitlements"] == ["ENHANCED_BONUS"]
        assert first.json()["alreadyRedeemed"] is False

        repeat = await client.post(
            "/api/codes/redeem", json={"code": "xyz123"}, headers=auth_headers("user_a")
        )
        assert repeat.json()["valid"] is True
        assert repeat.json()["alreadyRedeemed"] is True

        other = await client.post(
            "/api/codes/redeem", json={"code": "XYZ123"}, headers=auth_headers("user_b")
        )
        assert other.json()["valid"] is False
        assert other.json()["errorCode"] == "REDEMPTION_LIMIT_REACHED"
        assert other.json()["entitlements"] == []

        entitlements = await client.get("/api/entitlements", headers=auth_headers("user_a"))
        assert [e["type"] for e in entitlements.json()["entitlements"]] == ["ENHANCED_BONUS"]

        check = await client.get("/api/entitlements/ENHANCED_BONUS", headers=auth_headers("user_b"))
        assert check.json() == {"type": "ENHANCED_BONUS", "hasEntitlement": False}


@pytest.mark.asyncio
class TestExcerptApi:
    """试读权限接口测试类"""

    async def test_excerpt_requires_entitlement(self, client, auth_headers):
        response = await client.get("/api/excerpt/check-entitlement", headers=auth_headers("reader"))

        body = response.json()
        assert response.status_code == 200
        assert body["hasEntitlement"] is False
        assert "downloadUrl" not in body

    async def test_excerpt_after_preview_redemption(self, client, code_factory, auth_headers):
        await code_factory(code="PRV234", code_type=CodeType.VIP_PREVIEW)
        await client.post("/api/codes/redeem", json={"code": "PRV-234"}, headers=auth_headers("reader"))

        response = await client.get("/api/excerpt/check-entitlement", headers=auth_headers("reader"))

        body = response.json()
        assert body["hasEntitlement"] is True
        assert body["downloadUrl"]
