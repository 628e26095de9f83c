"""
机构与成员管理接口测试
"""

import pytest
import pytest_asyncio

from aiborn.core.rate_limit import org_member_limiter
from aiborn.models.code import CodeType


@pytest.mark.asyncio
class TestOrganizationsApi:
    """/api/orgs 接口测试类"""

    @pytest.fixture
    def owner(self, auth_headers):
        return auth_headers("owner_1", "owner@acme.example")

    @pytest_asyncio.fixture
    async def org_id(self, client, owner):
        response = await client.post(
            "/api/orgs", json={"name": "Acme Learning", "type": "EDUCATIONAL"}, headers=owner
        )
        assert response.status_code == 201
        return response.json()["organization"]["id"]

    async def test_create_requires_login(self, client):
        response = await client.post("/api/orgs", json={"name": "Acme"})
        assert response.status_code == 401

    async def test_create_and_get(self, client, owner, org_id):
        response = await client.get(f"/api/orgs/{org_id}", headers=owner)

        body = response.json()
        assert response.status_code == 200
        assert body["organization"]["name"] == "Acme Learning"
        assert body["organization"]["contactEmail"] == "owner@acme.example"
        assert body["role"] == "OWNER"
        assert body["stats"]["memberCount"] == 1
        assert body["stats"]["codeStats"]["totalCodes"] == 0

    async def test_non_member_cannot_view(self, client, org_id, auth_headers):
        response = await client.get(f"/api/orgs/{org_id}", headers=auth_headers("stranger"))

        assert response.status_code == 403
        assert response.json()["errorCode"] == "NOT_A_MEMBER"

    async def test_unknown_org(self, client, owner):
        response = await client.get("/api/orgs/missing", headers=owner)
        assert response.status_code == 404

    async def test_add_member_lifecycle(self, client, owner, org_id):
        added = await client.post(
            f"/api/orgs/{org_id}/members", json={"email": "Alice@Example.com"}, headers=owner
        )
        assert added.status_code == 201
        member = added.json()["member"]
        assert member["email"] == "alice@example.com"
        assert member["role"] == "MEMBER"

        duplicate = await client.post(
            f"/api/orgs/{org_id}/members", json={"email": "alice@example.com"}, headers=owner
        )
        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "User is already a member"

        removed = await client.delete(f"/api/orgs/{org_id}/members/{member['userId']}", headers=owner)
        assert removed.status_code == 200
        assert removed.json()["member"]["status"] == "REMOVED"

        reactivated = await client.post(
            f"/api/orgs/{org_id}/members", json={"email": "alice@example.com", "role": "ADMIN"}, headers=owner
        )
        assert reactivated.status_code == 200
        assert reactivated.json()["message"] == "Member reactivated successfully"
        assert reactivated.json()["member"]["role"] == "ADMIN"

        members = await client.get(f"/api/orgs/{org_id}/members", headers=owner)
        assert [m["role"] for m in members.json()["members"]] == ["OWNER", "ADMIN"]

    async def test_invited_user_creates_org_and_sees_both(self, client, owner, org_id, auth_headers):
        await client.post(f"/api/orgs/{org_id}/members", json={"email": "bob@example.com"}, headers=owner)
        bob = auth_headers("bob_token_sub", "bob@example.com")

        created = await client.post("/api/orgs", json={"name": "BobCo"}, headers=bob)
        assert created.status_code == 201
        bob_org = created.json()["organization"]["id"]

        members = (await client.get(f"/api/orgs/{bob_org}/members", headers=bob)).json()["members"]
        assert [(m["email"], m["role"]) for m in members] == [("bob@example.com", "OWNER")]

        invited = await client.get(f"/api/orgs/{org_id}", headers=bob)
        assert invited.status_code == 200
        assert invited.json()["role"] == "MEMBER"

    async def test_add_member_rejects_bad_email(self, client, owner, org_id):
        response = await client.post(
            f"/api/orgs/{org_id}/members", json={"email": "not-an-email"}, headers=owner
        )

        assert response.status_code == 400
        assert response.json()["errorCode"] == "VALIDATION_ERROR"

    async def test_update_member_role(self, client, owner, org_id):
        added = await client.post(
            f"/api/orgs/{org_id}/members", json={"email": "bob@example.com"}, headers=owner
        )
        user_id = added.json()["member"]["userId"]

        response = await client.patch(
            f"/api/orgs/{org_id}/members/{user_id}", json={"role": "ADMIN"}, headers=owner
        )

        assert response.status_code == 200
        assert response.json()["member"]["role"] == "ADMIN"

    async def test_last_owner_protected(self, client, owner, org_id):
        response = await client.delete(f"/api/orgs/{org_id}/members/owner_1", headers=owner)

        assert response.status_code == 400
        assert response.json()["error"] == "Cannot remove the only owner. Transfer ownership first."

    async def test_org_codes_visible_to_managers_only(
        self, client, owner, org_id, code_factory, auth_headers
    ):
        await code_factory(code="ORG234", code_type=CodeType.PARTNER, org_id=org_id)
        await code_factory(code="OTH234")
        added = await client.post(
            f"/api/orgs/{org_id}/members", json={"email": "carol@example.com"}, headers=owner
        )
        carol_id = added.json()["member"]["userId"]

        response = await client.get(f"/api/orgs/{org_id}/codes", headers=owner)
        data = response.json()["data"]
        assert [item["code"] for item in data["codes"]] == ["ORG234"]
        assert data["codes"][0]["org"]["name"] == "Acme Learning"
        assert data["stats"]["totalCodes"] == 1

        forbidden = await client.get(f"/api/orgs/{org_id}/codes", headers=auth_headers(carol_id))
        assert forbidden.status_code == 403
        assert forbidden.json()["errorCode"] == "INSUFFICIENT_ROLE"

    async def test_member_management_rate_limited(self, client, owner, org_id, fake_redis, monkeypatch):
        monkeypatch.setattr(org_member_limiter, "manager", fake_redis)
        monkeypatch.setattr(org_member_limiter, "limit", 1)

        first = await client.post(
            f"/api/orgs/{org_id}/members", json={"email": "d1@example.com"}, headers=owner
        )
        second = await client.post(
            f"/api/orgs/{org_id}/members", json={"email": "d2@example.com"}, headers=owner
        )

        assert first.status_code == 201
        assert second.status_code == 429
        assert second.json()["errorCode"] == "RATE_LIMIT_EXCEEDED"
