"""
Integration Tests for In-Store Memberships API
Tests for: public lookup, id sequence, CRUD, IMEI uniqueness, listing filters, CSV export
"""
import csv
import io
import pytest
from datetime import date, timedelta
from decimal import Decimal
from httpx import AsyncClient

from storefront.models import Membership, PaymentMode
from storefront.services.warranty_service import add_months

API = "/api/v1/memberships"


def _member(imei="356938035643809", mobile="9876543210", name="Karthik S", **overrides):
    body = {
        "full_name": name,
        "mobile_primary": mobile,
        "imei_number": imei,
        "payment_mode": "GPay",
        "amount": "999.00",
        "phone_brand_model": "Samsung Galaxy M34",
    }
    body.update(overrides)
    return body


@pytest.fixture
async def expired_membership(db_session) -> Membership:
    membership = Membership(
        full_name="Lakshmi N",
        mobile_primary="9000000001",
        membership_start_date=date(2022, 1, 1),
        expiry_date=date(2023, 1, 1),
        payment_mode=PaymentMode.CASH,
        amount=Decimal("499.00"),
        unique_membership_id="MEM007",
        imei_number="490154203237518",
    )
    db_session.add(membership)
    await db_session.commit()
    return membership


class TestCreateMembership:

    @pytest.mark.asyncio
    async def test_create_defaults(self, client: AsyncClient, admin_auth_headers):
        response = await client.post(API, headers=admin_auth_headers, json=_member())

        assert response.status_code == 201
        data = response.json()
        assert data["unique_membership_id"] == "MEM001"
        assert data["membership_start_date"] == date.today().isoformat()
        assert data["expiry_date"] == add_months(date.today(), 12).isoformat()
        assert data["payment_mode"] == "GPay"
        assert data["status"] == "Active"

    @pytest.mark.asyncio
    async def test_ids_follow_latest(self, client: AsyncClient, admin_auth_headers, expired_membership):
        response = await client.post(API, headers=admin_auth_headers, json=_member())

        assert response.json()["unique_membership_id"] == "MEM008"

    @pytest.mark.asyncio
    async def test_duplicate_imei(self, client: AsyncClient, admin_auth_headers):
        await client.post(API, headers=admin_auth_headers, json=_member())
        response = await client.post(API, headers=admin_auth_headers, json=_member(mobile="9123456780"))

        assert response.status_code == 400
        assert response.json()["detail"] == "A membership with this IMEI number already exists"

    @pytest.mark.asyncio
    async def test_expiry_before_start(self, client: AsyncClient, admin_auth_headers):
        response = await client.post(API, headers=admin_auth_headers, json=_member(
            membership_start_date="2024-06-01",
            expiry_date="2024-05-01",
        ))

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_requires_admin(self, client: AsyncClient, auth_headers):
        response = await client.post(API, headers=auth_headers, json=_member())

        assert response.status_code == 403


class TestSearch:

    @pytest.mark.asyncio
    async def test_search_by_imei_mobile_and_id(self, client: AsyncClient, admin_auth_headers):
        await client.post(API, headers=admin_auth_headers, json=_member())

        by_imei = await client.get(f"{API}/search", params={"search": "356938035643809"})
        by_mobile = await client.get(f"{API}/search", params={"search": " 9876543210 "})
        by_id = await client.get(f"{API}/search", params={"search": "mem001"})

        for response in (by_imei, by_mobile, by_id):
            assert response.status_code == 200
            assert response.json()["full_name"] == "Karthik S"

    @pytest.mark.asyncio
    async def test_search_is_public_but_exact(self, client: AsyncClient, admin_auth_headers):
        await client.post(API, headers=admin_auth_headers, json=_member())

        response = await client.get(f"{API}/search", params={"search": "98765"})

        assert response.status_code == 404
        assert response.json()["detail"] == "No membership record found."

    @pytest.mark.asyncio
    async def test_blank_search(self, client: AsyncClient):
        response = await client.get(f"{API}/search", params={"search": "   "})

        assert response.status_code == 400
        assert response.json()["detail"] == "Search term is required"


class TestListMemberships:

    @pytest.mark.asyncio
    async def test_status_filter(self, client: AsyncClient, admin_auth_headers, expired_membership):
        await client.post(API, headers=admin_auth_headers, json=_member())

        active = await client.get(API, headers=admin_auth_headers, params={"status": "active"})
        expired = await client.get(API, headers=admin_auth_headers, params={"status": "expired"})

        assert [m["unique_membership_id"] for m in active.json()["memberships"]] == ["MEM008"]
        assert [m["status"] for m in expired.json()["memberships"]] == ["Expired"]

    @pytest.mark.asyncio
    async def test_partial_search(self, client: AsyncClient, admin_auth_headers, expired_membership):
        await client.post(API, headers=admin_auth_headers, json=_member())

        response = await client.get(API, headers=admin_auth_headers, params={"search": "laksh"})

        assert response.json()["pagination"]["total_items"] == 1
        assert response.json()["memberships"][0]["full_name"] == "Lakshmi N"

    @pytest.mark.asyncio
    async def test_invalid_status(self, client: AsyncClient, admin_auth_headers):
        response = await client.get(API, headers=admin_auth_headers, params={"status": "paused"})

        assert response.status_code == 422


class TestUpdateAndDelete:

    @pytest.mark.asyncio
    async def test_update(self, client: AsyncClient, admin_auth_headers, expired_membership):
        renewed = (date.today() + timedelta(days=365)).isoformat()

        response = await client.put(f"{API}/{expired_membership.id}", headers=admin_auth_headers, json={
            "expiry_date": renewed,
            "payment_mode": "Cash",
        })

        assert response.status_code == 200
        assert response.json()["expiry_date"] == renewed
        assert response.json()["status"] == "Active"

    @pytest.mark.asyncio
    async def test_update_with_null_required_field(self, client: AsyncClient, admin_auth_headers,
                                                   expired_membership):
        response = await client.put(f"{API}/{expired_membership.id}", headers=admin_auth_headers, json={
            "full_name": None,
        })

        assert response.status_code == 422
        current = await client.get(f"{API}/{expired_membership.id}", headers=admin_auth_headers)
        assert current.json()["full_name"] == "Lakshmi N"

    @pytest.mark.asyncio
    async def test_update_to_taken_imei(self, client: AsyncClient, admin_auth_headers, expired_membership):
        await client.post(API, headers=admin_auth_headers, json=_member())

        response = await client.put(f"{API}/{expired_membership.id}", headers=admin_auth_headers, json={
            "imei_number": "356938035643809",
        })

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, admin_auth_headers, expired_membership):
        response = await client.delete(f"{API}/{expired_membership.id}", headers=admin_auth_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Membership deleted successfully"
        missing = await client.get(f"{API}/{expired_membership.id}", headers=admin_auth_headers)
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Membership not found"


class TestExport:

    @pytest.mark.asyncio
    async def test_csv_export(self, client: AsyncClient, admin_auth_headers, expired_membership):
        response = await client.get(f"{API}/export", headers=admin_auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment; filename=memberships_" in response.headers["content-disposition"]

        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0][0] == "ID"
        assert rows[0][-1] == "Updated At"
        assert len(rows[0]) == 14
        assert rows[1][1] == "Lakshmi N"
        assert rows[1][6] == "Cash"
        assert rows[1][11] == "Expired"
