"""
Integration tests for product and advert endpoints.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from httpx import AsyncClient

from mpbusinesshub.models import Advert, Product, User
from mpbusinesshub.models.base import utc_now

pytestmark = pytest.mark.integration


def product_payload(**overrides) -> dict:
    payload = {"name": "Sunset river cruise", "description": "Two hours on the river", "price": 450.0}
    payload.update(overrides)
    return payload


def advert_payload(start_in_days: int = 0, length_days: int = 14, **overrides) -> dict:
    today = utc_now().date()
    start = today + timedelta(days=start_in_days)
    payload = {
        "title": "Winter special",
        "description": "Stay three nights, pay for two.",
        "startDate": start.isoformat(),
        "endDate": (start + timedelta(days=length_days)).isoformat(),
    }
    payload.update(overrides)
    return payload


class TestProducts:
    """Test /api/products."""

    @pytest.mark.asyncio
    async def test_bronze_cannot_add_products(
        self, client: AsyncClient, owner: User, owner_token: str, make_business
    ):
        await make_business(owner, "Bronze")

        response = await client.post(
            "/api/products", headers={"Authorization": f"Bearer {owner_token}"}, json=product_payload()
        )

        assert response.status_code == 403
        assert response.json()["message"] == (
            "Your package does not support adding products. Please upgrade to Silver or Gold."
        )

    @pytest.mark.asyncio
    async def test_create_product(self, client: AsyncClient, owner: User, owner_token: str, make_business):
        business = await make_business(owner, "Silver")

        response = await client.post(
            "/api/products", headers={"Authorization": f"Bearer {owner_token}"}, json=product_payload()
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Product created successfully"
        assert body["data"]["business_id"] == str(business.id)
        assert body["data"]["price"] == 450.0
        assert body["data"]["status"] == "active"

    @pytest.mark.asyncio
    async def test_product_limit(self, client: AsyncClient, owner: User, owner_token: str, make_business, test_db):
        business = await make_business(owner, "Silver")
        for i in range(10):
            test_db.add(Product(business_id=business.id, name=f"Product {i}", price=10))
        await test_db.commit()

        response = await client.post(
            "/api/products", headers={"Authorization": f"Bearer {owner_token}"}, json=product_payload()
        )

        assert response.status_code == 403
        assert "limit of 10" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_negative_price(self, client: AsyncClient, owner: User, owner_token: str, make_business):
        await make_business(owner, "Gold")

        response = await client.post(
            "/api/products", headers={"Authorization": f"Bearer {owner_token}"}, json=product_payload(price=-1)
        )

        assert response.status_code == 422
        assert "price" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_public_list_shows_active_only(self, client: AsyncClient, owner: User, make_business, test_db):
        business = await make_business(owner, "Gold")
        test_db.add(Product(business_id=business.id, name="Visible", price=10))
        test_db.add(Product(business_id=business.id, name="Hidden", price=10, status="inactive"))
        await test_db.commit()

        response = await client.get("/api/products", params={"business_id": str(business.id)})

        assert [p["name"] for p in response.json()["data"]] == ["Visible"]

    @pytest.mark.asyncio
    async def test_owner_list_requires_token(self, client: AsyncClient):
        response = await client.get("/api/products")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_owner_list_includes_inactive(
        self, client: AsyncClient, owner: User, owner_token: str, make_business, test_db
    ):
        business = await make_business(owner, "Gold")
        test_db.add(Product(business_id=business.id, name="Hidden", price=10, status="inactive"))
        await test_db.commit()

        response = await client.get("/api/products", headers={"Authorization": f"Bearer {owner_token}"})

        assert [p["name"] for p in response.json()["data"]] == ["Hidden"]

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client: AsyncClient, owner: User, owner_token: str, make_business):
        await make_business(owner, "Gold")
        headers = {"Authorization": f"Bearer {owner_token}"}
        product_id = (await client.post("/api/products", headers=headers, json=product_payload())).json()["data"]["id"]

        response = await client.put(f"/api/products/{product_id}", headers=headers, json={"price": 500, "name": None})
        assert response.status_code == 200
        assert response.json()["data"]["price"] == 500.0
        assert response.json()["data"]["name"] == "Sunset river cruise"

        response = await client.delete(f"/api/products/{product_id}", headers=headers)
        assert response.json()["message"] == "Product deleted successfully"

        response = await client.get(f"/api/products/{product_id}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cannot_edit_another_business_product(
        self, client: AsyncClient, owner: User, owner_token: str, make_user, make_business, test_db
    ):
        await make_business(owner, "Gold")
        other = await make_business(await make_user("other@shop.co.za"), "Gold", name="Other")
        product = Product(business_id=other.id, name="Not yours", price=10)
        test_db.add(product)
        await test_db.commit()

        response = await client.put(
            f"/api/products/{product.id}",
            headers={"Authorization": f"Bearer {owner_token}"},
            json={"price": 1},
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Product not found"


class TestAdverts:
    """Test /api/adverts."""

    @pytest.mark.asyncio
    async def test_create_advert_consumes_slot(
        self, client: AsyncClient, owner: User, owner_token: str, make_business
    ):
        business = await make_business(owner, "Silver")

        response = await client.post(
            "/api/adverts", headers={"Authorization": f"Bearer {owner_token}"}, json=advert_payload()
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Advert created successfully"
        assert body["adverts_remaining"] == 1
        assert body["data"]["status"] == "active"
        assert business.adverts_remaining == 1

    @pytest.mark.asyncio
    async def test_no_adverts_remaining(self, client: AsyncClient, owner: User, owner_token: str, make_business):
        await make_business(owner, "Bronze", adverts_remaining=0)

        response = await client.post(
            "/api/adverts", headers={"Authorization": f"Bearer {owner_token}"}, json=advert_payload()
        )

        assert response.status_code == 403
        assert response.json()["message"] == "No adverts remaining. Please upgrade your package."

    @pytest.mark.asyncio
    async def test_basic_has_no_adverts(self, client: AsyncClient, owner: User, owner_token: str, make_business):
        await make_business(owner, "Basic")

        response = await client.post(
            "/api/adverts", headers={"Authorization": f"Bearer {owner_token}"}, json=advert_payload()
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_new_month_refills_quota(
        self, client: AsyncClient, owner: User, owner_token: str, make_business, test_db
    ):
        business = await make_business(owner, "Gold", adverts_remaining=0)
        business.last_adverts_reset = utc_now() - timedelta(days=40)
        await test_db.commit()

        response = await client.post(
            "/api/adverts", headers={"Authorization": f"Bearer {owner_token}"}, json=advert_payload()
        )

        assert response.status_code == 201
        assert response.json()["adverts_remaining"] == 3

    @pytest.mark.asyncio
    async def test_end_date_must_follow_start(
        self, client: AsyncClient, owner: User, owner_token: str, make_business
    ):
        await make_business(owner, "Gold")

        response = await client.post(
            "/api/adverts",
            headers={"Authorization": f"Bearer {owner_token}"},
            json=advert_payload(length_days=0),
        )

        assert response.status_code == 422
        assert response.json()["errors"]["request"] == ["The end date must be a date after start date."]

    @pytest.mark.asyncio
    async def test_list_and_active(
        self, client: AsyncClient, owner: User, owner_token: str, make_business, test_db
    ):
        business = await make_business(owner, "Gold")
        today = utc_now().date()
        test_db.add(Advert(business_id=business.id, title="Running", description="x",
                           start_date=today - timedelta(days=1), end_date=today + timedelta(days=5)))
        test_db.add(Advert(business_id=business.id, title="Later", description="x",
                           start_date=today + timedelta(days=3), end_date=today + timedelta(days=9)))
        test_db.add(Advert(business_id=business.id, title="Over", description="x",
                           start_date=today - timedelta(days=20), end_date=today - timedelta(days=10)))
        await test_db.commit()

        response = await client.get("/api/adverts", headers={"Authorization": f"Bearer {owner_token}"})
        body = response.json()
        assert {a["title"]: a["status"] for a in body["data"]} == {
            "Running": "active",
            "Later": "scheduled",
            "Over": "expired",
        }
        assert body["adverts_remaining"] == 4

        response = await client.get("/api/adverts/active")
        active = response.json()["data"]
        assert [a["title"] for a in active] == ["Running"]
        assert active[0]["business_name"] == "Crocodile River Lodge"

    @pytest.mark.asyncio
    async def test_delete_scheduled_advert_restores_slot(
        self, client: AsyncClient, owner: User, owner_token: str, make_business
    ):
        await make_business(owner, "Silver")
        headers = {"Authorization": f"Bearer {owner_token}"}
        created = await client.post("/api/adverts", headers=headers, json=advert_payload(start_in_days=5))
        assert created.json()["adverts_remaining"] == 1

        response = await client.delete(f"/api/adverts/{created.json()['data']['id']}", headers=headers)

        assert response.status_code == 200
        assert response.json()["adverts_remaining"] == 2

    @pytest.mark.asyncio
    async def test_delete_running_advert_keeps_slot_used(
        self, client: AsyncClient, owner: User, owner_token: str, make_business
    ):
        await make_business(owner, "Silver")
        headers = {"Authorization": f"Bearer {owner_token}"}
        created = await client.post("/api/adverts", headers=headers, json=advert_payload())

        response = await client.delete(f"/api/adverts/{created.json()['data']['id']}", headers=headers)

        assert response.json()["adverts_remaining"] == 1

    @pytest.mark.asyncio
    async def test_delete_unknown_advert(self, client: AsyncClient, owner: User, owner_token: str, make_business):
        await make_business(owner, "Silver")

        response = await client.delete(f"/api/adverts/{uuid4()}", headers={"Authorization": f"Bearer {owner_token}"})

        assert response.status_code == 404
