"""
Integration tests for registration, the public directory and the owner
profile endpoints.
"""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from mpbusinesshub.models import Business, OperatingHour, User
from mpbusinesshub.models.business import STATUS_PENDING


pytestmark = pytest.mark.integration

DESCRIPTION = (
    "Guided river rafting, hiking and abseiling adventures in and around Sabie "
    "for groups and families."
)


def registration_payload(**overrides) -> dict:
    payload = {
        "businessName": "Sabie Adventures",
        "category": "Tourism",
        "district": "Mbombela",
        "description": DESCRIPTION,
        "phone": "013 764 2000",
        "email": "info@sabie.co.za",
        "website": "https://sabie.co.za",
        "address": "1 Main Road, Sabie",
        "password": "password123",
    }
    payload.update(overrides)
    return payload


def update_payload(**overrides) -> dict:
    payload = registration_payload(email="owner@lodge.co.za", businessName="Crocodile River Lodge")
    del payload["password"]
    payload.update(overrides)
    return payload


class TestRegistration:
    """Test POST /api/businesses/register."""

    @pytest.mark.asyncio
    async def test_register_business(self, client: AsyncClient, packages, test_db):
        response = await client.post("/api/businesses/register", json=registration_payload())

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Business registered successfully"
        assert body["data"]["user"]["email"] == "info@sabie.co.za"
        assert body["data"]["user"]["email_verified"] is False
        assert body["data"]["business"]["status"] == STATUS_PENDING
        assert body["data"]["business"]["package_type"] == "Basic"
        assert "|" in body["data"]["token"]

        business = (await test_db.execute(select(Business))).scalar_one()
        assert business.package_id == packages["Basic"].id
        assert business.website == "https://sabie.co.za/"

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client: AsyncClient, packages, owner: User):
        response = await client.post(
            "/api/businesses/register",
            json=registration_payload(email="OWNER@lodge.co.za"),
        )

        assert response.status_code == 422
        assert response.json()["errors"]["email"] == ["The email has already been taken."]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field,value",
        [
            ("category", "Mining"),
            ("district", "Johannesburg"),
            ("description", "Too short"),
            ("phone", "12ab"),
            ("password", "short"),
            ("website", "not a url"),
        ],
    )
    async def test_register_validation(self, client: AsyncClient, packages, field, value):
        response = await client.post("/api/businesses/register", json=registration_payload(**{field: value}))

        assert response.status_code == 422
        assert field in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_register_blank_website(self, client: AsyncClient, packages):
        response = await client.post("/api/businesses/register", json=registration_payload(website=""))

        assert response.status_code == 201


class TestDirectory:
    """Test the public directory endpoints."""

    @pytest.mark.asyncio
    async def test_only_approved_listed_gold_first(self, client: AsyncClient, make_user, make_business):
        await make_business(await make_user("a@shop.co.za"), "Basic", name="Acacia Crafts")
        await make_business(await make_user("z@shop.co.za"), "Gold", name="Zebra Tours")
        await make_business(await make_user("p@shop.co.za"), "Gold", name="Pending Place", status=STATUS_PENDING)

        response = await client.get("/api/businesses")

        assert response.status_code == 200
        body = response.json()
        assert [b["name"] for b in body["data"]] == ["Zebra Tours", "Acacia Crafts"]
        assert body["data"][0]["featured"] is True
        assert body["pagination"]["total"] == 2

    @pytest.mark.asyncio
    async def test_filters_and_search(self, client: AsyncClient, make_user, make_business):
        await make_business(await make_user("a@shop.co.za"), name="Lowveld Builders", category="Construction")
        await make_business(await make_user("b@shop.co.za"), name="Highveld Farms", category="Agriculture",
                            district="Emalahleni")

        response = await client.get("/api/businesses", params={"category": "Construction"})
        assert [b["name"] for b in response.json()["data"]] == ["Lowveld Builders"]

        response = await client.get("/api/businesses", params={"district": "Emalahleni"})
        assert [b["name"] for b in response.json()["data"]] == ["Highveld Farms"]

        response = await client.get("/api/businesses", params={"search": "builders"})
        assert [b["name"] for b in response.json()["data"]] == ["Lowveld Builders"]

    @pytest.mark.asyncio
    async def test_search_wildcards_match_literally(self, client: AsyncClient, make_user, make_business):
        await make_business(await make_user("a@shop.co.za"), name="100% Organic Produce")
        await make_business(await make_user("b@shop.co.za"), name="Sabie_Lodge")
        await make_business(await make_user("c@shop.co.za"), name="Sabie River Lodge")

        response = await client.get("/api/businesses", params={"search": "%"})
        assert [b["name"] for b in response.json()["data"]] == ["100% Organic Produce"]

        response = await client.get("/api/businesses", params={"search": "sabie_"})
        assert [b["name"] for b in response.json()["data"]] == ["Sabie_Lodge"]


    @pytest.mark.asyncio
    async def test_pagination(self, client: AsyncClient, make_user, make_business):
        for i in range(3):
            await make_business(await make_user(f"b{i}@shop.co.za"), name=f"Business {i}")

        response = await client.get("/api/businesses", params={"page": 2, "per_page": 2})

        body = response.json()
        assert len(body["data"]) == 1
        assert body["pagination"] == {"total": 3, "per_page": 2, "current_page": 2, "last_page": 2}

    @pytest.mark.asyncio
    async def test_basic_listing_hides_contact(self, client: AsyncClient, owner: User, make_business):
        business = await make_business(owner, "Basic")

        response = await client.get(f"/api/businesses/{business.id}")

        data = response.json()["data"]
        assert data["contact"] is None
        assert data["hours"] is None
        assert data["social_media"] is None
        assert data["products"] == []

    @pytest.mark.asyncio
    async def test_bronze_listing_shows_contact_and_hours(self, client: AsyncClient, owner: User, make_business):
        business = await make_business(owner, "Bronze")

        response = await client.get(f"/api/businesses/{business.id}")

        data = response.json()["data"]
        assert data["contact"]["phone"] == "013 755 1234"
        assert data["hours"]["monday"] == "Closed"
        assert set(data["social_media"]) == {"facebook", "instagram", "twitter", "linkedin", "youtube", "tiktok"}

    @pytest.mark.asyncio
    async def test_unapproved_business_not_found(self, client: AsyncClient, owner: User, make_business):
        business = await make_business(owner, status=STATUS_PENDING)

        response = await client.get(f"/api/businesses/{business.id}")

        assert response.status_code == 404
        assert response.json()["message"] == "Business not found"

    @pytest.mark.asyncio
    async def test_reviews_of_unknown_business(self, client: AsyncClient):
        response = await client.get(f"/api/businesses/{uuid4()}/reviews")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_view_and_contact_counters(self, client: AsyncClient, owner: User, make_business):
        business = await make_business(owner)

        await client.post(f"/api/businesses/{business.id}/view")
        response = await client.post(f"/api/businesses/{business.id}/view")
        assert response.json()["data"] == {"view_count": 2}

        response = await client.post(f"/api/businesses/{business.id}/contact")
        assert response.json()["data"] == {"contact_count": 1}

        response = await client.post(f"/api/businesses/{uuid4()}/view")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_categories_and_districts(self, client: AsyncClient, make_user, make_business):
        await make_business(await make_user("a@shop.co.za"), category="Events", district="Bushbuckridge")
        await make_business(await make_user("b@shop.co.za"), category="Tourism")
        await make_business(await make_user("c@shop.co.za"), category="Construction", status=STATUS_PENDING)

        response = await client.get("/api/categories")
        assert response.json()["data"] == ["Events", "Tourism"]

        response = await client.get("/api/districts")
        assert response.json()["data"] == ["Bushbuckridge", "Mbombela"]


class TestOwnerProfile:
    """Test /api/business/details, /update and /statistics."""

    @pytest.mark.asyncio
    async def test_details(self, client: AsyncClient, owner: User, owner_token: str, make_business):
        await make_business(owner, "Silver")

        response = await client.get("/api/business/details", headers={"Authorization": f"Bearer {owner_token}"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["package_type"] == "Silver"
        assert data["limits"]["product_limit"] == 10
        assert len(data["operating_hours"]) == 7

    @pytest.mark.asyncio
    async def test_details_without_business(self, client: AsyncClient, owner_token: str):
        response = await client.get("/api/business/details", headers={"Authorization": f"Bearer {owner_token}"})

        assert response.status_code == 404
        assert response.json()["message"] == "Business not found"

    @pytest.mark.asyncio
    async def test_update_business_and_hours(
        self, client: AsyncClient, owner: User, owner_token: str, make_business, test_db
    ):
        business = await make_business(owner, "Bronze")

        response = await client.put(
            "/api/business/update",
            headers={"Authorization": f"Bearer {owner_token}"},
            json=update_payload(
                businessName="Crocodile River Lodge & Spa",
                operatingHours={"Monday": "08:00 - 17:00", "sunday": "Closed", "holiday": "09:00 - 12:00"},
            ),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Business updated successfully"
        assert body["data"]["name"] == "Crocodile River Lodge & Spa"
        assert body["data"]["operating_hours"]["monday"] == "08:00 - 17:00"
        assert body["data"]["operating_hours"]["sunday"] == "Closed"

        rows = (
            await test_db.execute(select(OperatingHour).where(OperatingHour.business_id == business.id))
        ).scalars().all()
        assert {row.day for row in rows} == {"monday", "sunday"}

    @pytest.mark.asyncio
    async def test_update_hours_again_updates_rows(self, client: AsyncClient, owner: User, owner_token: str,
                                                   make_business, test_db):
        business = await make_business(owner, "Bronze")
        headers = {"Authorization": f"Bearer {owner_token}"}

        await client.put("/api/business/update", headers=headers,
                         json=update_payload(operatingHours={"monday": "08:00 - 17:00"}))
        response = await client.put("/api/business/update", headers=headers,
                                    json=update_payload(operatingHours={"monday": "09:00 - 13:00"}))

        assert response.json()["data"]["operating_hours"]["monday"] == "09:00 - 13:00"
        rows = (
            await test_db.execute(select(OperatingHour).where(OperatingHour.business_id == business.id))
        ).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_update_invalid_hours(self, client: AsyncClient, owner: User, owner_token: str, make_business):
        await make_business(owner)

        response = await client.put(
            "/api/business/update",
            headers={"Authorization": f"Bearer {owner_token}"},
            json=update_payload(operatingHours={"monday": "8am to 5pm"}),
        )

        assert response.status_code == 422
        assert "operatingHours" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_update_email_taken(
        self, client: AsyncClient, owner: User, owner_token: str, make_business, admin: User
    ):
        await make_business(owner)

        response = await client.put(
            "/api/business/update",
            headers={"Authorization": f"Bearer {owner_token}"},
            json=update_payload(email="admin@mpbusinesshub.co.za"),
        )

        assert response.status_code == 422
        assert response.json()["errors"]["email"] == ["The email has already been taken."]

    @pytest.mark.asyncio
    async def test_update_email_changes_login_email(
        self, client: AsyncClient, owner: User, owner_token: str, make_business
    ):
        await make_business(owner)

        response = await client.put(
            "/api/business/update",
            headers={"Authorization": f"Bearer {owner_token}"},
            json=update_payload(email="Bookings@Lodge.co.za"),
        )

        assert response.status_code == 200
        assert owner.email == "bookings@lodge.co.za"

    @pytest.mark.asyncio
    async def test_statistics(self, client: AsyncClient, owner: User, owner_token: str, make_business):
        business = await make_business(owner)
        await client.post(f"/api/businesses/{business.id}/view")

        response = await client.get(
            "/api/business/statistics", headers={"Authorization": f"Bearer {owner_token}"}
        )

        data = response.json()["data"]
        assert data["view_count"] == 1
        assert data["product_count"] == 0
        assert data["average_rating"] is None
