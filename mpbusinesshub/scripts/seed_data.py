"""
Seed data script for local development.

Creates the schema, the four subscription packages and an admin account.

Usage:
    python -m mpbusinesshub.scripts.seed_data
"""

import asyncio
import os
from decimal import Decimal

from sqlalchemy import select

from mpbusinesshub.database import AsyncSessionLocal, init_db
from mpbusinesshub.models import Package, User
from mpbusinesshub.models.base import utc_now
from mpbusinesshub.models.user import ROLE_ADMIN
from mpbusinesshub.security import hash_password
from mpbusinesshub.services.tiers import TIERS

PACKAGE_DEFINITIONS = [
    {
        "name": "Basic",
        "description": "A free listing in the directory.",
        "price_monthly": Decimal("0.00"),
        "price_annual": Decimal("0.00"),
        "features": ["Directory listing", "Customer reviews"],
    },
    {
        "name": "Bronze",
        "description": "Contact details, hours and social links on your listing.",
        "price_monthly": Decimal("200.00"),
        "price_annual": Decimal("2000.00"),
        "features": ["Contact details", "Business hours", "Social media links", "1 advert per month"],
    },
    {
        "name": "Silver",
        "description": "Adds a product catalog and social media features.",
        "price_monthly": Decimal("500.00"),
        "price_annual": Decimal("5000.00"),
        "features": ["Everything in Bronze", "Up to 10 products", "2 adverts per month", "1 featured post per month"],
    },
    {
        "name": "Gold",
        "description": "Featured placement and the highest limits.",
        "price_monthly": Decimal("1000.00"),
        "price_annual": Decimal("10000.00"),
        "features": ["Everything in Silver", "Up to 50 products", "4 adverts per month", "Featured listing"],
    },
]


def build_packages() -> list:
    packages = []
    for definition in PACKAGE_DEFINITIONS:
        tier = TIERS[definition["name"]]
        packages.append(
            Package(
                advert_limit=tier.advert_limit,
                product_limit=tier.product_limit,
                social_feature_limit=tier.social_feature_limit,
                is_active=True,
                **definition,
            )
        )
    return packages


async def seed_database():
    """Create seed data for development."""

    print("Seeding database...")
    await init_db()

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Package))
        if result.scalars().first():
            print("Packages already exist. Skipping packages.")
        else:
            for package in build_packages():
                db.add(package)
                print(f"  + package {package.name}")

        admin_email = os.getenv("MPBH_ADMIN_EMAIL", "admin@mpbusinesshub.co.za")
        result = await db.execute(select(User).where(User.email == admin_email))
        if result.scalar_one_or_none() is None:
            db.add(
                User(
                    name="Administrator",
                    email=admin_email,
                    hashed_password=hash_password(os.getenv("MPBH_ADMIN_PASSWORD", "admin12345")),
                    role=ROLE_ADMIN,
                    email_verified_at=utc_now(),
                )
            )
            print(f"  + admin {admin_email}")

        await db.commit()

    print("Done.")


def main():
    asyncio.run(seed_database())


if __name__ == "__main__":
    main()
