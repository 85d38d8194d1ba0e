"""
Housekeeping commands.

Usage:
    python -m mpbusinesshub.scripts.maintenance prune-tokens
    python -m mpbusinesshub.scripts.maintenance clear-orphaned-users
    python -m mpbusinesshub.scripts.maintenance reset-adverts
"""

import argparse
import asyncio
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.database import AsyncSessionLocal, close_db
from mpbusinesshub.models import AccessToken, Business, User
from mpbusinesshub.models.user import ROLE_ADMIN
from mpbusinesshub.services import adverts
from mpbusinesshub.services.tokens import SessionTokenManager

logger = logging.getLogger(__name__)


async def prune_tokens(db: AsyncSession) -> int:
    count = await SessionTokenManager(db).prune_expired()
    await db.commit()
    return count


async def clear_orphaned_users(db: AsyncSession) -> int:
    """Delete non-admin users without a business (abandoned registrations)."""
    owners = select(Business.user_id)
    result = await db.execute(
        select(User.id).where(User.role != ROLE_ADMIN, User.id.not_in(owners))
    )
    user_ids = list(result.scalars().all())
    if user_ids:
        await db.execute(delete(AccessToken).where(AccessToken.user_id.in_(user_ids)))
        await db.execute(delete(User).where(User.id.in_(user_ids)))
    await db.commit()
    logger.info(f"Removed {len(user_ids)} orphaned users")
    return len(user_ids)


async def reset_adverts(db: AsyncSession) -> int:
    return await adverts.reset_all(db)


COMMANDS = {
    "prune-tokens": prune_tokens,
    "clear-orphaned-users": clear_orphaned_users,
    "reset-adverts": reset_adverts,
}


async def run(command: str) -> int:
    async with AsyncSessionLocal() as db:
        count = await COMMANDS[command](db)
    await close_db()
    return count


def main(argv=None):
    parser = argparse.ArgumentParser(description="MPBusinessHub maintenance commands")
    parser.add_argument("command", choices=sorted(COMMANDS))
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    count = asyncio.run(run(args.command))
    print(f"{args.command}: {count} record(s) affected")


if __name__ == "__main__":
    main()
