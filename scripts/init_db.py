"""
Database initialization script

Creates indexes and, when SUPERADMIN_EMAIL / SUPERADMIN_PASSWORD are set,
seeds a verified super admin account. Safe to run repeatedly.

    python scripts/init_db.py
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from aceops.db.indexes import create_indexes
from aceops.db.mongo import close_mongo_connection, connect_to_mongo, get_users_collection
from aceops.services.user_service import new_user_document
from utils.constants import ROLE_ADMIN

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


async def seed_super_admin():
    email = os.getenv("SUPERADMIN_EMAIL")
    password = os.getenv("SUPERADMIN_PASSWORD")
    if not email or not password:
        logger.info("SUPERADMIN_EMAIL / SUPERADMIN_PASSWORD not set, skipping super admin seed")
        return

    users = get_users_collection()
    if await users.find_one({"email": email.lower()}, {"_id": 1}):
        logger.info(f"Super admin {email} already exists")
        return

    doc = new_user_document(
        name=os.getenv("SUPERADMIN_NAME", "Super Admin"),
        email=email,
        password=password,
        role=ROLE_ADMIN,
        is_verified=True,
    )
    doc["isSuperAdmin"] = True
    await users.insert_one(doc)
    logger.info(f"Created super admin {email}")


async def main():
    await connect_to_mongo()
    try:
        await create_indexes()
        await seed_super_admin()
        logger.info("Database initialization complete")
    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    asyncio.run(main())
