"""
aceops/db/mongo.py

Purpose: MongoDB connection setup

- Initializes Motor client with connection pooling
- Health checks and retry logic
- Named accessors for every collection the API touches
- Proper connection lifecycle management
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import Optional
import asyncio
from aceops.core.config import settings
from aceops.core.logging import get_logger

logger = get_logger(__name__)

# Global MongoDB client
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None

USERS = "users"
COMPANIES = "companies"
VENDORS = "vendors"
POTENTIAL_CLIENTS = "potential_clients"
EVENTS = "events"
FILES = "files"
INVOICES = "invoices"
EINVOICES = "einvoices"
QUOTATIONS = "quotations"
JOB_SHEETS = "job_sheets"
OPPORTUNITIES = "opportunities"
COUNTERS = "counters"
TASKS = "tasks"
ANDROID_LOCATIONS = "android_locations"


async def connect_to_mongo():
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    max_retries = 3
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})")

            _client = AsyncIOMotorClient(
                settings.MONGODB_URL,
                maxPoolSize=50,
                minPoolSize=5,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
            )
            _database = _client[settings.MONGODB_DB_NAME]

            await _client.admin.command("ping")

            logger.info(f"Connected to MongoDB: {settings.MONGODB_DB_NAME}")
            return

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}")
            _client = None
            _database = None

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None


async def check_database_health() -> bool:
    """
    Checks if the database connection is healthy.
    """
    try:
        if _client is None:
            logger.error("MongoDB client not initialized")
            return False

        await _client.admin.command("ping")
        return True

    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the MongoDB database instance.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database


def get_collection(name: str) -> AsyncIOMotorCollection:
    return get_database()[name]


def get_users_collection():
    return get_collection(USERS)


def get_companies_collection():
    return get_collection(COMPANIES)


def get_vendors_collection():
    return get_collection(VENDORS)


def get_potential_clients_collection():
    return get_collection(POTENTIAL_CLIENTS)


def get_events_collection():
    return get_collection(EVENTS)


def get_files_collection():
    return get_collection(FILES)


def get_invoices_collection():
    return get_collection(INVOICES)


def get_einvoices_collection():
    return get_collection(EINVOICES)


def get_quotations_collection():
    return get_collection(QUOTATIONS)


def get_job_sheets_collection():
    return get_collection(JOB_SHEETS)


def get_opportunities_collection():
    return get_collection(OPPORTUNITIES)


def get_counters_collection():
    return get_collection(COUNTERS)


def get_tasks_collection():
    return get_collection(TASKS)


def get_locations_collection():
    return get_collection(ANDROID_LOCATIONS)
