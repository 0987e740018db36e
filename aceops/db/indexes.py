"""
aceops/db/indexes.py

Purpose: Database index management

- Creates unique and performance indexes
- Ensures fast lookups and data integrity
- Idempotent, runs on every startup
"""

from pymongo import ASCENDING, DESCENDING

from aceops.db.mongo import (
    get_users_collection,
    get_companies_collection,
    get_vendors_collection,
    get_potential_clients_collection,
    get_events_collection,
    get_files_collection,
    get_invoices_collection,
    get_einvoices_collection,
    get_counters_collection,
    get_tasks_collection,
    get_locations_collection,
)
from aceops.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes for optimal performance.
    This function is idempotent - safe to run multiple times.
    """
    try:
        logger.info("Creating database indexes...")

        users = get_users_collection()
        await users.create_index("email", unique=True, name="email_unique")
        await users.create_index("role", name="role_idx")
        logger.debug("Created indexes on users")

        companies = get_companies_collection()
        await companies.create_index("companyName", unique=True, name="company_name_unique")
        await companies.create_index([("deleted", ASCENDING), ("createdAt", DESCENDING)], name="company_listing_idx")
        logger.debug("Created indexes on companies")

        vendors = get_vendors_collection()
        await vendors.create_index([("deleted", ASCENDING), ("createdAt", DESCENDING)], name="vendor_listing_idx")
        logger.debug("Created indexes on vendors")

        leads = get_potential_clients_collection()
        await leads.create_index("companyName", unique=True, name="lead_name_unique")
        await leads.create_index("contacts.assignedTo", name="lead_assignee_idx")
        logger.debug("Created indexes on potential_clients")

        events = get_events_collection()
        await events.create_index("createdBy", name="event_creator_idx")
        await events.create_index("schedules.assignedTo", name="event_assignee_idx")
        logger.debug("Created indexes on events")

        files = get_files_collection()
        await files.create_index("accessibleRoles", name="file_roles_idx")
        await files.create_index([("createdAt", DESCENDING)], name="file_created_idx")
        logger.debug("Created indexes on files")

        invoices = get_invoices_collection()
        await invoices.create_index("invoiceDetails.invoiceNumber", unique=True, name="invoice_number_unique")
        await invoices.create_index([("createdAt", DESCENDING)], name="invoice_created_idx")
        logger.debug("Created indexes on invoices")

        einvoices = get_einvoices_collection()
        await einvoices.create_index([("invoiceId", ASCENDING), ("cancelled", ASCENDING)], name="einvoice_active_idx")
        logger.debug("Created indexes on einvoices")

        counters = get_counters_collection()
        await counters.create_index("key", unique=True, name="counter_key_unique")

        tasks = get_tasks_collection()
        await tasks.create_index("taskRef", unique=True, name="task_ref_unique")
        await tasks.create_index([("createdBy", ASCENDING), ("ticketName", ASCENDING)], name="task_series_idx")
        logger.debug("Created indexes on tasks")

        locations = get_locations_collection()
        await locations.create_index([("user", ASCENDING), ("timestamp", DESCENDING)], name="location_user_time_idx")
        logger.debug("Created indexes on android_locations")

        logger.info("All database indexes created successfully")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    import asyncio
    from aceops.db.mongo import connect_to_mongo, close_mongo_connection

    async def main():
        await connect_to_mongo()
        await create_indexes()
        await close_mongo_connection()

    asyncio.run(main())
