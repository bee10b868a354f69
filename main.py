"""
One-shot bootstrap for the bookstore.
Connects to MongoDB, creates indexes, prepares the upload directories,
and logs a short summary of the catalog.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from pymongo.errors import PyMongoError

from catalog.database import MongoDBManager
from catalog.exceptions import StorageError
from catalog.uploads import FileIntake
from utilities.config import config
from utilities.logger import setup_logging, get_logger


async def main():
    """Prepare storage for the API."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    logger = get_logger(__name__)
    logger.info("Bootstrapping bookstore storage")

    db_manager = MongoDBManager(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database
    )

    try:
        # connect() also creates the indexes
        await db_manager.connect()

        intake = FileIntake(
            upload_root=config.get_upload_root(),
            max_image_bytes=config.max_image_bytes,
            max_document_bytes=config.max_book_bytes
        )
        intake.ensure_directories()
        logger.info("Upload directories ready", upload_root=str(config.get_upload_root()))

        health = await db_manager.health_check()
        categories = await db_manager.book_store().list_categories()
        logger.info(
            "Catalog summary",
            users=health.get("users_count"),
            books=health.get("books_count"),
            categories=len(categories)
        )

    except (PyMongoError, StorageError, OSError) as e:
        logger.error("Bootstrap failed", error=str(e))
        sys.exit(1)

    finally:
        await db_manager.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
