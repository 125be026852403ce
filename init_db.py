"""
Database initialization script.
Creates every table the models declare.
Run this as: python init_db.py [--drop]
"""

import argparse
import logging
import sys

from instaplus.core.config import settings
from instaplus.db.init_db import create_all_tables, drop_all_tables

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("db-init")

def main():
    parser = argparse.ArgumentParser(description="Create the Instaplus database tables")
    parser.add_argument("--drop", action="store_true", help="Drop all tables first")
    args = parser.parse_args()

    logger.info(f"Initializing database at: {settings.DATABASE_URL}")
    if args.drop:
        logger.warning("Dropping all tables")
        drop_all_tables()

    if not create_all_tables():
        logger.error("Database initialization failed")
        sys.exit(1)
    logger.info("Database initialization completed successfully")

if __name__ == "__main__":
    main()
