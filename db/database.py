"""
Association Cache - Database Module
Handles MariaDB/MySQL connections for the entity store
"""

import os
import logging
import pymysql
from pymysql.cursors import DictCursor
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def _get_required_env(key: str, default: str = None) -> str:
    """Get environment variable, raising error if required and missing."""
    value = os.getenv(key, default)
    if value is None:
        raise RuntimeError(f"Required environment variable {key} is not set")
    return value


DB_CONFIG = {
    'host': os.getenv('DB_HOST', 'localhost'),
    'port': int(os.getenv('DB_PORT', 3306)),
    'user': os.getenv('DB_USER', 'assoc_cache'),
    'password': _get_required_env('DB_PASSWORD'),  # No default - must be set
    'database': os.getenv('DB_NAME', 'assoc_cache'),
    'charset': 'utf8mb4',
    'cursorclass': DictCursor,
    'autocommit': False
}


def get_connection():
    """
    Create and return a new database connection.
    """
    return pymysql.connect(**DB_CONFIG)


def check_connection() -> bool:
    """
    Check that the database is reachable.
    """
    try:
        conn = get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT VERSION()")
                version = cursor.fetchone()
                logger.info("Connected to MariaDB: %s", version['VERSION()'])
        finally:
            conn.close()
        return True
    except pymysql.Error as e:
        logger.error("Database connection failed: %s", e)
        return False
