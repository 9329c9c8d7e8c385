"""
Database Initialization Script
Creates indexes for the query, search and map paths and enforces unique constraints
Note: Collections are created automatically on first insert, but indexes should be created explicitly
"""
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import OperationFailure, PyMongoError

from logging_setup import get_logger
from search.geo import CELL_PATH, LAT_PATH, LON_PATH
from .schemas import TOKEN_FIELD

log = get_logger("init_db")


def create_indexes(db) -> bool:
    """
    Create indexes on collections for better performance and unique constraints.

    ``searchTokens`` is a multikey index, i.e. the inverted index used by text
    search; ``location.cell`` is the grid index used by bounding-box queries.
    """
    try:
        users = db.users
        users.create_index("email", unique=True)
        users.create_index([("points", DESCENDING), ("name", ASCENDING)])
        log.info("users indexes created")

        issues = db.issues
        issues.create_index(TOKEN_FIELD)
        issues.create_index(CELL_PATH)
        issues.create_index([(LON_PATH, ASCENDING), (LAT_PATH, ASCENDING)])
        issues.create_index("status")
        issues.create_index("category")
        issues.create_index("reportedBy")
        issues.create_index([("createdAt", DESCENDING), ("_id", DESCENDING)])
        log.info("issues indexes created")

        updates = db.civic_updates
        updates.create_index(TOKEN_FIELD)
        updates.create_index("affectedAreas.state")
        updates.create_index([("startDate", DESCENDING), ("_id", DESCENDING)])
        updates.create_index([("createdAt", DESCENDING), ("_id", DESCENDING)])
        log.info("civic updates indexes created")

        log.info("All indexes created successfully")
        return True

    except OperationFailure as e:
        log.warning(f"Some indexes may already exist with other options: {e}")
        return False


def verify_connection(db) -> bool:
    """Verify MongoDB connection"""
    try:
        db.db.command('ping')
    except PyMongoError as e:
        log.error(f"MongoDB connection failed: {e}")
        return False
    log.info(f"Database: {db.name}")
    return True
