"""
MongoDB Database Connection and Setup
"""
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from config import Settings
from logging_setup import get_logger
from .schemas import COLLECTIONS

log = get_logger("database")


def connect(settings: Settings) -> MongoClient:
    """Open a MongoDB client and check it answers a ping"""
    log.info(f"Connecting to MongoDB at {settings.redacted_uri}")
    client = MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=settings.mongodb_timeout_ms)
    try:
        client.admin.command('ping')
    except (ConnectionFailure, ServerSelectionTimeoutError) as e:
        log.error(f"MongoDB connection failed: {e}")
        client.close()
        raise ConnectionError(f"Database connection failed: {e}") from e
    log.info("MongoDB connection successful")
    return client


class Database:
    """Handle on one MongoDB database and its collections"""

    def __init__(self, client, name: str):
        self.client = client
        self.db = client[name]

    @property
    def name(self) -> str:
        return self.db.name

    def collection(self, collection_name: str):
        return self.db[collection_name]

    @property
    def issues(self):
        return self.collection(COLLECTIONS['Issues'])

    @property
    def civic_updates(self):
        return self.collection(COLLECTIONS['CivicUpdates'])

    @property
    def users(self):
        return self.collection(COLLECTIONS['Users'])
