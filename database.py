"""
Database Helper Functions

Async MongoDB access for the blog API.
- One motor client per process, opened in the app lifespan and closed on shutdown
- Handlers receive the posts collection through the `get_store` dependency
"""

import logging

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

# Fixed connection target (not configurable in this version)
DATABASE_URL = "mongodb://localhost:27017"
DATABASE_NAME = "blog_demo"
COLLECTION_NAME = "posts"


async def connect() -> AsyncIOMotorClient:
    """Open the client and make sure the server answers before serving requests"""
    client = AsyncIOMotorClient(DATABASE_URL, serverSelectionTimeoutMS=2000, tz_aware=True)
    try:
        await client.admin.command("ping")
    except PyMongoError:
        logger.error("MongoDB not reachable at %s", DATABASE_URL)
        client.close()
        raise
    logger.info("Connected to MongoDB at %s/%s", DATABASE_URL, DATABASE_NAME)
    return client


def disconnect(client: AsyncIOMotorClient) -> None:
    client.close()
    logger.info("MongoDB connection closed")


def posts_collection(client) -> AsyncIOMotorCollection:
    return client[DATABASE_NAME][COLLECTION_NAME]


def get_store(request: Request) -> AsyncIOMotorCollection:
    """FastAPI dependency returning the shared posts collection"""
    return request.app.state.posts
