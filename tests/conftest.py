"""
Global test fixtures for the profile store bootstrap.

This module provides shared fixtures for all tests including:
- Mock MongoDB (mongomock-motor)
- Validator recording for mongomock, which rejects createCollection options
- Settings isolated from the environment
- A small user_profiles manifest
"""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def settings():
    """Settings that ignore .env and skip collStats."""
    from profile_store.config import Settings

    return Settings(
        _env_file=None,
        mongo_uri="mongodb://test:27017",
        app_user_password="s3cret-pass",
        collect_stats=False,
    )


# =============================================================================
# MongoDB Fixtures (mongomock)
# =============================================================================

VALIDATION_OPTIONS = ("validator", "validationLevel", "validationAction")


@pytest.fixture
def recorded_validators(monkeypatch):
    """
    Let mongomock accept createCollection validator options.

    mongomock does not support collection options; the options are stripped
    before reaching it and recorded here, keyed by collection name.
    """
    try:
        import mongomock.database
    except ImportError:
        pytest.skip("mongomock not installed")

    recorded: dict[str, dict] = {}
    original = mongomock.database.Database.create_collection

    def create_collection(self, name, **kwargs):
        options = {key: kwargs.pop(key) for key in list(kwargs) if key in VALIDATION_OPTIONS}
        result = original(self, name, **kwargs)
        recorded[name] = options
        return result

    monkeypatch.setattr(mongomock.database.Database, "create_collection", create_collection)
    return recorded


@pytest_asyncio.fixture
async def mock_async_mongo_client(recorded_validators):
    """
    Create an async mock MongoDB client using mongomock-motor.
    """
    try:
        from mongomock_motor import AsyncMongoMockClient
        client = AsyncMongoMockClient()
        yield client
        client.close()
    except ImportError:
        pytest.skip("mongomock-motor not installed")


@pytest_asyncio.fixture
async def mock_userprofile_db(mock_async_mongo_client):
    """Provide an empty mock userprofile database."""
    yield mock_async_mongo_client["userprofile"]


# =============================================================================
# Manifest Fixtures
# =============================================================================

@pytest.fixture
def profiles_manifest():
    """
    user_profiles with required userId/username, a unique idx_userId and the
    admin seed.
    """
    from profile_store.models.manifest import parse_manifest

    return parse_manifest({
        "name": "profiles",
        "database": "userprofile",
        "entries": [
            {
                "kind": "collection",
                "name": "user_profiles",
                "validator": {
                    "required": ["userId", "username"],
                    "properties": {
                        "userId": {"bson_type": "long"},
                        "username": {"bson_type": "string"},
                    },
                },
            },
            {
                "kind": "index",
                "collection": "user_profiles",
                "name": "idx_userId",
                "keys": [["userId", 1]],
                "unique": True,
            },
            {
                "kind": "seed",
                "collection": "user_profiles",
                "key": ["userId"],
                "document": {"userId": 1, "username": "admin"},
            },
        ],
    })
