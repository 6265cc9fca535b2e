"""
Database module - MongoDB connection and the built-in manifests.
"""
from profile_store.database.connections import (
    create_mongo_client,
    connect,
    close_client,
)
from profile_store.database.registry import (
    get_manifest,
    list_manifests,
    load_manifest,
    load_manifest_file,
)

__all__ = [
    "create_mongo_client",
    "connect",
    "close_client",
    "get_manifest",
    "list_manifests",
    "load_manifest",
    "load_manifest_file",
]
