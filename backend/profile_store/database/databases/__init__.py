"""
Database definitions and their manifests.
"""
from profile_store.database.databases import userprofile_db

__all__ = ["userprofile_db"]
