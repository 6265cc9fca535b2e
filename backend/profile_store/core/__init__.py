"""
Core module - Error taxonomy and logging setup.
"""
from profile_store.core.errors import (
    BootstrapError,
    DatabaseConnectionError,
    ManifestError,
    EntryError,
    CreationError,
    IndexConflictError,
    IndexCreationError,
    SeedConflictError,
    UserProvisioningError,
)
from profile_store.core.logging import setup_logging

__all__ = [
    "BootstrapError",
    "DatabaseConnectionError",
    "ManifestError",
    "EntryError",
    "CreationError",
    "IndexConflictError",
    "IndexCreationError",
    "SeedConflictError",
    "UserProvisioningError",
    "setup_logging",
]
