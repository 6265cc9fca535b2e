"""
Pydantic models for manifests and apply reports.
"""
from profile_store.models.manifest import (
    EntryKind,
    FieldRule,
    ValidatorSpec,
    CollectionSpec,
    IndexSpec,
    SeedRecord,
    RoleGrant,
    AppUserSpec,
    Manifest,
    parse_manifest,
)
from profile_store.models.report import (
    Outcome,
    EntryOutcome,
    CollectionStats,
    ApplyReport,
)

__all__ = [
    "EntryKind",
    "FieldRule",
    "ValidatorSpec",
    "CollectionSpec",
    "IndexSpec",
    "SeedRecord",
    "RoleGrant",
    "AppUserSpec",
    "Manifest",
    "parse_manifest",
    "Outcome",
    "EntryOutcome",
    "CollectionStats",
    "ApplyReport",
]
