"""
Service layer for manifest reconciliation.
"""
from profile_store.services.applier import ManifestApplier, apply_manifest

__all__ = [
    "ManifestApplier",
    "apply_manifest",
]
