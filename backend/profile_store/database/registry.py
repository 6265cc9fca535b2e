"""
Manifest registry.
Resolves built-in manifests by name and loads manifest files from disk.
"""
import logging
from pathlib import Path
from typing import Any, Callable, Optional, Union

from bson import json_util

from profile_store.config import Settings, get_settings
from profile_store.core.errors import ManifestError
from profile_store.database.databases import userprofile_db
from profile_store.models.manifest import Manifest, parse_manifest

logger = logging.getLogger(__name__)

ManifestBuilder = Callable[[Settings], Manifest]

# All database manifests
ALL_DB_MANIFESTS = [
    userprofile_db.DB_MANIFEST,
]


def _builders() -> dict[str, ManifestBuilder]:
    builders: dict[str, ManifestBuilder] = {}
    for db_manifest in ALL_DB_MANIFESTS:
        builders.update(db_manifest["manifests"])
    return builders


def list_manifests() -> list[str]:
    """Names of the built-in manifests."""
    return list(_builders())


def get_manifest(name: str, settings: Optional[Settings] = None) -> Manifest:
    """
    Build a built-in manifest.

    Raises:
        ManifestError: If no manifest has that name
    """
    builders = _builders()
    if name not in builders:
        raise ManifestError(
            f"unknown manifest '{name}' (built-in: {', '.join(builders)})"
        )
    return builders[name](settings or get_settings())


def load_manifest_file(path: Union[str, Path]) -> Manifest:
    """
    Load a manifest from a MongoDB Extended JSON file.

    Raises:
        ManifestError: If the file is unreadable, not JSON, or invalid
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"cannot read manifest {path}: {e}") from e

    try:
        data: Any = json_util.loads(text)
    except ValueError as e:
        raise ManifestError(f"manifest {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"manifest {path} must be a JSON object")

    manifest = parse_manifest(data)
    logger.debug(f"Loaded manifest '{manifest.name}' from {path}")
    return manifest


def load_manifest(name_or_path: str, settings: Optional[Settings] = None) -> Manifest:
    """Resolve a built-in manifest name, falling back to a file path."""
    if name_or_path in _builders():
        return get_manifest(name_or_path, settings)
    path = Path(name_or_path)
    if path.suffix == ".json" or path.exists():
        return load_manifest_file(path)
    return get_manifest(name_or_path, settings)


def dump_manifest(manifest: Manifest) -> str:
    """Render a manifest as indented Extended JSON."""
    document = manifest.model_dump(mode="python", exclude_none=True)
    return json_util.dumps(
        document,
        indent=2,
        json_options=json_util.CANONICAL_JSON_OPTIONS,
    )
