"""
Manifest applier - reconciles a live database against a manifest.

Each ensure_* call performs at most one creation and never alters or drops
existing state. apply() runs users, collections, indexes and seeds in that
order (each group in manifest order), records one outcome per entry and keeps
going after per-entry failures, except that indexes and seeds on a collection
that failed to be created are not attempted. Losing the connection is the only
thing that aborts a run.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import (
    CollectionInvalid,
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    PyMongoError,
)

from profile_store.config import Settings, get_settings
from profile_store.core.errors import (
    CreationError,
    DatabaseConnectionError,
    EntryError,
    IndexConflictError,
    IndexCreationError,
    SeedConflictError,
    UserProvisioningError,
)
from profile_store.models.manifest import (
    AppUserSpec,
    CollectionSpec,
    EntryKind,
    IndexSpec,
    Manifest,
    SeedRecord,
)
from profile_store.models.report import ApplyReport, CollectionStats, EntryOutcome, Outcome

logger = logging.getLogger(__name__)

# Server codes for duplicate key violations
DUPLICATE_KEY_CODES = {11000, 11001, 12582}


def is_duplicate_key(exc: BaseException) -> bool:
    """True when a driver error reports a unique constraint violation."""
    if isinstance(exc, DuplicateKeyError):
        return True
    return getattr(exc, "code", None) in DUPLICATE_KEY_CODES


class ManifestApplier:
    """Applies manifests to one database handle."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        settings: Optional[Settings] = None,
        admin_db: Optional[AsyncIOMotorDatabase] = None,
        collect_stats: Optional[bool] = None,
    ):
        """
        Initialize with the target database.

        Args:
            db: Database the manifest is reconciled against
            settings: Settings (defaults to the cached environment settings)
            admin_db: Database users are created in (defaults to ``admin`` on
                the same client)
            collect_stats: Gather collStats for the report summary
        """
        self.db = db
        self.settings = settings or get_settings()
        self._admin_db = admin_db
        self.collect_stats = (
            self.settings.collect_stats if collect_stats is None else collect_stats
        )

    @property
    def admin_db(self) -> AsyncIOMotorDatabase:
        if self._admin_db is None:
            self._admin_db = self.db.client["admin"]
        return self._admin_db

    # ==================== Collections ====================

    async def ensure_collection(self, spec: CollectionSpec) -> Outcome:
        """
        Create the collection with its validator unless it already exists.

        An existing collection is left untouched, validator included.

        Raises:
            CreationError: If the database rejects the definition
        """
        try:
            existing = await self.db.list_collection_names()
            if spec.name in existing:
                return Outcome.ALREADY_PRESENT
            await self.db.create_collection(spec.name, **spec.create_options())
        except CollectionInvalid:
            # Created by a concurrent run between the listing and the create
            return Outcome.ALREADY_PRESENT
        except ConnectionFailure as e:
            raise DatabaseConnectionError(f"Lost connection creating '{spec.name}': {e}") from e
        except PyMongoError as e:
            raise CreationError(spec.entry_id, str(e)) from e
        return Outcome.CREATED

    # ==================== Indexes ====================

    async def ensure_index(self, spec: IndexSpec) -> Outcome:
        """
        Create the index unless one with the same name exists.

        Raises:
            IndexConflictError: If a unique index collides with existing data
            IndexCreationError: For any other rejection
        """
        collection = self.db[spec.collection]
        try:
            existing = await collection.index_information()
            if spec.name in existing:
                existing_keys = list(existing[spec.name].get("key", []))
                if existing_keys != spec.key_list():
                    logger.warning(
                        f"Index '{spec.name}' on '{spec.collection}' exists with keys "
                        f"{existing_keys}, manifest declares {spec.key_list()}; left unchanged"
                    )
                return Outcome.ALREADY_PRESENT

            await collection.create_index(
                spec.key_list(),
                name=spec.name,
                unique=spec.unique,
                background=spec.background,
            )
        except ConnectionFailure as e:
            raise DatabaseConnectionError(
                f"Lost connection creating index '{spec.name}': {e}"
            ) from e
        except PyMongoError as e:
            if spec.unique and is_duplicate_key(e):
                raise IndexConflictError(spec.entry_id, spec.collection, spec.name, str(e)) from e
            raise IndexCreationError(spec.entry_id, str(e)) from e
        return Outcome.CREATED

    # ==================== Seeds ====================

    async def ensure_seed(self, spec: SeedRecord) -> Outcome:
        """
        Insert the seed document if its natural key is absent.

        Never updates an existing document, so operator edits made after the
        first bootstrap survive every later run.

        Raises:
            SeedConflictError: If the lookup or the insert fails
        """
        collection = self.db[spec.collection]
        try:
            found = await collection.find_one(spec.natural_key(), projection={"_id": 1})
        except ConnectionFailure as e:
            raise DatabaseConnectionError(f"Lost connection looking up seed: {e}") from e
        except PyMongoError as e:
            raise SeedConflictError(spec.entry_id, f"natural key lookup failed: {e}") from e

        if found is not None:
            return Outcome.ALREADY_PRESENT

        try:
            await collection.insert_one(spec.materialize(datetime.now(timezone.utc)))
        except ConnectionFailure as e:
            raise DatabaseConnectionError(f"Lost connection inserting seed: {e}") from e
        except PyMongoError as e:
            raise SeedConflictError(spec.entry_id, f"insert rejected: {e}") from e
        return Outcome.CREATED

    # ==================== Users ====================

    async def ensure_user(self, spec: AppUserSpec) -> Outcome:
        """
        Create the application user unless it exists.

        Existing users keep their password and roles.

        Raises:
            UserProvisioningError: If no password is configured or the server
                rejects the lookup or creation
        """
        try:
            info = await self.admin_db.command({"usersInfo": spec.username})
            if info.get("users"):
                return Outcome.ALREADY_PRESENT

            password = self.settings.app_user_password
            if password is None:
                raise UserProvisioningError(
                    spec.entry_id,
                    "user does not exist and APP_USER_PASSWORD is not set",
                )

            await self.admin_db.command(
                {
                    "createUser": spec.username,
                    "pwd": password.get_secret_value(),
                    "roles": [role.model_dump() for role in spec.roles],
                }
            )
        except ConnectionFailure as e:
            raise DatabaseConnectionError(f"Lost connection provisioning user: {e}") from e
        except OperationFailure as e:
            raise UserProvisioningError(spec.entry_id, str(e)) from e
        return Outcome.CREATED

    # ==================== Manifest ====================

    async def apply(self, manifest: Manifest) -> ApplyReport:
        """
        Apply every manifest entry and report the outcomes.

        Raises:
            DatabaseConnectionError: If the connection is lost mid-run
        """
        report = ApplyReport(manifest=manifest.name, database=self.db.name)
        logger.info(f"Applying manifest '{manifest.name}' to database '{self.db.name}'")

        for spec in manifest.users:
            await self._run(report, EntryKind.USER, spec.entry_id, self.ensure_user(spec))

        # Indexes and seeds would create these implicitly, without their validator
        failed_collections: set[str] = set()
        for spec in manifest.collections:
            status = await self._run(
                report, EntryKind.COLLECTION, spec.entry_id, self.ensure_collection(spec)
            )
            if status == Outcome.FAILED:
                failed_collections.add(spec.name)

        for spec in manifest.indexes:
            operation = (
                self._blocked_by_collection(spec.entry_id, spec.collection)
                if spec.collection in failed_collections
                else self.ensure_index(spec)
            )
            await self._run(report, EntryKind.INDEX, spec.entry_id, operation)
        for spec in manifest.seeds:
            operation = (
                self._blocked_by_collection(spec.entry_id, spec.collection)
                if spec.collection in failed_collections
                else self.ensure_seed(spec)
            )
            await self._run(report, EntryKind.SEED, spec.entry_id, operation)

        if self.collect_stats:
            report.stats = await self.collection_stats(_touched_collections(manifest))

        logger.info(
            f"Manifest '{manifest.name}' applied: {len(report.created)} created, "
            f"{len(report.failed)} failed"
        )
        return report

    async def _blocked_by_collection(self, entry_id: str, collection: str) -> Outcome:
        raise CreationError(
            entry_id,
            f"collection '{collection}' failed to be created in this run; "
            f"skipped so it is not created without its validator",
        )

    async def _run(
        self,
        report: ApplyReport,
        kind: EntryKind,
        entry_id: str,
        operation: Awaitable[Outcome],
    ) -> Outcome:
        try:
            status = await operation
        except EntryError as e:
            logger.error(f"✗ {entry_id}: {e.message}")
            report.add(
                EntryOutcome(
                    entry_id=entry_id,
                    kind=kind,
                    status=Outcome.FAILED,
                    error_type=type(e).__name__,
                    reason=e.message,
                )
            )
            return Outcome.FAILED

        logger.info(f"✓ {entry_id}: {status.value}")
        report.add(EntryOutcome(entry_id=entry_id, kind=kind, status=status))
        return status

    # ==================== Statistics ====================

    async def collection_stats(self, names: list[str]) -> list[CollectionStats]:
        """Storage and index sizes per collection; unavailable stats are skipped."""
        stats = []
        for name in names:
            try:
                raw: dict[str, Any] = await self.db.command("collStats", name)
            except ConnectionFailure as e:
                raise DatabaseConnectionError(f"Lost connection reading stats: {e}") from e
            except (OperationFailure, NotImplementedError) as e:
                logger.warning(f"No stats for '{name}': {e}")
                continue
            stats.append(
                CollectionStats(
                    collection=name,
                    count=int(raw.get("count", 0)),
                    storage_size=int(raw.get("storageSize", 0)),
                    total_index_size=int(raw.get("totalIndexSize", 0)),
                    index_sizes={k: int(v) for k, v in raw.get("indexSizes", {}).items()},
                )
            )
        return stats


def _touched_collections(manifest: Manifest) -> list[str]:
    names: list[str] = []
    for entry in manifest.entries:
        if isinstance(entry, AppUserSpec):
            continue
        name = entry.name if isinstance(entry, CollectionSpec) else entry.collection
        if name not in names:
            names.append(name)
    return names


async def apply_manifest(
    db: AsyncIOMotorDatabase,
    manifest: Manifest,
    settings: Optional[Settings] = None,
    collect_stats: Optional[bool] = None,
) -> ApplyReport:
    """Apply a manifest with a fresh applier."""
    applier = ManifestApplier(db, settings=settings, collect_stats=collect_stats)
    return await applier.apply(manifest)
