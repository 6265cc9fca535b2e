"""
Manifest models - the declarative description of a database's desired state.

A manifest is an ordered list of entries tagged by ``kind``:

- ``collection``: a collection, optionally with a ``$jsonSchema`` validator
- ``index``: a named index on a collection
- ``seed``: a bootstrap document inserted once, keyed by its natural key
- ``user``: an application database user (password comes from settings)

Manifests are loaded once per run and never mutated.
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from profile_store.core.errors import ManifestError

# Placeholder inside seed documents, replaced by the insert time
NOW_MARKER = "$now"

ASCENDING = 1
DESCENDING = -1

_DIRECTION_ALIASES = {
    "asc": ASCENDING,
    "ascending": ASCENDING,
    "desc": DESCENDING,
    "descending": DESCENDING,
}


class EntryKind(str, Enum):
    """Kinds of manifest entries."""
    COLLECTION = "collection"
    INDEX = "index"
    SEED = "seed"
    USER = "user"


class ValidationLevel(str, Enum):
    OFF = "off"
    STRICT = "strict"
    MODERATE = "moderate"


class ValidationAction(str, Enum):
    ERROR = "error"
    WARN = "warn"


class FieldRule(BaseModel):
    """Constraints on a single document field."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    bson_type: Optional[Union[str, list[str]]] = Field(None, description="BSON type alias(es)")
    enum: Optional[list[Any]] = Field(None, description="Allowed values")
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    description: Optional[str] = None

    @model_validator(mode="after")
    def _check_range(self) -> "FieldRule":
        if self.minimum is not None and self.maximum is not None and self.minimum > self.maximum:
            raise ValueError(f"minimum {self.minimum} exceeds maximum {self.maximum}")
        return self

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {}
        if self.bson_type is not None:
            schema["bsonType"] = self.bson_type
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.maximum is not None:
            schema["maximum"] = self.maximum
        if self.description is not None:
            schema["description"] = self.description
        return schema


class ValidatorSpec(BaseModel):
    """
    Structured schema predicate compiled to a MongoDB ``$jsonSchema``.

    Covers what the bootstrap needs: required fields, field types,
    enumerations and numeric ranges.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    required: list[str] = Field(default_factory=list)
    properties: dict[str, FieldRule] = Field(default_factory=dict)

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"bsonType": "object"}
        if self.required:
            schema["required"] = list(self.required)
        if self.properties:
            schema["properties"] = {
                name: rule.to_json_schema() for name, rule in self.properties.items()
            }
        return schema


class CollectionSpec(BaseModel):
    """A collection and its optional validator."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["collection"] = "collection"
    name: str = Field(..., min_length=1)
    validator: Optional[ValidatorSpec] = None
    json_schema: Optional[dict[str, Any]] = Field(
        None,
        description="Raw $jsonSchema body, alternative to validator",
    )
    validation_level: Optional[ValidationLevel] = None
    validation_action: Optional[ValidationAction] = None

    @model_validator(mode="after")
    def _one_validator_form(self) -> "CollectionSpec":
        if self.validator is not None and self.json_schema is not None:
            raise ValueError(f"collection '{self.name}' declares both validator and json_schema")
        return self

    @property
    def entry_id(self) -> str:
        return f"collection:{self.name}"

    def validator_document(self) -> Optional[dict[str, Any]]:
        """The ``validator`` option passed to createCollection, if any."""
        if self.validator is not None:
            return {"$jsonSchema": self.validator.to_json_schema()}
        if self.json_schema is not None:
            return {"$jsonSchema": dict(self.json_schema)}
        return None

    def create_options(self) -> dict[str, Any]:
        """Keyword options for ``Database.create_collection``."""
        options: dict[str, Any] = {}
        validator = self.validator_document()
        if validator is not None:
            options["validator"] = validator
        if self.validation_level is not None:
            options["validationLevel"] = self.validation_level.value
        if self.validation_action is not None:
            options["validationAction"] = self.validation_action.value
        return options


class IndexSpec(BaseModel):
    """A named index; direction values are passed through to the driver as-is."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["index"] = "index"
    collection: str = Field(..., min_length=1)
    keys: tuple[tuple[str, int], ...]
    name: str = Field(..., min_length=1)
    unique: bool = False
    background: bool = True

    @field_validator("keys", mode="before")
    @classmethod
    def _normalize_keys(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            value = list(value.items())
        if not isinstance(value, (list, tuple)):
            return value
        normalized = []
        for pair in value:
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                # Left for type validation to report
                return value
            field, direction = pair
            if isinstance(direction, str):
                try:
                    direction = _DIRECTION_ALIASES[direction.lower()]
                except KeyError:
                    raise ValueError(
                        f"unknown index direction '{direction}' for field '{field}'"
                    ) from None
            normalized.append((field, direction))
        return normalized

    @field_validator("keys")
    @classmethod
    def _check_keys(cls, value: tuple[tuple[str, int], ...]) -> tuple[tuple[str, int], ...]:
        if not value:
            raise ValueError("index key pattern must not be empty")
        fields = [field for field, _ in value]
        if len(set(fields)) != len(fields):
            raise ValueError(f"index key pattern repeats a field: {fields}")
        for field, direction in value:
            if direction not in (ASCENDING, DESCENDING):
                raise ValueError(f"index direction for '{field}' must be 1 or -1, got {direction}")
        return value

    @property
    def entry_id(self) -> str:
        return f"index:{self.collection}.{self.name}"

    def key_list(self) -> list[tuple[str, int]]:
        return list(self.keys)


class SeedRecord(BaseModel):
    """A bootstrap document, inserted only when its natural key is absent."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["seed"] = "seed"
    collection: str = Field(..., min_length=1)
    key: tuple[str, ...] = Field(..., min_length=1, description="Natural key fields")
    document: dict[str, Any]

    @model_validator(mode="after")
    def _key_in_document(self) -> "SeedRecord":
        missing = [field for field in self.key if field not in self.document]
        if missing:
            raise ValueError(f"seed for '{self.collection}' lacks natural key field(s) {missing}")
        return self

    def natural_key(self) -> dict[str, Any]:
        return {field: self.document[field] for field in self.key}

    @property
    def entry_id(self) -> str:
        parts = ",".join(f"{field}={value}" for field, value in self.natural_key().items())
        return f"seed:{self.collection}{{{parts}}}"

    def materialize(self, now: datetime) -> dict[str, Any]:
        """Copy of the document with every ``{"$now": true}`` replaced by ``now``."""
        return _replace_now(self.document, now)


class RoleGrant(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    role: str
    db: str


class AppUserSpec(BaseModel):
    """An application user; the password is supplied by configuration."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["user"] = "user"
    username: str = Field(..., min_length=1)
    roles: tuple[RoleGrant, ...] = ()

    @property
    def entry_id(self) -> str:
        return f"user:{self.username}"


ManifestEntry = Annotated[
    Union[CollectionSpec, IndexSpec, SeedRecord, AppUserSpec],
    Field(discriminator="kind"),
]


class Manifest(BaseModel):
    """
    Ordered desired state for one database.

    Load-time invariants:
    - collection names are unique
    - index names are unique per collection, whatever their key patterns
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    database: str = Field(..., min_length=1)
    description: str = ""
    entries: tuple[ManifestEntry, ...] = ()

    @model_validator(mode="after")
    def _check_unique_names(self) -> "Manifest":
        seen_collections: set[str] = set()
        for spec in self.collections:
            if spec.name in seen_collections:
                raise ValueError(f"collection '{spec.name}' declared more than once")
            seen_collections.add(spec.name)

        seen_indexes: dict[tuple[str, str], IndexSpec] = {}
        for spec in self.indexes:
            slot = (spec.collection, spec.name)
            if slot in seen_indexes:
                first = seen_indexes[slot]
                raise ValueError(
                    f"index name '{spec.name}' declared twice on '{spec.collection}' "
                    f"(keys {first.key_list()} and {spec.key_list()})"
                )
            seen_indexes[slot] = spec

        seen_users: set[str] = set()
        for spec in self.users:
            if spec.username in seen_users:
                raise ValueError(f"user '{spec.username}' declared more than once")
            seen_users.add(spec.username)
        return self

    @property
    def collections(self) -> list[CollectionSpec]:
        return [e for e in self.entries if isinstance(e, CollectionSpec)]

    @property
    def indexes(self) -> list[IndexSpec]:
        return [e for e in self.entries if isinstance(e, IndexSpec)]

    @property
    def seeds(self) -> list[SeedRecord]:
        return [e for e in self.entries if isinstance(e, SeedRecord)]

    @property
    def users(self) -> list[AppUserSpec]:
        return [e for e in self.entries if isinstance(e, AppUserSpec)]

    def for_database(self, database: str) -> "Manifest":
        """
        Same manifest targeting another database.

        User role grants on the old database move with it; grants on other
        databases (``admin`` included) are kept as declared.
        """
        if database == self.database:
            return self
        entries = tuple(
            _retarget_roles(entry, self.database, database)
            if isinstance(entry, AppUserSpec)
            else entry
            for entry in self.entries
        )
        return self.model_copy(update={"database": database, "entries": entries})


def parse_manifest(data: Mapping[str, Any]) -> Manifest:
    """
    Validate raw manifest data.

    Raises:
        ManifestError: If the data is malformed or breaks an invariant
    """
    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        name = data.get("name", "<unnamed>") if isinstance(data, Mapping) else "<unnamed>"
        raise ManifestError(f"invalid manifest '{name}': {e}") from e


def _retarget_roles(user: AppUserSpec, old: str, new: str) -> AppUserSpec:
    roles = tuple(
        grant.model_copy(update={"db": new}) if grant.db == old else grant
        for grant in user.roles
    )
    return user.model_copy(update={"roles": roles})


def _replace_now(value: Any, now: datetime) -> Any:
    if isinstance(value, dict):
        if value == {NOW_MARKER: True}:
            return now
        return {k: _replace_now(v, now) for k, v in value.items()}
    if isinstance(value, list):
        return [_replace_now(v, now) for v in value]
    return value
