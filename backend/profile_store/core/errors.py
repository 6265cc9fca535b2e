"""
Bootstrap error taxonomy.

Only DatabaseConnectionError and ManifestError abort a run. Every EntryError
is caught by the applier, recorded against its manifest entry and the run
moves on to the next entry.
"""


class BootstrapError(Exception):
    """Base class for all bootstrap failures."""


class DatabaseConnectionError(BootstrapError):
    """The database cannot be reached or rejected our credentials."""


class ManifestError(BootstrapError):
    """A manifest is malformed or violates a load-time invariant."""


class EntryError(BootstrapError):
    """
    Failure applying a single manifest entry.

    Carries the entry identifier and the underlying driver message, which is
    kept verbatim so operators can act on the specific conflict.
    """

    def __init__(self, entry_id: str, message: str):
        super().__init__(f"{entry_id}: {message}")
        self.entry_id = entry_id
        self.message = message


class CreationError(EntryError):
    """The database rejected a collection definition (e.g. invalid validator)."""


class IndexConflictError(EntryError):
    """A unique index cannot be built because existing documents collide."""

    def __init__(self, entry_id: str, collection: str, index_name: str, message: str):
        super().__init__(
            entry_id,
            f"duplicate values in '{collection}' block unique index '{index_name}'; "
            f"remove the duplicates and re-run ({message})",
        )
        self.collection = collection
        self.index_name = index_name


class IndexCreationError(EntryError):
    """Any other index creation rejection."""


class SeedConflictError(EntryError):
    """The natural-key lookup or the insert of a seed document failed."""


class UserProvisioningError(EntryError):
    """The application user could not be looked up or created."""
