"""
Apply report - the per-entry outcome of one reconciliation pass.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from profile_store.models.manifest import EntryKind


class Outcome(str, Enum):
    """Result of applying one manifest entry."""
    CREATED = "created"
    ALREADY_PRESENT = "already-present"
    FAILED = "failed"


class EntryOutcome(BaseModel):
    """Outcome of a single manifest entry."""
    entry_id: str = Field(..., description="e.g. index:user_profiles.idx_userId")
    kind: EntryKind
    status: Outcome
    error_type: Optional[str] = Field(None, description="Exception class name when failed")
    reason: Optional[str] = Field(None, description="Driver message when failed")

    def label(self) -> str:
        """Short ``kind:status`` form."""
        return f"{self.kind.value}:{self.status.value}"


class CollectionStats(BaseModel):
    """Storage figures from collStats, for the human-readable summary only."""
    collection: str
    count: int = 0
    storage_size: int = 0
    total_index_size: int = 0
    index_sizes: dict[str, int] = Field(default_factory=dict)


class ApplyReport(BaseModel):
    """Ordered outcomes of one manifest application."""
    manifest: str
    database: str
    entries: list[EntryOutcome] = Field(default_factory=list)
    stats: list[CollectionStats] = Field(default_factory=list)

    def add(self, outcome: EntryOutcome) -> None:
        self.entries.append(outcome)

    @property
    def created(self) -> list[EntryOutcome]:
        return [e for e in self.entries if e.status == Outcome.CREATED]

    @property
    def failed(self) -> list[EntryOutcome]:
        return [e for e in self.entries if e.status == Outcome.FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def labels(self) -> list[str]:
        return [e.label() for e in self.entries]

    def summary(self) -> str:
        """Human-readable report listing every entry and its outcome."""
        lines = [f"Manifest '{self.manifest}' -> database '{self.database}'", ""]
        for entry in self.entries:
            marker = "✗" if entry.status == Outcome.FAILED else "✓"
            line = f"{marker} {entry.entry_id}: {entry.status.value}"
            if entry.status == Outcome.FAILED:
                line += f" [{entry.error_type}] {entry.reason}"
            lines.append(line)

        if self.stats:
            lines.append("")
            lines.append("Collection sizes (bytes):")
            for stat in self.stats:
                lines.append(
                    f"  {stat.collection}: {stat.count} docs, storage {stat.storage_size}, "
                    f"indexes {stat.total_index_size}"
                )
                for index_name, size in sorted(stat.index_sizes.items()):
                    lines.append(f"    {index_name}: {size}")

        lines.append("")
        lines.append(
            f"{len(self.created)} created, "
            f"{len(self.entries) - len(self.created) - len(self.failed)} already present, "
            f"{len(self.failed)} failed"
        )
        return "\n".join(lines)
