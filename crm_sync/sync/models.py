"""Data models for synchronization operations."""

from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from crm_sync.models.record import StoreKind

# Checkpoint returned for mappings that have never completed a cycle.
BEGINNING_OF_TIME = datetime(1970, 1, 1, tzinfo=timezone.utc)


class RecordRef(BaseModel):
    """Identity of a logical record across both stores.

    Linked entities are keyed by their remote id with store_kind=REMOTE. A local
    record that has never been linked to a remote object is keyed by its local
    id with store_kind=LOCAL.
    """

    model_config = ConfigDict(frozen=True)

    external_id: str = Field(default=..., description="Identifier within the owning store")
    store_kind: StoreKind = Field(default=..., description="Store that owns the identifier")

    def __lt__(self, other: "RecordRef") -> bool:
        return (self.store_kind.value, self.external_id) < (
            other.store_kind.value,
            other.external_id,
        )


class AttributeSnapshot(BaseModel):
    """Attribute values of one side of a record at one modification event."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default=..., description="Modification time of the side")
    store_kind: StoreKind = Field(default=..., description="Side the values were read from")
    record_id: str = Field(default=..., description="Record identifier within its own store")
    attributes: dict[str, Any] = Field(
        default_factory=dict, description="Attribute values keyed by remote field name"
    )


class ChangeSet(BaseModel):
    """Genuine external changes collected for one mapping in one cycle."""

    mapping_id: str = Field(default=..., description="Mapping the changes were collected for")
    entries: dict[RecordRef, list[AttributeSnapshot]] = Field(
        default_factory=dict, description="Snapshots per logical record, ordered by timestamp"
    )

    def add(self, ref: RecordRef, snapshot: AttributeSnapshot) -> None:
        """Attach a snapshot to a record, keeping snapshots ordered by timestamp."""
        snapshots = self.entries.setdefault(ref, [])
        snapshots.append(snapshot)
        snapshots.sort(key=lambda s: (s.timestamp, s.store_kind.value))

    def __getitem__(self, ref: RecordRef) -> list[AttributeSnapshot]:
        return list(self.entries.get(ref, []))

    def __contains__(self, ref: object) -> bool:
        return bool(self.entries.get(ref))  # type: ignore[arg-type]

    def items(self) -> Iterator[tuple[RecordRef, list[AttributeSnapshot]]]:
        for ref, snapshots in self.entries.items():
            yield ref, list(snapshots)

    def by_timestamp(self, ref: RecordRef) -> dict[datetime, dict[str, Any]]:
        """Get the attributes of a record's snapshots keyed by timestamp."""
        return {snapshot.timestamp: dict(snapshot.attributes) for snapshot in self[ref]}

    @property
    def has_changes(self) -> bool:
        """Check if there are any changes to process."""
        return any(self.entries.values())

    @property
    def total_changes(self) -> int:
        """Get total number of snapshots collected."""
        return sum(len(snapshots) for snapshots in self.entries.values())


class Checkpoint(BaseModel):
    """Tracks synchronization state for a mapping."""

    mapping_id: str = Field(default=..., description="Mapping identifier")
    last_sync_timestamp: datetime = Field(
        default=..., description="Upper bound of the last successfully synchronized window"
    )
    records_synced: int = Field(default=0, ge=0, description="Records written in that cycle")
    recorded_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Wall-clock time the checkpoint was written",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "mapping_id": "custom_objects:CustomObject__c",
                "last_sync_timestamp": "2024-01-15T14:30:00Z",
                "records_synced": 12,
                "recorded_at": "2024-01-15T14:30:02Z",
            }
        }
    }


class MappingReport(BaseModel):
    """Report of one mapping's part of a synchronization cycle."""

    mapping_id: str = Field(..., description="Mapping that was synced")
    records_collected: int = Field(default=0, ge=0, description="Records with genuine changes")
    records_created: int = Field(default=0, ge=0, description="Counterparts created")
    records_updated: int = Field(default=0, ge=0, description="Counterparts updated")
    records_skipped: int = Field(default=0, ge=0, description="Changes that could not be applied")
    checkpoint: datetime | None = Field(default=None, description="Checkpoint after the cycle")
    duration_seconds: float = Field(default=0.0, ge=0.0, description="Duration in seconds")
    errors: list[str] = Field(
        default_factory=list, description="List of errors encountered during sync"
    )

    @property
    def success(self) -> bool:
        """Check if the mapping synced without errors."""
        return len(self.errors) == 0


class CycleReport(BaseModel):
    """Report of one full synchronization cycle across all mappings."""

    start_time: datetime = Field(..., description="Cycle start timestamp")
    end_time: datetime = Field(..., description="Cycle end timestamp")
    window_end: datetime = Field(..., description="Upper bound used for change queries")
    mappings: list[MappingReport] = Field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    @property
    def total_changes(self) -> int:
        """Get total number of records written across mappings."""
        return sum(m.records_created + m.records_updated for m in self.mappings)

    @property
    def success(self) -> bool:
        """Check if every mapping completed without errors."""
        return all(m.success for m in self.mappings)
