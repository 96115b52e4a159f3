"""Change collection for one mapping."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from crm_sync.models.record import LocalRecord, RemoteRecord, StoreKind
from crm_sync.stores.base import LocalStore, RemoteStore
from crm_sync.sync.mapping import Mapping
from crm_sync.sync.models import AttributeSnapshot, ChangeSet, RecordRef
from crm_sync.sync.runner import Runner

log = structlog.stdlib.get_logger()


@dataclass
class _Pair:
    remote: RemoteRecord | None = None
    local: LocalRecord | None = None


class Collector:
    """Collects genuine external changes from both stores for one mapping."""

    def __init__(
        self,
        mapping: Mapping,
        remote_store: RemoteStore,
        local_store: LocalStore,
        runner: Runner | None = None,
    ):
        """
        Initialize collector.

        Args:
            mapping: Mapping whose record types are collected
            remote_store: CRM-hosted object store
            local_store: Local relational store
            runner: Self-echo predicate (defaults to Runner())
        """
        self.mapping = mapping
        self._remote_store = remote_store
        self._local_store = local_store
        self._runner = runner or Runner()

    def run(self, since: datetime, until: datetime | None = None) -> ChangeSet:
        """
        Collect changes made on either side within a window.

        Store query errors propagate to the caller, as does
        UnmappedAttributeError when a strict mapping projects a name it does
        not map.

        Args:
            since: Inclusive lower bound (the mapping's checkpoint)
            until: Optional inclusive upper bound

        Returns:
            ChangeSet with one snapshot per genuinely changed side
        """
        log.info(
            "collecting_changes",
            mapping=self.mapping.id,
            since=since,
            until=until,
        )

        remote_records = self._remote_store.query(self.mapping.remote_type, since, until)
        local_records = self._local_store.query(self.mapping.local_type, since, until)

        pairs = self._pair(remote_records, local_records)
        changes = ChangeSet(mapping_id=self.mapping.id)

        for ref, pair in pairs.items():
            marker = self._marker_for(ref, pair)

            if pair.remote is not None and self._runner.changed(pair.remote, marker):
                changes.add(ref, self._remote_snapshot(pair.remote))

            if pair.local is not None and self._runner.changed(pair.local, marker):
                changes.add(ref, self._local_snapshot(pair.local))

        log.info(
            "changes_collected",
            mapping=self.mapping.id,
            remote_records=len(remote_records),
            local_records=len(local_records),
            entities=len(pairs),
            total_changes=changes.total_changes,
        )

        return changes

    def _pair(
        self, remote_records: list[RemoteRecord], local_records: list[LocalRecord]
    ) -> dict[RecordRef, _Pair]:
        pairs: dict[RecordRef, _Pair] = {}

        for record in remote_records:
            ref = RecordRef(external_id=record.id, store_kind=StoreKind.REMOTE)
            pairs.setdefault(ref, _Pair()).remote = record

        for record in local_records:
            if record.external_id:
                ref = RecordRef(external_id=record.external_id, store_kind=StoreKind.REMOTE)
            else:
                ref = RecordRef(external_id=record.id, store_kind=StoreKind.LOCAL)
            pairs.setdefault(ref, _Pair()).local = record

        return pairs

    def _marker_for(self, ref: RecordRef, pair: _Pair) -> datetime | None:
        """Get the synchronization marker stored on the local side of a pair."""
        local = pair.local
        if local is None and ref.store_kind is StoreKind.REMOTE:
            local = self._local_store.find_by_external_id(
                self.mapping.local_type, ref.external_id
            )
        return local.synchronized_at if local is not None else None

    def _remote_snapshot(self, record: RemoteRecord) -> AttributeSnapshot:
        values = self.mapping.attributes(StoreKind.REMOTE, lambda field: record[field])
        return self._snapshot(record.last_modified_at, StoreKind.REMOTE, record.id, values)

    def _local_snapshot(self, record: LocalRecord) -> AttributeSnapshot:
        values = self.mapping.attributes(StoreKind.LOCAL, lambda name: record[name])
        return self._snapshot(record.last_modified_at, StoreKind.LOCAL, record.id, values)

    def _snapshot(
        self, timestamp: datetime, kind: StoreKind, record_id: str, values: dict[str, Any]
    ) -> AttributeSnapshot:
        """Both sides are snapshotted under remote field names so they compare directly."""
        return AttributeSnapshot(
            timestamp=timestamp,
            store_kind=kind,
            record_id=record_id,
            attributes=self.mapping.convert(StoreKind.REMOTE, values),
        )
