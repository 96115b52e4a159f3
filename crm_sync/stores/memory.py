"""In-memory record stores.

Reference implementations of the store capabilities. Every write stamps the
record with the store's clock, which tests replace with a deterministic one.
"""

import itertools
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog

from crm_sync.exceptions import StoreWriteError
from crm_sync.models.record import LocalRecord, RemoteRecord
from crm_sync.stores.base import LocalStore, RemoteStore

log = structlog.stdlib.get_logger()

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _in_window(value: datetime, since: datetime, before: datetime | None) -> bool:
    return value >= since and (before is None or value <= before)


class InMemoryRemoteStore(RemoteStore):
    """Dictionary-backed stand-in for the CRM object store."""

    def __init__(self, clock: Clock = utc_now, id_prefix: str = "a00"):
        self._clock = clock
        self._records: dict[str, dict[str, RemoteRecord]] = {}
        self._ids = itertools.count(1)
        self._id_prefix = id_prefix
        self._lock = threading.Lock()

    def query(
        self,
        record_type: str,
        modified_since: datetime,
        modified_before: datetime | None = None,
    ) -> list[RemoteRecord]:
        with self._lock:
            records = self._records.get(record_type, {}).values()
            return [
                record.model_copy(deep=True)
                for record in records
                if _in_window(record.last_modified_at, modified_since, modified_before)
            ]

    def find(self, record_type: str, record_id: str) -> RemoteRecord | None:
        with self._lock:
            record = self._records.get(record_type, {}).get(record_id)
            return record.model_copy(deep=True) if record else None

    def create(self, record_type: str, attributes: dict[str, Any]) -> str:
        with self._lock:
            record_id = f"{self._id_prefix}{next(self._ids):015d}"
            self._records.setdefault(record_type, {})[record_id] = RemoteRecord(
                id=record_id,
                record_type=record_type,
                last_modified_at=self._clock(),
                fields=dict(attributes),
            )

        log.debug("remote_record_created", record_type=record_type, record_id=record_id)
        return record_id

    def update(self, record_type: str, record_id: str, attributes: dict[str, Any]) -> None:
        with self._lock:
            record = self._records.get(record_type, {}).get(record_id)
            if record is None:
                raise StoreWriteError(
                    f"No {record_type} record with id {record_id}", record_type=record_type
                )
            record.fields.update(attributes)
            record.last_modified_at = self._clock()

        log.debug("remote_record_updated", record_type=record_type, record_id=record_id)


class InMemoryLocalStore(LocalStore):
    """Dictionary-backed stand-in for the local relational store."""

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self._records: dict[str, dict[str, LocalRecord]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def query(
        self,
        record_type: str,
        modified_since: datetime,
        modified_before: datetime | None = None,
    ) -> list[LocalRecord]:
        with self._lock:
            records = self._records.get(record_type, {}).values()
            return [
                record.model_copy(deep=True)
                for record in records
                if _in_window(record.last_modified_at, modified_since, modified_before)
            ]

    def find(self, record_type: str, record_id: str) -> LocalRecord | None:
        with self._lock:
            record = self._records.get(record_type, {}).get(record_id)
            return record.model_copy(deep=True) if record else None

    def find_by_external_id(self, record_type: str, external_id: str) -> LocalRecord | None:
        with self._lock:
            for record in self._records.get(record_type, {}).values():
                if record.external_id == external_id:
                    return record.model_copy(deep=True)
        return None

    def create(
        self,
        record_type: str,
        attributes: dict[str, Any],
        external_id: str | None = None,
    ) -> str:
        with self._lock:
            if external_id is not None and self._linked(record_type, external_id):
                raise StoreWriteError(
                    f"A {record_type} record is already linked to {external_id}",
                    record_type=record_type,
                )
            record_id = str(next(self._ids))
            self._records.setdefault(record_type, {})[record_id] = LocalRecord(
                id=record_id,
                record_type=record_type,
                external_id=external_id,
                last_modified_at=self._clock(),
                attributes=dict(attributes),
            )

        log.debug("local_record_created", record_type=record_type, record_id=record_id)
        return record_id

    def update(self, record_type: str, record_id: str, attributes: dict[str, Any]) -> None:
        with self._lock:
            record = self._get(record_type, record_id)
            record.attributes.update(attributes)
            record.last_modified_at = self._clock()

        log.debug("local_record_updated", record_type=record_type, record_id=record_id)

    def mark_synchronized(
        self,
        record_type: str,
        record_id: str,
        synchronized_at: datetime,
        external_id: str | None = None,
    ) -> None:
        with self._lock:
            record = self._get(record_type, record_id)
            record.synchronized_at = synchronized_at
            if external_id is not None:
                record.external_id = external_id

    def _get(self, record_type: str, record_id: str) -> LocalRecord:
        record = self._records.get(record_type, {}).get(record_id)
        if record is None:
            raise StoreWriteError(
                f"No {record_type} record with id {record_id}", record_type=record_type
            )
        return record

    def _linked(self, record_type: str, external_id: str) -> bool:
        return any(
            record.external_id == external_id
            for record in self._records.get(record_type, {}).values()
        )


def build_stores(**options: Any) -> tuple[InMemoryRemoteStore, InMemoryLocalStore]:
    """Default store factory: empty in-memory stores sharing the system clock."""
    log.info("building_in_memory_stores", options=sorted(options))
    return InMemoryRemoteStore(), InMemoryLocalStore()
