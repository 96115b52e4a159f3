"""
Store capabilities consumed by the synchronization engine.

Implementations:
- InMemoryRemoteStore / InMemoryLocalStore: reference stores (crm_sync.stores.memory)

Concrete CRM and database clients live outside this package and are plugged in
through the store factory configured under `stores.factory`.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from crm_sync.models.record import LocalRecord, RemoteRecord


class RemoteStore(ABC):
    """
    Abstract interface for the CRM-hosted object store.

    Implementations wrap their client failures in StoreQueryError (reads) and
    StoreWriteError (writes).
    """

    @abstractmethod
    def query(
        self,
        record_type: str,
        modified_since: datetime,
        modified_before: datetime | None = None,
    ) -> list[RemoteRecord]:
        """
        Fetch records of a type modified within a window.

        Args:
            record_type: Remote object type
            modified_since: Inclusive lower bound on last modification
            modified_before: Optional inclusive upper bound on last modification

        Returns:
            Matching records
        """
        ...

    @abstractmethod
    def find(self, record_type: str, record_id: str) -> RemoteRecord | None:
        """Fetch a single record by id, or None if it does not exist."""
        ...

    @abstractmethod
    def create(self, record_type: str, attributes: dict[str, Any]) -> str:
        """
        Create a record.

        Args:
            record_type: Remote object type
            attributes: Field values keyed by remote field name

        Returns:
            Identifier of the new record
        """
        ...

    @abstractmethod
    def update(self, record_type: str, record_id: str, attributes: dict[str, Any]) -> None:
        """Update the given fields of an existing record."""
        ...


class LocalStore(ABC):
    """
    Abstract interface for the local relational store.

    Local records carry the synchronization marker (`synchronized_at`) and the
    link to their remote counterpart (`external_id`).
    """

    @abstractmethod
    def query(
        self,
        record_type: str,
        modified_since: datetime,
        modified_before: datetime | None = None,
    ) -> list[LocalRecord]:
        """Fetch records of a type modified within an inclusive window."""
        ...

    @abstractmethod
    def find(self, record_type: str, record_id: str) -> LocalRecord | None:
        """Fetch a single record by local id, or None if it does not exist."""
        ...

    @abstractmethod
    def find_by_external_id(self, record_type: str, external_id: str) -> LocalRecord | None:
        """Fetch the record linked to a remote object, or None if there is none."""
        ...

    @abstractmethod
    def create(
        self,
        record_type: str,
        attributes: dict[str, Any],
        external_id: str | None = None,
    ) -> str:
        """
        Create a record.

        Args:
            record_type: Local model/table name
            attributes: Values keyed by local attribute name
            external_id: Optional remote object to link the record to

        Returns:
            Local identifier of the new record
        """
        ...

    @abstractmethod
    def update(self, record_type: str, record_id: str, attributes: dict[str, Any]) -> None:
        """Update the given attributes of an existing record."""
        ...

    @abstractmethod
    def mark_synchronized(
        self,
        record_type: str,
        record_id: str,
        synchronized_at: datetime,
        external_id: str | None = None,
    ) -> None:
        """
        Record the engine's own write on a record.

        Must not advance the record's last modification time, otherwise the
        marker would never catch up with it.

        Args:
            record_type: Local model/table name
            record_id: Local identifier
            synchronized_at: Marker value to store
            external_id: Optional remote object to link the record to
        """
        ...
