"""Field mapping between local attribute names and remote field names."""

from collections.abc import Callable, Iterable, Mapping as MappingABC
from typing import Any

import structlog

from crm_sync.exceptions import UnmappedAttributeError
from crm_sync.models.config import MappingConfig
from crm_sync.models.record import StoreKind

log = structlog.stdlib.get_logger()


class Mapping:
    """Declares how one local record type corresponds to one remote record type.

    Local attribute names are canonical for the local store. Change snapshots
    compare both sides under remote field names, and are translated back to
    local names only when they are written to the local store.
    """

    def __init__(
        self,
        local_type: str,
        remote_type: str,
        fields: MappingABC[str, str] | Iterable[tuple[str, str]] | None = None,
        strict: bool = False,
        name: str | None = None,
    ):
        """
        Initialize a mapping.

        Args:
            local_type: Local model/table name
            remote_type: Remote object type
            fields: Local attribute -> remote field pairs
            strict: If True, converting an unmapped attribute raises
                UnmappedAttributeError; otherwise unmapped attributes are dropped
                on the way to the remote store and kept on the way to the local one
            name: Optional stable identifier (defaults to "local_type:remote_type")
        """
        self.local_type = local_type
        self.remote_type = remote_type
        self.strict = strict
        self.id = name or f"{local_type}:{remote_type}"
        self._mappings: dict[str, str] = {}
        self.add_mappings(fields or {})

    @classmethod
    def from_config(cls, config: MappingConfig) -> "Mapping":
        return cls(
            local_type=config.local_type,
            remote_type=config.remote_type,
            fields=config.fields,
            strict=config.strict,
            name=config.name,
        )

    @property
    def mappings(self) -> dict[str, str]:
        """Get a copy of the local attribute -> remote field pairs."""
        return dict(self._mappings)

    @property
    def local_fields(self) -> list[str]:
        return list(self._mappings.keys())

    @property
    def remote_fields(self) -> list[str]:
        return list(self._mappings.values())

    def add_mappings(
        self, pairs: MappingABC[str, str] | Iterable[tuple[str, str]]
    ) -> None:
        """
        Merge additional (local, remote) pairs into the mapping.

        Later pairs override earlier ones with the same local key. Re-adding an
        identical pair is a no-op.

        Args:
            pairs: Local attribute -> remote field pairs

        Raises:
            ValueError: If a remote field is already mapped from another
                attribute, or a name is used by another pair on the opposite side
        """
        items = pairs.items() if isinstance(pairs, MappingABC) else pairs

        for local_name, remote_name in items:
            self._check_pair(local_name, remote_name)
            self._mappings[local_name] = remote_name

    def convert(self, target: StoreKind, attributes: MappingABC[str, Any]) -> dict[str, Any]:
        """
        Convert an attribute collection into the target store's vocabulary.

        For the remote store every local attribute name is rewritten to its
        remote field name; keys without a remote field are dropped. For the
        local store remote field names are translated back to local names and
        every other key passes through as-is, since local names are canonical.
        Values are never modified.

        Args:
            target: Store the attributes are destined for
            attributes: Attribute values keyed by local (or remote) names

        Returns:
            Attribute values keyed by the target store's names

        Raises:
            UnmappedAttributeError: If strict and a key has no correspondence
        """
        if target is StoreKind.REMOTE:
            lookup = self._mappings
        else:
            lookup = {remote: local for local, remote in self._mappings.items()}
            lookup.update({local: local for local in self._mappings})

        converted: dict[str, Any] = {}
        for key, value in attributes.items():
            if key in lookup:
                converted[lookup[key]] = value
            elif self.strict:
                raise UnmappedAttributeError(key, self.id)
            elif target is StoreKind.LOCAL:
                converted[key] = value
            else:
                log.debug("unmapped_attribute_dropped", mapping=self.id, attribute=key)

        return converted

    def attributes(self, target: StoreKind, project: Callable[[str], Any]) -> dict[str, Any]:
        """
        Build a normalized collection of attribute values keyed by local names.

        Args:
            target: Store whose vocabulary is passed to `project`
            project: Called once per field name of the target store

        Returns:
            Dictionary mapping each local attribute name to project(name)
        """
        if target is StoreKind.REMOTE:
            return {local: project(remote) for local, remote in self._mappings.items()}
        return {local: project(local) for local in self._mappings}

    def _check_pair(self, local_name: str, remote_name: str) -> None:
        # Names must resolve to one side only, or converting back to local is ambiguous.
        for other_local, other_remote in self._mappings.items():
            if other_local == local_name:
                continue
            if other_remote == remote_name:
                raise ValueError(
                    f"Remote field {remote_name!r} is already mapped from {other_local!r} in {self.id}"
                )
            if other_local == remote_name or other_remote == local_name:
                raise ValueError(
                    f"Pair {local_name!r} -> {remote_name!r} collides with "
                    f"{other_local!r} -> {other_remote!r} in {self.id}"
                )

    def __len__(self) -> int:
        return len(self._mappings)

    def __repr__(self) -> str:
        return f"Mapping(id={self.id!r}, fields={self._mappings!r})"
