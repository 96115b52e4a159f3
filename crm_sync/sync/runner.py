"""Self-echo detection for individual records."""

from datetime import datetime

import structlog

from crm_sync.models.record import LocalRecord, RemoteRecord

log = structlog.stdlib.get_logger()


class Runner:
    """Decides whether a record was changed by something other than the engine.

    The engine stamps the local side of every pair it writes with a
    `synchronized_at` marker no older than either side's resulting modification
    time. Any later modification must therefore come from an external actor.
    """

    def changed(
        self,
        record: RemoteRecord | LocalRecord,
        last_sync_marker: datetime | None,
    ) -> bool:
        """
        Check if a record changed externally since the engine last wrote it.

        Args:
            record: Record from either store
            last_sync_marker: The engine's most recent write to the record, if any

        Returns:
            True if the record was never synchronized or was modified strictly
            after the marker, False otherwise
        """
        if last_sync_marker is None:
            return True

        is_changed = record.last_modified_at > last_sync_marker

        if not is_changed:
            log.debug(
                "self_echo_suppressed",
                record_type=record.record_type,
                record_id=record.id,
                last_modified_at=record.last_modified_at,
                synchronized_at=last_sync_marker,
            )

        return is_changed
