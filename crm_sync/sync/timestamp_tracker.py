"""Timestamp tracking for maintaining synchronization checkpoints."""

import json
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path

import structlog
from pydantic import ValidationError

from crm_sync.exceptions import TrackerPersistenceError
from crm_sync.sync.models import BEGINNING_OF_TIME, Checkpoint

log = structlog.stdlib.get_logger()


class TimestampTracker:
    """Manages per-mapping checkpoints in a JSON file.

    The file holds one record per mapping. Every write goes to a temporary file
    in the same directory, is fsynced, then atomically renamed over the old
    file before the directory itself is fsynced. A crash leaves either the
    previous or the new checkpoints intact.
    """

    def __init__(self, path: str | Path):
        """
        Initialize timestamp tracker.

        Args:
            path: Location of the checkpoint file (created on first write)
        """
        self._path = Path(path)
        self._lock = threading.Lock()
        log.info("timestamp_tracker_initialized", path=str(self._path))

    @property
    def path(self) -> Path:
        return self._path

    def checkpoint_for(self, mapping_id: str) -> datetime:
        """
        Get the last successful synchronization timestamp of a mapping.

        Args:
            mapping_id: Mapping identifier

        Returns:
            Last checkpoint, or BEGINNING_OF_TIME if the mapping never synced

        Raises:
            TrackerPersistenceError: If the checkpoint file cannot be read
        """
        checkpoint = self.load_checkpoint(mapping_id)
        return checkpoint.last_sync_timestamp if checkpoint else BEGINNING_OF_TIME

    def record_success(
        self, mapping_id: str, timestamp: datetime, records_synced: int = 0
    ) -> Checkpoint:
        """
        Persist a new checkpoint after a successful cycle.

        Checkpoints never regress: an older timestamp than the stored one keeps
        the stored timestamp.

        Args:
            mapping_id: Mapping identifier
            timestamp: Upper bound of the window that was synchronized
            records_synced: Records written during the cycle

        Returns:
            The checkpoint now stored for the mapping

        Raises:
            TrackerPersistenceError: If the checkpoint cannot be written durably
        """
        with self._lock:
            checkpoints = self._read()
            previous = checkpoints.get(mapping_id)

            if previous is not None and timestamp < previous.last_sync_timestamp:
                log.warning(
                    "checkpoint_regression_ignored",
                    mapping=mapping_id,
                    stored=previous.last_sync_timestamp,
                    requested=timestamp,
                )
                timestamp = previous.last_sync_timestamp

            checkpoint = Checkpoint(
                mapping_id=mapping_id,
                last_sync_timestamp=timestamp,
                records_synced=records_synced,
            )
            checkpoints[mapping_id] = checkpoint
            self._write(checkpoints)

        log.info(
            "checkpoint_saved",
            mapping=mapping_id,
            last_sync_timestamp=checkpoint.last_sync_timestamp,
            records_synced=records_synced,
        )
        return checkpoint

    def load_checkpoint(self, mapping_id: str) -> Checkpoint | None:
        """
        Load the stored checkpoint of a mapping.

        Args:
            mapping_id: Mapping identifier

        Returns:
            Checkpoint if found, None otherwise

        Raises:
            TrackerPersistenceError: If the checkpoint file cannot be read
        """
        with self._lock:
            checkpoint = self._read().get(mapping_id)

        if checkpoint is None:
            log.debug("no_checkpoint_found", mapping=mapping_id)
        return checkpoint

    def load_all(self) -> dict[str, Checkpoint]:
        with self._lock:
            return self._read()

    def _read(self) -> dict[str, Checkpoint]:
        if not self._path.exists():
            return {}

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
            return {
                mapping_id: Checkpoint.model_validate(record)
                for mapping_id, record in raw.items()
            }
        except (OSError, ValueError, ValidationError, AttributeError) as e:
            log.error("failed_to_load_checkpoints", path=str(self._path), error=str(e))
            raise TrackerPersistenceError(f"Failed to load checkpoints: {e}") from e

    def _write(self, checkpoints: dict[str, Checkpoint]) -> None:
        payload = {
            mapping_id: checkpoint.model_dump(mode="json")
            for mapping_id, checkpoint in sorted(checkpoints.items())
        }

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self._path)
                self._fsync_directory()
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            log.error("failed_to_save_checkpoints", path=str(self._path), error=str(e))
            raise TrackerPersistenceError(f"Failed to save checkpoints: {e}") from e

    def _fsync_directory(self) -> None:
        # The rename itself is only durable once the directory entry is flushed.
        fd = os.open(self._path.parent, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
