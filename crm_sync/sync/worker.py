"""Synchronization worker running the periodic reconciliation loop."""

import threading
import time
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Literal

import structlog

from crm_sync.exceptions import StoreError, StoreQueryError, UnmappedAttributeError
from crm_sync.models.config import WorkerConfig
from crm_sync.models.record import StoreKind
from crm_sync.stores.base import LocalStore, RemoteStore
from crm_sync.sync.collector import Collector
from crm_sync.sync.mapping import Mapping
from crm_sync.sync.models import AttributeSnapshot, CycleReport, MappingReport, RecordRef
from crm_sync.sync.runner import Runner
from crm_sync.sync.timestamp_tracker import TimestampTracker

log = structlog.stdlib.get_logger()

Outcome = Literal["created", "updated", "skipped"]


class WorkerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


class Worker:
    """Drives synchronization cycles across all registered mappings.

    One cycle runs at a time. A stop request is honored between cycles; an
    in-flight cycle always finishes (or fails) before the loop exits.
    """

    def __init__(
        self,
        config: WorkerConfig,
        remote_store: RemoteStore,
        local_store: LocalStore,
        mappings: Iterable[Mapping] = (),
        tracker: TimestampTracker | None = None,
        runner: Runner | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the worker.

        Args:
            config: Validated worker configuration
            remote_store: CRM-hosted object store
            local_store: Local relational store
            mappings: Mappings to synchronize each cycle
            tracker: Checkpoint tracker (defaults to one at config.tracker_path)
            runner: Self-echo predicate shared by all collectors
            clock: Source of "now" (defaults to the UTC system clock)
        """
        self._config = config
        self._remote_store = remote_store
        self._local_store = local_store
        self._tracker = tracker or TimestampTracker(config.tracker_path)
        self._runner = runner or Runner()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._collectors: dict[str, Collector] = {}
        self._stop_event = threading.Event()
        self._state = WorkerState.IDLE
        self._last_report: CycleReport | None = None

        for mapping in mappings:
            self.register(mapping)

        log.info(
            "worker_initialized",
            delay=config.delay,
            interval=config.interval,
            tie_break=config.tie_break,
            mappings=len(self._collectors),
        )

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    @property
    def tracker(self) -> TimestampTracker:
        return self._tracker

    @property
    def mappings(self) -> list[Mapping]:
        return [collector.mapping for collector in self._collectors.values()]

    def register(self, mapping: Mapping) -> None:
        """
        Add a mapping to the set synchronized each cycle.

        Raises:
            ValueError: If a mapping with the same id is already registered
        """
        if mapping.id in self._collectors:
            raise ValueError(f"Mapping {mapping.id} is already registered")

        self._collectors[mapping.id] = Collector(
            mapping, self._remote_store, self._local_store, self._runner
        )

    def start(self, max_cycles: int | None = None) -> None:
        """
        Run cycles until stopped.

        Unhandled errors (including TrackerPersistenceError) are logged at
        critical level and re-raised so the process can exit non-zero.

        Args:
            max_cycles: Optional number of cycles after which to stop
        """
        log.info("worker_started", mappings=[m.id for m in self.mappings])
        cycles = 0

        try:
            while not self._stop_event.is_set():
                self._state = WorkerState.RUNNING
                self.run_cycle()
                cycles += 1

                if max_cycles is not None and cycles >= max_cycles:
                    break

                self._state = WorkerState.SLEEPING
                self._stop_event.wait(self._config.interval)
        except Exception as e:
            log.critical(
                "worker_aborted",
                error_type=type(e).__name__,
                error=str(e),
                cycles=cycles,
                exc_info=True,
            )
            raise
        finally:
            self._state = WorkerState.STOPPED
            log.info("worker_stopped", cycles=cycles)

    def stop(self) -> None:
        """Request a stop; takes effect once the current cycle completes."""
        log.info("worker_stop_requested", state=self._state.value)
        self._stop_event.set()

    def run_cycle(self) -> CycleReport:
        """
        Run one synchronization cycle over every registered mapping.

        Returns:
            CycleReport with one MappingReport per mapping
        """
        start_time = self._clock()
        window_end = start_time - timedelta(seconds=self._config.delay)

        log.info("cycle_started", start_time=start_time, window_end=window_end)

        reports = [self.sync_mapping(mapping, window_end) for mapping in self.mappings]

        report = CycleReport(
            start_time=start_time,
            end_time=self._clock(),
            window_end=window_end,
            mappings=reports,
        )
        self._last_report = report

        log.info(
            "cycle_completed",
            mappings=len(reports),
            total_changes=report.total_changes,
            failed_mappings=[r.mapping_id for r in reports if not r.success],
            duration_seconds=report.duration_seconds,
            success=report.success,
        )

        return report

    def sync_mapping(self, mapping: Mapping, window_end: datetime) -> MappingReport:
        """
        Collect and apply one mapping's changes, then advance its checkpoint.

        Store and mapping errors are logged and recorded in the report; the
        checkpoint is left untouched so the window is re-examined next cycle.

        Args:
            mapping: Registered mapping to synchronize
            window_end: Upper bound of the change window

        Returns:
            MappingReport describing the outcome
        """
        started = time.monotonic()
        report = MappingReport(mapping_id=mapping.id)

        try:
            since = self._tracker.checkpoint_for(mapping.id)
            changes = self._collectors[mapping.id].run(since, window_end)

            for ref, snapshots in changes.items():
                if not snapshots:
                    continue
                report.records_collected += 1

                outcome = self._apply(mapping, ref, self._resolve(ref, snapshots))
                if outcome == "created":
                    report.records_created += 1
                elif outcome == "updated":
                    report.records_updated += 1
                else:
                    report.records_skipped += 1

            checkpoint = self._tracker.record_success(
                mapping.id,
                window_end,
                records_synced=report.records_created + report.records_updated,
            )
            report.checkpoint = checkpoint.last_sync_timestamp

        except (StoreError, UnmappedAttributeError) as e:
            log.error(
                "mapping_sync_failed",
                mapping=mapping.id,
                error_type=type(e).__name__,
                error=str(e),
            )
            report.errors.append(f"{type(e).__name__}: {e}")

        report.duration_seconds = time.monotonic() - started

        log.info(
            "mapping_synced",
            mapping=mapping.id,
            records_collected=report.records_collected,
            records_created=report.records_created,
            records_updated=report.records_updated,
            records_skipped=report.records_skipped,
            success=report.success,
        )

        return report

    def _resolve(self, ref: RecordRef, snapshots: list[AttributeSnapshot]) -> AttributeSnapshot:
        """Pick the newest snapshot, breaking exact ties by the configured side."""
        latest = max(snapshot.timestamp for snapshot in snapshots)
        candidates = [snapshot for snapshot in snapshots if snapshot.timestamp == latest]
        winner = candidates[0]

        if len(candidates) > 1:
            preferred = StoreKind(self._config.tie_break)
            winner = next((s for s in candidates if s.store_kind is preferred), winner)
            log.debug(
                "timestamp_tie_resolved",
                record=ref.external_id,
                timestamp=latest,
                winner=winner.store_kind.value,
            )
        elif len(snapshots) > 1:
            log.info(
                "conflict_resolved",
                record=ref.external_id,
                winner=winner.store_kind.value,
                timestamp=latest,
            )

        return winner

    def _apply(self, mapping: Mapping, ref: RecordRef, winner: AttributeSnapshot) -> Outcome:
        """Write the winning side's attributes to the other store."""
        if winner.store_kind is StoreKind.REMOTE:
            return self._apply_to_local(mapping, ref, winner)
        return self._apply_to_remote(mapping, ref, winner)

    def _apply_to_local(
        self, mapping: Mapping, ref: RecordRef, winner: AttributeSnapshot
    ) -> Outcome:
        attributes = mapping.convert(StoreKind.LOCAL, winner.attributes)
        remote_id = winner.record_id
        existing = self._local_store.find_by_external_id(mapping.local_type, remote_id)

        if existing is None:
            local_id = self._local_store.create(
                mapping.local_type, attributes, external_id=remote_id
            )
            outcome: Outcome = "created"
        else:
            local_id = existing.id
            self._local_store.update(mapping.local_type, local_id, attributes)
            outcome = "updated"

        self._mark_synchronized(mapping, local_id, remote_id)
        log.debug(
            "remote_changes_applied",
            mapping=mapping.id,
            remote_id=remote_id,
            local_id=local_id,
            outcome=outcome,
        )
        return outcome

    def _apply_to_remote(
        self, mapping: Mapping, ref: RecordRef, winner: AttributeSnapshot
    ) -> Outcome:
        # Snapshots already carry remote field names.
        attributes = dict(winner.attributes)
        local_id = winner.record_id

        if ref.store_kind is StoreKind.LOCAL:
            remote_id = self._remote_store.create(mapping.remote_type, attributes)
            outcome: Outcome = "created"
        else:
            remote_id = ref.external_id
            if self._remote_store.find(mapping.remote_type, remote_id) is None:
                log.warning(
                    "remote_record_missing",
                    mapping=mapping.id,
                    remote_id=remote_id,
                    local_id=local_id,
                )
                return "skipped"
            self._remote_store.update(mapping.remote_type, remote_id, attributes)
            outcome = "updated"

        self._mark_synchronized(mapping, local_id, remote_id)
        log.debug(
            "local_changes_applied",
            mapping=mapping.id,
            remote_id=remote_id,
            local_id=local_id,
            outcome=outcome,
        )
        return outcome

    def _mark_synchronized(self, mapping: Mapping, local_id: str, remote_id: str) -> None:
        """Stamp the local record with a marker covering both sides' latest writes."""
        remote = self._remote_store.find(mapping.remote_type, remote_id)
        local = self._local_store.find(mapping.local_type, local_id)

        if remote is None or local is None:
            raise StoreQueryError(
                f"Record pair {local_id}/{remote_id} disappeared after write",
                record_type=mapping.local_type,
            )

        marker = max(remote.last_modified_at, local.last_modified_at)
        self._local_store.mark_synchronized(
            mapping.local_type, local_id, marker, external_id=remote_id
        )
