"""Synchronization components for reconciling the remote and local stores."""

from crm_sync.sync.collector import Collector
from crm_sync.sync.mapping import Mapping
from crm_sync.sync.models import (
    BEGINNING_OF_TIME,
    AttributeSnapshot,
    ChangeSet,
    Checkpoint,
    CycleReport,
    MappingReport,
    RecordRef,
)
from crm_sync.sync.runner import Runner
from crm_sync.sync.timestamp_tracker import TimestampTracker
from crm_sync.sync.worker import Worker, WorkerState

__all__ = [
    "AttributeSnapshot",
    "BEGINNING_OF_TIME",
    "ChangeSet",
    "Checkpoint",
    "Collector",
    "CycleReport",
    "Mapping",
    "MappingReport",
    "RecordRef",
    "Runner",
    "TimestampTracker",
    "Worker",
    "WorkerState",
]
