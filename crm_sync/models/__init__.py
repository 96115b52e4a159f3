"""Data models for the CRM synchronization engine."""

from crm_sync.models.config import (
    AppConfig,
    LoggingConfig,
    MappingConfig,
    StoresConfig,
    WorkerConfig,
)
from crm_sync.models.record import LocalRecord, RemoteRecord, StoreKind

__all__ = [
    "AppConfig",
    "LocalRecord",
    "LoggingConfig",
    "MappingConfig",
    "RemoteRecord",
    "StoreKind",
    "StoresConfig",
    "WorkerConfig",
]
