"""Configuration models for the synchronization daemon."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkerConfig(BaseModel):
    """Configuration for the synchronization worker loop.

    Frozen once validated; the worker holds a reference for its whole lifetime.
    """

    model_config = ConfigDict(frozen=True)

    delay: float = Field(
        default=0.0,
        ge=0.0,
        description="Seconds subtracted from the query upper bound to tolerate replication lag",
    )
    interval: float = Field(default=5.0, gt=0.0, description="Seconds to wait between cycles")
    tracker_path: str = Field(
        default="config/.crm_sync_tracker.json", description="Checkpoint file location"
    )
    tie_break: Literal["remote", "local"] = Field(
        default="remote",
        description="Side that wins when both changed at exactly the same timestamp",
    )


class MappingConfig(BaseModel):
    """Declares the correspondence between one local type and one remote type."""

    local_type: str = Field(default=..., min_length=1, description="Local model/table name")
    remote_type: str = Field(default=..., min_length=1, description="Remote object type")
    fields: dict[str, str] = Field(
        default=..., description="Local attribute name -> remote field name"
    )
    strict: bool = Field(
        default=False, description="Raise on unmapped attributes instead of dropping them"
    )
    name: str | None = Field(default=None, description="Optional stable mapping identifier")

    @model_validator(mode="after")
    def validate_bijection(self) -> "MappingConfig":
        """Validate that no remote field is claimed by two local attributes."""
        remote_fields = list(self.fields.values())
        if len(set(remote_fields)) != len(remote_fields):
            raise ValueError(f"remote fields must be unique: {remote_fields}")
        return self


class StoresConfig(BaseModel):
    """Configuration for building the remote and local store clients."""

    factory: str = Field(
        default="crm_sync.stores.memory:build_stores",
        description="Import path (module:callable) returning (remote_store, local_store)",
    )
    options: dict[str, Any] = Field(
        default_factory=dict, description="Factory options such as store credentials"
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="If True, output JSON logs. If False, use console format.",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path to log file. If None, logs only to stdout.",
    )


class AppConfig(BaseSettings):
    """Main application configuration.

    This class uses pydantic-settings to load configuration from environment
    variables with the CRM_SYNC_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="CRM_SYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    stores: StoresConfig = Field(default_factory=StoresConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    mappings: list[MappingConfig] = Field(default_factory=list)
