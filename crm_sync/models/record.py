"""Pydantic models for records held by the remote and local stores."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class StoreKind(str, Enum):
    """Which side of the synchronization a record or snapshot belongs to."""

    LOCAL = "local"
    REMOTE = "remote"

    @property
    def opposite(self) -> "StoreKind":
        return StoreKind.REMOTE if self is StoreKind.LOCAL else StoreKind.LOCAL


class RemoteRecord(BaseModel):
    """Represents an object held by the CRM-hosted store."""

    id: str = Field(default=..., description="Remote object identifier")
    record_type: str = Field(default=..., description="Remote object type (e.g. Contact)")
    last_modified_at: datetime = Field(default=..., description="Last modification timestamp")
    fields: dict[str, Any] = Field(
        default_factory=dict, description="Field values keyed by remote field name"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "a001a000001E1vREAL",
                "record_type": "CustomObject__c",
                "last_modified_at": "2024-01-15T14:30:00Z",
                "fields": {"Name": "Custom object", "Example_Field__c": "Some sample text"},
            }
        }
    }

    def __getitem__(self, field: str) -> Any:
        return self.fields.get(field)


class LocalRecord(BaseModel):
    """Represents a row held by the local relational store."""

    id: str = Field(default=..., description="Local primary key")
    record_type: str = Field(default=..., description="Local table or model name")
    external_id: str | None = Field(
        default=None, description="Identifier of the linked remote object, if any"
    )
    last_modified_at: datetime = Field(default=..., description="Last modification timestamp")
    synchronized_at: datetime | None = Field(
        default=None, description="Time of the engine's most recent write to this pair"
    )
    attributes: dict[str, Any] = Field(
        default_factory=dict, description="Column values keyed by local attribute name"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "17",
                "record_type": "custom_objects",
                "external_id": "a001a000001E1vREAL",
                "last_modified_at": "2024-01-15T14:30:00Z",
                "synchronized_at": "2024-01-15T14:30:00Z",
                "attributes": {"name": "Custom object", "example": "Some sample text"},
            }
        }
    }

    def __getitem__(self, attribute: str) -> Any:
        return self.attributes.get(attribute)

    @property
    def synced(self) -> bool:
        """Check if the engine has ever written this record."""
        return self.synchronized_at is not None
