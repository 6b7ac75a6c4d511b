"""
InputRecord model representing one message record read from a batch (ephemeral).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InputRecord(BaseModel):
    """
    A single message record belonging to one tenant.

    Note: InputRecord is immutable once read. ``payload`` keeps the original
    record unmodified (including the tenant key field and any extra fields)
    so it can be staged as the document's structured data.

    Attributes:
        tenant_key: Partition key the record belongs to (e.g. a phone number)
        timestamp: Record timestamp, used to derive the document id
        message: Message text, used as the document content
        payload: Original unmodified record
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "tenant_key": "84901234567",
                "timestamp": "2024-01-01T00:00:00Z",
                "message": "hi",
                "payload": {
                    "userPhone": "84901234567",
                    "timestamp": "2024-01-01T00:00:00Z",
                    "message": "hi",
                    "channel": "sms"
                }
            }
        },
    )

    tenant_key: str = Field(..., min_length=1)
    timestamp: str = Field(..., min_length=1)
    message: str
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("tenant_key", "timestamp", mode="before")
    @classmethod
    def coerce_scalar_to_str(cls, v):
        """Accept numeric keys and epoch timestamps as strings."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @classmethod
    def from_raw(cls, raw: dict[str, Any], tenant_key_field: str = "userPhone") -> "InputRecord":
        """
        Build a record from a raw input object.

        Args:
            raw: Decoded JSON object
            tenant_key_field: Name of the field holding the tenant key

        Returns:
            InputRecord
        """
        return cls(
            tenant_key=raw.get(tenant_key_field),
            timestamp=raw.get("timestamp"),
            message=raw.get("message"),
            payload=dict(raw),
        )
