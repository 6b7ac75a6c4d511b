"""
StagingDocument and StagedFile models for bulk import staging (ephemeral).
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StagingDocument(BaseModel):
    """
    One line of a staged JSONL file, in the indexing service's document format.

    Attributes:
        id: Document id, the sanitized record timestamp
        content: Document text, the record message
        structData: The original record
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "2024-01-01T00_00_00Z",
                "content": "hi",
                "structData": {
                    "userPhone": "84901234567",
                    "timestamp": "2024-01-01T00:00:00Z",
                    "message": "hi"
                }
            }
        }
    )

    id: str = Field(..., min_length=1, pattern=r"^[A-Za-z0-9_-]+$")
    content: str
    structData: dict[str, Any]

    def to_json_line(self) -> str:
        """Serialize as a single JSON line (no trailing newline)."""
        return self.model_dump_json()


class StagedFile(BaseModel):
    """
    A tenant's staged JSONL file on local disk.

    Attributes:
        tenant_key: Tenant whose records the file holds
        path: Local path of the file
        document_count: Number of lines written
    """

    tenant_key: str
    path: Path
    document_count: int = Field(..., ge=0)
