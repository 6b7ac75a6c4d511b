"""
TenantGroup model: the records of one tenant, in input order.
"""

from pydantic import BaseModel, Field

from .input_record import InputRecord


class TenantGroup(BaseModel):
    """
    All records sharing one tenant key.

    Attributes:
        tenant_key: The shared tenant key
        records: Records in the order they appeared in the batch
    """

    tenant_key: str = Field(..., min_length=1)
    records: list[InputRecord] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)
