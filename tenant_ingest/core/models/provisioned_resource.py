"""
ProvisionedResource model: the index and search application created for a tenant.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class ProvisionedResource(BaseModel):
    """
    Indexing-service resources provisioned for one tenant in one batch run.

    Attributes:
        tenant_key: Tenant the resources belong to
        index_id: Data store id at the indexing service
        search_app_id: Engine id at the indexing service, bound to index_id
        reused: True when the resources already existed (idempotent naming)
        provisioned_at: When provisioning completed
    """

    tenant_key: str
    index_id: str = Field(..., min_length=1, max_length=63)
    search_app_id: str = Field(..., min_length=1, max_length=63)
    reused: bool = False
    provisioned_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
