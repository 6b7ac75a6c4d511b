"""
TenantResult and BatchResult models summarizing a pipeline run.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from .ingestion_job import IngestionJob
from .provisioned_resource import ProvisionedResource


class TenantResult(BaseModel):
    """
    Outcome of one tenant's pipeline run.

    Attributes:
        tenant_key: Tenant that was processed
        status: "succeeded" or "failed"
        record_count: Records in the tenant's group
        resource: Provisioned index/search app (None if provisioning failed)
        object_uri: Locator of the uploaded staged file
        job: Import job that was triggered
        failed_step: Pipeline state the failure happened in
        error: Failure message
    """

    tenant_key: str
    status: Literal["succeeded", "failed"]
    record_count: int = 0
    resource: ProvisionedResource | None = None
    object_uri: str | None = None
    job: IngestionJob | None = None
    failed_step: str | None = None
    error: str | None = None


class BatchResult(BaseModel):
    """
    Outcome of one batch run.

    The provisioned-resource registry lives here, scoped to the run,
    rather than in process-wide state.

    Attributes:
        batch_id: Idempotency key of the batch
        run_id: Unique id of this run
        status: "succeeded" if every tenant succeeded, else "failed"
        total_records: Records read from the input
        tenants: Per-tenant results in processing order
        started_at: When the run started
        finished_at: When the run ended
    """

    batch_id: str
    run_id: str
    status: Literal["running", "succeeded", "failed"] = "running"
    total_records: int = 0
    tenants: list[TenantResult] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def tenants_processed(self) -> int:
        return sum(1 for t in self.tenants if t.status == "succeeded")

    @property
    def tenants_failed(self) -> int:
        return sum(1 for t in self.tenants if t.status == "failed")

    @property
    def resources(self) -> dict[str, ProvisionedResource]:
        """Provisioned resources keyed by tenant key."""
        return {t.tenant_key: t.resource for t in self.tenants if t.resource is not None}

    def summary(self) -> dict:
        """Compact dictionary for CLI and HTTP responses."""
        return {
            "batch_id": self.batch_id,
            "run_id": self.run_id,
            "status": self.status,
            "total_records": self.total_records,
            "tenants_processed": self.tenants_processed,
            "tenants_failed": self.tenants_failed,
            "resources": {
                key: {"index_id": r.index_id, "search_app_id": r.search_app_id, "reused": r.reused}
                for key, r in self.resources.items()
            },
            "failures": [
                {"tenant_key": t.tenant_key, "step": t.failed_step, "error": t.error}
                for t in self.tenants if t.status == "failed"
            ],
        }
