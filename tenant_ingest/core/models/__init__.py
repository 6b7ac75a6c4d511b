"""
Core data models for the tenant ingestion pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .batch_result import BatchResult, TenantResult
from .ingestion_job import IngestionJob
from .input_record import InputRecord
from .provisioned_resource import ProvisionedResource
from .staging_document import StagedFile, StagingDocument
from .tenant_group import TenantGroup

__all__ = [
    "InputRecord",
    "TenantGroup",
    "ProvisionedResource",
    "StagingDocument",
    "StagedFile",
    "IngestionJob",
    "TenantResult",
    "BatchResult",
]
