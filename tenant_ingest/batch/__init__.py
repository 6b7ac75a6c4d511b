"""
Batch ingestion: reading, partitioning, staging and orchestration.
"""

from .partitioner import partition_by_tenant
from .pipeline import PipelineState, TenantIngestionPipeline
from .staging import StagingFileBuilder, build_documents, sanitize_document_id

__all__ = [
    "partition_by_tenant",
    "sanitize_document_id",
    "build_documents",
    "StagingFileBuilder",
    "PipelineState",
    "TenantIngestionPipeline",
]
