"""
tenant-ingest: per-tenant search index provisioning and document ingestion.
"""

__version__ = "0.1.0"
