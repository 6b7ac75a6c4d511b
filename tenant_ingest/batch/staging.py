"""
Staging of tenant records as JSONL documents for bulk import.

Each tenant's records become one newline-delimited JSON file in the
indexing service's document format:

    {"id": "<sanitized timestamp>", "content": "<message>", "structData": {...}}
"""

import re
from contextlib import suppress
from pathlib import Path

from tenant_ingest.config import DuplicateIdPolicy
from tenant_ingest.core.exceptions import StagingError
from tenant_ingest.core.models import StagedFile, StagingDocument, TenantGroup
from tenant_ingest.observability.logger import get_logger
from tenant_ingest.observability.metrics import record_staged_documents
from tenant_ingest.utils.validation import resource_id_segment, tenant_key_digest


logger = get_logger(__name__)

_DOCUMENT_ID_DISALLOWED = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_document_id(value: str) -> str:
    """
    Map every character outside ``[A-Za-z0-9_-]`` to ``_``.

    Examples:
        >>> sanitize_document_id("2024-01-01T00:00:00Z")
        '2024-01-01T00_00_00Z'
    """
    return _DOCUMENT_ID_DISALLOWED.sub("_", value)


def build_documents(
    group: TenantGroup,
    duplicate_ids: DuplicateIdPolicy = DuplicateIdPolicy.OVERWRITE,
) -> list[StagingDocument]:
    """
    Convert a tenant's records into staging documents.

    Args:
        group: The tenant's records
        duplicate_ids: What to do when two records sanitize to the same id.
            OVERWRITE keeps one document per id (the later record wins, at the
            position the id was first seen); REJECT raises.

    Returns:
        Documents in record order

    Raises:
        StagingError: On a duplicate id under the REJECT policy
    """
    documents: dict[str, StagingDocument] = {}
    for record in group.records:
        doc_id = sanitize_document_id(record.timestamp)
        if doc_id in documents:
            if duplicate_ids == DuplicateIdPolicy.REJECT:
                raise StagingError(
                    f"Duplicate document id '{doc_id}' for tenant {group.tenant_key}"
                )
            logger.warning(
                "Duplicate document id, later record overwrites earlier one",
                extra={"tenant_key": group.tenant_key, "document_id": doc_id},
            )
        documents[doc_id] = StagingDocument(
            id=doc_id,
            content=record.message,
            structData=record.payload,
        )
    return list(documents.values())


def render_jsonl(documents: list[StagingDocument]) -> str:
    """Serialize documents one per line, with a trailing newline."""
    return "".join(doc.to_json_line() + "\n" for doc in documents)


class StagingFileBuilder:
    """
    Writes staged files for one pipeline run.

    File names include the run id, so concurrent or overlapping runs never
    share a path.
    """

    def __init__(
        self,
        staging_dir: str | Path,
        run_id: str,
        duplicate_ids: DuplicateIdPolicy = DuplicateIdPolicy.OVERWRITE,
    ):
        """
        Initialize staging file builder.

        Args:
            staging_dir: Directory receiving staged files
            run_id: Unique id of the current pipeline run
            duplicate_ids: Duplicate document id policy
        """
        self.staging_dir = Path(staging_dir)
        self.run_id = run_id
        self.duplicate_ids = duplicate_ids

    def path_for(self, tenant_key: str) -> Path:
        slug = resource_id_segment(tenant_key)
        return self.staging_dir / f"{self.run_id}-{slug}-{tenant_key_digest(tenant_key)}-messages.jsonl"

    def build(self, group: TenantGroup) -> "StagedFileContext":
        """
        Stage a tenant's records.

        Usage:
            with builder.build(group) as staged:
                uploader.upload(staged.path, ...)

        The file is written on entry and removed on exit, whether or not the
        block raised.
        """
        return StagedFileContext(self, group)


class StagedFileContext:
    """Context manager owning one staged file from write to removal."""

    def __init__(self, builder: StagingFileBuilder, group: TenantGroup):
        self.builder = builder
        self.group = group
        self.staged: StagedFile | None = None

    def __enter__(self) -> StagedFile:
        documents = build_documents(self.group, self.builder.duplicate_ids)
        path = self.builder.path_for(self.group.tenant_key)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(render_jsonl(documents), encoding="utf-8")
        except OSError as e:
            # Drop a partial write; the path may not even be reachable
            with suppress(OSError):
                path.unlink(missing_ok=True)
            raise StagingError(f"Cannot write staging file {path}: {e}") from e

        record_staged_documents(len(documents))
        logger.debug(
            f"Staged {len(documents)} documents",
            extra={"tenant_key": self.group.tenant_key, "path": str(path)},
        )
        self.staged = StagedFile(
            tenant_key=self.group.tenant_key,
            path=path,
            document_count=len(documents),
        )
        return self.staged

    def __exit__(self, exc_type, exc_val, exc_tb):
        path = self.staged.path
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            if exc_type is None:
                raise StagingError(f"Cannot remove staging file {path}: {e}") from e
            logger.warning(
                f"Cannot remove staging file {path}: {e}",
                extra={"tenant_key": self.group.tenant_key},
            )
        return False
