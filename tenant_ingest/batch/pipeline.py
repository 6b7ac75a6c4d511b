"""
Per-tenant provisioning and ingestion pipeline orchestration.

Coordinates the flow: read → partition → for each tenant:
provision index → provision search app → stage → upload → import → clean up
"""

import hashlib
import threading
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import httpx

from tenant_ingest.batch.partitioner import partition_by_tenant
from tenant_ingest.batch.readers import BatchFileReader
from tenant_ingest.batch.staging import StagingFileBuilder
from tenant_ingest.clients import (
    DiscoveryEngineClient,
    GoogleAuthTokenProvider,
    ObjectStoreUploader,
    TokenProvider,
    TokenSupplier,
)
from tenant_ingest.config import FailurePolicy, PipelineSettings, ResourceNaming
from tenant_ingest.core.exceptions import PipelineError, ProvisioningError, ResourceExistsError
from tenant_ingest.core.models import (
    BatchResult,
    ProvisionedResource,
    TenantGroup,
    TenantResult,
)
from tenant_ingest.observability.logger import get_logger, log_operation, run_context
from tenant_ingest.observability.metrics import record_batch_processing, record_provisioned
from tenant_ingest.utils.validation import (
    ValidationError,
    resource_id_segment,
    tenant_key_digest,
    validate_resource_id,
    validate_tenant_key,
)


logger = get_logger(__name__)

# One batch at a time per process
_BATCH_LOCK = threading.Lock()

# Leaves room for prefix, key digest and suffix within the 63-character id limit
SLUG_MAX_LENGTH = 20


class PipelineState(str, Enum):
    LOADING = "loading"
    PROVISIONING = "provisioning"
    STAGING = "staging"
    UPLOADING = "uploading"
    IMPORTING = "importing"
    CLEANUP = "cleanup"
    DONE = "done"
    FAILED = "failed"


class TenantIngestionPipeline:
    """
    Orchestrates one batch of per-tenant ingestion.

    Flow:
    1. Read the batch file and partition it by tenant key
    2. Fetch an access token (fails the batch early on bad credentials)
    3. For each tenant, in first-seen order:
       a. Create the tenant's index, then its search application
       b. Stage the tenant's records as a JSONL file
       c. Upload the file to the object store
       d. Trigger an incremental import (optionally wait for it)
       e. Remove the staged file
    4. Return a BatchResult holding per-tenant results and the
       provisioned-resource registry
    """

    def __init__(
        self,
        settings: PipelineSettings,
        indexing_client: DiscoveryEngineClient,
        uploader: ObjectStoreUploader,
        token_supplier: TokenSupplier,
        reader: Optional[BatchFileReader] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize pipeline.

        Args:
            settings: Pipeline settings
            indexing_client: Indexing service client (provisioning and import)
            uploader: Object store uploader
            token_supplier: Token cache shared with both clients
            reader: Batch file reader (defaults to one using settings.tenant_key_field)
            clock: Returns the current aware datetime (for tests)
        """
        self.settings = settings
        self.indexing_client = indexing_client
        self.uploader = uploader
        self.token_supplier = token_supplier
        self.reader = reader or BatchFileReader(tenant_key_field=settings.tenant_key_field)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self.state = PipelineState.DONE
        self.last_result: BatchResult | None = None

    @classmethod
    def from_settings(
        cls,
        settings: PipelineSettings,
        token_provider: Optional[TokenProvider] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> "TenantIngestionPipeline":
        """
        Build a pipeline and its clients from settings.

        Args:
            settings: Pipeline settings
            token_provider: Token source (defaults to google-auth with settings.key_file)
            http_client: Shared httpx client (defaults to one per remote service)
        """
        supplier = TokenSupplier(token_provider or GoogleAuthTokenProvider(settings.key_file))
        indexing_client = DiscoveryEngineClient(
            project_id=settings.project_id,
            token_supplier=supplier,
            location=settings.location,
            collection=settings.collection,
            base_url=settings.discovery_api_url,
            timeout=settings.http_timeout,
            http_client=http_client,
        )
        uploader = ObjectStoreUploader(
            bucket=settings.bucket,
            token_supplier=supplier,
            base_url=settings.storage_api_url,
            timeout=settings.http_timeout,
            http_client=http_client,
        )
        return cls(settings, indexing_client, uploader, supplier)

    def close(self) -> None:
        self.indexing_client.close()
        self.uploader.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _transition(self, state: PipelineState) -> None:
        self.state = state
        logger.debug(f"Pipeline state: {state.value}", extra={"state": state.value})

    def run(
        self,
        input_path: str | Path | None = None,
        batch_id: str | None = None,
        file_format: str = "json",
    ) -> BatchResult:
        """
        Process a batch file through the complete pipeline.

        Args:
            input_path: Batch file (defaults to settings.input_path)
            batch_id: Idempotency key for resource naming (defaults to the
                SHA-256 of the input file)
            file_format: "json" or "jsonl"

        Returns:
            BatchResult. Under the best-effort policy its status is "failed"
            when any tenant failed.

        Raises:
            PipelineError: The first failure, under the abort policy, or any
                failure before tenant processing starts (input, credentials).
                Under the abort policy an unexpected error from a tenant
                step is re-raised unchanged.
        """
        with _BATCH_LOCK:
            run_id = uuid.uuid4().hex[:12]
            with run_context(run_id=run_id):
                return self._run(run_id, Path(input_path or self.settings.input_path), batch_id, file_format)

    def _run(self, run_id: str, input_path: Path, batch_id: str | None, file_format: str) -> BatchResult:
        started = time.monotonic()
        batch_started_at = self.clock()
        result = BatchResult(batch_id=batch_id or "pending", run_id=run_id, started_at=batch_started_at)
        self.last_result = result

        logger.info(f"Starting batch run {run_id} for file: {input_path}")

        try:
            self._transition(PipelineState.LOADING)
            records = self.reader.read(input_path, file_format=file_format)
            result.total_records = len(records)
            result.batch_id = batch_id or self._fingerprint(input_path)

            groups = partition_by_tenant(records)
            logger.info(f"Partitioned {len(records)} records into {len(groups)} tenants")

            # Fail fast on credentials before touching any tenant
            self.token_supplier.get()

            builder = StagingFileBuilder(
                self.settings.staging_dir,
                run_id=run_id,
                duplicate_ids=self.settings.duplicate_ids,
            )
            for group in groups.values():
                tenant_result, error = self._process_tenant(group, builder, result.batch_id, batch_started_at)
                result.tenants.append(tenant_result)
                if error is not None and self.settings.failure_policy == FailurePolicy.ABORT:
                    logger.error(
                        f"Aborting batch run {run_id} at tenant {group.tenant_key}",
                        extra={"tenant_key": group.tenant_key, "step": tenant_result.failed_step},
                    )
                    raise error

        except Exception:
            self._transition(PipelineState.FAILED)
            result.status = "failed"
            raise
        finally:
            result.finished_at = self.clock()
            if result.status == "running":
                result.status = "failed" if result.tenants_failed else "succeeded"
            record_batch_processing(
                total_records=result.total_records,
                tenants_succeeded=result.tenants_processed,
                tenants_failed=result.tenants_failed,
                duration_seconds=time.monotonic() - started,
                success=result.status == "succeeded",
            )

        if result.status == "succeeded":
            self._transition(PipelineState.DONE)
        else:
            self._transition(PipelineState.FAILED)

        logger.info(
            f"Batch run {run_id} {result.status}: "
            f"{result.tenants_processed} tenants processed, {result.tenants_failed} failed"
        )
        return result

    def _process_tenant(
        self,
        group: TenantGroup,
        builder: StagingFileBuilder,
        batch_id: str,
        batch_started_at: datetime,
    ) -> tuple[TenantResult, Exception | None]:
        """
        Run the five-step sequence for one tenant.

        Failures of any kind are captured in the returned TenantResult (with
        the step they happened in) and returned alongside it; the caller
        applies the failure policy.
        """
        tenant_key = group.tenant_key
        tenant_result = TenantResult(tenant_key=tenant_key, status="failed", record_count=len(group))

        try:
            with run_context(tenant_key=tenant_key), log_operation("Ingest tenant", logger, records=len(group)):
                self._transition(PipelineState.PROVISIONING)
                index_id, search_app_id = self.resource_ids(tenant_key, batch_id, batch_started_at)
                tenant_result.resource = self._provision(tenant_key, index_id, search_app_id)

                self._transition(PipelineState.STAGING)
                with builder.build(group) as staged:
                    self._transition(PipelineState.UPLOADING)
                    tenant_result.object_uri = self.uploader.upload(
                        staged.path,
                        self.settings.staged_object_name,
                        tenant_prefix(tenant_key),
                    )

                    self._transition(PipelineState.IMPORTING)
                    job = self.indexing_client.import_documents(index_id, tenant_result.object_uri)
                    if self.settings.await_import:
                        job = self.indexing_client.wait_for_import(
                            job,
                            poll_interval=self.settings.import_poll_interval,
                            timeout=self.settings.import_timeout,
                        )
                    tenant_result.job = job

                    self._transition(PipelineState.CLEANUP)
        except PipelineError as e:
            tenant_result.failed_step = self.state.value
            tenant_result.error = str(e)
            return tenant_result, e
        except Exception as e:
            logger.exception(
                f"Unexpected error for tenant {tenant_key} while {self.state.value}",
                extra={"tenant_key": tenant_key, "step": self.state.value},
            )
            tenant_result.failed_step = self.state.value
            tenant_result.error = f"{type(e).__name__}: {e}"
            return tenant_result, e

        tenant_result.status = "succeeded"
        return tenant_result, None

    def resource_ids(self, tenant_key: str, batch_id: str, batch_started_at: datetime) -> tuple[str, str]:
        """
        Derive the tenant's index and search application ids.

        Ids are ``{kind}-{slug}-{key digest}-{suffix}``. The digest of the raw
        tenant key keeps tenants whose slugs collide apart. Timestamp naming
        suffixes the batch start time in milliseconds, so
        every run creates new resources. Idempotent naming suffixes a hash of
        the tenant key and batch id, so a rerun of the same batch maps onto
        the same resources.

        Raises:
            ProvisioningError: If the tenant key cannot produce valid ids
        """
        if self.settings.resource_naming == ResourceNaming.IDEMPOTENT:
            suffix = hashlib.sha256(f"{tenant_key}:{batch_id}".encode("utf-8")).hexdigest()[:12]
        else:
            suffix = str(int(batch_started_at.timestamp() * 1000))

        try:
            slug = resource_id_segment(validate_tenant_key(tenant_key), max_length=SLUG_MAX_LENGTH)
            stem = f"{slug}-{tenant_key_digest(tenant_key)}-{suffix}"
            index_id = validate_resource_id(f"datastore-{stem}", "index_id")
            search_app_id = validate_resource_id(f"searchapp-{stem}", "search_app_id")
        except ValidationError as e:
            raise ProvisioningError(f"Cannot derive resource ids for tenant {tenant_key!r}: {e}") from e
        return index_id, search_app_id

    def _provision(self, tenant_key: str, index_id: str, search_app_id: str) -> ProvisionedResource:
        index_reused = self._create_or_reuse(
            "index", index_id, lambda: self.indexing_client.create_index(index_id)
        )
        self._create_or_reuse(
            "search_app",
            search_app_id,
            lambda: self.indexing_client.create_search_app(search_app_id, index_id),
        )
        return ProvisionedResource(
            tenant_key=tenant_key,
            index_id=index_id,
            search_app_id=search_app_id,
            reused=index_reused,
        )

    def _create_or_reuse(self, kind: str, resource_id: str, create: Callable[[], None]) -> bool:
        """Create a resource; return True if it already existed and may be reused."""
        try:
            create()
        except ResourceExistsError:
            if self.settings.resource_naming != ResourceNaming.IDEMPOTENT:
                raise
            logger.info(f"{kind} {resource_id} already exists, reusing it")
            record_provisioned(kind, reused=True)
            return True
        record_provisioned(kind, reused=False)
        return False

    @staticmethod
    def _fingerprint(input_path: Path) -> str:
        return hashlib.sha256(input_path.read_bytes()).hexdigest()[:16]


def tenant_prefix(tenant_key: str) -> str:
    """Object-store folder for a tenant's staged files."""
    return tenant_key.replace("/", "_")
