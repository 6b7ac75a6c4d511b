"""
Discovery Engine client: index (data store) and search application
(engine) provisioning, and document import jobs.

Methods:
- create_index(index_id): Create a GENERIC, CONTENT_REQUIRED data store
- create_search_app(search_app_id, index_id): Create a search engine bound to one data store
- import_documents(index_id, source_uri): Start an INCREMENTAL import from Cloud Storage
- get_import_job(job): Refresh an import job from its long-running operation
- wait_for_import(job, ...): Poll an import job until it finishes

Error Handling:
- Provisioning failures raise ProvisioningError (ResourceExistsError on HTTP 409)
- Import failures raise ImportTriggerError
- No retries
"""

import time
from typing import Any, Callable

import httpx

from tenant_ingest.clients.auth import TokenSupplier
from tenant_ingest.clients.base import AuthenticatedClient
from tenant_ingest.core.exceptions import ImportTriggerError, ProvisioningError, ResourceExistsError
from tenant_ingest.core.models import IngestionJob
from tenant_ingest.observability.logger import get_logger


logger = get_logger(__name__)


class DiscoveryEngineConfig:
    """Fixed request parameters for the Discovery Engine API."""

    API_VERSION = "v1"
    INDUSTRY_VERTICAL = "GENERIC"
    CONTENT_CONFIG = "CONTENT_REQUIRED"
    SOLUTION_TYPE = "SOLUTION_TYPE_SEARCH"
    RECONCILIATION_MODE = "INCREMENTAL"
    BRANCH = "default_branch"


class DiscoveryEngineClient(AuthenticatedClient):
    """
    Client for the Discovery Engine REST API, scoped to one project,
    location and collection.
    """

    def __init__(
        self,
        project_id: str,
        token_supplier: TokenSupplier,
        location: str = "global",
        collection: str = "default_collection",
        base_url: str = "https://discoveryengine.googleapis.com",
        timeout: float | None = None,
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(base_url, token_supplier, timeout=timeout, http_client=http_client)
        self.project_id = project_id
        self.location = location
        self.collection = collection
        self._sleep = sleep

    @property
    def collection_url(self) -> str:
        return (
            f"{self.base_url}/{DiscoveryEngineConfig.API_VERSION}/projects/{self.project_id}"
            f"/locations/{self.location}/collections/{self.collection}"
        )

    def _provision(self, url: str, id_param: str, resource_id: str, body: dict[str, Any], operation: str) -> None:
        try:
            self._request(
                "POST",
                url,
                operation=operation,
                error_cls=ProvisioningError,
                error_message=f"Cannot create {operation.removeprefix('create_')} {resource_id}",
                params={id_param: resource_id},
                json=body,
            )
        except ProvisioningError as e:
            if e.status_code == 409:
                raise ResourceExistsError(
                    f"{resource_id} already exists",
                    status_code=e.status_code,
                    response_body=e.response_body,
                ) from e
            raise

    def create_index(self, index_id: str) -> None:
        """
        Create a data store.

        Args:
            index_id: Caller-chosen data store id

        Raises:
            ResourceExistsError: If the id is taken
            ProvisioningError: On any other non-success response
        """
        logger.debug(f"Creating index {index_id}")
        self._provision(
            f"{self.collection_url}/dataStores",
            "dataStoreId",
            index_id,
            {
                "displayName": f"Datastore for {index_id}",
                "industryVertical": DiscoveryEngineConfig.INDUSTRY_VERTICAL,
                "contentConfig": DiscoveryEngineConfig.CONTENT_CONFIG,
            },
            operation="create_index",
        )
        logger.debug(f"Index {index_id} created")

    def create_search_app(self, search_app_id: str, index_id: str) -> None:
        """
        Create a search engine bound to exactly one data store.

        Call only after create_index succeeded for ``index_id``.

        Raises:
            ResourceExistsError: If the id is taken
            ProvisioningError: On any other non-success response
        """
        logger.debug(f"Creating search app {search_app_id} linked to {index_id}")
        self._provision(
            f"{self.collection_url}/engines",
            "engineId",
            search_app_id,
            {
                "displayName": f"Search App for {search_app_id}",
                "dataStoreIds": [index_id],
                "solutionType": DiscoveryEngineConfig.SOLUTION_TYPE,
            },
            operation="create_search_app",
        )
        logger.debug(f"Search app {search_app_id} created")

    def import_documents(self, index_id: str, source_uri: str) -> IngestionJob:
        """
        Start an incremental import of a staged JSONL file.

        Returns once the job is accepted; the import itself runs server-side.

        Args:
            index_id: Target data store
            source_uri: ``gs://`` locator of the staged file

        Returns:
            IngestionJob (not yet done)

        Raises:
            ImportTriggerError: On non-success response
        """
        logger.debug(f"Importing {source_uri} to index {index_id}")
        url = (
            f"{self.collection_url}/dataStores/{index_id}"
            f"/branches/{DiscoveryEngineConfig.BRANCH}/documents:import"
        )
        response = self._request(
            "POST",
            url,
            operation="import_documents",
            error_cls=ImportTriggerError,
            error_message=f"Cannot import {source_uri} into {index_id}",
            json={
                "gcsSource": {"inputUris": [source_uri]},
                "reconciliationMode": DiscoveryEngineConfig.RECONCILIATION_MODE,
            },
        )
        job = IngestionJob(index_id=index_id, source_uri=source_uri)
        return self._apply_operation(job, self._json(response))

    def get_import_job(self, job: IngestionJob) -> IngestionJob:
        """
        Refresh an import job from its long-running operation.

        Raises:
            ImportTriggerError: If the job has no operation name or the lookup fails
        """
        if not job.name:
            raise ImportTriggerError(f"Import job for {job.index_id} has no operation name to poll")

        response = self._request(
            "GET",
            f"{self.base_url}/{DiscoveryEngineConfig.API_VERSION}/{job.name}",
            operation="get_import_job",
            error_cls=ImportTriggerError,
            error_message=f"Cannot read import operation {job.name}",
        )
        return self._apply_operation(job, self._json(response))

    def wait_for_import(
        self,
        job: IngestionJob,
        poll_interval: float = 5.0,
        timeout: float = 600.0,
    ) -> IngestionJob:
        """
        Poll an import job until it is done.

        Raises:
            ImportTriggerError: If the operation reports an error or does not
                finish within ``timeout`` seconds
        """
        deadline = time.monotonic() + timeout
        while not job.done:
            if time.monotonic() >= deadline:
                raise ImportTriggerError(f"Import {job.name} did not finish within {timeout:.0f}s")
            self._sleep(poll_interval)
            job = self.get_import_job(job)

        if job.error:
            raise ImportTriggerError(f"Import {job.name} failed: {job.error}")

        logger.info(
            f"Import {job.name} finished",
            extra={
                "index_id": job.index_id,
                "success_count": job.success_count,
                "failure_count": job.failure_count,
            },
        )
        return job

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _count(metadata: dict[str, Any], key: str, current: int, job_name: str | None) -> int:
        # Operation metadata encodes int64 counts as strings
        value = metadata.get(key, current)
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ImportTriggerError(f"Import {job_name} reported a malformed {key}: {value!r}") from e

    @classmethod
    def _apply_operation(cls, job: IngestionJob, operation: dict[str, Any]) -> IngestionJob:
        name = operation.get("name", job.name)
        metadata = operation.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        error = operation.get("error")
        if isinstance(error, dict):
            error = error.get("message") or str(error)
        elif error is not None:
            error = str(error)
        return job.model_copy(update={
            "name": name,
            "done": bool(operation.get("done", False)),
            "success_count": cls._count(metadata, "successCount", job.success_count, name),
            "failure_count": cls._count(metadata, "failureCount", job.failure_count, name),
            "error": error,
        })
