"""
Pytest configuration and fixtures for tenant-ingest tests

This module provides shared fixtures for unit, integration, and E2E tests.
Remote services are replaced by an in-process fake served through
httpx.MockTransport.
"""
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx
import pytest

from tenant_ingest.batch.pipeline import TenantIngestionPipeline
from tenant_ingest.clients import StaticTokenProvider
from tenant_ingest.config import PipelineSettings


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Pipeline tests against the fake remote services"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests through the CLI and HTTP trigger"
    )


# =======================
# FAKE REMOTE SERVICES
# =======================

class FakeGoogleCloud:
    """
    In-memory stand-in for Discovery Engine and Cloud Storage.

    Every request is recorded in ``calls`` as (operation, resource) pairs.
    ``fail_on`` maps (operation, resource) to an HTTP status to return
    instead of success.
    """

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.requests: list[httpx.Request] = []
        self.data_stores: dict[str, dict[str, Any]] = {}
        self.engines: dict[str, dict[str, Any]] = {}
        self.objects: dict[str, bytes] = {}
        self.imports: list[dict[str, Any]] = []
        self.fail_on: dict[tuple[str, str], int] = {}
        self.operation_done = True
        self.operation_metadata: dict[str, Any] = {"successCount": "2", "failureCount": "0"}
        self._operation_seq = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params

        if request.method == "POST" and path.endswith("/dataStores"):
            return self._create("create_index", params["dataStoreId"], self.data_stores, request)
        if request.method == "POST" and path.endswith("/engines"):
            return self._create("create_search_app", params["engineId"], self.engines, request)
        if request.method == "POST" and path.endswith("/documents:import"):
            index_id = path.split("/dataStores/")[1].split("/")[0]
            return self._import(index_id, request)
        if request.method == "POST" and path.startswith("/upload/storage/v1/b/"):
            return self._upload(params["name"], request)
        if request.method == "GET" and "/operations/" in path:
            return self._operation(path)

        return httpx.Response(404, json={"error": {"message": f"unknown route {path}"}})

    def _failure(self, operation: str, resource: str) -> httpx.Response | None:
        status = self.fail_on.get((operation, resource))
        if status is None:
            return None
        return httpx.Response(status, json={"error": {"code": status, "message": f"{operation} failed"}})

    def _create(self, operation, resource_id, store, request) -> httpx.Response:
        self.calls.append((operation, resource_id))
        failure = self._failure(operation, resource_id)
        if failure is not None:
            return failure
        if resource_id in store:
            return httpx.Response(409, json={"error": {"code": 409, "status": "ALREADY_EXISTS"}})
        store[resource_id] = json.loads(request.content)
        return httpx.Response(200, json={"name": f"operations/create-{resource_id}", "done": False})

    def _import(self, index_id, request) -> httpx.Response:
        self.calls.append(("import_documents", index_id))
        failure = self._failure("import_documents", index_id)
        if failure is not None:
            return failure
        self._operation_seq += 1
        body = json.loads(request.content)
        self.imports.append({"index_id": index_id, **body})
        name = (
            "projects/test-project/locations/global/collections/default_collection"
            f"/dataStores/{index_id}/branches/default_branch/operations/import-{self._operation_seq}"
        )
        return httpx.Response(200, json={"name": name, "done": False})

    def _upload(self, object_name, request) -> httpx.Response:
        self.calls.append(("upload", object_name))
        failure = self._failure("upload", object_name)
        if failure is not None:
            return failure
        self.objects[object_name] = request.content
        return httpx.Response(200, json={"name": object_name, "bucket": "test-bucket"})

    def _operation(self, path) -> httpx.Response:
        name = path.split("/v1/", 1)[1]
        self.calls.append(("get_import_job", name))
        if not self.operation_done:
            return httpx.Response(200, json={"name": name, "done": False})
        return httpx.Response(200, json={
            "name": name,
            "done": True,
            "metadata": self.operation_metadata,
        })

    def operations(self, tenant_fragment: str | None = None) -> list[str]:
        """Operations in call order, optionally only those touching one tenant."""
        return [
            op for op, resource in self.calls
            if tenant_fragment is None or tenant_fragment in resource
        ]


@pytest.fixture
def fake_cloud() -> FakeGoogleCloud:
    return FakeGoogleCloud()


@pytest.fixture
def http_client(fake_cloud):
    client = httpx.Client(transport=httpx.MockTransport(fake_cloud.handler))
    yield client
    client.close()


# =======================
# DATA FIXTURES
# =======================

@pytest.fixture
def sample_raw_records() -> list[dict[str, Any]]:
    """Three records across two tenants."""
    return [
        {"userPhone": "u1", "timestamp": "2024-01-01T00:00:00Z", "message": "hi"},
        {"userPhone": "u1", "timestamp": "2024-01-01T00:00:01Z", "message": "yo"},
        {"userPhone": "u2", "timestamp": "2024-01-02T00:00:00Z", "message": "hey"},
    ]


@pytest.fixture
def write_input(tmp_path):
    """Write a list of raw records as a JSON batch file and return its path."""

    def _write(records: list[dict[str, Any]], name: str = "input.json") -> Path:
        path = tmp_path / "data" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(records), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def input_file(write_input, sample_raw_records) -> Path:
    return write_input(sample_raw_records)


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture
def staging_dir(tmp_path) -> Path:
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path, staging_dir) -> PipelineSettings:
    return PipelineSettings(
        project_id="test-project",
        bucket="test-bucket",
        data_dir=tmp_path / "data",
        staging_dir=staging_dir,
        import_poll_interval=0.01,
        import_timeout=5.0,
    )


@pytest.fixture
def fixed_clock():
    """Clock pinned to 2024-06-01T12:00:00Z."""
    moment = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
    return lambda: moment


@pytest.fixture
def make_pipeline(http_client, fixed_clock):
    """Build a pipeline wired to the fake remote services."""

    def _make(settings: PipelineSettings, token: str = "test-token") -> TenantIngestionPipeline:
        pipeline = TenantIngestionPipeline.from_settings(
            settings,
            token_provider=StaticTokenProvider(token),
            http_client=http_client,
        )
        pipeline.clock = fixed_clock
        pipeline.indexing_client._sleep = lambda seconds: None
        return pipeline

    return _make


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep developer environment variables out of configuration tests"""
    for name in (
        "GCP_PROJECT_ID", "GCS_BUCKET", "GCP_KEY_FILE", "DATA_DIR", "INPUT_FILE",
        "FAILURE_POLICY", "RESOURCE_NAMING", "AWAIT_IMPORT", "HTTP_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LOG_LEVEL", os.getenv("TEST_LOG_LEVEL", "WARNING"))
