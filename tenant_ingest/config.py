"""
Pipeline configuration management.

Settings are resolved from, in increasing precedence:
defaults, an optional YAML file, and environment variables
(a local ``.env`` file is loaded first with python-dotenv).

Expected YAML format:
```yaml
pipeline:
  project_id: my-gcp-project
  bucket: my-staging-bucket
  tenant_key_field: userPhone
  failure_policy: best_effort
  resource_naming: idempotent
```
"""

import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError


class FailurePolicy(str, Enum):
    """What the orchestrator does when one tenant's run fails."""

    ABORT = "abort"
    BEST_EFFORT = "best_effort"


class ResourceNaming(str, Enum):
    """How index and search application ids are derived."""

    TIMESTAMP = "timestamp"
    IDEMPOTENT = "idempotent"


class DuplicateIdPolicy(str, Enum):
    """What staging does with records whose document ids collide."""

    OVERWRITE = "overwrite"
    REJECT = "reject"


class PipelineSettings(BaseModel):
    """
    Settings for one pipeline process.

    Attributes:
        project_id: Google Cloud project hosting the indexing service
        location: Indexing service location
        collection: Indexing service collection
        bucket: Object-store bucket receiving staged files
        key_file: Service account key file (None: application default credentials)
        data_dir: Directory holding batch input
        input_file: Batch input file name inside data_dir
        tenant_key_field: Input field holding the tenant key
        staging_dir: Directory for staged JSONL files
        staged_object_name: Object name of the staged file under the tenant prefix
        failure_policy: Abort the batch or continue past a failed tenant
        resource_naming: Timestamp-suffixed or idempotent resource ids
        duplicate_ids: Overwrite or reject colliding document ids
        await_import: Poll each import job until it finishes
        import_poll_interval: Seconds between import job polls
        import_timeout: Seconds to wait for an import job before failing
        http_timeout: Seconds before a remote call times out (None: never)
        discovery_api_url: Indexing service base URL
        storage_api_url: Object store base URL
    """

    project_id: str = Field(..., min_length=1)
    location: str = "global"
    collection: str = "default_collection"
    bucket: str = Field(..., min_length=1)
    key_file: str | None = None
    data_dir: Path = Path("data")
    input_file: str = "input.json"
    tenant_key_field: str = "userPhone"
    staging_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))
    staged_object_name: str = "messages.jsonl"
    failure_policy: FailurePolicy = FailurePolicy.ABORT
    resource_naming: ResourceNaming = ResourceNaming.TIMESTAMP
    duplicate_ids: DuplicateIdPolicy = DuplicateIdPolicy.OVERWRITE
    await_import: bool = False
    import_poll_interval: float = Field(5.0, gt=0)
    import_timeout: float = Field(600.0, gt=0)
    http_timeout: float | None = Field(None, gt=0)
    discovery_api_url: str = "https://discoveryengine.googleapis.com"
    storage_api_url: str = "https://storage.googleapis.com"

    @property
    def input_path(self) -> Path:
        return self.data_dir / self.input_file


# Environment variable -> settings key
ENV_VARS = {
    "GCP_PROJECT_ID": "project_id",
    "GCP_LOCATION": "location",
    "DISCOVERY_COLLECTION": "collection",
    "GCS_BUCKET": "bucket",
    "GCP_KEY_FILE": "key_file",
    "DATA_DIR": "data_dir",
    "INPUT_FILE": "input_file",
    "TENANT_KEY_FIELD": "tenant_key_field",
    "STAGING_DIR": "staging_dir",
    "STAGED_OBJECT_NAME": "staged_object_name",
    "FAILURE_POLICY": "failure_policy",
    "RESOURCE_NAMING": "resource_naming",
    "DUPLICATE_IDS": "duplicate_ids",
    "AWAIT_IMPORT": "await_import",
    "IMPORT_POLL_INTERVAL": "import_poll_interval",
    "IMPORT_TIMEOUT": "import_timeout",
    "HTTP_TIMEOUT": "http_timeout",
    "DISCOVERY_API_URL": "discovery_api_url",
    "STORAGE_API_URL": "storage_api_url",
}


def _load_yaml_section(config_path: str | Path) -> dict[str, Any]:
    """
    Read the ``pipeline`` section of a YAML configuration file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file has no ``pipeline`` mapping
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline configuration file not found: {config_path}")

    with open(path) as f:
        config = yaml.safe_load(f)

    if not config or "pipeline" not in config:
        raise ValueError("Configuration file must contain 'pipeline' section")

    section = config["pipeline"]
    if not isinstance(section, dict):
        raise ValueError("'pipeline' section must be a mapping")

    unknown = set(section) - set(PipelineSettings.model_fields)
    if unknown:
        raise ValueError(f"Unknown pipeline settings: {', '.join(sorted(unknown))}")

    return section


def _load_env(environ: dict[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for env_name, key in ENV_VARS.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        values[key] = value
    return values


def load_settings(
    config_path: str | Path | None = None,
    environ: dict[str, str] | None = None,
    **overrides: Any,
) -> PipelineSettings:
    """
    Resolve pipeline settings.

    Args:
        config_path: Optional YAML configuration file
        environ: Environment mapping (defaults to os.environ after loading .env)
        **overrides: Explicit values, taking precedence over everything else

    Returns:
        PipelineSettings

    Raises:
        ValueError: If a required setting is missing or a value is invalid
    """
    if environ is None:
        load_dotenv()
        environ = dict(os.environ)

    values: dict[str, Any] = {}
    if config_path is not None:
        values.update(_load_yaml_section(config_path))
    values.update(_load_env(environ))
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return PipelineSettings(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValueError(f"Invalid pipeline settings: {problems}") from e
