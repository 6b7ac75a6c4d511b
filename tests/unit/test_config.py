"""
Unit tests for pipeline configuration loading.
"""

from pathlib import Path

import pytest

from tenant_ingest.config import (
    DuplicateIdPolicy,
    FailurePolicy,
    ResourceNaming,
    load_settings,
)


BASE_ENV = {"GCP_PROJECT_ID": "env-project", "GCS_BUCKET": "env-bucket"}


class TestLoadSettings:
    """Tests for load_settings"""

    def test_defaults(self):
        settings = load_settings(environ=BASE_ENV)

        assert settings.project_id == "env-project"
        assert settings.bucket == "env-bucket"
        assert settings.location == "global"
        assert settings.tenant_key_field == "userPhone"
        assert settings.failure_policy == FailurePolicy.ABORT
        assert settings.resource_naming == ResourceNaming.TIMESTAMP
        assert settings.duplicate_ids == DuplicateIdPolicy.OVERWRITE
        assert settings.await_import is False
        assert settings.http_timeout is None
        assert settings.input_path == Path("data") / "input.json"

    def test_missing_required_settings(self):
        with pytest.raises(ValueError) as exc_info:
            load_settings(environ={})
        assert "project_id" in str(exc_info.value)
        assert "bucket" in str(exc_info.value)

    def test_env_values_are_coerced(self):
        settings = load_settings(environ={
            **BASE_ENV,
            "FAILURE_POLICY": "best_effort",
            "AWAIT_IMPORT": "true",
            "HTTP_TIMEOUT": "30",
            "DATA_DIR": "/srv/batches",
        })

        assert settings.failure_policy == FailurePolicy.BEST_EFFORT
        assert settings.await_import is True
        assert settings.http_timeout == 30.0
        assert settings.input_path == Path("/srv/batches/input.json")

    def test_invalid_enum_value(self):
        with pytest.raises(ValueError, match="failure_policy"):
            load_settings(environ={**BASE_ENV, "FAILURE_POLICY": "retry_forever"})

    def test_yaml_then_env_then_overrides(self, tmp_path):
        config = tmp_path / "pipeline.yaml"
        config.write_text(
            "pipeline:\n"
            "  project_id: yaml-project\n"
            "  bucket: yaml-bucket\n"
            "  location: eu\n"
            "  resource_naming: idempotent\n",
            encoding="utf-8",
        )

        settings = load_settings(
            config_path=config,
            environ={"GCS_BUCKET": "env-bucket"},
            location="us",
        )

        assert settings.project_id == "yaml-project"
        assert settings.bucket == "env-bucket"
        assert settings.location == "us"
        assert settings.resource_naming == ResourceNaming.IDEMPOTENT

    def test_yaml_missing_section(self, tmp_path):
        config = tmp_path / "pipeline.yaml"
        config.write_text("rules: {}\n", encoding="utf-8")

        with pytest.raises(ValueError, match="'pipeline' section"):
            load_settings(config_path=config, environ=BASE_ENV)

    def test_yaml_unknown_key(self, tmp_path):
        config = tmp_path / "pipeline.yaml"
        config.write_text("pipeline:\n  retries: 3\n", encoding="utf-8")

        with pytest.raises(ValueError, match="retries"):
            load_settings(config_path=config, environ=BASE_ENV)

    def test_yaml_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(config_path=tmp_path / "absent.yaml", environ=BASE_ENV)
