"""
Unit tests for staging document construction and staged files.

Includes property-based testing with hypothesis for id sanitization.
"""

import json
import re
from pathlib import Path

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tenant_ingest.batch.staging import (
    StagingFileBuilder,
    build_documents,
    render_jsonl,
    sanitize_document_id,
)
from tenant_ingest.config import DuplicateIdPolicy
from tenant_ingest.core.exceptions import StagingError
from tenant_ingest.core.models import InputRecord, TenantGroup


def _group(tenant_key: str, *rows: tuple[str, str]) -> TenantGroup:
    records = [
        InputRecord.from_raw({"userPhone": tenant_key, "timestamp": ts, "message": msg})
        for ts, msg in rows
    ]
    return TenantGroup(tenant_key=tenant_key, records=records)


class TestSanitizeDocumentId:
    """Tests for sanitize_document_id"""

    def test_iso_timestamp(self):
        assert sanitize_document_id("2024-01-01T00:00:00Z") == "2024-01-01T00_00_00Z"

    def test_every_disallowed_char_replaced(self):
        assert sanitize_document_id("a b.c+d/é") == "a_b_c_d__"

    @given(st.text())
    def test_property_output_charset(self, value):
        """Property test: output only holds [A-Za-z0-9_-] and keeps the length"""
        result = sanitize_document_id(value)
        assert re.fullmatch(r"[A-Za-z0-9_-]*", result)
        assert len(result) == len(value)

    @given(st.text())
    def test_property_idempotent(self, value):
        """Property test: sanitizing twice equals sanitizing once"""
        once = sanitize_document_id(value)
        assert sanitize_document_id(once) == once


class TestBuildDocuments:
    """Tests for build_documents"""

    def test_one_document_per_record(self):
        group = _group("u1", ("2024-01-01T00:00:00Z", "hi"), ("2024-01-01T00:00:01Z", "yo"))
        docs = build_documents(group)

        assert [d.id for d in docs] == ["2024-01-01T00_00_00Z", "2024-01-01T00_00_01Z"]
        assert [d.content for d in docs] == ["hi", "yo"]
        assert docs[0].structData == group.records[0].payload

    def test_duplicate_ids_later_record_overwrites(self):
        """Test that colliding ids keep one document holding the later record"""
        group = _group("u1", ("t:1", "first"), ("t 1", "second"), ("t2", "third"))
        docs = build_documents(group, DuplicateIdPolicy.OVERWRITE)

        assert [d.id for d in docs] == ["t_1", "t2"]
        assert docs[0].content == "second"

    def test_duplicate_ids_rejected(self):
        group = _group("u1", ("t:1", "first"), ("t 1", "second"))
        with pytest.raises(StagingError, match="Duplicate document id 't_1'"):
            build_documents(group, DuplicateIdPolicy.REJECT)

    def test_render_jsonl_trailing_newline(self):
        docs = build_documents(_group("u1", ("t1", "a"), ("t2", "b")))
        text = render_jsonl(docs)
        assert text.endswith("\n")
        assert text.count("\n") == 2


class TestStagingFileBuilder:
    """Tests for StagingFileBuilder"""

    def test_staged_file_contents(self, staging_dir):
        group = _group("u1", ("2024-01-01T00:00:00Z", "hi"), ("2024-01-01T00:00:01Z", "yo"))
        builder = StagingFileBuilder(staging_dir, run_id="run1")

        with builder.build(group) as staged:
            assert staged.document_count == 2
            lines = staged.path.read_text(encoding="utf-8").splitlines()
            assert len(lines) == 2
            for line, record in zip(lines, group.records):
                doc = json.loads(line)
                assert set(doc) == {"id", "content", "structData"}
                assert doc["content"] == record.message
                assert doc["structData"] == record.payload

        assert not staged.path.exists()

    def test_path_unique_per_run(self, staging_dir):
        first = StagingFileBuilder(staging_dir, run_id="run1").path_for("+84 90")
        second = StagingFileBuilder(staging_dir, run_id="run2").path_for("+84 90")
        assert first != second
        assert re.fullmatch(r"run1-84-90-[0-9a-f]{8}-messages\.jsonl", first.name)

    def test_path_distinct_for_keys_sharing_a_slug(self, staging_dir):
        builder = StagingFileBuilder(staging_dir, run_id="run1")
        assert builder.path_for("Alice") != builder.path_for("alice")

    def test_file_removed_when_block_raises(self, staging_dir):
        builder = StagingFileBuilder(staging_dir, run_id="run1")

        with pytest.raises(RuntimeError):
            with builder.build(_group("u1", ("t1", "a"))) as staged:
                assert staged.path.exists()
                raise RuntimeError("upload exploded")

        assert not staged.path.exists()
        assert list(staging_dir.iterdir()) == []

    def test_write_failure_raises_staging_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        builder = StagingFileBuilder(blocker, run_id="run1")

        with pytest.raises(StagingError, match="Cannot write staging file"):
            with builder.build(_group("u1", ("t1", "a"))):
                pass

    def test_delete_failure_raises_staging_error(self, staging_dir, monkeypatch):
        builder = StagingFileBuilder(staging_dir, run_id="run1")

        def refuse(self, missing_ok=False):
            raise PermissionError("read-only staging dir")

        with pytest.raises(StagingError, match="Cannot remove staging file"):
            with builder.build(_group("u1", ("t1", "a"))):
                monkeypatch.setattr(Path, "unlink", refuse)

    def test_delete_failure_does_not_mask_block_error(self, staging_dir, monkeypatch):
        builder = StagingFileBuilder(staging_dir, run_id="run1")

        def refuse(self, missing_ok=False):
            raise PermissionError("read-only staging dir")

        with pytest.raises(RuntimeError, match="upload exploded"):
            with builder.build(_group("u1", ("t1", "a"))):
                monkeypatch.setattr(Path, "unlink", refuse)
                raise RuntimeError("upload exploded")

    def test_staging_error_is_os_error(self):
        assert issubclass(StagingError, OSError)
