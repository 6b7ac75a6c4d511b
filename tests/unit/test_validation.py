"""
Unit tests for input validation utilities.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tenant_ingest.utils.validation import (
    ValidationError,
    resource_id_segment,
    tenant_key_digest,
    validate_file_path,
    validate_resource_id,
    validate_tenant_key,
)


class TestTenantKey:
    def test_valid_keys(self):
        assert validate_tenant_key("u1") == "u1"
        assert validate_tenant_key("  +84 901 234  ") == "+84 901 234"

    def test_invalid_keys(self):
        with pytest.raises(ValidationError, match="non-empty"):
            validate_tenant_key("")
        with pytest.raises(ValidationError, match="non-empty"):
            validate_tenant_key("   ")
        with pytest.raises(ValidationError, match="control characters"):
            validate_tenant_key("u1\nu2")


class TestResourceIds:
    def test_segment_slugging(self):
        assert resource_id_segment("+84 901-234") == "84-901-234"
        assert resource_id_segment("User@Example.com") == "user-example-com"
        assert resource_id_segment("a" * 50) == "a" * 32

    def test_segment_with_nothing_usable(self):
        with pytest.raises(ValidationError, match="no characters usable"):
            resource_id_segment("+++")

    @given(st.text(alphabet=st.characters(min_codepoint=32, max_codepoint=126), min_size=1))
    def test_property_segment_is_valid_id_part(self, value):
        """Property test: any usable slug forms a valid resource id"""
        try:
            slug = resource_id_segment(value)
        except ValidationError:
            return
        validate_resource_id(f"datastore-{slug}-1717243200000")

    def test_resource_id_rules(self):
        assert validate_resource_id("datastore-u1-1") == "datastore-u1-1"
        with pytest.raises(ValidationError, match="invalid characters"):
            validate_resource_id("Datastore-U1")
        with pytest.raises(ValidationError, match="maximum length"):
            validate_resource_id("d" * 64)

    def test_key_digest_separates_keys_sharing_a_slug(self):
        assert resource_id_segment("Alice") == resource_id_segment("alice")
        assert tenant_key_digest("Alice") != tenant_key_digest("alice")
        assert len(tenant_key_digest("Alice")) == 8
        assert tenant_key_digest("Alice") == tenant_key_digest("Alice")


class TestFilePath:
    def test_valid_paths(self):
        assert validate_file_path("data/input.json") == "data/input.json"
        assert validate_file_path(" /srv/data/input.json ") == "/srv/data/input.json"
        assert validate_file_path("data/v1..2/input.json") == "data/v1..2/input.json"

    def test_invalid_paths(self):
        with pytest.raises(ValidationError, match="path traversal"):
            validate_file_path("../../../etc/passwd")
        with pytest.raises(ValidationError, match="null bytes"):
            validate_file_path("data/input\x00.json")
        with pytest.raises(ValidationError, match="non-empty"):
            validate_file_path("")
