"""
Input validation utilities for the tenant ingestion pipeline.

Provides reusable validation for file paths and tenant keys, and the
slugging used to turn tenant keys into indexing-service resource ids.
"""

import hashlib
import re


class ValidationError(ValueError):
    """Raised when input validation fails."""


# Indexing-service ids: lowercase letters, digits, hyphens and underscores,
# starting with a letter or digit, at most 63 characters.
RESOURCE_ID_MAX_LENGTH = 63
PATH_MAX = 4096
_RESOURCE_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def _require_text(value: str, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must be a non-empty string")
    return value.strip()


def validate_tenant_key(tenant_key: str, field_name: str = "tenant_key") -> str:
    """
    Check a tenant key and return it without surrounding whitespace.

    Raises:
        ValidationError: If the key is blank or contains control characters

    Examples:
        >>> validate_tenant_key(" +84 901 234 567 ")
        '+84 901 234 567'
    """
    tenant_key = _require_text(tenant_key, field_name)
    if any(ord(ch) < 32 for ch in tenant_key):
        raise ValidationError(f"{field_name} contains control characters")
    return tenant_key


def resource_id_segment(value: str, max_length: int = 32) -> str:
    """
    Turn an arbitrary string into a segment usable inside a resource id.

    Lowercases, replaces runs of disallowed characters with a single
    hyphen and trims hyphens from both ends.

    Args:
        value: Source string (usually a tenant key)
        max_length: Maximum length of the returned segment

    Returns:
        The slug

    Raises:
        ValidationError: If nothing usable remains

    Examples:
        >>> resource_id_segment("+84 901-234")
        '84-901-234'
        >>> resource_id_segment("User@Example.com")
        'user-example-com'
    """
    slug = re.sub(r"[^a-z0-9_]+", "-", value.lower()).strip("-_")
    slug = slug[:max_length].rstrip("-_")
    if not slug:
        raise ValidationError(f"'{value}' has no characters usable in a resource id")
    return slug


def tenant_key_digest(tenant_key: str, length: int = 8) -> str:
    """
    Short hex digest of the exact tenant key.

    Keys whose slugs collide ("Alice" and "alice") have different digests.
    """
    return hashlib.sha256(tenant_key.encode("utf-8")).hexdigest()[:length]


def validate_resource_id(resource_id: str, field_name: str = "resource_id") -> str:
    """
    Validate a complete indexing-service resource id.

    Raises:
        ValidationError: If the id breaks the service's naming rules
    """
    if len(resource_id) > RESOURCE_ID_MAX_LENGTH:
        raise ValidationError(
            f"{field_name} exceeds maximum length of {RESOURCE_ID_MAX_LENGTH} characters"
        )
    if not _RESOURCE_ID_PATTERN.match(resource_id):
        raise ValidationError(
            f"{field_name} '{resource_id}' contains invalid characters. "
            "Only lowercase letters, digits, hyphens and underscores are allowed."
        )
    return resource_id


def validate_file_path(file_path: str, field_name: str = "file_path") -> str:
    """
    Reject batch file paths that climb out of their directory or cannot be
    opened (null bytes, longer than PATH_MAX).

    Returns:
        The path without surrounding whitespace

    Examples:
        >>> validate_file_path("data/input.json")
        'data/input.json'
    """
    file_path = _require_text(file_path, field_name)
    if ".." in re.split(r"[\\/]", file_path):
        raise ValidationError(f"{field_name} contains path traversal segments (..)")
    if "\x00" in file_path:
        raise ValidationError(f"{field_name} contains null bytes")
    if len(file_path) > PATH_MAX:
        raise ValidationError(f"{field_name} exceeds maximum length of {PATH_MAX} characters")
    return file_path
