"""
Batch file reader for message records (JSON array or JSON Lines).
"""

import json
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError

from tenant_ingest.core.exceptions import MalformedInputError
from tenant_ingest.core.models import InputRecord
from tenant_ingest.observability.logger import get_logger


logger = get_logger(__name__)

SUPPORTED_FORMATS = ("json", "jsonl")


class BatchFileReader:
    """
    Reads a batch file into InputRecords.
    """

    def __init__(self, tenant_key_field: str = "userPhone"):
        """
        Initialize file reader.

        Args:
            tenant_key_field: Name of the field holding each record's tenant key
        """
        self.tenant_key_field = tenant_key_field

    def read(self, file_path: str | Path, file_format: str = "json") -> list[InputRecord]:
        """
        Read a batch file.

        Args:
            file_path: Path to the file
            file_format: "json" (one top-level array) or "jsonl" (one object per line)

        Returns:
            Records in file order

        Raises:
            ValueError: If file format is unsupported
            MalformedInputError: If the file is missing, unreadable or not well-formed
        """
        file_format = file_format.lower()
        if file_format not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported file format: {file_format}")

        path = Path(file_path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise MalformedInputError(f"Cannot read batch file {path}: {e}") from e

        if file_format == "json":
            raw_items = self._parse_json(text, path)
        else:
            raw_items = self._parse_jsonl(text, path)

        records = list(self._to_records(raw_items))
        logger.info(f"Read {len(records)} records from {path}")
        return records

    def _parse_json(self, text: str, path: Path) -> list[tuple[str, Any]]:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedInputError(
                f"{path} is not valid JSON (line {e.lineno}, column {e.colno}): {e.msg}"
            ) from e

        if not isinstance(data, list):
            raise MalformedInputError(
                f"{path} must contain a JSON array of records, got {type(data).__name__}"
            )

        return [(f"item {idx}", item) for idx, item in enumerate(data)]

    def _parse_jsonl(self, text: str, path: Path) -> list[tuple[str, Any]]:
        items = []
        for lineno, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                items.append((f"line {lineno}", json.loads(line)))
            except json.JSONDecodeError as e:
                raise MalformedInputError(f"{path} line {lineno} is not valid JSON: {e.msg}") from e
        return items

    def _to_records(self, raw_items: Iterable[tuple[str, Any]]) -> Iterable[InputRecord]:
        for location, raw in raw_items:
            if not isinstance(raw, dict):
                raise MalformedInputError(
                    f"Record at {location} must be an object, got {type(raw).__name__}"
                )
            try:
                yield InputRecord.from_raw(raw, tenant_key_field=self.tenant_key_field)
            except ValidationError as e:
                fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
                raise MalformedInputError(
                    f"Record at {location} is missing or has invalid fields: {fields}"
                ) from e
