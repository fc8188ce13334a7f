"""JSON schema validation for lockfile documents.

The packaged schema lives at ``bundlelock/schemas/lockfile.schema.json``.
``JsonSchemaValidator`` validates any JSON document against a schema file
using ``jsonschema`` (Draft 2020-12), reporting every error with a
JSONPath-like location so results are deterministic and readable.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Protocol

from jsonschema import Draft202012Validator

import bundlelock

LOCKFILE_SCHEMA_PATH = Path(bundlelock.__file__).parent / "schemas" / "lockfile.schema.json"


@dataclass
class SchemaValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class SchemaValidator(Protocol):
    """Validates a JSON document against a schema reference."""

    async def validate(self, instance: Any, schema_ref: Path) -> SchemaValidationResult: ...


def _path_to_str(path: Iterable[Any]) -> str:
    parts = ["$"]
    for part in path:
        if isinstance(part, int):
            parts.append(f"[{part}]")
        else:
            parts.append(f".{part}")
    return "".join(parts)


class JsonSchemaValidator:
    """``SchemaValidator`` backed by ``jsonschema``; schemas cached by path."""

    def __init__(self) -> None:
        self._validators: dict[str, Draft202012Validator] = {}

    def _validator(self, schema_ref: Path) -> Draft202012Validator:
        key = str(schema_ref)
        cached = self._validators.get(key)
        if cached is None:
            schema = json.loads(Path(schema_ref).read_text(encoding="utf-8"))
            Draft202012Validator.check_schema(schema)
            cached = Draft202012Validator(schema)
            self._validators[key] = cached
        return cached

    def validate_sync(self, instance: Any, schema_ref: Path) -> SchemaValidationResult:
        validator = self._validator(schema_ref)
        errors = sorted(
            validator.iter_errors(instance),
            key=lambda err: (_path_to_str(err.absolute_path), err.message),
        )
        messages = [f"{_path_to_str(err.absolute_path)}: {err.message}" for err in errors]
        return SchemaValidationResult(valid=not messages, errors=messages)

    async def validate(self, instance: Any, schema_ref: Path) -> SchemaValidationResult:
        return self.validate_sync(instance, schema_ref)
