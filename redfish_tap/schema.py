from __future__ import annotations

from functools import lru_cache
from importlib import resources
import json
import sys
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

SCHEMA_FILE = "schemas/redfish-resources.schema.json"


def _get_schema_path() -> Path:
    """Get the path to the schema file, handling frozen executables."""
    if getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"):
        return Path(sys._MEIPASS) / "redfish_tap" / SCHEMA_FILE
    return resources.files("redfish_tap").joinpath(SCHEMA_FILE)


@lru_cache(maxsize=1)
def load_schema() -> dict[str, Any]:
    return json.loads(_get_schema_path().read_text(encoding="utf-8"))


@lru_cache(maxsize=None)
def get_validator(kind: str) -> Draft202012Validator:
    schema = load_schema()
    if kind not in schema["$defs"]:
        raise KeyError(f"Unknown resource kind: {kind}")
    # Keep $defs so the "$ref": "#/$defs/..." pointers resolve
    resource_schema = {"$defs": schema["$defs"], **schema["$defs"][kind]}
    return Draft202012Validator(schema=resource_schema)


def validate_resource(kind: str, payload: Any) -> list[str]:
    """Return human readable shape problems for a raw controller resource."""
    validator = get_validator(kind)
    errors = sorted(validator.iter_errors(payload), key=lambda e: [str(part) for part in e.path])
    return [
        f"{'/'.join(str(part) for part in error.path) or '<root>'}: {error.message}"
        for error in errors
    ]
