"""Schema helpers for the application settings file."""

from __future__ import annotations

import os
from copy import deepcopy
from typing import Any

from jsonschema import Draft202012Validator

from ..config import DEFAULT_API_BASE_URL, DEFAULT_REQUEST_TIMEOUT_SEC, PAGE_SIZE

SETTINGS_SCHEMA: dict[str, Any] = {
    "$id": "usermirror/settings.schema.json",
    "type": "object",
    "required": ["schema", "api", "storage", "paging"],
    "properties": {
        "schema": {"const": "usermirror/settings@1"},
        "api": {
            "type": "object",
            "required": ["base_url", "timeout_sec"],
            "properties": {
                "base_url": {"type": "string", "pattern": "^https?://"},
                "timeout_sec": {"type": "number", "exclusiveMinimum": 0},
            },
            "additionalProperties": True,
        },
        "storage": {
            "type": "object",
            "properties": {
                "db_path": {"type": ["string", "null"]},
            },
            "additionalProperties": True,
        },
        "paging": {
            "type": "object",
            "required": ["page_size"],
            "properties": {
                "page_size": {"type": "integer", "minimum": 1, "maximum": 500},
            },
            "additionalProperties": True,
        },
    },
    "additionalProperties": True,
}

DEFAULT_SETTINGS: dict[str, Any] = {
    "schema": "usermirror/settings@1",
    "api": {
        "base_url": DEFAULT_API_BASE_URL,
        "timeout_sec": DEFAULT_REQUEST_TIMEOUT_SEC,
    },
    "storage": {
        "db_path": None,
    },
    "paging": {
        "page_size": PAGE_SIZE,
    },
}

_SECTIONS = ("api", "storage", "paging")

_validator = Draft202012Validator(SETTINGS_SCHEMA)

def merge_with_defaults(data: dict[str, Any] | None) -> dict[str, Any]:
    """Merge *data* with :data:`DEFAULT_SETTINGS` and validate the result."""

    merged = deepcopy(DEFAULT_SETTINGS)
    if data:
        for key, value in data.items():
            if key in _SECTIONS and isinstance(value, dict):
                target = merged.setdefault(key, {})
                for sub_key, sub_value in value.items():
                    target[sub_key] = sub_value
                continue
            merged[key] = value

    db_path = merged["storage"].get("db_path")
    if db_path in {None, ""}:
        merged["storage"]["db_path"] = None
    elif not isinstance(db_path, str):
        try:
            merged["storage"]["db_path"] = os.fspath(db_path)
        except TypeError:
            pass
    _validator.validate(merged)
    return merged


__all__ = ["DEFAULT_SETTINGS", "SETTINGS_SCHEMA", "merge_with_defaults"]
