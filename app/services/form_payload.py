"""
Normalise property write requests.

Admin clients send either JSON or multipart forms. In forms, nested objects
arrive as JSON strings (``coordinates={"latitude": ...}``) or as bracketed
keys (``coordinates[latitude]=...``), and ``features`` may be repeated, a JSON
array, or a comma-separated string.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from starlette.datastructures import FormData, UploadFile

from app.core.errors import ValidationError

_NESTED_KEY = re.compile(r"^(\w+)(?:\[(\w+)\]|\.(\w+))$")
_OBJECT_FIELDS = ("coordinates", "utilities", "contactInfo")


@dataclass
class WriteRequest:
    payload: dict[str, Any] = field(default_factory=dict)
    files: list[UploadFile] = field(default_factory=list)
    replace_images: bool = False
    images_to_delete: list[str] = field(default_factory=list)


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)]


def parse_features(values: list[str]) -> list[str]:
    if len(values) != 1:
        return values
    raw = values[0].strip()
    try:
        decoded = json.loads(raw)
    except ValueError:
        return [f.strip() for f in raw.split(",") if f.strip()]
    if isinstance(decoded, list):
        return [str(v) for v in decoded]
    return [str(decoded)]


def _decode_object(name: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError(errors=[{"field": name, "message": f"{name} must be valid JSON"}])


def from_form(form: FormData) -> WriteRequest:
    req = WriteRequest()
    nested: dict[str, dict[str, Any]] = {}

    for key in dict.fromkeys(form.keys()):
        values = form.getlist(key)

        if key == "images":
            req.files.extend(v for v in values if isinstance(v, UploadFile) and v.filename)
            continue

        strings = [v for v in values if isinstance(v, str)]
        if key == "replaceImages":
            req.replace_images = any(_truthy(v) for v in strings)
            continue
        if key == "imagesToDelete":
            for v in strings:
                req.images_to_delete.extend(parse_features([v]) if v.startswith("[") else [v])
            continue
        if key == "features":
            req.payload["features"] = parse_features(strings)
            continue

        m = _NESTED_KEY.match(key)
        if m:
            parent, child = m.group(1), m.group(2) or m.group(3)
            if strings and strings[-1] != "":
                nested.setdefault(parent, {})[child] = strings[-1]
            continue

        if not strings or strings[-1] == "":
            # blank form inputs mean "not supplied"
            continue
        value = strings[-1]
        if key in _OBJECT_FIELDS:
            req.payload[key] = _decode_object(key, value)
        else:
            req.payload[key] = value

    for parent, children in nested.items():
        existing = req.payload.get(parent)
        req.payload[parent] = {**existing, **children} if isinstance(existing, dict) else children

    return req


def from_json(body: Any) -> WriteRequest:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    payload = dict(body)
    req = WriteRequest()
    req.replace_images = _truthy(payload.pop("replaceImages", False))
    req.images_to_delete = _as_list(payload.pop("imagesToDelete", None))
    if isinstance(payload.get("features"), str):
        payload["features"] = parse_features([payload["features"]])
    req.payload = payload
    return req
