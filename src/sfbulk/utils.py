from __future__ import annotations

import dataclasses
import os
import re
from enum import Enum
from typing import Any, Dict, Type, TypeVar

from .exceptions import DecodeError

T = TypeVar("T")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def ensure_dir(path: str) -> None:
    if path:
        os.makedirs(path, exist_ok=True)


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


def from_payload(cls: Type[T], payload: Dict[str, Any]) -> T:
    """Build dataclass ``cls`` from a camelCase JSON object; unknown keys are dropped."""
    if not isinstance(payload, dict):
        raise DecodeError(f"expected a JSON object, got {type(payload).__name__}")
    names = {f.name for f in dataclasses.fields(cls)}  # type: ignore[arg-type]
    kwargs = {}
    for key, value in payload.items():
        attr = camel_to_snake(key)
        if attr in names and value is not None:
            kwargs[attr] = value
    return cls(**kwargs)


def to_payload(obj: Any) -> Dict[str, Any]:
    """Render a dataclass as a camelCase JSON object, omitting empty values."""
    out: Dict[str, Any] = {}
    for f in dataclasses.fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, Enum):
            value = value.value
        if value in ("", None):
            continue
        out[snake_to_camel(f.name)] = value
    return out


def stream_to_file(response: Any, target_path: str, chunk_size: int = 1024 * 1024) -> int:
    """Write a streamed response body to ``target_path`` unchanged. Returns bytes written."""
    ensure_dir(os.path.dirname(target_path))
    written = 0
    with open(target_path, "wb") as f:
        for chunk in response.iter_content(chunk_size=chunk_size):
            if chunk:
                f.write(chunk)
                written += len(chunk)
    return written
