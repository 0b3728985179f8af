from __future__ import annotations
import copy
from datetime import date, datetime
from enum import Enum
from typing import Any, AsyncContextManager, Protocol, runtime_checkable

COLLECTIONS = ("doctors", "patients", "appointments", "specialties")

@runtime_checkable
class RecordStorePort(Protocol):
    """CRUD over plain dict records, one collection per entity type.

    ``update`` patches may use nested paths (``"availability/absences"``);
    ``update_many`` takes full paths (``"appointments/<id>/status"``) and
    applies all of them or none. With ``expect`` (same path form) the write
    only happens if every expected value still matches.
    """
    async def list(self, collection: str, **where: Any) -> list[dict]: ...
    async def get(self, collection: str, record_id: str) -> dict | None: ...
    async def create(self, collection: str, data: dict) -> dict: ...
    async def update(self, collection: str, record_id: str, patch: dict) -> dict | None: ...
    async def update_many(self, patches: dict[str, Any], expect: dict[str, Any] | None = None) -> bool: ...
    async def delete(self, collection: str, record_id: str) -> bool: ...
    def locked(self, collection: str, record_id: str) -> AsyncContextManager[Any]: ...


def to_plain(value: Any) -> Any:
    """JSON-friendly copy: dates as ISO strings, enums as their values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


def split_path(path: str) -> list[str]:
    parts = [p for p in path.strip("/").split("/") if p]
    if not parts:
        raise ValueError(f"empty path {path!r}")
    return parts


def set_path(doc: dict, path: str | list[str], value: Any) -> dict:
    """Returns a copy of ``doc`` with ``value`` written at ``path``."""
    parts = split_path(path) if isinstance(path, str) else path
    out = copy.deepcopy(doc)
    node = out
    for key in parts[:-1]:
        nxt = node.get(key)
        if not isinstance(nxt, dict):
            nxt = {}
            node[key] = nxt
        node = nxt
    node[parts[-1]] = copy.deepcopy(value)
    return out


def get_path(doc: dict, path: str | list[str]) -> Any:
    node: Any = doc
    for key in split_path(path) if isinstance(path, str) else path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def matches(doc: dict, expected: dict) -> bool:
    """True when every ``path: value`` in ``expected`` holds in ``doc``."""
    return all(get_path(doc, path) == to_plain(value) for path, value in expected.items())


def apply_patch(doc: dict, patch: dict) -> dict:
    for path, value in patch.items():
        doc = set_path(doc, path, value)
    return doc


def group_paths(patches: dict[str, Any]) -> dict[tuple[str, str], dict]:
    """``{"appointments/a1/status": "x"}`` -> ``{("appointments", "a1"): {"status": "x"}}``"""
    grouped: dict[tuple[str, str], dict] = {}
    for path, value in patches.items():
        parts = split_path(path)
        if len(parts) < 3:
            raise ValueError(f"path {path!r} must be collection/id/field")
        collection, record_id, rest = parts[0], parts[1], "/".join(parts[2:])
        grouped.setdefault((collection, record_id), {})[rest] = value
    return grouped


def check_collection(collection: str) -> str:
    if collection not in COLLECTIONS:
        raise ValueError(f"unknown collection {collection!r}")
    return collection
