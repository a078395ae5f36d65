from __future__ import annotations

import importlib
import json
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Type

from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.sql.sqltypes import Boolean, Date, DateTime

from ..errors import InvalidHydrator
from .relations import mapper_for
from .requests import RelationRequest, RequestMode

_MISSING = object()


def decode_json(value: Any) -> Tuple[bool, Any]:
    """Decode JSON text. Returns ``(ok, value)``; non-text values pass through as ok."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        value = bytes(value).decode('utf-8')
    if not isinstance(value, str):
        return True, value
    try:
        return True, json.loads(value)
    except ValueError:
        return False, value


def as_count(value: Any) -> Any:
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


class Hydrator(ABC):
    """Hydration contract: raw rows (with embedded JSON text) -> output records."""

    @abstractmethod
    def hydrate(self, rows: Iterable[Mapping[str, Any]], requests: Sequence[RelationRequest], root_type: Any = None) -> List[Any]:
        ...


class GenericHydrator(Hydrator):
    """Rows become dicts; relation keys are decoded from JSON.

    Collections never come back as ``None``: a null or undecodable value is
    replaced by ``[]``. Single objects that fail to decode pass through as-is.
    """

    def hydrate(self, rows, requests, root_type=None):
        out: List[Dict[str, Any]] = []
        for row in rows:
            record = dict(row)
            for req in requests:
                key = req.output_key
                if key not in record:
                    continue
                if req.mode is RequestMode.COUNT:
                    record[key] = as_count(record[key])
                    continue
                ok, decoded = decode_json(record[key])
                if req.mode is RequestMode.COLLECTION and (not ok or decoded is None):
                    decoded = []
                record[key] = decoded
            out.append(record)
        return out


class EntityHydrator(Hydrator):
    """Rows become mapped entity instances with relations attached.

    Root and related instances are built without calling ``__init__`` and
    without a session; values are stored as committed state so reading a
    relation never triggers a lazy load. Related handles that are bare table
    names yield plain dicts.
    """

    def hydrate(self, rows, requests, root_type=None):
        keys = {req.output_key for req in requests}
        out: List[Any] = []
        for row in rows:
            row = dict(row)
            inst = self.build(root_type, {k: v for k, v in row.items() if k not in keys})
            for req in requests:
                raw = row.get(req.output_key, None)
                if req.mode is RequestMode.COUNT:
                    self._assign(inst, req.output_key, as_count(raw))
                    continue
                _, decoded = decode_json(raw)
                related = req.metadata.related_type
                if req.mode is RequestMode.SINGLE:
                    value = self.build(related, decoded) if isinstance(decoded, dict) else None
                else:
                    items = decoded if isinstance(decoded, list) else []
                    value = [self.build(related, item) for item in items if isinstance(item, dict)]
                self._assign(inst, req.name, value)
            out.append(inst)
        return out

    def build(self, entity: Any, attrs: Mapping[str, Any]) -> Any:
        mapper = mapper_for(entity)
        if mapper is None:
            return dict(attrs)
        inst = mapper.class_manager.new_instance()
        columns = _column_attributes(mapper)
        for name, value in attrs.items():
            target = columns.get(name)
            if target is None:
                setattr(inst, name, value)
                continue
            key, col_type = target
            set_committed_value(inst, key, coerce_value(col_type, value))
        return inst

    @staticmethod
    def _assign(inst: Any, name: str, value: Any) -> None:
        if isinstance(inst, dict):
            inst[name] = value
            return
        mapper = mapper_for(type(inst))
        if mapper is not None and name in mapper.relationships:
            set_committed_value(inst, name, value)
        else:
            setattr(inst, name, value)


def _column_attributes(mapper) -> Dict[str, Tuple[str, Any]]:
    """Physical column name -> (attribute key, column type)."""
    out: Dict[str, Tuple[str, Any]] = {}
    for prop in mapper.column_attrs:
        for col in prop.columns:
            name = getattr(col, 'name', None)
            if name and name not in out:
                out[name] = (prop.key, getattr(col, 'type', None))
    return out


def coerce_value(col_type: Any, value: Any) -> Any:
    """Restore Python types that JSON and raw SQL text results lose."""
    if value is None or col_type is None:
        return value
    if isinstance(col_type, DateTime) and isinstance(value, str):
        s = value.replace('Z', '+00:00') if value.endswith('Z') else value
        try:
            dv = datetime.fromisoformat(s)
        except ValueError:
            return value
        if not getattr(col_type, 'timezone', False) and dv.tzinfo is not None:
            dv = dv.replace(tzinfo=None)
        return dv
    if isinstance(col_type, Date) and isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return value
    if isinstance(col_type, Boolean) and isinstance(value, int) and not isinstance(value, bool):
        return bool(value)
    return value


HYDRATORS: Dict[str, Type[Hydrator]] = {
    'generic': GenericHydrator,
    'array': GenericHydrator,
    'typed': EntityHydrator,
    'entity': EntityHydrator,
}


def register_hydrator(name: str, hydrator: Type[Hydrator]) -> None:
    _ensure_conforming(hydrator, name)
    HYDRATORS[name.strip().lower()] = hydrator


def resolve_hydrator(handle: Any) -> Hydrator:
    """Resolve a hydrator from a registered name, a dotted path, a class or an instance."""
    label = handle
    if isinstance(handle, str):
        key = handle.strip().lower()
        if key in HYDRATORS:
            return HYDRATORS[key]()
        handle = _import_string(handle)
    if isinstance(handle, type):
        _ensure_conforming(handle, label)
        handle = handle()
    if not callable(getattr(handle, 'hydrate', None)):
        raise InvalidHydrator(f"Hydrator '{label}' must implement hydrate(rows, requests, root_type).")
    return handle


def _ensure_conforming(cls: Any, label: Any) -> None:
    if not isinstance(cls, type):
        raise InvalidHydrator(f"Hydrator '{label}' is not a class.")
    if issubclass(cls, Hydrator):
        return
    if not callable(getattr(cls, 'hydrate', None)):
        raise InvalidHydrator(f"Hydrator '{label}' must implement hydrate(rows, requests, root_type).")


def _import_string(path: str) -> Any:
    module_name, sep, attr = path.partition(':')
    if not sep:
        module_name, _, attr = path.rpartition('.')
    if not module_name or not attr:
        raise InvalidHydrator(f"Hydrator '{path}' is not registered and is not an import path.")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise InvalidHydrator(f"Hydrator '{path}' could not be imported: {e}") from e
    try:
        return getattr(module, attr)
    except AttributeError:
        raise InvalidHydrator(f"Hydrator '{path}' does not exist.") from None


__all__ = [
    'Hydrator',
    'GenericHydrator',
    'EntityHydrator',
    'HYDRATORS',
    'decode_json',
    'as_count',
    'coerce_value',
    'register_hydrator',
    'resolve_hydrator',
]
