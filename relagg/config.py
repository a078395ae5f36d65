"""Runtime options for aggregated queries.

A process-wide active config is copied into every query at construction, the
same way the active schema is published by the package root. Queries may also
receive an explicit :class:`AggregationConfig`.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple

__all__ = [
    'AggregationConfig',
    'configure',
    'get_config',
    'reset_config',
]

_TRUTHY = {'1', 'true', 'yes', 'on', 'y', 't'}


@dataclass(frozen=True)
class AggregationConfig:
    default_hydrator: str = 'generic'
    strict_mode: bool = False
    max_relations: int = 15
    max_limit: int = 500
    strict_limit_validation: bool = False
    log_fallbacks: bool = True
    supported_dialects: Tuple[str, ...] = ('mysql', 'pgsql', 'sqlite')
    # Advisory only; not enforced at runtime.
    minimum_versions: Mapping[str, str] = field(
        default_factory=lambda: {'mysql': '8.0', 'pgsql': '12.0', 'sqlite': '3.38'}
    )
    # Reserved, unused.
    cache_enabled: bool = False
    cache_ttl: int = 3600
    # table name -> ordered column names, consulted before live introspection
    column_cache: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> 'AggregationConfig':
        """Build a config from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            if key not in known:
                continue
            kwargs[key] = _normalize(key, value)
        return cls(**kwargs)

    @classmethod
    def from_env(cls, prefix: str = 'RELAGG_', environ: Mapping[str, str] | None = None) -> 'AggregationConfig':
        """Build a config from ``<prefix><OPTION>`` environment variables.

        Booleans accept 1/true/yes/on, integers are parsed with ``int`` and
        ``SUPPORTED_DIALECTS`` is a comma-separated list. Structured options
        (``minimum_versions``, ``column_cache``) are not read from the environment.
        """
        env = os.environ if environ is None else environ
        data: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name in ('minimum_versions', 'column_cache'):
                continue
            raw = env.get(prefix + f.name.upper())
            if raw is None:
                continue
            if f.name == 'supported_dialects':
                data[f.name] = [p.strip() for p in raw.split(',') if p.strip()]
            elif f.type in ('bool',):
                data[f.name] = raw.strip().lower() in _TRUTHY
            elif f.type in ('int',):
                data[f.name] = int(raw)
            else:
                data[f.name] = raw.strip()
        return cls.from_mapping(data)

    def with_overrides(self, **overrides: Any) -> 'AggregationConfig':
        return replace(self, **{k: _normalize(k, v) for k, v in overrides.items()})

    def columns_for(self, table: str) -> Optional[list[str]]:
        cols = self.column_cache.get(table)
        if not cols:
            return None
        return list(cols)


def _normalize(key: str, value: Any) -> Any:
    if key == 'supported_dialects':
        return tuple(str(v).lower() for v in (value or ()))
    if key == 'column_cache':
        return {str(t): tuple(cols) for t, cols in (value or {}).items()}
    if key == 'minimum_versions':
        return dict(value or {})
    return value


_ACTIVE_CONFIG: AggregationConfig = AggregationConfig()


def configure(config: AggregationConfig | None = None, **overrides: Any) -> AggregationConfig:
    """Replace the active config, or update it with keyword overrides."""
    global _ACTIVE_CONFIG
    base = config if config is not None else _ACTIVE_CONFIG
    _ACTIVE_CONFIG = base.with_overrides(**overrides) if overrides else base
    return _ACTIVE_CONFIG


def get_config() -> AggregationConfig:
    return _ACTIVE_CONFIG


def reset_config() -> AggregationConfig:
    global _ACTIVE_CONFIG
    _ACTIVE_CONFIG = AggregationConfig()
    return _ACTIVE_CONFIG
