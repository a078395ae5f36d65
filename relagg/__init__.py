"""relagg public API with lazy exports.

Importing the package stays cheap: the query composer, execution facades and
hydrators are loaded on first attribute access.

Exposes:
- configure, get_config, reset_config, AggregationConfig
- Lazy: AggregatedQuery, Page, AggregatedQueryMixin
- Lazy: belongs_to, has_one, has_many, RelationKind, RelationDescriptor
- Lazy: Hydrator, GenericHydrator, EntityHydrator, register_hydrator
- Lazy: SessionExecutor, AsyncSessionExecutor, get_generator, register_generator
- errors (module) and every exception class by name
"""
from __future__ import annotations

from .config import AggregationConfig, configure, get_config, reset_config

_LAZY = {
    'AggregatedQuery': '.query',
    'Page': '.query',
    'AggregatedQueryMixin': '.mixins',
    'belongs_to': '.core.relations',
    'has_one': '.core.relations',
    'has_many': '.core.relations',
    'RelationKind': '.core.relations',
    'RelationDescriptor': '.core.relations',
    'RelationMetadata': '.core.relations',
    'RelationResolver': '.core.relations',
    'RequestMode': '.core.requests',
    'Hydrator': '.core.hydration',
    'GenericHydrator': '.core.hydration',
    'EntityHydrator': '.core.hydration',
    'register_hydrator': '.core.hydration',
    'SessionExecutor': '.execution',
    'AsyncSessionExecutor': '.execution',
    'SqlGenerator': '.adapters',
    'get_generator': '.adapters',
    'register_generator': '.adapters',
}


def __getattr__(name: str):  # PEP 562 lazy exports
    import importlib as _importlib
    if name == 'errors':
        return _importlib.import_module(__name__ + '.errors')
    module = _LAZY.get(name)
    if module is not None:
        return getattr(_importlib.import_module(module, __name__), name)
    _errors = _importlib.import_module(__name__ + '.errors')
    if name in _errors.__all__:
        return getattr(_errors, name)
    raise AttributeError(name)


__all__ = [
    'AggregationConfig', 'configure', 'get_config', 'reset_config',
    *_LAZY.keys(),
    'errors',
]
