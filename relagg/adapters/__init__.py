from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Type

from ..errors import UnsupportedDialect
from .base import SqlGenerator
from .mysql import MySQLGenerator
from .postgres import PostgresGenerator
from .sqlite import SQLiteGenerator

logger = logging.getLogger(__name__)

# Canonical dialect identifier -> generator class
GENERATORS: Dict[str, Type[SqlGenerator]] = {
    'mysql': MySQLGenerator,
    'pgsql': PostgresGenerator,
    'sqlite': SQLiteGenerator,
}

# Driver / SQLAlchemy dialect names accepted for each canonical identifier
_ALIASES: Dict[str, str] = {
    'mysql': 'mysql',
    'mariadb': 'mysql',
    'pgsql': 'pgsql',
    'postgres': 'pgsql',
    'postgresql': 'pgsql',
    'sqlite': 'sqlite',
}


def canonical_dialect(dialect_name: str) -> Optional[str]:
    """Map ``'postgresql+asyncpg'``, ``'mariadb'`` and friends to a canonical id."""
    dn = (dialect_name or '').strip().lower()
    base = dn.split('+', 1)[0]
    return _ALIASES.get(base)


def dialect_name_of(bind: Any) -> str:
    """Dialect name of a (sync or async) Engine, Connection or Session."""
    if hasattr(bind, 'sync_engine'):
        return bind.sync_engine.dialect.name
    if hasattr(bind, 'get_bind') and not hasattr(bind, 'dialect'):
        bind = bind.get_bind()
        if hasattr(bind, 'sync_engine'):
            return bind.sync_engine.dialect.name
    return bind.dialect.name


def get_generator(dialect_name: str, base_alias: str = 'base', supported: Iterable[str] | None = None) -> SqlGenerator:
    canonical = canonical_dialect(dialect_name)
    if canonical is None:
        raise UnsupportedDialect(f"Database dialect '{dialect_name}' is not supported.")
    if supported is not None:
        allowed = {canonical_dialect(s) or s for s in supported}
        if canonical not in allowed:
            raise UnsupportedDialect(
                f"Database dialect '{dialect_name}' is disabled by configuration (supported: {', '.join(sorted(allowed))})."
            )
    return GENERATORS[canonical](base_alias)


def register_generator(name: str, cls: Type[SqlGenerator], *aliases: str) -> None:
    """Add a dialect without touching the query composer."""
    GENERATORS[name] = cls
    _ALIASES[name] = name
    for a in aliases:
        _ALIASES[a.lower()] = name
    logger.info("relagg: registered SQL generator %s for %s", cls.__name__, ', '.join((name,) + aliases))


__all__ = [
    'SqlGenerator',
    'MySQLGenerator',
    'PostgresGenerator',
    'SQLiteGenerator',
    'GENERATORS',
    'canonical_dialect',
    'dialect_name_of',
    'get_generator',
    'register_generator',
]
