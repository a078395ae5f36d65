"""Relation metadata resolution against SQLAlchemy declarative mappings.

A relation accessor on a root entity type is either a ``relationship()`` on its
mapper or an explicit, zero-argument class-level accessor returning a
:class:`RelationDescriptor` (see :func:`belongs_to`, :func:`has_one`,
:func:`has_many`). Either way the resolver produces an immutable
:class:`RelationMetadata` describing kind, related table and join keys.
"""
from __future__ import annotations

import inspect as _pyinspect
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence, Tuple

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import MANYTOONE, ONETOMANY, Mapper, RelationshipProperty

from ..errors import InvalidRelationAccessor, InvalidRequest, RelationNotFound, UnsupportedRelationKind
from .naming import ensure_identifier


class RelationKind(str, Enum):
    BELONGS_TO_ONE = 'belongs-to-one'
    HAS_ONE = 'has-one'
    HAS_MANY = 'has-many'


@dataclass(frozen=True)
class RelationDescriptor:
    """Explicit relation description exposed by the host mapping.

    ``related`` is a mapped class or a bare table name. Missing keys are
    filled in by the resolver from naming conventions: ``<relation>_id`` for a
    belongs-to foreign key, ``<root_singular>_id`` for has-one/has-many foreign
    keys, and primary keys for owner/local keys.
    """
    kind: RelationKind
    related: Any
    foreign_key: Optional[str] = None
    owner_key: Optional[str] = None
    local_key: Optional[str] = None
    primary_key: Optional[str] = None


def belongs_to(related: Any, foreign_key: str | None = None, owner_key: str | None = None) -> RelationDescriptor:
    """Declare a belongs-to-one relation without a SQLAlchemy ``relationship()``.

    Args:
        related: Mapped class of the owner, or its table name.
        foreign_key: Column on the root table; defaults to ``<relation>_id``.
        owner_key: Column on the related table; defaults to its primary key.

    Example:
        class Partner(Base):
            __tablename__ = 'partners'
            ...
            region = staticmethod(lambda: belongs_to('regions', owner_key='code'))

    Returns:
        RelationDescriptor: Resolved lazily by :class:`RelationResolver`.
    """
    return RelationDescriptor(RelationKind.BELONGS_TO_ONE, related, foreign_key=foreign_key, owner_key=owner_key)


def has_one(related: Any, foreign_key: str | None = None, local_key: str | None = None) -> RelationDescriptor:
    return RelationDescriptor(RelationKind.HAS_ONE, related, foreign_key=foreign_key, local_key=local_key)


def has_many(related: Any, foreign_key: str | None = None, local_key: str | None = None) -> RelationDescriptor:
    return RelationDescriptor(RelationKind.HAS_MANY, related, foreign_key=foreign_key, local_key=local_key)


@dataclass(frozen=True)
class RelationMetadata:
    name: str
    kind: RelationKind
    related_table: str
    related_alias: str
    related_type: Any
    foreign_key: str
    primary_key: str
    owner_key: Optional[str] = None
    local_key: Optional[str] = None


# ---- mapping helpers ---------------------------------------------------------

def mapper_for(entity: Any) -> Optional[Mapper]:
    if entity is None or isinstance(entity, str):
        return None
    found = sa_inspect(entity, raiseerr=False)
    return found if isinstance(found, Mapper) else None


def table_name_for(entity: Any) -> str:
    """Schema-qualified table name of a mapped class, or a bare table name."""
    if isinstance(entity, str):
        return entity
    mapper = mapper_for(entity)
    if mapper is not None and getattr(mapper, 'local_table', None) is not None:
        tbl = mapper.local_table
        return str(getattr(tbl, 'fullname', None) or tbl.name)
    name = getattr(entity, '__tablename__', None)
    if name:
        return str(name)
    raise InvalidRequest(f"Cannot determine the table of {entity!r}.")


def primary_key_for(entity: Any, default: str = 'id') -> str:
    mapper = mapper_for(entity)
    if mapper is not None and mapper.primary_key:
        return mapper.primary_key[0].name
    return default


_singular_pattern = re.compile(r'(?<!^)(?=[A-Z])')


def _entity_key_prefix(entity: Any) -> str:
    name = getattr(entity, '__name__', None) or str(entity)
    return _singular_pattern.sub('_', name).lower()


# ---- kind matchers -----------------------------------------------------------

def _is_belongs_to(prop: RelationshipProperty) -> bool:
    return prop.direction is MANYTOONE


def _is_has_one(prop: RelationshipProperty) -> bool:
    return prop.direction is ONETOMANY and not prop.uselist


def _is_has_many(prop: RelationshipProperty) -> bool:
    return prop.direction is ONETOMANY and bool(prop.uselist)


# Ordered; the first structural match wins.
KIND_MATCHERS: Tuple[Tuple[RelationKind, Callable[[RelationshipProperty], bool]], ...] = (
    (RelationKind.BELONGS_TO_ONE, _is_belongs_to),
    (RelationKind.HAS_ONE, _is_has_one),
    (RelationKind.HAS_MANY, _is_has_many),
)


class RelationResolver:
    """Turns ``(root entity type, relation name)`` into :class:`RelationMetadata`."""

    def __init__(self, matchers: Sequence[Tuple[RelationKind, Callable[[RelationshipProperty], bool]]] | None = None):
        self.matchers = tuple(matchers or KIND_MATCHERS)

    def resolve(self, root_type: Any, relation_name: str) -> RelationMetadata:
        mapper = mapper_for(root_type)
        prop = None
        if mapper is not None:
            prop = mapper.relationships.get(relation_name)
        if prop is not None:
            return self._from_relationship(root_type, relation_name, prop)
        descriptor = self._invoke_accessor(root_type, relation_name)
        return self._from_descriptor(root_type, relation_name, descriptor)

    # ---- SQLAlchemy relationship() -------------------------------------------
    def _from_relationship(self, root_type: Any, name: str, prop: RelationshipProperty) -> RelationMetadata:
        owner = getattr(root_type, '__name__', root_type)
        if prop.secondary is not None:
            raise UnsupportedRelationKind(
                f"Relation '{name}' on {owner} goes through secondary table "
                f"'{prop.secondary.name}'; only belongs-to-one, has-one and has-many are supported."
            )
        kind = None
        for candidate, matches in self.matchers:
            if matches(prop):
                kind = candidate
                break
        if kind is None:
            raise UnsupportedRelationKind(
                f"Relation '{name}' on {owner} has unsupported direction {prop.direction.name}."
            )
        pairs = list(prop.local_remote_pairs or [])
        if len(pairs) != 1:
            raise UnsupportedRelationKind(
                f"Relation '{name}' on {owner} joins on {len(pairs)} column pairs; composite keys are not supported."
            )
        local_col, remote_col = pairs[0]
        related_type = prop.mapper.class_
        common = dict(
            name=name,
            kind=kind,
            related_table=ensure_identifier(table_name_for(related_type), 'table'),
            related_alias=name,
            related_type=related_type,
            primary_key=ensure_identifier(primary_key_for(related_type), 'column'),
        )
        if kind is RelationKind.BELONGS_TO_ONE:
            return RelationMetadata(
                foreign_key=ensure_identifier(local_col.name, 'column'),
                owner_key=ensure_identifier(remote_col.name, 'column'),
                **common,
            )
        return RelationMetadata(
            foreign_key=ensure_identifier(remote_col.name, 'column'),
            local_key=ensure_identifier(local_col.name, 'column'),
            **common,
        )

    # ---- explicit accessors --------------------------------------------------
    def _invoke_accessor(self, root_type: Any, name: str) -> RelationDescriptor:
        owner = getattr(root_type, '__name__', root_type)
        if not hasattr(root_type, name):
            raise RelationNotFound(f"Relation '{name}' does not exist on {owner}.")
        accessor = getattr(root_type, name)
        if isinstance(accessor, RelationDescriptor):
            return accessor
        if not callable(accessor):
            raise InvalidRelationAccessor(
                f"Attribute '{name}' on {owner} is not a relation accessor."
            )
        try:
            sig = _pyinspect.signature(accessor)
        except (TypeError, ValueError):
            sig = None
        if sig is not None:
            required = [
                p for p in sig.parameters.values()
                if p.default is p.empty and p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)
            ]
            if required:
                raise InvalidRelationAccessor(
                    f"Relation accessor '{name}' on {owner} must not require parameters "
                    f"(requires: {', '.join(p.name for p in required)})."
                )
        result = accessor()
        if not isinstance(result, RelationDescriptor):
            raise InvalidRelationAccessor(
                f"Accessor '{name}' on {owner} must return a RelationDescriptor, got {type(result).__name__}."
            )
        return result

    def _from_descriptor(self, root_type: Any, name: str, d: RelationDescriptor) -> RelationMetadata:
        try:
            kind = RelationKind(d.kind)
        except ValueError:
            raise UnsupportedRelationKind(f"Relation '{name}' has unsupported kind '{d.kind}'.") from None
        related_pk = d.primary_key
        if related_pk is None and isinstance(d.related, str) and kind is RelationKind.BELONGS_TO_ONE:
            # a bare table has no mapper; the owner key is unique on it
            related_pk = d.owner_key
        related_pk = related_pk or primary_key_for(d.related)
        common = dict(
            name=name,
            kind=kind,
            related_table=ensure_identifier(table_name_for(d.related), 'table'),
            related_alias=name,
            related_type=None if isinstance(d.related, str) else d.related,
            primary_key=ensure_identifier(related_pk, 'column'),
        )
        if kind is RelationKind.BELONGS_TO_ONE:
            return RelationMetadata(
                foreign_key=ensure_identifier(d.foreign_key or f"{name}_id", 'column'),
                owner_key=ensure_identifier(d.owner_key or related_pk, 'column'),
                **common,
            )
        return RelationMetadata(
            foreign_key=ensure_identifier(d.foreign_key or f"{_entity_key_prefix(root_type)}_id", 'column'),
            local_key=ensure_identifier(d.local_key or primary_key_for(root_type), 'column'),
            **common,
        )


__all__ = [
    'RelationKind',
    'RelationDescriptor',
    'RelationMetadata',
    'RelationResolver',
    'KIND_MATCHERS',
    'belongs_to',
    'has_one',
    'has_many',
    'mapper_for',
    'table_name_for',
    'primary_key_for',
]
