"""Exception taxonomy for relation aggregation.

Every fatal condition carries the offending identifier or value in its message.
"""
from __future__ import annotations


class AggregationError(Exception):
    """Base class for all relagg errors."""


class InvalidRequest(AggregationError, ValueError):
    """A registration call was structurally invalid."""


class UnsafeIdentifier(InvalidRequest):
    def __init__(self, identifier: str, kind: str = 'identifier'):
        self.identifier = identifier
        super().__init__(
            f"Invalid {kind} name: '{identifier}'. Names must start with a letter or underscore "
            "and contain only alphanumeric characters, underscores and dots."
        )


class InvalidFilter(InvalidRequest):
    pass


class InvalidOrder(InvalidRequest):
    pass


class InvalidPagination(InvalidRequest):
    pass


class LimitExceeded(InvalidRequest):
    pass


class TooManyRelations(InvalidRequest):
    pass


class DuplicateRelation(InvalidRequest):
    pass


class RelationError(AggregationError):
    """Relation metadata could not be resolved or used."""


class RelationNotFound(RelationError, LookupError):
    pass


class InvalidRelationAccessor(RelationError):
    pass


class UnsupportedRelationKind(RelationError):
    pass


class UnsupportedJoinKind(RelationError):
    pass


class UnsupportedDialect(AggregationError):
    pass


class InvalidHydrator(AggregationError):
    pass


__all__ = [
    'AggregationError',
    'InvalidRequest',
    'UnsafeIdentifier',
    'InvalidFilter',
    'InvalidOrder',
    'InvalidPagination',
    'LimitExceeded',
    'TooManyRelations',
    'DuplicateRelation',
    'RelationError',
    'RelationNotFound',
    'InvalidRelationAccessor',
    'UnsupportedRelationKind',
    'UnsupportedJoinKind',
    'UnsupportedDialect',
    'InvalidHydrator',
]
