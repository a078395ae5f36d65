from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Union

from ..errors import InvalidRequest
from .naming import WILDCARD
from .relations import RelationKind, RelationMetadata


class RequestMode(str, Enum):
    SINGLE = 'single-object'
    COLLECTION = 'collection'
    COUNT = 'count'


# Kinds each mode may be registered against.
MODE_KINDS = {
    RequestMode.SINGLE: (RelationKind.BELONGS_TO_ONE, RelationKind.HAS_ONE),
    RequestMode.COLLECTION: (RelationKind.HAS_MANY,),
    RequestMode.COUNT: (RelationKind.HAS_MANY,),
}


@dataclass
class RelationRequest:
    """One requested relation attachment.

    ``columns`` is either a concrete list or the wildcard ``'*'``; it is
    replaced by a concrete list exactly once, at compile time.
    """
    name: str
    mode: RequestMode
    metadata: RelationMetadata
    columns: Union[List[str], str] = field(default=WILDCARD)

    @property
    def output_key(self) -> str:
        if self.mode is RequestMode.COUNT:
            return f"{self.name}_count"
        return self.name

    @property
    def is_wildcard(self) -> bool:
        return self.mode is not RequestMode.COUNT and self.columns == WILDCARD

    def resolve_columns(self, columns: List[str]) -> None:
        if not self.is_wildcard:
            raise InvalidRequest(f"Columns of relation '{self.name}' are already resolved.")
        if not columns:
            raise InvalidRequest(
                f"Could not resolve columns for relation '{self.name}' (table '{self.metadata.related_table}')."
            )
        self.columns = list(columns)


__all__ = ['RequestMode', 'MODE_KINDS', 'RelationRequest']
