from __future__ import annotations

from typing import Any


class AggregatedQueryMixin:
    """Adds ``Model.aggregated_query()`` to declarative classes.

    Example:
        class Partner(AggregatedQueryMixin, Base):
            __tablename__ = 'partners'
            ...

        Partner.aggregated_query(session).add_count('promocodes').get()
    """

    @classmethod
    def aggregated_query(cls, bind: Any = None, *, base_query: Any = None, **kwargs: Any):
        from .query import AggregatedQuery
        return AggregatedQuery(cls, executor=bind, base_query=base_query, **kwargs)
