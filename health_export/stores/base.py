from __future__ import annotations

import abc
import datetime as dt
import itertools
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence

from ..models import Category, Sample

# (query, added, deleted_uuids, new_anchor, error)
QueryHandler = Callable[
    ["AnchoredObjectQuery", Sequence[Sample], Sequence[str], Optional["QueryAnchor"], Optional[BaseException]],
    None,
]
AuthCallback = Callable[[bool, Optional[BaseException]], None]

_query_ids = itertools.count(1)


@dataclass(frozen=True)
class QueryAnchor:
    """Opaque cursor: everything up to here has been delivered for one query."""

    position: int


@dataclass(frozen=True)
class SamplePredicate:
    start: dt.datetime
    end: dt.datetime
    strict_start_date: bool = True

    def matches(self, sample: Sample) -> bool:
        if self.strict_start_date:
            return self.start <= sample.start_date < self.end
        # overlap
        return sample.start_date < self.end and sample.end_date > self.start


@dataclass(eq=False)
class AnchoredObjectQuery:
    category: Category
    predicate: SamplePredicate
    result_handler: QueryHandler
    anchor: Optional[QueryAnchor] = None
    limit: Optional[int] = None
    update_handler: Optional[QueryHandler] = None
    query_id: int = field(default_factory=lambda: next(_query_ids))


class HealthStore(abc.ABC):
    """Permissioned source of typed health samples.

    Replies are delivered on a store-owned thread. For every executed query
    ``result_handler`` is called exactly once; ``update_handler`` may be called
    any number of times afterwards until the query is stopped.
    """

    @abc.abstractmethod
    def is_available(self) -> bool:
        ...

    @abc.abstractmethod
    def request_authorization(self, read_categories: Iterable[Category], callback: AuthCallback) -> None:
        ...

    @abc.abstractmethod
    def execute(self, query: AnchoredObjectQuery) -> None:
        ...

    @abc.abstractmethod
    def stop(self, query: AnchoredObjectQuery) -> None:
        ...


def page(samples: List[Sample], anchor: Optional[QueryAnchor], limit: Optional[int]) -> tuple[List[Sample], QueryAnchor]:
    """Slice ``samples`` after ``anchor``; returns the page and the anchor past it."""
    start = anchor.position if anchor else 0
    stop = len(samples) if limit is None else min(len(samples), start + limit)
    return samples[start:stop], QueryAnchor(stop)
