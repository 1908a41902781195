from __future__ import annotations

import concurrent.futures
import datetime as dt
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import structlog

from .errors import ProviderError
from .models import Category, ExportedRecord, Sample
from .shaping import shape
from .stores.base import AnchoredObjectQuery, HealthStore, QueryAnchor, SamplePredicate

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 30.0

RecordCallback = Callable[[ExportedRecord], None]


@dataclass
class ReadOutcome:
    category: str
    records: int = 0
    pages: int = 0
    updates: int = 0
    timed_out: bool = False
    error: Optional[str] = None


class CategoryReader:
    """Reads every sample of one category in a time range from a HealthStore.

    ``read_all`` blocks until the store's first reply (plus any follow-up
    pages) has been handled, or until ``timeout`` seconds pass. A timeout is
    not an error: the call returns with whatever arrived in time. Queries stay
    registered so late updates keep flowing into ``on_record`` until
    ``close()`` is called.
    """

    def __init__(
        self,
        store: HealthStore,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        page_limit: Optional[int] = None,
    ):
        self.store = store
        self.timeout = timeout
        self.page_limit = page_limit
        self._queries: List[AnchoredObjectQuery] = []
        self._lock = threading.Lock()
        self._closed = False

    def read_all(
        self,
        category: Category,
        start: dt.datetime,
        end: dt.datetime,
        on_record: RecordCallback,
    ) -> ReadOutcome:
        label = category.label
        predicate = SamplePredicate(start, end, strict_start_date=True)
        outcome = ReadOutcome(category=label)
        first_reply: concurrent.futures.Future = concurrent.futures.Future()
        gave_up = threading.Event()
        count_lock = threading.Lock()

        def settle(exc: Optional[BaseException] = None) -> None:
            with count_lock:
                if first_reply.done():
                    return
                if exc is None:
                    first_reply.set_result(None)
                else:
                    first_reply.set_exception(exc)

        def deliver(samples: Sequence[Sample]) -> int:
            n = 0
            for sample in samples:
                rec = shape(sample, label)
                if rec is None:
                    continue
                on_record(rec)
                n += 1
            with count_lock:
                outcome.records += n
            return n

        def on_page(
            query: AnchoredObjectQuery,
            added: Sequence[Sample],
            deleted: Sequence[str],
            anchor: Optional[QueryAnchor],
            error: Optional[BaseException],
        ) -> None:
            if error is not None:
                logger.warning("query_failed", category=label, error=str(error))
                settle(ProviderError(label, error))
                return
            if self.closed:
                return
            try:
                deliver(added)
            except Exception as e:
                settle(e)
                return
            with count_lock:
                outcome.pages += 1
            logger.debug("page_received", category=label, added=len(added), anchor=anchor)
            more = self.page_limit is not None and len(added) >= self.page_limit
            if more and not gave_up.is_set():
                self._execute(
                    AnchoredObjectQuery(
                        category=category,
                        predicate=predicate,
                        result_handler=on_page,
                        anchor=anchor,
                        limit=self.page_limit,
                    )
                )
                return
            settle()

        def on_update(
            query: AnchoredObjectQuery,
            added: Sequence[Sample],
            deleted: Sequence[str],
            anchor: Optional[QueryAnchor],
            error: Optional[BaseException],
        ) -> None:
            if error is not None:
                logger.warning("update_failed", category=label, error=str(error))
                return
            if self.closed or not added:
                return
            try:
                n = deliver(added)
            except Exception as e:
                logger.error("update_delivery_failed", category=label, error=str(e))
                return
            with count_lock:
                outcome.updates += 1
            logger.info("late_update", category=label, records=n)

        self._execute(
            AnchoredObjectQuery(
                category=category,
                predicate=predicate,
                result_handler=on_page,
                anchor=None,
                limit=self.page_limit,
                update_handler=on_update,
            )
        )

        try:
            first_reply.result(timeout=self.timeout)
        except concurrent.futures.TimeoutError:
            gave_up.set()
            outcome.timed_out = True
            logger.warning("query_timeout", category=label, timeout=self.timeout, records=outcome.records)
        return outcome

    @property
    def closed(self) -> bool:
        return self._closed

    def _execute(self, query: AnchoredObjectQuery) -> None:
        with self._lock:
            self._queries.append(query)
        self.store.execute(query)

    def close(self) -> None:
        """Stop every query this reader started; later replies are ignored."""
        with self._lock:
            self._closed = True
            queries, self._queries = self._queries, []
        for q in queries:
            self.store.stop(q)
