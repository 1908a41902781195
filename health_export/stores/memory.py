from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Sequence, Set

from ..models import Category, Sample
from .base import AnchoredObjectQuery, AuthCallback, HealthStore, page


class MemoryStore(HealthStore):
    """HealthStore over samples held in memory.

    Replies run on a new thread per request. ``errors`` makes the initial
    reply for a sample type fail; types in ``silent`` never reply at all.
    ``push_update`` delivers late samples to active queries' update handlers.
    """

    def __init__(
        self,
        samples: Iterable[Sample] = (),
        available: bool = True,
        grant: bool = True,
        auth_error: Optional[BaseException] = None,
        errors: Optional[Dict[str, BaseException]] = None,
        silent: Iterable[str] = (),
        reply_delay: float = 0.0,
    ):
        self.samples: List[Sample] = list(samples)
        self.available = available
        self.grant = grant
        self.auth_error = auth_error
        self.errors = dict(errors or {})
        self.silent: Set[str] = set(silent)
        self.reply_delay = reply_delay
        self.executed: List[AnchoredObjectQuery] = []
        self.authorized_for: List[str] = []
        self._active: Dict[int, AnchoredObjectQuery] = {}
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return self.available

    def request_authorization(self, read_categories: Iterable[Category], callback: AuthCallback) -> None:
        self.authorized_for = [c.identifier for c in read_categories]
        threading.Thread(target=callback, args=(self.grant, self.auth_error), daemon=True).start()

    def execute(self, query: AnchoredObjectQuery) -> None:
        with self._lock:
            self.executed.append(query)
            if query.update_handler is not None:
                self._active[query.query_id] = query
        if query.category.identifier in self.silent:
            return
        threading.Thread(target=self._reply, args=(query,), daemon=True).start()

    def stop(self, query: AnchoredObjectQuery) -> None:
        with self._lock:
            self._active.pop(query.query_id, None)

    def active_queries(self) -> List[AnchoredObjectQuery]:
        with self._lock:
            return list(self._active.values())

    def push_update(self, identifier: str, samples: Sequence[Sample]) -> int:
        """Deliver ``samples`` as late updates; returns how many queries received them."""
        targets = [q for q in self.active_queries() if q.category.identifier == identifier]
        for q in targets:
            matched = [s for s in samples if q.predicate.matches(s)]
            q.update_handler(q, matched, [], None, None)  # type: ignore[misc]
        return len(targets)

    def _reply(self, query: AnchoredObjectQuery) -> None:
        if self.reply_delay:
            threading.Event().wait(self.reply_delay)
        err = self.errors.get(query.category.identifier)
        if err is not None:
            query.result_handler(query, [], [], None, err)
            return
        try:
            matched = [
                s for s in self.samples
                if s.sample_type == query.category.identifier and query.predicate.matches(s)
            ]
        except Exception as e:
            query.result_handler(query, [], [], None, e)
            return
        added, anchor = page(matched, query.anchor, query.limit)
        query.result_handler(query, added, [], anchor, None)
