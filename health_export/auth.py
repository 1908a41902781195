from __future__ import annotations

import concurrent.futures
from typing import Iterable, Optional

import structlog

from .errors import AuthDeniedError, AuthFailedError, UnsupportedError
from .models import CATEGORIES, Category
from .stores.base import HealthStore

logger = structlog.get_logger()


def request_authorization(
    store: HealthStore,
    categories: Iterable[Category] = CATEGORIES,
    timeout: Optional[float] = None,
) -> bool:
    """Ask the store for read access; blocks until it answers. Returns whether access was granted."""
    if not store.is_available():
        raise UnsupportedError("health data is not available")

    categories = list(categories)
    reply: concurrent.futures.Future = concurrent.futures.Future()

    def _done(granted: bool, error: Optional[BaseException]) -> None:
        if not reply.done():
            reply.set_result((granted, error))

    store.request_authorization(categories, _done)
    try:
        granted, error = reply.result(timeout=timeout)
    except concurrent.futures.TimeoutError as e:
        raise AuthFailedError(f"no authorization reply within {timeout}s") from e
    if error is not None:
        raise AuthFailedError(str(error)) from error

    logger.info("authorization", granted=granted, categories=[c.label for c in categories])
    return bool(granted)


def ensure_authorized(store: HealthStore, categories: Iterable[Category] = CATEGORIES, timeout: Optional[float] = None) -> None:
    if not request_authorization(store, categories, timeout=timeout):
        raise AuthDeniedError("read access was not granted")
