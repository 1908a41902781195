"""
HealthStore backed by an Apple Health ``export.xml`` ("Export All Health Data").

The file is streamed with ``xml.etree.ElementTree.iterparse`` and elements are
cleared as soon as they are read, together with the document root, so memory
use stays flat on multi-GB exports.
Each query re-scans the file for its category; the anchor is the number of
matching samples already delivered. Replies run on background threads, like
the on-device store.

With ``watch_interval`` set, queries that have an ``update_handler`` keep
polling the file's mtime and deliver samples appended after the anchor until
the query is stopped.
"""
from __future__ import annotations

import datetime as dt
import os
import threading
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

import structlog

from ..models import Category, CategorySample, Quantity, QuantitySample, Sample, SampleSource
from .base import AnchoredObjectQuery, AuthCallback, HealthStore, QueryAnchor

logger = structlog.get_logger()

APPLE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"

SLEEP_VALUE_CODES: Dict[str, int] = {
    "HKCategoryValueSleepAnalysisInBed": 0,
    "HKCategoryValueSleepAnalysisAsleep": 1,
    "HKCategoryValueSleepAnalysisAsleepUnspecified": 1,
    "HKCategoryValueSleepAnalysisAwake": 2,
    "HKCategoryValueSleepAnalysisAsleepCore": 3,
    "HKCategoryValueSleepAnalysisAsleepDeep": 4,
    "HKCategoryValueSleepAnalysisAsleepREM": 5,
}


def parse_apple_date(value: Optional[str]) -> Optional[dt.datetime]:
    if not value:
        return None
    try:
        return dt.datetime.strptime(value.strip(), APPLE_DATE_FORMAT)
    except ValueError:
        return None


def _category_code(value: Optional[str]) -> int:
    if value is None:
        return -1
    if value in SLEEP_VALUE_CODES:
        return SLEEP_VALUE_CODES[value]
    try:
        return int(value)
    except ValueError:
        return -1


def record_to_sample(attrs: Dict[str, str]) -> Optional[Sample]:
    """Build a sample from a <Record> element's attributes; None if it can't be read."""
    rtype = attrs.get("type", "")
    start = parse_apple_date(attrs.get("startDate"))
    end = parse_apple_date(attrs.get("endDate"))
    if start is None or end is None:
        return None
    name = attrs.get("sourceName")
    source = SampleSource(name=name) if name else None

    if rtype.startswith("HKCategoryTypeIdentifier"):
        return CategorySample(
            sample_type=rtype,
            start_date=start,
            end_date=end,
            source=source,
            value=_category_code(attrs.get("value")),
        )
    if rtype.startswith("HKQuantityTypeIdentifier"):
        try:
            value = float(attrs.get("value", ""))
        except ValueError:
            return None
        return QuantitySample(
            sample_type=rtype,
            start_date=start,
            end_date=end,
            source=source,
            quantity=Quantity(value, attrs.get("unit") or "count"),
        )
    return None


class AppleExportStore(HealthStore):
    def __init__(self, path: os.PathLike | str, watch_interval: Optional[float] = None):
        self.path = Path(path)
        self.watch_interval = watch_interval
        self._stopped: Dict[int, threading.Event] = {}
        self._lock = threading.Lock()

    # ---------- availability / auth ----------

    def is_available(self) -> bool:
        return self.path.is_file()

    def request_authorization(self, read_categories: Iterable[Category], callback: AuthCallback) -> None:
        labels = [c.label for c in read_categories]

        def _run() -> None:
            try:
                with self.path.open("rb"):
                    pass
            except OSError as e:
                callback(False, e)
                return
            logger.debug("authorization_granted", path=str(self.path), categories=labels)
            callback(True, None)

        threading.Thread(target=_run, name="apple-export-auth", daemon=True).start()

    # ---------- queries ----------

    def iter_samples(self, category: Category) -> Iterator[Sample]:
        context = ET.iterparse(str(self.path), events=("start", "end"))
        root = None
        for event, elem in context:
            if event == "start":
                if root is None:
                    root = elem
                continue
            if elem.tag == "Record" and elem.get("type") == category.identifier:
                sample = record_to_sample(dict(elem.attrib))
                if sample is None:
                    logger.debug("record_skipped", type=category.identifier, start=elem.get("startDate"))
                else:
                    yield sample
            if elem.tag in ("Record", "Workout", "ActivitySummary", "Correlation") and root is not None:
                # drop finished children of <HealthData>; attributes were read above
                elem.clear()
                root.clear()

    def _collect(self, query: AnchoredObjectQuery, anchor: Optional[QueryAnchor]) -> tuple[List[Sample], QueryAnchor]:
        skip = anchor.position if anchor else 0
        out: List[Sample] = []
        seen = 0
        for sample in self.iter_samples(query.category):
            if not query.predicate.matches(sample):
                continue
            if seen < skip:
                seen += 1
                continue
            if query.limit is not None and len(out) >= query.limit:
                break
            out.append(sample)
        return out, QueryAnchor(skip + len(out))

    def execute(self, query: AnchoredObjectQuery) -> None:
        stopped = threading.Event()
        with self._lock:
            self._stopped[query.query_id] = stopped
        threading.Thread(
            target=self._run_query,
            args=(query, stopped),
            name=f"apple-export-query-{query.query_id}",
            daemon=True,
        ).start()

    def stop(self, query: AnchoredObjectQuery) -> None:
        with self._lock:
            stopped = self._stopped.pop(query.query_id, None)
        if stopped is not None:
            stopped.set()

    def _run_query(self, query: AnchoredObjectQuery, stopped: threading.Event) -> None:
        try:
            added, anchor = self._collect(query, query.anchor)
        except Exception as e:
            query.result_handler(query, [], [], None, e)
            return
        query.result_handler(query, added, [], anchor, None)

        if query.update_handler is None or not self.watch_interval:
            return
        self._watch(query, anchor, stopped)

    def _watch(self, query: AnchoredObjectQuery, anchor: QueryAnchor, stopped: threading.Event) -> None:
        try:
            mtime = self.path.stat().st_mtime
        except OSError:
            return
        while not stopped.wait(self.watch_interval):
            try:
                current = self.path.stat().st_mtime
            except OSError as e:
                logger.warning("watch_failed", path=str(self.path), error=str(e))
                return
            if current == mtime:
                continue
            mtime = current
            try:
                added, anchor = self._collect(query, anchor)
            except Exception as e:
                query.update_handler(query, [], [], None, e)  # type: ignore[misc]
                continue
            if added:
                query.update_handler(query, added, [], anchor, None)  # type: ignore[misc]
