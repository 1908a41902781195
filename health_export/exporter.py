from __future__ import annotations

import datetime as dt
import enum
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

import structlog

from .errors import ExportIOError, ProviderError, UnsupportedError
from .models import CATEGORIES, Category
from .reader import DEFAULT_TIMEOUT_SECONDS, CategoryReader, ReadOutcome
from .stores.base import HealthStore
from .utils import export_filename
from .writer import NDJSONWriter

logger = structlog.get_logger()


class ExportState(str, enum.Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    READING = "reading"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ExportSession:
    start: dt.datetime
    end: dt.datetime
    path: Optional[Path] = None
    state: ExportState = ExportState.IDLE
    categories: List[ReadOutcome] = field(default_factory=list)
    records_written: int = 0
    records_dropped: int = 0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.state == ExportState.DONE

    def failed_categories(self) -> List[str]:
        return [c.category for c in self.categories if c.error]


class Exporter:
    """Runs one export: every category in table order, streamed into a single NDJSON file.

    A category whose query fails or times out is logged and skipped; records
    already written stay in the file. With ``strict=True`` a provider error
    ends the export with ProviderError instead (the file is still closed).
    """

    def __init__(
        self,
        store: HealthStore,
        output_dir: Union[str, os.PathLike] = ".",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        page_limit: Optional[int] = None,
        categories: Sequence[Category] = CATEGORIES,
        strict: bool = False,
        fsync: bool = True,
    ):
        self.store = store
        self.output_dir = Path(output_dir)
        self.timeout = timeout
        self.page_limit = page_limit
        self.categories = tuple(categories)
        self.strict = strict
        self.fsync = fsync
        self.session: Optional[ExportSession] = None

    def output_path(self, now: Optional[dt.datetime] = None) -> Path:
        return self.output_dir / export_filename(now)

    def run(self, start: dt.datetime, end: dt.datetime, path: Optional[Path] = None) -> ExportSession:
        if start.tzinfo is None or end.tzinfo is None:
            raise ValueError("start and end must be timezone-aware")
        if start > end:
            raise ValueError(f"start {start.isoformat()} is after end {end.isoformat()}")
        session = ExportSession(start=start, end=end)
        self.session = session
        try:
            self._run(session, path)
        except Exception as e:
            session.state = ExportState.FAILED
            session.error = e
            logger.error("export_failed", error=str(e), path=str(session.path) if session.path else None)
            raise
        return session

    def _run(self, session: ExportSession, path: Optional[Path]) -> None:
        if not self.store.is_available():
            raise UnsupportedError("health data is not available")

        session.state = ExportState.PREPARING
        if path is None:
            try:
                self.output_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ExportIOError(f"cannot create {self.output_dir}: {e}") from e
            path = self.output_path()
        session.path = path
        writer = NDJSONWriter.open(path, fsync=self.fsync)
        reader = CategoryReader(self.store, timeout=self.timeout, page_limit=self.page_limit)
        logger.info(
            "export_started",
            path=str(path),
            start=session.start.isoformat(),
            end=session.end.isoformat(),
        )

        try:
            session.state = ExportState.READING
            for category in self.categories:
                session.categories.append(self._read_category(reader, writer, category, session))
        finally:
            session.state = ExportState.FINALIZING
            reader.close()
            writer.close()
            session.records_written = writer.written
            session.records_dropped = writer.dropped

        session.state = ExportState.DONE
        logger.info(
            "export_done",
            path=str(path),
            records=session.records_written,
            dropped=session.records_dropped,
            failed=session.failed_categories(),
        )

    def _read_category(
        self,
        reader: CategoryReader,
        writer: NDJSONWriter,
        category: Category,
        session: ExportSession,
    ) -> ReadOutcome:
        log = logger.bind(category=category.label)
        try:
            outcome = reader.read_all(category, session.start, session.end, writer.append)
        except ProviderError as e:
            if self.strict:
                raise
            log.error("category_failed", error=str(e.cause or e))
            return ReadOutcome(category=category.label, error=str(e.cause or e))
        log.info("category_done", records=outcome.records, pages=outcome.pages, timed_out=outcome.timed_out)
        return outcome


def export(
    store: HealthStore,
    start: dt.datetime,
    end: dt.datetime,
    output_dir: Union[str, os.PathLike] = ".",
    **kwargs,
) -> Path:
    """Export ``[start, end)`` from ``store``; returns the written file's path."""
    session = Exporter(store, output_dir, **kwargs).run(start, end)
    if session.path is None:
        raise ExportIOError("export finished without an output file")
    return session.path
