from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import IO, Any, Dict, Optional, Union

import structlog

from .errors import ExportIOError
from .models import ExportedRecord

logger = structlog.get_logger()


def encode_line(record: Union[ExportedRecord, Dict[str, Any]]) -> bytes:
    """One record -> ``<json>\\n`` as UTF-8. Raises TypeError/ValueError if it can't be encoded."""
    data = record.as_dict() if isinstance(record, ExportedRecord) else record
    # json.dumps escapes control characters, so the line has no raw newline in it
    text = json.dumps(data, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    return (text + "\n").encode("utf-8")


class NDJSONWriter:
    """Append-only NDJSON file. Safe to call ``append`` from several threads."""

    def __init__(self, path: Union[str, os.PathLike], fsync: bool = True):
        self.path = Path(path)
        self.fsync = fsync
        self.written = 0
        self.dropped = 0
        self._lock = threading.Lock()
        self._fh: Optional[IO[bytes]] = None
        self._opened = False

    @classmethod
    def open(cls, path: Union[str, os.PathLike], fsync: bool = True) -> "NDJSONWriter":
        w = cls(path, fsync=fsync)
        w._open()
        return w

    def _open(self) -> None:
        try:
            # "wb" truncates anything already at this path
            self._fh = self.path.open("wb")
        except OSError as e:
            raise ExportIOError(f"cannot create {self.path}: {e}") from e
        self._opened = True
        logger.debug("output_opened", path=str(self.path))

    @property
    def closed(self) -> bool:
        return self._fh is None

    def append(self, record: Union[ExportedRecord, Dict[str, Any]]) -> bool:
        """Write one line and flush it to storage. Returns False if the record was dropped."""
        try:
            line = encode_line(record)
        except (TypeError, ValueError) as e:
            with self._lock:
                self.dropped += 1
            logger.warning("record_dropped", reason="unserializable", error=str(e))
            return False

        with self._lock:
            if self._fh is None:
                self.dropped += 1
                logger.warning("record_dropped", reason="writer_closed", path=str(self.path))
                return False
            try:
                self._fh.seek(0, os.SEEK_END)
                self._fh.write(line)
                self._fh.flush()
                if self.fsync:
                    os.fsync(self._fh.fileno())
            except OSError as e:
                raise ExportIOError(f"cannot write {self.path}: {e}") from e
            self.written += 1
        return True

    def close(self) -> None:
        with self._lock:
            fh, self._fh = self._fh, None
        if fh is None:
            return
        try:
            fh.close()
        except OSError as e:
            raise ExportIOError(f"cannot close {self.path}: {e}") from e
        logger.debug("output_closed", path=str(self.path), written=self.written, dropped=self.dropped)

    def __enter__(self) -> "NDJSONWriter":
        if not self._opened:
            self._open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()
