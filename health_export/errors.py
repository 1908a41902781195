from __future__ import annotations

from typing import Optional


class HealthExportError(Exception):
    """Base class for everything the export pipeline raises on purpose."""


class UnsupportedError(HealthExportError):
    """Health data is not available on this device / backing store."""


class AuthFailedError(HealthExportError):
    """The authorization request itself errored."""


class AuthDeniedError(HealthExportError):
    """The authorization request completed but read access was not granted."""


class ExportIOError(HealthExportError, OSError):
    """Output file could not be created or written."""


class ProviderError(HealthExportError):
    """Wraps the error delivered with a category query's initial reply."""

    def __init__(self, category: str, cause: Optional[BaseException] = None):
        self.category = category
        self.cause = cause
        super().__init__(f"{category}: {cause}" if cause else category)


class IncompatibleUnitError(HealthExportError, ValueError):
    def __init__(self, from_unit: str, to_unit: str):
        self.from_unit = from_unit
        self.to_unit = to_unit
        super().__init__(f"cannot convert {from_unit!r} to {to_unit!r}")
