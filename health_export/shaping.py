from __future__ import annotations

from typing import Any, Optional

import structlog

from .errors import IncompatibleUnitError
from .models import SLEEP_ANALYSIS, CategorySample, ExportedRecord, QuantitySample, Sample
from .utils import normalize_quantity, to_epoch_ms

logger = structlog.get_logger()

# Provider sleep-analysis codes. Anything else (core/deep/REM, future codes) is "Unknown".
SLEEP_STAGE_BY_CODE = {
    0: "InBed",
    1: "Asleep",
    2: "Awake",
}


def sleep_stage(code: int) -> str:
    return SLEEP_STAGE_BY_CODE.get(code, "Unknown")


def _source_name(sample: Sample) -> str:
    src = sample.source
    if src is None or not src.name:
        return ""
    return src.name


def shape(sample: Any, label: str) -> Optional[ExportedRecord]:
    """Turn one provider sample into an exportable record, or None if its shape is not exported."""
    if not isinstance(sample, Sample):
        return None

    if isinstance(sample, QuantitySample):
        try:
            value, unit = normalize_quantity(label, sample.quantity)
        except IncompatibleUnitError as e:
            logger.warning("record_dropped", type=label, reason=str(e))
            return None
        return ExportedRecord(
            type=label,
            startDate=to_epoch_ms(sample.start_date),
            endDate=to_epoch_ms(sample.end_date),
            source=_source_name(sample),
            value=value,
            unit=unit,
        )

    if isinstance(sample, CategorySample) and label == SLEEP_ANALYSIS.label:
        return ExportedRecord(
            type=label,
            startDate=to_epoch_ms(sample.start_date),
            endDate=to_epoch_ms(sample.end_date),
            source=_source_name(sample),
            metadata={"stage": sleep_stage(sample.value)},
        )

    return None
