from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .utils import convert_unit

QUANTITY = "quantity"
CATEGORICAL = "category"


@dataclass(frozen=True)
class Category:
    """One exported data type: provider identifier + label written as "type"."""

    identifier: str
    label: str
    kind: str = QUANTITY

    @property
    def is_quantity(self) -> bool:
        return self.kind == QUANTITY


SLEEP_ANALYSIS = Category("HKCategoryTypeIdentifierSleepAnalysis", "SleepAnalysis", CATEGORICAL)
HEART_RATE = Category("HKQuantityTypeIdentifierHeartRate", "HeartRate")
HRV = Category("HKQuantityTypeIdentifierHeartRateVariabilitySDNN", "HRV")
RESPIRATORY_RATE = Category("HKQuantityTypeIdentifierRespiratoryRate", "RespiratoryRate")
OXYGEN_SATURATION = Category("HKQuantityTypeIdentifierOxygenSaturation", "OxygenSaturation")

# Export order. Categories are read and written one after another in this order.
CATEGORIES: Tuple[Category, ...] = (
    SLEEP_ANALYSIS,
    HEART_RATE,
    HRV,
    RESPIRATORY_RATE,
    OXYGEN_SATURATION,
)


def category_for(identifier: str) -> Optional[Category]:
    for c in CATEGORIES:
        if c.identifier == identifier:
            return c
    return None


@dataclass(frozen=True)
class Quantity:
    value: float
    unit: str

    def double_value(self, unit: str) -> float:
        return convert_unit(self.value, self.unit, unit)


@dataclass(frozen=True)
class SampleSource:
    name: str


@dataclass(frozen=True)
class Sample:
    sample_type: str
    start_date: dt.datetime
    end_date: dt.datetime
    source: Optional[SampleSource] = None


@dataclass(frozen=True)
class QuantitySample(Sample):
    quantity: Quantity = field(default_factory=lambda: Quantity(0.0, "count"))


@dataclass(frozen=True)
class CategorySample(Sample):
    value: int = -1


@dataclass
class ExportedRecord:
    type: str
    startDate: int
    endDate: int
    source: str
    value: Optional[float] = None
    unit: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def as_dict(self) -> Dict[str, Any]:
        # value/unit/metadata only appear when set
        out: Dict[str, Any] = {
            "type": self.type,
            "startDate": self.startDate,
            "endDate": self.endDate,
            "source": self.source,
        }
        if self.value is not None:
            out["value"] = self.value
            out["unit"] = self.unit
        if self.metadata is not None:
            out["metadata"] = self.metadata
        return out
