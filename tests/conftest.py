from __future__ import annotations

import datetime as dt
import json
from pathlib import Path

import pytest

from health_export.models import (
    HEART_RATE,
    SLEEP_ANALYSIS,
    CategorySample,
    Quantity,
    QuantitySample,
    SampleSource,
)

UTC = dt.timezone.utc
T0 = dt.datetime(2025, 10, 7, 22, 0, tzinfo=UTC)


@pytest.fixture
def t0() -> dt.datetime:
    return T0


@pytest.fixture
def quantity_sample():
    def make(identifier=HEART_RATE.identifier, value=72.0, unit="count/min", minutes=0, source="Apple Watch"):
        start = T0 + dt.timedelta(minutes=minutes)
        return QuantitySample(
            sample_type=identifier,
            start_date=start,
            end_date=start + dt.timedelta(seconds=5),
            source=SampleSource(source) if source is not None else None,
            quantity=Quantity(value, unit),
        )
    return make


@pytest.fixture
def sleep_sample():
    def make(code=1, minutes=0, duration=30, source="Apple Watch"):
        start = T0 + dt.timedelta(minutes=minutes)
        return CategorySample(
            sample_type=SLEEP_ANALYSIS.identifier,
            start_date=start,
            end_date=start + dt.timedelta(minutes=duration),
            source=SampleSource(source) if source is not None else None,
            value=code,
        )
    return make


@pytest.fixture
def read_ndjson():
    def read(path: Path) -> list[dict]:
        text = Path(path).read_text(encoding="utf-8")
        return [json.loads(line) for line in text.splitlines()]
    return read


EXPORT_XML = """<?xml version="1.0" encoding="UTF-8"?>
<HealthData locale="en_US">
 <ExportDate value="2025-10-09 08:00:00 +0200"/>
 <Record type="HKCategoryTypeIdentifierSleepAnalysis" sourceName="Apple Watch" value="HKCategoryValueSleepAnalysisInBed" startDate="2025-10-07 23:30:00 +0200" endDate="2025-10-08 07:00:00 +0200"/>
 <Record type="HKCategoryTypeIdentifierSleepAnalysis" sourceName="Apple Watch" value="HKCategoryValueSleepAnalysisAsleepCore" startDate="2025-10-07 23:45:00 +0200" endDate="2025-10-08 01:00:00 +0200"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Apple Watch" unit="count/min" value="72" startDate="2025-10-08 00:00:00 +0200" endDate="2025-10-08 00:00:00 +0200">
  <MetadataEntry key="HKMetadataKeyHeartRateMotionContext" value="0"/>
 </Record>
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Apple Watch" unit="count/min" value="oops" startDate="2025-10-08 00:01:00 +0200" endDate="2025-10-08 00:01:00 +0200"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Apple Watch" unit="count/min" value="64" startDate="2025-10-08 00:02:00 +0200" endDate="2025-10-08 00:02:00 +0200"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Apple Watch" unit="count/min" value="99" startDate="2025-10-12 00:00:00 +0200" endDate="2025-10-12 00:00:00 +0200"/>
 <Record type="HKQuantityTypeIdentifierOxygenSaturation" sourceName="iPhone" unit="%" value="0.97" startDate="2025-10-08 03:00:00 +0200" endDate="2025-10-08 03:00:00 +0200"/>
 <Record type="HKQuantityTypeIdentifierStepCount" sourceName="iPhone" unit="count" value="120" startDate="2025-10-08 03:00:00 +0200" endDate="2025-10-08 03:10:00 +0200"/>
 <Workout workoutActivityType="HKWorkoutActivityTypeRunning" duration="30" startDate="2025-10-08 06:00:00 +0200" endDate="2025-10-08 06:30:00 +0200"/>
</HealthData>
"""


@pytest.fixture
def export_xml(tmp_path):
    path = tmp_path / "export.xml"
    path.write_text(EXPORT_XML, encoding="utf-8")
    return path
