import datetime as dt

import pytest

from health_export.models import HEART_RATE, HRV, OXYGEN_SATURATION, CategorySample
from health_export.shaping import shape, sleep_stage
from health_export.utils import to_epoch_ms


def test_heart_rate_record(quantity_sample, t0):
    rec = shape(quantity_sample(value=72), "HeartRate").as_dict()
    assert rec == {
        "type": "HeartRate",
        "startDate": to_epoch_ms(t0),
        "endDate": to_epoch_ms(t0) + 5000,
        "source": "Apple Watch",
        "value": 72.0,
        "unit": "count/min",
    }


def test_oxygen_and_hrv(quantity_sample):
    o2 = shape(quantity_sample(OXYGEN_SATURATION.identifier, 0.95, "%"), "OxygenSaturation")
    assert o2.unit == "%"
    assert o2.value == pytest.approx(95.0)
    hrv = shape(quantity_sample(HRV.identifier, 52.0, "ms"), "HRV")
    assert (hrv.value, hrv.unit) == (52.0, "ms")
    assert hrv.metadata is None


@pytest.mark.parametrize("code,stage", [(0, "InBed"), (1, "Asleep"), (2, "Awake"), (3, "Unknown"), (5, "Unknown"), (42, "Unknown"), (-1, "Unknown")])
def test_sleep_stages(sleep_sample, code, stage):
    rec = shape(sleep_sample(code=code), "SleepAnalysis").as_dict()
    assert rec["metadata"] == {"stage": stage}
    assert "value" not in rec and "unit" not in rec
    assert sleep_stage(code) == stage


def test_missing_source_is_empty_string(quantity_sample, sleep_sample):
    assert shape(quantity_sample(source=None), "HeartRate").source == ""
    assert shape(sleep_sample(source=""), "SleepAnalysis").source == ""


def test_timestamps_truncate_not_round(quantity_sample):
    s = quantity_sample()
    s = type(s)(
        sample_type=s.sample_type,
        start_date=dt.datetime(2025, 1, 1, 0, 0, 0, 999999, tzinfo=dt.timezone.utc),
        end_date=dt.datetime(2025, 1, 1, 0, 0, 1, 999999, tzinfo=dt.timezone.utc),
        source=s.source,
        quantity=s.quantity,
    )
    rec = shape(s, "HeartRate")
    assert rec.startDate == 1735689600999
    assert rec.endDate == 1735689601999
    assert rec.startDate <= rec.endDate


def test_unsupported_shapes_are_dropped(t0, quantity_sample):
    stand = CategorySample(sample_type="HKCategoryTypeIdentifierAppleStandHour", start_date=t0, end_date=t0, value=0)
    assert shape(stand, "HeartRate") is None
    assert shape(object(), "HeartRate") is None
    assert shape(None, "SleepAnalysis") is None
    # heart rate in kilograms can't be normalized
    assert shape(quantity_sample(unit="kg"), HEART_RATE.label) is None
