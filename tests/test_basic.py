from health_export import CATEGORY_LABELS, SLEEP_STAGES
from health_export.models import CATEGORIES, ExportedRecord, category_for


def test_category_labels_order_and_length():
    assert CATEGORY_LABELS[0] == "SleepAnalysis"
    assert CATEGORY_LABELS[1] == "HeartRate"
    assert len(CATEGORY_LABELS) == 5


def test_category_table_matches_labels():
    assert [c.label for c in CATEGORIES] == CATEGORY_LABELS
    assert [c.is_quantity for c in CATEGORIES] == [False, True, True, True, True]


def test_category_for_identifier():
    assert category_for("HKQuantityTypeIdentifierHeartRateVariabilitySDNN").label == "HRV"
    assert category_for("HKQuantityTypeIdentifierStepCount") is None


def test_record_dict_omits_unset_fields():
    rec = ExportedRecord(type="SleepAnalysis", startDate=1, endDate=2, source="", metadata={"stage": "Awake"})
    assert rec.as_dict() == {
        "type": "SleepAnalysis",
        "startDate": 1,
        "endDate": 2,
        "source": "",
        "metadata": {"stage": "Awake"},
    }
    assert "Unknown" in SLEEP_STAGES
