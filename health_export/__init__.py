__all__ = ["CATEGORY_LABELS", "SLEEP_STAGES", "__version__"]

__version__ = "0.1.0"

# Category labels in export order; every NDJSON line carries one of these as "type"
CATEGORY_LABELS = [
    "SleepAnalysis",
    "HeartRate",
    "HRV",
    "RespiratoryRate",
    "OxygenSaturation",
]

SLEEP_STAGES = ["InBed", "Asleep", "Awake", "Unknown"]
