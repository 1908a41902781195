import json
import threading

import pytest

from health_export.errors import ExportIOError
from health_export.models import ExportedRecord
from health_export.writer import NDJSONWriter, encode_line


def _rec(i=0, source="Apple Watch"):
    return ExportedRecord(type="HeartRate", startDate=i, endDate=i + 1, source=source, value=60.0 + i, unit="count/min")


def test_append_writes_one_line_per_record(tmp_path, read_ndjson):
    path = tmp_path / "out.ndjson"
    with NDJSONWriter.open(path) as w:
        assert w.append(_rec(0))
        assert w.append(_rec(1))
        # flushed before close
        assert len(path.read_bytes().splitlines()) == 2
    assert [r["startDate"] for r in read_ndjson(path)] == [0, 1]
    assert path.read_bytes().endswith(b"\n")


def test_open_replaces_existing_file(tmp_path):
    path = tmp_path / "out.ndjson"
    path.write_text("stale\n", encoding="utf-8")
    w = NDJSONWriter.open(path)
    w.close()
    assert path.read_bytes() == b""


def test_unwritable_path_raises(tmp_path):
    with pytest.raises(ExportIOError):
        NDJSONWriter.open(tmp_path / "missing" / "out.ndjson")


def test_newlines_in_values_stay_escaped(tmp_path):
    path = tmp_path / "out.ndjson"
    with NDJSONWriter.open(path) as w:
        w.append(_rec(source="Bob's\nWatch ✓"))
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["source"] == "Bob's\nWatch ✓"


def test_unserializable_record_is_dropped(tmp_path, read_ndjson):
    path = tmp_path / "out.ndjson"
    with NDJSONWriter.open(path) as w:
        assert not w.append({"type": "HeartRate", "value": float("nan")})
        assert not w.append({"type": "HeartRate", "value": object()})
        assert w.append(_rec(3))
    assert w.dropped == 2
    assert w.written == 1
    assert len(read_ndjson(path)) == 1


def test_append_after_close_is_dropped(tmp_path):
    w = NDJSONWriter.open(tmp_path / "out.ndjson")
    w.close()
    w.close()
    assert not w.append(_rec())
    assert w.closed


def test_concurrent_appends_do_not_interleave(tmp_path, read_ndjson):
    path = tmp_path / "out.ndjson"
    w = NDJSONWriter.open(path, fsync=False)

    def work(offset):
        for i in range(200):
            w.append(_rec(offset + i, source="x" * 500))

    threads = [threading.Thread(target=work, args=(n * 1000,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    w.close()
    records = read_ndjson(path)
    assert len(records) == 1600
    assert len({r["startDate"] for r in records}) == 1600


def test_encode_line_is_single_line():
    line = encode_line(_rec())
    assert line.count(b"\n") == 1 and line.endswith(b"\n")
