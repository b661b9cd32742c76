import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from logpipe.data_loader import load_sources


def test_load_sources_by_file_stem(tmp_path: Path):
    (tmp_path / "app.jsonl").write_text(
        "\n".join(
            json.dumps(item)
            for item in (
                {"timestamp": "2024-03-01T10:00:00Z", "message": "boot", "level": "INFO"},
                {"timestamp": 1709287200000, "raw": "crash", "level": "ERROR", "code": 500},
            )
        )
        + "\n"
    )
    (tmp_path / "gateway.csv").write_text("timestamp,message,status\n,GET /,200\n")
    (tmp_path / "notes.txt").write_text("ignored")

    sources = load_sources(tmp_path)

    assert sorted(sources) == ["app", "gateway"]
    boot, crash = sources["app"]
    assert boot.raw_text == "boot"
    assert boot.timestamp == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)
    assert boot.source == "app"
    assert crash.raw_text == "crash"
    assert crash.timestamp == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)
    assert crash.fields == {"level": "ERROR", "code": "500"}
    [request] = sources["gateway"]
    assert request.timestamp is None
    assert request.fields == {"status": "200"}


def test_load_json_list(tmp_path: Path):
    path = tmp_path / "audit.json"
    path.write_text(json.dumps([{"message": "a", "source": "host-1"}, {"message": "b"}]))
    sources = load_sources(path)
    assert [record.source for record in sources["audit"]] == ["host-1", "audit"]


def test_missing_path(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_sources(tmp_path / "absent")


def test_no_supported_files(tmp_path: Path):
    (tmp_path / "readme.md").write_text("nothing here")
    with pytest.raises(ValueError):
        load_sources(tmp_path)
