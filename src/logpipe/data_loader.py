"""Utilities to read log records from disk."""

from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import Record

SUPPORTED_SUFFIXES = {".json", ".jsonl", ".csv"}
TEXT_KEYS = ("raw_text", "raw", "message")


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
    return datetime.fromisoformat(text.replace("Z", "+00:00"))


def to_record(item: Mapping[str, Any], default_source: str) -> Record:
    data = dict(item)
    raw_text = ""
    for key in TEXT_KEYS:
        if key in data:
            raw_text = str(data.pop(key))
            break
    timestamp = _parse_timestamp(data.pop("timestamp", None))
    source = data.pop("source", None) or default_source
    fields = {str(key): str(value) for key, value in data.items() if value is not None}
    return Record(raw_text=raw_text, timestamp=timestamp, source=str(source), fields=fields)


def _load_json(path: Path) -> List[Record]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    items = payload if isinstance(payload, list) else [payload]
    return [to_record(item, path.stem) for item in items]


def _load_jsonl(path: Path) -> List[Record]:
    records: List[Record] = []
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            if line.strip():
                records.append(to_record(json.loads(line), path.stem))
    return records


def _load_csv(path: Path) -> List[Record]:
    with path.open("r", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        return [to_record(row, path.stem) for row in reader]


def _walk_files(dataset_path: Path) -> Iterable[Path]:
    if dataset_path.is_file():
        yield dataset_path
        return
    for file_path in sorted(dataset_path.rglob("*")):
        if file_path.is_file():
            yield file_path


def load_sources(dataset_path: Path | str) -> Dict[str, List[Record]]:
    """Load every supported file under ``dataset_path``, one source per file stem."""
    path = Path(dataset_path)
    if not path.exists():
        raise FileNotFoundError(f"Dataset path not found: {path}")

    sources: Dict[str, List[Record]] = {}
    for file_path in _walk_files(path):
        suffix = file_path.suffix.lower()
        if suffix == ".json":
            records = _load_json(file_path)
        elif suffix == ".jsonl":
            records = _load_jsonl(file_path)
        elif suffix == ".csv":
            records = _load_csv(file_path)
        else:
            continue
        sources.setdefault(file_path.stem, []).extend(records)
    if not sources:
        raise ValueError(
            f"No supported log files were found under {path}. Supported suffixes: {sorted(SUPPORTED_SUFFIXES)}"
        )
    return sources
