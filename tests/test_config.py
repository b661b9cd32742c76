from pathlib import Path

import pytest

from logpipe.config import load_search_config


def test_load_search_config(tmp_path: Path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
        data_path: data/samples
        sources: [app, gateway]
        stream:
          batch_size: 250
          merge_order: timestamp_desc
        pipe:
          timezone: Europe/Berlin
        search:
          page_size: 20
          facet_fields: [level]
        """
    )
    config = load_search_config(config_path)
    assert config.sources == ["app", "gateway"]
    assert config.stream.batch_size == 250
    assert config.stream.merge_order == "timestamp_desc"
    assert config.pipe.timezone == "Europe/Berlin"
    assert config.pipe.result_cap == 10000
    assert config.search.page_size == 20
    assert config.search.facet_fields == ["level"]
    assert config.data == Path("data/samples")


def test_empty_config_uses_defaults(tmp_path: Path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("")
    config = load_search_config(config_path)
    assert config.stream.batch_size == 1000
    assert config.stream.merge_order == "sequential"
    assert config.pipe.timezone == "UTC"
    assert config.search.sort_cap == 10000


def test_missing_config_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_search_config(tmp_path / "absent.yaml")


def test_rejects_non_positive_batch_size(tmp_path: Path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("stream:\n  batch_size: 0\n")
    with pytest.raises(ValueError):
        load_search_config(config_path)


@pytest.mark.parametrize("zone", ["Mars/Olympus", '""'])
def test_rejects_unknown_timezone(tmp_path: Path, zone: str):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"pipe:\n  timezone: {zone}\n")
    with pytest.raises(ValueError):
        load_search_config(config_path)
