from pathlib import Path

from typer.testing import CliRunner

from logpipe.cli import _sort_descending, app

SAMPLES = Path(__file__).resolve().parents[1] / "data" / "samples"

runner = CliRunner()


def _write_config(tmp_path: Path, body: str) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"data_path: {SAMPLES}\n{body}")
    return config_path


def test_sort_direction_defaults_from_field():
    assert _sort_descending("score", None) is True
    assert _sort_descending("timestamp", None) is False
    assert _sort_descending("score", False) is False
    assert _sort_descending("timestamp", True) is True


def test_search_by_score_ascending(tmp_path: Path):
    config_path = _write_config(tmp_path, "")
    result = runner.invoke(app, ["search", "*", "--config", str(config_path), "--asc"])
    assert result.exit_code == 0


def test_bad_timezone_is_reported_as_config_error(tmp_path: Path):
    config_path = _write_config(tmp_path, "pipe:\n  timezone: Mars/Olympus\n")
    result = runner.invoke(app, ["search", "* | timechart count", "--config", str(config_path)])
    assert result.exit_code == 2
