from __future__ import annotations

import json

from typer.testing import CliRunner

from day_allocator.cli import app
from day_allocator.models import Block, PartitionState, TimeRange
from day_allocator.state_io import dump_state


def _write_state(tmp_path, *spans: tuple[float, float, str], start: float = 0, end: float = 24):
    path = tmp_path / "state.json"
    state = PartitionState(
        time_range=TimeRange(start=start, end=end),
        blocks=[Block(start=s, end=e, category=c) for s, e, c in spans],
    )
    path.write_text(dump_state(state), encoding="utf-8")
    return path


def _read_signature(path) -> list[tuple[float, float, str]]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    return [(block["start"], block["end"], block["category"]) for block in payload["blocks"]]


def test_seed_prints_default_state() -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["seed"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["time_range"] == {"start": 0.0, "end": 24.0}
    assert [block["category"] for block in payload["blocks"]] == [
        "Sleep",
        "Work",
        "Exercise",
        "Leisure",
        "Family Time",
    ]


def test_seed_honours_environment_range(monkeypatch, tmp_path) -> None:
    runner = CliRunner()
    monkeypatch.setenv("DAYALLOC_RANGE_START", "6")
    monkeypatch.setenv("DAYALLOC_RANGE_END", "18")
    output = tmp_path / "seed.json"

    result = runner.invoke(app, ["seed", "--output", str(output)])

    assert result.exit_code == 0
    assert _read_signature(output)[0] == (6.0, 8.0, "Work")


def test_invalid_environment_setting_is_usage_error(monkeypatch) -> None:
    runner = CliRunner()
    monkeypatch.setenv("DAYALLOC_MIN_DURATION", "-1")

    result = runner.invoke(app, ["seed"])

    assert result.exit_code == 2


def test_resize_writes_next_state(tmp_path) -> None:
    runner = CliRunner()
    state_path = _write_state(tmp_path, (0, 4, "A"), (4, 8, "B"), end=8)
    output = tmp_path / "next.json"

    result = runner.invoke(
        app,
        ["resize", "--state", str(state_path), "--index", "0", "--at", "4.2", "--output", str(output)],
    )

    assert result.exit_code == 0
    assert _read_signature(output) == [(0.0, 4.2, "A"), (4.2, 8.0, "B")]


def test_resize_rejection_exits_with_reason(tmp_path) -> None:
    runner = CliRunner()
    state_path = _write_state(tmp_path, (0, 4, "A"), (4, 8, "B"), end=8)
    output = tmp_path / "next.json"

    result = runner.invoke(
        app,
        ["resize", "--state", str(state_path), "--index", "0", "--at", "7.8", "--output", str(output)],
    )

    assert result.exit_code == 1
    assert "below_minimum_duration" in result.output
    assert not output.exists()


def test_move_snaps_both_edges(tmp_path) -> None:
    runner = CliRunner()
    state_path = _write_state(tmp_path, (0, 4, "A"), (4, 8, "B"), (8, 12, "C"), end=12)
    output = tmp_path / "next.json"

    result = runner.invoke(
        app,
        [
            "move",
            "--state",
            str(state_path),
            "--index",
            "1",
            "--start",
            "3.1",
            "--end",
            "8.8",
            "--snap",
            "--output",
            str(output),
        ],
    )

    assert result.exit_code == 0
    assert _read_signature(output) == [(0.0, 3.0, "A"), (3.0, 9.0, "B"), (9.0, 12.0, "C")]


def test_append_on_seed_reports_fully_allocated() -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["append", "--category", "Reading"])

    assert result.exit_code == 1
    assert "range_fully_allocated" in result.output


def test_split_inserts_category(tmp_path) -> None:
    runner = CliRunner()
    output = tmp_path / "next.json"

    result = runner.invoke(
        app,
        ["split", "--index", "4", "--at", "20", "--category", "Reading", "--color", "#00bcd4", "--output", str(output)],
    )

    assert result.exit_code == 0
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["blocks"][-2:] == [
        {"start": 16.0, "end": 20.0, "category": "Family Time", "color": "#f44336"},
        {"start": 20.0, "end": 24.0, "category": "Reading", "color": "#00bcd4"},
    ]


def test_remove_last_block_is_rejected(tmp_path) -> None:
    runner = CliRunner()
    state_path = _write_state(tmp_path, (0, 24, "A"))

    result = runner.invoke(app, ["remove", "--state", str(state_path), "--index", "0"])

    assert result.exit_code == 1
    assert "cannot_remove_last_block" in result.output


def test_rescale_reports_pruned_blocks(tmp_path) -> None:
    runner = CliRunner()
    state_path = _write_state(tmp_path, (0, 4, "A"), (4, 20, "B"), (20, 24, "C"))
    output = tmp_path / "next.json"

    result = runner.invoke(
        app,
        ["rescale", "--state", str(state_path), "--start", "2", "--end", "10", "--output", str(output)],
    )

    assert result.exit_code == 0
    assert "blocks_pruned" in result.output
    assert _read_signature(output) == [(2.0, 4.0, "A"), (4.0, 10.0, "B")]


def test_rescale_rejects_short_range() -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["rescale", "--start", "3", "--end", "3.5"])

    assert result.exit_code == 1
    assert "invalid_range" in result.output


def test_malformed_state_document_is_usage_error(tmp_path) -> None:
    runner = CliRunner()
    state_path = tmp_path / "state.json"
    state_path.write_text("{}", encoding="utf-8")

    result = runner.invoke(app, ["show", "--state", str(state_path)])

    assert result.exit_code == 2


def test_show_lists_blocks_with_clock_labels() -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["show"])

    assert result.exit_code == 0
    assert "Sleep" in result.output
    assert "4 PM" in result.output
    assert "Markers:" in result.output


def test_categories_lists_distinct_names(tmp_path) -> None:
    runner = CliRunner()
    state_path = _write_state(tmp_path, (0, 4, "A"), (4, 8, "B"), (8, 24, "A"))

    result = runner.invoke(app, ["categories", "--state", str(state_path)])

    assert result.exit_code == 0
    assert result.stdout.split() == ["A", "B"]


def test_resize_rejects_nan_boundary(tmp_path) -> None:
    runner = CliRunner()
    state_path = _write_state(tmp_path, (0, 4, "A"), (4, 8, "B"), end=8)
    output = tmp_path / "next.json"

    result = runner.invoke(
        app,
        ["resize", "--state", str(state_path), "--index", "0", "--at", "nan", "--output", str(output)],
    )

    assert result.exit_code == 1
    assert "invalid_time" in result.output
    assert not output.exists()


def test_unwritable_output_is_usage_error(tmp_path) -> None:
    runner = CliRunner()
    output = tmp_path / "missing" / "next.json"

    result = runner.invoke(app, ["seed", "--output", str(output)])

    assert result.exit_code == 2
    assert not isinstance(result.exception, OSError)
    assert not output.exists()
