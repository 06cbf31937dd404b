"""Tests for tracesort sort command."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from tracesort import __version__
from tracesort.cli.main import cli
from tracesort.core.errors import SortCancelled, SortError
from tracesort.sorting.job import SortingJob

runner = CliRunner()

MARKER = '"ts":'


@pytest.fixture
def trace(tmp_path: Path) -> Path:
    path = tmp_path / "trace.log"
    path.write_text('# header\n{"ts":30,"id":0}\n{"ts":10,"id":1}\n{"ts":20,"id":2}\n')
    return path


class TestSortCommand:
    """Tests for the sort subcommand."""

    def test_sorts_line_trace(self, trace: Path, tmp_path: Path) -> None:
        destination = tmp_path / "sorted.log"

        result = runner.invoke(cli, ["sort", str(trace), str(destination), "-m", MARKER])

        assert result.exit_code == 0, result.output
        assert destination.read_text() == (
            '# header\n{"ts":10,"id":1}\n{"ts":20,"id":2}\n{"ts":30,"id":0}\n'
        )

    def test_json_report(self, trace: Path, tmp_path: Path) -> None:
        """--json prints the report on stdout."""
        destination = tmp_path / "sorted.log"

        result = runner.invoke(
            cli,
            ["sort", str(trace), str(destination), "-m", MARKER, "--batch-records", "1", "--json"],
        )

        assert result.exit_code == 0, result.output
        report = json.loads(result.stdout)
        assert report["records_read"] == 4
        assert report["unkeyed"] == 1
        assert report["runs"] == 4
        assert report["destination"] == str(destination)

    def test_json_framing(self, tmp_path: Path) -> None:
        source = tmp_path / "trace.json"
        source.write_text('{"traceEvents":[{"ts":2,"n":"b"},{"ts":1,"n":"a"}]}')
        destination = tmp_path / "sorted.json"

        result = runner.invoke(
            cli, ["sort", str(source), str(destination), "-m", MARKER, "--format", "json"]
        )

        assert result.exit_code == 0, result.output
        events = json.loads(destination.read_text())["traceEvents"]
        assert [e["n"] for e in events] == ["a", "b"]

    def test_unkeyed_drop_from_local_config(self, trace: Path, tmp_path: Path) -> None:
        """./tracesort.yaml supplies sort settings."""
        (tmp_path / "tracesort.yaml").write_text("sort:\n  unkeyed: drop\n")
        destination = tmp_path / "sorted.log"

        result = runner.invoke(cli, ["sort", str(trace), str(destination), "-m", MARKER])

        assert result.exit_code == 0, result.output
        assert not destination.read_text().startswith("#")
        assert "Dropped 1 record" in result.output

    def test_sidecar_copied(self, trace: Path, tmp_path: Path) -> None:
        (tmp_path / "trace.log.meta").write_text("cpu=8")
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        result = runner.invoke(
            cli,
            ["sort", str(trace), str(out_dir / "sorted.log"), "-m", MARKER, "--sidecar", ".meta"],
        )

        assert result.exit_code == 0, result.output
        assert (out_dir / "trace.log.meta").read_text() == "cpu=8"

    def test_hook_and_sidecar_conflict(self, trace: Path, tmp_path: Path) -> None:
        result = runner.invoke(
            cli,
            [
                "sort", str(trace), str(tmp_path / "o.log"), "-m", MARKER,
                "--hook", "tracesort.sorting.hooks:NullMetadataHook",
                "--sidecar", ".meta",
            ],
        )
        assert result.exit_code == 2
        assert "cannot be combined" in result.output

    def test_bad_hook_reference(self, trace: Path, tmp_path: Path) -> None:
        """An object without process() is rejected before sorting."""
        destination = tmp_path / "o.log"
        result = runner.invoke(
            cli,
            [
                "sort", str(trace), str(destination), "-m", MARKER,
                "--hook", "tracesort.config.constants:SCRATCH_PREFIX",
            ],
        )
        assert result.exit_code == 1
        assert "SORT_INVALID_ARGUMENT" in result.output
        assert not destination.exists()

    def test_missing_marker(self, trace: Path, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["sort", str(trace), str(tmp_path / "o.log")])
        assert result.exit_code == 2

    def test_missing_source(self, tmp_path: Path) -> None:
        result = runner.invoke(
            cli, ["sort", str(tmp_path / "nope.log"), str(tmp_path / "o.log"), "-m", MARKER]
        )
        assert result.exit_code == 2

    def test_scale_must_be_positive(self, trace: Path, tmp_path: Path) -> None:
        result = runner.invoke(
            cli, ["sort", str(trace), str(tmp_path / "o.log"), "-m", MARKER, "-s", "0"]
        )
        assert result.exit_code == 2

    def test_missing_config_file(self, trace: Path, tmp_path: Path) -> None:
        result = runner.invoke(
            cli,
            [
                "sort", str(trace), str(tmp_path / "o.log"), "-m", MARKER,
                "--config", str(tmp_path / "missing.yaml"),
            ],
        )
        assert result.exit_code == 1
        assert "CONFIG_FILE_NOT_FOUND" in result.output

    def test_unwritable_destination(self, trace: Path, tmp_path: Path) -> None:
        """Sort failures exit 1 with the error code."""
        result = runner.invoke(
            cli, ["sort", str(trace), str(tmp_path / "no" / "o.log"), "-m", MARKER]
        )
        assert result.exit_code == 1
        assert "SORT_OUTPUT_WRITE" in result.output

    def test_cancelled_exit_code(self, trace: Path, tmp_path: Path) -> None:
        """A cancelled sort exits 130 and writes nothing."""
        destination = tmp_path / "o.log"
        with patch.object(SortingJob, "run", side_effect=SortCancelled.requested("build")):
            result = runner.invoke(cli, ["sort", str(trace), str(destination), "-m", MARKER])
        assert result.exit_code == 130
        assert not destination.exists()

    @pytest.mark.parametrize("tty", [False, True])
    def test_sort_error_exit_code(self, trace: Path, tmp_path: Path, tty: bool) -> None:
        """A failed sort exits 1 with the error code, with or without a bar."""
        destination = tmp_path / "o.log"
        with (
            patch("tracesort.core.progress._is_tty", return_value=tty),
            patch.object(
                SortingJob, "run", side_effect=SortError.source_read(str(trace), "boom")
            ),
        ):
            result = runner.invoke(cli, ["sort", str(trace), str(destination), "-m", MARKER])
        assert result.exit_code == 1, result.output
        assert "Error: [3002] SORT_SOURCE_READ" in result.output
        assert not destination.exists()

    def test_max_fan_in_option(self, tmp_path: Path) -> None:
        """--max-fan-in merges many runs in several passes."""
        source = tmp_path / "trace.log"
        keys = [5, 3, 4, 1, 2]
        source.write_text("".join(f'{{"ts":{k},"id":{i}}}\n' for i, k in enumerate(keys)))
        destination = tmp_path / "sorted.log"

        result = runner.invoke(
            cli,
            [
                "sort", str(source), str(destination), "-m", MARKER,
                "--batch-records", "1", "--max-fan-in", "2",
            ],
        )

        assert result.exit_code == 0, result.output
        assert [line.split(",")[0] for line in destination.read_text().splitlines()] == [
            '{"ts":1', '{"ts":2', '{"ts":3', '{"ts":4', '{"ts":5',
        ]

    def test_max_fan_in_below_two_rejected(self, trace: Path, tmp_path: Path) -> None:
        result = runner.invoke(
            cli, ["sort", str(trace), str(tmp_path / "o.log"), "-m", MARKER, "--max-fan-in", "1"]
        )
        assert result.exit_code == 2


def test_version() -> None:
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
