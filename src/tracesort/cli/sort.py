"""tracesort sort command - order a trace file by timestamp."""

import json
from concurrent.futures import Future
from pathlib import Path
from typing import Any

import click

from tracesort.config.constants import JOB_POLL_SEC
from tracesort.config.loader import load_config
from tracesort.core.errors import ConfigError, SortCancelled, TraceSortError
from tracesort.core.logging import configure_logging, get_log_file_path
from tracesort.core.progress import percent_bar, pluralize, status
from tracesort.sorting.hooks import MetadataHook, NullMetadataHook, SidecarCopyHook, load_hook
from tracesort.sorting.job import SortingJob, SortReport

EXIT_CANCELLED = 130


def _sort_overrides(**options: Any) -> dict[str, Any]:
    """Keep only the sort options given on the command line."""
    return {key: value for key, value in options.items() if value is not None}


def _resolve_hook(hook_ref: str | None, sidecars: tuple[str, ...]) -> MetadataHook:
    if hook_ref and sidecars:
        raise click.UsageError("--hook and --sidecar cannot be combined")
    if hook_ref:
        return load_hook(hook_ref)
    if sidecars:
        return SidecarCopyHook(sidecars)
    return NullMetadataHook()


def _wait(job: SortingJob, future: "Future[SortReport]") -> SortReport:
    """Block on the job; Ctrl-C turns into a cooperative cancel."""
    try:
        while True:
            try:
                return future.result(timeout=JOB_POLL_SEC)
            except TimeoutError:
                continue
    except KeyboardInterrupt:
        job.cancel()
        status("Cancelling, cleaning up scratch files...", style="warning")
        return future.result()


@click.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("destination", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "-m",
    "--marker",
    required=True,
    help='Text that precedes the timestamp in each record, e.g. \'"ts":\'.',
)
@click.option(
    "-s",
    "--scale",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Multiplier applied to parsed integer timestamps (1000 turns us into ns).",
)
@click.option(
    "--format",
    "framing",
    type=click.Choice(["lines", "json"]),
    default=None,
    help="Record framing: one per line, or one per object of a JSON event array.",
)
@click.option("--batch-records", type=click.IntRange(min=1), default=None, help="Records per run.")
@click.option("--batch-bytes", type=click.IntRange(min=1), default=None, help="Bytes per run.")
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Batch-sort threads.")
@click.option(
    "--max-fan-in", type=click.IntRange(min=2), default=None, help="Runs merged at once."
)
@click.option(
    "--unkeyed",
    type=click.Choice(["lead", "drop"]),
    default=None,
    help="Records without a timestamp: keep them first (lead) or omit them (drop).",
)
@click.option(
    "--scratch-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Where temporary runs are written (default: system temp dir).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file (default: ./tracesort.yaml if present).",
)
@click.option("--hook", "hook_ref", default=None, help="Metadata hook as module:attribute.")
@click.option(
    "--sidecar",
    "sidecars",
    multiple=True,
    help="Copy SOURCE<suffix> next to DESTINATION after sorting. Repeatable.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def sort_command(
    ctx: click.Context,
    source: Path,
    destination: Path,
    marker: str,
    scale: int,
    framing: str | None,
    batch_records: int | None,
    batch_bytes: int | None,
    workers: int | None,
    max_fan_in: int | None,
    unkeyed: str | None,
    scratch_dir: Path | None,
    config_path: Path | None,
    hook_ref: str | None,
    sidecars: tuple[str, ...],
    as_json: bool,
) -> None:
    """Sort SOURCE by timestamp into DESTINATION.

    DESTINATION only appears once the sort has fully succeeded.
    """
    overrides = _sort_overrides(
        framing=framing,
        batch_records=batch_records,
        batch_bytes=batch_bytes,
        workers=workers,
        max_fan_in=max_fan_in,
        unkeyed=unkeyed,
        scratch_dir=str(scratch_dir) if scratch_dir else None,
    )
    try:
        config = load_config(config_path, sort=overrides)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    if not (ctx.obj or {}).get("verbose"):
        configure_logging(config=config.logging)

    try:
        hook = _resolve_hook(hook_ref, sidecars)
        with percent_bar("Sorting") as update:
            job = SortingJob(
                source,
                destination,
                marker,
                scale,
                config=config.sort,
                hook=hook,
                on_progress=update,
            )
            report = _wait(job, job.start())
    except SortCancelled:
        status("Sort cancelled, no output written", style="warning")
        ctx.exit(EXIT_CANCELLED)
    except TraceSortError as e:
        if log_path := get_log_file_path():
            status(f"Details in {log_path}", style="info")
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json.dumps(report.to_dict()))
        return
    status(
        f"Sorted {pluralize(report.records_written, 'record')} into {destination} "
        f"({pluralize(report.runs, 'run')}, {report.elapsed_sec:.1f}s)",
        style="success",
    )
    if report.dropped:
        status(f"Dropped {pluralize(report.dropped, 'record')} without a timestamp", style="warning")
