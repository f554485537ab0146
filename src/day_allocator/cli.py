from __future__ import annotations

import logging
import sys
from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from day_allocator.config import EngineSettings, SettingsError, load_settings
from day_allocator.models import DEFAULT_BLOCK_COLOR, PartitionState
from day_allocator.partition import (
    AppendCategory,
    EditRequest,
    EditResult,
    MoveBlock,
    RemoveBlock,
    RescaleRange,
    ResizeBoundary,
    SplitBlock,
    apply_edit,
    category_names,
    default_state,
)
from day_allocator.state_io import StateDocumentError, dump_state, read_state_file
from day_allocator.timeutil import format_hour, time_markers

app = typer.Typer(
    name="dayalloc",
    help="Allocate a day into labeled time blocks.",
    no_args_is_help=True,
)

_STATE_HELP = "Path to a JSON state document. Defaults to the seeded partition."
_OUTPUT_HELP = "Write the resulting state document here instead of stdout."


def _load_settings() -> EngineSettings:
    try:
        return load_settings()
    except SettingsError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _load_state(state_path: Path | None, settings: EngineSettings) -> PartitionState:
    if state_path is None:
        try:
            return default_state(settings)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
    try:
        return read_state_file(state_path, settings)
    except StateDocumentError as exc:
        raise typer.BadParameter(str(exc), param_hint="--state") from exc


def _write_state(state: PartitionState, output: Path | None) -> None:
    document = dump_state(state)
    if output is None:
        typer.echo(document)
        return
    try:
        output.write_text(document + "\n", encoding="utf-8")
    except OSError as exc:
        raise typer.BadParameter(
            f"Cannot write state document {output}: {exc.strerror}.", param_hint="--output"
        ) from exc
    print(f"[green]Wrote state:[/green] {escape(str(output))}", file=sys.stderr)


def _finish(result: EditResult, output: Path | None) -> None:
    for notice in result.notices:
        dropped = ", ".join(escape(category) for category in notice.categories)
        print(f"[yellow]{notice.kind}:[/yellow] {notice.message} Dropped: {dropped}", file=sys.stderr)

    if result.rejection is not None:
        print(
            f"[red]Rejected {result.rejection.reason}:[/red] {result.rejection.message}",
            file=sys.stderr,
        )
        raise typer.Exit(code=1)

    _write_state(result.state, output)


def _run_edit(request: EditRequest, state_path: Path | None, output: Path | None) -> None:
    settings = _load_settings()
    state = _load_state(state_path, settings)
    _finish(apply_edit(state, request, settings=settings), output)


@app.callback()
def root(
    verbose: bool = typer.Option(False, "--verbose", help="Log engine events to stderr."),
) -> None:
    """Day allocator CLI entrypoint."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s %(message)s",
            stream=sys.stderr,
        )


@app.command()
def seed(
    output: Path | None = typer.Option(None, "--output", help=_OUTPUT_HELP),
) -> None:
    """Print the default partition for the configured range."""
    settings = _load_settings()
    _write_state(_load_state(None, settings), output)


@app.command()
def show(
    state_path: Path | None = typer.Option(None, "--state", help=_STATE_HELP),
) -> None:
    """List blocks with 12-hour labels."""
    state = _load_state(state_path, _load_settings())
    time_range = state.time_range

    print(
        f"[bold]Time blocks {format_hour(time_range.start)}–{format_hour(time_range.end)} "
        f"({time_range.span:g}h):[/bold]"
    )
    for index, block in enumerate(state.blocks):
        print(
            f"{index}. {format_hour(block.start)}–{format_hour(block.end)} | "
            f"{escape(block.category)} | {block.color} | {block.duration:g}h"
        )
    markers = ", ".join(format_hour(marker) for marker in time_markers(time_range))
    print(f"Markers: {markers}")


@app.command()
def categories(
    state_path: Path | None = typer.Option(None, "--state", help=_STATE_HELP),
) -> None:
    """List distinct categories in block order."""
    state = _load_state(state_path, _load_settings())
    for name in category_names(state.blocks):
        typer.echo(name)


@app.command()
def resize(
    index: int = typer.Option(..., "--index", help="Boundary after this block index."),
    at: float = typer.Option(..., "--at", help="New boundary time in hours."),
    snap: bool = typer.Option(False, "--snap", help="Round --at to the configured snap step."),
    state_path: Path | None = typer.Option(None, "--state", help=_STATE_HELP),
    output: Path | None = typer.Option(None, "--output", help=_OUTPUT_HELP),
) -> None:
    """Move the boundary between two adjacent blocks."""
    _run_edit(ResizeBoundary(index=index, boundary=at, snap=snap), state_path, output)


@app.command()
def move(
    index: int = typer.Option(..., "--index", help="Block index."),
    start: float = typer.Option(..., "--start", help="New start time in hours."),
    end: float = typer.Option(..., "--end", help="New end time in hours."),
    snap: bool = typer.Option(False, "--snap", help="Round times to the configured snap step."),
    state_path: Path | None = typer.Option(None, "--state", help=_STATE_HELP),
    output: Path | None = typer.Option(None, "--output", help=_OUTPUT_HELP),
) -> None:
    """Move both edges of one block."""
    _run_edit(MoveBlock(index=index, start=start, end=end, snap=snap), state_path, output)


@app.command()
def append(
    category: str = typer.Option(..., "--category", help="Category name."),
    color: str = typer.Option(DEFAULT_BLOCK_COLOR, "--color", help="Block color."),
    state_path: Path | None = typer.Option(None, "--state", help=_STATE_HELP),
    output: Path | None = typer.Option(None, "--output", help=_OUTPUT_HELP),
) -> None:
    """Append a block covering the unallocated tail of the range."""
    _run_edit(AppendCategory(category=category, color=color), state_path, output)


@app.command()
def split(
    index: int = typer.Option(..., "--index", help="Block index to split."),
    at: float = typer.Option(..., "--at", help="Split time in hours."),
    category: str = typer.Option(..., "--category", help="Category for the new block."),
    color: str = typer.Option(DEFAULT_BLOCK_COLOR, "--color", help="Block color."),
    snap: bool = typer.Option(False, "--snap", help="Round --at to the configured snap step."),
    state_path: Path | None = typer.Option(None, "--state", help=_STATE_HELP),
    output: Path | None = typer.Option(None, "--output", help=_OUTPUT_HELP),
) -> None:
    """Insert a new category by splitting an existing block."""
    request = SplitBlock(index=index, at=at, category=category, color=color, snap=snap)
    _run_edit(request, state_path, output)


@app.command()
def remove(
    index: int = typer.Option(..., "--index", help="Block index to remove."),
    state_path: Path | None = typer.Option(None, "--state", help=_STATE_HELP),
    output: Path | None = typer.Option(None, "--output", help=_OUTPUT_HELP),
) -> None:
    """Remove a block and give its span to the neighbors."""
    _run_edit(RemoveBlock(index=index), state_path, output)


@app.command()
def rescale(
    start: float = typer.Option(..., "--start", help="New range start in hours."),
    end: float = typer.Option(..., "--end", help="New range end in hours."),
    state_path: Path | None = typer.Option(None, "--state", help=_STATE_HELP),
    output: Path | None = typer.Option(None, "--output", help=_OUTPUT_HELP),
) -> None:
    """Change the partitioned range, dropping and clamping blocks as needed."""
    _run_edit(RescaleRange(start=start, end=end), state_path, output)
