"""Partition engine: structural edits over a contiguous tiling of a time range.

Every edit takes the current PartitionState and returns an EditResult. An
accepted edit carries a freshly built block list; a rejected edit carries the
input state untouched plus a reason code for the caller to display.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
import logging
import math

from day_allocator.config import EngineSettings
from day_allocator.models import DEFAULT_BLOCK_COLOR, Block, PartitionState, TimeRange
from day_allocator.timeutil import snap_to_step

logger = logging.getLogger(__name__)

EPSILON = 1e-9
UNKNOWN_CATEGORY_COLOR = "#cccccc"

SEED_RANGE: tuple[float, float] = (0.0, 24.0)
SEED_BLOCKS: tuple[tuple[float, float, str, str], ...] = (
    (0.0, 4.0, "Sleep", "#2196f3"),
    (4.0, 8.0, "Work", "#4caf50"),
    (8.0, 12.0, "Exercise", "#ff9800"),
    (12.0, 16.0, "Leisure", "#9c27b0"),
    (16.0, 24.0, "Family Time", "#f44336"),
)

_DEFAULT_ENGINE_SETTINGS = EngineSettings()


class RejectionReason(StrEnum):
    INVALID_RANGE = "invalid_range"
    BELOW_MINIMUM_DURATION = "below_minimum_duration"
    CANNOT_REMOVE_LAST_BLOCK = "cannot_remove_last_block"
    RANGE_FULLY_ALLOCATED = "range_fully_allocated"
    INVALID_INDEX = "invalid_index"
    INVALID_CATEGORY = "invalid_category"
    INVALID_TIME = "invalid_time"


class NoticeKind(StrEnum):
    BLOCKS_PRUNED = "blocks_pruned"


@dataclass(frozen=True)
class Rejection:
    reason: RejectionReason
    message: str


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    message: str
    categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class EditResult:
    state: PartitionState
    rejection: Rejection | None = None
    notices: tuple[Notice, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.rejection is None


# --- Edit requests ---


@dataclass(frozen=True)
class ResizeBoundary:
    index: int
    boundary: float
    snap: bool = False


@dataclass(frozen=True)
class MoveBlock:
    index: int
    start: float
    end: float
    snap: bool = False


@dataclass(frozen=True)
class AppendCategory:
    category: str
    color: str = DEFAULT_BLOCK_COLOR


@dataclass(frozen=True)
class SplitBlock:
    index: int
    at: float
    category: str
    color: str = DEFAULT_BLOCK_COLOR
    snap: bool = False


@dataclass(frozen=True)
class RemoveBlock:
    index: int


@dataclass(frozen=True)
class RescaleRange:
    start: float
    end: float


EditRequest = ResizeBoundary | MoveBlock | AppendCategory | SplitBlock | RemoveBlock | RescaleRange


def apply_edit(
    state: PartitionState,
    request: EditRequest,
    *,
    settings: EngineSettings | None = None,
) -> EditResult:
    if isinstance(request, ResizeBoundary):
        return resize_boundary(
            state, request.index, request.boundary, snap=request.snap, settings=settings
        )
    if isinstance(request, MoveBlock):
        return move_block(
            state, request.index, request.start, request.end, snap=request.snap, settings=settings
        )
    if isinstance(request, AppendCategory):
        return append_category(state, request.category, request.color, settings=settings)
    if isinstance(request, SplitBlock):
        return split_block(
            state,
            request.index,
            request.at,
            request.category,
            request.color,
            snap=request.snap,
            settings=settings,
        )
    if isinstance(request, RemoveBlock):
        return remove_block(state, request.index)
    if isinstance(request, RescaleRange):
        return rescale_range(
            state, TimeRange(start=request.start, end=request.end), settings=settings
        )
    raise TypeError(f"Unsupported edit request: {type(request).__name__}")


# --- Operations ---


def resize_boundary(
    state: PartitionState,
    index: int,
    new_boundary: float,
    *,
    snap: bool = False,
    settings: EngineSettings | None = None,
) -> EditResult:
    """Move the boundary shared by blocks[index] and blocks[index + 1]."""
    settings = settings or _DEFAULT_ENGINE_SETTINGS
    blocks = state.blocks
    if not 0 <= index < len(blocks) - 1:
        return _reject(
            "resize_boundary",
            state,
            RejectionReason.INVALID_INDEX,
            f"No boundary after block {index}; expected an index in 0..{len(blocks) - 2}.",
        )

    if not _all_finite(new_boundary):
        return _reject_non_finite("resize_boundary", state)

    if snap:
        new_boundary = snap_to_step(new_boundary, settings.snap_step)

    left, right = blocks[index], blocks[index + 1]
    if _is_too_short(new_boundary - left.start, settings) or _is_too_short(
        right.end - new_boundary, settings
    ):
        return _reject_below_minimum("resize_boundary", state, settings)

    next_blocks = list(blocks)
    next_blocks[index] = left.with_bounds(left.start, new_boundary)
    next_blocks[index + 1] = right.with_bounds(new_boundary, right.end)
    return _accept("resize_boundary", state.time_range, next_blocks)


def move_block(
    state: PartitionState,
    index: int,
    new_start: float,
    new_end: float,
    *,
    snap: bool = False,
    settings: EngineSettings | None = None,
) -> EditResult:
    """Move both edges of blocks[index]; neighbors give up or absorb the difference.

    The outer edge of the first and last block stays pinned to the range.
    """
    settings = settings or _DEFAULT_ENGINE_SETTINGS
    blocks = state.blocks
    if not 0 <= index < len(blocks):
        return _reject(
            "move_block",
            state,
            RejectionReason.INVALID_INDEX,
            f"Block {index} does not exist; expected an index in 0..{len(blocks) - 1}.",
        )

    if not _all_finite(new_start, new_end):
        return _reject_non_finite("move_block", state)

    if snap:
        new_start = snap_to_step(new_start, settings.snap_step)
        new_end = snap_to_step(new_end, settings.snap_step)

    time_range = state.time_range
    new_start = _clamp(new_start, lower=time_range.start, upper=time_range.end)
    new_end = _clamp(new_end, lower=time_range.start, upper=time_range.end)
    last_index = len(blocks) - 1
    if index == 0:
        new_start = blocks[0].start
    if index == last_index:
        new_end = blocks[last_index].end

    if _is_too_short(new_end - new_start, settings):
        return _reject_below_minimum("move_block", state, settings)
    if index > 0 and _is_too_short(new_start - blocks[index - 1].start, settings):
        return _reject_below_minimum("move_block", state, settings)
    if index < last_index and _is_too_short(blocks[index + 1].end - new_end, settings):
        return _reject_below_minimum("move_block", state, settings)

    next_blocks = list(blocks)
    next_blocks[index] = blocks[index].with_bounds(new_start, new_end)
    if index > 0:
        previous = blocks[index - 1]
        next_blocks[index - 1] = previous.with_bounds(previous.start, new_start)
    if index < last_index:
        following = blocks[index + 1]
        next_blocks[index + 1] = following.with_bounds(new_end, following.end)
    return _accept("move_block", time_range, next_blocks)


def append_category(
    state: PartitionState,
    category: str,
    color: str = DEFAULT_BLOCK_COLOR,
    *,
    settings: EngineSettings | None = None,
) -> EditResult:
    """Add a block covering whatever is left between the last block and the range end."""
    settings = settings or _DEFAULT_ENGINE_SETTINGS
    name = category.strip()
    if not name:
        return _reject_blank_category("append_category", state)

    time_range = state.time_range
    start = state.blocks[-1].end if state.blocks else time_range.start
    remaining = time_range.end - start
    if remaining <= EPSILON:
        return _reject(
            "append_category",
            state,
            RejectionReason.RANGE_FULLY_ALLOCATED,
            "The time range is already fully allocated; split an existing block instead.",
        )
    if _is_too_short(remaining, settings):
        return _reject_below_minimum("append_category", state, settings)

    new_block = Block(start=start, end=time_range.end, category=name, color=color)
    return _accept("append_category", time_range, [*state.blocks, new_block])


def split_block(
    state: PartitionState,
    index: int,
    at: float,
    category: str,
    color: str = DEFAULT_BLOCK_COLOR,
    *,
    snap: bool = False,
    settings: EngineSettings | None = None,
) -> EditResult:
    """Carve [at, end) out of blocks[index] into a new block placed right after it."""
    settings = settings or _DEFAULT_ENGINE_SETTINGS
    name = category.strip()
    if not name:
        return _reject_blank_category("split_block", state)

    blocks = state.blocks
    if not 0 <= index < len(blocks):
        return _reject(
            "split_block",
            state,
            RejectionReason.INVALID_INDEX,
            f"Block {index} does not exist; expected an index in 0..{len(blocks) - 1}.",
        )

    if not _all_finite(at):
        return _reject_non_finite("split_block", state)

    if snap:
        at = snap_to_step(at, settings.snap_step)

    target = blocks[index]
    if _is_too_short(at - target.start, settings) or _is_too_short(target.end - at, settings):
        return _reject_below_minimum("split_block", state, settings)

    next_blocks = [
        *blocks[:index],
        target.with_bounds(target.start, at),
        Block(start=at, end=target.end, category=name, color=color),
        *blocks[index + 1 :],
    ]
    return _accept("split_block", state.time_range, next_blocks)


def remove_block(
    state: PartitionState,
    index: int,
) -> EditResult:
    """Delete blocks[index] and hand its span to the neighbors.

    Edge blocks are absorbed by their single neighbor, which is stretched to the
    range bound. An interior block is split evenly: both neighbors meet at its
    midpoint.
    """
    blocks = state.blocks
    if not 0 <= index < len(blocks):
        return _reject(
            "remove_block",
            state,
            RejectionReason.INVALID_INDEX,
            f"Block {index} does not exist; expected an index in 0..{len(blocks) - 1}.",
        )
    if len(blocks) == 1:
        return _reject(
            "remove_block",
            state,
            RejectionReason.CANNOT_REMOVE_LAST_BLOCK,
            "Cannot remove the last remaining block.",
        )

    time_range = state.time_range
    removed = blocks[index]
    next_blocks = [*blocks[:index], *blocks[index + 1 :]]

    if index == 0:
        first = next_blocks[0]
        next_blocks[0] = first.with_bounds(time_range.start, first.end)
    elif index == len(blocks) - 1:
        last = next_blocks[-1]
        next_blocks[-1] = last.with_bounds(last.start, time_range.end)
    else:
        midpoint = removed.start + removed.duration / 2
        left, right = next_blocks[index - 1], next_blocks[index]
        next_blocks[index - 1] = left.with_bounds(left.start, midpoint)
        next_blocks[index] = right.with_bounds(midpoint, right.end)

    return _accept("remove_block", time_range, next_blocks)


def rescale_range(
    state: PartitionState,
    new_range: TimeRange,
    *,
    settings: EngineSettings | None = None,
) -> EditResult:
    """Re-express the partition over new_range.

    Blocks outside the new range are dropped, the rest are clamped to it, and
    clamped blocks that end up shorter than the minimum duration are dropped
    too. The surviving first and last blocks are stretched to the new bounds,
    which may enlarge them beyond their original share. When nothing
    survives, a single default block covers the whole range.
    """
    settings = settings or _DEFAULT_ENGINE_SETTINGS
    if not _all_finite(new_range.start, new_range.end):
        return _reject(
            "rescale_range",
            state,
            RejectionReason.INVALID_RANGE,
            "Time range bounds must be finite numbers.",
        )
    if new_range.end <= new_range.start:
        return _reject(
            "rescale_range",
            state,
            RejectionReason.INVALID_RANGE,
            "End time must be greater than start time.",
        )
    if new_range.span < settings.min_range_span - EPSILON:
        return _reject(
            "rescale_range",
            state,
            RejectionReason.INVALID_RANGE,
            f"Time range must span at least {settings.min_range_span:g} hours.",
        )

    kept: list[Block] = []
    pruned: list[Block] = []
    for block in state.blocks:
        if block.end <= new_range.start or block.start >= new_range.end:
            pruned.append(block)
            continue

        clamped = block.with_bounds(
            max(block.start, new_range.start),
            min(block.end, new_range.end),
        )
        if _is_too_short(clamped.duration, settings):
            pruned.append(block)
            continue
        kept.append(clamped)

    notices: tuple[Notice, ...] = ()
    if pruned:
        categories = tuple(block.category for block in pruned)
        logger.warning(
            "partition_blocks_pruned count=%d categories=%s",
            len(pruned),
            ",".join(categories),
        )
        notices = (
            Notice(
                kind=NoticeKind.BLOCKS_PRUNED,
                message="Some blocks were removed because they were outside or too small for the new time range.",
                categories=categories,
            ),
        )

    if not kept:
        kept = [
            Block(
                start=new_range.start,
                end=new_range.end,
                category=settings.default_category,
                color=settings.default_color,
            )
        ]
    else:
        kept[0] = kept[0].with_bounds(new_range.start, kept[0].end)
        kept[-1] = kept[-1].with_bounds(kept[-1].start, new_range.end)

    accepted_range = TimeRange(start=new_range.start, end=new_range.end)
    return _accept("rescale_range", accepted_range, kept, notices)


# --- Queries ---


def default_state(settings: EngineSettings | None = None) -> PartitionState:
    """Seeded partition fitted to the configured default range."""
    settings = settings or _DEFAULT_ENGINE_SETTINGS
    seed = PartitionState(
        time_range=TimeRange(start=SEED_RANGE[0], end=SEED_RANGE[1]),
        blocks=[
            Block(start=start, end=end, category=category, color=color)
            for start, end, category, color in SEED_BLOCKS
        ],
    )
    if (settings.range_start, settings.range_end) == SEED_RANGE:
        return seed

    result = rescale_range(
        seed,
        TimeRange(start=settings.range_start, end=settings.range_end),
        settings=settings,
    )
    if not result.accepted:
        raise ValueError(f"Invalid default range: {result.rejection.message}")
    return result.state


def category_names(blocks: list[Block]) -> list[str]:
    """Distinct categories in block order, for task category pickers."""
    names: list[str] = []
    seen: set[str] = set()
    for block in blocks:
        if block.category not in seen:
            seen.add(block.category)
            names.append(block.category)
    return names


def color_for_category(
    blocks: list[Block],
    category: str,
    fallback: str = UNKNOWN_CATEGORY_COLOR,
) -> str:
    for block in blocks:
        if block.category == category:
            return block.color
    return fallback


def validate_partition(
    state: PartitionState,
    settings: EngineSettings | None = None,
) -> list[str]:
    """Return human-readable invariant violations; empty when the state is a valid tiling."""
    settings = settings or _DEFAULT_ENGINE_SETTINGS
    time_range = state.time_range
    blocks = state.blocks
    problems: list[str] = []

    if not _all_finite(time_range.start, time_range.end):
        problems.append(
            f"time_range: bounds {time_range.start:g}..{time_range.end:g} must be finite"
        )
    if time_range.end <= time_range.start:
        problems.append(
            f"time_range: end {time_range.end:g} must exceed start {time_range.start:g}"
        )
    if not blocks:
        problems.append("blocks: partition must contain at least one block")
        return problems

    if abs(blocks[0].start - time_range.start) > EPSILON:
        problems.append(
            f"blocks[0]: start {blocks[0].start:g} must equal range start {time_range.start:g}"
        )
    if abs(blocks[-1].end - time_range.end) > EPSILON:
        problems.append(
            f"blocks[{len(blocks) - 1}]: end {blocks[-1].end:g} must equal range end {time_range.end:g}"
        )

    for position, block in enumerate(blocks):
        if not _all_finite(block.start, block.end):
            problems.append(
                f"blocks[{position}]: bounds {block.start:g}..{block.end:g} must be finite"
            )
        if not block.category.strip():
            problems.append(f"blocks[{position}]: category must not be empty")
        if _is_too_short(block.duration, settings):
            problems.append(
                f"blocks[{position}]: duration {block.duration:g} is below minimum {settings.min_duration:g}"
            )

    for position, (left, right) in enumerate(zip(blocks, blocks[1:])):
        if abs(left.end - right.start) > EPSILON:
            problems.append(
                f"blocks[{position}]..blocks[{position + 1}]: gap or overlap between {left.end:g} and {right.start:g}"
            )

    return problems


# --- Helpers ---


def _accept(
    kind: str,
    time_range: TimeRange,
    blocks: list[Block],
    notices: tuple[Notice, ...] = (),
) -> EditResult:
    logger.info("partition_edit_applied kind=%s blocks=%d", kind, len(blocks))
    return EditResult(
        state=PartitionState(time_range=time_range, blocks=blocks),
        notices=notices,
    )


def _reject(
    kind: str,
    state: PartitionState,
    reason: RejectionReason,
    message: str,
) -> EditResult:
    logger.info("partition_edit_rejected kind=%s reason=%s", kind, reason)
    return EditResult(state=state, rejection=Rejection(reason=reason, message=message))


def _reject_below_minimum(kind: str, state: PartitionState, settings: EngineSettings) -> EditResult:
    minutes = round(settings.min_duration * 60)
    return _reject(
        kind,
        state,
        RejectionReason.BELOW_MINIMUM_DURATION,
        f"Time blocks must be at least {minutes} minutes long.",
    )


def _reject_blank_category(kind: str, state: PartitionState) -> EditResult:
    return _reject(
        kind,
        state,
        RejectionReason.INVALID_CATEGORY,
        "Category name must not be empty.",
    )


def _reject_non_finite(kind: str, state: PartitionState) -> EditResult:
    return _reject(
        kind,
        state,
        RejectionReason.INVALID_TIME,
        "Times must be finite numbers.",
    )


def _all_finite(*values: float) -> bool:
    return all(math.isfinite(value) for value in values)


def _is_too_short(duration: float, settings: EngineSettings) -> bool:
    return duration < settings.min_duration - EPSILON


def _clamp(value: float, *, lower: float, upper: float) -> float:
    if value < lower:
        return lower
    if value > upper:
        return upper
    return value
