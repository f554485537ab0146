from __future__ import annotations

from sqlmodel import Field, SQLModel

DEFAULT_BLOCK_COLOR = "#9e9e9e"


class TimeRange(SQLModel):
    start: float
    end: float

    @property
    def span(self) -> float:
        return self.end - self.start


class Block(SQLModel):
    start: float
    end: float
    category: str
    color: str = Field(default=DEFAULT_BLOCK_COLOR)

    @property
    def duration(self) -> float:
        return self.end - self.start

    def with_bounds(self, start: float, end: float) -> Block:
        return Block(start=start, end=end, category=self.category, color=self.color)


class PartitionState(SQLModel):
    """Range being partitioned plus its ordered blocks; replaced wholesale on every edit."""

    time_range: TimeRange
    blocks: list[Block] = Field(default_factory=list)
