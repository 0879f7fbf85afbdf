"""Execution timeline — append-only record of the ticks a task held the builder."""

from typing import Optional

from pydantic import BaseModel, Field

from townhall.errors import SchedulingInvariantError


class Segment(BaseModel):
    """One contiguous run of a task: [start, end). `end` is None while running."""

    start: int = Field(ge=0, description="Tick the run began")
    end: Optional[int] = Field(default=None, ge=0, description="Tick the run stopped (exclusive)")

    @property
    def is_open(self) -> bool:
        return self.end is None

    def duration(self, now: Optional[int] = None) -> int:
        """Ticks covered by this segment; an open segment counts up to `now`."""
        end = self.end if self.end is not None else now
        if end is None:
            return 0
        return max(0, end - self.start)

    def __repr__(self) -> str:
        end = "…" if self.end is None else self.end
        return f"[{self.start}-{end})"


class Timeline(BaseModel):
    """Ordered, non-overlapping run segments of a single task."""

    segments: list[Segment] = Field(default_factory=list, description="Run segments in tick order")

    @property
    def is_open(self) -> bool:
        return bool(self.segments) and self.segments[-1].is_open

    @property
    def first_start(self) -> Optional[int]:
        """Tick the task first ran, or None if it never ran."""
        if self.segments:
            return self.segments[0].start
        return None

    @property
    def last_end(self) -> Optional[int]:
        if self.segments:
            return self.segments[-1].end
        return None

    def open(self, tick: int) -> Segment:
        """Start a run at `tick`, or continue the current run if it was never closed."""
        if self.is_open:
            return self.segments[-1]
        if self.segments and tick < self.segments[-1].end:
            raise SchedulingInvariantError(
                f"segment at tick {tick} would overlap {self.segments[-1]!r}"
            )
        segment = Segment(start=tick)
        self.segments.append(segment)
        return segment

    def close(self, tick: int) -> Segment:
        """Stop the current run at `tick`."""
        if not self.is_open:
            raise SchedulingInvariantError(f"no open segment to close at tick {tick}")
        segment = self.segments[-1]
        if tick < segment.start:
            raise SchedulingInvariantError(
                f"segment {segment!r} cannot end at tick {tick}"
            )
        segment.end = tick
        return segment

    def duration(self, now: Optional[int] = None) -> int:
        """Total ticks run; an open segment counts up to `now`."""
        return sum(s.duration(now) for s in self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def __repr__(self) -> str:
        return "Timeline(" + " ".join(repr(s) for s in self.segments) + ")"
