"""Animation timeline: one resolved move expanded into timed steps.

A move is turned into an explicit, finite list of ``TimelineStep`` values
by :func:`build_timeline`, then played back by a :class:`Timeline`, which
keeps exactly one pending timer at a time and can be cancelled at any
point.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from snakes_ladders.board import MoveResult, compute_path

logger = logging.getLogger(__name__)


class AnimationPhase(str, Enum):
    IDLE = "idle"
    ROLLING = "rolling"
    STEPPING = "stepping"
    SNAKE = "snake"
    LADDER = "ladder"


class StepKind(str, Enum):
    REVEAL_DICE = "reveal_dice"
    STEP = "step"
    SLIDE = "slide"  # snake/ladder overlay starts
    LAND = "land"  # pawn arrives at the snake/ladder destination
    COMMIT = "commit"


@dataclass(frozen=True)
class Timings:
    """Phase durations, in seconds."""

    dice: float = 0.6
    step: float = 0.35
    pause: float = 1.2
    snake_slide: float = 0.8
    ladder_climb: float = 1.4  # slower than a slide so the climb is visible

    def scaled(self, factor: float) -> Timings:
        return Timings(
            dice=self.dice * factor,
            step=self.step * factor,
            pause=self.pause * factor,
            snake_slide=self.snake_slide * factor,
            ladder_climb=self.ladder_climb * factor,
        )


@dataclass(frozen=True)
class TimelineStep:
    delay: float  # seconds after the previous step
    kind: StepKind
    phase: AnimationPhase
    position: int | None = None


def build_timeline(
    start: int,
    move: MoveResult,
    timings: Timings = Timings(),
) -> list[TimelineStep]:
    """Expand a resolved move into the ordered steps that reveal it.

    dice flicker → one step per cell → optional snake/ladder slide → commit.
    A void (overshoot) move reveals the dice and commits straight away.
    """
    steps = [TimelineStep(timings.dice, StepKind.REVEAL_DICE, AnimationPhase.ROLLING)]

    if move.is_void:
        steps.append(TimelineStep(0.0, StepKind.COMMIT, AnimationPhase.IDLE, start))
        return steps

    for cell in compute_path(start, move):
        steps.append(TimelineStep(timings.step, StepKind.STEP, AnimationPhase.STEPPING, cell))

    if move.hit_snake or move.hit_ladder:
        phase = AnimationPhase.SNAKE if move.hit_snake else AnimationPhase.LADDER
        slide = timings.snake_slide if move.hit_snake else timings.ladder_climb
        steps.append(TimelineStep(timings.pause, StepKind.SLIDE, phase, move.intermediate_position))
        steps.append(TimelineStep(slide, StepKind.LAND, phase, move.final_position))

    steps.append(TimelineStep(timings.step, StepKind.COMMIT, AnimationPhase.IDLE, move.final_position))
    return steps


def total_duration(steps: list[TimelineStep]) -> float:
    return sum(s.delay for s in steps)


# ── Scheduling primitives ────────────────────────────────────────────

class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback after *delay* seconds; the returned handle cancels it."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Schedules on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class _ManualHandle:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual-clock scheduler; time only moves when :meth:`advance` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, _ManualHandle]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self.now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every callback that comes due."""
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            when, _, handle = heapq.heappop(self._queue)
            self.now = when
            if not handle.cancelled:
                handle.callback()
        self.now = target

    def run_all(self, limit: int = 10_000) -> None:
        """Fire callbacks until nothing is pending."""
        for _ in range(limit):
            live = [entry for entry in self._queue if not entry[2].cancelled]
            if not live:
                self._queue.clear()
                return
            self.advance(min(w for w, _, _ in live) - self.now)
        raise RuntimeError("scheduler did not drain")


class TimerGroup:
    """A disposable group of timer handles, cancelled together."""

    def __init__(self, scheduler: Scheduler):
        self._scheduler = scheduler
        self._handles: list[TimerHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = self._scheduler.call_later(delay, callback)
        self._handles.append(handle)
        return handle

    def cancel_all(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()

    def __len__(self) -> int:
        return len(self._handles)


# ── Playback ─────────────────────────────────────────────────────────

class Timeline:
    """Plays a list of steps, one timer at a time."""

    def __init__(
        self,
        scheduler: Scheduler,
        steps: list[TimelineStep],
        on_step: Callable[[TimelineStep], None],
        on_done: Callable[[], None] | None = None,
    ):
        self.steps = list(steps)
        self.index = 0
        self.cancelled = False
        self._on_step = on_step
        self._on_done = on_done
        self._timers = TimerGroup(scheduler)

    @property
    def finished(self) -> bool:
        return self.index >= len(self.steps)

    @property
    def running(self) -> bool:
        return not self.finished and not self.cancelled

    def start(self) -> Timeline:
        self._schedule_next()
        return self

    def cancel(self) -> None:
        if self.cancelled or self.finished:
            return
        self.cancelled = True
        self._timers.cancel_all()
        logger.debug("timeline cancelled at step %d/%d", self.index, len(self.steps))

    def _schedule_next(self) -> None:
        self._timers.cancel_all()
        if self.finished:
            if self._on_done is not None:
                self._on_done()
            return
        self._timers.call_later(self.steps[self.index].delay, self._fire)

    def _fire(self) -> None:
        if self.cancelled:
            return
        step = self.steps[self.index]
        self.index += 1
        self._on_step(step)
        if not self.cancelled:
            self._schedule_next()
