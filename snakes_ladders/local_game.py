"""Local engine: two players share one device and take turns.

The move is resolved as soon as the die is rolled; the timeline then
reveals it step by step and only the final ``COMMIT`` step installs the
snapshot the turn machine computed up front. A roll is refused until that
commit has happened.
"""

from __future__ import annotations

import logging
import random
from dataclasses import replace
from typing import Callable

from snakes_ladders.board import MoveResult
from snakes_ladders.session import Session
from snakes_ladders.timeline import (
    AnimationPhase,
    Scheduler,
    StepKind,
    Timeline,
    TimelineStep,
    Timings,
    build_timeline,
)
from snakes_ladders.turns import (
    RollResult,
    apply_roll,
    can_roll,
    new_local_session,
    reset_session,
    roll_die,
)

logger = logging.getLogger(__name__)

Listener = Callable[["LocalGame"], None]


class LocalGame:
    """Owns the single in-process session and stages every move's reveal."""

    def __init__(
        self,
        scheduler: Scheduler,
        timings: Timings = Timings(),
        rng: random.Random | None = None,
    ):
        self.scheduler = scheduler
        self.timings = timings
        self.rng = rng or random.Random()

        self.session: Session | None = None
        self.is_rolling = False
        self.is_animating = False
        self.animation_phase = AnimationPhase.IDLE
        self.last_move_info: MoveResult | None = None
        self.last_roll: RollResult | None = None

        self._timeline: Timeline | None = None
        self._generation = 0
        self._listeners: list[Listener] = []

    # ── observers ────────────────────────────────────────────────────

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    @property
    def busy(self) -> bool:
        return self.is_rolling or self.is_animating

    # ── actions ──────────────────────────────────────────────────────

    def start_game(self, player1_name: str = "", player2_name: str = "") -> Session:
        self._supersede()
        self.session = new_local_session(player1_name, player2_name)
        self._clear_flags()
        self._notify()
        return self.session

    def roll_dice(self, actor_id: str | None = None) -> bool:
        """Roll for the current player. Returns False when the roll is refused."""
        session = self.session
        if session is None:
            return False
        actor = actor_id if actor_id is not None else session.current_turn
        if self._timeline is not None or not can_roll(session, actor, self.busy):
            return False

        dice_value = roll_die(self.rng)
        result = apply_roll(session, actor, dice_value)
        if not result.ok:
            return False

        start = session.player(actor).position
        self.last_roll = result
        self.last_move_info = None
        self.is_rolling = True
        self.animation_phase = AnimationPhase.ROLLING

        generation = self._generation
        steps = build_timeline(start, result.move, self.timings)
        logger.debug(
            "%s rolled %d: %d → %d in %d steps",
            actor, dice_value, start, result.move.final_position, len(steps),
        )
        self._timeline = Timeline(
            self.scheduler,
            steps,
            on_step=lambda step: self._apply_step(generation, actor, result, step),
        ).start()
        self._notify()
        return True

    def reset_game(self) -> None:
        """Everyone back to the start. Cancels any reveal in flight."""
        if self.session is None:
            return
        self._supersede()
        self.session = reset_session(self.session)
        self._clear_flags()
        self._notify()

    def close(self) -> None:
        """Cancel pending timers; called when the game view goes away."""
        self._supersede()
        self._listeners.clear()

    # ── timeline playback ────────────────────────────────────────────

    def _supersede(self) -> None:
        self._generation += 1
        if self._timeline is not None:
            self._timeline.cancel()
            self._timeline = None

    def _clear_flags(self) -> None:
        self.is_rolling = False
        self.is_animating = False
        self.animation_phase = AnimationPhase.IDLE
        self.last_move_info = None
        self.last_roll = None

    def _apply_step(
        self,
        generation: int,
        actor: str,
        result: RollResult,
        step: TimelineStep,
    ) -> None:
        if generation != self._generation or self.session is None:
            logger.debug("dropping stale %s step", step.kind.value)
            return

        move = result.move
        if step.kind == StepKind.REVEAL_DICE:
            self.session = replace(self.session, dice_value=result.dice_value)
            self.is_rolling = False
            self.is_animating = True
            self.animation_phase = AnimationPhase.STEPPING if not move.is_void else AnimationPhase.IDLE
        elif step.kind in (StepKind.STEP, StepKind.LAND):
            self.session = _with_position(self.session, actor, step.position)
            self.animation_phase = step.phase
            if step.kind == StepKind.LAND:
                self.last_move_info = move
        elif step.kind == StepKind.SLIDE:
            self.animation_phase = step.phase
        elif step.kind == StepKind.COMMIT:
            self.session = result.session
            if self.last_move_info is None:
                self.last_move_info = move
            self.is_animating = False
            self.animation_phase = AnimationPhase.IDLE
            self._timeline = None
        self._notify()


def _with_position(session: Session, player_id: str, position: int) -> Session:
    players = [replace(p, position=position) if p.id == player_id else replace(p) for p in session.players]
    return replace(session, players=players)
