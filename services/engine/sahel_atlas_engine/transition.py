"""Progressive stochastic reveal between two frames of the same dataset.

The animator is a two-state machine (idle, animating). Ticks come from an
injected ``FrameScheduler`` and time from an injected monotonic ``clock`` so the
transition can be stepped deterministically without a display refresh loop.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol

import numpy as np

from .logging_config import get_logger
from .models import DatasetKind
from .modules.temporal import stochastic_mix

LOGGER = get_logger(__name__)

TRANSITION_DURATION_MS = 500.0
FRAME_INTERVAL_S = 1.0 / 60.0

TickCallback = Callable[[float], None]


class AnimatorState(str, Enum):
    idle = "idle"
    animating = "animating"


@dataclass
class TransitionState:
    from_cells: np.ndarray
    to_cells: np.ndarray
    start_time: float
    duration_ms: float
    width: int
    height: int
    dataset_kind: DatasetKind


DrawCallback = Callable[[np.ndarray, TransitionState, bool], None]


class FrameScheduler(Protocol):
    def request_frame(self, callback: TickCallback) -> Any: ...

    def cancel_frame(self, handle: Any) -> None: ...


class ManualFrameScheduler:
    """Collects requested ticks until the owner runs them with an explicit timestamp."""

    def __init__(self) -> None:
        self._callbacks: dict[int, TickCallback] = {}
        self._next_handle = 0

    def request_frame(self, callback: TickCallback) -> int:
        self._next_handle += 1
        self._callbacks[self._next_handle] = callback
        return self._next_handle

    def cancel_frame(self, handle: Any) -> None:
        self._callbacks.pop(handle, None)

    @property
    def pending(self) -> int:
        return len(self._callbacks)

    def run_pending(self, now: float) -> int:
        callbacks = list(self._callbacks.values())
        self._callbacks.clear()
        for callback in callbacks:
            callback(now)
        return len(callbacks)


class AsyncioFrameScheduler:
    def __init__(self, clock: Callable[[], float] = time.monotonic, interval_s: float = FRAME_INTERVAL_S):
        self._clock = clock
        self._interval_s = interval_s

    def request_frame(self, callback: TickCallback) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(self._interval_s, lambda: callback(self._clock()))

    def cancel_frame(self, handle: Any) -> None:
        if handle is not None:
            handle.cancel()


class TransitionAnimator:
    duration_ms = TRANSITION_DURATION_MS

    def __init__(
        self,
        on_draw: DrawCallback,
        scheduler: FrameScheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: np.random.Generator | None = None,
    ):
        self._on_draw = on_draw
        self._scheduler = scheduler
        self._clock = clock
        self._rng = rng
        self._state = AnimatorState.idle
        self._transition: TransitionState | None = None
        self._handle: Any = None
        self._last_drawn: np.ndarray | None = None

    @property
    def state(self) -> AnimatorState:
        return self._state

    @property
    def is_animating(self) -> bool:
        return self._state == AnimatorState.animating

    @property
    def transition(self) -> TransitionState | None:
        return self._transition

    @property
    def last_drawn(self) -> np.ndarray | None:
        return self._last_drawn

    def mark_drawn(self, cells: np.ndarray | None) -> None:
        # Full redraws done outside the animator still define where the next transition starts.
        self._last_drawn = cells

    def start(
        self,
        to_cells: np.ndarray,
        width: int,
        height: int,
        dataset_kind: DatasetKind,
        from_cells: np.ndarray | None = None,
    ) -> TransitionState | None:
        if self.is_animating:
            source = self._last_drawn
            LOGGER.debug("transition preempted", extra={"dataset": dataset_kind.value})
        else:
            source = from_cells if from_cells is not None else self._last_drawn
        self._cancel_scheduled()

        target = np.asarray(to_cells).reshape(-1)
        if source is None or np.asarray(source).size != target.size or target.size == 0:
            self._transition = None
            self._state = AnimatorState.idle
            self._draw(target, self._snapshot_for(target, target, width, height, dataset_kind), True)
            return None

        self._transition = TransitionState(
            from_cells=np.asarray(source).reshape(-1).copy(),
            to_cells=target,
            start_time=self._clock(),
            duration_ms=self.duration_ms,
            width=width,
            height=height,
            dataset_kind=dataset_kind,
        )
        self._state = AnimatorState.animating
        self._schedule()
        return self._transition

    def cancel(self) -> None:
        self._cancel_scheduled()
        self._transition = None
        self._state = AnimatorState.idle

    def tick(self, now: float | None = None) -> float:
        self._handle = None
        transition = self._transition
        if transition is None:
            return 1.0

        current = self._clock() if now is None else now
        elapsed_ms = (current - transition.start_time) * 1000.0
        progress = min(max(elapsed_ms / transition.duration_ms, 0.0), 1.0)

        if progress >= 1.0:
            self._transition = None
            self._state = AnimatorState.idle
            self._draw(transition.to_cells, transition, True)
            return progress

        cells = stochastic_mix(transition.from_cells, transition.to_cells, progress, self._rng)
        self._draw(cells, transition, False)
        self._schedule()
        return progress

    def _draw(self, cells: np.ndarray, transition: TransitionState, finished: bool) -> None:
        self._last_drawn = cells
        self._on_draw(cells, transition, finished)

    def _schedule(self) -> None:
        if self._scheduler is None:
            return
        self._handle = self._scheduler.request_frame(self.tick)

    def _cancel_scheduled(self) -> None:
        if self._scheduler is not None and self._handle is not None:
            self._scheduler.cancel_frame(self._handle)
        self._handle = None

    def _snapshot_for(
        self,
        from_cells: np.ndarray,
        to_cells: np.ndarray,
        width: int,
        height: int,
        dataset_kind: DatasetKind,
    ) -> TransitionState:
        return TransitionState(
            from_cells=from_cells,
            to_cells=to_cells,
            start_time=self._clock(),
            duration_ms=0.0,
            width=width,
            height=height,
            dataset_kind=dataset_kind,
        )
