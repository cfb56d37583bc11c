from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, ContextManager

from speaker_queue.clock import Clock, TimerHandle

logger = logging.getLogger(__name__)


class DeferredKind(str, Enum):
    AUTO_ADVANCE = "AUTO_ADVANCE"
    TIME_BOX_EXPIRY = "TIME_BOX_EXPIRY"


@dataclass(frozen=True, slots=True)
class PendingAction:
    kind: DeferredKind
    delay_seconds: float
    scheduled_at: float


class DeferredActionManager:
    """
    Owns at most one scheduled future transition.

    Rules:
    - schedule() replaces whatever was pending.
    - cancel() is idempotent.
    - A firing timer enters the queue guard and runs its action only if it is
      still the pending one; a cancelled or replaced action is dropped even
      if its timer thread already woke up.
    - Actions re-read live queue state when they run; nothing is captured
      at scheduling time except the action itself.
    """

    def __init__(self, clock: Clock, guard: Callable[[], ContextManager[object]]):
        self._clock = clock
        # Same exclusive-write section every queue command runs in.
        self._guard = guard
        self._pending: PendingAction | None = None
        self._timer: TimerHandle | None = None

    @property
    def pending(self) -> PendingAction | None:
        return self._pending

    def schedule(self, delay_seconds: float, action: Callable[[], None], kind: DeferredKind) -> PendingAction:
        with self._guard():
            self.cancel()
            pending = PendingAction(
                kind=kind,
                delay_seconds=float(delay_seconds),
                scheduled_at=float(self._clock.now()),
            )
            self._pending = pending
            self._timer = self._clock.call_later(delay_seconds, lambda: self._fire(pending, action))
            logger.debug("Scheduled %s in %ss", kind.value, delay_seconds)
            return pending

    def cancel(self, kind: DeferredKind | None = None) -> None:
        with self._guard():
            if self._pending is None:
                return
            if kind is not None and self._pending.kind != kind:
                return
            logger.debug("Cancelled %s", self._pending.kind.value)
            if self._timer is not None:
                self._timer.cancel()
            self._pending = None
            self._timer = None

    def remaining_seconds(self) -> int:
        with self._guard():
            if self._pending is None:
                return 0
            elapsed = float(self._clock.now()) - self._pending.scheduled_at
            return int(math.ceil(max(0.0, self._pending.delay_seconds - elapsed)))

    def _fire(self, pending: PendingAction, action: Callable[[], None]) -> None:
        with self._guard():
            if self._pending is not pending:
                return
            self._pending = None
            self._timer = None
            logger.debug("Firing %s", pending.kind.value)
            action()
