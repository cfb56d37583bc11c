"""
Format policy: decides what happens after a turn ends.

Pure decision logic. It reads queue state and returns a NextAction; the
queue applies it. Round-robin restarts and time-box advances ignore the
auto-advance settings on purpose (new rounds and strict pacing are always
immediate).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from speaker_queue.models import MeetingFormat, ParticipantStatus

if TYPE_CHECKING:
    from speaker_queue.scheduler import SpeakerQueue


class NextActionKind(str, Enum):
    IDLE = "IDLE"
    ADVANCE = "ADVANCE"
    NEW_ROUND = "NEW_ROUND"


@dataclass(frozen=True, slots=True)
class NextAction:
    kind: NextActionKind
    participant_id: str | None = None
    delay_seconds: int = 0


IDLE = NextAction(NextActionKind.IDLE)


def advance_if_any(queue: SpeakerQueue, delay_seconds: int) -> NextAction:
    """ADVANCE to the next waiting participant, or IDLE if auto-advance is off or nobody waits."""
    if not queue.auto_advance_enabled:
        return IDLE
    nxt = queue.get_next_speaker()
    if nxt is None:
        return IDLE
    return NextAction(NextActionKind.ADVANCE, participant_id=nxt.id, delay_seconds=int(delay_seconds))


def on_turn_ended(queue: SpeakerQueue, just_ended_id: str) -> NextAction:
    """
    Decide the step after just_ended_id's turn ended.

    - standard:   advance_if_any(auto-advance delay)
    - roundRobin: like standard while someone waits; otherwise NEW_ROUND
                  (starts immediately, no delay)
    - timeBox:    with a limit set, ADVANCE with delay 0 regardless of the
                  auto-advance flag; without a limit, like standard
    """
    fmt = queue.format

    if fmt == MeetingFormat.STANDARD:
        return advance_if_any(queue, queue.auto_advance_delay_seconds)

    if fmt == MeetingFormat.ROUND_ROBIN:
        if queue.get_next_speaker() is not None:
            return advance_if_any(queue, queue.auto_advance_delay_seconds)
        if any(p.status == ParticipantStatus.COMPLETED for p in queue.participants):
            return NextAction(NextActionKind.NEW_ROUND)
        return IDLE

    if fmt == MeetingFormat.TIME_BOX:
        if queue.time_limit_seconds <= 0:
            return advance_if_any(queue, queue.auto_advance_delay_seconds)
        nxt = queue.get_next_speaker()
        if nxt is None:
            return IDLE
        return NextAction(NextActionKind.ADVANCE, participant_id=nxt.id, delay_seconds=0)

    raise ValueError(f"unhandled meeting format {fmt!r} after turn of {just_ended_id!r}")
