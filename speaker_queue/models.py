from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ParticipantStatus(str, Enum):
    """
    Closed set of participant states.
    Skipping branches over every member and raises on an unhandled one;
    pause/unpause only ever move between WAITING and PAUSED.
    """

    WAITING = "waiting"
    SPEAKING = "speaking"
    PAUSED = "paused"
    SKIPPED = "skipped"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (ParticipantStatus.SKIPPED, ParticipantStatus.COMPLETED)


class MeetingFormat(str, Enum):
    STANDARD = "standard"
    ROUND_ROBIN = "roundRobin"
    TIME_BOX = "timeBox"


@dataclass
class Participant:
    id: str
    name: str
    # Dense zero-based rank; the roster always holds exactly 0..n-1.
    position: int
    status: ParticipantStatus = ParticipantStatus.WAITING
    # Seconds credited to the most recently completed turn (set, not accumulated).
    speaking_time: int = 0
    # Clock reading; only present while status == SPEAKING.
    turn_started_at: float | None = None


@dataclass(frozen=True, slots=True)
class QueueProgress:
    total: int
    completed: int
    remaining: int


@dataclass(frozen=True, slots=True)
class MeetingSettings:
    format: MeetingFormat
    time_limit_seconds: int
    current_round: int
    auto_advance_enabled: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "format": self.format.value,
            "timeLimitSeconds": self.time_limit_seconds,
            "currentRound": self.current_round,
            "autoAdvanceEnabled": self.auto_advance_enabled,
        }
