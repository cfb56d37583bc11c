from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """
    Transition vocabulary published to collaborators (UI, chat poster).
    Payload keys per type are documented on SpeakerQueue.
    """

    SPEAKER_STARTED = "SPEAKER_STARTED"
    SPEAKER_ENDED = "SPEAKER_ENDED"
    SKIPPED = "SKIPPED"
    ROUND_ADVANCED = "ROUND_ADVANCED"
    QUEUE_COMPLETED = "QUEUE_COMPLETED"

    PARTICIPANT_ADDED = "PARTICIPANT_ADDED"
    PARTICIPANT_REMOVED = "PARTICIPANT_REMOVED"
    AUTO_ADVANCE_SCHEDULED = "AUTO_ADVANCE_SCHEDULED"
    QUEUE_RESET = "QUEUE_RESET"


@dataclass(frozen=True, slots=True)
class Event:
    """
    A structured, orderable fact emitted by the queue.

    seq and at are stamped by the emitter (so the queue never numbers events itself).
    """

    seq: int
    at: float
    type: EventType
    participant_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "seq": self.seq,
            "at": self.at,
            "type": self.type.value,
            "participant_id": self.participant_id,
            "data": dict(self.data),
        }
