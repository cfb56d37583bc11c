"""
Speaker Queue: turn-scheduling engine for live sessions

Core modules:
- scheduler: the single-writer queue (commands + queries)
- policy: what happens when a turn ends, per meeting format
- deferred: the one outstanding timed transition (auto-advance / time-box expiry)
- clock: injectable time source (ManualClock for tests and replays)
- events / event_sink: transition feed for collaborators
"""
from speaker_queue.clock import Clock, ManualClock, SystemClock
from speaker_queue.event_sink import EventSink, InMemoryEventSink
from speaker_queue.events import Event, EventType
from speaker_queue.models import MeetingFormat, Participant, ParticipantStatus
from speaker_queue.scheduler import SpeakerQueue

__all__ = [
    "Clock",
    "Event",
    "EventSink",
    "EventType",
    "InMemoryEventSink",
    "ManualClock",
    "MeetingFormat",
    "Participant",
    "ParticipantStatus",
    "SpeakerQueue",
    "SystemClock",
]
