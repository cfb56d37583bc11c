from __future__ import annotations

import random

import pytest

from speaker_queue.clock import ManualClock
from speaker_queue.event_sink import InMemoryEventSink
from speaker_queue.scheduler import SpeakerQueue


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def sink() -> InMemoryEventSink:
    return InMemoryEventSink()


@pytest.fixture
def queue(clock: ManualClock, sink: InMemoryEventSink) -> SpeakerQueue:
    return SpeakerQueue(clock=clock, event_sink=sink, rng=random.Random(1234))
