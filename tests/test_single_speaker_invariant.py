import random

import pytest

from speaker_queue.clock import ManualClock
from speaker_queue.events import EventType
from speaker_queue.event_sink import InMemoryEventSink
from speaker_queue.models import MeetingFormat, ParticipantStatus
from speaker_queue.scheduler import SpeakerQueue


def check_invariants(queue: SpeakerQueue) -> None:
    people = queue.participants
    speaking = [p for p in people if p.status == ParticipantStatus.SPEAKING]

    assert len(speaking) <= 1
    if speaking:
        assert queue.current_speaker_id == speaking[0].id
        assert speaking[0].turn_started_at is not None
    else:
        assert queue.current_speaker_id is None

    assert [p.position for p in people] == list(range(len(people)))
    for p in people:
        if p.status != ParticipantStatus.SPEAKING:
            assert p.turn_started_at is None
        assert p.speaking_time >= 0

    progress = queue.get_queue_progress()
    assert progress.total == progress.completed + progress.remaining


@pytest.mark.parametrize("fmt", list(MeetingFormat))
@pytest.mark.parametrize("seed", range(8))
def test_random_command_sequences_keep_the_queue_consistent(fmt, seed):
    rng = random.Random(seed)
    clock = ManualClock()
    sink = InMemoryEventSink()
    queue = SpeakerQueue(clock=clock, event_sink=sink, rng=random.Random(seed))
    queue.set_meeting_format(fmt)
    queue.set_time_limit(rng.choice([0, 10, 25]))
    queue.set_auto_advance_delay(rng.choice([0, 2, 5]))

    ids = [str(i) for i in range(1, 7)]
    for pid in ids[:4]:
        queue.add_participant(pid, f"P{pid}")

    commands = [
        lambda pid: queue.add_participant(pid, f"P{pid}"),
        queue.remove_participant,
        queue.start_speaking,
        lambda pid: queue.start_next_speaker(),
        queue.end_turn,
        queue.skip_participant,
        queue.pause_participant,
        queue.unpause_participant,
        lambda pid: queue.set_auto_advance(rng.random() < 0.7),
        lambda pid: queue.shuffle_queue(),
        lambda pid: queue.reorder_participants(rng.sample(ids, k=3)),
        lambda pid: clock.advance(rng.choice([0.5, 1, 3, 12, 30])),
    ]

    for _ in range(300):
        rng.choice(commands)(rng.choice(ids))
        check_invariants(queue)
        if rng.random() < 0.02:
            queue.reset_queue()
            check_invariants(queue)

    assert [e.seq for e in sink.events] == list(range(1, len(sink.events) + 1))
    started = sink.of_type(EventType.SPEAKER_STARTED)
    assert all(e.participant_id in ids for e in started)
