from speaker_queue.events import EventType
from speaker_queue.models import ParticipantStatus


def positions(queue):
    return sorted(p.position for p in queue.participants)


def test_add_assigns_dense_positions_in_insertion_order(queue):
    for i, name in enumerate(["John", "Jane", "Bob", "Alice", "Eve"]):
        queue.add_participant(str(i + 1), name)
        assert positions(queue) == list(range(i + 1))

    added = queue.get_participant("3")
    assert added.position == 2
    assert added.status == ParticipantStatus.WAITING
    assert added.speaking_time == 0
    assert added.turn_started_at is None


def test_add_does_not_touch_current_speaker(queue):
    queue.add_participant("1", "John")
    queue.start_speaking("1")
    queue.add_participant("2", "Jane")
    assert queue.current_speaker_id == "1"


def test_duplicate_id_is_ignored(queue, sink):
    queue.add_participant("1", "John")
    queue.add_participant("1", "Johnny")

    assert len(queue.participants) == 1
    assert queue.get_participant("1").name == "John"
    assert len(sink.of_type(EventType.PARTICIPANT_ADDED)) == 1


def test_add_participants_accepts_mappings_and_pairs(queue):
    queue.add_participants([{"id": "1", "name": "John"}, ("2", "Jane")])
    assert [p.name for p in queue.participants] == ["John", "Jane"]


def test_remove_repacks_positions(queue, sink):
    for pid, name in [("1", "John"), ("2", "Jane"), ("3", "Bob")]:
        queue.add_participant(pid, name)

    queue.remove_participant("2")

    assert [(p.id, p.position) for p in queue.participants] == [("1", 0), ("3", 1)]
    assert sink.of_type(EventType.PARTICIPANT_REMOVED)[0].participant_id == "2"


def test_removing_current_speaker_drops_turn_without_advancing(queue, clock):
    """
    The removed speaker's turn is not credited and nobody is auto-started,
    even with auto-advance on and a zero delay.
    """
    queue.set_auto_advance_delay(0)
    queue.add_participant("1", "John")
    queue.add_participant("2", "Jane")
    queue.start_speaking("1")
    clock.advance(10)

    queue.remove_participant("1")

    assert queue.current_speaker_id is None
    assert queue.get_participant("1") is None
    assert queue.get_participant("2").status == ParticipantStatus.WAITING
    assert queue.pending_action is None


def test_remove_unknown_id_is_noop(queue, sink):
    queue.add_participant("1", "John")
    before = len(sink.events)
    queue.remove_participant("nope")
    assert len(queue.participants) == 1
    assert len(sink.events) == before
