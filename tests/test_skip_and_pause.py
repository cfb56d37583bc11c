from speaker_queue.events import EventType
from speaker_queue.models import ParticipantStatus


def add_people(queue, *names):
    for i, name in enumerate(names, start=1):
        queue.add_participant(str(i), name)


def test_skip_waiting_participant_is_a_pure_status_change(queue, sink):
    add_people(queue, "John", "Jane")
    queue.skip_participant("1")

    assert queue.get_participant("1").status == ParticipantStatus.SKIPPED
    assert queue.get_participant("1").speaking_time == 0
    assert queue.current_speaker_id is None
    assert sink.of_type(EventType.SKIPPED)[0].participant_id == "1"


def test_skipping_the_speaker_clears_the_turn_without_advancing(queue, clock):
    queue.set_auto_advance_delay(0)
    add_people(queue, "John", "Jane")
    queue.start_speaking("1")
    clock.advance(8)

    queue.skip_participant("1")

    john = queue.get_participant("1")
    assert john.status == ParticipantStatus.SKIPPED
    assert john.speaking_time == 0
    assert john.turn_started_at is None
    assert queue.current_speaker_id is None
    assert queue.get_participant("2").status == ParticipantStatus.WAITING


def test_skip_paused_participant(queue):
    add_people(queue, "John")
    queue.pause_participant("1")
    queue.skip_participant("1")
    assert queue.get_participant("1").status == ParticipantStatus.SKIPPED


def test_skip_terminal_participant_is_noop(queue, sink):
    queue.set_auto_advance(False)
    add_people(queue, "John", "Jane")
    queue.start_speaking("1")
    queue.end_turn("1")
    before = len(sink.events)

    queue.skip_participant("1")

    assert queue.get_participant("1").status == ParticipantStatus.COMPLETED
    assert len(sink.events) == before


def test_skipping_the_last_waiting_participant_completes_the_queue(queue, sink):
    queue.set_auto_advance(False)
    add_people(queue, "John", "Jane")
    queue.start_speaking("1")
    queue.end_turn("1")

    queue.skip_participant("2")

    assert queue.is_queue_complete()
    assert sink.events[-1].type == EventType.QUEUE_COMPLETED


def test_pause_and_unpause_toggle_waiting_only(queue):
    add_people(queue, "John", "Jane")

    queue.pause_participant("1")
    assert queue.get_participant("1").status == ParticipantStatus.PAUSED
    queue.unpause_participant("1")
    assert queue.get_participant("1").status == ParticipantStatus.WAITING

    queue.start_speaking("2")
    queue.pause_participant("2")
    assert queue.get_participant("2").status == ParticipantStatus.SPEAKING

    queue.unpause_participant("1")
    assert queue.get_participant("1").status == ParticipantStatus.WAITING


def test_paused_participants_are_passed_over_for_next_speaker(queue):
    add_people(queue, "John", "Jane", "Bob")
    queue.pause_participant("1")
    queue.skip_participant("2")

    assert queue.get_next_speaker().id == "3"


def test_skipping_twice_emits_one_event(queue, sink):
    add_people(queue, "John", "Jane")
    queue.skip_participant("1")
    queue.skip_participant("1")
    assert len(sink.of_type(EventType.SKIPPED)) == 1


def test_terminal_statuses():
    assert {s for s in ParticipantStatus if s.is_terminal} == {
        ParticipantStatus.SKIPPED,
        ParticipantStatus.COMPLETED,
    }


def test_pause_and_unpause_ignore_every_other_status(queue):
    """Only WAITING <-> PAUSED moves; speaking, skipped and completed stay put."""
    queue.set_auto_advance(False)
    add_people(queue, "John", "Jane", "Bob")
    queue.start_speaking("1")
    queue.end_turn("1")
    queue.skip_participant("2")
    queue.start_speaking("3")

    for pid in ("1", "2", "3"):
        queue.pause_participant(pid)
        queue.unpause_participant(pid)

    assert [p.status for p in queue.participants] == [
        ParticipantStatus.COMPLETED,
        ParticipantStatus.SKIPPED,
        ParticipantStatus.SPEAKING,
    ]
