from speaker_queue.events import EventType
from speaker_queue.models import QueueProgress


def add_people(queue, *names):
    for i, name in enumerate(names, start=1):
        queue.add_participant(str(i), name)


def test_empty_roster_is_complete(queue):
    assert queue.get_queue_progress() == QueueProgress(total=0, completed=0, remaining=0)
    assert queue.is_queue_complete()


def test_progress_counts_only_completed(queue):
    queue.set_auto_advance(False)
    add_people(queue, "John", "Jane", "Bob")
    queue.start_speaking("1")
    queue.end_turn("1")

    assert queue.get_queue_progress() == QueueProgress(total=3, completed=1, remaining=2)


def test_skipped_and_paused_count_as_remaining(queue):
    add_people(queue, "John", "Jane", "Bob")
    queue.skip_participant("1")
    queue.pause_participant("2")

    progress = queue.get_queue_progress()
    assert progress.completed == 0
    assert progress.remaining == 3


def test_paused_participant_keeps_the_queue_open(queue):
    queue.set_auto_advance(False)
    add_people(queue, "John", "Jane")
    queue.pause_participant("2")
    queue.start_speaking("1")
    queue.end_turn("1")

    assert not queue.is_queue_complete()


def test_complete_when_only_skipped_and_completed_remain(queue):
    queue.set_auto_advance(False)
    add_people(queue, "John", "Jane")
    queue.skip_participant("1")
    queue.start_speaking("2")
    assert not queue.is_queue_complete()

    queue.end_turn("2")
    assert queue.is_queue_complete()


def test_complete_round_finishes_everyone(queue, clock, sink):
    add_people(queue, "John", "Jane", "Bob")
    queue.pause_participant("3")
    queue.start_speaking("1")
    clock.advance(14)

    queue.complete_round()

    assert queue.is_queue_complete()
    assert queue.get_queue_progress() == QueueProgress(total=3, completed=3, remaining=0)
    assert queue.get_participant("1").speaking_time == 14
    assert queue.current_round == 1
    assert queue.pending_action is None
    assert sink.events[-1].type == EventType.QUEUE_COMPLETED


def test_queue_completed_fires_once_per_transition(queue, sink):
    queue.set_auto_advance(False)
    add_people(queue, "John")
    queue.start_speaking("1")
    queue.end_turn("1")
    queue.complete_round()
    assert len(sink.of_type(EventType.QUEUE_COMPLETED)) == 1

    queue.add_participant("2", "Jane")
    queue.skip_participant("2")
    assert len(sink.of_type(EventType.QUEUE_COMPLETED)) == 2


def test_removing_the_last_open_participant_completes_the_queue(queue, sink):
    queue.set_auto_advance(False)
    add_people(queue, "John", "Jane")
    queue.start_speaking("1")
    queue.end_turn("1")

    queue.remove_participant("2")

    assert queue.is_queue_complete()
    assert sink.events[-1].type == EventType.QUEUE_COMPLETED
