from __future__ import annotations

from speaker_queue.clock import ManualClock
from speaker_queue.event_sink import InMemoryEventSink
from speaker_queue.models import MeetingFormat
from speaker_queue.scheduler import SpeakerQueue


def main() -> None:
    clock = ManualClock()
    sink = InMemoryEventSink()
    queue = SpeakerQueue(clock=clock, event_sink=sink)

    queue.set_meeting_format(MeetingFormat.TIME_BOX)
    queue.set_time_limit(8)
    for pid, name in [("1", "John"), ("2", "Jane"), ("3", "Bob")]:
        queue.add_participant(pid, name)

    queue.start_next_speaker()

    for second in range(1, 21):
        seen = len(sink.events)
        clock.advance(1)
        speaker = queue.current_speaker
        remaining = queue.get_time_remaining()
        warn = "!" if queue.is_time_warning() else " "
        who = speaker.name if speaker is not None else "-"
        left = f"{remaining:2d}s" if remaining is not None else " --"
        print(f"t={second:2d}s | speaking={who:<5s} left={left} {warn}")
        for e in sink.events[seen:]:
            print(f"         {e.type.value} {e.participant_id or ''} {e.data}")

    progress = queue.get_queue_progress()
    print(f"\ncompleted {progress.completed}/{progress.total}, queue complete={queue.is_queue_complete()}")


if __name__ == "__main__":
    main()
