from __future__ import annotations

import logging
import math
import random
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Iterable, Iterator, Mapping

from speaker_queue.clock import Clock, SystemClock
from speaker_queue.deferred import DeferredActionManager, DeferredKind, PendingAction
from speaker_queue.event_sink import EventEmitter, EventSink, Subscriber
from speaker_queue.events import EventType
from speaker_queue.models import (
    MeetingFormat,
    MeetingSettings,
    Participant,
    ParticipantStatus,
    QueueProgress,
)
from speaker_queue.policy import NextAction, NextActionKind, on_turn_ended

logger = logging.getLogger(__name__)

MAX_AUTO_ADVANCE_DELAY = 30
DEFAULT_AUTO_ADVANCE_DELAY = 3
TIME_WARNING_SECONDS = 5


def _clamp_delay(seconds: float) -> int:
    return int(max(0.0, min(float(MAX_AUTO_ADVANCE_DELAY), seconds)))


class SpeakerQueue:
    """
    Single-writer state container for one live session's speaker queue.

    Rules:
    - Every command and every fired deferred action runs inside one re-entrant
      lock, so no two mutations interleave.
    - Unknown ids and commands on participants in an incompatible state are
      silent no-ops (logged at DEBUG); out-of-range settings are clamped.
    - A manual start always cancels the pending deferred action first.
    - Events are delivered after the command releases the lock, in seq order.

    Event payloads:
      SPEAKER_STARTED{name}, SPEAKER_ENDED{name, speaking_time_seconds},
      SKIPPED{name}, ROUND_ADVANCED{round}, QUEUE_COMPLETED{},
      PARTICIPANT_ADDED{name, position}, PARTICIPANT_REMOVED{name},
      AUTO_ADVANCE_SCHEDULED{delay_seconds}, QUEUE_RESET{}
    """

    def __init__(
        self,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
        rng: random.Random | None = None,
    ):
        self._clock = clock or SystemClock()
        self._rng = rng or random.Random()
        self._lock = threading.RLock()
        self._depth = 0

        self._participants: dict[str, Participant] = {}
        self._current_speaker_id: str | None = None
        self._format = MeetingFormat.STANDARD
        self._time_limit_seconds = 0
        self._current_round = 1
        self._auto_advance_enabled = True
        self._auto_advance_delay_seconds = DEFAULT_AUTO_ADVANCE_DELAY
        # Bumped on every started turn so a time-box expiry can tell its own turn apart.
        self._turn_serial = 0

        self._emitter = EventEmitter(self._clock)
        self._deferred = DeferredActionManager(self._clock, self._command)
        if event_sink is not None:
            self._emitter.subscribe(event_sink)

    # ----------------------------
    # Plumbing
    # ----------------------------

    @contextmanager
    def _command(self) -> Iterator[None]:
        with self._lock:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
                outermost = self._depth == 0
        if outermost:
            self._emitter.flush()

    def _find(self, participant_id: str, command: str) -> Participant | None:
        p = self._participants.get(participant_id)
        if p is None:
            logger.debug("%s ignored: unknown participant %r", command, participant_id)
        return p

    def _ordered(self) -> list[Participant]:
        return sorted(self._participants.values(), key=lambda p: p.position)

    def _renumber(self, ordered: list[Participant]) -> None:
        for i, p in enumerate(ordered):
            p.position = i

    def _next_waiting(self) -> Participant | None:
        for p in self._ordered():
            if p.status == ParticipantStatus.WAITING:
                return p
        return None

    def _emit(self, event_type: EventType, participant_id: str | None = None, **data: Any) -> None:
        self._emitter.stage(event_type, participant_id, **data)

    def _announce_if_completed(self, was_complete: bool) -> None:
        if not was_complete and self.is_queue_complete():
            logger.info("Queue completed (round %d)", self._current_round)
            self._emit(EventType.QUEUE_COMPLETED)

    # ----------------------------
    # Turn transitions
    # ----------------------------

    def _begin_turn(self, p: Participant) -> None:
        p.status = ParticipantStatus.SPEAKING
        p.turn_started_at = float(self._clock.now())
        self._current_speaker_id = p.id
        self._turn_serial += 1
        logger.info("Speaker started: %s (%s)", p.name, p.id)
        self._emit(EventType.SPEAKER_STARTED, p.id, name=p.name)

        self._arm_time_box_expiry()

    def _arm_time_box_expiry(self) -> None:
        """(Re)arm the running turn's expiry against the limit in force now."""
        self._deferred.cancel(DeferredKind.TIME_BOX_EXPIRY)
        if self._format != MeetingFormat.TIME_BOX or self._time_limit_seconds <= 0:
            return
        if self._current_speaker_id is None:
            return
        p = self._participants[self._current_speaker_id]
        if p.turn_started_at is None:
            return
        serial = self._turn_serial
        remaining = self._time_limit_seconds - (float(self._clock.now()) - p.turn_started_at)
        if remaining <= 0:
            self._expire_turn(p.id, serial)
            return
        self._deferred.schedule(
            remaining,
            lambda: self._expire_turn(p.id, serial),
            DeferredKind.TIME_BOX_EXPIRY,
        )

    def _finish_turn(self, p: Participant) -> int:
        started = p.turn_started_at if p.turn_started_at is not None else float(self._clock.now())
        seconds = max(0, int(math.floor(float(self._clock.now()) - started)))
        p.speaking_time = seconds
        p.status = ParticipantStatus.COMPLETED
        p.turn_started_at = None
        if self._current_speaker_id == p.id:
            self._current_speaker_id = None
        logger.info("Speaker ended: %s (%s) after %ss", p.name, p.id, seconds)
        self._emit(EventType.SPEAKER_ENDED, p.id, name=p.name, speaking_time_seconds=seconds)
        return seconds

    def _expire_turn(self, participant_id: str, serial: int) -> None:
        if self._current_speaker_id != participant_id or self._turn_serial != serial:
            return
        logger.info("Time limit reached for %s", participant_id)
        self.end_turn(participant_id)

    def _auto_advance(self) -> None:
        with self._command():
            # Re-read live state: a manual start, a reset or a settings change may
            # have happened since this was scheduled.
            if self._current_speaker_id is not None or not self._auto_advance_enabled:
                return
            nxt = self._next_waiting()
            if nxt is None:
                return
            self._begin_turn(nxt)

    def _start_new_round(self) -> None:
        self._current_round += 1
        for p in self._ordered():
            if p.status == ParticipantStatus.COMPLETED:
                p.status = ParticipantStatus.WAITING
        logger.info("Round %d started", self._current_round)
        self._emit(EventType.ROUND_ADVANCED, round=self._current_round)
        nxt = self._next_waiting()
        if nxt is not None:
            self._begin_turn(nxt)

    def _apply(self, action: NextAction) -> None:
        if action.kind == NextActionKind.IDLE:
            return
        if action.kind == NextActionKind.ADVANCE:
            p = self._participants.get(action.participant_id or "")
            if p is None:
                return
            if action.delay_seconds <= 0:
                self._begin_turn(p)
                return
            self._deferred.schedule(action.delay_seconds, self._auto_advance, DeferredKind.AUTO_ADVANCE)
            self._emit(EventType.AUTO_ADVANCE_SCHEDULED, p.id, delay_seconds=action.delay_seconds)
            return
        if action.kind == NextActionKind.NEW_ROUND:
            self._start_new_round()
            return
        raise ValueError(f"unhandled next action {action.kind!r}")

    # ----------------------------
    # Roster commands
    # ----------------------------

    def add_participant(self, participant_id: str, name: str) -> None:
        with self._command():
            if participant_id in self._participants:
                logger.debug("add_participant ignored: duplicate id %r", participant_id)
                return
            p = Participant(id=participant_id, name=name, position=len(self._participants))
            self._participants[participant_id] = p
            self._emit(EventType.PARTICIPANT_ADDED, p.id, name=p.name, position=p.position)

    def add_participants(self, entries: Iterable[Mapping[str, str] | tuple[str, str]]) -> None:
        """Add an initial roster: {"id", "name"} mappings or (id, name) pairs."""
        with self._command():
            for entry in entries:
                if isinstance(entry, Mapping):
                    self.add_participant(str(entry["id"]), str(entry["name"]))
                else:
                    participant_id, name = entry
                    self.add_participant(str(participant_id), str(name))

    def remove_participant(self, participant_id: str) -> None:
        """
        Remove a participant and re-pack positions.

        Removing the current speaker drops the turn without crediting time,
        cancels the pending deferred action and does not auto-advance.
        """
        with self._command():
            p = self._find(participant_id, "remove_participant")
            if p is None:
                return
            was_complete = self.is_queue_complete()
            if self._current_speaker_id == p.id:
                self._deferred.cancel()
                self._current_speaker_id = None
            del self._participants[p.id]
            self._renumber(self._ordered())
            logger.info("Participant removed: %s (%s)", p.name, p.id)
            self._emit(EventType.PARTICIPANT_REMOVED, p.id, name=p.name)
            self._announce_if_completed(was_complete)

    # ----------------------------
    # Turn commands
    # ----------------------------

    def start_speaking(self, participant_id: str) -> None:
        with self._command():
            p = self._find(participant_id, "start_speaking")
            if p is None:
                return
            if self._current_speaker_id == p.id:
                logger.debug("start_speaking ignored: %r is already speaking", p.id)
                return
            # Manual override always wins over a scheduled transition.
            self._deferred.cancel()
            if self._current_speaker_id is not None:
                self._finish_turn(self._participants[self._current_speaker_id])
            self._begin_turn(p)

    def start_next_speaker(self) -> None:
        with self._command():
            nxt = self._next_waiting()
            if nxt is not None:
                self.start_speaking(nxt.id)

    def end_turn(self, participant_id: str) -> None:
        with self._command():
            p = self._find(participant_id, "end_turn")
            if p is None:
                return
            if p.status != ParticipantStatus.SPEAKING:
                logger.debug("end_turn ignored: %r is %s", p.id, p.status.value)
                return
            self._deferred.cancel()
            self._finish_turn(p)
            self._apply(on_turn_ended(self, p.id))
            self._announce_if_completed(was_complete=False)

    def skip_participant(self, participant_id: str) -> None:
        with self._command():
            p = self._find(participant_id, "skip_participant")
            if p is None:
                return
            was_complete = self.is_queue_complete()
            status = p.status
            if status.is_terminal:
                logger.debug("skip_participant ignored: %r is %s", p.id, status.value)
                return
            if status in (ParticipantStatus.WAITING, ParticipantStatus.PAUSED):
                p.status = ParticipantStatus.SKIPPED
            elif status == ParticipantStatus.SPEAKING:
                self._deferred.cancel()
                p.status = ParticipantStatus.SKIPPED
                p.turn_started_at = None
                self._current_speaker_id = None
            else:
                raise ValueError(f"unhandled participant status {status!r}")
            logger.info("Participant skipped: %s (%s)", p.name, p.id)
            self._emit(EventType.SKIPPED, p.id, name=p.name)
            self._announce_if_completed(was_complete)

    def pause_participant(self, participant_id: str) -> None:
        with self._command():
            p = self._find(participant_id, "pause_participant")
            if p is None:
                return
            if p.status == ParticipantStatus.WAITING:
                p.status = ParticipantStatus.PAUSED
            else:
                logger.debug("pause_participant ignored: %r is %s", p.id, p.status.value)

    def unpause_participant(self, participant_id: str) -> None:
        with self._command():
            p = self._find(participant_id, "unpause_participant")
            if p is None:
                return
            if p.status == ParticipantStatus.PAUSED:
                p.status = ParticipantStatus.WAITING
            else:
                logger.debug("unpause_participant ignored: %r is %s", p.id, p.status.value)

    def complete_round(self) -> None:
        """Force an early end of the round; current_round is left unchanged."""
        with self._command():
            was_complete = self.is_queue_complete()
            self._deferred.cancel()
            if self._current_speaker_id is not None:
                self._finish_turn(self._participants[self._current_speaker_id])
            for p in self._ordered():
                if p.status in (ParticipantStatus.WAITING, ParticipantStatus.PAUSED):
                    p.status = ParticipantStatus.COMPLETED
            self._current_speaker_id = None
            self._announce_if_completed(was_complete)

    # ----------------------------
    # Ordering commands
    # ----------------------------

    def reorder_participants(self, ids_in_order: Iterable[str]) -> None:
        """
        Rewrite positions from a final ordering.

        Unknown and repeated ids are skipped. Participants missing from the
        list keep their relative order after the named ones.
        """
        with self._command():
            named: list[Participant] = []
            seen: set[str] = set()
            for participant_id in ids_in_order:
                p = self._participants.get(participant_id)
                if p is None or participant_id in seen:
                    continue
                seen.add(participant_id)
                named.append(p)
            rest = [p for p in self._ordered() if p.id not in seen]
            self._renumber(named + rest)

    def shuffle_queue(self) -> None:
        """
        Shuffle the waiting/paused segment (Fisher-Yates via Random.shuffle).

        Everyone else keeps relative order ahead of the shuffled segment.
        """
        with self._command():
            fixed: list[Participant] = []
            movable: list[Participant] = []
            for p in self._ordered():
                if p.status in (ParticipantStatus.WAITING, ParticipantStatus.PAUSED):
                    movable.append(p)
                else:
                    fixed.append(p)
            self._rng.shuffle(movable)
            self._renumber(fixed + movable)

    def reset_queue(self) -> None:
        with self._command():
            self._deferred.cancel()
            for p in self._participants.values():
                p.status = ParticipantStatus.WAITING
                p.speaking_time = 0
                p.turn_started_at = None
            self._current_speaker_id = None
            logger.info("Queue reset")
            self._emit(EventType.QUEUE_RESET)

    # ----------------------------
    # Settings
    # ----------------------------

    def set_meeting_format(self, meeting_format: MeetingFormat | str) -> None:
        with self._command():
            try:
                fmt = MeetingFormat(meeting_format)
            except ValueError:
                logger.debug("set_meeting_format ignored: unknown format %r", meeting_format)
                return
            self._deferred.cancel()
            self._format = fmt
            self._current_round = 1
            # A turn already running becomes timed from its original start.
            self._arm_time_box_expiry()

    def set_time_limit(self, seconds: int | float) -> None:
        """Set the time-box limit; a running timed turn is re-armed against it."""
        with self._command():
            if math.isnan(seconds) or seconds == math.inf:
                logger.debug("set_time_limit ignored: %r", seconds)
                return
            self._time_limit_seconds = int(max(0.0, float(seconds)))
            if self._current_speaker_id is not None:
                self._arm_time_box_expiry()

    def set_auto_advance(self, enabled: bool) -> None:
        with self._command():
            self._auto_advance_enabled = bool(enabled)
            if not self._auto_advance_enabled:
                self._deferred.cancel(DeferredKind.AUTO_ADVANCE)

    def set_auto_advance_delay(self, seconds: int | float) -> None:
        with self._command():
            if math.isnan(seconds):
                logger.debug("set_auto_advance_delay ignored: %r", seconds)
                return
            self._auto_advance_delay_seconds = _clamp_delay(seconds)

    # ----------------------------
    # Queries
    # ----------------------------

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def format(self) -> MeetingFormat:
        return self._format

    @property
    def time_limit_seconds(self) -> int:
        return self._time_limit_seconds

    @property
    def current_round(self) -> int:
        return self._current_round

    @property
    def auto_advance_enabled(self) -> bool:
        return self._auto_advance_enabled

    @property
    def auto_advance_delay_seconds(self) -> int:
        return self._auto_advance_delay_seconds

    @property
    def current_speaker_id(self) -> str | None:
        return self._current_speaker_id

    @property
    def participants(self) -> list[Participant]:
        """Copies of all participants, in position order."""
        with self._lock:
            return [replace(p) for p in self._ordered()]

    @property
    def current_speaker(self) -> Participant | None:
        with self._lock:
            if self._current_speaker_id is None:
                return None
            return replace(self._participants[self._current_speaker_id])

    @property
    def pending_action(self) -> PendingAction | None:
        return self._deferred.pending

    def get_participant(self, participant_id: str) -> Participant | None:
        with self._lock:
            p = self._participants.get(participant_id)
            return replace(p) if p is not None else None

    def get_next_speaker(self) -> Participant | None:
        with self._lock:
            p = self._next_waiting()
            return replace(p) if p is not None else None

    def get_queue_progress(self) -> QueueProgress:
        with self._lock:
            total = len(self._participants)
            completed = sum(1 for p in self._participants.values() if p.status == ParticipantStatus.COMPLETED)
            return QueueProgress(total=total, completed=completed, remaining=total - completed)

    def is_queue_complete(self) -> bool:
        with self._lock:
            if self._current_speaker_id is not None:
                return False
            return not any(
                p.status in (ParticipantStatus.WAITING, ParticipantStatus.PAUSED, ParticipantStatus.SPEAKING)
                for p in self._participants.values()
            )

    def get_time_remaining(self) -> int | None:
        """Seconds left in the current time-boxed turn, or None when no timed turn runs."""
        with self._lock:
            if self._format != MeetingFormat.TIME_BOX or self._time_limit_seconds <= 0:
                return None
            if self._current_speaker_id is None:
                return None
            started = self._participants[self._current_speaker_id].turn_started_at
            if started is None:
                return None
            elapsed = float(self._clock.now()) - started
            return max(0, int(math.ceil(self._time_limit_seconds - elapsed)))

    def is_time_warning(self) -> bool:
        remaining = self.get_time_remaining()
        return remaining is not None and 0 < remaining <= TIME_WARNING_SECONDS

    def get_meeting_settings(self) -> MeetingSettings:
        with self._lock:
            return MeetingSettings(
                format=self._format,
                time_limit_seconds=self._time_limit_seconds,
                current_round=self._current_round,
                auto_advance_enabled=self._auto_advance_enabled,
            )

    def auto_advance_countdown(self) -> int:
        """Seconds until a pending auto-advance fires (0 when none is pending)."""
        with self._lock:
            pending = self._deferred.pending
            if pending is None or pending.kind != DeferredKind.AUTO_ADVANCE:
                return 0
            return self._deferred.remaining_seconds()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        return self._emitter.subscribe(subscriber)
