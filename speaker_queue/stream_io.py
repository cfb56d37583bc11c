from __future__ import annotations

import json
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from speaker_queue.events import Event, EventType
from speaker_queue.models import MeetingFormat

if TYPE_CHECKING:
    from speaker_queue.clock import Clock
    from speaker_queue.event_sink import EventSink
    from speaker_queue.scheduler import SpeakerQueue


class InputFormatError(ValueError):
    """Raised when a session file, script or event stream fails validation."""


@dataclass(frozen=True)
class SessionParticipant:
    id: str
    name: str


@dataclass(frozen=True)
class SessionSettings:
    format: MeetingFormat = MeetingFormat.STANDARD
    # Only meaningful for timeBox; 0 means unset.
    time_limit_seconds: int = 0
    auto_advance_enabled: bool = True
    # Out-of-range values are accepted here and clamped by the queue.
    auto_advance_delay_seconds: int = 3


@dataclass(frozen=True)
class SessionSpec:
    participants: list[SessionParticipant]
    settings: SessionSettings = field(default_factory=SessionSettings)

    def build_queue(
        self,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
        rng: random.Random | None = None,
    ) -> SpeakerQueue:
        from speaker_queue.scheduler import SpeakerQueue

        queue = SpeakerQueue(clock=clock, event_sink=event_sink, rng=rng)
        queue.set_meeting_format(self.settings.format)
        queue.set_time_limit(self.settings.time_limit_seconds)
        queue.set_auto_advance(self.settings.auto_advance_enabled)
        queue.set_auto_advance_delay(self.settings.auto_advance_delay_seconds)
        queue.add_participants((p.id, p.name) for p in self.participants)
        return queue


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise InputFormatError(f"file not found: {path}")
    if not path.is_file():
        raise InputFormatError(f"not a file: {path}")

    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InputFormatError(
            f"invalid JSON: {e.msg} (line {e.lineno}, col {e.colno})"
        ) from e


def load_session_spec(path: Path) -> SessionSpec:
    """Load and validate a session file.

    Format:
      {
        "participants": [
          {"id": "1", "name": "John"},
          {"id": "2", "name": "Jane"}
        ],
        "settings": {
          "format": "roundRobin",
          "time_limit_seconds": 0,
          "auto_advance_enabled": true,
          "auto_advance_delay_seconds": 3
        }
      }

    "settings" and each of its keys are optional. Integer ids are accepted
    and converted to strings.
    """
    raw = _read_json(path)
    if not isinstance(raw, dict):
        raise InputFormatError("root must be a JSON object")

    participants_raw = raw.get("participants")
    if not isinstance(participants_raw, list):
        raise InputFormatError("participants must be an array")

    participants: list[SessionParticipant] = []
    seen_ids: set[str] = set()
    for i, item in enumerate(participants_raw):
        p = _parse_participant(item, label=f"participants[{i}]")
        if p.id in seen_ids:
            raise InputFormatError(f"duplicate participant id {p.id!r}")
        seen_ids.add(p.id)
        participants.append(p)

    settings = _parse_settings(raw.get("settings", None))
    return SessionSpec(participants=participants, settings=settings)


def _parse_participant(raw: object, *, label: str) -> SessionParticipant:
    if not isinstance(raw, dict):
        raise InputFormatError(f"{label} must be an object")

    pid = raw.get("id")
    name = raw.get("name")
    if isinstance(pid, bool) or not isinstance(pid, (str, int)) or not str(pid).strip():
        raise InputFormatError(f"{label}.id must be a non-empty string or an int")
    if not isinstance(name, str) or not name.strip():
        raise InputFormatError(f"{label}.name must be a non-empty string")

    return SessionParticipant(id=str(pid).strip(), name=name.strip())


def _parse_settings(raw: object) -> SessionSettings:
    if raw is None:
        return SessionSettings()
    if not isinstance(raw, dict):
        raise InputFormatError("settings must be an object")

    defaults = SessionSettings()

    fmt_raw = raw.get("format", defaults.format.value)
    try:
        fmt = MeetingFormat(fmt_raw)
    except ValueError:
        allowed = ", ".join(f.value for f in MeetingFormat)
        raise InputFormatError(
            f"settings.format must be one of: {allowed} (got {fmt_raw!r})"
        ) from None

    time_limit = raw.get("time_limit_seconds", defaults.time_limit_seconds)
    if isinstance(time_limit, bool) or not isinstance(time_limit, int):
        raise InputFormatError("settings.time_limit_seconds must be an int")
    if time_limit < 0:
        raise InputFormatError("settings.time_limit_seconds must be >= 0")

    enabled = raw.get("auto_advance_enabled", defaults.auto_advance_enabled)
    if not isinstance(enabled, bool):
        raise InputFormatError("settings.auto_advance_enabled must be a boolean")

    delay = raw.get("auto_advance_delay_seconds", defaults.auto_advance_delay_seconds)
    if isinstance(delay, bool) or not isinstance(delay, int):
        raise InputFormatError("settings.auto_advance_delay_seconds must be an int")

    return SessionSettings(
        format=fmt,
        time_limit_seconds=int(time_limit),
        auto_advance_enabled=bool(enabled),
        auto_advance_delay_seconds=int(delay),
    )


def load_event_stream(path: Path) -> list[Event]:
    """Load and validate an ordered structured event stream from JSON."""
    raw = _read_json(path)
    if not isinstance(raw, list):
        raise InputFormatError("root must be a JSON array of events")

    events: list[Event] = []
    last_seq: int | None = None

    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise InputFormatError(f"event[{i}] must be an object")

        seq = item.get("seq")
        at = item.get("at")
        etype = item.get("type")
        participant_id = item.get("participant_id", None)
        data = item.get("data", {})

        if isinstance(seq, bool) or not isinstance(seq, int) or seq < 1:
            raise InputFormatError(f"event[{i}].seq must be an int >= 1")
        if isinstance(at, bool) or not isinstance(at, (int, float)):
            raise InputFormatError(f"event[{i}].at must be a number")
        if not isinstance(etype, str):
            raise InputFormatError(f"event[{i}].type must be a string")
        if participant_id is not None and not isinstance(participant_id, str):
            raise InputFormatError(f"event[{i}].participant_id must be a string or null")
        if not isinstance(data, dict):
            raise InputFormatError(f"event[{i}].data must be an object")

        try:
            event_type = EventType(etype)
        except ValueError as e:
            raise InputFormatError(
                f"event[{i}].type is not a valid EventType: {etype!r}"
            ) from e

        if last_seq is not None and seq <= last_seq:
            raise InputFormatError(
                "events must be strictly increasing by seq; "
                f"event[{i}] has seq={seq} after {last_seq}"
            )
        last_seq = seq

        events.append(
            Event(seq=seq, at=float(at), type=event_type, participant_id=participant_id, data=data)
        )

    return events


def dump_event_stream(events: list[Event]) -> list[dict[str, Any]]:
    """Return a JSON-serializable event stream (inverse of load_event_stream)."""
    return [e.to_dict() for e in events]


def write_event_stream(events: list[Event], path: Path) -> None:
    path.write_text(json.dumps(dump_event_stream(events), indent=2) + "\n", encoding="utf-8")
