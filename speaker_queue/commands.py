"""
Text command language for driving a SpeakerQueue from a script or a chat line.

One command per line: ``[!]verb args...``. The leading ``!`` is the chat
form and is optional. Blank lines and ``#`` comments are ignored.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from speaker_queue.clock import Clock, ManualClock
from speaker_queue.models import MeetingFormat
from speaker_queue.scheduler import SpeakerQueue
from speaker_queue.stream_io import InputFormatError

# verb -> (min args, max args; None = unbounded)
VERBS: dict[str, tuple[int, int | None]] = {
    "add": (2, None),
    "remove": (1, 1),
    "start": (1, 1),
    "next": (0, 0),
    "end": (0, 1),
    "skip": (1, 1),
    "pause": (1, 1),
    "unpause": (1, 1),
    "reorder": (1, None),
    "shuffle": (0, 0),
    "reset": (0, 0),
    "format": (1, 1),
    "time-limit": (1, 1),
    "auto-advance": (1, 1),
    "delay": (1, 1),
    "complete-round": (0, 0),
    "wait": (1, 1),
}

_ON_OFF = {"on": True, "true": True, "yes": True, "off": False, "false": False, "no": False}


@dataclass(frozen=True, slots=True)
class Command:
    verb: str
    args: tuple[str, ...] = ()
    line: int | None = None


def _where(line: int | None) -> str:
    return f"line {line}: " if line is not None else ""


def _number(value: str, *, verb: str, line: int | None, non_negative: bool = False) -> float:
    try:
        n = float(value)
    except ValueError:
        raise InputFormatError(f"{_where(line)}{verb} expects a number of seconds (got {value!r})") from None
    if non_negative and n < 0:
        raise InputFormatError(f"{_where(line)}{verb} expects a non-negative number (got {value!r})")
    return n


def parse_command(text: str, line: int | None = None) -> Command | None:
    """Parse one line; returns None for blank lines and comments."""
    s = text.strip()
    if not s or s.startswith("#"):
        return None
    if s.startswith("!"):
        s = s[1:].strip()

    parts = s.split()
    if not parts:
        raise InputFormatError(f"{_where(line)}empty command")
    verb = parts[0].lower().replace("_", "-")
    args = tuple(parts[1:])

    if verb not in VERBS:
        raise InputFormatError(f"{_where(line)}unknown command {parts[0]!r}")
    lo, hi = VERBS[verb]
    if len(args) < lo or (hi is not None and len(args) > hi):
        expected = str(lo) if lo == hi else (f"at least {lo}" if hi is None else f"{lo}..{hi}")
        raise InputFormatError(f"{_where(line)}{verb} expects {expected} argument(s), got {len(args)}")

    if verb in ("time-limit", "delay", "wait"):
        _number(args[0], verb=verb, line=line, non_negative=(verb == "wait"))
    elif verb == "auto-advance" and args[0].lower() not in _ON_OFF:
        raise InputFormatError(f"{_where(line)}auto-advance expects on/off (got {args[0]!r})")
    elif verb == "format" and args[0] not in {f.value for f in MeetingFormat}:
        allowed = ", ".join(f.value for f in MeetingFormat)
        raise InputFormatError(f"{_where(line)}unknown format {args[0]!r} (expected one of: {allowed})")

    return Command(verb=verb, args=args, line=line)


def parse_script(text: str) -> list[Command]:
    commands: list[Command] = []
    for n, raw in enumerate(text.splitlines(), start=1):
        cmd = parse_command(raw, line=n)
        if cmd is not None:
            commands.append(cmd)
    return commands


def apply_command(queue: SpeakerQueue, command: Command, clock: Clock | None = None) -> None:
    """
    Dispatch a parsed command to the queue.

    ``wait`` advances time and therefore needs a ManualClock (defaults to the
    queue's own clock).
    """
    verb, args = command.verb, command.args

    def _end() -> None:
        target = args[0] if args else queue.current_speaker_id
        if target is not None:
            queue.end_turn(target)

    def _wait() -> None:
        c = clock or queue.clock
        if not isinstance(c, ManualClock):
            raise InputFormatError(f"{_where(command.line)}wait requires a simulated clock")
        c.advance(_number(args[0], verb=verb, line=command.line, non_negative=True))

    handlers: dict[str, Callable[[], None]] = {
        "add": lambda: queue.add_participant(args[0], " ".join(args[1:])),
        "remove": lambda: queue.remove_participant(args[0]),
        "start": lambda: queue.start_speaking(args[0]),
        "next": queue.start_next_speaker,
        "end": _end,
        "skip": lambda: queue.skip_participant(args[0]),
        "pause": lambda: queue.pause_participant(args[0]),
        "unpause": lambda: queue.unpause_participant(args[0]),
        "reorder": lambda: queue.reorder_participants(list(args)),
        "shuffle": queue.shuffle_queue,
        "reset": queue.reset_queue,
        "format": lambda: queue.set_meeting_format(args[0]),
        "time-limit": lambda: queue.set_time_limit(_number(args[0], verb=verb, line=command.line)),
        "auto-advance": lambda: queue.set_auto_advance(_ON_OFF[args[0].lower()]),
        "delay": lambda: queue.set_auto_advance_delay(_number(args[0], verb=verb, line=command.line)),
        "complete-round": queue.complete_round,
        "wait": _wait,
    }

    handler = handlers.get(verb)
    if handler is None:
        raise InputFormatError(f"{_where(command.line)}unknown command {verb!r}")
    handler()


def run_script(queue: SpeakerQueue, commands: list[Command], clock: Clock | None = None) -> None:
    for cmd in commands:
        apply_command(queue, cmd, clock=clock)
