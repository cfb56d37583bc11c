from __future__ import annotations

import argparse
import logging
import random
import sys
from pathlib import Path

from speaker_queue.clock import ManualClock
from speaker_queue.commands import parse_script, run_script
from speaker_queue.event_sink import InMemoryEventSink
from speaker_queue.reporting import render_text_report
from speaker_queue.stream_io import (
    InputFormatError,
    SessionParticipant,
    SessionSettings,
    SessionSpec,
    load_event_stream,
    load_session_spec,
    write_event_stream,
)

logger = logging.getLogger(__name__)

DEMO_SCRIPT = """\
# Walk the demo roster through one round with the default 3s auto-advance.
next
wait 42
end
wait 3
wait 65
end
wait 3
wait 10
skip 3
next
wait 30
end
"""


def _demo_session() -> SessionSpec:
    # Fallback roster used when no hosting platform supplies one.
    return SessionSpec(
        participants=[
            SessionParticipant("1", "John Doe"),
            SessionParticipant("2", "Jane Smith"),
            SessionParticipant("3", "Bob Johnson"),
            SessionParticipant("4", "Alice Brown"),
        ],
        settings=SessionSettings(),
    )


def _cmd_run(args: argparse.Namespace) -> int:
    chosen = sum(1 for v in [bool(args.demo), bool(args.session), bool(args.input)] if v)
    if chosen != 1:
        print("ERROR: choose exactly one of --demo, --session, or --input.", file=sys.stderr)
        return 2

    if args.script and not args.session:
        print("ERROR: --script requires --session.", file=sys.stderr)
        return 2

    if args.input:
        try:
            events = load_event_stream(Path(str(args.input)))
        except InputFormatError as e:
            print(f"ERROR: invalid input stream: {e}", file=sys.stderr)
            return 2
        sys.stdout.write(render_text_report(events, row_index_start=args.row_index_start))
        return 0

    if args.demo:
        session = _demo_session()
        script_text = DEMO_SCRIPT
    else:
        try:
            session = load_session_spec(Path(str(args.session)))
        except InputFormatError as e:
            print(f"ERROR: invalid session file: {e}", file=sys.stderr)
            return 2
        script_text = ""
        if args.script:
            script_path = Path(str(args.script))
            if not script_path.is_file():
                print(f"ERROR: invalid script: file not found: {script_path}", file=sys.stderr)
                return 2
            script_text = script_path.read_text(encoding="utf-8")

    try:
        commands = parse_script(script_text)
    except InputFormatError as e:
        print(f"ERROR: invalid script: {e}", file=sys.stderr)
        return 2

    clock = ManualClock()
    sink = InMemoryEventSink()
    rng = random.Random(args.seed) if args.seed is not None else None
    queue = session.build_queue(clock=clock, event_sink=sink, rng=rng)

    try:
        run_script(queue, commands, clock=clock)
    except InputFormatError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    logger.info("Replayed %d command(s); %d event(s) recorded", len(commands), len(sink.events))

    if args.events_out:
        write_event_stream(sink.events, Path(str(args.events_out)))

    sys.stdout.write(render_text_report(sink.events, row_index_start=args.row_index_start))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="speaker_queue",
        description=(
            "Speaker Queue: turn-scheduling engine harness.\n"
            "\n"
            "Replays a session on a simulated clock and prints each round's turns."
        ),
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for engine diagnostics (written to stderr).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Replay a session and print per-round turns.")
    run.add_argument("--demo", action="store_true", help="Run the built-in demo roster and script.")
    run.add_argument("--session", type=str, help="Session JSON (roster + settings).")
    run.add_argument("--script", type=str, help="Command script to replay against --session.")
    run.add_argument("--input", type=str, help="Render an existing event stream JSON.")
    run.add_argument("--seed", type=int, default=None, help="Seed for shuffle commands.")
    run.add_argument("--events-out", type=str, default=None, help="Write the recorded event stream JSON here.")
    run.add_argument(
        "--row-index-start",
        type=int,
        default=None,
        help="Optional: prefix each printed turn with an incrementing index starting at this value.",
    )
    run.set_defaults(func=_cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
