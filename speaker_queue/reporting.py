from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from speaker_queue.events import Event, EventType


@dataclass(frozen=True, slots=True)
class TurnRow:
    """
    A single turn, represented as a SPEAKER_STARTED → (SPEAKER_ENDED | SKIPPED |
    PARTICIPANT_REMOVED) span.
    """
    participant_id: str
    name: str
    round: int
    started_at: float
    ended_at: float
    speaking_time_seconds: int
    outcome: str  # "completed" | "skipped" | "removed"


@dataclass(frozen=True, slots=True)
class RoundFrame:
    """All turns taken in one round. Round numbers start at 1."""
    round: int
    rows: tuple[TurnRow, ...]


def format_duration(seconds: int | float) -> str:
    """m:ss, e.g. 75 -> '1:15'."""
    total = max(0, int(seconds))
    return f"{total // 60}:{total % 60:02d}"


def derive_turn_rows(events: Iterable[Event]) -> list[TurnRow]:
    """
    Derive turn rows from an ordered event stream.

    Rule:
      - A row begins at SPEAKER_STARTED(participant=X)
      - It ends at SPEAKER_ENDED(X), SKIPPED(X) or PARTICIPANT_REMOVED(X)
      - The round comes from the latest ROUND_ADVANCED before the start
      - QUEUE_RESET drops an open turn (it never ended)
    """
    rows: list[TurnRow] = []

    current_round = 1
    open_id: str | None = None
    open_name = ""
    open_round = 1
    open_at = 0.0

    for e in events:
        if e.type == EventType.ROUND_ADVANCED:
            current_round = int(e.data.get("round", current_round + 1))
            continue

        if e.type == EventType.QUEUE_RESET:
            open_id = None
            continue

        if e.type == EventType.SPEAKER_STARTED:
            open_id = e.participant_id
            open_name = str(e.data.get("name", e.participant_id or ""))
            open_round = current_round
            open_at = float(e.at)
            continue

        if open_id is None or e.participant_id != open_id:
            continue

        if e.type == EventType.SPEAKER_ENDED:
            outcome = "completed"
            spoken = int(e.data.get("speaking_time_seconds", 0))
        elif e.type == EventType.SKIPPED:
            outcome = "skipped"
            spoken = int(float(e.at) - open_at)
        elif e.type == EventType.PARTICIPANT_REMOVED:
            outcome = "removed"
            spoken = int(float(e.at) - open_at)
        else:
            continue

        rows.append(
            TurnRow(
                participant_id=open_id,
                name=open_name,
                round=open_round,
                started_at=open_at,
                ended_at=float(e.at),
                speaking_time_seconds=max(0, spoken),
                outcome=outcome,
            )
        )
        open_id = None

    return rows


def group_rows_into_rounds(rows: Iterable[TurnRow]) -> list[RoundFrame]:
    frames: list[RoundFrame] = []
    current: list[TurnRow] = []
    current_round: int | None = None

    for row in rows:
        if current_round is not None and row.round != current_round:
            frames.append(RoundFrame(round=current_round, rows=tuple(current)))
            current = []
        current_round = row.round
        current.append(row)

    if current_round is not None:
        frames.append(RoundFrame(round=current_round, rows=tuple(current)))

    return frames


def render_text_report(events: Iterable[Event], *, row_index_start: int | None = None) -> str:
    rows = derive_turn_rows(events)
    frames = group_rows_into_rounds(rows)

    if not frames:
        return "(No turns were taken.)\n"

    out: list[str] = []
    row_idx = row_index_start

    for frame in frames:
        out.append(f"Round #{frame.round}")

        max_name_len = max(len(r.name) for r in frame.rows)
        for row in frame.rows:
            label = row.name.ljust(max_name_len)
            line = f"{label} ({format_duration(row.speaking_time_seconds)})"
            if row.outcome != "completed":
                line += f" ({row.outcome})"
            if row_idx is None:
                out.append(f"  {line}")
            else:
                out.append(f"  {row_idx}: {line}")
                row_idx += 1

        out.append("")

    return "\n".join(out).rstrip() + "\n"
