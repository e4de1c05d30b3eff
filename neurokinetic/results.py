from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .cognitive_core import ComplexityLevel, Side


class GameMode(str, Enum):
    SACCADE = "SACCADE"
    STREAM = "STREAM"


class Outcome(str, Enum):
    HIT = "HIT"
    MISS = "MISS"
    TIMEOUT = "TIMEOUT"

    @property
    def is_correct(self) -> bool:
        return self is Outcome.HIT


@dataclass(frozen=True, slots=True)
class GameResult:
    """Terminal value handed to the results screen; one per session."""

    mode: GameMode
    score: int
    avg_reaction_time_ms: int | None = None
    details: str = ""


@dataclass(frozen=True, slots=True)
class TrialRecord:
    index: int
    display_text: str
    correct_side: Side
    response: Side | None
    outcome: Outcome
    presented_at_s: float
    answered_at_s: float
    response_time_s: float
    level: ComplexityLevel = ComplexityLevel.BASELINE


def mean_rt_ms(records: list[TrialRecord]) -> int | None:
    """Mean reaction time over HIT records, rounded to whole milliseconds."""

    rts = [r.response_time_s for r in records if r.outcome is Outcome.HIT]
    if not rts:
        return None
    return int(round((sum(rts) / len(rts)) * 1000.0))


def accuracy_details(correct: int, total: int) -> str:
    pct = 0 if total <= 0 else int(round((correct / total) * 100))
    return f"Accuracy: {pct}% ({correct}/{total})"


def saccade_result(records: list[TrialRecord], *, total_trials: int) -> GameResult:
    score = sum(1 for r in records if r.outcome is Outcome.HIT)
    return GameResult(
        mode=GameMode.SACCADE,
        score=score,
        avg_reaction_time_ms=mean_rt_ms(records),
        details=accuracy_details(score, total_trials),
    )


def stream_result(
    records: list[TrialRecord],
    *,
    score: int,
    level: ComplexityLevel,
    reboots: int,
) -> GameResult:
    hits = sum(1 for r in records if r.outcome is Outcome.HIT)
    return GameResult(
        mode=GameMode.STREAM,
        score=int(score),
        avg_reaction_time_ms=mean_rt_ms(records),
        details=f"Level: {level.name} | Reboots: {reboots} | {accuracy_details(hits, len(records))}",
    )
