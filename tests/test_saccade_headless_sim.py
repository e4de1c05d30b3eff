from __future__ import annotations

from dataclasses import dataclass

from neurokinetic.results import GameMode, GameResult, Outcome
from neurokinetic.saccade import SaccadeState, build_saccade_test


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_headless_sim_ten_trials_seven_hits() -> None:
    clock = FakeClock()
    results: list[GameResult] = []
    engine = build_saccade_test(clock=clock, seed=1234, total_trials=10, on_game_over=results.append)

    snap = engine.snapshot()
    assert snap.state is SaccadeState.IDLE
    assert "ZID = RIGHT" in snap.prompt

    engine.start()
    clock.advance(2.0)
    engine.update()

    # Per trial: "hit" (with RT), "miss" or "timeout".
    plan = [
        ("hit", 0.2),
        ("miss", 0.1),
        ("hit", 0.3),
        ("hit", 0.4),
        ("timeout", 0.0),
        ("hit", 0.25),
        ("hit", 0.35),
        ("miss", 0.1),
        ("hit", 0.3),
        ("hit", 0.3),
    ]

    for i, (kind, rt) in enumerate(plan):
        assert engine.state is SaccadeState.FIXATION
        clock.advance(1.0)
        engine.update()
        assert engine.state is SaccadeState.CUE
        cue = engine.snapshot().payload
        assert cue is not None and cue.display_text in ("ZID", "DAX")
        clock.advance(max(0.4, 1.0 - 0.015 * i))
        engine.update()
        assert engine.state is SaccadeState.TARGET

        correct = engine.current_trial.correct_side
        if kind == "timeout":
            clock.advance(0.8)
            engine.update()
        else:
            clock.advance(rt)
            side = correct if kind == "hit" else correct.flipped()
            assert engine.press(side) is True

        assert engine.state is SaccadeState.FEEDBACK
        fb = engine.snapshot().payload
        assert fb is not None and fb.correct_side is correct

        clock.advance(1.0)
        engine.update()

    assert engine.state is SaccadeState.TERMINAL
    assert [r.outcome for r in engine.records()].count(Outcome.HIT) == 7
    assert [r.outcome for r in engine.records()].count(Outcome.TIMEOUT) == 1

    assert len(results) == 1
    result = results[0]
    assert result is engine.result
    assert result.mode is GameMode.SACCADE
    assert result.score == 7
    assert result.details == "Accuracy: 70% (7/10)"
    # Misses and the timeout do not count towards the mean.
    assert result.avg_reaction_time_ms == 300

    assert "Score:    7" in engine.snapshot().prompt


def test_headless_sim_all_timeouts_has_no_mean_reaction_time() -> None:
    clock = FakeClock()
    engine = build_saccade_test(clock=clock, seed=8, total_trials=10)
    engine.start()
    clock.advance(2.0)
    engine.update()

    for i in range(10):
        clock.advance(1.0)
        engine.update()
        clock.advance(max(0.4, 1.0 - 0.015 * i))
        engine.update()
        clock.advance(0.8)
        engine.update()
        clock.advance(1.0)
        engine.update()

    assert engine.state is SaccadeState.TERMINAL
    assert engine.result is not None
    assert engine.result.score == 0
    assert engine.result.avg_reaction_time_ms is None
    assert engine.result.details == "Accuracy: 0% (0/10)"
