from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from neurokinetic.cognitive_core import DEFAULT_CIPHER, ComplexityLevel, SeededRng, Side
from neurokinetic.config import SaccadeConfig
from neurokinetic.feedback import FeedbackEvent
from neurokinetic.results import Outcome
from neurokinetic.rules import RuleGenerator, SemanticClass
from neurokinetic.saccade import SaccadeEngine, SaccadeState, build_saccade_test


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


@dataclass
class RecordingSink:
    events: list[FeedbackEvent] = field(default_factory=list)

    def emit(self, event: FeedbackEvent) -> None:
        self.events.append(event)


def _start(clock: FakeClock, engine: SaccadeEngine) -> None:
    engine.start()
    clock.advance(2.0)
    engine.update()  # READY -> FIXATION


def _advance_to_target(clock: FakeClock, engine: SaccadeEngine, trial_index: int) -> None:
    clock.advance(1.0)
    engine.update()  # FIXATION -> CUE
    clock.advance(SaccadeConfig().cue_time_s(trial_index))
    engine.update()  # CUE -> TARGET


def test_cue_time_shrinks_with_a_floor() -> None:
    cfg = SaccadeConfig()
    assert cfg.cue_time_s(0) == pytest.approx(1.0)
    assert cfg.cue_time_s(10) == pytest.approx(0.85)
    assert cfg.cue_time_s(49) == pytest.approx(0.4)


def test_stimuli_follow_the_seeded_generator() -> None:
    seed = 31
    clock = FakeClock()
    mirror = RuleGenerator(SeededRng(seed), interference_p=0.3)
    expected = [
        mirror.next_trial(level=ComplexityLevel.BASELINE, cipher=DEFAULT_CIPHER, semantic_class=SemanticClass.CONTEXTUAL)
        for _ in range(3)
    ]

    engine = build_saccade_test(clock=clock, seed=seed, total_trials=3)
    _start(clock, engine)

    for i, spec in enumerate(expected):
        _advance_to_target(clock, engine, i)
        assert engine.current_trial == spec
        assert engine.press(spec.correct_side) is True
        clock.advance(1.0)
        engine.update()

    assert engine.state is SaccadeState.TERMINAL
    assert engine.score() == 3


def test_input_is_refused_outside_the_target_window() -> None:
    clock = FakeClock()
    engine = build_saccade_test(clock=clock, seed=5)

    assert engine.press(Side.LEFT) is False  # IDLE
    engine.start()
    assert engine.state is SaccadeState.READY
    assert engine.press(Side.LEFT) is False

    clock.advance(2.0)
    engine.update()
    assert engine.state is SaccadeState.FIXATION
    assert engine.press(Side.LEFT) is False

    clock.advance(1.0)
    engine.update()
    assert engine.state is SaccadeState.CUE
    assert engine.press(Side.LEFT) is False
    assert engine.records() == []


def test_second_press_in_the_same_window_is_ignored() -> None:
    clock = FakeClock()
    engine = build_saccade_test(clock=clock, seed=9)
    _start(clock, engine)
    _advance_to_target(clock, engine, 0)

    correct = engine.current_trial.correct_side
    clock.advance(0.2)
    assert engine.press(correct) is True
    assert engine.press(correct.flipped()) is False

    records = engine.records()
    assert len(records) == 1
    assert records[0].outcome is Outcome.HIT
    assert records[0].response_time_s == pytest.approx(0.2)
    assert engine.state is SaccadeState.FEEDBACK


def test_no_response_times_out() -> None:
    clock = FakeClock()
    sink = RecordingSink()
    engine = SaccadeEngine(clock=clock, seed=3, sink=sink)
    _start(clock, engine)
    _advance_to_target(clock, engine, 0)

    clock.advance(0.8)
    engine.update()

    assert engine.state is SaccadeState.FEEDBACK
    rec = engine.records()[0]
    assert rec.outcome is Outcome.TIMEOUT
    assert rec.response is None
    assert sink.events == [FeedbackEvent.ERROR]
    assert engine.press(rec.correct_side) is False


def test_ghost_flash_is_brief_and_does_not_close_the_window() -> None:
    clock = FakeClock()
    engine = build_saccade_test(clock=clock, seed=14)
    _start(clock, engine)
    _advance_to_target(clock, engine, 0)

    snap = engine.snapshot()
    assert snap.payload is not None
    assert snap.payload.target_visible is True
    assert snap.payload.accepting_input is True
    assert snap.payload.display_text is None

    clock.advance(0.15)
    engine.update()
    snap = engine.snapshot()
    assert snap.payload.target_visible is False
    assert snap.payload.accepting_input is True
    assert engine.press(engine.current_trial.correct_side) is True


def test_abort_makes_pending_callbacks_inert() -> None:
    clock = FakeClock()
    results = []
    engine = build_saccade_test(clock=clock, seed=2, on_game_over=results.append)
    _start(clock, engine)
    _advance_to_target(clock, engine, 0)

    engine.abort()
    assert engine.state is SaccadeState.TERMINAL

    clock.advance(30.0)
    engine.update()

    assert engine.records() == []
    assert engine.result is None
    assert results == []
    assert engine.press(Side.LEFT) is False
    assert engine.snapshot().prompt == "Session aborted."


def test_adaptive_rules_follow_the_level() -> None:
    clock = FakeClock()
    sink = RecordingSink()
    engine = SaccadeEngine(
        clock=clock,
        seed=44,
        config=SaccadeConfig(total_trials=5, adaptive_rules=True),
        sink=sink,
    )
    _start(clock, engine)

    classes = []
    for i in range(4):
        _advance_to_target(clock, engine, i)
        classes.append(engine.current_trial.semantic_class)
        engine.press(engine.current_trial.correct_side)
        clock.advance(1.0)
        engine.update()

    assert classes == [SemanticClass.LITERAL] * 3 + [SemanticClass.SYMBOLIC]
    assert engine.level is ComplexityLevel.SPEED_UP
    assert FeedbackEvent.LEVEL_UP in sink.events


def test_saccade_config_validation() -> None:
    with pytest.raises(ValueError):
        SaccadeConfig(total_trials=0)
    with pytest.raises(ValueError):
        SaccadeConfig(interference_p=2.0)
    with pytest.raises(ValueError):
        SaccadeConfig(target_timeout_s=0.0)


def test_press_after_the_window_elapsed_is_a_timeout_even_before_update() -> None:
    clock = FakeClock()
    engine = build_saccade_test(clock=clock, seed=6)
    _start(clock, engine)
    _advance_to_target(clock, engine, 0)

    correct = engine.current_trial.correct_side
    clock.advance(5.0)
    assert engine.press(correct) is False

    assert engine.state is SaccadeState.FEEDBACK
    records = engine.records()
    assert len(records) == 1
    assert records[0].outcome is Outcome.TIMEOUT
    assert records[0].response is None

    engine.update()
    assert len(engine.records()) == 1
    assert engine.score() == 0
