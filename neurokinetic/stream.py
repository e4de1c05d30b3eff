"""Continuous relational stream with lives, shield buffer and reboot recovery.

Each round shows a modifier symbol. Applied to the current reference state
(RED/BLUE) it gives the state to select; while flux is active the modifier's
effect is inverted. A correct answer becomes the next round's reference
state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from .clock import Clock, Scheduler, TimerHandle
from .cognitive_core import (
    ChaosFlags,
    ColorState,
    ComplexityLevel,
    RuleMapping,
    SeededRng,
    SessionCipher,
    Side,
    SymbolShape,
)
from .config import StreamConfig
from .difficulty import DifficultyController, DifficultyState, sample_chaos
from .feedback import FeedbackEvent, FeedbackSink, NullSink, notify
from .resources import ResourceModel
from .results import GameResult, Outcome, TrialRecord, stream_result
from .rules import RuleGenerator, StreamRound

log = logging.getLogger(__name__)


class LevelStore(Protocol):
    def load(self) -> ComplexityLevel: ...

    def save(self, level: ComplexityLevel) -> None: ...


class StreamState(str, Enum):
    IDLE = "IDLE"
    READY = "READY"
    ACTIVE = "ACTIVE"
    FEEDBACK = "FEEDBACK"
    REBOOT = "REBOOT"
    TERMINAL = "TERMINAL"


class FeedbackKind(str, Enum):
    CORRECT = "correct"
    DAMAGE = "damage"
    SHIELD_BREAK = "shield_break"


@dataclass(slots=True)
class StreamSession:
    """Everything one session mutates. Reboot resets fields, not identity."""

    difficulty: DifficultyController
    resources: ResourceModel
    cipher: SessionCipher
    rule_mapping: RuleMapping
    start_state: ColorState
    reference_state: ColorState
    round: StreamRound | None = None
    score: int = 0
    streak: int = 0
    warm_up_remaining: int = 0
    reboots: int = 0
    records: list[TrialRecord] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class StreamPayload:
    reference_hint: ColorState | None
    symbol: SymbolShape | None
    lure_symbol: SymbolShape | None
    chaos: ChaosFlags
    progress: float
    feedback: FeedbackKind | None
    expected_state: ColorState | None
    user_answer: ColorState | None
    pad_labels: tuple[str, str]


@dataclass(frozen=True, slots=True)
class StreamSnapshot:
    """View model for the UI (pure data)."""

    title: str
    state: StreamState
    prompt: str
    score: int
    lives: int
    buffer: int
    level: ComplexityLevel
    window_s: float
    reboots: int
    rule_mapping: RuleMapping | None
    start_state: ColorState | None
    payload: StreamPayload | None
    result: GameResult | None


class StreamEngine:
    """IDLE -> READY -> ACTIVE <-> FEEDBACK (-> REBOOT -> ACTIVE) ... -> TERMINAL.

    - Only the resolution step mutates difficulty, resources and the
      reference state; the per-frame countdown only reads them.
    - The countdown reads the live response window on every frame.
    - Every phase change bumps a generation counter; timers and frame
      requests from an older generation do nothing when they fire.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        seed: int,
        config: StreamConfig | None = None,
        store: LevelStore | None = None,
        sink: FeedbackSink | None = None,
    ) -> None:
        self._title = "Stream Protocol"
        self._config = config if config is not None else StreamConfig()
        self._clock = clock
        self._seed = int(seed)
        self._rng = SeededRng(self._seed)
        self._gen = RuleGenerator(self._rng)
        self._scheduler = Scheduler(clock)
        self._store = store
        self._sink: FeedbackSink = sink if sink is not None else NullSink()

        self._state = StreamState.IDLE
        self._generation = 0
        self._handles: list[TimerHandle] = []

        self._session: StreamSession | None = None
        self._answered = True
        self._round_started_at_s = 0.0
        self._progress = 1.0
        self._feedback: FeedbackKind | None = None
        self._expected_feedback: ColorState | None = None
        self._user_answer: ColorState | None = None
        self._result: GameResult | None = None

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def session(self) -> StreamSession | None:
        return self._session

    @property
    def current_round(self) -> StreamRound | None:
        return None if self._session is None else self._session.round

    @property
    def result(self) -> GameResult | None:
        return self._result

    def resume_level(self) -> ComplexityLevel:
        if self._store is None:
            return ComplexityLevel.BASELINE
        try:
            return ComplexityLevel(self._store.load())
        except Exception:
            log.warning("resume level unavailable, using baseline", exc_info=True)
            return ComplexityLevel.BASELINE

    def start(self) -> None:
        if self._state is not StreamState.IDLE:
            return
        start_state = ColorState.RED if self._rng.random() > 0.5 else ColorState.BLUE
        self._session = StreamSession(
            difficulty=DifficultyController(
                level=self.resume_level(),
                config=self._config.difficulty,
                on_level_change=self._persist_level,
            ),
            resources=ResourceModel(self._config.resources),
            cipher=SessionCipher.generate(self._rng),
            rule_mapping=RuleMapping.randomize(self._rng),
            start_state=start_state,
            reference_state=start_state,
        )
        self._enter(StreamState.READY)
        self._after(self._config.ready_s, self._begin_loop)

    def update(self) -> None:
        self._scheduler.pump()

    def press(self, physical: Side) -> bool:
        """Register a pad press. Returns True only if it was honoured."""

        if self._state is not StreamState.ACTIVE or self._answered:
            return False
        session = self._require_session()
        assert session.round is not None
        if self._clock.now() - self._round_started_at_s >= session.difficulty.window_s:
            # The window closed before the countdown frame was pumped.
            self._resolve(None)
            return False
        logical = Side(physical)
        # Crossover is read now, not at round start.
        if session.round.chaos.input_inverted:
            logical = logical.flipped()
        self._resolve(ColorState.for_side(logical))
        return True

    def time_remaining_s(self) -> float | None:
        if self._state is not StreamState.ACTIVE or self._session is None:
            return None
        elapsed = self._clock.now() - self._round_started_at_s
        return max(0.0, self._session.difficulty.window_s - elapsed)

    def exit(self) -> GameResult:
        """Stop everything and hand back the session's one result."""

        if self._result is not None:
            return self._result
        self._answered = True
        self._generation += 1
        self._scheduler.cancel_all()
        self._handles.clear()
        self._state = StreamState.TERMINAL

        session = self._session
        if session is None:
            self._result = stream_result([], score=0, level=self.resume_level(), reboots=0)
        else:
            self._result = stream_result(
                session.records,
                score=session.score,
                level=session.difficulty.level,
                reboots=session.reboots,
            )
        log.info("stream exit: score=%d %s", self._result.score, self._result.details)
        return self._result

    def snapshot(self) -> StreamSnapshot:
        session = self._session
        return StreamSnapshot(
            title=self._title,
            state=self._state,
            prompt=self._prompt_text(),
            score=0 if session is None else session.score,
            lives=self._config.resources.start_lives if session is None else session.resources.lives,
            buffer=0 if session is None else session.resources.buffer,
            level=self.resume_level() if session is None else session.difficulty.level,
            window_s=self._config.difficulty.initial_window_s if session is None else session.difficulty.window_s,
            reboots=0 if session is None else session.reboots,
            rule_mapping=None if session is None else session.rule_mapping,
            start_state=None if session is None else session.start_state,
            payload=self._payload(),
            result=self._result,
        )

    # Phase machinery

    def _require_session(self) -> StreamSession:
        assert self._session is not None
        return self._session

    def _enter(self, state: StreamState) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()
        self._generation += 1
        log.debug("stream %s -> %s", self._state.value, state.value)
        self._state = state

    def _guard(self, fn: Callable[[], None]) -> Callable[[], None]:
        generation = self._generation

        def fire() -> None:
            if generation != self._generation or self._state is StreamState.TERMINAL:
                return
            fn()

        return fire

    def _after(self, delay_s: float, fn: Callable[[], None]) -> None:
        self._handles.append(self._scheduler.call_later(delay_s, self._guard(fn)))

    def _next_frame(self, fn: Callable[[], None]) -> None:
        self._handles.append(self._scheduler.request_frame(self._guard(fn)))

    def _persist_level(self, level: ComplexityLevel) -> None:
        if self._store is None:
            return
        try:
            self._store.save(level)
        except Exception:
            log.warning("could not persist level %s", level.name, exc_info=True)

    def _begin_loop(self) -> None:
        session = self._require_session()
        session.warm_up_remaining = self._config.warm_up_rounds
        session.round = self._gen.next_round(
            rule_mapping=session.rule_mapping,
            chaos=ChaosFlags(),
            reference_state=session.reference_state,
        )
        self._start_round()

    def _start_round(self) -> None:
        self._enter(StreamState.ACTIVE)
        self._answered = False
        self._feedback = None
        self._expected_feedback = None
        self._user_answer = None
        self._round_started_at_s = self._clock.now()
        self._progress = 1.0
        notify(self._sink, FeedbackEvent.TICK)
        self._next_frame(self._countdown)

    def _countdown(self) -> None:
        if self._state is not StreamState.ACTIVE or self._answered:
            return
        window = self._require_session().difficulty.window_s
        elapsed = self._clock.now() - self._round_started_at_s
        self._progress = max(0.0, 1.0 - elapsed / window)
        if elapsed >= window:
            self._resolve(None)
            return
        self._next_frame(self._countdown)

    def _resolve(self, chosen: ColorState | None) -> None:
        # Set before anything else so a racing press or countdown is a no-op.
        self._answered = True
        session = self._require_session()
        round_ = session.round
        assert round_ is not None

        answered_at_s = self._clock.now()
        expected = round_.expected_state
        correct = chosen is expected
        if chosen is None:
            outcome = Outcome.TIMEOUT
        else:
            outcome = Outcome.HIT if correct else Outcome.MISS

        session.records.append(
            TrialRecord(
                index=len(session.records),
                display_text=round_.symbol.value,
                correct_side=round_.correct_side,
                response=None if chosen is None else (Side.LEFT if chosen is ColorState.RED else Side.RIGHT),
                outcome=outcome,
                presented_at_s=self._round_started_at_s,
                answered_at_s=answered_at_s,
                response_time_s=max(0.0, answered_at_s - self._round_started_at_s),
                level=session.difficulty.level,
            )
        )
        self._user_answer = chosen

        if correct:
            notify(self._sink, FeedbackEvent.SUCCESS)
            self._announce(session.difficulty.record_outcome(True))
            if session.resources.on_correct().life_gained:
                notify(self._sink, FeedbackEvent.LIFE_UP)
            session.streak += 1
            self._enter(StreamState.FEEDBACK)
            self._feedback = FeedbackKind.CORRECT
            self._after(self._config.advance_s, lambda: self._advance(expected))
            return

        session.streak = 0
        self._expected_feedback = expected
        mistake = session.resources.on_incorrect()
        self._announce(session.difficulty.record_outcome(False))
        self._enter(StreamState.FEEDBACK)
        if mistake.was_absorbed:
            notify(self._sink, FeedbackEvent.SHIELD_BREAK)
            self._feedback = FeedbackKind.SHIELD_BREAK
            self._after(self._config.shield_break_s, self._retry_round)
            return

        notify(self._sink, FeedbackEvent.ERROR)
        self._feedback = FeedbackKind.DAMAGE
        if mistake.should_reboot:
            self._after(self._config.mistake_s, self._enter_reboot)
        else:
            self._after(self._config.mistake_s, self._retry_round)

    def _announce(self, step: DifficultyState) -> None:
        if step.level_delta > 0:
            notify(self._sink, FeedbackEvent.LEVEL_UP)
        elif step.level_delta < 0:
            notify(self._sink, FeedbackEvent.LEVEL_DOWN)

    def _advance(self, next_reference: ColorState) -> None:
        session = self._require_session()
        session.score += 1
        if session.warm_up_remaining > 0:
            session.warm_up_remaining -= 1
        rotation = self._config.cipher_rotation_streak
        if rotation and session.streak % rotation == 0:
            session.cipher = SessionCipher.generate(self._rng, avoid=session.cipher)
            notify(self._sink, FeedbackEvent.CIPHER_SHIFT)
        self._configure_round(next_reference)
        self._start_round()

    def _configure_round(self, reference: ColorState) -> None:
        session = self._require_session()
        session.reference_state = reference
        chaos = sample_chaos(session.difficulty.level, self._rng, self._config.chaos)
        session.round = self._gen.next_round(
            rule_mapping=session.rule_mapping,
            chaos=chaos,
            reference_state=reference,
        )

    def _retry_round(self) -> None:
        # Same reference state and chaos, fresh modifier.
        session = self._require_session()
        assert session.round is not None
        session.round = self._gen.next_round(
            rule_mapping=session.rule_mapping,
            chaos=session.round.chaos,
            reference_state=session.reference_state,
        )
        self._start_round()

    def _enter_reboot(self) -> None:
        session = self._require_session()
        self._enter(StreamState.REBOOT)
        self._feedback = None
        self._expected_feedback = None
        notify(self._sink, FeedbackEvent.REBOOT)
        session.reboots += 1
        self._announce(session.difficulty.apply_reboot_penalty())
        session.resources.reset()
        session.warm_up_remaining = self._config.warm_up_rounds
        session.streak = 0
        log.info("stream reboot #%d, level now %s", session.reboots, session.difficulty.level.name)
        self._after(self._config.reboot_s, self._end_reboot)

    def _end_reboot(self) -> None:
        session = self._require_session()
        self._configure_round(session.reference_state)
        self._start_round()

    # View

    def _payload(self) -> StreamPayload | None:
        session = self._session
        if session is None or session.round is None:
            return None
        if self._state not in (StreamState.ACTIVE, StreamState.FEEDBACK, StreamState.REBOOT):
            return None
        round_ = session.round
        in_round = self._state is StreamState.ACTIVE
        return StreamPayload(
            reference_hint=session.reference_state if session.warm_up_remaining > 0 else None,
            symbol=round_.symbol if in_round else None,
            lure_symbol=round_.lure_symbol if in_round else None,
            chaos=round_.chaos,
            progress=self._progress if in_round else 0.0,
            feedback=self._feedback,
            expected_state=self._expected_feedback,
            user_answer=self._user_answer,
            pad_labels=(session.cipher.left_token, session.cipher.right_token),
        )

    def _prompt_text(self) -> str:
        session = self._session
        if self._state is StreamState.IDLE:
            lines = [
                "Stream Protocol",
                "",
                "Track the current state. Each symbol says KEEP or INVERT.",
                "LEFT selects RED, RIGHT selects BLUE.",
                "A purple frame inverts the symbol's meaning.",
            ]
            resume = self.resume_level()
            if resume > ComplexityLevel.BASELINE:
                lines.append(f"Resuming load level: {int(resume)}")
            lines += ["", "Press Enter to begin."]
            return "\n".join(lines)
        if session is None:
            return ""
        keep = session.rule_mapping.keep.value
        invert = session.rule_mapping.invert.value
        if self._state is StreamState.READY:
            return f"Start state: {session.start_state.value}\n{keep} = KEEP   {invert} = INVERT"
        if self._state is StreamState.REBOOT:
            return f"SYSTEM REBOOT\nCurrent state: {session.reference_state.value}\n{keep} = KEEP   {invert} = INVERT"
        if self._state is StreamState.TERMINAL:
            return "" if self._result is None else self._result.details
        round_ = session.round
        if round_ is None:
            return ""
        if round_.chaos.flux_active:
            return "INVERTED SIGNAL"
        if round_.chaos.lure_active:
            return "NOISE DETECTED"
        if round_.chaos.input_inverted:
            return "INPUT CROSSOVER ACTIVE"
        return "SIGNAL"


def build_stream_test(
    *,
    clock: Clock,
    seed: int,
    store: LevelStore | None = None,
    sink: FeedbackSink | None = None,
    config: StreamConfig | None = None,
) -> StreamEngine:
    return StreamEngine(clock=clock, seed=seed, config=config, store=store, sink=sink)
