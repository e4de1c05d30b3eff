"""Discrete-trial protocol: fixation, symbolic cue, ghost-flash target, feedback.

The participant decodes the cue (cipher token plus GREEN/RED context) before
the target window opens; both sides flash, so the flash never tells them
where to respond.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .clock import Clock, Scheduler, TimerHandle
from .cognitive_core import DEFAULT_CIPHER, ComplexityLevel, ContextColor, SeededRng, SessionCipher, Side
from .config import SaccadeConfig
from .difficulty import DifficultyController
from .feedback import FeedbackEvent, FeedbackSink, NullSink, notify
from .results import GameResult, Outcome, TrialRecord, saccade_result
from .rules import RuleGenerator, SemanticClass, TrialSpec

log = logging.getLogger(__name__)


class SaccadeState(str, Enum):
    IDLE = "IDLE"
    READY = "READY"
    FIXATION = "FIXATION"
    CUE = "CUE"
    TARGET = "TARGET"
    FEEDBACK = "FEEDBACK"
    TERMINAL = "TERMINAL"


@dataclass(frozen=True, slots=True)
class SaccadePayload:
    display_text: str | None
    context: ContextColor | None
    target_visible: bool
    accepting_input: bool
    feedback: Outcome | None
    correct_side: Side | None


@dataclass(frozen=True, slots=True)
class SaccadeSnapshot:
    """View model for the UI (pure data)."""

    title: str
    state: SaccadeState
    prompt: str
    trial_number: int
    total_trials: int
    score: int
    level: ComplexityLevel
    cipher: SessionCipher
    payload: SaccadePayload | None
    result: GameResult | None


class SaccadeEngine:
    """READY -> (FIXATION -> CUE -> TARGET -> FEEDBACK) x N -> TERMINAL.

    - Deterministic: stimuli come from an RNG seeded at construction.
    - Time is entirely via injected Clock; update() drives the scheduler.
    - Every phase change bumps a generation counter; callbacks scheduled in an
      older generation do nothing when they fire.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        seed: int,
        config: SaccadeConfig | None = None,
        sink: FeedbackSink | None = None,
        cipher: SessionCipher | None = None,
        on_game_over: Callable[[GameResult], None] | None = None,
    ) -> None:
        self._title = "Saccade Protocol"
        self._config = config if config is not None else SaccadeConfig()
        self._clock = clock
        self._seed = int(seed)
        self._rng = SeededRng(self._seed)
        self._gen = RuleGenerator(self._rng, interference_p=self._config.interference_p)
        self._scheduler = Scheduler(clock)
        self._sink: FeedbackSink = sink if sink is not None else NullSink()
        self._cipher = cipher if cipher is not None else DEFAULT_CIPHER
        self._on_game_over = on_game_over
        self._difficulty = DifficultyController(config=self._config.difficulty)

        self._state = SaccadeState.IDLE
        self._generation = 0
        self._timers: list[TimerHandle] = []

        self._trial_index = 0
        self._current: TrialSpec | None = None
        self._presented_at_s: float | None = None
        self._accepting = False
        self._target_visible = False
        self._last_outcome: Outcome | None = None
        self._records: list[TrialRecord] = []
        self._result: GameResult | None = None

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def state(self) -> SaccadeState:
        return self._state

    @property
    def cipher(self) -> SessionCipher:
        return self._cipher

    @property
    def level(self) -> ComplexityLevel:
        return self._difficulty.level

    @property
    def result(self) -> GameResult | None:
        return self._result

    @property
    def current_trial(self) -> TrialSpec | None:
        return self._current

    def records(self) -> list[TrialRecord]:
        return list(self._records)

    def score(self) -> int:
        return sum(1 for r in self._records if r.outcome is Outcome.HIT)

    def can_exit(self) -> bool:
        return True

    def start(self) -> None:
        if self._state is not SaccadeState.IDLE:
            return
        if self._config.randomize_cipher:
            self._cipher = SessionCipher.generate(self._rng)
        self._enter(SaccadeState.READY)
        self._after(self._config.ready_s, self._begin_trial)

    def update(self) -> None:
        self._scheduler.pump()

    def press(self, side: Side) -> bool:
        """Register a response. Returns True only if it was honoured."""

        if self._state is not SaccadeState.TARGET or not self._accepting:
            return False
        assert self._presented_at_s is not None
        if self._clock.now() - self._presented_at_s >= self._config.target_timeout_s:
            # The window closed before the timeout callback was pumped.
            self._resolve(None)
            return False
        self._resolve(Side(side))
        return True

    def abort(self) -> None:
        if self._state is SaccadeState.TERMINAL:
            return
        self._accepting = False
        self._generation += 1
        self._scheduler.cancel_all()
        self._timers.clear()
        self._state = SaccadeState.TERMINAL
        log.debug("saccade aborted at trial %d", self._trial_index + 1)

    def snapshot(self) -> SaccadeSnapshot:
        return SaccadeSnapshot(
            title=self._title,
            state=self._state,
            prompt=self._prompt_text(),
            trial_number=min(self._trial_index + 1, self._config.total_trials),
            total_trials=self._config.total_trials,
            score=self.score(),
            level=self._difficulty.level,
            cipher=self._cipher,
            payload=self._payload(),
            result=self._result,
        )

    # Phase machinery

    def _enter(self, state: SaccadeState) -> None:
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()
        self._generation += 1
        log.debug("saccade %s -> %s", self._state.value, state.value)
        self._state = state

    def _after(self, delay_s: float, fn: Callable[[], None]) -> None:
        generation = self._generation

        def fire() -> None:
            if generation != self._generation or self._state is SaccadeState.TERMINAL:
                return
            fn()

        self._timers.append(self._scheduler.call_later(delay_s, fire))

    def _begin_trial(self) -> None:
        if self._trial_index >= self._config.total_trials:
            self._finish()
            return
        self._enter(SaccadeState.FIXATION)
        self._current = None
        self._last_outcome = None
        self._target_visible = False
        self._after(self._config.fixation_s, self._show_cue)

    def _show_cue(self) -> None:
        semantic_class = None if self._config.adaptive_rules else SemanticClass.CONTEXTUAL
        self._current = self._gen.next_trial(
            level=self._difficulty.level,
            cipher=self._cipher,
            semantic_class=semantic_class,
        )
        self._enter(SaccadeState.CUE)
        self._after(self._config.cue_time_s(self._trial_index), self._show_target)

    def _show_target(self) -> None:
        self._enter(SaccadeState.TARGET)
        self._presented_at_s = self._clock.now()
        self._accepting = True
        self._target_visible = True
        self._after(self._config.flash_s, self._hide_flash)
        self._after(self._config.target_timeout_s, self._on_timeout)

    def _hide_flash(self) -> None:
        self._target_visible = False

    def _on_timeout(self) -> None:
        if self._accepting:
            self._resolve(None)

    def _resolve(self, response: Side | None) -> None:
        # Closing the window first makes any later press or timeout a no-op.
        self._accepting = False
        assert self._current is not None
        assert self._presented_at_s is not None

        answered_at_s = self._clock.now()
        rt = max(0.0, answered_at_s - self._presented_at_s)
        if response is None:
            outcome = Outcome.TIMEOUT
        elif response is self._current.correct_side:
            outcome = Outcome.HIT
        else:
            outcome = Outcome.MISS

        self._records.append(
            TrialRecord(
                index=self._trial_index,
                display_text=self._current.display_text,
                correct_side=self._current.correct_side,
                response=response,
                outcome=outcome,
                presented_at_s=self._presented_at_s,
                answered_at_s=answered_at_s,
                response_time_s=rt,
                level=self._difficulty.level,
            )
        )
        self._last_outcome = outcome

        notify(self._sink, FeedbackEvent.SUCCESS if outcome.is_correct else FeedbackEvent.ERROR)
        step = self._difficulty.record_outcome(outcome.is_correct)
        if step.level_delta > 0:
            notify(self._sink, FeedbackEvent.LEVEL_UP)
        elif step.level_delta < 0:
            notify(self._sink, FeedbackEvent.LEVEL_DOWN)

        self._enter(SaccadeState.FEEDBACK)
        self._target_visible = False
        self._after(self._config.feedback_s, self._advance)

    def _advance(self) -> None:
        self._trial_index += 1
        self._begin_trial()

    def _finish(self) -> None:
        self._enter(SaccadeState.TERMINAL)
        self._scheduler.cancel_all()
        self._current = None
        self._result = saccade_result(self._records, total_trials=self._config.total_trials)
        log.info("saccade complete: %s", self._result.details)
        if self._on_game_over is not None:
            self._on_game_over(self._result)

    # View

    def _payload(self) -> SaccadePayload | None:
        if self._state in (SaccadeState.IDLE, SaccadeState.READY, SaccadeState.TERMINAL):
            return None
        show_cue = self._state is SaccadeState.CUE and self._current is not None
        in_feedback = self._state is SaccadeState.FEEDBACK and self._current is not None
        return SaccadePayload(
            display_text=self._current.display_text if show_cue else None,
            context=self._current.context if show_cue else None,
            target_visible=self._state is SaccadeState.TARGET and self._target_visible,
            accepting_input=self._accepting,
            feedback=self._last_outcome if in_feedback else None,
            correct_side=self._current.correct_side if in_feedback else None,
        )

    def _prompt_text(self) -> str:
        if self._state is SaccadeState.IDLE:
            return "\n".join(
                [
                    "Saccade Protocol",
                    "",
                    "Decode the cipher to know which flash is the target.",
                    f"{self._cipher.right_token} = RIGHT   {self._cipher.left_token} = LEFT",
                    "GREEN = OBEY   RED = INVERT",
                    "",
                    "Both sides flash. Ignore the flash, follow the code.",
                    "Press Enter to begin.",
                ]
            )
        if self._state is SaccadeState.READY:
            return f"{self._cipher.right_token} = RIGHT   {self._cipher.left_token} = LEFT"
        if self._state is SaccadeState.FIXATION:
            return "+"
        if self._state is SaccadeState.CUE and self._current is not None:
            return self._current.display_text
        if self._state is SaccadeState.FEEDBACK and self._last_outcome is not None:
            return self._last_outcome.value
        if self._state is SaccadeState.TERMINAL:
            if self._result is None:
                return "Session aborted."
            rt = "n/a" if self._result.avg_reaction_time_ms is None else f"{self._result.avg_reaction_time_ms} ms"
            return "\n".join(
                [
                    "Results",
                    "",
                    f"Score:    {self._result.score}",
                    f"Mean RT:  {rt}",
                    self._result.details,
                    "",
                    "Press Enter to return.",
                ]
            )
        return ""


def build_saccade_test(
    *,
    clock: Clock,
    seed: int,
    total_trials: int = 10,
    adaptive_rules: bool = False,
    sink: FeedbackSink | None = None,
    on_game_over: Callable[[GameResult], None] | None = None,
) -> SaccadeEngine:
    return SaccadeEngine(
        clock=clock,
        seed=seed,
        config=SaccadeConfig(total_trials=int(total_trials), adaptive_rules=adaptive_rules),
        sink=sink,
        on_game_over=on_game_over,
    )
