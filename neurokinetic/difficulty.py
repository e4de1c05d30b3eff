from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from .cognitive_core import ChaosFlags, ComplexityLevel, SeededRng, clamp
from .config import ChaosPolicy, DifficultyConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DifficultyState:
    level: ComplexityLevel
    window_s: float
    history: tuple[bool, ...]
    level_delta: int = 0


class DifficultyController:
    """Discrete level ladder plus a continuous response window.

    The history only holds outcomes since the last level change; it is
    cleared whenever the level moves.
    """

    def __init__(
        self,
        *,
        level: ComplexityLevel = ComplexityLevel.BASELINE,
        config: DifficultyConfig | None = None,
        on_level_change: Callable[[ComplexityLevel], None] | None = None,
    ) -> None:
        self._config = config if config is not None else DifficultyConfig()
        self._level = ComplexityLevel(level)
        self._window_s = float(self._config.initial_window_s)
        self._history: deque[bool] = deque(maxlen=self._config.history_size)
        self._on_level_change = on_level_change

    @property
    def level(self) -> ComplexityLevel:
        return self._level

    @property
    def window_s(self) -> float:
        return self._window_s

    def state(self, *, level_delta: int = 0) -> DifficultyState:
        return DifficultyState(
            level=self._level,
            window_s=self._window_s,
            history=tuple(self._history),
            level_delta=level_delta,
        )

    def record_outcome(self, was_correct: bool) -> DifficultyState:
        cfg = self._config
        self._history.append(bool(was_correct))

        delta = 0
        if len(self._history) >= cfg.min_history:
            if all(self._history) and self._level < ComplexityLevel.MAXIMUM_LOAD:
                delta = 1
            elif not was_correct and self._level > ComplexityLevel.BASELINE:
                delta = -1

        if was_correct:
            self._window_s = max(cfg.min_window_s, self._window_s * cfg.decay)
        else:
            self._window_s = min(cfg.max_window_s, self._window_s * cfg.growth)

        if delta:
            self._set_level(self._level.stepped(delta))
        return self.state(level_delta=delta)

    def apply_reboot_penalty(self) -> DifficultyState:
        before = self._level
        self._window_s = float(self._config.initial_window_s)
        self._set_level(self._level.stepped(-1))
        return self.state(level_delta=int(self._level) - int(before))

    def _set_level(self, level: ComplexityLevel) -> None:
        self._history.clear()
        if level is self._level:
            return
        log.debug("level %s -> %s", self._level.name, level.name)
        self._level = level
        if self._on_level_change is not None:
            self._on_level_change(level)


def sample_chaos(level: ComplexityLevel, rng: SeededRng, policy: ChaosPolicy | None = None) -> ChaosFlags:
    """Resample the chaos features unlocked at ``level`` for one round."""

    policy = policy if policy is not None else ChaosPolicy()
    p = clamp(policy.activation_p, 0.0, 1.0)

    flux = level >= ComplexityLevel.FLUX_INTRO and rng.chance(p)

    inverted = False
    if level >= ComplexityLevel.JITTER_INTRO:
        blocked = (
            policy.inversion_excludes_flux
            and flux
            and not (policy.overlap_at_maximum and level >= ComplexityLevel.MAXIMUM_LOAD)
        )
        inverted = (not blocked) and rng.chance(p)

    lure = False
    if level >= ComplexityLevel.NOISE_INTRO:
        blocked = policy.lure_requires_calm and (flux or inverted)
        lure = (not blocked) and rng.chance(p)

    return ChaosFlags(flux_active=flux, input_inverted=inverted, lure_active=lure)
