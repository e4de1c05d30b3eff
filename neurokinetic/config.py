"""Tunables for both protocols.

Every record validates itself on construction so a bad value fails loudly at
session setup rather than halfway through a timed phase. Environment
overrides are resolved here and nowhere else.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

PROFILE_PATH_ENV = "NEUROKINETIC_PROFILE_PATH"
MUTE_ENV = "NEUROKINETIC_MUTE"
LOG_LEVEL_ENV = "NEUROKINETIC_LOG_LEVEL"

SACCADE_SESSION_LENGTHS = (10, 25, 50)


def _require_positive(name: str, value: float) -> None:
    if value <= 0.0:
        raise ValueError(f"{name} must be > 0")


def _require_non_negative(name: str, value: float) -> None:
    if value < 0.0:
        raise ValueError(f"{name} must be >= 0")


def _require_probability(name: str, value: float) -> None:
    if not (0.0 <= value <= 1.0):
        raise ValueError(f"{name} must be in [0.0, 1.0]")


@dataclass(frozen=True, slots=True)
class DifficultyConfig:
    initial_window_s: float = 3.0
    min_window_s: float = 1.2
    max_window_s: float = 3.0
    decay: float = 0.95
    growth: float = 1.3
    history_size: int = 5
    min_history: int = 3

    def __post_init__(self) -> None:
        _require_positive("min_window_s", self.min_window_s)
        if self.max_window_s < self.min_window_s:
            raise ValueError("max_window_s must be >= min_window_s")
        if not (self.min_window_s <= self.initial_window_s <= self.max_window_s):
            raise ValueError("initial_window_s must be within [min_window_s, max_window_s]")
        if not (0.0 < self.decay < 1.0):
            raise ValueError("decay must be in (0.0, 1.0)")
        if self.growth <= 1.0:
            raise ValueError("growth must be > 1.0")
        if self.history_size < 1:
            raise ValueError("history_size must be >= 1")
        if not (1 <= self.min_history <= self.history_size):
            raise ValueError("min_history must be in [1, history_size]")


@dataclass(frozen=True, slots=True)
class ResourceConfig:
    start_lives: int = 3
    max_lives: int = 5
    buffer_cap: int = 100
    buffer_step: int = 20
    absorb_threshold: int = 50

    def __post_init__(self) -> None:
        if not (1 <= self.start_lives <= self.max_lives):
            raise ValueError("start_lives must be in [1, max_lives]")
        if self.buffer_cap <= 0:
            raise ValueError("buffer_cap must be > 0")
        if not (0 < self.buffer_step <= self.buffer_cap):
            raise ValueError("buffer_step must be in (0, buffer_cap]")
        if not (0 <= self.absorb_threshold <= self.buffer_cap):
            raise ValueError("absorb_threshold must be in [0, buffer_cap]")


@dataclass(frozen=True, slots=True)
class ChaosPolicy:
    """Which chaos features may share a round.

    The reference behaviour keeps input crossover off while flux is active,
    except at maximum load, and only lets a lure appear on an otherwise calm
    round. Each rule can be switched off.
    """

    activation_p: float = 0.3
    inversion_excludes_flux: bool = True
    overlap_at_maximum: bool = True
    lure_requires_calm: bool = True

    def __post_init__(self) -> None:
        _require_probability("activation_p", self.activation_p)


@dataclass(frozen=True, slots=True)
class SaccadeConfig:
    total_trials: int = 10
    ready_s: float = 2.0
    fixation_s: float = 1.0
    base_cue_s: float = 1.0
    cue_decay_s: float = 0.015
    min_cue_s: float = 0.4
    flash_s: float = 0.15
    target_timeout_s: float = 0.8
    feedback_s: float = 1.0
    interference_p: float = 0.3
    adaptive_rules: bool = False
    randomize_cipher: bool = False
    difficulty: DifficultyConfig = DifficultyConfig()

    def __post_init__(self) -> None:
        if self.total_trials < 1:
            raise ValueError("total_trials must be >= 1")
        _require_non_negative("ready_s", self.ready_s)
        _require_non_negative("fixation_s", self.fixation_s)
        _require_positive("base_cue_s", self.base_cue_s)
        _require_non_negative("cue_decay_s", self.cue_decay_s)
        _require_positive("min_cue_s", self.min_cue_s)
        _require_non_negative("flash_s", self.flash_s)
        _require_positive("target_timeout_s", self.target_timeout_s)
        _require_non_negative("feedback_s", self.feedback_s)
        _require_probability("interference_p", self.interference_p)

    def cue_time_s(self, trial_index: int) -> float:
        return max(self.min_cue_s, self.base_cue_s - trial_index * self.cue_decay_s)


@dataclass(frozen=True, slots=True)
class StreamConfig:
    ready_s: float = 3.0
    advance_s: float = 0.1
    mistake_s: float = 0.8
    shield_break_s: float = 0.8
    reboot_s: float = 3.0
    warm_up_rounds: int = 3
    cipher_rotation_streak: int = 10
    difficulty: DifficultyConfig = DifficultyConfig()
    resources: ResourceConfig = ResourceConfig()
    chaos: ChaosPolicy = ChaosPolicy()

    def __post_init__(self) -> None:
        _require_non_negative("ready_s", self.ready_s)
        _require_non_negative("advance_s", self.advance_s)
        _require_non_negative("mistake_s", self.mistake_s)
        _require_non_negative("shield_break_s", self.shield_break_s)
        _require_non_negative("reboot_s", self.reboot_s)
        if self.warm_up_rounds < 0:
            raise ValueError("warm_up_rounds must be >= 0")
        if self.cipher_rotation_streak < 0:
            raise ValueError("cipher_rotation_streak must be >= 0")


def profile_path() -> Path:
    explicit = os.environ.get(PROFILE_PATH_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path.home() / ".neurokinetic_profile.json"


def _truthy(raw: str | None) -> bool:
    return raw is not None and raw.strip().lower() in ("1", "true", "yes", "on")


def muted() -> bool:
    return _truthy(os.environ.get(MUTE_ENV))


def log_level() -> str:
    raw = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    return raw if raw in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL") else "WARNING"
