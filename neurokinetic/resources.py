from __future__ import annotations

from dataclasses import dataclass

from .config import ResourceConfig


@dataclass(frozen=True, slots=True)
class ResourceState:
    lives: int
    buffer: int


@dataclass(frozen=True, slots=True)
class CorrectOutcome:
    state: ResourceState
    life_gained: bool
    buffer_filled: bool


@dataclass(frozen=True, slots=True)
class MistakeOutcome:
    state: ResourceState
    should_reboot: bool
    was_absorbed: bool


class ResourceModel:
    """Lives plus a recoverable buffer that doubles as a last-life shield.

    Lives never go below 0; the caller resets the model after a reboot.
    """

    def __init__(self, config: ResourceConfig | None = None, *, lives: int | None = None, buffer: int = 0) -> None:
        self._config = config if config is not None else ResourceConfig()
        start = self._config.start_lives if lives is None else int(lives)
        if not (0 <= start <= self._config.max_lives):
            raise ValueError("lives must be in [0, max_lives]")
        if not (0 <= buffer <= self._config.buffer_cap):
            raise ValueError("buffer must be in [0, buffer_cap]")
        self._lives = start
        self._buffer = int(buffer)

    @property
    def lives(self) -> int:
        return self._lives

    @property
    def buffer(self) -> int:
        return self._buffer

    def state(self) -> ResourceState:
        return ResourceState(lives=self._lives, buffer=self._buffer)

    def on_correct(self) -> CorrectOutcome:
        cfg = self._config
        nxt = self._buffer + cfg.buffer_step
        if nxt < cfg.buffer_cap:
            self._buffer = nxt
            return CorrectOutcome(state=self.state(), life_gained=False, buffer_filled=False)

        self._buffer = 0
        gained = self._lives < cfg.max_lives
        if gained:
            self._lives += 1
        return CorrectOutcome(state=self.state(), life_gained=gained, buffer_filled=True)

    def on_incorrect(self) -> MistakeOutcome:
        if self._lives == 1 and self._buffer >= self._config.absorb_threshold:
            self._buffer = 0
            return MistakeOutcome(state=self.state(), should_reboot=False, was_absorbed=True)

        self._lives = max(0, self._lives - 1)
        self._buffer = 0
        return MistakeOutcome(state=self.state(), should_reboot=self._lives == 0, was_absorbed=False)

    def reset(self) -> ResourceState:
        self._lives = self._config.start_lives
        self._buffer = 0
        return self.state()
