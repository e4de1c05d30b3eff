"""Pygame UI shell for NeuroKinetic.

Main menu -> Saccade Protocol (10/25/50 trials) or Stream Protocol -> results.

Deterministic timing/scoring/RNG/state lives in neurokinetic/* (core modules);
this module only translates input events, draws snapshots and plays tones.
"""

from __future__ import annotations

import logging
import math
import random
from array import array
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from . import config
from .clock import RealClock
from .cognitive_core import ColorState, ContextColor, Side, SymbolShape
from .feedback import FeedbackEvent, FeedbackSink
from .profile_store import ProfileStore
from .results import GameResult, Outcome
from .saccade import SaccadeEngine, SaccadeState, build_saccade_test
from .stream import FeedbackKind, StreamEngine, StreamState, build_stream_test

log = logging.getLogger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (3, 9, 30)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (150, 164, 190)
GREEN = (52, 211, 153)
RED = (244, 63, 94)
BLUE = (59, 130, 246)
CYAN = (34, 211, 238)
PURPLE = (168, 85, 247)
AMBER = (251, 191, 36)

_LEFT_KEYS = (pygame.K_LEFT, pygame.K_a, pygame.K_d)
_RIGHT_KEYS = (pygame.K_RIGHT, pygame.K_l, pygame.K_j)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def replace(self, screen: Screen) -> None:
        if len(self._screens) > 1:
            self._screens[-1] = screen
        else:
            self._screens.append(screen)

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


class ToneFeedbackSink:
    """Procedural mixer tones, one per feedback event.

    Silently becomes a no-op when no audio device is available.
    """

    _sample_rate = 22050
    _amp = 32767

    def __init__(self, *, muted: bool = False) -> None:
        self._available = False
        self._loaded = False
        self._muted = muted
        self._sounds: dict[FeedbackEvent, pygame.mixer.Sound] = {}
        if not muted:
            self._load()

    def _load(self) -> None:
        self._loaded = True
        try:
            if pygame.mixer.get_init() is None:
                pygame.mixer.init(frequency=self._sample_rate, size=-16, channels=1, buffer=512)
            self._sounds = {
                FeedbackEvent.SUCCESS: self._sweep(880.0, 1760.0, 0.30, gain=0.10),
                FeedbackEvent.ERROR: self._sweep(150.0, 100.0, 0.40, gain=0.20),
                FeedbackEvent.SHIELD_BREAK: self._sweep(800.0, 100.0, 0.40, gain=0.30),
                FeedbackEvent.LIFE_UP: self._sweep(1200.0, 2000.0, 0.50, gain=0.10),
                FeedbackEvent.TICK: self._sweep(2000.0, 2000.0, 0.05, gain=0.02),
                FeedbackEvent.REBOOT: self._sweep(50.0, 50.0, 1.50, gain=0.10),
                FeedbackEvent.LEVEL_UP: self._sweep(660.0, 990.0, 0.25, gain=0.12),
                FeedbackEvent.LEVEL_DOWN: self._sweep(440.0, 330.0, 0.25, gain=0.12),
                FeedbackEvent.CIPHER_SHIFT: self._sweep(520.0, 1040.0, 0.20, gain=0.10),
            }
            self._available = True
        except Exception:
            log.info("audio unavailable, feedback tones disabled")
            self._available = False

    @property
    def muted(self) -> bool:
        return self._muted

    def toggle_mute(self) -> None:
        self._muted = not self._muted

    def emit(self, event: FeedbackEvent) -> None:
        if self._muted:
            return
        if not self._loaded:
            self._load()
        if not self._available:
            return
        sound = self._sounds.get(event)
        if sound is not None:
            sound.play()

    def _sweep(self, start_hz: float, end_hz: float, duration_s: float, *, gain: float) -> pygame.mixer.Sound:
        sample_count = max(1, int(self._sample_rate * duration_s))
        fade_n = max(1, int(self._sample_rate * 0.008))
        out = array("h")
        phase = 0.0
        for idx in range(sample_count):
            t = idx / float(sample_count)
            freq = start_hz + (end_hz - start_hz) * t
            phase += (2.0 * math.pi * freq) / float(self._sample_rate)
            envelope = 1.0 - t
            if idx < fade_n:
                envelope = min(envelope, idx / float(fade_n))
            sample = math.sin(phase) * gain * max(0.0, envelope)
            out.append(int(max(-1.0, min(1.0, sample)) * self._amp))
        return pygame.mixer.Sound(buffer=out.tobytes())


def _side_from_key(key: int) -> Side | None:
    if key in _LEFT_KEYS:
        return Side.LEFT
    if key in _RIGHT_KEYS:
        return Side.RIGHT
    return None


def _side_from_mouse(pos: tuple[int, int], surface_width: int) -> Side:
    return Side.LEFT if pos[0] < surface_width // 2 else Side.RIGHT


def _draw_lines(surface: pygame.Surface, font: pygame.font.Font, text: str, *, center_y: int, color=TEXT_MAIN) -> None:
    lines = text.split("\n")
    line_h = font.get_linesize()
    y = center_y - (line_h * len(lines)) // 2
    for line in lines:
        img = font.render(line, True, color)
        surface.blit(img, img.get_rect(midtop=(surface.get_width() // 2, y)))
        y += line_h


def _is_hard_exit(event: pygame.event.Event) -> bool:
    if event.type != pygame.KEYDOWN:
        return False
    mod = int(getattr(event, "mod", 0))
    return event.key == pygame.K_F12 or (event.key == pygame.K_ESCAPE and bool(mod & pygame.KMOD_SHIFT))


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 56)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            self._handle_key(event.key)

    def _handle_key(self, key: int) -> None:
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        tag = self._hint_font.render("NEUROKINETIC", True, CYAN)
        surface.blit(tag, (40, 30))
        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, (40, 56))

        row_h = 44
        y = max(130, (h - row_h * len(self._items)) // 2)
        for idx, item in enumerate(self._items):
            row = pygame.Rect(40, y, min(520, w - 80), row_h - 6)
            selected = idx == self._selected
            pygame.draw.rect(surface, (244, 248, 255) if selected else (12, 24, 60), row)
            pygame.draw.rect(surface, (78, 102, 170), row, 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            text = self._item_font.render(item.label, True, color)
            surface.blit(text, (row.x + 12, row.y + (row.h - text.get_height()) // 2))
            y += row_h

        footer = "Enter/Space: Select  |  Esc/Backspace: Back"
        foot = self._hint_font.render(footer, True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 14)))


class ResultsScreen:
    def __init__(self, app: App, *, result: GameResult, retry: Callable[[], None]) -> None:
        self._app = app
        self._result = result
        self._retry = retry
        self._big_font = pygame.font.Font(None, 120)
        self._font = pygame.font.Font(None, 32)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_r):
            self._retry()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)
        _draw_lines(surface, self._font, "PROTOCOL COMPLETE", center_y=h // 5, color=AMBER)
        score = self._big_font.render(str(self._result.score), True, CYAN)
        surface.blit(score, score.get_rect(center=(w // 2, h // 2 - 30)))
        lines = []
        if self._result.avg_reaction_time_ms is not None:
            lines.append(f"AVG REACTION: {self._result.avg_reaction_time_ms} ms")
        lines.append(self._result.details)
        lines += ["", "Enter: Retry   Esc: Hub"]
        _draw_lines(surface, self._font, "\n".join(lines), center_y=(h * 3) // 4, color=TEXT_MUTED)


class SaccadeScreen:
    def __init__(
        self,
        app: App,
        *,
        engine_factory: Callable[[Callable[[GameResult], None]], SaccadeEngine],
        on_result: Callable[[GameResult], None],
    ) -> None:
        self._app = app
        self._engine = engine_factory(on_result)
        self._font = pygame.font.Font(None, 30)
        self._cue_font = pygame.font.Font(None, 110)

    def handle_event(self, event: pygame.event.Event) -> None:
        if _is_hard_exit(event):
            self._engine.abort()
            self._app.pop()
            return
        state = self._engine.state
        if event.type == pygame.KEYDOWN:
            if state is SaccadeState.IDLE:
                if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
                    self._engine.start()
                elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
                    self._app.pop()
                return
            if event.key == pygame.K_ESCAPE:
                self._engine.abort()
                self._app.pop()
                return
            side = _side_from_key(event.key)
            if side is not None:
                self._engine.press(side)
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            self._engine.press(_side_from_mouse(event.pos, self._app_width()))

    def _app_width(self) -> int:
        surface = pygame.display.get_surface()
        return WINDOW_SIZE[0] if surface is None else surface.get_width()

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        snap = self._engine.snapshot()
        w, h = surface.get_size()
        surface.fill(BG)

        header = f"PROTOCOL: SACCADE   TRIAL: {snap.trial_number}/{snap.total_trials}   SCORE: {snap.score}"
        surface.blit(self._font.render(header, True, TEXT_MUTED), (24, 16))

        if snap.state in (SaccadeState.IDLE, SaccadeState.READY, SaccadeState.TERMINAL):
            _draw_lines(surface, self._font, snap.prompt, center_y=h // 2)
            return

        p = snap.payload
        pad_w, pad_h = w // 5, h // 2
        pads = {
            Side.LEFT: pygame.Rect(w // 12, (h - pad_h) // 2, pad_w, pad_h),
            Side.RIGHT: pygame.Rect(w - w // 12 - pad_w, (h - pad_h) // 2, pad_w, pad_h),
        }
        for side, rect in pads.items():
            border = (60, 72, 100)
            if p is not None and p.correct_side is side and p.feedback is not None:
                border = GREEN if p.feedback is Outcome.HIT else RED
            pygame.draw.rect(surface, border, rect, 2)
            if p is not None and p.target_visible:
                pygame.draw.circle(surface, CYAN, rect.center, 32)

        if snap.state is SaccadeState.CUE and p is not None and p.display_text is not None:
            color = GREEN if p.context is ContextColor.GREEN else RED
            cue = self._cue_font.render(p.display_text, True, color)
            surface.blit(cue, cue.get_rect(center=(w // 2, h // 2)))
        elif snap.prompt:
            _draw_lines(surface, self._font, snap.prompt, center_y=h // 2)

        legend = f"{snap.cipher.right_token}=Right / {snap.cipher.left_token}=Left  |  RED inverts  |  FOLLOW THE CODE"
        foot = self._font.render(legend, True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 12)))


class StreamScreen:
    def __init__(
        self,
        app: App,
        *,
        engine_factory: Callable[[], StreamEngine],
        on_result: Callable[[GameResult], None],
        sink: FeedbackSink,
    ) -> None:
        self._app = app
        self._engine = engine_factory()
        self._on_result = on_result
        self._sink = sink
        self._font = pygame.font.Font(None, 30)
        self._symbol_font = pygame.font.Font(None, 72)

    def handle_event(self, event: pygame.event.Event) -> None:
        if _is_hard_exit(event):
            self._engine.exit()
            self._app.pop()
            return
        if event.type == pygame.KEYDOWN:
            if event.key == pygame.K_m and isinstance(self._sink, ToneFeedbackSink):
                self._sink.toggle_mute()
                return
            if self._engine.state is StreamState.IDLE:
                if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
                    self._engine.start()
                elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
                    self._app.pop()
                return
            if event.key == pygame.K_ESCAPE:
                self._on_result(self._engine.exit())
                return
            side = _side_from_key(event.key)
            if side is not None:
                self._engine.press(side)
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            surface = pygame.display.get_surface()
            width = WINDOW_SIZE[0] if surface is None else surface.get_width()
            self._engine.press(_side_from_mouse(event.pos, width))

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        snap = self._engine.snapshot()
        w, h = surface.get_size()
        surface.fill(BG)

        hud = (
            f"SCORE {snap.score}   LIVES {snap.lives}   BUFFER {snap.buffer}%   "
            f"LOAD {int(snap.level)}   WINDOW {snap.window_s:.2f}s"
        )
        surface.blit(self._font.render(hud, True, TEXT_MUTED), (24, 16))

        p = snap.payload
        if snap.state in (StreamState.IDLE, StreamState.READY, StreamState.REBOOT) or p is None:
            color = AMBER if snap.state is StreamState.REBOOT else TEXT_MAIN
            _draw_lines(surface, self._font, snap.prompt, center_y=h // 2, color=color)
            return

        if p.chaos.flux_active:
            pygame.draw.rect(surface, PURPLE, surface.get_rect(), 8)
        elif p.chaos.lure_active:
            pygame.draw.rect(surface, BLUE, surface.get_rect(), 8)

        bar = pygame.Rect(24, 52, int((w - 48) * p.progress), 6)
        pygame.draw.rect(surface, CYAN, bar)

        _draw_lines(surface, self._font, snap.prompt, center_y=100, color=TEXT_MUTED)

        center = (w // 2, h // 2 - 20)
        pygame.draw.circle(surface, (30, 41, 59), center, 80)
        if p.expected_state is not None:
            label = self._symbol_font.render(p.expected_state.value, True, _state_color(p.expected_state))
            surface.blit(label, label.get_rect(center=center))
        elif p.symbol is not None:
            _draw_symbol(surface, p.symbol, center, 44, PURPLE if p.chaos.flux_active else AMBER)
            if p.lure_symbol is not None:
                _draw_symbol(surface, p.lure_symbol, (center[0] + 130, center[1]), 22, (70, 80, 110))
        if p.reference_hint is not None:
            hint = self._font.render(p.reference_hint.value[0], True, _state_color(p.reference_hint))
            surface.blit(hint, hint.get_rect(center=(center[0], center[1] - 100)))
        if p.feedback is FeedbackKind.SHIELD_BREAK:
            _draw_lines(surface, self._font, "SHIELD BROKEN", center_y=center[1] + 110, color=CYAN)

        pad_w, pad_h = w // 4, 70
        left = pygame.Rect(w // 2 - pad_w - 20, h - pad_h - 40, pad_w, pad_h)
        right = pygame.Rect(w // 2 + 20, h - pad_h - 40, pad_w, pad_h)
        for rect, state, token in ((left, ColorState.RED, p.pad_labels[0]), (right, ColorState.BLUE, p.pad_labels[1])):
            pygame.draw.rect(surface, _state_color(state), rect, 0 if p.user_answer is state else 2)
            text = self._font.render(f"{state.value}  [{token}]", True, TEXT_MAIN)
            surface.blit(text, text.get_rect(center=rect.center))
        if p.chaos.input_inverted:
            _draw_lines(surface, self._font, "X  CROSSOVER  X", center_y=h - 20, color=RED)


def _state_color(state: ColorState) -> tuple[int, int, int]:
    return RED if state is ColorState.RED else BLUE


def _draw_symbol(surface: pygame.Surface, symbol: SymbolShape, center: tuple[int, int], r: int, color) -> None:
    if symbol is SymbolShape.CIRCLE:
        pygame.draw.circle(surface, color, center, r, 6)
        return
    points = []
    for i in range(10):
        radius = r if i % 2 == 0 else r * 0.45
        angle = -math.pi / 2 + i * math.pi / 5
        points.append((center[0] + radius * math.cos(angle), center[1] + radius * math.sin(angle)))
    pygame.draw.polygon(surface, color, points)


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    pygame.init()

    pygame.display.set_caption("NeuroKinetic")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    real_clock = RealClock()
    store = ProfileStore(ProfileStore.default_path())
    sink: FeedbackSink = ToneFeedbackSink(muted=config.muted())

    def open_saccade(total_trials: int) -> None:
        seed = _new_seed()

        def show_result(result: GameResult) -> None:
            app.replace(ResultsScreen(app, result=result, retry=lambda: _restart_saccade(total_trials)))

        def _restart_saccade(n: int) -> None:
            app.pop()
            open_saccade(n)

        app.push(
            SaccadeScreen(
                app,
                engine_factory=lambda on_game_over: build_saccade_test(
                    clock=real_clock,
                    seed=seed,
                    total_trials=total_trials,
                    sink=sink,
                    on_game_over=on_game_over,
                ),
                on_result=show_result,
            )
        )

    def open_stream() -> None:
        seed = _new_seed()

        def show_result(result: GameResult) -> None:
            app.replace(ResultsScreen(app, result=result, retry=restart))

        def restart() -> None:
            app.pop()
            open_stream()

        app.push(
            StreamScreen(
                app,
                engine_factory=lambda: build_stream_test(clock=real_clock, seed=seed, store=store, sink=sink),
                on_result=show_result,
                sink=sink,
            )
        )

    saccade_menu = MenuScreen(
        app,
        "Saccade Protocol",
        [MenuItem(f"{n} trials", lambda n=n: open_saccade(n)) for n in config.SACCADE_SESSION_LENGTHS]
        + [MenuItem("Back", app.pop)],
    )

    main_items = [
        MenuItem("Saccade Protocol", lambda: app.push(saccade_menu)),
        MenuItem("Stream Protocol", open_stream),
        MenuItem("Quit", app.quit),
    ]

    app.push(MenuScreen(app, "Cognitive Ops", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
