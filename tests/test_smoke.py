"""Smoke tests for the pygame UI.

These tests verify that the application's main loop can initialise and
execute a handful of frames without crashing when the SDL dummy video
driver is used. They do not check rendering correctness.
"""

from __future__ import annotations

import os

# Use the dummy drivers before importing pygame or the application
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


def test_app_runs_headless(tmp_path, monkeypatch) -> None:
    """Ensure the application can start and run a few frames headlessly."""
    monkeypatch.setenv("NEUROKINETIC_PROFILE_PATH", str(tmp_path / "profile.json"))
    # Import inside the test so that environment variables take effect
    from neurokinetic.app import run

    exit_code = run(max_frames=3)
    assert exit_code == 0
