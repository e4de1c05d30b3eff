from __future__ import annotations

import pytest

from neurokinetic.config import ResourceConfig
from neurokinetic.resources import ResourceModel


def test_buffer_fills_in_steps_and_fifth_correct_grants_a_life() -> None:
    model = ResourceModel()
    for _ in range(3):
        out = model.on_correct()
        assert out.life_gained is False
    assert model.state().buffer == 60
    assert model.lives == 3

    model.on_correct()
    assert model.buffer == 80

    fifth = model.on_correct()
    assert fifth.buffer_filled is True
    assert fifth.life_gained is True
    assert fifth.state.lives == 4
    assert fifth.state.buffer == 0


def test_full_buffer_at_max_lives_resets_without_bonus() -> None:
    model = ResourceModel(lives=5, buffer=80)
    out = model.on_correct()
    assert out.buffer_filled is True
    assert out.life_gained is False
    assert model.lives == 5
    assert model.buffer == 0


def test_last_life_with_enough_buffer_absorbs_the_mistake() -> None:
    model = ResourceModel(lives=1, buffer=60)
    out = model.on_incorrect()

    assert out.was_absorbed is True
    assert out.should_reboot is False
    assert out.state.lives == 1
    assert out.state.buffer == 0


def test_mistake_costs_a_life_and_empties_buffer() -> None:
    model = ResourceModel(lives=3, buffer=80)
    out = model.on_incorrect()

    assert out.was_absorbed is False
    assert out.should_reboot is False
    assert out.state.lives == 2
    assert out.state.buffer == 0


def test_thin_buffer_does_not_shield_and_last_life_reboots() -> None:
    model = ResourceModel(lives=1, buffer=40)
    out = model.on_incorrect()

    assert out.was_absorbed is False
    assert out.should_reboot is True
    assert model.lives == 0

    again = model.on_incorrect()
    assert again.state.lives == 0

    assert model.reset().lives == 3
    assert model.buffer == 0


def test_resource_validation() -> None:
    with pytest.raises(ValueError):
        ResourceModel(lives=9)
    with pytest.raises(ValueError):
        ResourceModel(buffer=120)
    with pytest.raises(ValueError):
        ResourceConfig(start_lives=6, max_lives=5)
    with pytest.raises(ValueError):
        ResourceConfig(buffer_step=0)
