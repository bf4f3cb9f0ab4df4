"""Tests for memory strength decay."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from software_builder.memory import DECAY_RATES, calculate_strength, default_decay_rate, hours_between
from software_builder.models import Memory, MemoryType

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_memory(**overrides) -> Memory:
    fields = {
        "id": "m1",
        "type": MemoryType.EPISODE,
        "content": "Refactored the auth module",
        "decay_rate": 0.4,
        "initial_strength": 1.0,
        "created_at": T0,
    }
    fields.update(overrides)
    return Memory(**fields)


class TestDecayRates:
    def test_defaults_per_type(self):
        assert DECAY_RATES[MemoryType.INTERACTION] == 0.8
        assert DECAY_RATES[MemoryType.EPISODE] == 0.4
        assert DECAY_RATES[MemoryType.THEME] == 0.2
        assert DECAY_RATES[MemoryType.ARCHETYPE] == 0.05
        assert DECAY_RATES[MemoryType.FACT] == 0.1
        assert DECAY_RATES[MemoryType.PREFERENCE] == 0.05

    def test_default_from_string(self):
        assert default_decay_rate("fact") == 0.1

    def test_unknown_type_falls_back(self):
        assert default_decay_rate("dream") == 0.5


class TestHoursBetween:
    def test_fractional_hours(self):
        assert hours_between(T0, T0 + timedelta(minutes=90)) == pytest.approx(1.5)

    def test_never_negative(self):
        assert hours_between(T0, T0 - timedelta(hours=2)) == 0.0


class TestCalculateStrength:
    def test_no_elapsed_time_is_initial(self):
        memory = make_memory(initial_strength=0.8)
        assert calculate_strength(memory, T0) == pytest.approx(0.8)

    def test_formula(self):
        memory = make_memory(decay_rate=0.4)
        now = T0 + timedelta(hours=3)
        assert calculate_strength(memory, now) == pytest.approx(math.exp(-1.2))

    def test_strictly_decreasing(self):
        memory = make_memory(decay_rate=0.2)
        strengths = [calculate_strength(memory, T0 + timedelta(hours=h)) for h in (0.5, 1, 2, 5, 10)]
        assert all(a > b for a, b in zip(strengths, strengths[1:]))

    @pytest.mark.parametrize("hours", [0, 0.01, 1, 24, 100])
    def test_bounded_by_initial(self, hours: float):
        memory = make_memory(initial_strength=0.6, decay_rate=0.05)
        strength = calculate_strength(memory, T0 + timedelta(hours=hours))
        assert 0 < strength <= 0.6

    def test_uses_last_reviewed_over_created_at(self):
        memory = make_memory(last_reviewed=T0 + timedelta(hours=10))
        now = T0 + timedelta(hours=11)
        assert calculate_strength(memory, now) == pytest.approx(math.exp(-0.4))

    def test_zero_rate_does_not_decay(self):
        memory = make_memory(decay_rate=0.0)
        assert calculate_strength(memory, T0 + timedelta(days=30)) == pytest.approx(1.0)

    def test_before_reference_is_clamped(self):
        memory = make_memory()
        assert calculate_strength(memory, T0 - timedelta(hours=1)) == pytest.approx(1.0)
