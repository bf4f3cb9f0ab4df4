"""Exponential time-decay of memory strength.

strength(t) = initial_strength * e^(-decay_rate * hours_since_reference)

The reference point is the last review, or the creation time for a memory
that was never reviewed. Elapsed time is kept as plain float hours.
"""

import math
from datetime import datetime

from ..models import Memory, MemoryType

# Default decay rate (alpha) per memory type.
DECAY_RATES: dict[MemoryType, float] = {
    MemoryType.INTERACTION: 0.8,
    MemoryType.EPISODE: 0.4,
    MemoryType.THEME: 0.2,
    MemoryType.ARCHETYPE: 0.05,
    MemoryType.FACT: 0.1,
    MemoryType.PREFERENCE: 0.05,
}

FALLBACK_DECAY_RATE = 0.5

SECONDS_PER_HOUR = 3600.0


def default_decay_rate(memory_type: MemoryType | str) -> float:
    """Decay rate used when a memory is created without an override."""
    try:
        return DECAY_RATES[MemoryType(memory_type)]
    except ValueError:
        return FALLBACK_DECAY_RATE


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours from start to end, never negative."""
    return max(0.0, (end - start).total_seconds() / SECONDS_PER_HOUR)


def reference_time(memory: Memory) -> datetime:
    return memory.last_reviewed or memory.created_at


def calculate_strength(memory: Memory, now: datetime) -> float:
    """Current strength of a memory at ``now``.

    Strictly decreasing in elapsed time when ``decay_rate > 0`` and always
    within ``(0, initial_strength]`` for a positive initial strength.
    """
    hours = hours_between(reference_time(memory), now)
    return memory.initial_strength * math.exp(-memory.decay_rate * hours)
