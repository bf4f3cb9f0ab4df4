"""Memory module: decayable knowledge units."""

from .decay import DECAY_RATES, calculate_strength, default_decay_rate, hours_between
from .manager import MemoryManager

__all__ = [
    "DECAY_RATES",
    "MemoryManager",
    "calculate_strength",
    "default_decay_rate",
    "hours_between",
]
