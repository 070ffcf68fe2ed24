"""Chart series shaping and descriptive analysis."""

from .analysis import analyze_series
from .series import build_series

__all__ = [
    "analyze_series",
    "build_series",
]
