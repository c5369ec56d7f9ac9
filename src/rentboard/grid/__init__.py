"""Occupancy grid builder.

Turns a flat list of reservations and a visible window into an equipment x
day grid of merged placement spans.
"""

from rentboard.grid.builder import build_grid
from rentboard.grid.labels import full_date_range, short_date_range, span_label

__all__ = [
    "build_grid",
    "full_date_range",
    "short_date_range",
    "span_label",
]
