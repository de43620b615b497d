#!/usr/bin/env python3
"""
voxmode command modes

- graph: the validated default mode plus named sub-modes
- dispatch: greedy edit-distance walk of the graph for one transcript
- distance: Levenshtein and substring edit distance
"""
from __future__ import annotations

from .dispatch import DispatchEngine, DispatchResult, normalize_phrase
from .distance import distance, substring_distance
from .graph import Command, Mode, ModeGraph

__all__ = [
    "Command",
    "DispatchEngine",
    "DispatchResult",
    "Mode",
    "ModeGraph",
    "distance",
    "normalize_phrase",
    "substring_distance",
]
