#!/usr/bin/env python3
"""
DispatchEngine - turn a finished transcript into actions and a next mode.

The engine walks the mode graph greedily, one edge per round. In each round
every keyphrase of the current mode is appended to the phrases matched so
far and scored against the whole transcript by edit distance. The best edge
is taken only if it brings the joined phrase strictly closer to the
transcript than stopping would. The walk never backtracks.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from voxmode.modes.distance import distance
from voxmode.modes.graph import Command, ModeGraph

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^\w\s']+")
_SPACES = re.compile(r"\s+")


@dataclass
class DispatchResult:
    """Outcome of matching one transcript."""

    actions: list[str] = field(default_factory=list)
    next_mode: str | None = None
    path: list[Command] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return bool(self.path)


def normalize_phrase(text: str) -> str:
    """Lower-case, drop punctuation and collapse whitespace."""
    text = _NON_WORD.sub(" ", text.lower())
    return _SPACES.sub(" ", text).strip()


def join_phrase(prefix: str, message: str) -> str:
    if not prefix:
        return message
    if not message:
        return prefix
    return f"{prefix} {message}"


class DispatchEngine:
    """Matches transcripts against a ``ModeGraph``."""

    def __init__(self, graph: ModeGraph):
        self.graph = graph

    def match(self, transcript: str, mode: str | None = None) -> DispatchResult:
        """
        Walk the graph from ``mode`` (default mode when ``None``).

        Keyphrases and the transcript are compared after ``normalize_phrase``.

        Returns the actions of every edge taken, in order, and the mode the
        next utterance should start in. ``next_mode`` is ``None`` when the
        last edge taken ends the interaction or when nothing matched.
        """
        result = DispatchResult()
        transcript = normalize_phrase(transcript)
        if not transcript:
            logger.debug("Empty transcript; nothing to match")
            return result

        current = mode
        prefix = ""
        seen: set[tuple[str | None, str]] = set()

        while (current, prefix) not in seen:
            seen.add((current, prefix))
            edge = self._select_edge(self.graph.commands_for_mode(current), prefix, transcript)
            if edge is None:
                break

            result.path.append(edge)
            if edge.action is not None:
                result.actions.append(edge.action)
            if edge.next_mode is None:
                current = None
                break
            current = edge.next_mode
            prefix = join_phrase(prefix, normalize_phrase(edge.message))

        result.next_mode = current if result.matched else None
        logger.debug(
            f"Matched {[c.message for c in result.path]} -> actions={result.actions} next_mode={result.next_mode}"
        )
        return result

    def _select_edge(self, candidates: tuple[Command, ...], prefix: str, transcript: str) -> Command | None:
        best: Command | None = None
        best_score = 0
        fallback: Command | None = None

        for command in candidates:
            if command.is_fallback:
                fallback = fallback or command
                continue
            phrase = join_phrase(prefix, normalize_phrase(command.message))
            score = distance(phrase, transcript)
            logger.debug(f"    Command match score: '{phrase}' => {score}")
            # Strict comparison: earlier-declared commands win ties.
            if best is None or score < best_score:
                best, best_score = command, score

        baseline = distance(prefix, transcript)
        if best is not None and best_score < baseline:
            return best
        if fallback is not None:
            logger.debug(f"No edge beats baseline {baseline}; taking fallback")
            return fallback
        if not prefix and best is not None:
            # First round: any forward progress beats none.
            return best
        return None
