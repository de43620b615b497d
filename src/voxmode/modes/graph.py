#!/usr/bin/env python3
"""
ModeGraph - the validated command graph walked by the dispatch engine.

A graph has a default (unnamed) mode, which is the entry point for every
interaction, plus any number of named modes. Each mode is an ordered list of
commands; a command may run an action, switch to another mode, or both.

Graphs are immutable: every builder returns a new graph, so a failed merge or
validation never leaves a half-built graph behind.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from voxmode.core.errors import (
    ConfigurationError,
    DuplicateMessageError,
    DuplicateModeError,
    EmptyModeError,
    ModeNotFoundError,
    NoCommandsError,
    UnreachableModeError,
)

FALLBACK_MESSAGE = ""


@dataclass(frozen=True)
class Command:
    """A single keyphrase-activated edge of the graph."""

    message: str
    action: str | None = None
    next_mode: str | None = None

    @property
    def is_fallback(self) -> bool:
        """The empty keyphrase is the fallback edge of its mode."""
        return self.message == FALLBACK_MESSAGE

    @classmethod
    def from_config(cls, data: Mapping[str, Any]) -> Command:
        """Build a command from a ``[[command]]`` table."""
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"command entries must be tables, got {type(data).__name__}")
        message = data.get("message")
        if not isinstance(message, str):
            raise ConfigurationError(f"command is missing a string 'message': {dict(data)}")
        action = data.get("command")
        next_mode = data.get("mode")
        for key, value in (("command", action), ("mode", next_mode)):
            if value is not None and not isinstance(value, str):
                raise ConfigurationError(f"command '{message}': '{key}' must be a string")
        return cls(message=message, action=action or None, next_mode=next_mode or None)

    def to_config(self) -> dict[str, str]:
        data = {"message": self.message}
        if self.action is not None:
            data["command"] = self.action
        if self.next_mode is not None:
            data["mode"] = self.next_mode
        return data


@dataclass(frozen=True)
class Mode:
    """A named menu level."""

    name: str
    commands: tuple[Command, ...] = field(default_factory=tuple)


def _check_messages(commands: Iterable[Command], mode: str | None) -> None:
    seen: set[str] = set()
    for command in commands:
        if command.message in seen:
            raise DuplicateMessageError(command.message, mode)
        seen.add(command.message)


@dataclass(frozen=True)
class ModeGraph:
    """Default-mode commands plus named sub-modes."""

    default: tuple[Command, ...] = ()
    modes: tuple[Mode, ...] = ()

    @classmethod
    def empty(cls) -> ModeGraph:
        return cls()

    @classmethod
    def from_config(cls, data: Mapping[str, Any]) -> ModeGraph:
        """
        Build an (unverified) graph from a parsed config document.

        The document uses ``[[command]]`` for default-mode commands and
        ``[[mode]]`` tables with a ``name`` and their own ``[[mode.command]]``.
        """
        commands = data.get("command", [])
        if not isinstance(commands, list):
            raise ConfigurationError("'command' must be an array of tables ([[command]])")
        graph = cls.empty().with_commands(Command.from_config(c) for c in commands)

        modes = data.get("mode", [])
        if not isinstance(modes, list):
            raise ConfigurationError("'mode' must be an array of tables ([[mode]])")
        for entry in modes:
            if not isinstance(entry, Mapping) or not isinstance(entry.get("name"), str):
                raise ConfigurationError("every [[mode]] needs a string 'name'")
            mode_commands = entry.get("command", [])
            if not isinstance(mode_commands, list):
                raise ConfigurationError(f"mode '{entry['name']}': 'command' must be an array of tables")
            graph = graph.with_mode(entry["name"], [Command.from_config(c) for c in mode_commands])
        return graph

    def with_commands(self, commands: Iterable[Command]) -> ModeGraph:
        """Append commands to the default mode."""
        default = self.default + tuple(commands)
        _check_messages(default, None)
        return ModeGraph(default=default, modes=self.modes)

    def with_mode(self, name: str, commands: Iterable[Command]) -> ModeGraph:
        """Add a named mode."""
        if self.has_mode(name):
            raise DuplicateModeError(name)
        mode = Mode(name=name, commands=tuple(commands))
        _check_messages(mode.commands, name)
        return ModeGraph(default=self.default, modes=self.modes + (mode,))

    def or_else(self, other: ModeGraph) -> ModeGraph:
        """
        Merge two graphs, keeping this graph's commands first.

        Default-mode messages and mode names must not collide.
        """
        merged = self.with_commands(other.default)
        names = {mode.name for mode in merged.modes}
        for mode in other.modes:
            if mode.name in names:
                raise DuplicateModeError(mode.name)
            names.add(mode.name)
        return ModeGraph(default=merged.default, modes=merged.modes + other.modes)

    def has_mode(self, name: str) -> bool:
        return any(mode.name == name for mode in self.modes)

    def mode_names(self) -> list[str]:
        return [mode.name for mode in self.modes]

    def commands_for_mode(self, name: str | None = None) -> tuple[Command, ...]:
        """Commands of ``name``; the default mode for ``None`` or an unknown name."""
        if name is not None:
            for mode in self.modes:
                if mode.name == name:
                    return mode.commands
        return self.default

    def all_commands(self) -> Iterable[Command]:
        yield from self.default
        for mode in self.modes:
            yield from mode.commands

    def verify(self) -> ModeGraph:
        """
        Check the graph invariants and return ``self``.

        Raises the first violation found, in this order: empty default mode,
        duplicate or empty named modes, duplicate messages, references to
        missing modes, modes unreachable from the default mode.
        """
        if not self.default:
            raise NoCommandsError()

        names: set[str] = set()
        for mode in self.modes:
            if mode.name in names:
                raise DuplicateModeError(mode.name)
            if not mode.commands:
                raise EmptyModeError(mode.name)
            names.add(mode.name)

        _check_messages(self.default, None)
        for mode in self.modes:
            _check_messages(mode.commands, mode.name)

        for command in self.all_commands():
            if command.next_mode is not None and command.next_mode not in names:
                raise ModeNotFoundError(command.next_mode)

        reachable = self._reachable_modes()
        for mode in self.modes:
            if mode.name not in reachable:
                raise UnreachableModeError(mode.name)
        return self

    def _reachable_modes(self) -> set[str]:
        reachable: set[str] = set()
        pending = [c.next_mode for c in self.default if c.next_mode is not None]
        while pending:
            name = pending.pop()
            if name in reachable:
                continue
            reachable.add(name)
            pending.extend(c.next_mode for c in self.commands_for_mode(name) if c.next_mode is not None)
        return reachable

    def to_config(self) -> dict[str, Any]:
        """Inverse of ``from_config``; used for JSON output."""
        return {
            "command": [c.to_config() for c in self.default],
            "mode": [{"name": m.name, "command": [c.to_config() for c in m.commands]} for m in self.modes],
        }
