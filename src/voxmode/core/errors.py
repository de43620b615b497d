#!/usr/bin/env python3
"""
Error types shared across voxmode.

Every error carries the identifier that caused it so callers (the config
loader, the daemon, the CLI) can report it without parsing messages.
"""
from __future__ import annotations


class VoxmodeError(Exception):
    """Base class for all voxmode errors."""


class BufferTimeout(VoxmodeError):
    """Raised when a buffer wait times out. Used as a polling signal."""

    def __init__(self, target: int, available: int, timeout: float):
        self.target = target
        self.available = available
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:.3f}s waiting for {target} items ({available} buffered)")


class DecodeError(VoxmodeError):
    """The speech decoder failed on the current utterance."""


class CaptureError(VoxmodeError):
    """The audio capture backend failed; fatal to the listening session."""


class AudioToolNotFoundError(CaptureError):
    """The external capture tool (arecord/ffmpeg) is not installed."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"Audio capture tool not found: {tool}")


class SpawnError(VoxmodeError):
    """A command action could not be started."""

    def __init__(self, command: str, reason: str):
        self.command = command
        super().__init__(f"Failed to run '{command}': {reason}")


class RecordingError(VoxmodeError):
    """An utterance could not be saved to the recordings directory."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Failed to save recording '{path}': {reason}")


class ConfigurationError(VoxmodeError):
    """Raised when there's a configuration issue that prevents safe operation."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Mode graph validation
# ---------------------------------------------------------------------------


class ModeGraphError(ConfigurationError):
    """Base class for mode graph validation failures."""


class NoCommandsError(ModeGraphError):
    def __init__(self):
        super().__init__("no commands configured in the default mode")


class EmptyModeError(ModeGraphError):
    def __init__(self, mode: str):
        self.mode = mode
        super().__init__(f"mode '{mode}' has no commands")


class DuplicateModeError(ModeGraphError):
    def __init__(self, mode: str):
        self.mode = mode
        super().__init__(f"mode '{mode}' is defined more than once")


class DuplicateMessageError(ModeGraphError):
    def __init__(self, message: str, mode: str | None = None):
        self.message = message
        self.mode = mode
        where = f"mode '{mode}'" if mode else "the default mode"
        shown = f"'{message}'" if message else "the fallback (empty) message"
        super().__init__(f"{shown} is used by more than one command in {where}")


class ModeNotFoundError(ModeGraphError):
    def __init__(self, mode: str):
        self.mode = mode
        super().__init__(f"a command switches to mode '{mode}', which does not exist")


class UnreachableModeError(ModeGraphError):
    def __init__(self, mode: str):
        self.mode = mode
        super().__init__(f"mode '{mode}' is never reached by any command")
