#!/usr/bin/env python3
"""
Configuration loader that cascades voxmode.toml files.

Files are read in priority order: every path passed explicitly, then the
user's XDG config home, then each XDG system config dir. Settings from an
earlier file win key by key; command graphs from all files are merged and
must not collide.
"""
from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from voxmode.core.errors import ConfigurationError, ModeGraphError
from voxmode.modes.graph import ModeGraph

logger = logging.getLogger(__name__)

APP_NAME = "voxmode"
CONFIG_FILENAME = "voxmode.toml"

GRAPH_KEYS = ("command", "mode")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_OUTPUTS = ("console", "file", "both")


@dataclass(frozen=True)
class DecoderSettings:
    """faster-whisper model selection and decoding options."""

    model: str = "base.en"
    device: str = "auto"
    compute_type: str = "auto"
    language: str = "en"
    beam_size: int = 5
    vad_filter: bool = True


@dataclass(frozen=True)
class AudioSettings:
    device: str | None = None
    tool: str | None = None


@dataclass(frozen=True)
class ListeningSettings:
    """Utterance capture timing."""

    silence_ms: int = 100
    poll_interval_ms: int = 100
    chunk_ms: int = 1000
    save_recordings: bool = False
    recordings_dir: str = "~/.local/share/voxmode/recordings"

    @property
    def silence(self) -> float:
        return self.silence_ms / 1000

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000

    @property
    def recordings_path(self) -> Path:
        return Path(self.recordings_dir).expanduser()

    def chunk_samples(self, sample_rate: int) -> int:
        return max(1, sample_rate * self.chunk_ms // 1000)


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    output: str = "console"
    directory: str = "~/.local/state/voxmode/logs"


# ========================= PATH DISCOVERY =========================


def xdg_config_files(environ: Mapping[str, str] | None = None) -> list[Path]:
    """voxmode.toml locations under XDG_CONFIG_HOME and XDG_CONFIG_DIRS."""
    env = os.environ if environ is None else environ
    roots: list[Path] = []

    config_home = env.get("XDG_CONFIG_HOME")
    if config_home:
        roots.append(Path(config_home))
    elif env.get("HOME"):
        roots.append(Path(env["HOME"]) / ".config")

    config_dirs = env.get("XDG_CONFIG_DIRS") or "/etc/xdg"
    roots.extend(Path(d) for d in config_dirs.split(":") if d)

    return [root / APP_NAME / CONFIG_FILENAME for root in roots]


def config_search_paths(
    config_paths: Iterable[str | Path] = (),
    include_xdg: bool = True,
    environ: Mapping[str, str] | None = None,
) -> list[Path]:
    """Explicit paths first, then XDG locations, without duplicates."""
    candidates = [Path(p).expanduser() for p in config_paths]
    if include_xdg:
        candidates.extend(xdg_config_files(environ))

    seen: set[str] = set()
    result: list[Path] = []
    for path in candidates:
        key = os.path.abspath(path)
        if key not in seen:
            seen.add(key)
            result.append(path)
    return result


def merge_settings(primary: Mapping[str, Any], secondary: Mapping[str, Any]) -> dict[str, Any]:
    """Deep merge where values already in ``primary`` win."""
    merged = dict(primary)
    for key, value in secondary.items():
        if key not in merged:
            merged[key] = value
        elif isinstance(merged[key], Mapping) and isinstance(value, Mapping):
            merged[key] = merge_settings(merged[key], value)
    return merged


def read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"invalid TOML syntax: {e}", path=str(path)) from e
    except OSError as e:
        raise ConfigurationError(f"failed to read config file: {e}", path=str(path)) from e


# ========================= LOADER =========================


class ConfigLoader:
    """Load, cascade and validate voxmode configuration."""

    def __init__(
        self,
        config_paths: Iterable[str | Path] = (),
        include_xdg: bool = True,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config_paths = [Path(p) for p in config_paths]
        self.include_xdg = include_xdg
        self._environ = environ
        self.search_paths = config_search_paths(self.config_paths, include_xdg, environ)

        self.sources: list[Path] = []
        self._config: dict[str, Any] = {}
        graph = ModeGraph.empty()

        for path in self.search_paths:
            if not path.is_file():
                continue
            data = read_toml(path)
            settings = {k: v for k, v in data.items() if k not in GRAPH_KEYS}
            self._config = merge_settings(self._config, settings)
            try:
                graph = graph.or_else(ModeGraph.from_config(data))
            except ModeGraphError as e:
                e.path = str(path)
                raise
            self.sources.append(path)
            logger.debug(f"Loaded config file: {path}")

        self.graph = graph.verify()
        self.decoder_settings = self._load_decoder_settings()
        self.audio_settings = self._load_audio_settings()
        self.listening_settings = self._load_listening_settings()
        self.logging_settings = self._load_logging_settings()

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get a value using dot notation (e.g., 'listening.silence_ms')"""
        value: Any = self._config
        for key in key_path.split("."):
            if isinstance(value, Mapping) and key in value:
                value = value[key]
            else:
                return default
        return value

    def reload(self) -> ConfigLoader:
        """Re-read the same locations. Raises without touching ``self``."""
        return ConfigLoader(self.config_paths, self.include_xdg, self._environ)

    # ---- typed access ----

    def _typed(self, key_path: str, kind: type | tuple[type, ...], default: Any) -> Any:
        value = self.get(key_path, default)
        # bool is an int subclass; never accept it where a number is expected
        if isinstance(value, bool) and kind is not bool:
            raise ConfigurationError(f"'{key_path}' must be {_type_name(kind)}, got {value!r}")
        if not isinstance(value, kind):
            raise ConfigurationError(f"'{key_path}' must be {_type_name(kind)}, got {value!r}")
        return value

    def _positive_int(self, key_path: str, default: int) -> int:
        value = self._typed(key_path, int, default)
        if value <= 0:
            raise ConfigurationError(f"'{key_path}' must be greater than 0, got {value}")
        return value

    def _load_decoder_settings(self) -> DecoderSettings:
        defaults = DecoderSettings()
        return DecoderSettings(
            model=self._typed("decoder.model", str, defaults.model),
            device=self._typed("decoder.device", str, defaults.device),
            compute_type=self._typed("decoder.compute_type", str, defaults.compute_type),
            language=self._typed("decoder.language", str, defaults.language),
            beam_size=self._positive_int("decoder.beam_size", defaults.beam_size),
            vad_filter=self._typed("decoder.vad_filter", bool, defaults.vad_filter),
        )

    def _load_audio_settings(self) -> AudioSettings:
        device = self._typed("audio.device", str, "")
        tool = self._typed("audio.tool", str, "")
        if tool and tool not in ("arecord", "ffmpeg"):
            raise ConfigurationError(f"'audio.tool' must be 'arecord' or 'ffmpeg', got {tool!r}")
        return AudioSettings(device=device or None, tool=tool or None)

    def _load_listening_settings(self) -> ListeningSettings:
        defaults = ListeningSettings()
        return ListeningSettings(
            silence_ms=self._positive_int("listening.silence_ms", defaults.silence_ms),
            poll_interval_ms=self._positive_int("listening.poll_interval_ms", defaults.poll_interval_ms),
            chunk_ms=self._positive_int("listening.chunk_ms", defaults.chunk_ms),
            save_recordings=self._typed("listening.save_recordings", bool, defaults.save_recordings),
            recordings_dir=self._typed("listening.recordings_dir", str, defaults.recordings_dir),
        )

    def _load_logging_settings(self) -> LoggingSettings:
        defaults = LoggingSettings()
        level = self._typed("logging.level", str, defaults.level).upper()
        if level not in LOG_LEVELS:
            raise ConfigurationError(f"'logging.level' must be one of {', '.join(LOG_LEVELS)}, got {level!r}")
        output = self._typed("logging.output", str, defaults.output).lower()
        if output not in LOG_OUTPUTS:
            raise ConfigurationError(f"'logging.output' must be one of {', '.join(LOG_OUTPUTS)}, got {output!r}")
        return LoggingSettings(
            level=level,
            output=output,
            directory=self._typed("logging.directory", str, defaults.directory),
        )


def _type_name(kind: type | tuple[type, ...]) -> str:
    names = {bool: "a boolean", int: "an integer", str: "a string"}
    if isinstance(kind, tuple):
        return " or ".join(names.get(k, k.__name__) for k in kind)
    return names.get(kind, kind.__name__)


# ========================= DEFAULT CONFIG =========================

DEFAULT_CONFIG = """\
# voxmode configuration
#
# Say a keyphrase from the default mode to run its command or to enter a
# named mode; a mode's keyphrases can then be said in the same breath or in
# the next utterance. A command with an empty message is the fallback of
# its mode.

[decoder]
# faster-whisper model name or local path
model = "base.en"
device = "auto"
compute_type = "auto"
language = "en"
beam_size = 5
vad_filter = true

[audio]
# Capture device passed to arecord -D (empty = system default)
device = ""

[listening]
# An utterance ends once its transcript has not changed for this much audio
silence_ms = 100
chunk_ms = 1000
save_recordings = false

[logging]
level = "INFO"
output = "console"

[[command]]
message = "fire fox"
mode = "firefox"

[[command]]
message = "terminal"
command = "x-terminal-emulator"

[[mode]]
name = "firefox"

[[mode.command]]
message = "new window"
command = "firefox --new-window"

[[mode.command]]
message = "private window"
command = "firefox --private-window"
"""


def default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    """The user-level config file location."""
    return xdg_config_files(environ)[0]


def write_default_config(path: str | Path | None = None, force: bool = False) -> Path:
    """Create a starter configuration file and return its path."""
    target = Path(path).expanduser() if path is not None else default_config_path()
    if target.exists() and not force:
        raise ConfigurationError("config file already exists (use --force to overwrite)", path=str(target))
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(DEFAULT_CONFIG)
    logger.info(f"Created default config: {target}")
    return target
