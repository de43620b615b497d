"""Shared fixtures and fakes for the voxmode test suite."""
from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

import numpy as np
import pytest

# Add the source tree to the path for all tests
sys.path.insert(0, str((Path(__file__).parent.parent / "src").resolve()))

from voxmode.modes.graph import Command, ModeGraph  # noqa: E402

# Keep test output readable; individual tests use caplog when they care
logging.getLogger("voxmode").setLevel(logging.WARNING)


FAKE_SAMPLE_RATE = 1000


# ---------------------------------------------------------------------------
# Decoder fakes
# ---------------------------------------------------------------------------


class FakeStream:
    """Returns one scripted transcript per decode; the last one repeats."""

    def __init__(self, script, fail_at=None):
        self.script = list(script) or [""]
        self.fail_at = fail_at
        self.decodes = 0
        self.fed = 0

    def feed_audio(self, samples):
        self.fed += len(samples)

    def intermediate_decode(self):
        index = self.decodes
        self.decodes += 1
        if self.fail_at is not None and index >= self.fail_at:
            raise RuntimeError("model exploded")
        return self.script[min(index, len(self.script) - 1)]


class FakeDecoder:
    """One ``FakeStream`` per utterance, built from a list of scripts."""

    def __init__(self, scripts, sample_rate=FAKE_SAMPLE_RATE):
        self.scripts = list(scripts)
        self.rate = sample_rate
        self.streams: list[FakeStream] = []

    def sample_rate(self):
        return self.rate

    def create_stream(self):
        script = self.scripts.pop(0) if self.scripts else [""]
        stream = FakeStream(script)
        self.streams.append(stream)
        return stream


# ---------------------------------------------------------------------------
# Capture fakes
# ---------------------------------------------------------------------------


class FakeInputStream:
    """
    Stands in for ``PipeInputStream``: a thread pushes constant blocks of
    samples until paused, optionally reporting an error after a few blocks.
    """

    def __init__(self, config, on_data, on_error, block=250, error_after=None, fail_play=False):
        self.config = config
        self.on_data = on_data
        self.on_error = on_error
        self.block = block
        self.error_after = error_after
        self.fail_play = fail_play
        self.played = False
        self.paused = False
        self.closed = False
        self._stop = threading.Event()
        self._thread = None

    def play(self):
        if self.fail_play:
            from voxmode.core.errors import CaptureError

            raise CaptureError("no such device")
        self.played = True
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self):
        from voxmode.core.errors import CaptureError

        sent = 0
        while not self._stop.is_set():
            if self.error_after is not None and sent >= self.error_after:
                self.on_error(CaptureError("device unplugged"))
                self.on_error(CaptureError("second error is dropped"))
                return
            self.on_data(np.full(self.block, 7, dtype=np.int16))
            sent += 1
            self._stop.wait(0.002)

    def pause(self):
        self.paused = True
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)

    def close(self):
        self.closed = True


class FakeBackend:
    """Backend factory that records every stream it builds."""

    def __init__(self, **stream_kwargs):
        self.stream_kwargs = stream_kwargs
        self.streams: list[FakeInputStream] = []

    def __call__(self, config, on_data, on_error):
        stream = FakeInputStream(config, on_data, on_error, **self.stream_kwargs)
        self.streams.append(stream)
        return stream


class RecordingSpawner:
    def __init__(self):
        self.commands: list[str] = []

    def __call__(self, command):
        self.commands.append(command)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def reference_graph():
    """Default mode with a firefox sub-mode that chains into youtube."""
    return (
        ModeGraph.empty()
        .with_commands(
            [
                Command("firefox", action="firefox", next_mode="firefox"),
                Command("terminal", action="x-terminal-emulator"),
            ]
        )
        .with_mode(
            "firefox",
            [
                Command("youtube", next_mode="youtube"),
                Command("new tab", action="firefox --new-tab"),
            ],
        )
        .with_mode(
            "youtube",
            [
                Command("search", action="youtube-search"),
                Command("", action="youtube-fallback"),
            ],
        )
        .verify()
    )


@pytest.fixture
def spawner():
    return RecordingSpawner()


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def isolated_xdg(tmp_path, monkeypatch):
    """Point XDG lookups at empty temp dirs so user config never leaks in."""
    home = tmp_path / "xdg-home"
    system = tmp_path / "xdg-system"
    home.mkdir()
    system.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_DIRS", str(system))
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_OUTPUT", raising=False)
    return home, system
