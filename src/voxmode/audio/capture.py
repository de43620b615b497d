#!/usr/bin/env python3
"""
Pipe-based microphone capture.

Audio is read from ``arecord`` (or ``ffmpeg`` on Windows) through a pipe on
a dedicated reader thread and handed to a data callback as ``np.int16``
blocks. Failures on the reader thread are reported through an error
callback; nothing is raised on the capture thread.
"""
from __future__ import annotations

import logging
import platform
import subprocess
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from voxmode.core.errors import AudioToolNotFoundError, CaptureError

logger = logging.getLogger(__name__)

DataCallback = Callable[[np.ndarray], None]
ErrorCallback = Callable[[CaptureError], None]


def default_audio_tool() -> str:
    """Platform-specific capture tool."""
    return "ffmpeg" if platform.system().lower() == "windows" else "arecord"


@dataclass
class StreamConfig:
    """Input stream parameters."""

    sample_rate: int = 16000
    channels: int = 1
    device: str | None = None
    tool: str | None = None
    block_ms: int = 32

    @property
    def block_samples(self) -> int:
        return max(1, int(self.sample_rate * self.block_ms / 1000))


@dataclass
class StreamingStats:
    """Statistics for capture monitoring."""

    blocks: int = 0
    samples: int = 0
    start_time: float | None = None

    def update(self, block_size: int) -> None:
        if self.start_time is None:
            self.start_time = time.monotonic()
        self.blocks += 1
        self.samples += block_size

    def as_dict(self, sample_rate: int) -> dict[str, float]:
        return {
            "blocks": self.blocks,
            "samples": self.samples,
            "audio_seconds": round(self.samples / sample_rate, 3) if sample_rate else 0.0,
        }


class PipeInputStream:
    """
    Capture stream backed by an external recording process.

    ``play()`` starts the process and the reader thread, ``pause()`` stops
    both. The data callback runs on the reader thread.
    """

    def __init__(self, config: StreamConfig, on_data: DataCallback, on_error: ErrorCallback):
        self.config = config
        self.on_data = on_data
        self.on_error = on_error
        self.tool = config.tool or default_audio_tool()

        self._process: subprocess.Popen | None = None
        self._reader: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._closed = False
        self.stats = StreamingStats()

    def build_command(self) -> list[str]:
        """Build platform-specific audio capture command."""
        rate = str(self.config.sample_rate)
        channels = str(self.config.channels)
        if self.tool == "ffmpeg":
            return [
                "ffmpeg",
                "-loglevel",
                "error",
                "-f",
                "dshow",
                "-i",
                f"audio={self.config.device or 'default'}",
                "-ar",
                rate,
                "-ac",
                channels,
                "-f",
                "s16le",
                "-",
            ]
        cmd = ["arecord", "-q", "-f", "S16_LE", "-r", rate, "-c", channels, "-t", "raw"]
        if self.config.device:
            cmd.extend(["-D", self.config.device])
        return cmd

    def play(self) -> None:
        """Start capturing. Calling ``play`` on a running stream does nothing."""
        if self._closed:
            raise CaptureError("stream is closed")
        if self.is_active():
            return

        cmd = self.build_command()
        logger.info(f"Starting audio capture: {' '.join(cmd)}")
        self._stop_event.clear()
        self._process = self._spawn(cmd)
        self._reader = threading.Thread(target=self._read_pipe_loop, name="voxmode-capture", daemon=True)
        self._reader.start()

    def _spawn(self, cmd: list[str]) -> subprocess.Popen:
        if self.tool == "arecord":
            try:
                # stdbuf disables arecord's internal output buffering
                return subprocess.Popen(
                    ["stdbuf", "-o0", "-e0", *cmd], stdout=subprocess.PIPE, stderr=subprocess.PIPE, bufsize=0
                )
            except FileNotFoundError:
                logger.debug("stdbuf not available; starting arecord directly")
        try:
            return subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, bufsize=0)
        except FileNotFoundError as e:
            raise AudioToolNotFoundError(cmd[0]) from e
        except OSError as e:
            raise CaptureError(f"Failed to start {cmd[0]}: {e}") from e

    def pause(self) -> None:
        """Stop capturing and wait for the reader thread to exit."""
        self._stop_event.set()
        process, self._process = self._process, None
        if process is not None:
            if process.poll() is None:
                process.terminate()
            try:
                process.wait(timeout=1.0)
            except subprocess.TimeoutExpired:
                logger.info("Force killing capture process")
                process.kill()
                process.wait()
        reader, self._reader = self._reader, None
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=2.0)
            if reader.is_alive():
                logger.warning("Capture reader thread still active after pause")
        logger.info(f"Audio capture paused: {self.stats.as_dict(self.config.sample_rate)}")

    def close(self) -> None:
        if not self._closed:
            self.pause()
            self._closed = True

    def is_active(self) -> bool:
        return self._process is not None and self._process.poll() is None and not self._stop_event.is_set()

    def _read_pipe_loop(self) -> None:
        process = self._process
        if process is None or process.stdout is None:
            return

        frame_bytes = 2 * self.config.channels
        read_size = self.config.block_samples * frame_bytes
        pending = b""

        try:
            while not self._stop_event.is_set():
                data = process.stdout.read(read_size)
                if not data:
                    break
                pending += data
                usable = len(pending) - len(pending) % frame_bytes
                if not usable:
                    continue
                block = np.frombuffer(pending[:usable], dtype="<i2")
                pending = pending[usable:]
                if self.config.channels > 1:
                    block = block.reshape(-1, self.config.channels).mean(axis=1).astype(np.int16)
                self.stats.update(len(block))
                self.on_data(block)
        except Exception as e:
            if not self._stop_event.is_set():
                logger.error(f"Capture read error: {e}")
                self.on_error(CaptureError(f"Audio capture failed: {e}"))
            return

        if not self._stop_event.is_set():
            returncode = process.wait()
            stderr = process.stderr.read().decode(errors="replace").strip() if process.stderr else ""
            message = f"{self.tool} exited with code {returncode}"
            if stderr:
                message = f"{message}: {stderr}"
            logger.error(message)
            self.on_error(CaptureError(message))


def build_input_stream(config: StreamConfig, on_data: DataCallback, on_error: ErrorCallback) -> PipeInputStream:
    """Default capture backend."""
    return PipeInputStream(config, on_data, on_error)
