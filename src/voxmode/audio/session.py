#!/usr/bin/env python3
"""
AudioSession - microphone capture feeding a TimedHandoffBuffer.

The capture backend delivers samples on its own thread; the consumer pulls
them in larger blocks with ``wait_until``. Backend errors are latched in a
single-slot channel that ``wait_until`` checks between short buffer waits,
so a failing device surfaces within one poll interval.
"""
from __future__ import annotations

import logging
import queue
from collections.abc import Callable
from typing import Any

import numpy as np

from voxmode.audio.buffer import TimedHandoffBuffer
from voxmode.audio.capture import StreamConfig, build_input_stream
from voxmode.core.errors import BufferTimeout, CaptureError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.1

StreamFactory = Callable[..., Any]


class AudioSession:
    """
    One listening session: starts capture on construction, stops on close.

    Use as a context manager so the stream is paused on every exit path::

        with AudioSession(StreamConfig(sample_rate=16000)) as audio:
            samples = audio.wait_until(16000)
    """

    def __init__(
        self,
        config: StreamConfig,
        backend: StreamFactory = build_input_stream,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.config = config
        self.poll_interval = poll_interval
        self.buffer: TimedHandoffBuffer[int] = TimedHandoffBuffer()
        self._errors: queue.Queue[CaptureError] = queue.Queue(maxsize=1)
        self._closed = False

        self.stream = backend(config, self.buffer.push, self._report_error)
        try:
            self.stream.play()
        except Exception:
            self._close_stream()
            raise
        logger.debug(f"Audio session started at {config.sample_rate}Hz")

    def _report_error(self, error: CaptureError) -> None:
        # Runs on the capture thread. Only the first error matters: the
        # session aborts as soon as the consumer sees it.
        try:
            self._errors.put_nowait(error)
        except queue.Full:
            logger.debug(f"Dropping capture error after the first: {error}")

    def wait_until(self, target: int) -> np.ndarray:
        """
        Block until at least ``target`` samples are buffered and return them all.

        Raises:
            CaptureError: The capture backend reported a failure

        """
        while True:
            try:
                error = self._errors.get_nowait()
            except queue.Empty:
                error = None
            if error is not None:
                raise error
            try:
                samples = self.buffer.drain_when_at_least(target, self.poll_interval)
            except BufferTimeout:
                continue
            return np.asarray(samples, dtype=np.int16)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._close_stream()
            logger.debug("Audio session closed")

    def _close_stream(self) -> None:
        try:
            self.stream.pause()
        finally:
            close = getattr(self.stream, "close", None)
            if close is not None:
                close()

    def __enter__(self) -> AudioSession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
