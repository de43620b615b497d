#!/usr/bin/env python3
"""
SessionLoop - one voice interaction, from first utterance to last command.

Each utterance is captured until its transcript stops changing for the
configured amount of audio, then matched against the mode graph. Matched
actions are spawned and, while the match leaves the interaction in a named
mode, the next utterance is captured in that mode.
"""
from __future__ import annotations

import time
import uuid
import wave
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

from voxmode.actions import spawn
from voxmode.audio.capture import StreamConfig, build_input_stream
from voxmode.audio.session import AudioSession
from voxmode.core.config import AudioSettings, ListeningSettings
from voxmode.core.errors import ModeNotFoundError, RecordingError
from voxmode.core.logging import LogContext, get_logger
from voxmode.modes.dispatch import DispatchEngine, DispatchResult
from voxmode.modes.graph import ModeGraph
from voxmode.transcription.decoder import SpeechDecoder
from voxmode.transcription.tracker import TranscriptTracker

logger = get_logger(__name__)


@dataclass
class Utterance:
    """One captured utterance."""

    text: str
    audio: np.ndarray
    sample_rate: int
    mode: str | None = None

    @property
    def duration(self) -> float:
        return len(self.audio) / self.sample_rate if self.sample_rate else 0.0


@dataclass
class SessionOutcome:
    """Everything that happened during one interaction."""

    session_id: str
    utterances: list[Utterance] = field(default_factory=list)
    results: list[DispatchResult] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)
    recordings: list[Path] = field(default_factory=list)


class SessionLoop:
    """Capture → match → spawn, repeated while a next mode is pending."""

    def __init__(
        self,
        graph: ModeGraph,
        decoder: SpeechDecoder,
        listening: ListeningSettings | None = None,
        audio: AudioSettings | None = None,
        backend: Callable[..., Any] = build_input_stream,
        spawner: Callable[[str], Any] = spawn,
    ):
        self.graph = graph
        self.engine = DispatchEngine(graph)
        self.decoder = decoder
        self.listening = listening or ListeningSettings()
        self.audio = audio or AudioSettings()
        self.backend = backend
        self.spawner = spawner

    def replace(
        self,
        graph: ModeGraph | None = None,
        decoder: SpeechDecoder | None = None,
        listening: ListeningSettings | None = None,
        audio: AudioSettings | None = None,
    ) -> None:
        """Swap collaborators between interactions (used on reload)."""
        if graph is not None:
            self.graph = graph
            self.engine = DispatchEngine(graph)
        if decoder is not None:
            self.decoder = decoder
        if listening is not None:
            self.listening = listening
        if audio is not None:
            self.audio = audio

    def capture_utterance(self, mode: str | None = None) -> Utterance:
        """
        Listen until the transcript is non-empty and has been stable for
        ``listening.silence_ms`` of audio.

        Raises:
            CaptureError: The microphone stream failed
            DecodeError: The decoder failed on this utterance

        """
        sample_rate = abs(int(self.decoder.sample_rate()))
        tracker = TranscriptTracker(self.decoder.create_stream(), sample_rate)
        chunk = self.listening.chunk_samples(sample_rate)
        stream_config = StreamConfig(sample_rate=sample_rate, device=self.audio.device, tool=self.audio.tool)

        logger.debug("Starting new utterance")
        with AudioSession(stream_config, backend=self.backend, poll_interval=self.listening.poll_interval) as audio:
            while not self._utterance_finished(tracker):
                samples = audio.wait_until(chunk)
                if tracker.push(samples):
                    logger.debug(f"Current speech text: {tracker.current_text}")

        num_samples = tracker.num_samples
        text, raw_audio = tracker.finish()
        text = text.strip()
        logger.debug(f"Finished at {num_samples} samples. Message: {text}")
        return Utterance(text=text, audio=raw_audio, sample_rate=sample_rate, mode=mode)

    def _utterance_finished(self, tracker: TranscriptTracker) -> bool:
        has_started = bool(tracker.current_text)
        return has_started and tracker.time_since_change() > self.listening.silence

    def run(self, mode: str | None = None) -> SessionOutcome:
        """
        Run one interaction starting in ``mode`` (default mode when ``None``).

        Errors from capture, decoding or spawning end the interaction and
        propagate to the caller. A recording that cannot be saved is logged
        and skipped; it never blocks dispatch.
        """
        if mode is not None and not self.graph.has_mode(mode):
            raise ModeNotFoundError(mode)

        outcome = SessionOutcome(session_id=uuid.uuid4().hex[:8])
        with LogContext(session=outcome.session_id):
            while True:
                with LogContext(utterance=len(outcome.utterances) + 1, mode=mode or "default"):
                    utterance = self.capture_utterance(mode)
                    outcome.utterances.append(utterance)

                    result = self.engine.match(utterance.text, mode)
                    outcome.results.append(result)
                    logger.info(
                        f"Heard '{utterance.text}' -> {[c.message for c in result.path]} "
                        f"(next mode: {result.next_mode or 'none'})"
                    )
                    for action in result.actions:
                        self.spawner(action)
                        outcome.actions.append(action)

                    if self.listening.save_recordings:
                        try:
                            outcome.recordings.append(self.save_recording(utterance, outcome.session_id))
                        except RecordingError as e:
                            logger.warning(f"{e}; continuing without a recording")

                mode = result.next_mode
                if mode is None:
                    break
                logger.info(f"Switching to mode '{mode}'")

        logger.debug(f"Interaction finished: {len(outcome.utterances)} utterance(s), {len(outcome.actions)} action(s)")
        return outcome

    def save_recording(self, utterance: Utterance, session_id: str) -> Path:
        """
        Write an utterance as 16-bit mono WAV into the recordings directory.

        Raises:
            RecordingError: The directory or file could not be written

        """
        directory = self.listening.recordings_path
        path = directory / f"{time.strftime('%Y%m%d-%H%M%S')}-{session_id}-{uuid.uuid4().hex[:4]}.wav"
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with wave.open(str(path), "wb") as wav_file:
                wav_file.setnchannels(1)  # Mono
                wav_file.setsampwidth(2)  # 16-bit
                wav_file.setframerate(utterance.sample_rate)
                wav_file.writeframes(utterance.audio.astype("<i2").tobytes())
        except OSError as e:
            raise RecordingError(str(path), e.strerror or str(e)) from e
        logger.debug(f"Saved utterance audio: {path} ({utterance.duration:.2f}s)")
        return path
