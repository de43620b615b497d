#!/usr/bin/env python3
"""
Speech decoder capability and its faster-whisper implementation.

The session loop only needs three things from a decoder: a sample rate, a
way to open a per-utterance stream, and a best-effort transcript of the
audio fed to that stream so far. ``SpeechDecoder``/``SpeechStream`` describe
that surface so tests can substitute deterministic fakes.
"""
from __future__ import annotations

import logging
from typing import Protocol

import numpy as np

from voxmode.core.config import DecoderSettings
from voxmode.core.errors import DecodeError
from voxmode.modes.dispatch import normalize_phrase
from voxmode.transcription.model_manager import get_model_manager

logger = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16000

# Audio kept while nothing has been heard yet
LEADING_WINDOW_SECONDS = 2


class SpeechStream(Protocol):
    def feed_audio(self, samples: np.ndarray) -> None: ...

    def intermediate_decode(self) -> str: ...


class SpeechDecoder(Protocol):
    def sample_rate(self) -> int: ...

    def create_stream(self) -> SpeechStream: ...


class WhisperStream:
    """
    Per-utterance stream over a faster-whisper model.

    Whisper has no incremental decoding API, so every intermediate decode
    transcribes all audio fed so far. Until something is heard, only the
    last ``leading_window`` samples are kept, so a long wait for speech
    does not grow the audio each decode has to reprocess.
    """

    def __init__(self, model, settings: DecoderSettings, leading_window: int | None = None):
        self.model = model
        self.settings = settings
        self.leading_window = (
            leading_window if leading_window is not None else LEADING_WINDOW_SECONDS * WHISPER_SAMPLE_RATE
        )
        self._chunks: list[np.ndarray] = []
        self._text = ""

    @property
    def buffered_samples(self) -> int:
        return sum(len(chunk) for chunk in self._chunks)

    def feed_audio(self, samples: np.ndarray) -> None:
        samples = np.asarray(samples, dtype=np.int16)
        self._chunks.append(samples)
        if not self._text:
            self._trim_leading(max(self.leading_window, len(samples)))

    def _trim_leading(self, keep: int) -> None:
        if self.buffered_samples <= keep:
            return
        dropped = self.buffered_samples - keep
        self._chunks = [np.concatenate(self._chunks)[-keep:]]
        logger.debug(f"Dropped {dropped} samples of leading silence")

    def intermediate_decode(self) -> str:
        if not self._chunks:
            return ""
        audio = np.concatenate(self._chunks).astype(np.float32) / 32768.0
        try:
            segments, _info = self.model.transcribe(
                audio,
                language=self.settings.language or None,
                beam_size=self.settings.beam_size,
                vad_filter=self.settings.vad_filter,
                condition_on_previous_text=False,
            )
            text = "".join(segment.text for segment in segments)
        except Exception as e:
            raise DecodeError(f"Whisper decode failed: {e}") from e
        self._text = normalize_phrase(text)
        return self._text


class WhisperDecoder:
    """``SpeechDecoder`` backed by a cached faster-whisper model."""

    def __init__(self, settings: DecoderSettings, model=None):
        self.settings = settings
        if model is None:
            compute_type = "default" if settings.compute_type == "auto" else settings.compute_type
            model = get_model_manager().get_model(settings.model, device=settings.device, compute_type=compute_type)
        self.model = model

    def sample_rate(self) -> int:
        return WHISPER_SAMPLE_RATE

    def create_stream(self) -> WhisperStream:
        return WhisperStream(self.model, self.settings)
