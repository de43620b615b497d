#!/usr/bin/env python3
"""
TranscriptTracker - follow one utterance as audio arrives.

The tracker feeds audio to a decoder stream and records how much audio has
gone by since the transcript last changed. That count is the silence clock:
it is measured in audio time, not wall-clock time, so slow decoding does not
cut an utterance short.
"""
from __future__ import annotations

import numpy as np

from voxmode.core.errors import DecodeError
from voxmode.transcription.decoder import SpeechStream


class TranscriptTracker:
    """Per-utterance transcript and raw-audio accumulator."""

    def __init__(self, stream: SpeechStream, sample_rate: int):
        self.stream = stream
        # Decoders may report the rate as a signed value
        self.sample_rate = abs(int(sample_rate))
        if self.sample_rate == 0:
            raise DecodeError("decoder reported a sample rate of 0")

        self.total_samples = 0
        self.samples_since_change = 0
        self._current_text = ""
        self._raw_audio: list[np.ndarray] = []
        self._finished = False

    @property
    def current_text(self) -> str:
        return self._current_text

    @property
    def num_samples(self) -> int:
        return self.total_samples

    def push(self, samples: np.ndarray) -> bool:
        """
        Feed ``samples`` to the decoder; return whether the transcript changed.

        Raises:
            DecodeError: The decoder failed; the utterance should be abandoned

        """
        if self._finished:
            raise RuntimeError("push() after finish()")

        samples = np.asarray(samples, dtype=np.int16)
        self.total_samples += len(samples)
        try:
            self.stream.feed_audio(samples)
            text = self.stream.intermediate_decode()
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(str(e)) from e

        if text != self._current_text:
            self._current_text = text
            self.samples_since_change = 0
            self._raw_audio.append(samples)
            return True

        # Keep trailing silence inside an utterance, drop leading silence
        if text:
            self._raw_audio.append(samples)
        self.samples_since_change += len(samples)
        return False

    def time_since_change(self) -> float:
        """Seconds of audio pushed since the transcript last changed."""
        return self.samples_since_change / self.sample_rate

    def finish(self) -> tuple[str, np.ndarray]:
        """Return the final transcript and the recorded audio. Ends the tracker."""
        self._finished = True
        audio = np.concatenate(self._raw_audio) if self._raw_audio else np.zeros(0, dtype=np.int16)
        return self._current_text, audio
