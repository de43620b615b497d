"""
voxmode - voice-driven command launcher with modes.

This package provides:
- Streaming capture: microphone audio through an arecord/ffmpeg pipe
- Incremental transcription: Whisper re-decodes until the transcript settles
- Mode graphs: keyphrases that run shell commands and switch modes
- Fuzzy dispatch: edit-distance matching of a transcript against the graph
- Daemon mode: signal-triggered interactions with live config reload
"""

__version__ = "0.3.0"

# Heavy modules (numpy, faster-whisper) are imported on demand
# Import them with: from voxmode.session import SessionLoop
