#!/usr/bin/env python3
"""
Signal-driven background mode.

The daemon sleeps until it receives an event on its channel:

* SIGUSR1 / SIGCONT: listen and run a single interaction
* SIGHUP: reload configuration from the config files
* SIGINT / SIGTERM: exit

Signal handlers only enqueue events; all work happens on the main thread
between interactions, so a reload never interrupts an utterance.
"""
from __future__ import annotations

import enum
import queue
import signal
from collections.abc import Callable
from typing import Any

from voxmode.core.config import ConfigLoader
from voxmode.core.errors import ConfigurationError, VoxmodeError
from voxmode.core.logging import get_logger
from voxmode.session import SessionLoop
from voxmode.transcription.decoder import WhisperDecoder

logger = get_logger(__name__)


class DaemonEvent(enum.Enum):
    RUN_ONCE = "run_once"
    RELOAD = "reload"
    STOP = "stop"


SIGNAL_EVENTS = {
    "SIGUSR1": DaemonEvent.RUN_ONCE,
    "SIGCONT": DaemonEvent.RUN_ONCE,
    "SIGHUP": DaemonEvent.RELOAD,
    "SIGINT": DaemonEvent.STOP,
    "SIGTERM": DaemonEvent.STOP,
}


def install_signal_handlers(channel: queue.SimpleQueue) -> dict[signal.Signals, Any]:
    """
    Route daemon signals into ``channel``. Returns the previous handlers.

    Signals missing on the current platform are skipped.
    """
    previous = {}
    for name, event in SIGNAL_EVENTS.items():
        signum = getattr(signal, name, None)
        if signum is None:
            continue

        def handler(_signum, _frame, event=event):
            channel.put(event)

        previous[signum] = signal.signal(signum, handler)
    return previous


class Daemon:
    """Owns the configuration, decoder and session loop between triggers."""

    def __init__(
        self,
        config: ConfigLoader,
        decoder_factory: Callable[..., Any] = WhisperDecoder,
        session_factory: Callable[..., SessionLoop] = SessionLoop,
        on_reload: Callable[[ConfigLoader], None] | None = None,
        channel: queue.SimpleQueue | None = None,
    ):
        self.config = config
        self.decoder_factory = decoder_factory
        self.on_reload = on_reload
        self.events: queue.SimpleQueue = channel if channel is not None else queue.SimpleQueue()

        self.decoder = decoder_factory(config.decoder_settings)
        self.session = session_factory(
            config.graph, self.decoder, listening=config.listening_settings, audio=config.audio_settings
        )
        self.runs = 0
        self.failures = 0

    def trigger(self, event: DaemonEvent) -> None:
        self.events.put(event)

    def serve_forever(self, poll_interval: float = 1.0) -> None:
        """Process events until a STOP event arrives."""
        logger.info("Daemon waiting for signals")
        while True:
            try:
                event = self.events.get(timeout=poll_interval)
            except queue.Empty:
                continue
            if not self.handle(event):
                break
        logger.info("Daemon stopped")

    def handle(self, event: DaemonEvent) -> bool:
        """Handle one event; returns False when the daemon should stop."""
        if event is DaemonEvent.RUN_ONCE:
            logger.debug("Caught a signal to run the assistant")
            self.run_once()
        elif event is DaemonEvent.RELOAD:
            logger.debug("Caught a signal to reload the assistant")
            self.reload()
        elif event is DaemonEvent.STOP:
            return False
        return True

    def run_once(self) -> None:
        """Run one interaction. Errors are logged; the daemon keeps waiting."""
        self.runs += 1
        try:
            self.session.run()
        except (VoxmodeError, OSError) as e:
            self.failures += 1
            logger.error(f"Interaction failed: {e}")

    def reload(self) -> bool:
        """
        Re-read configuration and swap it in only if it is valid.

        The decoder is rebuilt only when its settings changed. Returns whether
        the new configuration was applied.
        """
        try:
            new_config = self.config.reload()
        except ConfigurationError as e:
            logger.error(f"Reload failed, keeping previous configuration: {e}")
            return False

        decoder = None
        if new_config.decoder_settings != self.config.decoder_settings:
            try:
                decoder = self.decoder_factory(new_config.decoder_settings)
            except Exception as e:
                logger.error(f"Reload failed while loading the decoder, keeping previous configuration: {e}")
                return False
            self.decoder = decoder

        self.session.replace(
            graph=new_config.graph,
            decoder=decoder,
            listening=new_config.listening_settings,
            audio=new_config.audio_settings,
        )
        self.config = new_config
        if self.on_reload is not None:
            self.on_reload(new_config)
        logger.info(f"Configuration reloaded from {[str(p) for p in new_config.sources]}")
        return True
