"""Tests for the signal-driven daemon."""
import os
import queue
import signal

import pytest

from conftest import FakeBackend, FakeDecoder
from voxmode.core.config import ConfigLoader, ListeningSettings
from voxmode.core.errors import CaptureError
from voxmode.daemon import SIGNAL_EVENTS, Daemon, DaemonEvent, install_signal_handlers
from voxmode.session import SessionLoop

CONFIG = """
[decoder]
model = "{model}"

[[command]]
message = "{message}"
command = "echo {message}"
"""


class FakeSession:
    def __init__(self, graph, decoder, listening=None, audio=None):
        self.graph = graph
        self.decoder = decoder
        self.runs = 0
        self.fail_with = None
        self.replaced = []

    def run(self, mode=None):
        self.runs += 1
        if self.fail_with is not None:
            raise self.fail_with

    def replace(self, graph=None, decoder=None, listening=None, audio=None):
        self.replaced.append({"graph": graph, "decoder": decoder})
        if graph is not None:
            self.graph = graph
        if decoder is not None:
            self.decoder = decoder


class DecoderFactory:
    def __init__(self):
        self.built = []
        self.fail = False

    def __call__(self, settings):
        if self.fail:
            raise RuntimeError("model download failed")
        decoder = object()
        self.built.append((settings.model, decoder))
        return decoder


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "voxmode.toml"
    path.write_text(CONFIG.format(model="tiny.en", message="hello"))
    return path


@pytest.fixture
def decoders():
    return DecoderFactory()


@pytest.fixture
def daemon(config_file, decoders):
    return Daemon(ConfigLoader([config_file], include_xdg=False), decoder_factory=decoders, session_factory=FakeSession)


class TestEvents:
    def test_run_once(self, daemon):
        assert daemon.handle(DaemonEvent.RUN_ONCE) is True
        assert daemon.session.runs == 1
        assert daemon.runs == 1

    def test_stop(self, daemon):
        assert daemon.handle(DaemonEvent.STOP) is False

    def test_failed_run_keeps_the_daemon_alive(self, daemon):
        daemon.session.fail_with = CaptureError("mic gone")
        assert daemon.handle(DaemonEvent.RUN_ONCE) is True
        assert daemon.failures == 1

    def test_unwritable_recordings_do_not_stop_dispatch(self, config_file, tmp_path, spawner):
        blocker = tmp_path / "recordings"
        blocker.write_text("")
        listening = ListeningSettings(
            silence_ms=100, poll_interval_ms=20, chunk_ms=250, save_recordings=True, recordings_dir=str(blocker)
        )

        def session_factory(graph, decoder, listening=None, audio=None):
            return SessionLoop(graph, decoder, listening=listening, backend=FakeBackend(), spawner=spawner)

        daemon = Daemon(
            ConfigLoader([config_file], include_xdg=False),
            decoder_factory=lambda settings: FakeDecoder([["hello", "hello"], ["hello", "hello"]]),
            session_factory=session_factory,
        )
        daemon.session.replace(listening=listening)

        assert daemon.handle(DaemonEvent.RUN_ONCE) is True
        assert daemon.handle(DaemonEvent.RUN_ONCE) is True

        assert spawner.commands == ["echo hello", "echo hello"]
        assert daemon.failures == 0

    def test_os_error_from_a_session_keeps_the_daemon_alive(self, daemon):
        daemon.session.fail_with = PermissionError("read-only file system")
        assert daemon.handle(DaemonEvent.RUN_ONCE) is True
        assert daemon.failures == 1

    def test_serve_forever_processes_in_order(self, daemon):
        for event in (DaemonEvent.RUN_ONCE, DaemonEvent.RUN_ONCE, DaemonEvent.STOP, DaemonEvent.RUN_ONCE):
            daemon.trigger(event)

        daemon.serve_forever(poll_interval=0.01)

        assert daemon.session.runs == 2
        assert daemon.events.get_nowait() is DaemonEvent.RUN_ONCE


class TestReload:
    def test_reload_swaps_graph_and_keeps_decoder(self, daemon, config_file, decoders):
        config_file.write_text(CONFIG.format(model="tiny.en", message="goodbye"))

        assert daemon.reload() is True

        assert [c.message for c in daemon.session.graph.default] == ["goodbye"]
        assert daemon.session.replaced[-1]["decoder"] is None
        assert len(decoders.built) == 1

    def test_reload_rebuilds_decoder_when_settings_change(self, daemon, config_file, decoders):
        config_file.write_text(CONFIG.format(model="small.en", message="hello"))

        assert daemon.reload() is True

        assert [model for model, _ in decoders.built] == ["tiny.en", "small.en"]
        assert daemon.session.decoder is decoders.built[-1][1]

    def test_invalid_config_keeps_previous_state(self, daemon, config_file):
        before = daemon.config
        config_file.write_text("[[command]]\nmessage = 'x'\nmode = 'missing'\n")

        assert daemon.reload() is False

        assert daemon.config is before
        assert daemon.session.replaced == []
        assert [c.message for c in daemon.session.graph.default] == ["hello"]

    def test_decoder_failure_keeps_previous_state(self, daemon, config_file, decoders):
        old_decoder = daemon.decoder
        decoders.fail = True
        config_file.write_text(CONFIG.format(model="large", message="hello"))

        assert daemon.reload() is False

        assert daemon.decoder is old_decoder
        assert daemon.config.decoder_settings.model == "tiny.en"

    def test_on_reload_callback(self, config_file, decoders):
        seen = []
        daemon = Daemon(
            ConfigLoader([config_file], include_xdg=False),
            decoder_factory=decoders,
            session_factory=FakeSession,
            on_reload=seen.append,
        )

        daemon.handle(DaemonEvent.RELOAD)

        assert seen == [daemon.config]


class TestSignals:
    def test_signal_map(self):
        assert SIGNAL_EVENTS["SIGUSR1"] is DaemonEvent.RUN_ONCE
        assert SIGNAL_EVENTS["SIGHUP"] is DaemonEvent.RELOAD
        assert SIGNAL_EVENTS["SIGTERM"] is DaemonEvent.STOP

    @pytest.mark.skipif(not hasattr(signal, "SIGUSR1"), reason="POSIX signals only")
    def test_signal_is_delivered_to_the_channel(self):
        channel = queue.SimpleQueue()
        previous = install_signal_handlers(channel)
        try:
            os.kill(os.getpid(), signal.SIGUSR1)
            assert channel.get(timeout=1.0) is DaemonEvent.RUN_ONCE
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)
