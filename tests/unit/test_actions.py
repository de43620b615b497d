"""Tests for fire-and-forget command spawning."""
import subprocess

import pytest

from voxmode import actions
from voxmode.core.errors import SpawnError


class TestSpawn:
    def test_runs_through_the_shell(self, tmp_path):
        target = tmp_path / "out.txt"
        process = actions.spawn(f"echo spawned > '{target}'")
        assert process.wait(timeout=5) == 0
        assert target.read_text().strip() == "spawned"

    def test_does_not_wait_for_the_child(self):
        process = actions.spawn("sleep 5")
        try:
            assert process.poll() is None
        finally:
            process.kill()
            process.wait()

    def test_start_failure(self, monkeypatch):
        def broken(*args, **kwargs):
            raise OSError("no sh here")

        monkeypatch.setattr(actions.subprocess, "Popen", broken)
        with pytest.raises(SpawnError) as exc_info:
            actions.spawn("firefox")
        assert exc_info.value.command == "firefox"

    def test_child_stdio_is_detached(self, monkeypatch):
        captured = {}

        def fake_popen(args, **kwargs):
            captured.update(kwargs, args=args)

        monkeypatch.setattr(actions.subprocess, "Popen", fake_popen)
        actions.spawn("ls")

        assert captured["args"] == ["sh", "-c", "ls"]
        assert captured["stdin"] is subprocess.DEVNULL
        assert captured["stdout"] is subprocess.DEVNULL
        assert captured["start_new_session"] is True
