"""Tests for the cascading TOML configuration loader."""
from pathlib import Path

import pytest

from voxmode.core.config import (
    DEFAULT_CONFIG,
    ConfigLoader,
    DecoderSettings,
    config_search_paths,
    merge_settings,
    write_default_config,
    xdg_config_files,
)
from voxmode.core.errors import ConfigurationError, DuplicateModeError, NoCommandsError, UnreachableModeError

MINIMAL = """
[[command]]
message = "hello"
command = "echo hello"
"""


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestPathDiscovery:
    def test_xdg_order(self):
        env = {"XDG_CONFIG_HOME": "/home/u/.cfg", "XDG_CONFIG_DIRS": "/etc/a:/etc/b"}
        assert xdg_config_files(env) == [
            Path("/home/u/.cfg/voxmode/voxmode.toml"),
            Path("/etc/a/voxmode/voxmode.toml"),
            Path("/etc/b/voxmode/voxmode.toml"),
        ]

    def test_xdg_defaults(self):
        assert xdg_config_files({"HOME": "/home/u"}) == [
            Path("/home/u/.config/voxmode/voxmode.toml"),
            Path("/etc/xdg/voxmode/voxmode.toml"),
        ]

    def test_explicit_paths_come_first_and_duplicates_are_dropped(self):
        env = {"XDG_CONFIG_HOME": "/x", "XDG_CONFIG_DIRS": "/x"}
        paths = config_search_paths(["/x/voxmode/voxmode.toml", "/other.toml"], environ=env)
        assert paths == [Path("/x/voxmode/voxmode.toml"), Path("/other.toml")]

    def test_without_xdg(self):
        assert config_search_paths(["a.toml"], include_xdg=False) == [Path("a.toml")]


class TestMergeSettings:
    def test_primary_wins_key_by_key(self):
        primary = {"listening": {"silence_ms": 300}}
        secondary = {"listening": {"silence_ms": 100, "chunk_ms": 500}, "logging": {"level": "DEBUG"}}
        assert merge_settings(primary, secondary) == {
            "listening": {"silence_ms": 300, "chunk_ms": 500},
            "logging": {"level": "DEBUG"},
        }


class TestConfigLoader:
    def test_defaults_with_minimal_file(self, tmp_path):
        config = ConfigLoader([write(tmp_path / "a.toml", MINIMAL)], include_xdg=False)

        assert config.decoder_settings == DecoderSettings()
        assert config.listening_settings.silence_ms == 100
        assert config.audio_settings.device is None
        assert config.logging_settings.level == "INFO"
        assert [c.message for c in config.graph.default] == ["hello"]

    def test_no_files_means_no_commands(self, tmp_path):
        with pytest.raises(NoCommandsError):
            ConfigLoader([tmp_path / "missing.toml"], include_xdg=False)

    def test_cascade_first_file_wins_and_graphs_merge(self, tmp_path):
        first = write(
            tmp_path / "first.toml",
            """
[listening]
silence_ms = 300

[[command]]
message = "fire fox"
mode = "firefox"
""",
        )
        second = write(
            tmp_path / "second.toml",
            """
[listening]
silence_ms = 50
chunk_ms = 500

[[command]]
message = "terminal"
command = "xterm"

[[mode]]
name = "firefox"

[[mode.command]]
message = "new window"
command = "firefox --new-window"
""",
        )

        config = ConfigLoader([first, second], include_xdg=False)

        assert config.listening_settings.silence_ms == 300
        assert config.listening_settings.chunk_ms == 500
        assert [c.message for c in config.graph.default] == ["fire fox", "terminal"]
        assert config.graph.mode_names() == ["firefox"]
        assert config.sources == [first, second]

    def test_xdg_files_are_read_after_explicit_ones(self, tmp_path, isolated_xdg):
        home, system = isolated_xdg
        write(home / "voxmode" / "voxmode.toml", '[logging]\nlevel = "DEBUG"\n' + MINIMAL)
        write(system / "voxmode" / "voxmode.toml", '[logging]\nlevel = "ERROR"\n[[command]]\nmessage = "bye"\n')
        explicit = write(tmp_path / "explicit.toml", '[logging]\nlevel = "WARNING"\n')

        config = ConfigLoader([explicit])

        assert config.logging_settings.level == "WARNING"
        assert [c.message for c in config.graph.default] == ["hello", "bye"]
        assert len(config.sources) == 3

    def test_duplicate_mode_across_files_names_the_file(self, tmp_path):
        body = MINIMAL.replace("hello", "{msg}") + '\n[[mode]]\nname = "m"\n[[mode.command]]\nmessage = "x"\n'
        a = write(tmp_path / "a.toml", body.format(msg="a"))
        b = write(tmp_path / "b.toml", body.format(msg="b"))

        with pytest.raises(DuplicateModeError) as exc_info:
            ConfigLoader([a, b], include_xdg=False)
        assert exc_info.value.path == str(b)

    def test_unreachable_mode_fails_validation(self, tmp_path):
        path = write(tmp_path / "a.toml", MINIMAL + '\n[[mode]]\nname = "orphan"\n[[mode.command]]\nmessage = "x"\n')
        with pytest.raises(UnreachableModeError):
            ConfigLoader([path], include_xdg=False)

    def test_invalid_toml_names_the_file(self, tmp_path):
        path = write(tmp_path / "broken.toml", "[[command]\nmessage = ")
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader([path], include_xdg=False)
        assert exc_info.value.path == str(path)
        assert str(path) in str(exc_info.value)

    @pytest.mark.parametrize(
        "settings",
        [
            "[listening]\nsilence_ms = 0",
            "[listening]\nsilence_ms = true",
            "[listening]\nchunk_ms = \"1s\"",
            "[decoder]\nbeam_size = -1",
            "[decoder]\nvad_filter = \"yes\"",
            "[audio]\ntool = \"sox\"",
            "[logging]\nlevel = \"LOUD\"",
            "[logging]\noutput = \"syslog\"",
        ],
    )
    def test_invalid_values(self, tmp_path, settings):
        path = write(tmp_path / "a.toml", settings + "\n" + MINIMAL)
        with pytest.raises(ConfigurationError):
            ConfigLoader([path], include_xdg=False)

    def test_get_uses_dot_notation(self, tmp_path):
        path = write(tmp_path / "a.toml", "[listening]\nsilence_ms = 250\n" + MINIMAL)
        config = ConfigLoader([path], include_xdg=False)

        assert config.get("listening.silence_ms") == 250
        assert config.get("listening.missing", "default") == "default"
        assert config.get("listening") == {"silence_ms": 250}

    def test_reload_returns_a_new_loader(self, tmp_path):
        path = write(tmp_path / "a.toml", MINIMAL)
        config = ConfigLoader([path], include_xdg=False)

        path.write_text(MINIMAL.replace("hello", "goodbye"))
        reloaded = config.reload()

        assert reloaded is not config
        assert [c.message for c in config.graph.default] == ["hello"]
        assert [c.message for c in reloaded.graph.default] == ["goodbye"]


class TestDefaultConfig:
    def test_default_config_is_valid(self, tmp_path):
        path = write_default_config(tmp_path / "voxmode.toml")

        config = ConfigLoader([path], include_xdg=False)

        assert path.read_text() == DEFAULT_CONFIG
        assert config.graph.has_mode("firefox")

    def test_refuses_to_overwrite(self, tmp_path):
        path = write(tmp_path / "voxmode.toml", "keep me")
        with pytest.raises(ConfigurationError):
            write_default_config(path)
        assert path.read_text() == "keep me"

    def test_force_overwrites(self, tmp_path):
        path = write(tmp_path / "voxmode.toml", "old")
        write_default_config(path, force=True)
        assert path.read_text() == DEFAULT_CONFIG

    def test_default_location_is_xdg_config_home(self, isolated_xdg):
        home, _ = isolated_xdg
        assert write_default_config() == home / "voxmode" / "voxmode.toml"
