"""Tests for :mod:`watchfs.cli`."""
from __future__ import annotations

import pytest

from watchfs import cli
from watchfs.errors import WatchStartError


class FakeLoop:
    instances = []
    result = 0
    raises = None

    def __init__(self, config):
        self.config = config
        FakeLoop.instances.append(self)

    def run(self):
        if FakeLoop.raises is not None:
            raise FakeLoop.raises
        return FakeLoop.result


@pytest.fixture()
def fake_loop(monkeypatch):
    FakeLoop.instances = []
    FakeLoop.result = 0
    FakeLoop.raises = None
    monkeypatch.setattr(cli, "WatchLoop", FakeLoop)
    return FakeLoop


def test_trailing_arguments_belong_to_command():
    args = cli.build_parser().parse_args(["-s", "5", "-p", "rsync", "-a", "-v", "src/"])

    assert args.delay_seconds == 5.0
    assert args.pass_changed_paths
    assert args.verbose is None
    assert args.command == ["rsync", "-a", "-v", "src/"]


def test_separator_is_stripped():
    args = cli.build_parser().parse_args(["make"])
    args.command = ["--", "make", "test"]

    assert cli._overrides(args)["command"] == ("make", "test")


def test_unset_flags_are_not_overrides():
    overrides = cli._overrides(cli.build_parser().parse_args([]))

    assert "command" not in overrides
    assert all(value is None for value in overrides.values())


@pytest.mark.parametrize(
    "argv, code",
    [
        (["-s", "0", "make"], 7),
        (["-r", "make"], 4),
        (["-f", "(unclosed", "make"], 9),
        (["-i", "[a-", "make"], 9),
    ],
)
def test_config_errors_exit_before_watching(fake_loop, capsys, argv, code):
    assert cli.main(argv) == code

    assert fake_loop.instances == []
    assert "error:" in capsys.readouterr().err


def test_missing_directory(fake_loop, tmp_path):
    assert cli.main(["-d", str(tmp_path / "missing"), "make"]) == 6
    assert fake_loop.instances == []


def test_runs_loop_with_effective_config(fake_loop, tmp_path):
    fake_loop.result = 12

    assert cli.main(["-d", str(tmp_path), "-s", "2", "-x", "make", "test"]) == 12

    [loop] = fake_loop.instances
    assert loop.config.path == str(tmp_path.resolve())
    assert loop.config.delay_seconds == 2.0
    assert loop.config.exit_on_error
    assert loop.config.command == ("make", "test")


def test_defaults_to_echo(fake_loop, tmp_path):
    cli.main(["-d", str(tmp_path)])

    [loop] = fake_loop.instances
    assert loop.config.command == ("echo",)
    assert loop.config.shell


def test_command_line_overrides_config_file(fake_loop, tmp_path):
    config_file = tmp_path / "watchfs.yaml"
    config_file.write_text(f"path: {tmp_path}\ndelay-seconds: 9\nonce: true\ncommand: [make]\n")

    cli.main(["-c", str(config_file), "-s", "1"])

    [loop] = fake_loop.instances
    assert loop.config.delay_seconds == 1.0
    assert loop.config.once
    assert loop.config.command == ("make",)


def test_verbose_prints_effective_args(fake_loop, tmp_path, capsys):
    cli.main(["-v", "-d", str(tmp_path), "make"])

    out = capsys.readouterr().out
    assert out.startswith("Args:\n")
    assert "delay_seconds: 30" in out


def test_watch_start_failure(fake_loop, tmp_path):
    fake_loop.raises = WatchStartError("no notify support")

    assert cli.main(["-d", str(tmp_path), "make"]) == 1


def test_interrupt(fake_loop, tmp_path):
    fake_loop.raises = KeyboardInterrupt()

    assert cli.main(["-d", str(tmp_path), "make"]) == 130


def test_badly_typed_config_file(fake_loop, tmp_path, capsys):
    config_file = tmp_path / "watchfs.yaml"
    config_file.write_text("delay-seconds: soon\n")

    assert cli.main(["-c", str(config_file), "make"]) == 2

    assert fake_loop.instances == []
    assert "delay-seconds" in capsys.readouterr().err
