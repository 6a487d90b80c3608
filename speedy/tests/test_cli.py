"""Tests for speedy.cli module (non-interactive commands)."""
import tempfile
from pathlib import Path

import pytest

from speedy.cli import build_parser, main
from speedy.protocol import Run
from speedy.records import RecordStore

NAMES = ("A", "B", "C")


@pytest.fixture
def data_dir():
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


def seed(data_dir, runs):
    store = RecordStore(data_dir, "game")
    store.save_sections(NAMES)
    for key, times in runs:
        store.persist_history(Run.from_times("game", NAMES, times, started_at=key))
    return store


def test_parser_commands():
    parser = build_parser()
    args = parser.parse_args(["run", "game", "--headless", "--fps", "25"])
    assert args.command == "run" and args.headless and args.fps == 25
    args = parser.parse_args(["compare", "game", "x"])
    assert (args.a, args.b) == ("x", None)


def test_no_command_prints_help(capsys):
    assert main([]) == 2
    assert "usage" in capsys.readouterr().out


def test_init_and_games(data_dir, capsys):
    assert main(["--data-dir", str(data_dir), "init", "game", "A", "B", "C"]) == 0
    assert RecordStore(data_dir, "game").load_sections() == NAMES
    capsys.readouterr()
    assert main(["--data-dir", str(data_dir), "games"]) == 0
    assert capsys.readouterr().out.strip() == "game"


def test_init_refuses_changed_sections(data_dir, capsys):
    seed(data_dir, [])
    assert main(["--data-dir", str(data_dir), "init", "game", "X"]) == 1
    assert "force" in capsys.readouterr().err
    assert main(["--data-dir", str(data_dir), "init", "game", "X", "--force"]) == 0


def test_init_rejects_duplicates(data_dir, capsys):
    assert main(["--data-dir", str(data_dir), "init", "game", "A", "A"]) == 2
    assert "unique" in capsys.readouterr().err


def test_list_marks_pb(data_dir, capsys):
    store = seed(data_dir, [("2026-10-18T12:00:00", [1000, 2000, 3000]),
                            ("2026-10-18T13:00:00", [1000, 2000, 61000])])
    store.persist_pb(Run.from_times("game", NAMES, [1000, 2000, 3000],
                                    started_at="2026-10-18T12:00:00"))
    assert main(["--data-dir", str(data_dir), "list", "game"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("2026-10-18T12:00:00") and lines[0].endswith("PB")
    assert "1:01" in lines[1] and not lines[1].endswith("PB")


def test_show_pb(data_dir, capsys):
    store = seed(data_dir, [])
    store.persist_pb(Run.from_times("game", NAMES, [1000, 2000, 3000]))
    assert main(["--data-dir", str(data_dir), "show", "game"]) == 0
    out = capsys.readouterr().out
    assert "speedy: game pb" in out
    assert "(+0:00)" in out


def test_show_without_pb(data_dir, capsys):
    seed(data_dir, [])
    assert main(["--data-dir", str(data_dir), "show", "game"]) == 0
    assert "No PB" in capsys.readouterr().out


def test_compare_two_runs(data_dir, capsys):
    seed(data_dir, [("2026-10-18T12:00:00", [10000, 20000, 30000]),
                    ("2026-10-18T13:00:00", [12000, 21000, 35000])])
    assert main(["--data-dir", str(data_dir), "compare", "game",
                 "2026-10-18T13:00:00", "2026-10-18T12:00:00"]) == 0
    out = capsys.readouterr().out
    assert "(+0:02)" in out
    assert "(+0:05)" in out


def test_unknown_game_is_error(data_dir, capsys):
    assert main(["--data-dir", str(data_dir), "list", "nope"]) == 1
    assert "error:" in capsys.readouterr().err


def test_mismatched_pb_is_error(data_dir, capsys):
    store = seed(data_dir, [])
    store.persist_pb(Run.from_times("game", ("A", "B"), [1, 2]))
    assert main(["--data-dir", str(data_dir), "show", "game"]) == 1
    assert "configured" in capsys.readouterr().err
