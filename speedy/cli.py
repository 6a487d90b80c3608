"""Command line entry point: ``speedy <command>``."""
from __future__ import annotations

import argparse
import os
import sys
from typing import Optional

from speedy import config
from speedy.compare import build_rows, format_time, summarize
from speedy.display import table_lines
from speedy.protocol import RecordError, SpeedyError
from speedy.records import RecordStore


def _store(args) -> RecordStore:
    return RecordStore(args.data_dir or config.data_dir(), args.game)


def cmd_init(args) -> int:
    store = _store(args)
    try:
        path = store.save_sections(args.sections, force=args.force)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    print(f"[SAVED] {path}")
    return 0


def cmd_games(args) -> int:
    games = RecordStore.list_games(args.data_dir or config.data_dir())
    if not games:
        print("No games registered (use: speedy init <game> <section>...)")
    for game in games:
        print(game)
    return 0


def cmd_list(args) -> int:
    store = _store(args)
    names = store.load_sections()
    pb = store.load_pb(names)
    keys = store.list_history()
    if not keys:
        print(f"No finished runs for {store.game}")
    for key in keys:
        try:
            run = store.load_history(key)
        except RecordError as exc:
            print(f"{key}  unreadable: {exc}")
            continue
        final = format_time(run.final_ms) if run.final_ms is not None else "--:--"
        marker = "  PB" if pb is not None and pb.started_at == run.started_at else ""
        print(f"{key}  {final:>6}{marker}")
    return 0


def _print_table(title: str, run, pb, sum_of_best) -> None:
    rows = build_rows(run, pb, sum_of_best)
    for line in table_lines(title, rows, summarize(run, pb, sum_of_best)):
        print(line)


def cmd_show(args) -> int:
    store = _store(args)
    names = store.load_sections()
    pb, sum_of_best = store.load(names)
    if args.run:
        run = store.load_history(args.run, names)
        title = f"{store.game} {args.run}"
    elif pb is not None:
        run = pb
        title = f"{store.game} pb"
    else:
        print(f"No PB for {store.game}")
        return 0
    _print_table(title, run, pb, sum_of_best)
    return 0


def cmd_compare(args) -> int:
    store = _store(args)
    names = store.load_sections()
    pb, sum_of_best = store.load(names)
    keys = store.list_history()
    a_key = args.a or (keys[-1] if keys else None)
    if a_key is None:
        print(f"No finished runs for {store.game}")
        return 0
    run_a = store.load_history(a_key, names)
    if args.b:
        run_b, b_label = store.load_history(args.b, names), args.b
    else:
        run_b, b_label = pb, "pb"
    _print_table(f"{store.game} {a_key} vs {b_label}", run_a, run_b, sum_of_best)
    return 0


def cmd_run(args) -> int:
    from speedy.cues import CuePlayer
    from speedy.display import SplitDisplay
    from speedy.events import AdvanceChannel, EventLoop, install_signal_trigger
    from speedy.session import SplitSession

    store = _store(args)
    session = SplitSession.open(store)
    channel = AdvanceChannel()
    loop = EventLoop(channel, session.advance)
    if not args.no_signal:
        install_signal_trigger(channel)
        print(f"[READY] kill -USR1 {os.getpid()} to start/split")
    session.on_cue = CuePlayer(enabled=not (args.mute or config.muted()))
    display = SplitDisplay(
        session, channel, fps=args.fps, headless=True if args.headless else None)

    loop.start()
    try:
        display.run()
    except KeyboardInterrupt:
        print("[QUIT]")
    finally:
        loop.stop()
        session.wait()

    if session.pending is not None:
        try:
            session.retry_finalize()
        except (OSError, SpeedyError) as exc:
            print(f"[ERROR] run {session.pending.started_at} was not saved: {exc}",
                  file=sys.stderr)
            return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="speedy", description="Speedrun split timer")
    parser.add_argument("--data-dir", help="Record directory (default: $SPEEDY_DATA_DIR)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    init = subparsers.add_parser("init", help="Register a game's sections")
    init.add_argument("game", help="Game name")
    init.add_argument("sections", nargs="+", help="Section names in order")
    init.add_argument("--force", action="store_true", help="Replace an existing section list")
    init.set_defaults(func=cmd_init)

    run = subparsers.add_parser("run", help="Run the live timer")
    run.add_argument("game", help="Game name")
    run.add_argument("--headless", action="store_true", help="No window (HEADLESS=1)")
    run.add_argument("--fps", type=int, help="Render tick rate, 10-30 (default: $SPEEDY_FPS or 20)")
    run.add_argument("--no-signal", action="store_true", help="Do not listen for SIGUSR1")
    run.add_argument("--mute", action="store_true", help="No audio cues (SPEEDY_MUTE=1)")
    run.set_defaults(func=cmd_run)

    games = subparsers.add_parser("games", help="List registered games")
    games.set_defaults(func=cmd_games)

    lst = subparsers.add_parser("list", help="List finished runs")
    lst.add_argument("game", help="Game name")
    lst.set_defaults(func=cmd_list)

    show = subparsers.add_parser("show", help="Show the PB or one finished run")
    show.add_argument("game", help="Game name")
    show.add_argument("run", nargs="?", help="History key (default: PB)")
    show.set_defaults(func=cmd_show)

    compare = subparsers.add_parser("compare", help="Compare two finished runs")
    compare.add_argument("game", help="Game name")
    compare.add_argument("a", nargs="?", help="History key (default: latest)")
    compare.add_argument("b", nargs="?", help="History key (default: PB)")
    compare.set_defaults(func=cmd_compare)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 2
    try:
        return args.func(args)
    except SpeedyError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
