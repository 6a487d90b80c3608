"""Per-game record files: section config, PB, sum-of-best, history, event log.

Layout under the data root::

    <game>/sections.json
    <game>/pb.json
    <game>/sum_of_best.json
    <game>/history/<start timestamp>.json
    <game>/events.jsonl
"""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Sequence

from speedy.protocol import (
    RECORD_SCHEMA,
    ConfigMismatch,
    RecordError,
    RecordFormatError,
    Run,
    RunStatus,
    Section,
    UnknownGame,
)

PB = "pb"
SUM_OF_BEST = "sum_of_best"
SECTIONS_FILE = "sections.json"
EVENTS_FILE = "events.jsonl"


# -- JSON helpers ------------------------------------------------------------

def append_jsonl(path: Path, entry: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry) + "\n")


def iter_jsonl(path: Path) -> list[dict]:
    if not path.exists():
        return []
    entries: list[dict] = []
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(entry, dict):
                entries.append(entry)
    return entries


def write_json_atomic(path: Path, data) -> None:
    """Write *data* next to *path* and rename over it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(json.dumps(data, indent=2) + "\n")
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def _read_json(path: Path):
    """Parsed contents of *path*, or None if it cannot be read."""
    try:
        return json.loads(path.read_text("utf-8"))
    except (OSError, ValueError):
        return None


def run_to_dict(run: Run) -> dict:
    return {
        "schema": RECORD_SCHEMA,
        "game": run.game,
        "started_at": run.started_at,
        "sections": [
            {"name": s.name, "time": s.cumulative_ms} for s in run.sections
        ],
    }


def run_from_dict(data, *, game: str, record: str) -> Run:
    """Parse a stored record, raising RecordFormatError on bad structure."""
    if not isinstance(data, dict):
        raise RecordFormatError(f"{record}: expected an object", record=record)
    schema = data.get("schema", RECORD_SCHEMA)
    if schema != RECORD_SCHEMA:
        raise RecordFormatError(f"{record}: unsupported schema {schema!r}", record=record)
    raw_sections = data.get("sections")
    if not isinstance(raw_sections, list):
        raise RecordFormatError(f"{record}: 'sections' must be a list", record=record)
    sections: list[Section] = []
    for i, raw in enumerate(raw_sections):
        if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
            raise RecordFormatError(f"{record}: section {i} has no name", record=record)
        time_ms = raw.get("time")
        if time_ms is not None and (
            isinstance(time_ms, bool) or not isinstance(time_ms, int) or time_ms < 0
        ):
            raise RecordFormatError(
                f"{record}: section {raw['name']!r} has invalid time {time_ms!r}",
                record=record)
        sections.append(Section(raw["name"], time_ms))
    started_at = data.get("started_at")
    run = Run(
        game=data.get("game") or game,
        sections=sections,
        status=RunStatus.FINISHED,
        current_index=len(sections),
        started_at=started_at if isinstance(started_at, str) else None,
    )
    if not run.is_monotonic():
        raise RecordFormatError(f"{record}: section times decrease", record=record)
    return run


def check_sections(run: Run, names: Sequence[str], *, record: str) -> None:
    """Raise ConfigMismatch unless *run* has exactly *names* in order."""
    names = tuple(names)
    if run.names == names:
        return
    if len(run.names) != len(names):
        raise ConfigMismatch(
            f"{record}: has {len(run.names)} sections, configured {len(names)}",
            record=record)
    for i, (have, want) in enumerate(zip(run.names, names)):
        if have != want:
            raise ConfigMismatch(
                f"{record}: section {i} is {have!r}, configured {want!r}",
                record=record)


# -- RecordStore -------------------------------------------------------------

class RecordStore:
    """Load and persist the records for one game."""

    def __init__(self, root: Path, game: str) -> None:
        if not game or "/" in game or game.startswith("."):
            raise UnknownGame(f"invalid game name {game!r}", record="sections")
        self.root = Path(root)
        self.game = game

    @property
    def game_dir(self) -> Path:
        return self.root / self.game

    @property
    def history_dir(self) -> Path:
        return self.game_dir / "history"

    @property
    def events_path(self) -> Path:
        return self.game_dir / EVENTS_FILE

    def record_path(self, record: str) -> Path:
        return self.game_dir / f"{record}.json"

    @staticmethod
    def list_games(root: Path) -> list[str]:
        root = Path(root)
        if not root.exists():
            return []
        return sorted(
            p.name for p in root.iterdir()
            if p.is_dir() and (p / SECTIONS_FILE).exists()
        )

    # -- Section config ------------------------------------------------------

    def load_sections(self) -> tuple[str, ...]:
        path = self.game_dir / SECTIONS_FILE
        if not path.exists():
            raise UnknownGame(f"no sections registered for {self.game!r}", record="sections")
        try:
            data = json.loads(path.read_text("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise RecordFormatError(f"sections: {exc}", record="sections") from exc
        names = data.get("sections") if isinstance(data, dict) else None
        if not isinstance(names, list) or not names or not all(
            isinstance(n, str) and n for n in names
        ):
            raise RecordFormatError("sections: expected a non-empty list of names",
                                    record="sections")
        return tuple(names)

    def save_sections(self, names: Iterable[str], *, force: bool = False) -> Path:
        names = [n.strip() for n in names]
        if not names or not all(names):
            raise ValueError("section names must be non-empty")
        if len(set(names)) != len(names):
            raise ValueError("section names must be unique")
        path = self.game_dir / SECTIONS_FILE
        if path.exists() and not force:
            try:
                current = self.load_sections()
            except RecordError:
                current = None
            if current is not None and current != tuple(names):
                raise ConfigMismatch(
                    f"{self.game!r} already has sections {list(current)}; use force to replace",
                    record="sections")
        write_json_atomic(path, {"game": self.game, "sections": names})
        return path

    # -- PB / sum-of-best ----------------------------------------------------

    def _load_record(self, record: str, names: Sequence[str]) -> Optional[Run]:
        path = self.record_path(record)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise RecordFormatError(f"{record}: {exc}", record=record) from exc
        run = run_from_dict(data, game=self.game, record=record)
        check_sections(run, names, record=record)
        return run

    def load_pb(self, names: Sequence[str]) -> Optional[Run]:
        return self._load_record(PB, names)

    def load_sum_of_best(self, names: Sequence[str]) -> Optional[Run]:
        return self._load_record(SUM_OF_BEST, names)

    def load(self, names: Sequence[str]) -> tuple[Optional[Run], Optional[Run]]:
        """Load ``(pb, sum_of_best)`` for *names*.

        Each record is loaded independently. If either fails, the first
        error is raised after both were attempted, with the records that did
        load attached as ``error.partial``.
        """
        loaded: dict[str, Optional[Run]] = {PB: None, SUM_OF_BEST: None}
        errors: list[RecordError] = []
        for record in (PB, SUM_OF_BEST):
            try:
                loaded[record] = self._load_record(record, names)
            except RecordError as exc:
                errors.append(exc)
        if errors:
            errors[0].partial = (loaded[PB], loaded[SUM_OF_BEST])
            raise errors[0]
        return loaded[PB], loaded[SUM_OF_BEST]

    def persist_pb(self, run: Run) -> Path:
        path = self.record_path(PB)
        write_json_atomic(path, run_to_dict(run))
        return path

    def persist_sum_of_best(self, run: Run) -> Path:
        path = self.record_path(SUM_OF_BEST)
        write_json_atomic(path, run_to_dict(run))
        return path

    # -- History -------------------------------------------------------------

    def persist_history(self, run: Run) -> Path:
        """Archive a finished run under its start timestamp.

        Never overwrites another run. Archiving the same run again returns
        the file already written for it.
        """
        key = run.started_at or "unknown"
        data = run_to_dict(run)
        self.history_dir.mkdir(parents=True, exist_ok=True)
        path = self.history_dir / f"{key}.json"
        n = 1
        while path.exists():
            if _read_json(path) == data:
                return path
            path = self.history_dir / f"{key}.{n}.json"
            n += 1
        write_json_atomic(path, data)
        return path

    def list_history(self) -> list[str]:
        if not self.history_dir.exists():
            return []
        return sorted(p.stem for p in self.history_dir.glob("*.json"))

    def load_history(self, key: str, names: Optional[Sequence[str]] = None) -> Run:
        path = self.history_dir / f"{key}.json"
        record = f"history/{key}"
        if not path.exists():
            raise RecordError(f"no run {key!r} for {self.game!r}", record=record)
        try:
            data = json.loads(path.read_text("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise RecordFormatError(f"{record}: {exc}", record=record) from exc
        run = run_from_dict(data, game=self.game, record=record)
        if names is not None:
            check_sections(run, names, record=record)
        return run

    # -- Event log -----------------------------------------------------------

    def log_event(self, entry: dict) -> None:
        append_jsonl(self.events_path, {"game": self.game, **entry})

    def iter_events(self) -> list[dict]:
        return iter_jsonl(self.events_path)
