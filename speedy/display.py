"""pygame split table: the render driver for a SplitSession.

Draws one line per section on every tick, after asking the session to
refresh the live section. SPACE posts an advance trigger, ESC or Q quits,
HEADLESS=1 runs the tick loop without a window.

Usage::

    channel = AdvanceChannel()
    display = SplitDisplay(session, channel)
    display.run()
"""

from __future__ import annotations

import os
from typing import Callable, Optional

from speedy import config
from speedy.compare import Summary, summary_line
from speedy.protocol import Indicator, SectionRow

# Must be set before pygame import for Hyprland/Arch compatibility
os.environ.setdefault("SDL_VIDEODRIVER", "x11")

_FONT_SIZE = 18
_LINE_HEIGHT = 22
_MARGIN = 8
_BG_COLOR = (16, 16, 20)
_TEXT_COLOR = (230, 230, 230)
_DIM_COLOR = (130, 130, 140)
_AHEAD_COLOR = (90, 150, 255)
_BEHIND_COLOR = (235, 80, 80)
_GOLD_COLOR = (255, 200, 40)
_LIVE_BG_COLOR = (40, 40, 56)

_NAME_WIDTH = 12
HEADER = f" {'section':<{_NAME_WIDTH}}| best  | current         | section"
RULE = f" {'-' * _NAME_WIDTH}|-------|-----------------|----------------"


def row_cells(row: SectionRow) -> list[tuple[str, str]]:
    """Cells of one table line as ``(text, role)`` pairs.

    Roles are ``plain``, ``delta_total`` and ``delta_section``; the caller
    maps roles to colours.
    """
    name = row.name[:_NAME_WIDTH]
    return [
        (f" {name:<{_NAME_WIDTH}}| {row.pb:>5} | {row.total:>5} ", "plain"),
        (f"{row.delta_total:<9}", "delta_total"),
        (f" | {row.section:>5} ", "plain"),
        (f"{row.delta_section:<9}", "delta_section"),
    ]


def format_row(row: SectionRow) -> str:
    return "".join(text for text, _ in row_cells(row)).rstrip()


def table_lines(title: str, rows: list[SectionRow], summary: Optional[Summary] = None) -> list[str]:
    lines = [f" speedy: {title}", HEADER, RULE]
    lines.extend(format_row(row) for row in rows)
    if summary is not None:
        lines.append(RULE)
        lines.append(f" {summary_line(summary)}")
    return lines


def delta_color(row: SectionRow, role: str) -> tuple[int, int, int]:
    """Colour of a delta cell, taken from the row's indicator."""
    value = row.delta_total_ms if role == "delta_total" else row.delta_section_ms
    if role == "delta_section" and row.indicator == Indicator.AHEAD_OF_BEST:
        return _GOLD_COLOR
    if value is None:
        return _DIM_COLOR
    return _BEHIND_COLOR if row.indicator == Indicator.BEHIND else _AHEAD_COLOR


class SplitDisplay:
    """Window (or headless loop) that renders a SplitSession at a fixed tick."""

    def __init__(
        self,
        session,
        channel,
        *,
        title: Optional[str] = None,
        fps: Optional[int] = None,
        headless: Optional[bool] = None,
    ):
        self.session = session
        self.channel = channel
        self.title = title or session.store.game
        self.fps = config.render_fps(fps)
        self._headless = config.headless() if headless is None else headless
        self.running: bool = False
        self._frame_count: int = 0

        # Pygame objects (initialized in run())
        self._screen = None
        self._font = None
        self._clock = None

        # Hooks -- all optional, defaults do nothing
        self.on_key_down: Callable[[int], bool] = lambda key: False
        self.on_close: Callable[[], None] = lambda: None

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def stop(self) -> None:
        self.running = False

    def run(self) -> None:
        """Main loop. Blocks until quit."""
        import pygame

        self.running = True
        if not self._headless:
            pygame.init()
            self._font = pygame.font.SysFont("monospace", _FONT_SIZE)
            char_w, _ = self._font.size("M")
            width = char_w * (len(RULE) + 2) + 2 * _MARGIN
            height = _LINE_HEIGHT * (len(self.session.machine.names) + 6) + 2 * _MARGIN
            self._screen = pygame.display.set_mode((width, height))
            pygame.display.set_caption(f"speedy: {self.title}")
        else:
            # Minimal init for headless -- no display
            os.environ["SDL_VIDEODRIVER"] = "dummy"
            pygame.init()
        self._clock = pygame.time.Clock()

        try:
            self._main_loop(pygame)
        finally:
            self.on_close()
            pygame.quit()

    def _main_loop(self, pg) -> None:
        while self.running:
            for event in pg.event.get():
                if event.type == pg.QUIT:
                    self.running = False
                elif event.type == pg.KEYDOWN:
                    self._handle_keydown(pg, event.key)

            if not self.running:
                break

            frame = self.session.frame()
            self._frame_count += 1
            if not self._headless:
                self._draw(pg, frame)
                pg.display.flip()

            self._clock.tick(self.fps)

    def _draw(self, pg, frame) -> None:
        if self._screen is None or self._font is None:
            return
        self._screen.fill(_BG_COLOR)
        y = _MARGIN
        for line in (f" speedy: {self.title}", HEADER, RULE):
            self._blit(line, _MARGIN, y, _TEXT_COLOR)
            y += _LINE_HEIGHT

        for row in frame.rows:
            if row.live:
                band = pg.Rect(0, y, self._screen.get_width(), _LINE_HEIGHT)
                self._screen.fill(_LIVE_BG_COLOR, band)
            x = _MARGIN
            for text, role in row_cells(row):
                color = _TEXT_COLOR if role == "plain" else delta_color(row, role)
                x += self._blit(text, x, y, color)
            y += _LINE_HEIGHT

        self._blit(RULE, _MARGIN, y, _TEXT_COLOR)
        self._blit(f" {summary_line(frame.summary)}", _MARGIN, y + _LINE_HEIGHT, _DIM_COLOR)

    def _blit(self, text: str, x: int, y: int, color) -> int:
        surf = self._font.render(text, True, color)
        self._screen.blit(surf, (x, y))
        return surf.get_width()

    def _handle_keydown(self, pg, key: int) -> None:
        # Let caller-specific handler run first
        if self.on_key_down(key):
            return

        if key in (pg.K_ESCAPE, pg.K_q):
            self.running = False
        elif key == pg.K_SPACE:
            if not self.channel.post():
                print("[EVENT] advance dropped, queue full")
