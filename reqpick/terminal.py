"""reqpick terminal - key events, frames and the full-screen terminal.

Both interactive loops talk to a terminal through two calls: draw(frame)
and read_key(timeout). The real Terminal reads raw keys with prompt_toolkit
and paints frames on rich's alternate screen; tests substitute a scripted
terminal with the same interface.
"""

import select
import sys
from collections import deque
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum

import structlog
from prompt_toolkit.input import create_input
from prompt_toolkit.key_binding import KeyPress
from prompt_toolkit.keys import Keys
from rich.cells import cell_len
from rich.console import Console, Group
from rich.errors import StyleSyntaxError
from rich.style import Style
from rich.text import Text

logger = structlog.get_logger(__name__)

HIGHLIGHT_SYMBOL = ">> "
BLANK_SYMBOL = "   "

# How long a lone ESC waits for the rest of an escape sequence
ESCAPE_TIMEOUT = 0.05


class Key(Enum):
    UP = "up"
    DOWN = "down"
    ENTER = "enter"
    BACKSPACE = "backspace"
    TAB = "tab"
    BACKTAB = "backtab"
    DELETE_WORD = "delete-word"
    CLEAR = "clear"
    CANCEL = "cancel"


# A key event is a command Key or a single printable character
KeyEvent = Key | str

_KEYMAP = {
    Keys.ControlC: Key.CANCEL,
    Keys.ControlW: Key.DELETE_WORD,
    Keys.ControlU: Key.CLEAR,
    Keys.Up: Key.UP,
    Keys.ControlK: Key.UP,
    Keys.Down: Key.DOWN,
    Keys.ControlJ: Key.DOWN,
    Keys.ControlM: Key.ENTER,
    Keys.ControlH: Key.BACKSPACE,
    Keys.ControlI: Key.TAB,
    Keys.BackTab: Key.BACKTAB,
}


def translate_keypress(press: KeyPress) -> list[KeyEvent]:
    """Map one prompt_toolkit key press to our events (possibly none)."""
    key = press.key
    if key in _KEYMAP:
        return [_KEYMAP[key]]
    if key == Keys.BracketedPaste:
        return [ch for ch in press.data if ch.isprintable()]
    if isinstance(key, str) and not isinstance(key, Keys) and len(key) == 1 and key.isprintable():
        return [key]
    return []


def cut_to_current_word_start(text: str) -> str:
    """Like readline's Ctrl-W.

    Drops the last word together with any spaces after it, keeping the
    single space that separated it from the previous word.
    """
    chars = list(text)
    cut_a_letter = False
    while chars:
        popped = chars.pop()
        if popped == " ":
            if cut_a_letter:
                chars.append(" ")
                break
        else:
            cut_a_letter = True
    return "".join(chars)


# ── Styles ───────────────────────────────────────────────────────────────

DEFAULT_COLORS = {
    "default": "black on white",
    "selected": "bold black on bright_green",
    "prompt": "none",
    "variable": "cyan",
}


@dataclass(frozen=True)
class UiStyles:
    default: Style = field(default_factory=lambda: Style.parse(DEFAULT_COLORS["default"]))
    selected: Style = field(default_factory=lambda: Style.parse(DEFAULT_COLORS["selected"]))
    prompt: Style = field(default_factory=lambda: Style.parse(DEFAULT_COLORS["prompt"]))
    variable: Style = field(default_factory=lambda: Style.parse(DEFAULT_COLORS["variable"]))


def resolve_styles(colors: dict | None) -> UiStyles:
    """Build UiStyles from the 'colors' config section.

    Each entry is a rich style string such as "bold white on blue".
    Missing or unparsable entries fall back to the defaults.
    """
    colors = colors or {}
    for unknown in sorted(set(colors) - set(DEFAULT_COLORS)):
        logger.warning("unknown_color_setting", name=unknown)

    resolved: dict[str, Style] = {}
    for name, fallback in DEFAULT_COLORS.items():
        raw = colors.get(name)
        if raw is not None:
            try:
                resolved[name] = Style.parse(str(raw))
                continue
            except StyleSyntaxError as e:
                logger.warning("invalid_color_setting", name=name, value=str(raw), error=str(e))
        resolved[name] = Style.parse(fallback)
    return UiStyles(**resolved)


# ── Frames ───────────────────────────────────────────────────────────────


@dataclass
class Frame:
    """A full screen of lines, top to bottom."""

    lines: list[Text]

    def plain_lines(self) -> list[str]:
        return [line.plain for line in self.lines]


def visible_window(count: int, selected: int | None, rows: int) -> range:
    """Indices of the list items that fit in rows, keeping selected visible."""
    if rows <= 0:
        return range(0)
    offset = 0
    if selected is not None and selected >= rows:
        offset = selected - rows + 1
    return range(offset, min(count, offset + rows))


def bottom_anchored(rows: list[Text], height: int) -> list[Text]:
    """Stack rows upwards from the bottom of a height-line area.

    rows[0] ends up on the last line.
    """
    rows = rows[:height]
    return [Text("") for _ in range(height - len(rows))] + list(reversed(rows))


def spread(left: str, right: str, width: int) -> str:
    """left, then right flush against width; right is dropped if it won't fit."""
    gap = width - cell_len(left) - cell_len(right)
    if not right or gap < 1:
        return left
    return left + " " * gap + right


def list_row(content: str, selected: bool, active: bool, styles: UiStyles) -> Text:
    """One list line with the highlight marker and its style."""
    if selected:
        return Text(HIGHLIGHT_SYMBOL + content, style=styles.selected, no_wrap=True, overflow="crop")
    prefix = BLANK_SYMBOL if active else ""
    return Text(prefix + content, style=styles.default, no_wrap=True, overflow="crop")


def input_line(prompt: str, query: str, styles: UiStyles, cursor: bool = True) -> Text:
    line = Text(prompt + query, style=styles.prompt, no_wrap=True, overflow="crop")
    if cursor:
        line.append(" ", style="reverse")
    return line


# ── Real terminal ────────────────────────────────────────────────────────


class Terminal:
    """Raw-mode keyboard plus rich's alternate screen, as a context manager.

    POSIX only: key reads wait on the stdin file descriptor with select().
    """

    def __init__(self, console: Console | None = None, stdin=None):
        self.console = console or Console()
        self._stdin = stdin or sys.stdin
        self._input = None
        self._screen = None
        self._stack: ExitStack | None = None
        self._pending: deque[KeyEvent] = deque()

    def __enter__(self) -> "Terminal":
        self._input = create_input(self._stdin)
        with ExitStack() as stack:
            stack.callback(self._input.close)
            stack.enter_context(self._input.raw_mode())
            self._screen = stack.enter_context(self.console.screen(hide_cursor=True))
            self._stack = stack.pop_all()
        return self

    def __exit__(self, *exc_info) -> None:
        if self._stack is not None:
            self._stack.close()
            self._stack = None
        self._screen = None

    @property
    def size(self) -> tuple[int, int]:
        size = self.console.size
        return size.width, size.height

    def draw(self, frame: Frame) -> None:
        self._screen.update(Group(*frame.lines))

    def read_key(self, timeout: float | None = None) -> KeyEvent | None:
        """Next key event, or None if timeout seconds pass without one."""
        fd = self._input.fileno()
        partial = False
        while not self._pending:
            wait = ESCAPE_TIMEOUT if partial else timeout
            ready, _, _ = select.select([fd], [], [], wait)
            if ready:
                presses = self._input.read_keys()
                # Nothing decoded yet: an escape sequence may be incomplete
                partial = not presses
            else:
                presses = self._input.flush_keys()
                if not presses and not partial:
                    return None
                partial = False
            for press in presses:
                self._pending.extend(translate_keypress(press))
        return self._pending.popleft()
