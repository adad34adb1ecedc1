"""reqpick prompt - interactive entry of unbound variable values."""

from dataclasses import dataclass
from enum import Enum

import structlog
from rich.text import Text

from reqpick.fuzzy import fuzzy_filter
from reqpick.history import HistoryStore
from reqpick.keyvalue import KeyValue
from reqpick.terminal import (
    Frame,
    Key,
    KeyEvent,
    UiStyles,
    bottom_anchored,
    cut_to_current_word_start,
    input_line,
    list_row,
    resolve_styles,
    visible_window,
)

logger = structlog.get_logger(__name__)

PROMPT = "> "


class PromptMode(Enum):
    TYPING = "typing"
    BROWSING = "browsing"


@dataclass
class PromptState:
    query: str = ""
    current_variable_index: int = 0
    mode: PromptMode = PromptMode.TYPING
    history_selection_index: int = 0
    aborted: bool = False

    @property
    def history_selection(self) -> int | None:
        """Selected history row, or None while typing."""
        return self.history_selection_index if self.mode is PromptMode.BROWSING else None


class VariablePrompt:
    """Asks for each name in turn, offering matching history values.

    Typing and browsing history are exclusive modes. Editing the query
    while browsing drops back to typing, since the list it indexes into
    is re-filtered by the edit.
    """

    def __init__(
        self,
        names: list[str],
        history: HistoryStore,
        environment_name: str = "",
        styles: UiStyles | None = None,
    ):
        self.names = list(names)
        self.history = history
        self.environment_name = environment_name
        self.styles = styles or UiStyles()
        self.state = PromptState()
        self.answers: list[KeyValue] = []

    @property
    def current_name(self) -> str:
        return self.names[self.state.current_variable_index]

    @property
    def finished(self) -> bool:
        return self.state.aborted or len(self.answers) == len(self.names)

    def candidates(self) -> list[str]:
        values = self.history.matching(self.current_name, self.environment_name)
        return fuzzy_filter(self.state.query, values)

    def render(self, candidates: list[str], width: int, height: int) -> Frame:
        state = self.state
        selection = state.history_selection
        browsing = selection is not None
        rows_available = max(height - 2, 0)
        rows = [
            list_row(candidates[i], selected=i == selection, active=True, styles=self.styles)
            for i in visible_window(len(candidates), selection, rows_available)
        ]
        lines = bottom_anchored(rows, rows_available)

        explanation = Text("Enter a value for ", no_wrap=True, overflow="crop")
        explanation.append(self.current_name, style=self.styles.variable)
        lines.append(explanation)
        lines.append(input_line(PROMPT, state.query, self.styles, cursor=not browsing))
        return Frame(lines[-height:] if height > 0 else [])

    def _edit(self, query: str) -> None:
        self.state.query = query
        self.state.mode = PromptMode.TYPING

    def _answer(self, value: str) -> None:
        self.answers.append(KeyValue(self.current_name, value))
        state = self.state
        state.query = ""
        state.mode = PromptMode.TYPING
        state.history_selection_index = 0
        if len(self.answers) < len(self.names):
            state.current_variable_index += 1

    def handle_key(self, key: KeyEvent, candidates: list[str]) -> None:
        state = self.state
        browsing = state.mode is PromptMode.BROWSING
        if key is Key.CANCEL:
            state.aborted = True
        elif key is Key.DELETE_WORD:
            self._edit(cut_to_current_word_start(state.query))
        elif key is Key.CLEAR:
            self._edit("")
        elif key is Key.BACKSPACE:
            self._edit(state.query[:-1])
        elif key in (Key.TAB, Key.BACKTAB):
            if browsing:
                state.mode = PromptMode.TYPING
            elif candidates:
                # Browsing is only possible with something to select
                state.mode = PromptMode.BROWSING
                state.history_selection_index = 0
        elif key is Key.UP:
            if browsing and state.history_selection_index < len(candidates) - 1:
                state.history_selection_index += 1
        elif key is Key.DOWN:
            if browsing and state.history_selection_index > 0:
                state.history_selection_index -= 1
        elif key is Key.ENTER:
            if browsing:
                self._answer(candidates[state.history_selection_index])
            elif state.query:
                # A freshly typed value is flushed before moving on
                self.history.record(self.current_name, state.query, self.environment_name)
                self._answer(state.query)
            # An empty query is never taken as the answer
        elif isinstance(key, str):
            self._edit(state.query + key)

    def step(self, terminal) -> None:
        candidates = self.candidates()
        if self.state.mode is PromptMode.BROWSING and not candidates:
            self.state.mode = PromptMode.TYPING
        width, height = terminal.size
        terminal.draw(self.render(candidates, width, height))
        key = terminal.read_key()
        if key is not None:
            self.handle_key(key, candidates)

    def run(self, terminal) -> list[KeyValue] | None:
        """Prompt until every name has a value; None if the user aborted."""
        while not self.finished:
            self.step(terminal)
        if self.state.aborted:
            logger.info("prompt_aborted", answered=len(self.answers), total=len(self.names))
            return None
        return self.answers


def prompt_for_variables(
    config: dict,
    names: list[str],
    environment_name: str,
    terminal,
) -> list[KeyValue] | None:
    """Ask the user for each unbound variable, backed by the history file.

    Returns None if the user aborted, meaning the request must not be sent.
    """
    if not names:
        return []
    with HistoryStore.open(config["history_file"], config.get("max_history_items")) as history:
        prompt = VariablePrompt(
            names,
            history,
            environment_name=environment_name,
            styles=resolve_styles(config.get("colors")),
        )
        return prompt.run(terminal)
