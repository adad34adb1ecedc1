"""reqpick selector - the interactive request definition picker."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import structlog
from rich.text import Text

from reqpick.catalog import BackgroundLoader, Choice, DefinitionCatalog, list_all_environments
from reqpick.definition import Environment, RequestDefinition, load_definition
from reqpick.fuzzy import fuzzy_filter
from reqpick.keyvalue import KeyValue
from reqpick.terminal import (
    HIGHLIGHT_SYMBOL,
    Frame,
    Key,
    KeyEvent,
    UiStyles,
    bottom_anchored,
    cut_to_current_word_start,
    input_line,
    list_row,
    resolve_styles,
    spread,
    visible_window,
)

logger = structlog.get_logger(__name__)

# Redraw interval while definitions are still being parsed
POLL_INTERVAL = 0.1

PARSE_ERROR_LABEL = "(Could not parse definition file)"


class Outcome(Enum):
    BROWSING = "browsing"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@dataclass
class SelectorState:
    query: str = ""
    selected_index: int | None = None
    active_environment_index: int | None = None
    primed_path: Path | None = None
    outcome: Outcome = Outcome.BROWSING


class Selector:
    """State machine behind the picker.

    Index 0 of the filtered view is the best match and is drawn nearest
    the input line, so "up" increases the selection index.
    """

    def __init__(
        self,
        catalog: DefinitionCatalog,
        environments: list[Environment] | None = None,
        active_environment_index: int | None = None,
        styles: UiStyles | None = None,
    ):
        self.catalog = catalog
        self.environments = environments or []
        self.styles = styles or UiStyles()
        self.state = SelectorState(
            selected_index=0 if len(catalog) else None,
            active_environment_index=active_environment_index,
        )

    @property
    def active_environment(self) -> Environment | None:
        index = self.state.active_environment_index
        return None if index is None else self.environments[index]

    @property
    def active_variables(self) -> list[KeyValue] | None:
        env = self.active_environment
        return env.variables if env else None

    @property
    def finished(self) -> bool:
        return self.state.outcome is not Outcome.BROWSING

    def filtered(self, choices: tuple[Choice, ...]) -> list[Choice]:
        variables = self.active_variables
        return fuzzy_filter(self.state.query, choices, key=lambda c: c.search_text(variables))

    def reconcile(self, count: int) -> None:
        """Keep the selection inside a view of count items."""
        state = self.state
        if count == 0:
            state.selected_index = None
        elif state.selected_index is None:
            state.selected_index = 0
        elif state.selected_index >= count:
            state.selected_index = count - 1

    def prompt(self) -> str:
        env = self.active_environment
        return f"{env.name} > " if env else "> "

    def _row_text(self, choice: Choice, width: int) -> str:
        path = choice.trimmed_path()
        if not choice.loaded:
            return path
        if choice.error is not None:
            return spread(path, PARSE_ERROR_LABEL, width)
        return spread(path, choice.url(self.active_variables), width)

    def render(self, view: list[Choice], width: int, height: int) -> Frame:
        state = self.state
        rows_available = max(height - 1, 0)
        # Room for the highlight symbol and a one-column right margin
        content_width = max(width - len(HIGHLIGHT_SYMBOL) - 1, 0)
        rows: list[Text] = []
        for i in visible_window(len(view), state.selected_index, rows_available):
            rows.append(
                list_row(
                    self._row_text(view[i], content_width),
                    selected=i == state.selected_index,
                    active=state.selected_index is not None,
                    styles=self.styles,
                )
            )
        lines = bottom_anchored(rows, rows_available)
        lines.append(input_line(self.prompt(), state.query, self.styles))
        return Frame(lines[-height:] if height > 0 else [])

    def _cycle_environment(self, step: int) -> None:
        count = len(self.environments)
        if count == 0:
            return
        current = self.state.active_environment_index
        if current is None:
            nxt = 0 if step > 0 else count - 1
        else:
            nxt = current + step
            if nxt < 0 or nxt >= count:
                nxt = None
        self.state.active_environment_index = nxt

    def handle_key(self, key: KeyEvent, view: list[Choice]) -> None:
        state = self.state
        if key is Key.CANCEL:
            state.outcome = Outcome.CANCELLED
        elif key is Key.DELETE_WORD:
            state.query = cut_to_current_word_start(state.query)
        elif key is Key.CLEAR:
            state.query = ""
        elif key is Key.UP:
            if state.selected_index is not None and state.selected_index < len(view) - 1:
                state.selected_index += 1
        elif key is Key.DOWN:
            if state.selected_index is not None and state.selected_index > 0:
                state.selected_index -= 1
        elif key is Key.ENTER:
            # Only something actually selected can be primed
            if state.selected_index is not None and state.selected_index < len(view):
                state.primed_path = view[state.selected_index].path
                state.outcome = Outcome.CONFIRMED
        elif key is Key.BACKSPACE:
            state.query = state.query[:-1]
        elif key is Key.TAB:
            self._cycle_environment(1)
        elif key is Key.BACKTAB:
            self._cycle_environment(-1)
        elif isinstance(key, str):
            state.query += key

    def step(self, terminal, timeout: float | None = None) -> None:
        """One iteration: filter, reconcile, draw, then handle one key."""
        view = self.filtered(self.catalog.snapshot())
        self.reconcile(len(view))
        width, height = terminal.size
        terminal.draw(self.render(view, width, height))
        key = terminal.read_key(timeout)
        if key is not None:
            self.handle_key(key, view)

    def run(self, terminal, loader: BackgroundLoader | None = None) -> Path | None:
        """Drive the picker until a choice is confirmed or cancelled.

        While the loader is still busy, key reads time out so newly parsed
        entries get drawn; afterwards the loop blocks on input.
        """
        while not self.finished:
            loading = loader is not None and not loader.done
            self.step(terminal, POLL_INTERVAL if loading else None)
        return self.state.primed_path


def find_environment_index(environments: list[tuple[Environment, Path]], env_arg: str | None) -> int | None:
    """Index of the environment loaded from the path given on the command line."""
    if not env_arg:
        return None
    wanted = Path(env_arg).expanduser().resolve()
    for i, (_, path) in enumerate(environments):
        if path.resolve() == wanted:
            return i
    return None


def interactive_mode(
    config: dict,
    env_arg: str | None,
    terminal,
) -> tuple[RequestDefinition, Environment | None] | None:
    """Let the user pick a request definition and environment.

    Returns None when the user cancels. The chosen file is parsed again
    here rather than taken from the catalog, so a file that failed to
    parse raises DefinitionError to the caller.
    """
    catalog = DefinitionCatalog.from_directory(config["definitions_dir"])
    loader = BackgroundLoader(catalog).start()

    loaded = list_all_environments(config["environments_dir"])
    environments = [env for env, _ in loaded]

    selector = Selector(
        catalog,
        environments,
        active_environment_index=find_environment_index(loaded, env_arg),
        styles=resolve_styles(config.get("colors")),
    )
    path = selector.run(terminal, loader)
    if path is None:
        logger.info("selection_cancelled")
        return None

    environment = selector.active_environment
    logger.info(
        "definition_selected",
        path=str(path),
        environment=environment.name if environment else None,
    )
    return load_definition(path), environment
