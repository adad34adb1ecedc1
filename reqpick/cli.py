"""reqpick CLI - pick a saved request, fill in its variables, send it."""

import sys

import click
import structlog

logger = structlog.get_logger(__name__)

TOOL_HELP = """\
reqpick — Interactive command-line HTTP client.

Browse saved request definitions, pick an environment, fill in any
remaining {variables} from history, and send the request.

\b
MODES
─────
  Interactive:  reqpick                     # fuzzy-pick a definition
  Direct:       reqpick -f users/list.yaml  # use this definition file

\b
INTERACTIVE KEYS
────────────────
  type           filter definitions (fuzzy match on path, URL, description)
  Up / Ctrl-K    move selection up
  Down / Ctrl-J  move selection down
  Tab / S-Tab    next / previous environment
  Ctrl-W         delete previous word
  Ctrl-U         clear the query
  Enter          send the selected request
  Ctrl-C         quit without sending

  When prompted for a variable, Tab switches between typing a value and
  picking one from history.

\b
VARIABLES
─────────
  Definitions may contain {name} placeholders in the URL, headers, query
  parameters and body. Values come from, in order of precedence:
  \b
  1. -b name=value      (command line)
  2. the environment    (-e FILE, or chosen with Tab)
  3. an interactive prompt, backed by the history file

\b
DEFINITION FILE FORMAT (definitions_dir/**/*.yaml)
──────────────────────────────────────────────────
  \b
  metadata:
    description: List users
  request:
    method: GET
    url: https://{host}/users
  query:
    - {name: page, value: "{page}"}
  headers:
    - {name: Authorization, value: "Bearer {token}"}
  body:
    type: json                  # text | json | urlencoded
    content: '{"name": "{user}"}'

\b
ENVIRONMENT FILE FORMAT (environments_dir/**/*.yaml)
────────────────────────────────────────────────────
  \b
  name: staging
  variables:
    - {name: host, value: staging.example.com}

\b
CONFIG FILE FORMAT (.reqpick.yaml)
──────────────────────────────────
  Config resolution order:
    1. -c/--config flag (explicit path)
    2. .reqpick.yaml / .reqpick.yml / reqpick.yaml / reqpick.yml in CWD
    3. ~/.reqpick/config.yaml (global)

  \b
  definitions_dir: ~/.reqpick/definitions
  environments_dir: ~/.reqpick/environments
  history_file: ~/.reqpick_history.csv
  max_history_items: 1000
  timeout: 30                   # seconds; also connect_timeout, read_timeout
  env_file: .env                # $VARS for the path settings above
  log_file: ~/.reqpick/reqpick.log
  colors:
    selected: bold black on bright_green
"""


class _TerminalSession:
    """Opens the full-screen terminal on first use, closes it on exit."""

    def __init__(self, enabled: bool):
        self.enabled = enabled
        self._terminal = None

    def get(self):
        if not self.enabled:
            return None
        if self._terminal is None:
            from reqpick.terminal import Terminal

            terminal = Terminal()
            terminal.__enter__()
            self._terminal = terminal
        return self._terminal

    def __enter__(self) -> "_TerminalSession":
        return self

    def __exit__(self, *exc_info) -> None:
        if self._terminal is not None:
            self._terminal.__exit__(*exc_info)
            self._terminal = None


def _is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


@click.command(
    cls=click.Command,
    help=TOOL_HELP,
    context_settings={"max_content_width": 88},
)
@click.option(
    "-f",
    "--file",
    "definition_file",
    default=None,
    help="The request definition file to use. Skips the interactive picker.",
)
@click.option(
    "-e",
    "--environment",
    "environment_file",
    default=None,
    help="The environment file to use. Preselected in the interactive picker.",
)
@click.option(
    "-b",
    "--binding",
    multiple=True,
    help="Binding to use when constructing the request, as key=value. Repeatable.",
)
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    help="Config file path. Default: .reqpick.yaml in CWD, then ~/.reqpick/config.yaml.",
)
@click.option(
    "-o",
    "--only-body",
    is_flag=True,
    default=False,
    help="Only print the response body to stdout.",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=False,
    help="Include response headers in output and log at debug level.",
)
@click.option(
    "--no-interactive",
    is_flag=True,
    default=False,
    help="Never open the terminal UI; unbound variables become an error.",
)
def main(
    definition_file,
    environment_file,
    binding,
    config_file,
    only_body,
    verbose,
    no_interactive,
):
    """Pick or load a request definition, resolve its variables, send it."""
    from reqpick.core import load_config, resolve_config_path
    from reqpick.definition import load_definition, load_environment
    from reqpick.errors import UnboundVariablesError
    from reqpick.executor import execute_request
    from reqpick.keyvalue import parse_bindings
    from reqpick.logging import configure_logging
    from reqpick.output import format_output
    from reqpick.prompt import prompt_for_variables
    from reqpick.selector import interactive_mode
    from reqpick.templating import list_unbound_variables, substitute_all

    # --- Load config ---
    config = load_config(resolve_config_path(config_file))
    configure_logging(config["log_file"], config["log_level"], verbose)
    if config.get("_unknown"):
        logger.warning("unknown_settings", names=config["_unknown"])

    bindings = parse_bindings(binding)
    interactive = not no_interactive and _is_interactive()

    # Loaded up front in both modes so a broken file fails before any UI
    environment = load_environment(environment_file) if environment_file else None

    if definition_file is None and not interactive:
        raise click.UsageError(
            "No request definition given. Pass -f FILE, or run in a terminal to pick one."
        )

    with _TerminalSession(interactive) as session:
        if definition_file is not None:
            definition = load_definition(definition_file)
        else:
            selection = interactive_mode(config, environment_file, session.get())
            if selection is None:
                return
            definition, environment = selection

        # -b bindings first, so they win over the environment
        substitute_all(definition, bindings)
        if environment is not None:
            substitute_all(definition, environment.variables)

        unbound = list_unbound_variables(definition)
        if unbound:
            terminal = session.get()
            if terminal is None:
                raise UnboundVariablesError(unbound)
            env_name = environment.name if environment else ""
            answers = prompt_for_variables(config, unbound, env_name, terminal)
            if answers is None:
                session.__exit__(None, None, None)
                click.echo("Cancelled. Request not sent.", err=True)
                return
            substitute_all(definition, answers)

    result = execute_request(
        definition,
        timeout=config.get("timeout"),
        connect_timeout=config.get("connect_timeout"),
        read_timeout=config.get("read_timeout"),
    )
    if result.error:
        click.echo(f"ERROR: {result.error}", err=True)
        sys.exit(1)

    click.echo(format_output(result, verbose=verbose, only_body=only_body))
