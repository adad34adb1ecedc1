"""reqpick errors - everything the CLI reports as a hard failure."""

import click


class ReqpickError(click.ClickException):
    """Base error. click prints it as 'Error: <message>' and exits 1."""


class ConfigError(ReqpickError):
    pass


class DefinitionError(ReqpickError):
    """A request definition file could not be read or is invalid."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse request definition file at {path}: {reason}")


class EnvironmentFileError(ReqpickError):
    """An environment file could not be read or is invalid."""


class DuplicateVariableError(EnvironmentFileError):
    def __init__(self, path, names: list[str]):
        self.path = path
        self.names = names
        super().__init__(
            f"The environment file {path} contains duplicate bindings for: {', '.join(names)}"
        )


class HistoryError(ReqpickError):
    """The history file could not be opened, appended to, or rewritten."""


class UnboundVariablesError(ReqpickError):
    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(
            f"Unbound variables: {', '.join(names)}. "
            "Pass them with -b NAME=VALUE or run in a terminal to be prompted."
        )
