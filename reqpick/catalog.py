"""reqpick catalog - discoverable request definitions, parsed in the background.

The catalog is built synchronously (paths only) so the picker can draw
immediately. A single BackgroundLoader thread then parses each file and
annotates its entry. The UI thread only ever reads snapshots; the loader
only ever writes, one entry per lock acquisition.
"""

import dataclasses
import threading
from collections.abc import Callable
from pathlib import Path

import structlog

from reqpick.definition import Environment, RequestDefinition, load_definition, load_environment
from reqpick.errors import DefinitionError
from reqpick.keyvalue import KeyValue
from reqpick.templating import substitute

logger = structlog.get_logger(__name__)

DEFINITION_EXTENSIONS = (".yaml", ".yml")


def list_files(root: str | Path, extensions=DEFINITION_EXTENSIONS) -> list[Path]:
    """All files under root (recursively) with one of the extensions, sorted."""
    root = Path(root)
    if not root.is_dir():
        logger.warning("directory_missing", path=str(root))
        return []
    return sorted(p for p in root.rglob("*") if p.is_file() and p.suffix in extensions)


@dataclasses.dataclass(frozen=True)
class Choice:
    """One definition file and, once the loader got to it, its parse result."""

    path: Path
    parsed: RequestDefinition | DefinitionError | None = None
    root: Path | None = None

    @property
    def loaded(self) -> bool:
        return self.parsed is not None

    @property
    def definition(self) -> RequestDefinition | None:
        return self.parsed if isinstance(self.parsed, RequestDefinition) else None

    @property
    def error(self) -> DefinitionError | None:
        return self.parsed if isinstance(self.parsed, DefinitionError) else None

    def trimmed_path(self) -> str:
        """Path relative to the definitions root, without the extension."""
        path = self.path
        if self.root is not None:
            try:
                path = path.relative_to(self.root)
            except ValueError:
                pass
        return str(path.with_suffix(""))

    def url(self, variables: list[KeyValue] | None = None) -> str:
        """The request URL with variables applied, or '' if not parsed."""
        definition = self.definition
        if definition is None:
            return ""
        if variables:
            return substitute(definition.request.url, variables)[0]
        return definition.request.url

    def search_text(self, variables: list[KeyValue] | None = None) -> str:
        definition = self.definition
        description = definition.description if definition else ""
        return " ".join(part for part in (self.trimmed_path(), self.url(variables), description) if part)


class DefinitionCatalog:
    """Path-sorted Choices shared between the UI thread and the loader."""

    def __init__(self, choices):
        self._choices: list[Choice] = sorted(choices, key=lambda c: c.path)
        self._lock = threading.Lock()
        self._version = 0

    @classmethod
    def from_directory(cls, root: str | Path) -> "DefinitionCatalog":
        root = Path(root)
        catalog = cls(Choice(path, root=root) for path in list_files(root))
        logger.info("catalog_discovered", root=str(root), count=len(catalog))
        return catalog

    def __len__(self) -> int:
        with self._lock:
            return len(self._choices)

    @property
    def version(self) -> int:
        """Number of updates applied so far."""
        with self._lock:
            return self._version

    def snapshot(self) -> tuple[Choice, ...]:
        """Consistent view of every entry at one instant."""
        with self._lock:
            return tuple(self._choices)

    def update(self, index: int, parsed: RequestDefinition | DefinitionError) -> None:
        """Record the parse result for one entry. Each entry is set once."""
        with self._lock:
            current = self._choices[index]
            if current.parsed is not None:
                raise ValueError(f"{current.path} was already loaded")
            self._choices[index] = dataclasses.replace(current, parsed=parsed)
            self._version += 1


class BackgroundLoader:
    """Parses every catalog entry on one daemon thread.

    The thread is never cancelled; if the picker exits first it is simply
    abandoned and dies with the interpreter.
    """

    def __init__(
        self,
        catalog: DefinitionCatalog,
        load: Callable[[Path], RequestDefinition] = load_definition,
    ):
        self.catalog = catalog
        self._load = load
        self._thread: threading.Thread | None = None
        self._done = threading.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def start(self) -> "BackgroundLoader":
        if self._thread is not None:
            raise RuntimeError("loader already started")
        self._thread = threading.Thread(target=self.run, name="reqpick-loader", daemon=True)
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> bool:
        if self._thread is not None:
            self._thread.join(timeout)
        return self.done

    def run(self) -> None:
        try:
            for index, choice in enumerate(self.catalog.snapshot()):
                try:
                    parsed = self._load(choice.path)
                except DefinitionError as e:
                    logger.warning("definition_parse_failed", path=str(choice.path), reason=str(e.reason))
                    parsed = e
                except Exception as e:
                    # Any other failure is kept on its entry; the rest still load
                    logger.warning("definition_load_crashed", path=str(choice.path), exc_info=True)
                    parsed = DefinitionError(choice.path, e)
                self.catalog.update(index, parsed)
            logger.debug("catalog_loaded", count=len(self.catalog))
        finally:
            self._done.set()


def list_all_environments(root: str | Path) -> list[tuple[Environment, Path]]:
    """Load every environment file under root, sorted by path.

    Errors (including duplicate variables) propagate to the caller.
    """
    return [(load_environment(path), path) for path in list_files(root)]
