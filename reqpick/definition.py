"""reqpick definitions - request definition and environment files."""

import json
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from reqpick.errors import DefinitionError, DuplicateVariableError, EnvironmentFileError
from reqpick.keyvalue import KeyValue, keyvalues_from_yaml

METHODS = ("GET", "POST", "PUT", "DELETE", "HEAD", "OPTIONS", "PATCH", "TRACE")

BODY_TYPES = ("text", "json", "urlencoded")


@dataclass
class Metadata:
    description: str = ""


@dataclass
class Request:
    url: str
    method: str = "GET"


@dataclass
class TextBody:
    content: str


@dataclass
class JsonBody:
    """JSON document kept as text; it is only parsed after substitution."""

    content: str


@dataclass
class UrlEncodedBody:
    params: list[KeyValue] = field(default_factory=list)


Body = TextBody | JsonBody | UrlEncodedBody


@dataclass
class RequestDefinition:
    request: Request
    metadata: Metadata | None = None
    query: list[KeyValue] = field(default_factory=list)
    headers: list[KeyValue] = field(default_factory=list)
    body: Body | None = None

    @property
    def description(self) -> str:
        return self.metadata.description if self.metadata else ""


@dataclass
class Environment:
    name: str
    variables: list[KeyValue] = field(default_factory=list)


def _read_yaml(path: Path):
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def parse_definition(data) -> RequestDefinition:
    """Build a RequestDefinition from loaded YAML. Raises ValueError."""
    if not isinstance(data, dict):
        raise ValueError("top level must be a mapping")

    req = data.get("request")
    if not isinstance(req, dict):
        raise ValueError("missing 'request' section")
    url = req.get("url")
    if not isinstance(url, str) or not url:
        raise ValueError("'request.url' must be a non-empty string")
    method = str(req.get("method", "GET")).upper()
    if method not in METHODS:
        raise ValueError(f"unsupported method '{method}'")

    metadata = None
    meta = data.get("metadata")
    if meta is not None:
        if not isinstance(meta, dict):
            raise ValueError("'metadata' must be a mapping")
        metadata = Metadata(description=str(meta.get("description") or ""))

    return RequestDefinition(
        request=Request(url=url, method=method),
        metadata=metadata,
        query=keyvalues_from_yaml(data.get("query"), "query"),
        headers=keyvalues_from_yaml(data.get("headers"), "headers"),
        body=_parse_body(data.get("body")),
    )


def _parse_body(raw) -> Body | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError("'body' must be a mapping with 'type' and 'content'")
    body_type = str(raw.get("type", "")).lower()
    if body_type not in BODY_TYPES:
        raise ValueError(f"'body.type' must be one of: {', '.join(BODY_TYPES)}")
    content = raw.get("content")

    if body_type == "urlencoded":
        return UrlEncodedBody(keyvalues_from_yaml(content, "body.content"))
    if body_type == "json":
        # Structured YAML content is dumped so placeholders stay substitutable
        if isinstance(content, dict | list):
            try:
                return JsonBody(json.dumps(content))
            except TypeError as e:
                # e.g. unquoted dates, which PyYAML loads as datetime.date
                raise ValueError(f"'body.content' is not JSON-serialisable: {e}") from e
        if not isinstance(content, str):
            raise ValueError("'body.content' must be a string, mapping or list for json bodies")
        return JsonBody(content)
    if not isinstance(content, str):
        raise ValueError("'body.content' must be a string for text bodies")
    return TextBody(content)


def load_definition(path: str | Path) -> RequestDefinition:
    """Read and validate a request definition file.

    Any read, YAML or validation problem is raised as DefinitionError.
    """
    path = Path(path)
    try:
        return parse_definition(_read_yaml(path))
    except (OSError, yaml.YAMLError, ValueError) as e:
        raise DefinitionError(path, e) from e


def load_environment(path: str | Path) -> Environment:
    """Read an environment file, rejecting duplicate variable names."""
    path = Path(path)
    try:
        data = _read_yaml(path)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError("top level must be a mapping")
        variables = keyvalues_from_yaml(data.get("variables"), "variables")
    except (OSError, yaml.YAMLError, ValueError) as e:
        raise EnvironmentFileError(f"Failed to parse environment file at {path}: {e}") from e

    seen: set[str] = set()
    dupes: set[str] = set()
    for var in variables:
        if var.name in seen:
            dupes.add(var.name)
        seen.add(var.name)
    if dupes:
        raise DuplicateVariableError(path, sorted(dupes))

    name = data.get("name") or path.stem
    return Environment(name=str(name), variables=variables)
