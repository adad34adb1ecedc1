"""reqpick templating - flat {name} substitution over request definitions."""

import re

from reqpick.definition import JsonBody, RequestDefinition, TextBody, UrlEncodedBody
from reqpick.keyvalue import KeyValue

# {name} where name is one or more non-brace characters. Double quotes are
# excluded so a JSON object such as {"id": 1} is never taken for a token.
TOKEN_RE = re.compile(r'\{([^{}"]+)\}')


def substitute(text: str, variables: list[KeyValue]) -> tuple[str, bool]:
    """Replace {name} tokens with the matching variable values.

    The scan runs once over the original text, so a value that itself
    looks like a token is inserted verbatim and never expanded again.
    When a name appears more than once in variables, the first wins.
    Returns (result, changed).
    """
    if not variables or "{" not in text:
        return text, False

    lookup: dict[str, str] = {}
    for var in variables:
        lookup.setdefault(var.name, var.value)

    changed = False

    def _replace(m: re.Match) -> str:
        nonlocal changed
        name = m.group(1)
        if name in lookup:
            changed = True
            return lookup[name]
        return m.group(0)

    result = TOKEN_RE.sub(_replace, text)
    return result, changed


def find_unbound(text: str) -> list[str]:
    """Token names present in text, deduplicated and sorted."""
    return sorted(set(TOKEN_RE.findall(text)))


def _texts(definition: RequestDefinition):
    """Every substitutable string in a definition."""
    yield definition.request.url
    for pair in definition.headers:
        yield pair.name
        yield pair.value
    for pair in definition.query:
        yield pair.name
        yield pair.value
    body = definition.body
    if isinstance(body, TextBody | JsonBody):
        yield body.content
    elif isinstance(body, UrlEncodedBody):
        for pair in body.params:
            yield pair.name
            yield pair.value


def list_unbound_variables(definition: RequestDefinition) -> list[str]:
    names: set[str] = set()
    for text in _texts(definition):
        names.update(find_unbound(text))
    return sorted(names)


def _substitute_pairs(pairs: list[KeyValue], variables: list[KeyValue]) -> None:
    for pair in pairs:
        name, changed = substitute(pair.name, variables)
        if changed:
            pair.name = name
        value, changed = substitute(pair.value, variables)
        if changed:
            pair.value = value


def substitute_all(definition: RequestDefinition, variables: list[KeyValue]) -> None:
    """Substitute variables into the definition in place."""
    if not variables:
        return

    url, changed = substitute(definition.request.url, variables)
    if changed:
        definition.request.url = url

    _substitute_pairs(definition.headers, variables)
    _substitute_pairs(definition.query, variables)

    body = definition.body
    if isinstance(body, TextBody | JsonBody):
        content, changed = substitute(body.content, variables)
        if changed:
            body.content = content
    elif isinstance(body, UrlEncodedBody):
        _substitute_pairs(body.params, variables)
