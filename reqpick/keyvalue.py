"""reqpick key/value pairs - variables, headers, query params, form fields."""

from dataclasses import dataclass

import click


@dataclass(order=True)
class KeyValue:
    name: str
    value: str


def parse_binding(binding: str) -> KeyValue:
    """Parse a KEY=VALUE command-line binding.

    Only the first '=' splits, so values may contain '='.
    """
    if "=" not in binding:
        raise click.BadParameter(f"expected KEY=VALUE, got '{binding}'", param_hint="'-b' / '--binding'")
    name, value = binding.split("=", 1)
    name = name.strip()
    if not name:
        raise click.BadParameter(f"missing variable name in '{binding}'", param_hint="'-b' / '--binding'")
    # Such a name could never match a {name} token
    if any(ch in name for ch in '{}"'):
        raise click.BadParameter(
            f"variable name '{name}' may not contain braces or double quotes",
            param_hint="'-b' / '--binding'",
        )
    return KeyValue(name, value)


def parse_bindings(bindings) -> list[KeyValue]:
    return [parse_binding(b) for b in bindings]


def keyvalues_from_yaml(raw, what: str) -> list[KeyValue]:
    """Convert a YAML list of {name, value} mappings into KeyValues.

    Scalar values (numbers, booleans) are coerced to strings.
    Raises ValueError describing the first malformed item.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"'{what}' must be a list of {{name, value}} entries")
    pairs: list[KeyValue] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict) or "name" not in item or "value" not in item:
            raise ValueError(f"'{what}[{i}]' must be a mapping with 'name' and 'value'")
        name, value = item["name"], item["value"]
        if isinstance(name, dict | list) or isinstance(value, dict | list):
            raise ValueError(f"'{what}[{i}]' name and value must be scalars")
        pairs.append(KeyValue(str(name), "" if value is None else str(value)))
    return pairs
