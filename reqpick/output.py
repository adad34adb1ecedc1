"""reqpick output - response formatting for the terminal."""

import json


def format_output(
    result,  # RequestResult from executor.py
    verbose: bool = False,
    only_body: bool = False,
) -> str:
    """Format the request result for CLI output.

    Default:    STATUS, TIME and BODY sections.
    verbose:    adds a HEADERS section.
    only_body:  just the body (JSON pretty-printed), for piping.
    """
    if result.error:
        return f"ERROR: {result.error}"

    if only_body:
        return _format_body(result.body)

    lines: list[str] = [
        f"STATUS: {result.status_code}",
        f"TIME: {int(result.elapsed_ms)}ms",
    ]

    if verbose and result.headers:
        lines.append("HEADERS:")
        for key, value in result.headers.items():
            lines.append(f"  {key}: {value}")

    if result.body is not None and result.body != "":
        lines.append("BODY:")
        lines.append(_format_body(result.body))

    return "\n".join(lines)


def _format_body(body) -> str:
    if isinstance(body, dict | list):
        return json.dumps(body, indent=2)
    return str(body) if body is not None else ""
