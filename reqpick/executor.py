"""reqpick executor - HTTP request execution."""

import json
import time
from typing import Any

import requests
import structlog

from reqpick.definition import JsonBody, RequestDefinition, TextBody, UrlEncodedBody

logger = structlog.get_logger(__name__)


class RequestResult:
    """Result of an HTTP request."""

    def __init__(self):
        self.status_code: int = 0
        self.headers: dict[str, str] = {}
        self.body: Any = None  # parsed JSON or raw text
        self.elapsed_ms: float = 0
        self.error: str | None = None
        self.raw_text: str = ""


def _timeout(timeout=None, connect_timeout=None, read_timeout=None):
    """requests timeout: (connect, read) when either is set, else timeout."""
    if connect_timeout is not None or read_timeout is not None:
        return (
            connect_timeout if connect_timeout is not None else timeout,
            read_timeout if read_timeout is not None else timeout,
        )
    return timeout


def build_request_kwargs(definition: RequestDefinition) -> dict[str, Any]:
    """Translate a fully substituted definition into requests.request kwargs.

    Raises ValueError if a JSON body is not valid JSON.
    """
    kwargs: dict[str, Any] = {
        "method": definition.request.method,
        "url": definition.request.url,
        "allow_redirects": True,
    }
    if definition.headers:
        kwargs["headers"] = {h.name: h.value for h in definition.headers}
    if definition.query:
        kwargs["params"] = [(q.name, q.value) for q in definition.query]

    body = definition.body
    if isinstance(body, JsonBody):
        try:
            kwargs["json"] = json.loads(body.content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON body: {e}") from e
    elif isinstance(body, TextBody):
        kwargs["data"] = body.content.encode("utf-8")
    elif isinstance(body, UrlEncodedBody):
        kwargs["data"] = [(p.name, p.value) for p in body.params]
    return kwargs


def execute_request(
    definition: RequestDefinition,
    timeout: float | None = None,
    connect_timeout: float | None = None,
    read_timeout: float | None = None,
) -> RequestResult:
    """Execute a request definition and return structured result.

    - Attempts to parse response as JSON
    - Falls back to raw text
    - Captures timing
    - Never raises - always returns RequestResult with error field set
    """
    result = RequestResult()

    try:
        kwargs = build_request_kwargs(definition)
    except ValueError as e:
        result.error = str(e)
        return result
    kwargs["timeout"] = _timeout(timeout, connect_timeout, read_timeout)

    logger.info("request_sending", method=kwargs["method"], url=kwargs["url"])
    try:
        start = time.monotonic()
        resp = requests.request(**kwargs)
        result.elapsed_ms = (time.monotonic() - start) * 1000

        result.status_code = resp.status_code
        result.headers = dict(resp.headers)
        result.raw_text = resp.text

        try:
            result.body = resp.json()
        except (json.JSONDecodeError, ValueError):
            result.body = resp.text

    except requests.exceptions.Timeout:
        result.error = f"Request timed out after {kwargs['timeout']}s"
    except requests.exceptions.ConnectionError as e:
        result.error = f"Connection error: {e}"
    except requests.exceptions.RequestException as e:
        result.error = f"Request failed: {e}"
    except Exception as e:
        result.error = f"Unexpected error: {e}"

    if result.error:
        logger.warning("request_failed", url=kwargs["url"], error=result.error)
    else:
        logger.info("request_completed", status=result.status_code, elapsed_ms=int(result.elapsed_ms))
    return result
