"""Shared fixtures for reqpick tests."""

import json
from collections import deque

import pytest
import yaml
from click.testing import CliRunner

from reqpick import core
from reqpick.executor import RequestResult
from reqpick.logging import configure_logging
from reqpick.terminal import Key


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging():
    """Drop log events instead of printing them."""
    configure_logging(None)


@pytest.fixture
def global_reqpick_dir(tmp_path, monkeypatch):
    """Override the global ~/.reqpick directory to a temp location."""
    fake_global = tmp_path / "fake_home" / ".reqpick"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(core, "GLOBAL_DIR", fake_global)
    monkeypatch.setattr(core, "GLOBAL_CONFIG", fake_global / "config.yaml")
    return fake_global


class ScriptedTerminal:
    """Stands in for reqpick.terminal.Terminal.

    Replays key events in order and records every frame drawn. A None in
    the script simulates a read timeout. Once the script runs out it
    answers Ctrl-C so a loop under test can never spin forever.
    """

    def __init__(self, keys=(), size=(80, 24)):
        self.keys = deque(keys)
        self.size = size
        self.frames = []
        self.timeouts = []
        self.entered = False
        self.exited = False

    def __enter__(self):
        self.entered = True
        return self

    def __exit__(self, *exc_info):
        self.exited = True

    def draw(self, frame):
        self.frames.append(frame)

    def read_key(self, timeout=None):
        self.timeouts.append(timeout)
        if not self.keys:
            return Key.CANCEL
        return self.keys.popleft()

    @property
    def last_lines(self):
        return self.frames[-1].plain_lines()


def type_keys(text):
    """Key events for typing text character by character."""
    return list(text)


def write_yaml(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data, sort_keys=False))
    return path


def write_definition(path, url="http://localhost/health", method="GET", **sections):
    data = {"request": {"method": method, "url": url}}
    data.update(sections)
    return write_yaml(path, data)


def write_environment(path, name, variables):
    return write_yaml(
        path,
        {"name": name, "variables": [{"name": k, "value": v} for k, v in variables.items()]},
    )


def make_request_result(
    status_code=200,
    body=None,
    headers=None,
    elapsed_ms=42.0,
    error=None,
    raw_text="",
):
    """Factory for mock RequestResult objects."""
    r = RequestResult()
    r.status_code = status_code
    r.headers = headers or {}
    r.body = body
    r.elapsed_ms = elapsed_ms
    r.error = error
    r.raw_text = raw_text or (
        json.dumps(body) if isinstance(body, dict | list) else str(body or "")
    )
    return r
