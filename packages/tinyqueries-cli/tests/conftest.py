"""Shared test fixtures for tinyqueries-cli tests.

Provides CliRunner fixtures, a project folder and a mock compile service
that replaces the network for ``tqc compile``.
"""

from __future__ import annotations

import io
import json
import logging
import zipfile
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import pytest
import structlog
from click.testing import CliRunner

API_KEY_ENV_VAR = "TINYQUERIES_API_KEY"

PROJECT_YAML = """\
project:
  label: shop
compiler:
  server: https://compile.example.test/v1
  version: "2.1"
  input: tinyqueries
"""


@pytest.fixture(autouse=True)
def quiet_logging() -> Generator[None, None, None]:
    """Keep debug logs out of captured output and undo ``tqc compile`` setup."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()
    logging.basicConfig(force=True, handlers=[logging.NullHandler()])


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click test runner.

    Returns:
        CliRunner instance for testing CLI commands.
    """
    return CliRunner()


@pytest.fixture
def isolated_runner(cli_runner: CliRunner) -> Generator[CliRunner, None, None]:
    """Create a Click test runner with an isolated filesystem.

    Yields:
        CliRunner instance with isolated filesystem.
    """
    with cli_runner.isolated_filesystem():
        yield cli_runner


@pytest.fixture
def api_key(monkeypatch: pytest.MonkeyPatch) -> str:
    """Set the API key in the environment."""
    monkeypatch.setenv(API_KEY_ENV_VAR, "tq-cli-key")
    return "tq-cli-key"


@pytest.fixture
def no_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make sure no API key is set, even one loaded from a .env file."""
    monkeypatch.setenv(API_KEY_ENV_VAR, "")
    monkeypatch.delenv(API_KEY_ENV_VAR)


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create a TinyQueries project and make it the working directory.

    Returns:
        Path to the project folder.
    """
    root = tmp_path / "project"
    (root / "tinyqueries" / "queries").mkdir(parents=True)
    (root / "tinyqueries" / "queries" / "orders.sql").write_text("select * from orders")
    (root / "tinyqueries.yaml").write_text(PROJECT_YAML)
    monkeypatch.chdir(root)
    return root


def zip_bytes(files: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


@dataclass
class FakeCompileService:
    """Canned compile service answers, recording received requests."""

    status_code: int = 200
    body: bytes = b""
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=self.body)


@pytest.fixture
def compile_service(
    monkeypatch: pytest.MonkeyPatch,
) -> Callable[..., FakeCompileService]:
    """Route every httpx.Client created by the CLI to a fake compile service.

    Example:
        >>> service = compile_service(files={"api/a.php": b"<?php"})
        >>> result = cli_runner.invoke(cli, ["compile"])
    """
    real_client = httpx.Client

    def _install(
        status_code: int = 200,
        files: dict[str, bytes] | None = None,
        body: bytes | dict | None = None,
    ) -> FakeCompileService:
        if isinstance(body, dict):
            body = json.dumps(body).encode("utf-8")
        if body is None:
            body = zip_bytes(files or {})
        service = FakeCompileService(status_code=status_code, body=body)

        def _client(**kwargs: object) -> httpx.Client:
            return real_client(transport=httpx.MockTransport(service.handler))

        monkeypatch.setattr(httpx, "Client", _client)
        return service

    return _install
