"""Shared pytest fixtures for tinyqueries-core tests.

Provides a project folder in tmp_path (set as the working directory),
an httpx client backed by a mock compile service, and helpers to build
response archives.
"""

from __future__ import annotations

import io
import json
import sys
import zipfile
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import pytest
import structlog

from tinyqueries_core.config import ProjectConfig, normalize

SAMPLE_YAML = """\
project:
  label: shop
compiler:
  server: https://compile.example.test/v1
  version: "2.1"
  input: tinyqueries
"""


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to output to stdout for test capture."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,  # Important for test isolation
    )


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create a project folder with query sources and make it the cwd.

    Layout:
        tinyqueries.yaml
        tinyqueries/
            customers.json
            queries/
                orders.sql
                tinyqueries.json   (excluded from uploads)

    Returns:
        Path to the project folder.
    """
    root = tmp_path / "project"
    source = root / "tinyqueries"
    (source / "queries").mkdir(parents=True)
    (source / "customers.json").write_text('{"table": "customers"}')
    (source / "queries" / "orders.sql").write_text("select * from orders")
    (source / "queries" / "tinyqueries.json").write_text("{}")
    (root / "tinyqueries.yaml").write_text(SAMPLE_YAML)

    monkeypatch.chdir(root)
    return root


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """Folder receiving the temporary upload/download archives."""
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def sample_config() -> ProjectConfig:
    """In-memory configuration pointing at the default input folder."""
    return normalize(
        {
            "project": {"label": "shop"},
            "compiler": {"server": "https://compile.example.test/v1"},
        }
    )


def _build_zip(files: dict[str, bytes], directories: tuple[str, ...] = ()) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name in directories:
            zf.writestr(f"{name.rstrip('/')}/", b"")
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def make_zip() -> Callable[..., bytes]:
    """Factory building ZIP bytes from directory markers and files."""
    return _build_zip


@dataclass
class MockCompileService:
    """Records requests and answers with a canned response."""

    status_code: int = 200
    body: bytes = b""
    requests: list[httpx.Request] = field(default_factory=list)
    bodies: list[bytes] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.bodies.append(request.read())
        return httpx.Response(self.status_code, content=self.body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def compile_service() -> Callable[..., MockCompileService]:
    """Factory for mock compile services.

    Example:
        >>> service = compile_service(status_code=400, body=b'{"error": "x"}')
        >>> client = CompileClient(http_client=service.client())
    """

    def _create(status_code: int = 200, body: bytes | str | dict = b"") -> MockCompileService:
        if isinstance(body, dict):
            body = json.dumps(body)
        if isinstance(body, str):
            body = body.encode("utf-8")
        return MockCompileService(status_code=status_code, body=body)

    return _create
