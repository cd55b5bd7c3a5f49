"""Compile request client for the TinyQueries compile service.

One compile request packages the input folder together with the project
config, posts it to the compile service and writes the returned archive to
the working directory:

    IDLE -> BUILDING_ARCHIVE -> UPLOADING -> AWAITING_RESPONSE
         -> EXTRACTING -> DONE

The first failure moves the client to FAILED and aborts the remaining steps.
Temporary archive files are removed whichever step fails.
"""

from __future__ import annotations

import json
import tempfile
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING

import structlog
from opentelemetry.trace import SpanKind
from pydantic import SecretStr

from tinyqueries_core.archive import Archive, ArchiveEntry, Archiver
from tinyqueries_core.config import CANONICAL_CONFIG_FILE_NAME, ProjectConfig
from tinyqueries_core.credentials import API_KEY_ENV_VAR
from tinyqueries_core.errors import (
    CredentialMissingError,
    FileUnreadableError,
    InputFolderMissingError,
    NoResponseError,
    ServerError,
    TransportUnavailableError,
    WriteFailedError,
)
from tinyqueries_core.extract import Extractor
from tinyqueries_core.observability import span

if TYPE_CHECKING:
    import httpx

logger = structlog.get_logger(__name__)

# Multipart form field carrying the archive
UPLOAD_FIELD_NAME = "tq_code"

UPLOAD_PREFIX = "upload-"
ARCHIVE_CONTENT_TYPE = "application/zip"

HTTP_OK = 200


class CompileStage(str, Enum):
    """Stages of a compile request."""

    IDLE = "idle"
    BUILDING_ARCHIVE = "building_archive"
    UPLOADING = "uploading"
    AWAITING_RESPONSE = "awaiting_response"
    EXTRACTING = "extracting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class CompileResponse:
    """Fully buffered response of the compile service.

    Attributes:
        status_code: HTTP status code.
        body: Raw response body; a ZIP archive on success.
    """

    status_code: int
    body: bytes

    @property
    def ok(self) -> bool:
        return self.status_code == HTTP_OK

    def error_message(self) -> str:
        """Message describing a failed response.

        Returns the ``error`` field of a JSON body verbatim, otherwise a
        generic message with the status code and raw body.
        """
        try:
            decoded = json.loads(self.body)
        except (ValueError, UnicodeDecodeError):
            decoded = None

        if isinstance(decoded, dict) and isinstance(decoded.get("error"), str):
            return decoded["error"]

        text = self.body.decode("utf-8", errors="replace")
        return f"Received status {self.status_code} - {text}"


def _load_transport() -> ModuleType:
    """Import httpx, reporting its absence as a compile error."""
    try:
        import httpx
    except ImportError:
        raise TransportUnavailableError() from None
    return httpx


def _secret_value(credential: SecretStr | str) -> str:
    value = credential.get_secret_value() if isinstance(credential, SecretStr) else credential
    value = value.strip()
    if not value:
        raise CredentialMissingError(API_KEY_ENV_VAR)
    return value


class CompileClient:
    """Runs compile requests against the compile service.

    Attributes:
        stage: Current stage of the last compile request.
        work_dir: Folder for temporary upload/download archives.
        timeout: HTTP timeout in seconds; None waits indefinitely.

    Example:
        >>> client = CompileClient()
        >>> client.compile(ConfigStore().load(), get_api_key())

        >>> # Tests inject a transport
        >>> http = httpx.Client(transport=httpx.MockTransport(handler))
        >>> client = CompileClient(http_client=http, target_dir=tmp_path)
    """

    def __init__(
        self,
        http_client: httpx.Client | None = None,
        *,
        archiver: Archiver | None = None,
        extractor: Extractor | None = None,
        work_dir: Path | None = None,
        target_dir: Path | None = None,
        timeout: float | None = None,
        on_progress: Callable[[CompileStage], None] | None = None,
    ) -> None:
        self.work_dir = work_dir if work_dir is not None else Path(tempfile.gettempdir())
        self.timeout = timeout
        self.archiver = archiver or Archiver()
        self.extractor = extractor or Extractor(target_dir=target_dir, work_dir=self.work_dir)
        self.stage = CompileStage.IDLE
        self._http_client = http_client
        self._on_progress = on_progress

    def _set_stage(self, stage: CompileStage) -> None:
        self.stage = stage
        logger.debug("compile_stage", stage=stage.value)
        if self._on_progress is not None:
            self._on_progress(stage)

    def compile(self, config: ProjectConfig, credential: SecretStr | str) -> list[Path]:
        """Run one compile request.

        Args:
            config: Normalized project configuration.
            credential: API key sent as bearer token.

        Returns:
            Paths of the files written from the response archive.

        Raises:
            InputFolderMissingError: If ``compiler.input`` is not a folder.
                No request is sent in that case.
            DirectoryUnreadableError, FileUnreadableError: If packaging fails.
            TransportUnavailableError: If httpx is not installed.
            NoResponseError: If the service could not be reached.
            ServerError: If the service answered with a non-200 status.
            ArchiveCorruptError, WriteFailedError: If extraction fails.
        """
        self.stage = CompileStage.IDLE
        tag = uuid.uuid4().hex

        try:
            token = _secret_value(credential)

            input_folder = config.input_folder
            if not input_folder.is_dir():
                raise InputFolderMissingError(config.compiler.input)

            self._set_stage(CompileStage.BUILDING_ARCHIVE)
            with span("build_archive", attributes={"input": str(input_folder)}):
                archive = self.build_archive(config)

            response = self.send(config, archive, token, tag)

            if not response.ok:
                message = response.error_message()
                logger.info("compile_rejected", status_code=response.status_code)
                raise ServerError(response.status_code, message)

            self._set_stage(CompileStage.EXTRACTING)
            with span("extract", attributes={"size": len(response.body)}):
                written = self.extractor.extract(response.body, tag=tag)

        except Exception:
            self._set_stage(CompileStage.FAILED)
            raise

        self._set_stage(CompileStage.DONE)
        return written

    def build_archive(self, config: ProjectConfig) -> Archive:
        """Package the config file and the input folder.

        The config file on disk is added under its own name when the config
        was loaded from a file; otherwise the serialized config is added as
        ``tinyqueries.json``.

        Args:
            config: Normalized project configuration.

        The config file's own name is left out of the folder walk, so it is
        packed once even when it lives inside the input folder under a
        non-default name.

        Returns:
            Archive with the config entry first.
        """
        entry = config_entry(config)
        archiver = self.archiver
        if archiver.is_file_to_upload(entry.path):
            archiver = Archiver(excluded_names=[*archiver.excluded_names, entry.path])
        return archiver.build(config.input_folder, extra_files=[entry])

    def send(
        self,
        config: ProjectConfig,
        archive: Archive,
        token: str,
        tag: str,
    ) -> CompileResponse:
        """Post the archive to the compile service.

        The archive is written to ``upload-<tag>.zip`` in the work folder and
        removed again before this method returns or raises.

        Args:
            config: Project configuration holding the server URL.
            archive: Archive to upload.
            token: Bearer token.
            tag: Unique tag for the temporary file name.

        Returns:
            Buffered CompileResponse.

        Raises:
            TransportUnavailableError: If httpx is not installed.
            NoResponseError: If no response was received.
        """
        server = config.compiler.server
        upload_path = self.work_dir / f"{UPLOAD_PREFIX}{tag}.zip"

        try:
            try:
                archive.write(upload_path)
            except OSError as e:
                raise WriteFailedError(str(upload_path), internal_details=repr(e)) from None

            self._set_stage(CompileStage.UPLOADING)
            with span("upload", kind=SpanKind.CLIENT, attributes={"server": server}):
                response = self._post(server, upload_path, token)
        finally:
            upload_path.unlink(missing_ok=True)

        logger.info(
            "compile_response",
            server=server,
            status_code=response.status_code,
            size=len(response.body),
        )
        return response

    def _post(self, server: str, upload_path: Path, token: str) -> CompileResponse:
        httpx = _load_transport()
        client = self._http_client or httpx.Client(timeout=self.timeout)
        owns_client = self._http_client is None

        try:
            with upload_path.open("rb") as fh:
                request = client.build_request(
                    "POST",
                    server,
                    files={UPLOAD_FIELD_NAME: (upload_path.name, fh, ARCHIVE_CONTENT_TYPE)},
                    headers={"Authorization": f"Bearer {token}"},
                )
                response = client.send(request, stream=True)
                try:
                    self._set_stage(CompileStage.AWAITING_RESPONSE)
                    body = response.read()
                finally:
                    response.close()
        except (httpx.TransportError, httpx.InvalidURL) as e:
            raise NoResponseError(server, internal_details=repr(e)) from None
        except OSError as e:
            raise FileUnreadableError(str(upload_path), internal_details=repr(e)) from None
        finally:
            if owns_client:
                client.close()

        return CompileResponse(status_code=response.status_code, body=body)


def config_entry(config: ProjectConfig) -> ArchiveEntry:
    """Archive entry carrying the project configuration.

    Args:
        config: Normalized project configuration.

    Returns:
        The original config file if the config was loaded from disk,
        otherwise the serialized config named ``tinyqueries.json``.

    Raises:
        FileUnreadableError: If the original config file cannot be read.
    """
    if config.source_file_name is None:
        return ArchiveEntry.file(CANONICAL_CONFIG_FILE_NAME, config.to_json().encode("utf-8"))

    path = Path(config.source_file_name)
    try:
        content = path.read_bytes()
    except OSError as e:
        raise FileUnreadableError(str(path), internal_details=repr(e)) from None
    return ArchiveEntry.file(path.name, content)
