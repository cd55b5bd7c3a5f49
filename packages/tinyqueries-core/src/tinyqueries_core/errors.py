"""Custom exception hierarchy for tinyqueries-core.

Every failure of the compile pipeline is reported through one of these
classes so the CLI can print a single message and exit non-zero:

- TinyQueriesError: Base exception for all compile client errors
- Config*Error: Project configuration could not be found, read or parsed
- CredentialMissingError: No API key available
- InputFolderMissingError, DirectoryUnreadableError, FileUnreadableError:
  Packaging the input folder failed
- TransportUnavailableError, NoResponseError, ServerError: The request to the
  compile service failed
- ArchiveCorruptError, WriteFailedError: Applying the response failed

User-facing messages are safe to display. Technical details are logged
internally via structlog and never shown to the user.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(__name__)


class TinyQueriesError(Exception):
    """Base exception for tinyqueries-core.

    Args:
        user_message: Message to display to the user.
        internal_details: Optional technical details for logging. This is
            logged internally but never part of the user message.

    Example:
        >>> raise TinyQueriesError(
        ...     "Cannot read config file tinyqueries.yaml",
        ...     internal_details="PermissionError: [Errno 13]",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(user_message)
        self.user_message = user_message

        if internal_details:
            logger.debug(
                "tinyqueries_error",
                error_type=self.__class__.__name__,
                user_message=user_message,
                internal_details=internal_details,
            )


class ConfigNotFoundError(TinyQueriesError):
    """Raised when none of the recognized config file names exist.

    Attributes:
        searched: File names that were looked for, in preference order.
    """

    def __init__(self, searched: tuple[str, ...] | list[str]) -> None:
        self.searched = tuple(searched)
        message = "No config file found in current folder"
        if self.searched:
            message = f"{message} - Please create a config file {self.searched[-1]}"
        super().__init__(message)


class ConfigUnreadableError(TinyQueriesError):
    """Raised when a config file exists but cannot be read."""

    def __init__(self, file_name: str, *, internal_details: str | None = None) -> None:
        self.file_name = file_name
        super().__init__(
            f"Error reading config file {file_name}",
            internal_details=internal_details,
        )


class ConfigMalformedError(TinyQueriesError):
    """Raised when config content cannot be turned into a project configuration.

    Covers syntax errors in the JSON/YAML file as well as a decoded document
    that is not a mapping or has fields of the wrong type.
    """

    def __init__(
        self,
        file_name: str | None,
        reason: str | None = None,
        *,
        internal_details: str | None = None,
    ) -> None:
        self.file_name = file_name
        self.reason = reason
        message = f"Error decoding config file {file_name}" if file_name else "Invalid configuration"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, internal_details=internal_details)


class CredentialMissingError(TinyQueriesError):
    """Raised when no API key is available in the environment."""

    def __init__(self, env_var: str) -> None:
        self.env_var = env_var
        super().__init__(
            "No API key found - please add your TinyQueries API key "
            f"to your ENV variables ({env_var})"
        )


class InputFolderMissingError(TinyQueriesError):
    """Raised when the configured input folder is not an existing directory."""

    def __init__(self, folder: str) -> None:
        self.folder = folder
        super().__init__(f"Cannot find input folder {folder}")


class DirectoryUnreadableError(TinyQueriesError):
    """Raised when a folder cannot be listed while building an archive."""

    def __init__(self, path: str, *, internal_details: str | None = None) -> None:
        self.path = path
        super().__init__(f"Cannot read folder {path}", internal_details=internal_details)


class FileUnreadableError(TinyQueriesError):
    """Raised when a file cannot be read while building an archive."""

    def __init__(self, path: str, *, internal_details: str | None = None) -> None:
        self.path = path
        super().__init__(f"Cannot read file {path}", internal_details=internal_details)


class TransportUnavailableError(TinyQueriesError):
    """Raised when no HTTP client library is installed."""

    def __init__(self) -> None:
        super().__init__(
            "Cannot compile queries - httpx is not installed. Install with: pip install httpx"
        )


class NoResponseError(TinyQueriesError):
    """Raised when the request was sent but no response came back.

    Attributes:
        server: The compile service URL that was unreachable.
    """

    def __init__(self, server: str, *, internal_details: str | None = None) -> None:
        self.server = server
        super().__init__(
            "Did not receive a response from the query compiler; no internet?",
            internal_details=internal_details,
        )


class ServerError(TinyQueriesError):
    """Raised when the compile service answers with a non-200 status.

    The message is either the service's own ``error`` field, verbatim, or a
    generic text carrying the status code and raw body.

    Attributes:
        status_code: HTTP status code of the response.
        message: Message surfaced to the user.

    Example:
        >>> err = ServerError(400, "invalid project")
        >>> str(err)
        'invalid project'
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class ArchiveCorruptError(TinyQueriesError):
    """Raised when the response body cannot be opened as a ZIP archive."""

    def __init__(self, *, internal_details: str | None = None) -> None:
        super().__init__(
            "Error opening ZIP coming from compiler",
            internal_details=internal_details,
        )


class WriteFailedError(TinyQueriesError):
    """Raised when an extracted file cannot be written.

    Attributes:
        path: Archive path of the entry that could not be written.
    """

    def __init__(
        self,
        path: str,
        reason: str | None = None,
        *,
        internal_details: str | None = None,
    ) -> None:
        self.path = path
        message = f"Cannot write file {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, internal_details=internal_details)
