"""tinyqueries-core: Compile request pipeline for TinyQueries projects.

This package provides:
- ConfigStore / ProjectConfig: Load and normalize tinyqueries.json/.yml/.yaml
- Archiver / Archive: Deterministic ZIP packaging of the input folder
- CompileClient: Upload to the compile service and interpret the response
- Extractor: Write the returned archive to the working directory
"""

from __future__ import annotations

__version__ = "0.1.0"

from tinyqueries_core.archive import Archive, ArchiveEntry, Archiver
from tinyqueries_core.client import (
    UPLOAD_FIELD_NAME,
    CompileClient,
    CompileResponse,
    CompileStage,
)
from tinyqueries_core.config import (
    CONFIG_FILE_NAMES,
    DEFAULT_INPUT,
    DEFAULT_SERVER,
    DEFAULT_VERSION,
    ConfigStore,
    ProjectConfig,
    normalize,
)
from tinyqueries_core.credentials import API_KEY_ENV_VAR, get_api_key
from tinyqueries_core.errors import (
    ArchiveCorruptError,
    ConfigMalformedError,
    ConfigNotFoundError,
    ConfigUnreadableError,
    CredentialMissingError,
    DirectoryUnreadableError,
    FileUnreadableError,
    InputFolderMissingError,
    NoResponseError,
    ServerError,
    TinyQueriesError,
    TransportUnavailableError,
    WriteFailedError,
)
from tinyqueries_core.extract import Extractor

__all__ = [
    "__version__",
    # Configuration
    "ConfigStore",
    "ProjectConfig",
    "normalize",
    "CONFIG_FILE_NAMES",
    "DEFAULT_SERVER",
    "DEFAULT_VERSION",
    "DEFAULT_INPUT",
    # Credentials
    "get_api_key",
    "API_KEY_ENV_VAR",
    # Packaging
    "Archive",
    "ArchiveEntry",
    "Archiver",
    # Compile request
    "CompileClient",
    "CompileResponse",
    "CompileStage",
    "UPLOAD_FIELD_NAME",
    "Extractor",
    # Errors
    "TinyQueriesError",
    "ConfigNotFoundError",
    "ConfigUnreadableError",
    "ConfigMalformedError",
    "CredentialMissingError",
    "InputFolderMissingError",
    "DirectoryUnreadableError",
    "FileUnreadableError",
    "TransportUnavailableError",
    "NoResponseError",
    "ServerError",
    "ArchiveCorruptError",
    "WriteFailedError",
]
