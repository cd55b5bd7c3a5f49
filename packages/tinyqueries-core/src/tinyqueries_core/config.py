"""Project configuration for the TinyQueries compile client.

This module handles loading and normalizing the project configuration:
- ProjectConfig: Fully populated configuration model
- normalize(): Fill defaults into a raw mapping without overwriting values
- ConfigStore: Discover and parse tinyqueries.json / .yml / .yaml

Example tinyqueries.yaml:

    project:
      label: my-project
    compiler:
      server: https://compile.tinyqueries.com
      version: latest
      input: tinyqueries
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any

import structlog
import yaml
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from tinyqueries_core.errors import (
    ConfigMalformedError,
    ConfigNotFoundError,
    ConfigUnreadableError,
)

logger = structlog.get_logger(__name__)

# Default compile service endpoint
DEFAULT_SERVER = "https://compile.tinyqueries.com"

# Default compiler version requested from the service
DEFAULT_VERSION = "latest"

# Default folder holding the query sources
DEFAULT_INPUT = "tinyqueries"

# Recognized config file names, in preference order
CONFIG_FILE_NAMES = (
    "tinyqueries.json",
    "tinyqueries.yml",
    "tinyqueries.yaml",
)

# Name used when an in-memory config is sent to the compile service
CANONICAL_CONFIG_FILE_NAME = CONFIG_FILE_NAMES[0]

JSON_SUFFIXES = frozenset({".json"})
YAML_SUFFIXES = frozenset({".yml", ".yaml"})


def _scalar_to_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# Numbers are accepted where strings are expected (e.g. ``version: 2``)
CoercedStr = Annotated[str, BeforeValidator(_scalar_to_str)]


class ProjectSection(BaseModel):
    """The ``project`` section of the config file.

    Attributes:
        label: Human-readable project name.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    label: CoercedStr = Field(default="", description="Human-readable project name")


class CompilerSection(BaseModel):
    """The ``compiler`` section of the config file.

    Keys other than the ones below are kept so they reach the compile
    service unchanged.

    Attributes:
        server: URL of the compile service.
        version: Compiler version to use.
        input: Folder containing the query sources.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    server: CoercedStr = Field(default=DEFAULT_SERVER, description="Compile service URL")
    version: CoercedStr = Field(default=DEFAULT_VERSION, description="Compiler version")
    input: CoercedStr = Field(default=DEFAULT_INPUT, description="Input folder to package")


class ProjectConfig(BaseModel):
    """Normalized project configuration.

    Built once per invocation, either by ConfigStore.load() from a file on
    disk or by normalize() from an in-memory mapping.

    Attributes:
        project: Project section.
        compiler: Compiler section.
        source_file_name: Config file that was loaded, or None when the
            configuration was built in memory.

    Example:
        >>> config = normalize({"project": {"label": "shop"}})
        >>> config.compiler.version
        'latest'
        >>> config.source_file_name is None
        True
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    project: ProjectSection = Field(default_factory=ProjectSection)
    compiler: CompilerSection = Field(default_factory=CompilerSection)
    source_file_name: str | None = Field(
        default=None,
        alias="sourceFileName",
        description="Config file the configuration was loaded from",
    )

    @property
    def input_folder(self) -> Path:
        """Input folder, resolved against the current working directory.

        Returns:
            Absolute path of ``compiler.input``.
        """
        path = Path(self.compiler.input).expanduser()
        if path.is_absolute():
            return path
        return Path.cwd() / path

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration as a plain mapping.

        The result can be passed back to normalize() and yields an equal
        configuration.
        """
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        """Serialize the configuration as sent to the compile service.

        The local ``sourceFileName`` bookkeeping field is not included.
        """
        data = self.to_dict()
        data.pop("sourceFileName", None)
        return json.dumps(data, indent=2)


def _without_nulls(value: Any) -> Any:
    """Drop null values so they count as absent and receive defaults."""
    if isinstance(value, Mapping):
        return {str(k): _without_nulls(v) for k, v in value.items() if v is not None}
    return value


def _describe_validation_error(err: ValidationError) -> str:
    """Summarize a Pydantic error as ``field.path: message`` entries."""
    parts = []
    for e in err.errors():
        loc = ".".join(str(x) for x in e["loc"])
        parts.append(f"{loc}: {e['msg']}" if loc else e["msg"])
    return "; ".join(parts)


def normalize(
    raw: Mapping[str, Any],
    *,
    source_file_name: str | None = None,
) -> ProjectConfig:
    """Fill a raw configuration mapping with defaults.

    Fields already present are kept as-is. Normalizing the ``to_dict()`` of an
    already normalized configuration returns an equal configuration.

    Args:
        raw: Mapping as decoded from the config file, or built in code.
        source_file_name: Config file the mapping was read from. Overrides a
            ``sourceFileName`` key in ``raw``.

    Returns:
        Fully populated ProjectConfig.

    Raises:
        ConfigMalformedError: If ``raw`` or one of its sections is not a
            mapping, or a field has the wrong type.
    """
    if not isinstance(raw, Mapping):
        raise ConfigMalformedError(
            source_file_name,
            f"expected a mapping, got {type(raw).__name__}",
        )

    data = _without_nulls(raw)
    if source_file_name is not None:
        data["sourceFileName"] = source_file_name

    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigMalformedError(
            source_file_name,
            _describe_validation_error(e),
            internal_details=str(e),
        ) from None


def parse_config_text(content: str, file_name: str) -> Any:
    """Decode config file content according to the file extension.

    Args:
        content: Text of the config file.
        file_name: Name of the file, used to pick JSON or YAML.

    Returns:
        The decoded document (normally a mapping).

    Raises:
        ConfigMalformedError: If the extension is unsupported or the content
            cannot be decoded.
    """
    suffix = Path(file_name).suffix.lower()
    try:
        if suffix in JSON_SUFFIXES:
            return json.loads(content)
        if suffix in YAML_SUFFIXES:
            return yaml.safe_load(content)
    except json.JSONDecodeError as e:
        raise ConfigMalformedError(
            file_name,
            f"JSON syntax error at line {e.lineno}, column {e.colno}: {e.msg}",
        ) from None
    except yaml.YAMLError as e:
        reason = str(e)
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            reason = (
                f"YAML syntax error at line {mark.line + 1}, column {mark.column + 1}: "
                f"{getattr(e, 'problem', None) or e}"
            )
        raise ConfigMalformedError(file_name, reason) from None

    raise ConfigMalformedError(file_name, "Unsupported config file format")


class ConfigStore:
    """Loads the project configuration from the working directory.

    Attributes:
        file_names: Config file names to look for, in preference order.
        directory: Folder searched for config files. None means the current
            working directory at load time.

    Example:
        >>> store = ConfigStore()
        >>> config = store.load()
        >>> config.source_file_name
        'tinyqueries.yaml'

        >>> # Substitute alternate names, e.g. in tests
        >>> store = ConfigStore(file_names=("custom.json",), directory=tmp_path)
    """

    def __init__(
        self,
        file_names: tuple[str, ...] = CONFIG_FILE_NAMES,
        directory: Path | None = None,
    ) -> None:
        self.file_names = tuple(file_names)
        self.directory = directory

    def find(self) -> Path | None:
        """Return the first config file that exists, or None."""
        base = self.directory if self.directory is not None else Path.cwd()
        for name in self.file_names:
            candidate = base / name
            if candidate.is_file():
                logger.debug("config_file_found", path=str(candidate))
                return candidate
        return None

    def load(self) -> ProjectConfig:
        """Find, read, parse and normalize the project configuration.

        Returns:
            Normalized ProjectConfig with ``source_file_name`` set.

        Raises:
            ConfigNotFoundError: If none of the file names exist.
            ConfigUnreadableError: If the file cannot be read or is empty.
            ConfigMalformedError: If the content cannot be parsed.
        """
        path = self.find()
        if path is None:
            raise ConfigNotFoundError(self.file_names)

        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigUnreadableError(path.name, internal_details=repr(e)) from None

        if not content.strip():
            raise ConfigUnreadableError(path.name, internal_details="file is empty")

        raw = parse_config_text(content, path.name)
        source = path.name if self.directory is None else str(path)
        config = normalize(raw, source_file_name=source)

        logger.info(
            "config_loaded",
            file=path.name,
            server=config.compiler.server,
            version=config.compiler.version,
            input=config.compiler.input,
        )
        return config
