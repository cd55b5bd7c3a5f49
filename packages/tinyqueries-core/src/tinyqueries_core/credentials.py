"""API key resolution for the compile service.

The key is read from the TINYQUERIES_API_KEY environment variable after a
local ``.env`` file (if any) has been loaded into the process environment.
Values from ``.env`` take precedence over variables already set.
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog
from dotenv import load_dotenv
from pydantic import SecretStr

from tinyqueries_core.errors import CredentialMissingError

logger = structlog.get_logger(__name__)

# Environment variable holding the API key
API_KEY_ENV_VAR = "TINYQUERIES_API_KEY"

# Dotfile loaded into the environment before the key is looked up
DOTENV_FILE_NAME = ".env"


def get_api_key(
    env_var: str = API_KEY_ENV_VAR,
    dotenv_path: Path | None = None,
) -> SecretStr:
    """Obtain the API key used as bearer token.

    Args:
        env_var: Environment variable to read.
        dotenv_path: Dotfile to load first. Defaults to ``.env`` in the
            current working directory; a missing file is ignored.

    Returns:
        SecretStr holding the key, trimmed of surrounding whitespace.

    Raises:
        CredentialMissingError: If the variable is unset or blank.

    Example:
        >>> key = get_api_key()
        >>> headers = {"Authorization": f"Bearer {key.get_secret_value()}"}
    """
    path = dotenv_path if dotenv_path is not None else Path.cwd() / DOTENV_FILE_NAME
    if path.is_file():
        load_dotenv(path, override=True)
        logger.debug("dotenv_loaded", path=str(path))

    value = os.environ.get(env_var, "").strip()
    if not value:
        raise CredentialMissingError(env_var)

    return SecretStr(value)
