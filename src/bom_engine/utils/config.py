"""
Runtime configuration for the BOM engine.

Selects the database for the current environment and reads the few
engine settings that may be overridden from the process environment:

    BOM_ENGINE_ENV              production (default) | development | test
    BOM_ENGINE_DATABASE_URL     any SQLAlchemy URL
    BOM_ENGINE_CYCLE_MAX_DEPTH  depth bound of the indirect cycle search
    BOM_ENGINE_ECHO_SQL         1/true/yes to log every statement
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    DEFAULT_CYCLE_CHECK_MAX_DEPTH,
)

logger = logging.getLogger(__name__)

ENV_VAR_ENVIRONMENT = "BOM_ENGINE_ENV"
ENV_VAR_DATABASE_URL = "BOM_ENGINE_DATABASE_URL"
ENV_VAR_MAX_DEPTH = "BOM_ENGINE_CYCLE_MAX_DEPTH"
ENV_VAR_ECHO_SQL = "BOM_ENGINE_ECHO_SQL"

VALID_ENVIRONMENTS = ("production", "development", "test")


def _read_positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}; using {default}")
        return default
    if value < 1:
        logger.warning(f"Ignoring non-positive {name}={value}; using {default}")
        return default
    return value


class Config:
    """
    Settings for one environment.

    Production keeps its SQLite file under ~/.bom_engine; development and
    test use the project's data/ directory, and test defaults to an
    in-memory database unless a URL is given explicitly.
    """

    def __init__(self, environment: str = "production"):
        if environment not in VALID_ENVIRONMENTS:
            raise ValueError(
                f"Unknown environment '{environment}'; expected one of {VALID_ENVIRONMENTS}"
            )

        self.environment = environment
        self.app_name = APP_NAME
        self.app_version = APP_VERSION
        self.database_version = DATABASE_VERSION

        if environment == "production":
            data_dir = Path.home() / ".bom_engine"
        else:
            data_dir = Path(__file__).resolve().parents[3] / "data"
        self.database_path = data_dir / DATABASE_FILENAME

        self._database_url_override = os.environ.get(ENV_VAR_DATABASE_URL)
        self.cycle_check_max_depth = _read_positive_int(ENV_VAR_MAX_DEPTH, DEFAULT_CYCLE_CHECK_MAX_DEPTH)
        self.echo_sql = os.environ.get(ENV_VAR_ECHO_SQL, "").lower() in ("1", "true", "yes")

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL: the override, else memory for test, else the SQLite file."""
        if self._database_url_override:
            return self._database_url_override
        if self.environment == "test":
            return "sqlite:///:memory:"
        return "sqlite:///" + str(self.database_path).replace("\\", "/")

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def ensure_directories(self) -> None:
        """Create the parent directory of a file-backed SQLite database."""
        if self.database_url.startswith("sqlite:///") and ":memory:" not in self.database_url:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return f"Config(environment='{self.environment}', database_url='{self.database_url}')"


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Return the process-wide Config, creating it on first call.

    Args:
        environment: Used only when the singleton does not exist yet;
            falls back to BOM_ENGINE_ENV, then "production". A different
            value on later calls is ignored with a warning so the database
            never switches underneath running services.
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = Config(environment or os.environ.get(ENV_VAR_ENVIRONMENT, "production"))
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton to prevent database switching."
        )

    return _config_instance


def reset_config():
    """Forget the singleton so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None
