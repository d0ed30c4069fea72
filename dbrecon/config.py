import logging
import os
from pathlib import Path
from typing import Optional, Union

from dbrecon.config_schema import ComparisonConfig, load_and_validate_config

# Logging
LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/comparison_config.yaml"
CONFIG_ENV_VAR = "DBRECON_CONFIG"


def resolve_config_path(config_path: Optional[Union[str, Path]] = None) -> Path:
    """
    Pick the configuration file to load.

    An explicit ``config_path`` wins, then the ``DBRECON_CONFIG`` environment
    variable, then ``config/comparison_config.yaml``.
    """
    if config_path:
        return Path(config_path)
    return Path(os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)


def load_config_validated(config_path: Optional[Union[str, Path]] = None) -> ComparisonConfig:
    """
    Load the comparison configuration as a validated model.

    Parameters
    ----------
    config_path : str | Path, optional
        YAML file; see :func:`resolve_config_path` for the fallbacks

    Returns
    -------
    ComparisonConfig

    Raises
    ------
    FileNotFoundError
        If the resolved file doesn't exist
    ValidationError
        If the configuration is invalid
    """
    path = resolve_config_path(config_path)
    LOGGER.info("Loading configuration from %s", path)
    return load_and_validate_config(str(path))


def load_config(config_path: Optional[Union[str, Path]] = None) -> dict:
    """Same as :func:`load_config_validated`, dumped to a plain dict."""
    return load_config_validated(config_path).model_dump()
