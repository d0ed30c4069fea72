"""
dbrecon – field-by-field reconciliation of two tabular datasets whose schemas
name the same columns differently.

Library code only logs; it never installs handlers.  A `NullHandler` keeps the
package quiet until the embedding application (or the ``dbrecon`` CLI) calls
`configure_logging`.
"""

from __future__ import annotations

import logging
from typing import Union

__version__ = "0.1.0"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)          # "dbrecon"
logger.addHandler(logging.NullHandler())


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Send package log records to the console.

    Root handlers are only installed when the application has none yet; the
    package logger level is always updated.

    Parameters
    level : int | str, optional
        A ``logging`` level or its name (``"DEBUG"``, ``"info"``...); unknown
        names fall back to ``INFO``.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    logger.setLevel(level)
