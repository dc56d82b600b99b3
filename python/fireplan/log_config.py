"""Shared logging configuration for the sidecar.

Call ``setup()`` once at the top of ``main()`` to get ISO-8601 timestamps
on every log line. Output goes to stderr; stdout carries protocol messages.
"""

from __future__ import annotations

import logging
import os
import sys

_LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
_LEVEL_ENV_VAR = "FIREPLAN_LOG_LEVEL"


def setup(*, verbose: bool = False) -> None:
    """Configure the root logger with timestamped output.

    Args:
        verbose: If True, set level to DEBUG; otherwise INFO. The
            ``FIREPLAN_LOG_LEVEL`` environment variable wins when set.
    """
    level: int | str = logging.DEBUG if verbose else logging.INFO
    env_level = os.environ.get(_LEVEL_ENV_VAR)
    if env_level:
        level = env_level.upper()
    logging.basicConfig(
        level=level,
        format=_LOG_FORMAT,
        datefmt=_DATE_FORMAT,
        stream=sys.stderr,
    )
