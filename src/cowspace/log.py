# SPDX-License-Identifier: Apache-2.0
"""Logging configuration using loguru."""

import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(level: str = "WARNING") -> None:
    """Configure loguru with a single stderr sink.

    Call this once at process startup, before any mount operation.
    """
    level = level.upper()

    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    logger.debug("Logging initialised (level={})", level)
