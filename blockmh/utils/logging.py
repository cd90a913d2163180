"""
Logging for the blockmh package.

Handlers live on the package logger ``blockmh`` only. Every module asks the
factory for a named component logger (``blockmh.sampler``,
``blockmh.checkpoint``) that carries no handlers of its own and propagates
to the package logger, so configuring the package logger once (level, log
file) redirects the output of every chain component.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "blockmh"


class BlockMHLogger:
    """Factory for the package logger and its component loggers."""

    _formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    @staticmethod
    def qualified_name(name: Optional[str] = None) -> str:
        """
        Map a component name onto the package hierarchy.

        >>> BlockMHLogger.qualified_name("sampler")
        'blockmh.sampler'
        >>> BlockMHLogger.qualified_name("blockmh.checkpoint")
        'blockmh.checkpoint'
        >>> BlockMHLogger.qualified_name()
        'blockmh'
        """
        if not name or name == PACKAGE_LOGGER:
            return PACKAGE_LOGGER
        if name.startswith(PACKAGE_LOGGER + "."):
            return name
        return f"{PACKAGE_LOGGER}.{name}"

    @classmethod
    def _configure_package_logger(cls, level: Optional[int], log_file: Optional[str]) -> logging.Logger:
        logger = logging.getLogger(PACKAGE_LOGGER)
        logger.propagate = False

        if not logger.handlers:
            logger.setLevel(logging.INFO if level is None else level)
            stream_handler = logging.StreamHandler()
            stream_handler.setFormatter(cls._formatter)
            logger.addHandler(stream_handler)
        elif level is not None:
            logger.setLevel(level)

        if log_file is not None:
            log_path = Path(log_file)
            has_file_handler = any(
                isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(log_path)
                for handler in logger.handlers
            )
            if not has_file_handler:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_path)
                file_handler.setFormatter(cls._formatter)
                logger.addHandler(file_handler)

        return logger

    @classmethod
    def get_logger(
        cls,
        name: Optional[str] = None,
        level: Optional[int] = None,
        log_file: Optional[str] = None,
    ) -> logging.Logger:
        """
        Return the logger for a blockmh component.

        Parameters:
        ----------
            name (str): Component name, e.g. ``"sampler"``. ``None`` returns the
                package logger itself.
            level (int): New level of the package logger. The first call
                defaults it to INFO; later calls leave it alone unless given.
            log_file (str): Also write the whole package's output to this
                file. A file is attached only once.

        Returns:
        -------
            logging.Logger named ``blockmh`` or ``blockmh.<name>``.
        """
        package_logger = cls._configure_package_logger(level, log_file)
        qualified = cls.qualified_name(name)
        if qualified == PACKAGE_LOGGER:
            return package_logger

        logger = logging.getLogger(qualified)
        logger.propagate = True
        return logger
