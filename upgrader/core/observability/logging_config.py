"""
Logging setup for the upgrader entrypoints.

``main.py`` calls :func:`setup_logging` once. The console shows bare
messages at the default WARNING level and gains a time/logger prefix
when the operator asks for more. An optional log file always records
at least INFO, so every pipeline event mirrored by the event bus
(``[module] step:started {...}``) lands there whatever the console
shows.
"""

from __future__ import annotations

import logging
import sys

LOG_LEVEL_ENV = "UPGRADER_LOG_LEVEL"
LOG_FILE_ENV = "UPGRADER_LOG_FILE"

_CONSOLE_PLAIN = "%(message)s"
_CONSOLE_DETAILED = "%(asctime)s %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str = "WARNING", log_file: str | None = None) -> None:
    """Install the console handler and, if given, the upgrade log file.

    Unknown level names fall back to WARNING. The Flask dev server's
    request log stays at WARNING unless running at DEBUG.
    """
    console_level = _level(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(
        logging.Formatter(
            _CONSOLE_DETAILED if console_level <= logging.INFO else _CONSOLE_PLAIN,
            datefmt="%H:%M:%S",
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [console]
    root_level = console_level

    if log_file:
        file_level = min(console_level, logging.INFO)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        root.addHandler(handler)
        root_level = file_level

    root.setLevel(root_level)
    if console_level > logging.DEBUG:
        logging.getLogger("werkzeug").setLevel(logging.WARNING)


def _level(name: str | None) -> int:
    value = logging.getLevelName((name or "").upper())
    return value if isinstance(value, int) else logging.WARNING
