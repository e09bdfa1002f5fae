"""Logging setup for the ``sitewire`` command and the sites it serves.

Console output goes through Rich. Records from other libraries (aiohttp,
SQLAlchemy, Alembic...) are tagged with a short bracketed prefix so they stand
out from the site's own messages. An optional in-memory "flight recorder"
keeps recent records at DEBUG granularity and dumps them to a file when
something goes wrong.
"""

from __future__ import annotations

import logging
import os
import platform
import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from logging.handlers import MemoryHandler
from pathlib import Path
from typing import Literal

import aiohttp
import alembic
import sqlalchemy
from rich.console import Console
from rich.logging import RichHandler

# pylint: disable=too-few-public-methods

PROJECT_PREFIX = "sitewire"

type ColorSystem = Literal["auto", "standard", "256", "truecolor", "windows"]

CONSOLE_FORMAT = "%(prefix)s %(message)s"
DEBUG_FORMAT = "%(asctime)s %(name)s: %(message)s"
RECORDER_FORMAT = (
    "[%(asctime)s] [%(process)d:%(threadName)s] %(levelname)s "
    "%(name)s:%(lineno)d: %(message)s"
)


class LibraryPrefixFilter(logging.Filter):
    """Tag records of other libraries with ``[library]`` in ``record.prefix``."""

    def filter(self, record: logging.LogRecord) -> bool:
        top = record.name.split(".", 1)[0]
        record.prefix = "" if top == PROJECT_PREFIX else f"[{top}]"
        return True


@dataclass(frozen=True)
class LoggingSettings:
    """How the command line asked for logs to be handled.

    Attributes:
        level: Console threshold.
        debug: Developer mode: timestamps, logger names and source paths on
            the console, which then shows DEBUG records.
        color: Allow colored console output.
        recorder_path: File the flight recorder dumps to; ``None`` disables
            the recorder.
        recorder_capacity: Records kept in memory by the recorder.
        flush_on_exit: Dump the recorder on exit even if nothing went wrong.
        logger_levels: Per-logger minimum levels.
    """

    level: int = logging.WARNING
    debug: bool = False
    color: bool = True
    recorder_path: Path | None = None
    recorder_capacity: int = 2000
    flush_on_exit: bool = False
    logger_levels: Mapping[str, int] = field(default_factory=dict)


def console_handler(settings: LoggingSettings) -> RichHandler:
    """A RichHandler on stderr."""
    color_system: ColorSystem | None = "auto" if settings.color else None
    handler = RichHandler(
        level=logging.DEBUG if settings.debug else settings.level,
        console=Console(color_system=color_system, stderr=True),
        rich_tracebacks=True,
        show_time=False,
        show_path=settings.debug,
        enable_link_path=settings.debug,
    )
    if settings.debug:
        handler.setFormatter(logging.Formatter(DEBUG_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        handler.addFilter(LibraryPrefixFilter())
    return handler


def flight_recorder(
    path: Path,
    capacity: int = 2000,
    flush_level: int = logging.WARNING,
    flush_on_close: bool = False,
) -> MemoryHandler:
    """Buffer up to *capacity* records and write them to *path* on trouble.

    The buffer is written when a record at *flush_level* or above arrives,
    and on close if *flush_on_close* is set.
    """
    target = logging.FileHandler(path, mode="w", encoding="utf-8")
    target.setLevel(logging.DEBUG)
    target.setFormatter(logging.Formatter(RECORDER_FORMAT))
    return MemoryHandler(
        capacity=capacity,
        flushLevel=flush_level,
        target=target,
        flushOnClose=flush_on_close,
    )


def configure_logging(settings: LoggingSettings) -> list[logging.Handler]:
    """Install the console handler (and the flight recorder) on the root logger.

    The root logger lets everything through; each handler applies its own
    threshold. Per-logger levels from *settings* are applied last.

    Returns:
        The installed handlers.
    """
    handlers: list[logging.Handler] = [console_handler(settings)]
    if settings.recorder_path is not None:
        handlers.append(
            flight_recorder(
                settings.recorder_path,
                capacity=settings.recorder_capacity,
                flush_on_close=settings.flush_on_exit,
            )
        )
    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)
    for name, level in settings.logger_levels.items():
        logging.getLogger(name).setLevel(level)
    return handlers


def _diagnostics(
    settings: LoggingSettings, handlers: list[logging.Handler]
) -> Iterator[tuple[str, object]]:
    yield "Python", sys.version.split()[0]
    yield "Platform", f"{platform.system()} {platform.release()}"
    yield "PID", os.getpid()
    yield "CWD", Path.cwd()
    yield "aiohttp", aiohttp.__version__
    yield "SQLAlchemy", sqlalchemy.__version__
    yield "Alembic", alembic.__version__
    yield "Handlers", [type(h).__name__ for h in handlers]
    if settings.recorder_path is not None:
        yield "Flight recorder", (
            f"path={settings.recorder_path}, capacity={settings.recorder_capacity}, "
            f"flush_on_exit={settings.flush_on_exit}"
        )
    yield "Per-logger levels", {
        name: logging.getLevelName(level)
        for name, level in settings.logger_levels.items()
    } or "<none>"


def log_startup(
    logger: logging.Logger,
    version: str,
    settings: LoggingSettings,
    handlers: list[logging.Handler],
) -> None:
    """Log a one-line summary, then the environment at DEBUG."""
    logger.info(
        "sitewire %s: console=%s, flight-recorder=%s",
        version,
        logging.getLevelName(settings.level),
        "ON" if settings.recorder_path is not None else "OFF",
    )
    for label, value in _diagnostics(settings, handlers):
        logger.debug("%s: %s", label, value)
