"""SITEWIRE CLI entry point.

Defines the top-level ``sitewire`` command (via Click-Extra) and registers
its subcommands:

- ``sitewire plan CONFIG``: show what a configuration builds.
- ``sitewire serve CONFIG``: build the site and serve it until interrupted.
- ``sitewire db``: forward-only database management.

Examples
    $ sitewire --version
    $ sitewire plan site.toml
    $ sitewire -v serve site.toml
"""

import logging
from pathlib import Path

import click
import click_extra as clickx
from platformdirs import user_log_dir

from sitewire import __version__
from sitewire.logging import LoggingSettings, configure_logging, log_startup

from .db import db as db_group
from .helpers.log_level_parser import parse_log_level
from .plan import plan as plan_command
from .serve import serve as serve_command

logger = logging.getLogger(__name__)


HELP = """Build sites from declarative TOML configurations.

    A site is made of optional parts (database, config store, WebSocket
    server, users, HTTP server, session cookie); only those the
    configuration asks for are built.
    """

DEFAULT_LOG_PATH = (
    Path(user_log_dir("sitewire", appauthor=False, ensure_exists=True)) / "latest.log"
)
QUIET_LIBRARIES = ("sqlalchemy=WARNING", "alembic=WARNING", "aiohttp=WARNING")


@clickx.extra_group(
    version=__version__,
    help=HELP,
    params=[
        clickx.ColorOption(show_envvar=True),
        clickx.TimerOption(show_envvar=True),
        clickx.ExtraVersionOption(),
    ],
)
@click.option(
    "-v",
    "--verbose",
    "verbose_count",
    count=True,
    default=0,
    help="Log more; each repetition lowers the WARNING threshold one level.",
)
@click.option(
    "-q",
    "--quiet",
    "quiet_count",
    count=True,
    default=0,
    help="Log less; each repetition raises the WARNING threshold one level.",
)
@click.option(
    "--debug/--no-debug",
    default=False,
    help="Developer output: DEBUG records with timestamps and source paths.",
)
@click.option(
    "--log-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_LOG_PATH,
    envvar="SITEWIRE_LOG_PATH",
    show_default=True,
    show_envvar=True,
    help="File the flight recorder writes to.",
)
@click.option(
    "--flight-recorder-capacity",
    type=int,
    default=2000,
    hidden=True,
    envvar="SITEWIRE_FLIGHT_RECORDER_CAPACITY",
    show_envvar=True,
    help="Records kept by the flight recorder.",
)
@click.option(
    "--flight-recorder/--no-flight-recorder",
    default=True,
    show_envvar=True,
    help=(
        "Keep recent DEBUG records in memory, whatever -v/-q say, and write "
        "them to --log-path as soon as a WARNING or ERROR is logged."
    ),
)
@click.option(
    "--force-flush/--no-force-flush",
    "force_flush_flight_recorder",
    default=False,
    show_default=True,
    show_envvar=True,
    help="Also write the flight recorder out on a clean exit.",
)
@click.option(
    "-L",
    "--logger-level",
    "logger_levels",
    multiple=True,
    callback=parse_log_level,
    default=QUIET_LIBRARIES,
    show_default=True,
    show_envvar=True,
    help=(
        "Minimum level for one logger, as NAME=LEVEL "
        "(e.g. -L aiohttp.access=INFO). Repeatable; SITEWIRE_LOGGER_LEVELS "
        "takes a comma or space separated list."
    ),
)
@clickx.pass_context
def sitewire(  # pylint: disable=too-many-arguments, too-many-positional-arguments
    ctx: click.Context,
    verbose_count: int,
    quiet_count: int,
    debug: bool,
    log_path: Path,
    flight_recorder_capacity: int,
    flight_recorder: bool,
    force_flush_flight_recorder: bool,
    logger_levels: dict[str, int],
) -> None:
    """Build sites from declarative TOML configurations."""
    level = logging.WARNING - 10 * verbose_count + 10 * quiet_count
    settings = LoggingSettings(
        level=max(logging.DEBUG, min(logging.CRITICAL, level)),
        debug=debug,
        color=ctx.color is not False,
        recorder_path=log_path if flight_recorder else None,
        recorder_capacity=flight_recorder_capacity,
        flush_on_exit=force_flush_flight_recorder,
        logger_levels=logger_levels,
    )
    handlers = configure_logging(settings)
    log_startup(logger, __version__, settings, handlers)
    ctx.call_on_close(logging.shutdown)


sitewire.add_command(db_group)
sitewire.add_command(plan_command)
sitewire.add_command(serve_command)
