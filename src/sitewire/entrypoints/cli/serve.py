"""``sitewire serve``: build a site and serve it until interrupted.

Listeners are started once the site is ready and stopped on SIGINT/SIGTERM.
The site itself never starts or stops them.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from pathlib import Path

import click

from sitewire.adapters.network import check_distinct_addresses
from sitewire.bootstrap import Site
from sitewire.config import load_site_config
from sitewire.domain.errors import SitewireError

from .helpers import success

logger = logging.getLogger(__name__)


async def run(site: Site, stop: asyncio.Event) -> None:
    """Wait for *site*, start its listeners and keep them up until *stop* is set."""
    await site.when_ready()
    check_distinct_addresses(site.bindings)
    started = []
    try:
        for binding in site.bindings:
            await binding.start()
            started.append(binding)
        success(f"Serving on {', '.join(repr(b) for b in started) or 'no listener'}")
        await stop.wait()
    finally:
        for binding in reversed(started):
            await binding.stop()


async def _serve(config_path: Path) -> None:
    site = await Site.create(load_site_config(config_path))
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # not available on every platform; Ctrl+C still raises KeyboardInterrupt
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)
    await run(site, stop)
    logger.info("Stopped")


@click.command()
@click.argument(
    "config_path",
    metavar="CONFIG",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
def serve(config_path: Path) -> None:
    """Build the site CONFIG describes and serve it until interrupted."""
    try:
        asyncio.run(_serve(config_path))
    except SitewireError as e:
        raise click.ClickException(str(e)) from e
    except KeyboardInterrupt:
        pass
