"""``sitewire plan``: show what a configuration builds, without building it."""

from __future__ import annotations

import json
from pathlib import Path

import click

from sitewire.config import load_site_config
from sitewire.domain.errors import ConfigurationError
from sitewire.service_layer.resolver import resolve


@click.command()
@click.argument(
    "config_path",
    metavar="CONFIG",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--json", "as_json", is_flag=True, help="Print the plan as JSON.")
def plan(config_path: Path, as_json: bool) -> None:
    """Print the build plan and the fields of the site CONFIG describes."""
    try:
        build_plan = resolve(load_site_config(config_path))
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        data = {
            "steps": [
                {
                    "subsystem": step.subsystem.value,
                    "requires": [dep.value for dep in step.requires],
                }
                for step in build_plan
            ],
            "stages": [
                [step.subsystem.value for step in stage]
                for stage in build_plan.stages()
            ],
            "fields": sorted(build_plan.fields),
        }
        click.echo(json.dumps(data, indent=2))
        return

    if not build_plan:
        click.echo("Nothing to build.")
        return
    click.secho("Steps:", bold=True)
    for line in build_plan.describe():
        click.echo(f"  {line}")
    click.secho("Stages:", bold=True)
    for i, stage in enumerate(build_plan.stages(), start=1):
        click.echo(f"  {i}. {', '.join(step.subsystem.value for step in stage)}")
    click.secho("Fields:", bold=True)
    click.echo(f"  {', '.join(sorted(build_plan.fields))}")
