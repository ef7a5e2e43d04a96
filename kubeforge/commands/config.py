from pathlib import Path
from typing import Optional

import typer
import yaml

from . import fail, get_settings


def config_cmd(
    ctx: typer.Context,
    output: Optional[Path] = typer.Argument(None, help="Write the settings to this YAML file instead of stdout"),
):
    """Show the effective settings, or save them as a config file."""
    settings = get_settings(ctx)
    if output is None:
        typer.echo(yaml.safe_dump(settings.model_dump(exclude_none=True), default_flow_style=False, sort_keys=False))
        return

    try:
        settings.save(output)
    except OSError as e:
        raise fail(e)
    typer.secho(f"✅ Configuration saved to {output}", fg=typer.colors.GREEN)
