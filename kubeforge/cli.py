import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from kubeforge import APP_NAME, __version__
from kubeforge.commands import config as config_command
from kubeforge.commands import dashboard, install, join, network, node, status, token, upgrade
from kubeforge.config import KubeforgeConfig
from kubeforge.logging import DEFAULT_FORMAT, add_file_handler

app = typer.Typer(help=f"{APP_NAME} - bootstrap Kubernetes nodes with kubeadm.")

debug_mode = False


# Configure logging
def setup_logging(debug_mode: bool = False, settings: Optional[KubeforgeConfig] = None):
    """Configure logging based on debug mode and the loaded settings."""
    if debug_mode:
        log_level = logging.DEBUG
    elif settings is not None:
        log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)
    else:
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=settings.logging.format if settings is not None else DEFAULT_FORMAT,
        handlers=[
            logging.StreamHandler()
        ]
    )
    # Disable debug logging for noisy libraries
    if not debug_mode:
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('kubernetes').setLevel(logging.WARNING)

    if settings is not None and settings.logging.file:
        add_file_handler(settings.logging)


# Command groups
app.add_typer(network.app, name="network")
app.add_typer(node.app, name="node")

# Single commands
app.command("install")(install.install_cmd)
app.command("join")(join.join_cmd)
app.command("token")(token.token_cmd)
app.command("upgrade")(upgrade.upgrade_cmd)
app.command("dashboard")(dashboard.dashboard_cmd)
app.command("status")(status.status_cmd)
app.command("config")(config_command.config_cmd)


def version_callback(value: bool):
    if value:
        typer.echo(f"{APP_NAME} {__version__}")
        raise typer.Exit()


# Global options callback
@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a kubeforge YAML config file"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log commands and file writes without executing them"),
    version: bool = typer.Option(
        False, "--version", callback=version_callback, is_eager=True, help="Show the version and exit"
    ),
):
    """KubeForge - bootstrap Kubernetes nodes with kubeadm.

    Without a subcommand, runs the interactive installer.
    """
    global debug_mode
    debug_mode = debug

    try:
        settings = KubeforgeConfig.load(config)
    except ValidationError as e:
        typer.secho(f"❌ Invalid configuration: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    if dry_run:
        settings.dry_run = True
    setup_logging(debug, settings)
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Debug mode enabled")
    if settings.dry_run:
        logging.info("🧪 Dry run: no commands will be executed")

    ctx.obj = settings
    if ctx.invoked_subcommand is None:
        install.run_install(settings)


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)
