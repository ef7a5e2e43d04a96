import typer

from ..exceptions import KubeforgeError
from ..modules.addons import install_dashboard
from . import fail, get_settings, make_runner


def dashboard_cmd(ctx: typer.Context):
    """Install the Kubernetes Dashboard and print an admin login token."""
    settings = get_settings(ctx)
    try:
        token = install_dashboard(make_runner(settings), settings)
    except KubeforgeError as e:
        raise fail(e)

    if token:
        typer.secho("Dashboard token:", fg=typer.colors.BLUE)
        typer.echo(token)
