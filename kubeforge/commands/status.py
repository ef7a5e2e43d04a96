import typer

from ..exceptions import KubeforgeError
from ..modules.addons import check_cluster_status
from . import fail, get_settings, make_runner


def status_cmd(ctx: typer.Context):
    """Show nodes, pods and component health."""
    settings = get_settings(ctx)
    try:
        check_cluster_status(make_runner(settings))
    except KubeforgeError as e:
        raise fail(e)
