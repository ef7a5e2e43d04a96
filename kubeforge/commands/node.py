from typing import List

import typer

from ..exceptions import KubeforgeError
from ..models import Distribution, DistroKind
from ..modules.kubernetes import KubernetesInstaller
from . import fail, get_settings, make_runner
from .network import parse_pairs

app = typer.Typer(help="Label and taint cluster nodes.")


def _installer(ctx: typer.Context) -> KubernetesInstaller:
    # kubectl only; the host distribution does not matter here
    settings = get_settings(ctx)
    return KubernetesInstaller(make_runner(settings), Distribution(DistroKind.UNKNOWN), settings)


@app.command("label")
def label(
    ctx: typer.Context,
    node: str = typer.Argument(..., help="Node name"),
    labels: List[str] = typer.Argument(..., help="Labels as key=value"),
):
    """Add or overwrite labels on a node."""
    pairs = parse_pairs(labels)
    try:
        _installer(ctx).label_node(node, pairs)
    except KubeforgeError as e:
        raise fail(e)


@app.command("taint")
def taint(
    ctx: typer.Context,
    node: str = typer.Argument(..., help="Node name"),
    taints: List[str] = typer.Argument(..., help="Taints as key=value:Effect"),
):
    """Add or overwrite taints on a node."""
    try:
        _installer(ctx).taint_node(node, taints)
    except KubeforgeError as e:
        raise fail(e)
