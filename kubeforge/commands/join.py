from typing import Optional

import typer

from ..exceptions import KubeforgeError
from ..modules.kubernetes import KubernetesInstaller
from . import detect_distribution, fail, get_settings, make_runner, require_root


def join_cmd(
    ctx: typer.Context,
    command: Optional[str] = typer.Option(
        None, "--command", help="Join command printed by 'kubeforge token' (prompted when omitted)"
    ),
    control_plane: bool = typer.Option(False, "--control-plane", help="Join as an additional control plane node"),
    certificate_key: Optional[str] = typer.Option(None, "--certificate-key", help="Key from 'kubeforge token --control-plane'"),
):
    """Join this node to an existing cluster."""
    settings = get_settings(ctx)
    require_root(settings)

    if not command:
        command = typer.prompt("Enter the join command from the master node", hide_input=True)
    if control_plane and not certificate_key:
        certificate_key = typer.prompt("Enter the certificate key", hide_input=True)

    try:
        kube = KubernetesInstaller(make_runner(settings), detect_distribution(settings), settings)
        if control_plane:
            kube.join_control_plane(command, certificate_key)
        else:
            kube.join_cluster(command)
    except KubeforgeError as e:
        raise fail(e)
