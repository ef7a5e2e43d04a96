import typer

from ..exceptions import KubeforgeError
from ..modules.kubernetes import KubernetesInstaller
from . import detect_distribution, fail, get_settings, make_runner, require_root


def upgrade_cmd(
    ctx: typer.Context,
    version: str = typer.Argument(..., help="Target Kubernetes version, e.g. 1.29.3"),
):
    """Upgrade this control plane node with kubeadm."""
    settings = get_settings(ctx)
    require_root(settings)
    try:
        kube = KubernetesInstaller(make_runner(settings), detect_distribution(settings), settings)
        kube.upgrade(version)
    except KubeforgeError as e:
        raise fail(e)
