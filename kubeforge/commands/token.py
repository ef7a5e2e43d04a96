import typer

from ..exceptions import KubeforgeError
from ..modules.kubernetes import KubernetesInstaller
from . import detect_distribution, fail, get_settings, make_runner, require_root


def token_cmd(
    ctx: typer.Context,
    control_plane: bool = typer.Option(
        False, "--control-plane", help="Also upload certificates and print a control plane join command"
    ),
):
    """Print a fresh join command for this cluster."""
    settings = get_settings(ctx)
    require_root(settings)
    try:
        kube = KubernetesInstaller(make_runner(settings), detect_distribution(settings), settings)
        join_command = kube.generate_join_command()
        certificate_key = kube.generate_certificate_key() if control_plane else None
    except KubeforgeError as e:
        raise fail(e)

    if certificate_key:
        typer.echo(f"{join_command} --control-plane --certificate-key {certificate_key}")
    else:
        typer.echo(join_command)
