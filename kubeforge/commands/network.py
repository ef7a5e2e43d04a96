import logging
from dataclasses import replace
from typing import Dict, List, Optional

import typer

from ..exceptions import KubeforgeError
from ..models import NetworkPlugin, default_network_config
from ..modules.addons import check_network_connectivity
from ..modules.network import NetworkPluginInstaller
from . import fail, get_settings, make_pod_poller, make_runner

logger = logging.getLogger("kubeforge.cli.network")

app = typer.Typer(help="Manage the pod network plugin.")


def parse_pairs(pairs: List[str]) -> Dict[str, str]:
    """Turn ["a=1", "b=2"] into {"a": "1", "b": "2"}."""
    result: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got {pair!r}")
        result[key] = value
    return result


def _installer(ctx: typer.Context) -> NetworkPluginInstaller:
    settings = get_settings(ctx)
    runner = make_runner(settings)
    poller = make_pod_poller(settings, runner)
    return NetworkPluginInstaller(runner, settings, poller=poller, query=poller.query)


@app.command("install")
def install(
    ctx: typer.Context,
    plugin: str = typer.Option("calico", "--plugin", "-p", help="calico, flannel, weave or cilium (or 1-4)"),
    pod_cidr: str = typer.Option("10.244.0.0/16", "--pod-cidr", help="Pod network CIDR"),
    mtu: int = typer.Option(0, help="Interface MTU (0 to autodetect)"),
    encryption: bool = typer.Option(False, "--encryption", help="Enable WireGuard encryption"),
    ebpf: bool = typer.Option(False, "--ebpf", help="Cilium: enable eBPF masquerading and kube-proxy replacement"),
    ipip_mode: str = typer.Option("Always", "--ipip-mode", help="Calico IPIP mode"),
    vxlan_mode: str = typer.Option("CrossSubnet", "--vxlan-mode", help="Calico VXLAN mode"),
    values: Optional[List[str]] = typer.Option(None, "--set", help="Extra key=value passed to the plugin"),
):
    """Install a pod network plugin and wait for it to become ready."""
    try:
        selected = NetworkPlugin.from_selection(plugin) if plugin.strip().isdigit() else NetworkPlugin.from_name(plugin)
        config = replace(
            default_network_config(),
            plugin=selected,
            pod_cidr=pod_cidr,
            mtu=mtu,
            enable_encryption=encryption,
            enable_ebpf=ebpf,
            ipip_mode=ipip_mode,
            vxlan_mode=vxlan_mode,
            custom_values=parse_pairs(values or []),
        )
        outcome = _installer(ctx).install(config)
    except KubeforgeError as e:
        raise fail(e)

    if not outcome.ready:
        logger.warning(f"⚠️  {selected.title} pods were not all running after {int(outcome.elapsed)} seconds")


@app.command("detect")
def detect(ctx: typer.Context):
    """Print the network plugin currently running in the cluster."""
    try:
        plugin = _installer(ctx).detect_current_plugin()
    except KubeforgeError as e:
        raise fail(e)
    if plugin is None:
        typer.echo("No network plugin detected")
        raise typer.Exit(code=1)
    typer.echo(plugin.value)


@app.command("test")
def test(ctx: typer.Context):
    """Check pod-to-pod connectivity with two throwaway pods."""
    settings = get_settings(ctx)
    runner = make_runner(settings)
    try:
        check_network_connectivity(runner, settings, make_pod_poller(settings, runner))
    except KubeforgeError as e:
        raise fail(e)


@app.command("version")
def version(ctx: typer.Context):
    """Print the running Calico version."""
    try:
        typer.echo(_installer(ctx).calico_version())
    except KubeforgeError as e:
        raise fail(e)
