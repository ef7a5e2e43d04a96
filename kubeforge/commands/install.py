import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml
from jsonschema import ValidationError, validate

from ..config import KubeforgeConfig
from ..exceptions import AnswersError, KubeforgeError, UnsupportedPluginError
from ..models import ClusterConfig, NetworkPlugin, default_cluster_config, default_network_config
from ..modules.addons import check_cluster_status, check_network_connectivity, install_dashboard
from ..modules.container import ContainerdInstaller
from ..modules.kubernetes import KubernetesInstaller, get_default_ip
from ..modules.network import NetworkPluginInstaller, validate_cidr
from ..modules.runner import CommandRunner
from ..modules.system import SystemPreparer
from ..utils import redact_sensitive_data
from ..utils.prompt import Prompter
from . import detect_distribution, fail, get_settings, make_pod_poller, make_runner, require_root

logger = logging.getLogger("kubeforge.cli.install")

ANSWERS_SCHEMA = {
    "type": "object",
    "properties": {
        "control_plane": {"type": "boolean"},
        "pod_cidr": {"type": "string"},
        "service_cidr": {"type": "string"},
        "api_server_address": {"type": "string"},
        "cluster_name": {"type": "string"},
        "high_availability": {"type": "boolean"},
        "control_plane_endpoint": {"type": "string"},
        "reinstall_plugin": {"type": "boolean"},
        "plugin": {"type": ["string", "integer"]},
        "encryption": {"type": "boolean"},
        "connectivity_test": {"type": "boolean"},
        "continue_on_failure": {"type": "boolean"},
        "dashboard": {"type": "boolean"},
        "join_command": {"type": "string"},
        "kubernetes_version": {"type": "string"},
        "node_name": {"type": "string"},
        "mtu": {"type": "integer", "minimum": 0},
        "labels": {"type": "object", "additionalProperties": {"type": "string"}},
        "taints": {"type": "array", "items": {"type": "string"}},
        "custom_values": {"type": "object", "additionalProperties": {"type": "string"}},
    },
    "additionalProperties": False,
}

PLUGIN_MENU = ("Calico", "Flannel", "Weave", "Cilium")


def load_answers(path: Path) -> Dict[str, Any]:
    """Read and validate an answers file.

    Raises:
        AnswersError: If the file is unreadable, not YAML, or fails ANSWERS_SCHEMA
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise AnswersError(f"failed to load answers from {path}: {e}") from e

    try:
        validate(instance=data, schema=ANSWERS_SCHEMA)
    except ValidationError as ve:
        raise AnswersError(f"invalid answers file {path}: {ve.message}") from ve

    logger.info(f"📄 Loaded answers from {path}")
    logger.debug(f"Answers: {redact_sensitive_data(data)}")
    return data


def select_plugin(prompter: Prompter) -> NetworkPlugin:
    if "plugin" not in prompter.answers:
        typer.echo("Available network plugins:")
        for number, name in enumerate(PLUGIN_MENU, start=1):
            typer.echo(f"{number}. {name}")

    selection = prompter.ask("plugin", "Select network plugin (1-4)", "1")
    try:
        return NetworkPlugin.from_selection(selection)
    except UnsupportedPluginError:
        pass
    try:
        return NetworkPlugin.from_name(selection)
    except UnsupportedPluginError:
        logger.error(f"❌ Invalid selection {selection!r}, defaulting to Calico")
        return NetworkPlugin.CALICO


def prompt_cluster_config(prompter: Prompter, runner: CommandRunner) -> ClusterConfig:
    cluster = default_cluster_config()
    pod_cidr = prompter.ask("pod_cidr", "Enter Pod Network CIDR", cluster.pod_cidr)
    validate_cidr(pod_cidr)
    service_cidr = prompter.ask("service_cidr", "Enter Service CIDR", cluster.service_cidr)
    validate_cidr(service_cidr)
    api_address = prompter.ask("api_server_address", "Enter API Server Advertise Address", get_default_ip(runner))
    cluster_name = prompter.ask("cluster_name", "Enter Cluster Name", cluster.cluster_name)

    high_availability = prompter.confirm("high_availability", "Is this a high availability setup?")
    endpoint = ""
    if high_availability:
        endpoint = prompter.ask(
            "control_plane_endpoint", "Enter control plane endpoint (DNS/IP:port)", f"{api_address}:6443"
        )

    return replace(
        cluster,
        is_control_plane=True,
        pod_cidr=pod_cidr,
        service_cidr=service_cidr,
        api_server_address=api_address,
        cluster_name=cluster_name,
        high_availability=high_availability,
        control_plane_endpoint=endpoint,
        kubernetes_version=str(prompter.get("kubernetes_version", "")),
        node_name=str(prompter.get("node_name", "")),
        labels=dict(prompter.get("labels", {})),
        taints=tuple(prompter.get("taints", ())),
    )


def print_join_commands(kube: KubernetesInstaller, cluster: ClusterConfig) -> None:
    try:
        join_command = kube.generate_join_command()
    except KubeforgeError as e:
        logger.error(f"❌ Failed to generate join command: {e}")
        return

    typer.secho("Worker node join command:", fg=typer.colors.BLUE)
    typer.secho(join_command, fg=typer.colors.YELLOW)
    typer.secho("Save this command to run on your worker nodes.", fg=typer.colors.BLUE)

    if not cluster.high_availability:
        return
    try:
        certificate_key = kube.generate_certificate_key()
    except KubeforgeError as e:
        logger.error(f"❌ Failed to upload control plane certificates: {e}")
        return
    typer.secho("Control plane join command:", fg=typer.colors.BLUE)
    typer.secho(f"{join_command} --control-plane --certificate-key {certificate_key}", fg=typer.colors.YELLOW)


def setup_control_plane(
    settings: KubeforgeConfig,
    runner: CommandRunner,
    kube: KubernetesInstaller,
    prompter: Prompter,
) -> None:
    cluster = kube.init_control_plane(prompt_cluster_config(prompter, runner))

    poller = make_pod_poller(settings, runner)
    network = NetworkPluginInstaller(runner, settings, poller=poller, query=poller.query)
    net_config = replace(
        default_network_config(),
        pod_cidr=cluster.pod_cidr,
        mtu=int(prompter.get("mtu", 0)),
        custom_values=dict(prompter.get("custom_values", {})),
    )

    install_plugin = True
    existing = network.detect_current_plugin()
    if existing is not None:
        logger.info(f"🔍 Detected existing network plugin: {existing.title}")
        install_plugin = prompter.confirm(
            "reinstall_plugin", "Network plugin already installed. Proceed with reinstallation?"
        )
        if not install_plugin:
            logger.info("Skipping network plugin installation")

    if install_plugin:
        plugin = select_plugin(prompter)
        net_config = replace(net_config, plugin=plugin)
        if plugin in (NetworkPlugin.CALICO, NetworkPlugin.CILIUM):
            net_config = replace(
                net_config, enable_encryption=prompter.confirm("encryption", "Enable WireGuard encryption?")
            )
        network.install(net_config)

    if cluster.labels:
        kube.label_node(cluster.node_name, cluster.labels)
    if cluster.taints:
        kube.taint_node(cluster.node_name, cluster.taints)

    if prompter.confirm("connectivity_test", "Test network connectivity?"):
        try:
            check_network_connectivity(runner, settings, poller)
        except KubeforgeError as e:
            logger.warning(f"⚠️  Network connectivity test failed: {e}")
            if not prompter.confirm("continue_on_failure", "Continue despite network test failure?"):
                raise typer.Exit(code=1)
            logger.info("Continuing with installation...")

    print_join_commands(kube, cluster)

    if prompter.confirm("dashboard", "Do you want to install Kubernetes Dashboard?"):
        try:
            token = install_dashboard(runner, settings)
        except KubeforgeError as e:
            logger.error(f"❌ Failed to install Kubernetes Dashboard: {e}")
        else:
            if token:
                typer.secho("Dashboard token:", fg=typer.colors.BLUE)
                typer.echo(token)

    try:
        check_cluster_status(runner)
    except KubeforgeError as e:
        logger.warning(f"⚠️  Cluster status check failed: {e}")

    logger.info("✅ Control plane node setup complete!")
    logger.info("Your Kubernetes cluster is now operational.")
    logger.info("Install required tools on your local machine and use: kubectl cluster-info")


def setup_worker(kube: KubernetesInstaller, prompter: Prompter) -> None:
    logger.info("Worker node setup completed.")
    logger.info("Now run the join command from the master node.")
    join_command = prompter.ask(
        "join_command", "Enter the join command from the master node or press Enter to skip", ""
    )
    if join_command:
        kube.join_cluster(join_command)
    else:
        logger.info("Join command skipped. Run the appropriate 'kubeadm join' command manually.")


def run_install(settings: KubeforgeConfig, answers: Optional[Dict[str, Any]] = None) -> None:
    """Prepare this host and bring it into a cluster, interactively."""
    require_root(settings)
    prompter = Prompter(answers)
    try:
        dist = detect_distribution(settings)
        runner = make_runner(settings)

        SystemPreparer(runner, dist, settings.paths).prepare()
        ContainerdInstaller(runner, dist, settings.paths, settings.releases).install()
        kube = KubernetesInstaller(runner, dist, settings)
        kube.install()

        if prompter.confirm("control_plane", "Is this a control plane (master) node?"):
            setup_control_plane(settings, runner, kube, prompter)
        else:
            setup_worker(kube, prompter)
    except KubeforgeError as e:
        raise fail(e)

    logger.info("✅ Kubernetes installation completed successfully!")


def install_cmd(
    ctx: typer.Context,
    answers: Optional[Path] = typer.Option(None, "--answers", "-a", help="YAML file answering the interactive prompts"),
):
    """Prepare this host and initialize or join a cluster."""
    settings = get_settings(ctx)
    data = None
    if answers:
        try:
            data = load_answers(answers)
        except AnswersError as e:
            raise fail(e)
    run_install(settings, data)
