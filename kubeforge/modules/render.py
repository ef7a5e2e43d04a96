"""Pure renderers turning configuration objects into manifest and config text.

Nothing here touches the host: each function maps config values to a string
so the output can be checked without running a command. YAML documents are
rendered from Jinja2 templates in the ``templates`` directory next to this
module; the one-line config files are built inline.
"""
import logging
import os
from typing import Any, Iterable, Mapping

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
)

from ..exceptions import RenderError
from ..models import ClusterConfig, NetworkConfig

logger = logging.getLogger("kubeforge.render")

KERNEL_MODULES = ("overlay", "br_netfilter")

SYSCTL_PARAMS = {
    "net.bridge.bridge-nf-call-iptables": "1",
    "net.bridge.bridge-nf-call-ip6tables": "1",
    "net.ipv4.ip_forward": "1",
}

KUBERNETES_KEYRING = "/etc/apt/keyrings/kubernetes-apt-keyring.gpg"


def get_template_path() -> str:
    """Get the absolute path to the templates directory."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')


_env = Environment(
    loader=FileSystemLoader(get_template_path()),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)


def render_template(template_name: str, **context: Any) -> str:
    """Render one of the bundled templates.

    Raises:
        RenderError: If the template is missing, malformed, or references an unset value
    """
    logger.debug(f"Rendering template {template_name}")
    try:
        return _env.get_template(template_name).render(**context)
    except TemplateNotFound as e:
        raise RenderError(f"template not found: {e.name}") from e
    except (TemplateSyntaxError, UndefinedError) as e:
        raise RenderError(f"failed to render {template_name}: {e}") from e


def encapsulation_mode(ipip_mode: str, vxlan_mode: str) -> str:
    """Calico IP pool encapsulation for the given IPIP/VXLAN modes.

    VXLAN wins whenever it is enabled; IPIP is the fallback unless it is
    disabled too.
    """
    if vxlan_mode != "Never":
        return "VXLAN" + vxlan_mode
    if ipip_mode == "Never":
        return "None"
    return "IPIP"


def nat_outgoing_value(enabled: bool) -> str:
    return "Enabled" if enabled else "Disabled"


def render_calico_resources(config: NetworkConfig) -> str:
    """Render the Calico operator Installation resource."""
    return render_template(
        "calico-custom-resources.yaml.j2",
        block_size=config.block_size,
        pod_cidr=config.pod_cidr,
        encapsulation=encapsulation_mode(config.ipip_mode, config.vxlan_mode),
        nat_outgoing=nat_outgoing_value(config.enable_nat_outgoing),
        mtu=config.mtu,
        enable_encryption=config.enable_encryption,
        custom_values=config.sorted_custom_values(),
    )


def render_flannel_manifest(config: NetworkConfig, image: str) -> str:
    return render_template(
        "kube-flannel.yaml.j2",
        pod_cidr=config.pod_cidr,
        mtu=config.mtu,
        image=image,
    )


def render_kubeadm_config(cluster: ClusterConfig) -> str:
    """Render the kubeadm InitConfiguration + ClusterConfiguration document.

    controlPlaneEndpoint is only emitted for HA clusters that have an
    endpoint; kubernetesVersion only when a version is pinned.
    """
    endpoint = cluster.control_plane_endpoint if cluster.high_availability else ""
    return render_template(
        "kubeadm-config.yaml.j2",
        node_name=cluster.node_name,
        advertise_address=cluster.api_server_address,
        cluster_name=cluster.cluster_name,
        pod_cidr=cluster.pod_cidr,
        service_cidr=cluster.service_cidr,
        control_plane_endpoint=endpoint,
        kubernetes_version=cluster.kubernetes_version,
    )


def render_kubernetes_repo(repo_base: str) -> str:
    return render_template("kubernetes.repo.j2", repo_base=repo_base)


def render_dashboard_admin_user(user: str = "admin-user", namespace: str = "kubernetes-dashboard") -> str:
    return render_template("dashboard-admin-user.yaml.j2", user=user, namespace=namespace)


def render_test_pod(name: str, namespace: str, image: str = "busybox:stable") -> str:
    return render_template("network-test-pod.yaml.j2", name=name, namespace=namespace, image=image)


def render_modules_load(modules: Iterable[str] = KERNEL_MODULES) -> str:
    return "".join(f"{module}\n" for module in modules)


def render_sysctl(params: Mapping[str, str] = SYSCTL_PARAMS) -> str:
    width = max(len(key) for key in params) if params else 0
    return "".join(f"{key:<{width}} = {value}\n" for key, value in params.items())


def docker_apt_source(repo_base: str, distro_name: str, codename: str, arch: str, keyring: str) -> str:
    return (
        f"deb [arch={arch} signed-by={keyring}] "
        f"{repo_base}/{distro_name.lower()} {codename} stable\n"
    )


def kubernetes_apt_source(repo_base: str, keyring: str = KUBERNETES_KEYRING) -> str:
    return f"deb [signed-by={keyring}] {repo_base}/deb/ /\n"


def enable_systemd_cgroup(config_text: str) -> str:
    """Switch containerd's runc cgroup driver to systemd."""
    return config_text.replace("SystemdCgroup = false", "SystemdCgroup = true")
