"""Data models for kubeforge."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .exceptions import UnsupportedPluginError


class DistroKind(str, Enum):
    """Linux distribution families kubeforge knows how to provision."""
    DEBIAN = 'debian'
    REDHAT = 'redhat'
    UNKNOWN = 'unknown'


@dataclass(frozen=True)
class Distribution:
    """The host's Linux distribution as read from /etc/os-release."""
    kind: DistroKind
    name: str = ''
    version: str = ''
    codename: str = ''

    @property
    def is_debian(self) -> bool:
        return self.kind == DistroKind.DEBIAN

    @property
    def is_redhat(self) -> bool:
        return self.kind == DistroKind.REDHAT

    @property
    def major_version(self) -> int:
        """Leading integer of the version ("8.6" -> 8), 0 when absent."""
        digits = ''
        for char in self.version:
            if not char.isdigit():
                break
            digits += char
        return int(digits) if digits else 0

    @property
    def package_manager(self) -> Optional[str]:
        if self.is_debian:
            return 'apt-get'
        if self.is_redhat:
            return 'yum'
        return None


class NetworkPlugin(str, Enum):
    """Supported pod network implementations."""
    CALICO = 'calico'
    FLANNEL = 'flannel'
    WEAVE = 'weave'
    CILIUM = 'cilium'

    @classmethod
    def from_name(cls, name: str) -> 'NetworkPlugin':
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise UnsupportedPluginError(f"unsupported network plugin: {name}") from None

    @classmethod
    def from_selection(cls, selection: str) -> 'NetworkPlugin':
        """Map a 1-based menu choice to a plugin."""
        options = list(cls)
        try:
            index = int(str(selection).strip())
        except ValueError:
            raise UnsupportedPluginError(f"invalid network plugin selection: {selection}") from None
        if not 1 <= index <= len(options):
            raise UnsupportedPluginError(f"invalid network plugin selection: {selection}")
        return options[index - 1]

    @property
    def label_selector(self) -> str:
        return PLUGIN_SELECTORS[self]

    @property
    def title(self) -> str:
        return self.value.capitalize()


PLUGIN_SELECTORS: Dict[NetworkPlugin, str] = {
    NetworkPlugin.CALICO: 'k8s-app=calico-node',
    NetworkPlugin.FLANNEL: 'app=flannel',
    NetworkPlugin.WEAVE: 'name=weave-net',
    NetworkPlugin.CILIUM: 'k8s-app=cilium',
}


@dataclass(frozen=True)
class ClusterConfig:
    """Parameters for initializing or joining a kubeadm cluster."""
    pod_cidr: str = '10.244.0.0/16'
    service_cidr: str = '10.96.0.0/12'
    api_server_address: str = ''
    cluster_name: str = 'kubeforge-cluster'
    kubernetes_version: str = ''
    is_control_plane: bool = False
    high_availability: bool = False
    control_plane_endpoint: str = ''
    node_name: str = ''
    labels: Dict[str, str] = field(default_factory=dict)
    taints: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NetworkConfig:
    """Options for the pod network plugin."""
    plugin: NetworkPlugin = NetworkPlugin.CALICO
    pod_cidr: str = '10.244.0.0/16'
    mtu: int = 0  # 0 lets the plugin autodetect
    ipip_mode: str = 'Always'
    vxlan_mode: str = 'CrossSubnet'
    enable_encryption: bool = False
    enable_nat_outgoing: bool = True
    block_size: int = 26
    enable_ebpf: bool = False
    kube_proxy_replacement: str = 'strict'
    custom_values: Dict[str, str] = field(default_factory=dict)

    def sorted_custom_values(self) -> List[Tuple[str, str]]:
        return sorted(self.custom_values.items())


def default_cluster_config() -> ClusterConfig:
    """Return a fresh cluster configuration with kubeforge defaults."""
    return ClusterConfig(labels={}, taints=())


def default_network_config() -> NetworkConfig:
    """Return a fresh network configuration with kubeforge defaults."""
    return NetworkConfig(custom_values={})
