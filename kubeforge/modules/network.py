"""Pod network plugin installation.

Exactly one of Calico, Flannel, Weave Net or Cilium is installed. After the
manifests are applied the installer waits, within a bounded time, for the
plugin's pods to reach Running. A timeout is reported as a warning: the
plugin may still come up on its own.
"""
import logging
import time
from typing import Callable, Dict, List, Optional

import requests

from ..config import KubeforgeConfig
from ..exceptions import CommandError, InvalidCIDRError, KubeforgeError, PodReadinessTimeout, UnsupportedPluginError
from ..models import NetworkConfig, NetworkPlugin
from .readiness import PodQuery, PodReadinessPoller, PollOutcome, kubectl_pod_phases
from .render import encapsulation_mode, render_calico_resources, render_flannel_manifest
from .runner import CommandRunner
from .steps import fatal, run_steps, warn

logger = logging.getLogger("kubeforge.network")

__all__ = [
    "NetworkPluginInstaller",
    "build_cilium_helm_args",
    "encapsulation_mode",
    "validate_cidr",
]


def validate_cidr(cidr: str) -> None:
    """Shallow CIDR check: only the presence of a prefix length separator."""
    if "/" not in cidr:
        raise InvalidCIDRError(f"invalid CIDR format: {cidr}, should be in format x.x.x.x/y")


def build_cilium_helm_args(config: NetworkConfig) -> List[str]:
    """Return the ``--set`` flags for the Cilium chart."""
    values = [f"ipam.operator.clusterPoolIPv4PodCIDR={config.pod_cidr}"]
    if config.mtu > 0:
        values.append(f"mtu={config.mtu}")
    if config.enable_ebpf:
        values.append("bpf.masquerade=true")
        values.append(f"kubeProxyReplacement={config.kube_proxy_replacement}")
    if config.enable_encryption:
        values.append("encryption.enabled=true")
        values.append("encryption.type=wireguard")
    values.extend(f"{key}={value}" for key, value in config.sorted_custom_values())

    args: List[str] = []
    for value in values:
        args.extend(["--set", value])
    return args


class NetworkPluginInstaller:
    """Installs a pod network plugin and waits for it to become healthy.

    Args:
        runner: Executes kubectl and helm
        settings: Release pins, work dir and readiness timings
        poller: Readiness poller; built from the kubectl query when omitted
        query: Pod phase query used for plugin detection
        sleep: Used for the settle delay after the Calico resources are created
    """

    def __init__(
        self,
        runner: CommandRunner,
        settings: KubeforgeConfig,
        poller: Optional[PodReadinessPoller] = None,
        query: Optional[PodQuery] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.runner = runner
        self.settings = settings
        self.query = query or kubectl_pod_phases(runner)
        self.poller = poller or PodReadinessPoller(self.query, interval=settings.readiness.interval)
        self.sleep = sleep
        self._installers: Dict[NetworkPlugin, Callable[[NetworkConfig], PollOutcome]] = {
            NetworkPlugin.CALICO: self.install_calico,
            NetworkPlugin.FLANNEL: self.install_flannel,
            NetworkPlugin.WEAVE: self.install_weave,
            NetworkPlugin.CILIUM: self.install_cilium,
        }

    def install(self, config: NetworkConfig) -> PollOutcome:
        """Install the plugin named by ``config.plugin``.

        Returns:
            PollOutcome, READY or TIMED_OUT

        Raises:
            UnsupportedPluginError: If the plugin is not one of the four supported
            InvalidCIDRError: If the pod CIDR is malformed
            KubeforgeError: If applying the plugin fails
        """
        installer = self._installers.get(config.plugin)
        if installer is None:
            raise UnsupportedPluginError(f"unsupported network plugin: {config.plugin}")
        logger.info(f"🌐 Installing {NetworkPlugin(config.plugin).title} network plugin...")
        return installer(config)

    def wait_for_plugin(self, plugin: NetworkPlugin) -> PollOutcome:
        """Wait for the plugin's pods; a timeout is logged, not raised."""
        logger.info(f"⏳ Waiting for {plugin.title} pods to be ready...")
        try:
            outcome = self.poller.wait(plugin.label_selector, self.settings.readiness.plugin_timeout)
        except PodReadinessTimeout as e:
            logger.warning(f"⚠️  Timed out waiting for {plugin.title} pods: {e}")
            logger.warning("⚠️  Installation may still be in progress")
            return e.outcome
        logger.info(f"✅ {plugin.title} network plugin successfully installed!")
        return outcome

    def install_calico(self, config: NetworkConfig) -> PollOutcome:
        validate_cidr(config.pod_cidr)
        releases = self.settings.releases

        logger.info(f"📦 Deploying Calico operator {releases.calico_version}...")
        self.runner.run(["kubectl", "create", "-f", releases.calico_operator_url], stream=True)

        path = self.settings.paths.work_file("calico-custom-resources.yaml")
        self.runner.write_file(path, render_calico_resources(config))
        logger.info("📦 Applying Calico custom resources...")
        self.runner.run(["kubectl", "create", "-f", str(path)], stream=True)

        # The operator needs a moment before calico-node pods exist
        self.sleep(self.settings.readiness.settle_delay)
        return self.wait_for_plugin(NetworkPlugin.CALICO)

    def install_flannel(self, config: NetworkConfig) -> PollOutcome:
        validate_cidr(config.pod_cidr)

        path = self.settings.paths.work_file("kube-flannel.yaml")
        self.runner.write_file(path, render_flannel_manifest(config, self.settings.releases.flannel_image))
        logger.info("📦 Applying Flannel manifest...")
        self.runner.run(["kubectl", "apply", "-f", str(path)], stream=True)
        return self.wait_for_plugin(NetworkPlugin.FLANNEL)

    def install_weave(self, config: NetworkConfig) -> PollOutcome:
        env = None
        if config.pod_cidr:
            validate_cidr(config.pod_cidr)
            env = {"IPALLOC_RANGE": config.pod_cidr}

        logger.info("📦 Applying Weave Net manifest...")
        self.runner.run(["kubectl", "apply", "-f", self.settings.releases.weave_manifest_url], env=env, stream=True)
        return self.wait_for_plugin(NetworkPlugin.WEAVE)

    def install_cilium(self, config: NetworkConfig) -> PollOutcome:
        repo_url = self.settings.releases.cilium_repo_url
        run_steps([
            fatal("ensure helm", self.ensure_helm),
            fatal("add Cilium Helm repository",
                  lambda: self.runner.run(["helm", "repo", "add", "cilium", repo_url], stream=True)),
            warn("update Helm repositories", lambda: self.runner.run(["helm", "repo", "update"])),
        ])

        logger.info("📦 Installing Cilium with Helm...")
        self.runner.run(
            ["helm", "install", "cilium", "cilium/cilium", "--namespace", "kube-system",
             *build_cilium_helm_args(config)],
            stream=True,
        )
        return self.wait_for_plugin(NetworkPlugin.CILIUM)

    def helm_available(self) -> bool:
        try:
            return self.runner.run(["helm", "version", "--short"], check=False).ok
        except CommandError:
            return False

    def ensure_helm(self) -> None:
        """Install helm with the official get-helm-3 script when it is missing."""
        if self.helm_available():
            return

        url = self.settings.releases.helm_install_script_url
        logger.info(f"📥 Helm not found, downloading installer from {url}")
        try:
            response = requests.get(url, timeout=60)
            response.raise_for_status()
        except requests.RequestException as e:
            raise KubeforgeError(f"failed to download Helm install script: {e}") from e

        script = self.settings.paths.work_file("get-helm-3.sh")
        self.runner.write_file(script, response.text, mode=0o700)
        self.runner.run(["bash", str(script)], stream=True)
        logger.info("✅ Helm installed")

    def detect_current_plugin(self) -> Optional[NetworkPlugin]:
        """Return the first plugin with pods in the cluster, or None."""
        logger.info("🔍 Detecting current network plugin...")
        for plugin in NetworkPlugin:
            try:
                phases = self.query(plugin.label_selector)
            except KubeforgeError as e:
                logger.debug(f"Pod query for {plugin.value} failed: {e}")
                continue
            if phases:
                return plugin
        return None

    def calico_version(self) -> str:
        """Image tag of the first calico-node pod.

        Raises:
            KubeforgeError: If no calico-node pod exists or its image carries no tag
        """
        result = self.runner.run([
            "kubectl", "get", "pods", "-l", NetworkPlugin.CALICO.label_selector, "--all-namespaces",
            "-o", "jsonpath={.items[0].spec.containers[0].image}",
        ])
        image = result.stdout.strip()
        name, sep, tag = image.rpartition(":")
        if not sep or not name or "/" in tag:
            raise KubeforgeError(f"could not parse Calico version from image: {image!r}")
        return tag
