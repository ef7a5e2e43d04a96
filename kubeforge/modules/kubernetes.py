"""Kubernetes package installation and kubeadm cluster operations."""
import logging
import os
import pwd
import re
import shutil
import socket
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Mapping, Sequence

from ..config import KubeforgeConfig
from ..exceptions import CommandError, KubeforgeError, NodeUpdateError, UnsupportedDistributionError
from ..models import ClusterConfig, Distribution
from .render import kubernetes_apt_source, render_kubeadm_config, render_kubernetes_repo
from .runner import CommandRunner
from .steps import Step, StepReport, fatal, run_steps, warn

logger = logging.getLogger("kubeforge.kubernetes")

PACKAGES = ("kubelet", "kubeadm", "kubectl")

# SELinux tweaks only apply to these; fedora is left alone
RHEL_LIKE = ("rhel", "centos")

_SELINUX_ENFORCING = re.compile(r"^SELINUX=enforcing$", re.MULTILINE)


def get_default_ip(runner: CommandRunner) -> str:
    """First address reported by ``hostname -I``, or 127.0.0.1."""
    try:
        output = runner.run(["hostname", "-I"]).stdout
    except CommandError:
        return "127.0.0.1"
    ips = output.split()
    return ips[0] if ips else "127.0.0.1"


def package_version(version: str) -> str:
    """Version as the package repositories spell it ("v1.29.3" -> "1.29.3")."""
    return version.strip().lstrip("v")


def kubeadm_version(version: str) -> str:
    """Version as kubeadm expects it ("1.29.3" -> "v1.29.3")."""
    return f"v{package_version(version)}"


class KubernetesInstaller:
    """Installs kubelet/kubeadm/kubectl and drives kubeadm.

    Args:
        runner: Command runner used for every host command
        dist: Detected distribution
        settings: Loaded kubeforge settings
        hostname: Returns the node name used when none is configured
    """

    def __init__(
        self,
        runner: CommandRunner,
        dist: Distribution,
        settings: KubeforgeConfig,
        hostname: Callable[[], str] = socket.gethostname,
    ):
        self.runner = runner
        self.dist = dist
        self.settings = settings
        self.paths = settings.paths
        self.hostname = hostname

    @property
    def repo_base(self) -> str:
        return self.settings.releases.kubernetes_repo_base

    @property
    def apt_keyring(self) -> str:
        return f"{self.paths.apt_keyrings_dir}/kubernetes-apt-keyring.gpg"

    def _unsupported(self, action: str) -> UnsupportedDistributionError:
        return UnsupportedDistributionError(
            f"unsupported distribution for {action}: {self.dist.name or 'unknown'}"
        )

    # Installation

    def add_apt_key(self) -> None:
        self.runner.run(["mkdir", "-p", self.paths.apt_keyrings_dir])
        self.runner.shell(
            f"curl -fsSL {self.repo_base}/deb/Release.key | gpg --dearmor --yes -o {self.apt_keyring}"
        )

    def add_apt_repository(self) -> None:
        self.runner.write_file(
            f"{self.paths.apt_sources_dir}/kubernetes.list",
            kubernetes_apt_source(self.repo_base, self.apt_keyring),
        )

    def add_yum_repository(self) -> None:
        self.runner.write_file(f"{self.paths.yum_repos_dir}/kubernetes.repo", render_kubernetes_repo(self.repo_base))

    def set_selinux_permissive(self) -> None:
        path = Path(self.paths.selinux_config)
        if not path.exists():
            logger.debug(f"{path} not present, skipping")
            return
        text = path.read_text()
        updated = _SELINUX_ENFORCING.sub("SELINUX=permissive", text)
        if updated != text:
            self.runner.write_file(path, updated)

    def enable_bridge_netfilter(self) -> None:
        self.runner.write_file(self.paths.bridge_nf_call_iptables, "1\n", mode=None)

    def install_steps(self) -> List[Step]:
        if self.dist.is_debian:
            steps = [
                fatal("add Kubernetes apt key", self.add_apt_key),
                fatal("add Kubernetes apt repository", self.add_apt_repository),
                fatal("update package index", lambda: self.runner.run(["apt-get", "update"])),
                fatal("install Kubernetes packages", lambda: self.runner.run(["apt-get", "install", "-y", *PACKAGES])),
                fatal("hold Kubernetes packages", lambda: self.runner.run(["apt-mark", "hold", *PACKAGES])),
            ]
        elif self.dist.is_redhat:
            steps = [
                fatal("add Kubernetes yum repository", self.add_yum_repository),
                fatal("install Kubernetes packages", lambda: self.runner.run(
                    ["yum", "install", "-y", *PACKAGES, "--disableexcludes=kubernetes"])),
                warn("disable SELinux enforcement", lambda: self.runner.run(["setenforce", "0"])),
                warn("set SELinux to permissive", self.set_selinux_permissive),
            ]
            if self.dist.name in RHEL_LIKE:
                steps += [
                    warn("load br_netfilter", lambda: self.runner.run(["modprobe", "br_netfilter"])),
                    warn("enable bridge-nf-call-iptables", self.enable_bridge_netfilter),
                ]
                if self.dist.major_version >= 8:
                    steps += [
                        warn("use legacy iptables", lambda: self.runner.run(
                            ["alternatives", "--set", "iptables", "/usr/sbin/iptables-legacy"])),
                        warn("use legacy ip6tables", lambda: self.runner.run(
                            ["alternatives", "--set", "ip6tables", "/usr/sbin/ip6tables-legacy"])),
                    ]
        else:
            raise self._unsupported("Kubernetes installation")

        return steps + [
            fatal("enable kubelet", lambda: self.runner.run(["systemctl", "enable", "kubelet"])),
            fatal("start kubelet", lambda: self.runner.run(["systemctl", "start", "kubelet"])),
        ]

    def install(self) -> StepReport:
        logger.info(f"📦 Installing Kubernetes components ({self.settings.releases.kubernetes_repo_version})...")
        report = run_steps(self.install_steps())
        if report.clean:
            logger.info("✅ Kubernetes components installed")
        else:
            logger.warning(f"⚠️  Kubernetes components installed with {len(report.warnings)} warning(s)")
        return report

    # Control plane

    def init_control_plane(self, cluster: ClusterConfig) -> ClusterConfig:
        """Run ``kubeadm init`` from a rendered config and set up kubectl access.

        Returns:
            The cluster config with the node name resolved
        """
        logger.info("🚀 Initializing Kubernetes control plane node...")
        if not cluster.node_name:
            cluster = replace(cluster, node_name=self.hostname())

        config_path = self.paths.work_file("kubeadm-config.yaml")
        steps = [
            fatal("write kubeadm config", lambda: self.runner.write_file(config_path, render_kubeadm_config(cluster))),
            fatal("kubeadm init", lambda: self.runner.run(
                ["kubeadm", "init", "--config", str(config_path), "--upload-certs"], stream=True)),
            fatal("configure kubectl", self.setup_kubectl),
        ]
        sudo_user = os.environ.get("SUDO_USER")
        if sudo_user:
            steps.append(warn(f"configure kubectl for {sudo_user}", lambda: self.setup_kubectl_for_user(sudo_user)))
        run_steps(steps)

        logger.info(f"✅ Control plane initialized on {cluster.node_name}")
        return cluster

    def _copy_admin_kubeconfig(self, home: str) -> Path:
        target = Path(home) / ".kube" / "config"
        if self.runner.dry_run:
            logger.info(f"[DRY RUN] Would copy {self.paths.admin_kubeconfig} to {target}")
            return target
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.paths.admin_kubeconfig, target)
        return target

    def setup_kubectl(self) -> None:
        """Copy the admin kubeconfig for the invoking user."""
        logger.info("🔧 Setting up kubectl configuration...")
        target = self._copy_admin_kubeconfig(str(Path.home()))
        if self.runner.dry_run:
            return
        try:
            os.chown(target, os.getuid(), os.getgid())
        except OSError as e:
            logger.warning(f"⚠️  Failed to set ownership on kubectl config: {e}")

    def setup_kubectl_for_user(self, username: str) -> None:
        logger.info(f"🔧 Setting up kubectl for user {username}")
        try:
            entry = pwd.getpwnam(username)
        except KeyError:
            raise KubeforgeError(f"failed to get home directory for user {username}") from None

        target = self._copy_admin_kubeconfig(entry.pw_dir)
        if self.runner.dry_run:
            return
        os.chown(target.parent, entry.pw_uid, entry.pw_gid)
        os.chown(target, entry.pw_uid, entry.pw_gid)

    # Joining

    def generate_join_command(self) -> str:
        logger.info("🔑 Generating join command for worker nodes...")
        result = self.runner.run(["kubeadm", "token", "create", "--print-join-command"], sensitive=True)
        return result.stdout.strip()

    def generate_certificate_key(self) -> str:
        """Re-upload control plane certificates and return the new certificate key."""
        logger.info("🔑 Uploading control plane certificates...")
        result = self.runner.run(
            ["kubeadm", "init", "phase", "upload-certs", "--upload-certs"], sensitive=True
        )
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not lines:
            raise KubeforgeError("kubeadm did not print a certificate key")
        return lines[-1]

    def join_cluster(self, join_command: str) -> None:
        if not join_command.strip():
            raise KubeforgeError("join command is empty")
        logger.info("🔗 Joining the Kubernetes cluster as a worker node...")
        self.runner.shell(join_command, stream=True, sensitive=True)
        logger.info("✅ Successfully joined the Kubernetes cluster!")

    def join_control_plane(self, join_command: str, certificate_key: str) -> None:
        if not join_command.strip():
            raise KubeforgeError("join command is empty")
        logger.info("🔗 Joining the Kubernetes cluster as a control plane node...")
        self.runner.shell(
            f"{join_command.strip()} --control-plane --certificate-key {certificate_key}",
            stream=True,
            sensitive=True,
        )
        logger.info("✅ Successfully joined as an additional control plane node!")

    # Node metadata

    def label_node(self, node: str, labels: Mapping[str, str]) -> None:
        """Apply labels in order; stop at the first failure, keeping earlier ones."""
        for key, value in labels.items():
            logger.info(f"🏷️  Adding label {key}={value} to node {node}")
            try:
                self.runner.run(["kubectl", "label", "nodes", node, f"{key}={value}", "--overwrite"])
            except CommandError as e:
                raise NodeUpdateError(f"failed to add label {key}={value}: {e}") from e

    def taint_node(self, node: str, taints: Sequence[str]) -> None:
        for taint in taints:
            logger.info(f"🏷️  Adding taint {taint} to node {node}")
            try:
                self.runner.run(["kubectl", "taint", "nodes", node, taint, "--overwrite"])
            except CommandError as e:
                raise NodeUpdateError(f"failed to add taint {taint}: {e}") from e

    # Upgrade

    def upgrade_steps(self, version: str) -> List[Step]:
        pkg = package_version(version)
        target = kubeadm_version(version)
        run = self.runner.run

        if self.dist.is_debian:
            refresh = ["apt-get", "update"]
            kubeadm_pkg = ["apt-get", "install", "-y", "--allow-change-held-packages", f"kubeadm={pkg}-*"]
            node_pkgs = ["apt-get", "install", "-y", "--allow-change-held-packages",
                         f"kubelet={pkg}-*", f"kubectl={pkg}-*"]
        elif self.dist.is_redhat:
            refresh = ["yum", "makecache"]
            kubeadm_pkg = ["yum", "install", "-y", f"kubeadm-{pkg}*", "--disableexcludes=kubernetes"]
            node_pkgs = ["yum", "install", "-y", f"kubelet-{pkg}*", f"kubectl-{pkg}*",
                         "--disableexcludes=kubernetes"]
        else:
            raise self._unsupported("upgrade")

        return [
            fatal("refresh package index", lambda: run(refresh)),
            fatal("upgrade kubeadm", lambda: run(kubeadm_pkg)),
            fatal("plan upgrade", lambda: run(["kubeadm", "upgrade", "plan", target], stream=True)),
            fatal("apply upgrade", lambda: run(["kubeadm", "upgrade", "apply", target, "-y"], stream=True)),
            fatal("upgrade kubelet and kubectl", lambda: run(node_pkgs)),
            fatal("reload systemd", lambda: run(["systemctl", "daemon-reload"])),
            fatal("restart kubelet", lambda: run(["systemctl", "restart", "kubelet"])),
        ]

    def upgrade(self, version: str) -> StepReport:
        logger.info(f"🚀 Upgrading Kubernetes cluster to version {kubeadm_version(version)}")
        report = run_steps(self.upgrade_steps(version))
        logger.info(f"✅ Successfully upgraded Kubernetes control plane to version {kubeadm_version(version)}")
        logger.info("Remember to upgrade all worker nodes too!")
        return report
