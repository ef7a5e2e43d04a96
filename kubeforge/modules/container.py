"""containerd installation and configuration."""
import logging
from typing import List

from ..config import PathsConfig, ReleaseConfig
from ..exceptions import UnsupportedDistributionError
from ..models import Distribution
from .render import docker_apt_source, enable_systemd_cgroup
from .runner import CommandRunner
from .steps import Step, StepReport, fatal, run_steps

logger = logging.getLogger("kubeforge.container")


class ContainerdInstaller:
    """Installs containerd.io from Docker's repository and switches it to the systemd cgroup driver."""

    def __init__(self, runner: CommandRunner, dist: Distribution, paths: PathsConfig, releases: ReleaseConfig):
        self.runner = runner
        self.dist = dist
        self.paths = paths
        self.releases = releases

    @property
    def repo_url(self) -> str:
        return f"{self.releases.docker_repo_base}/{self.dist.name.lower()}"

    def codename(self) -> str:
        """Distribution codename from os-release, else lsb_release."""
        if self.dist.codename:
            return self.dist.codename
        return self.runner.run(["lsb_release", "-cs"]).stdout.strip()

    def architecture(self) -> str:
        return self.runner.run(["dpkg", "--print-architecture"]).stdout.strip()

    def add_docker_key(self) -> None:
        logger.info("🔑 Adding Docker's GPG key...")
        self.runner.shell(
            f"curl -fsSL {self.repo_url}/gpg | gpg --dearmor --yes -o {self.paths.docker_keyring}"
        )

    def add_apt_repository(self) -> None:
        source = docker_apt_source(
            self.releases.docker_repo_base,
            self.dist.name,
            self.codename(),
            self.architecture(),
            self.paths.docker_keyring,
        )
        self.runner.write_file(f"{self.paths.apt_sources_dir}/docker.list", source)
        self.runner.run(["apt-get", "update"])

    def add_yum_repository(self) -> None:
        self.runner.run(["yum-config-manager", "--add-repo", f"{self.repo_url}/docker-ce.repo"])

    def install_package(self) -> None:
        logger.info("📦 Installing containerd.io...")
        if self.dist.is_debian:
            self.runner.run(["apt-get", "install", "-y", "containerd.io"])
        else:
            self.runner.run(["yum", "install", "-y", "containerd.io"])

    def configure(self) -> None:
        """Write containerd's default config with SystemdCgroup enabled."""
        logger.info("🔧 Configuring containerd...")
        default = self.runner.run(["containerd", "config", "default"]).stdout
        self.runner.write_file(self.paths.containerd_config, enable_systemd_cgroup(default))

    def restart(self) -> None:
        self.runner.run(["systemctl", "restart", "containerd"])
        self.runner.run(["systemctl", "enable", "containerd"])

    def steps(self) -> List[Step]:
        if self.dist.is_debian:
            repository = [
                fatal("add Docker GPG key", self.add_docker_key),
                fatal("add Docker apt repository", self.add_apt_repository),
            ]
        elif self.dist.is_redhat:
            repository = [fatal("add Docker yum repository", self.add_yum_repository)]
        else:
            raise UnsupportedDistributionError(
                f"unsupported distribution for containerd installation: {self.dist.name or 'unknown'}"
            )
        return repository + [
            fatal("install containerd", self.install_package),
            fatal("configure containerd", self.configure),
            fatal("restart containerd", self.restart),
        ]

    def install(self) -> StepReport:
        report = run_steps(self.steps())
        logger.info("✅ containerd installed and running")
        return report
