from typing import Dict, List, Optional, Tuple

import pytest

from kubeforge.config import KubeforgeConfig, PathsConfig, ReadinessConfig
from kubeforge.models import Distribution, DistroKind
from kubeforge.modules.runner import CommandRunner


class FakeRunner(CommandRunner):
    """CommandRunner that records commands instead of executing them.

    Responses are matched on the longest registered argument prefix.
    Unmatched commands succeed with empty output.
    """

    def __init__(self, dry_run: bool = False):
        super().__init__(dry_run=dry_run)
        self.calls: List[dict] = []
        self._responses: Dict[Tuple[str, ...], Tuple[int, str, str]] = {}
        self._missing: List[Tuple[str, ...]] = []

    def respond(self, prefix: str, stdout: str = "", returncode: int = 0, stderr: str = ""):
        self._responses[tuple(prefix.split())] = (returncode, stdout, stderr)

    def fail(self, prefix: str, returncode: int = 1, stderr: str = "boom"):
        self.respond(prefix, returncode=returncode, stderr=stderr)

    def missing(self, prefix: str):
        """Make a command behave as if its binary were not installed."""
        self._missing.append(tuple(prefix.split()))

    @property
    def commands(self) -> List[str]:
        return [" ".join(call["args"]) for call in self.calls]

    def ran(self, prefix: str) -> bool:
        return any(command.startswith(prefix) for command in self.commands)

    def call_for(self, prefix: str) -> Optional[dict]:
        for call in self.calls:
            if " ".join(call["args"]).startswith(prefix):
                return call
        return None

    def _match(self, args: List[str]):
        best = None
        for prefix, response in self._responses.items():
            if tuple(args[:len(prefix)]) == prefix and (best is None or len(prefix) > len(best[0])):
                best = (prefix, response)
        return best[1] if best else (0, "", "")

    def _execute(self, args, env, stream):
        self.calls.append({"args": list(args), "env": env, "stream": stream})
        for prefix in self._missing:
            if tuple(args[:len(prefix)]) == prefix:
                raise FileNotFoundError(2, "No such file or directory", args[0])
        return self._match(args)


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    etc = tmp_path / "etc"
    paths = PathsConfig(
        work_dir=str(tmp_path / "work"),
        os_release=str(etc / "os-release"),
        fstab=str(etc / "fstab"),
        modules_load=str(etc / "modules-load.d" / "k8s.conf"),
        sysctl_conf=str(etc / "sysctl.d" / "k8s.conf"),
        containerd_config=str(etc / "containerd" / "config.toml"),
        apt_sources_dir=str(etc / "apt" / "sources.list.d"),
        apt_keyrings_dir=str(etc / "apt" / "keyrings"),
        docker_keyring=str(etc / "keyrings" / "docker-archive-keyring.gpg"),
        yum_repos_dir=str(etc / "yum.repos.d"),
        selinux_config=str(etc / "selinux" / "config"),
        bridge_nf_call_iptables=str(tmp_path / "proc" / "bridge-nf-call-iptables"),
        admin_kubeconfig=str(etc / "kubernetes" / "admin.conf"),
    )
    readiness = ReadinessConfig(
        backend="kubectl", interval=10, plugin_timeout=300, connectivity_timeout=120, settle_delay=0
    )
    return KubeforgeConfig(paths=paths, readiness=readiness, dry_run=False)


@pytest.fixture
def ubuntu():
    return Distribution(DistroKind.DEBIAN, name="ubuntu", version="22.04", codename="jammy")


@pytest.fixture
def centos8():
    return Distribution(DistroKind.REDHAT, name="centos", version="8")


@pytest.fixture
def fedora():
    return Distribution(DistroKind.REDHAT, name="fedora", version="39")


@pytest.fixture
def unknown():
    return Distribution(DistroKind.UNKNOWN, name="arch")
