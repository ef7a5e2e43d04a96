"""Host preparation: packages, swap, kernel modules and sysctl."""
import logging
import os
from typing import List, Sequence

from ..config import PathsConfig
from ..exceptions import ReadError
from ..models import Distribution
from .render import KERNEL_MODULES, render_modules_load, render_sysctl
from .runner import CommandRunner
from .steps import Step, StepReport, fatal, run_steps, warn

logger = logging.getLogger("kubeforge.system")

DEBIAN_PREREQUISITES = (
    "apt-transport-https",
    "ca-certificates",
    "curl",
    "software-properties-common",
    "gnupg2",
)
REDHAT_PREREQUISITES = ("yum-utils", "device-mapper-persistent-data", "lvm2", "curl")


def check_root() -> bool:
    """Return True when running with an effective uid of 0."""
    return os.geteuid() == 0


def comment_swap_entries(lines: Sequence[str]) -> List[str]:
    """Comment out active swap entries of an fstab.

    Any line mentioning swap that is not already a comment gets a "# " prefix.
    Other lines are returned untouched, in order.
    """
    return [
        f"# {line}" if "swap" in line and not line.strip().startswith("#") else line
        for line in lines
    ]


class SystemPreparer:
    """Gets a fresh host into the state kubeadm expects."""

    def __init__(self, runner: CommandRunner, dist: Distribution, paths: PathsConfig):
        self.runner = runner
        self.dist = dist
        self.paths = paths

    def update(self) -> None:
        logger.info("📦 Updating system packages...")
        if self.dist.is_debian:
            self.runner.run(["apt-get", "update"])
            self.runner.run(["apt-get", "upgrade", "-y"])
        elif self.dist.is_redhat:
            self.runner.run(["yum", "update", "-y"])
        else:
            logger.warning("⚠️  Unsupported distribution for automatic updates. Please update manually.")

    def install_dependencies(self) -> None:
        logger.info("📦 Installing dependencies...")
        package_manager = self.dist.package_manager
        if package_manager is None:
            logger.warning(
                "⚠️  Unsupported distribution for automatic dependency installation. "
                "Please install dependencies manually."
            )
            return
        prerequisites = DEBIAN_PREREQUISITES if self.dist.is_debian else REDHAT_PREREQUISITES
        self.runner.run([package_manager, "install", "-y", *prerequisites])

    def disable_swap(self) -> None:
        logger.info("🔧 Disabling swap...")
        self.runner.run(["swapoff", "-a"])

        try:
            with open(self.paths.fstab, "r") as f:
                text = f.read()
        except OSError as e:
            raise ReadError(self.paths.fstab, e) from e

        updated = "\n".join(comment_swap_entries(text.split("\n")))
        if updated != text:
            self.runner.write_file(self.paths.fstab, updated)

    def write_kernel_modules(self) -> None:
        logger.info("🔧 Configuring kernel modules...")
        self.runner.write_file(self.paths.modules_load, render_modules_load())

    def load_module(self, module: str) -> None:
        self.runner.run(["modprobe", module])

    def configure_sysctl(self) -> None:
        logger.info("🔧 Applying sysctl parameters...")
        self.runner.write_file(self.paths.sysctl_conf, render_sysctl())
        self.runner.run(["sysctl", "--system"])

    def steps(self) -> List[Step]:
        steps = [
            fatal("update system packages", self.update),
            fatal("install dependencies", self.install_dependencies),
            fatal("disable swap", self.disable_swap),
            fatal("write kernel module list", self.write_kernel_modules),
        ]
        for module in KERNEL_MODULES:
            steps.append(warn(f"load kernel module {module}", lambda m=module: self.load_module(m)))
        steps.append(fatal("configure sysctl", self.configure_sysctl))
        return steps

    def prepare(self) -> StepReport:
        report = run_steps(self.steps())
        if report.clean:
            logger.info("✅ System prepared for Kubernetes")
        else:
            logger.warning(f"⚠️  System prepared for Kubernetes with {len(report.warnings)} warning(s)")
        return report
