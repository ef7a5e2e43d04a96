"""Helpers shared by the CLI commands."""
import logging

import typer

from ..config import KubeforgeConfig
from ..models import Distribution
from ..modules import distro
from ..modules.readiness import PodReadinessPoller, make_poller
from ..modules.runner import CommandRunner
from ..modules.system import check_root

logger = logging.getLogger("kubeforge.cli")


def get_settings(ctx: typer.Context) -> KubeforgeConfig:
    """Settings loaded by the top-level callback."""
    if isinstance(ctx.obj, KubeforgeConfig):
        return ctx.obj
    ctx.obj = KubeforgeConfig.load()
    return ctx.obj


def make_runner(settings: KubeforgeConfig) -> CommandRunner:
    return CommandRunner(dry_run=settings.dry_run)


def make_pod_poller(settings: KubeforgeConfig, runner: CommandRunner) -> PodReadinessPoller:
    return make_poller(settings, runner)


def require_root(settings: KubeforgeConfig) -> None:
    if settings.dry_run:
        return
    if not check_root():
        logger.error("❌ This command must be run as root")
        raise typer.Exit(code=1)


def detect_distribution(settings: KubeforgeConfig) -> Distribution:
    dist = distro.detect(settings.paths.os_release)
    logger.info(f"🐧 Detected Linux distribution: {dist.name} {dist.version}")
    return dist


def fail(error: Exception) -> typer.Exit:
    """Log a fatal error and build the exit to raise."""
    logger.error(f"❌ {error}")
    return typer.Exit(code=1)
