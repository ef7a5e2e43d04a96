"""Post-install extras: Kubernetes Dashboard, cluster status and a pod-to-pod connectivity check."""
import logging
import time
from typing import Callable, Optional

from ..config import KubeforgeConfig
from ..exceptions import CommandError, KubeforgeError
from .readiness import PodReadinessPoller
from .render import render_dashboard_admin_user, render_test_pod
from .runner import CommandRunner
from .steps import StepReport, fatal, run_steps, warn

logger = logging.getLogger("kubeforge.addons")

DASHBOARD_NAMESPACE = "kubernetes-dashboard"
DASHBOARD_USER = "admin-user"
DASHBOARD_PROXY_URL = (
    "http://localhost:8001/api/v1/namespaces/kubernetes-dashboard/"
    "services/https:kubernetes-dashboard:/proxy/"
)

TEST_POD_LABEL = "kubeforge.io/network-test"
TEST_PODS = ("network-test-1", "network-test-2")


def install_dashboard(runner: CommandRunner, settings: KubeforgeConfig) -> Optional[str]:
    """Deploy the Dashboard with a cluster-admin service account.

    Returns:
        A login token for the admin user, or None if it could not be created
    """
    logger.info(f"📦 Installing Kubernetes Dashboard {settings.releases.dashboard_version}...")
    runner.run(["kubectl", "apply", "-f", settings.releases.dashboard_manifest_url], stream=True)

    admin_user = settings.paths.work_file("dashboard-admin-user.yaml")
    runner.write_file(admin_user, render_dashboard_admin_user(DASHBOARD_USER, DASHBOARD_NAMESPACE))
    runner.run(["kubectl", "apply", "-f", str(admin_user)], stream=True)

    logger.info("🔑 Creating token for Dashboard login...")
    token = None
    try:
        result = runner.run(
            ["kubectl", "-n", DASHBOARD_NAMESPACE, "create", "token", DASHBOARD_USER], sensitive=True
        )
        token = result.stdout.strip() or None
    except CommandError as e:
        logger.warning(f"⚠️  Failed to create dashboard token: {e}")

    logger.info("To access Dashboard, run: kubectl proxy")
    logger.info(f"Then access: {DASHBOARD_PROXY_URL}")
    return token


def check_cluster_status(runner: CommandRunner) -> StepReport:
    logger.info("🔍 Checking Kubernetes cluster status...")
    return run_steps([
        fatal("get nodes", lambda: runner.run(["kubectl", "get", "nodes"], stream=True)),
        fatal("get pods", lambda: runner.run(["kubectl", "get", "pods", "--all-namespaces"], stream=True)),
        warn("get component status", lambda: runner.run(["kubectl", "get", "componentstatuses"], stream=True)),
    ])


def check_network_connectivity(
    runner: CommandRunner,
    settings: KubeforgeConfig,
    poller: PodReadinessPoller,
    clock: Callable[[], float] = time.time,
) -> None:
    """Ping one test pod from another inside a throwaway namespace.

    Raises:
        KubeforgeError: If the pods never start or the ping fails
    """
    logger.info("🔍 Checking network connectivity between pods...")
    namespace = f"network-test-{int(clock())}"
    runner.run(["kubectl", "create", "namespace", namespace])

    try:
        logger.info("📦 Creating test pods...")
        for name in TEST_PODS:
            manifest = settings.paths.work_file(f"{name}.yaml")
            runner.write_file(manifest, render_test_pod(name, namespace))
            runner.run(["kubectl", "apply", "-f", str(manifest)])

        logger.info("⏳ Waiting for test pods to be ready...")
        poller.wait(f"{TEST_POD_LABEL}={namespace}", settings.readiness.connectivity_timeout)

        source, target = TEST_PODS
        pod_ip = runner.run([
            "kubectl", "get", "pod", target, "-n", namespace, "-o", "jsonpath={.status.podIP}",
        ]).stdout.strip()
        if not pod_ip:
            raise KubeforgeError(f"could not get IP of pod {target}")

        logger.info(f"🔍 Pinging {target} ({pod_ip}) from {source}...")
        runner.run(["kubectl", "exec", source, "-n", namespace, "--", "ping", "-c", "3", pod_ip], stream=True)
    finally:
        try:
            runner.run(["kubectl", "delete", "namespace", namespace, "--wait=false"], check=False)
        except CommandError as e:
            logger.warning(f"⚠️  Failed to delete test namespace {namespace}: {e}")

    logger.info("✅ Network connectivity test successful!")
