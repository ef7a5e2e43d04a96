"""Bounded polling for pods to reach the Running phase.

The poller is a small state machine: it starts in POLLING and ends in READY
or TIMED_OUT. Each round checks the deadline first, then samples the phases
of every pod matching a label selector. Time, sleeping and the pod query are
injected so tests can drive the loop without a cluster.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from ..config import KubeforgeConfig
from ..exceptions import KubeforgeError, PodReadinessTimeout
from ..utils.kube import core_v1_api
from .runner import CommandRunner

logger = logging.getLogger("kubeforge.readiness")

RUNNING = "Running"

PodQuery = Callable[[str], List[str]]


class PollState(str, Enum):
    POLLING = 'polling'
    READY = 'ready'
    TIMED_OUT = 'timed_out'


@dataclass
class PollOutcome:
    """Where a poll ended up and what it saw along the way."""
    selector: str
    state: PollState = PollState.POLLING
    elapsed: float = 0.0
    samples: int = 0
    last_phases: List[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return self.state == PollState.READY


def is_ready(phases: Sequence[str]) -> bool:
    """At least one pod, and every pod Running."""
    return len(phases) > 0 and all(phase == RUNNING for phase in phases)


class PodReadinessPoller:
    """Waits until all pods matching a selector are Running.

    Args:
        query: Returns the phases of the pods matching a selector
        interval: Seconds to sleep between samples
        clock: Monotonic time source
        sleep: Blocking sleep function
    """

    def __init__(
        self,
        query: PodQuery,
        interval: float = 10,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.query = query
        self.interval = interval
        self.clock = clock
        self.sleep = sleep

    def wait(self, selector: str, timeout: float) -> PollOutcome:
        """Poll until ready or until more than ``timeout`` seconds have passed.

        Returns:
            PollOutcome in the READY state

        Raises:
            PodReadinessTimeout: Carrying the TIMED_OUT outcome
        """
        outcome = PollOutcome(selector=selector)
        start = self.clock()

        while outcome.state == PollState.POLLING:
            outcome.elapsed = self.clock() - start
            if outcome.elapsed > timeout:
                outcome.state = PollState.TIMED_OUT
                break

            try:
                phases = list(self.query(selector))
            except (KubeforgeError, OSError) as e:
                logger.debug(f"Pod query for {selector} failed, treating as not ready: {e}")
                phases = []
            outcome.samples += 1
            outcome.last_phases = phases

            if is_ready(phases):
                outcome.state = PollState.READY
                break

            logger.info(f"⏳ Waiting for pods to be ready... ({int(outcome.elapsed)} seconds elapsed)")
            self.sleep(self.interval)

        if outcome.state == PollState.TIMED_OUT:
            raise PodReadinessTimeout(outcome)

        logger.info(f"✅ All pods with selector {selector} are running")
        return outcome


def kubectl_pod_phases(runner: CommandRunner) -> PodQuery:
    """Pod query backed by ``kubectl get pods``."""

    def query(selector: str) -> List[str]:
        result = runner.run([
            "kubectl", "get", "pods", "-l", selector, "--all-namespaces",
            "-o", "jsonpath={.items[*].status.phase}",
        ])
        return result.stdout.split()

    return query


def api_pod_phases(core_v1) -> PodQuery:
    """Pod query backed by the Kubernetes Python client."""

    def query(selector: str) -> List[str]:
        try:
            pods = core_v1.list_pod_for_all_namespaces(label_selector=selector)
        except (ApiException, HTTPError) as e:
            raise KubeforgeError(f"failed to list pods for {selector}: {e}") from e
        return [pod.status.phase for pod in pods.items if pod.status is not None]

    return query


def make_query(settings: KubeforgeConfig, runner: CommandRunner, kubeconfig: Optional[str] = None) -> PodQuery:
    """Build the pod query selected by ``settings.readiness.backend``.

    The api back-end falls back to the configured kubeadm admin kubeconfig.
    """
    if settings.readiness.backend == "api":
        return api_pod_phases(core_v1_api(kubeconfig, settings.paths.admin_kubeconfig))
    return kubectl_pod_phases(runner)


def make_poller(settings: KubeforgeConfig, runner: CommandRunner, kubeconfig: Optional[str] = None) -> PodReadinessPoller:
    return PodReadinessPoller(make_query(settings, runner, kubeconfig), interval=settings.readiness.interval)
