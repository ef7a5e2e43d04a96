"""Exception hierarchy for kubeforge."""
from typing import Optional, Sequence


class KubeforgeError(Exception):
    """Base class for all kubeforge errors."""
    pass


class ReadError(KubeforgeError):
    """Raised when a required system file cannot be read."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        self.path = path
        self.cause = cause
        super().__init__(f"failed to read {path}: {cause}")


class CommandError(KubeforgeError):
    """Raised when an external command cannot be started or exits non-zero."""

    def __init__(
        self,
        cmd: Sequence[str],
        returncode: Optional[int] = None,
        stderr: str = "",
        os_error: Optional[OSError] = None,
        display: Optional[str] = None,
    ):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr or ""
        self.os_error = os_error
        shown = display if display is not None else " ".join(self.cmd)
        if os_error is not None:
            message = f"command '{shown}' could not be started: {os_error}"
        else:
            message = f"command '{shown}' failed with exit code {returncode}"
            if self.stderr.strip():
                message += f": {self.stderr.strip()}"
        super().__init__(message)


class UnsupportedDistributionError(KubeforgeError):
    """Raised by installers that have no recipe for the detected distribution."""
    pass


class InvalidCIDRError(KubeforgeError, ValueError):
    """Raised when a CIDR string is not in x.x.x.x/y form."""
    pass


class UnsupportedPluginError(KubeforgeError, ValueError):
    """Raised for a network plugin outside calico/flannel/weave/cilium."""
    pass


class PodReadinessTimeout(KubeforgeError):
    """Raised when pods matching a selector are not all Running before the deadline."""

    def __init__(self, outcome):
        self.outcome = outcome
        super().__init__(
            f"timeout waiting for pods with selector {outcome.selector} "
            f"after {int(outcome.elapsed)} seconds"
        )


class NodeUpdateError(KubeforgeError):
    """Raised when a node label or taint could not be applied."""
    pass


class RenderError(KubeforgeError):
    """Raised when a manifest template cannot be rendered."""
    pass


class AnswersError(KubeforgeError):
    """Raised when an answers file is missing or fails schema validation."""
    pass


class StepError(KubeforgeError):
    """Raised when a fatal step fails; wraps the underlying error."""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"{step}: {cause}")
