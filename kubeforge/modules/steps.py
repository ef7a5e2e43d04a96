"""Declarative step lists with per-step severity."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional

from ..exceptions import KubeforgeError, StepError

logger = logging.getLogger("kubeforge.steps")


class Severity(str, Enum):
    """How a failing step affects the run."""
    FATAL = 'fatal'
    WARN = 'warn'


@dataclass(frozen=True)
class Step:
    """A named action and what happens when it fails."""
    name: str
    action: Callable[[], Any]
    severity: Severity = Severity.FATAL


@dataclass
class StepReport:
    """What happened to each step of a run."""
    completed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.warnings


def fatal(name: str, action: Callable[[], Any]) -> Step:
    return Step(name, action, Severity.FATAL)


def warn(name: str, action: Callable[[], Any]) -> Step:
    return Step(name, action, Severity.WARN)


def run_steps(steps: Iterable[Step], report: Optional[StepReport] = None) -> StepReport:
    """Run steps in order.

    A failing FATAL step raises StepError carrying the step name and stops the
    sequence. A failing WARN step is logged and the sequence continues.
    Nothing already done is rolled back.
    """
    report = report if report is not None else StepReport()
    for step in steps:
        logger.debug(f"==> {step.name}")
        try:
            step.action()
        except (KubeforgeError, OSError) as e:
            if step.severity == Severity.WARN:
                logger.warning(f"⚠️  {step.name} failed (continuing): {e}")
                report.warnings.append(f"{step.name}: {e}")
                continue
            logger.error(f"❌ {step.name} failed: {e}")
            raise StepError(step.name, e) from e
        report.completed.append(step.name)
    return report
