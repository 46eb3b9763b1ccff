"""Sequential step driver shared by the build and deploy workflows."""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from deploykit.models import StepContext

logger = logging.getLogger("deploykit")

SUCCESS = "success"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass(frozen=True)
class Step:
    """One named unit of pipeline work.

    ``include`` is decided before the run starts; excluded steps are reported
    as skipped and never called.
    """

    name: str
    callback: Callable[[StepContext], None]
    include: bool = True


@dataclass(frozen=True)
class StepOutcome:
    name: str
    status: str
    error: Optional[BaseException] = None


@dataclass
class PipelineResult:
    outcomes: List[StepOutcome] = field(default_factory=list)

    @property
    def failed_step(self) -> Optional[StepOutcome]:
        for outcome in self.outcomes:
            if outcome.status == FAILED:
                return outcome
        return None

    @property
    def succeeded(self) -> bool:
        return self.failed_step is None

    @property
    def completed_steps(self) -> List[str]:
        return [outcome.name for outcome in self.outcomes if outcome.status == SUCCESS]


class PipelineDriver:
    """Runs steps strictly in order and stops at the first failure."""

    def __init__(self, steps: List[Step], report_service=None):
        self.steps = list(steps)
        self.report_service = report_service

    def run(self, context: StepContext) -> PipelineResult:
        result = PipelineResult()

        for step in self.steps:
            if not step.include:
                logger.debug("Skipping step: %s", step.name)
                result.outcomes.append(StepOutcome(step.name, SKIPPED))
                if self.report_service:
                    self.report_service.step_skipped(step.name)
                continue

            logger.debug("Starting step: %s", step.name)
            if self.report_service:
                self.report_service.step_started(step.name)

            try:
                step.callback(context)
            except Exception as exc:
                logger.debug("Step %s failed: %s", step.name, exc)
                result.outcomes.append(StepOutcome(step.name, FAILED, error=exc))
                if self.report_service:
                    self.report_service.step_finished(step.name, FAILED, error=str(exc))
                return result

            result.outcomes.append(StepOutcome(step.name, SUCCESS))
            if self.report_service:
                self.report_service.step_finished(step.name, SUCCESS)

        return result
