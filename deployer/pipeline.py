"""
Pipeline orchestrator: runs a fixed, ordered list of steps against one
network's artifact record.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .artifacts import ArtifactRecord
from .errors import DeploymentError, PrerequisiteError
from .executor import StepExecutor

logger = logging.getLogger(__name__)

SKIPPED = "skipped"
RECORDED = "recorded"


@dataclass(frozen=True)
class Step:
    """One idempotent unit of work.

    The step is skipped when every key in `produces` is recorded; it is
    refused when a key in `requires` is missing.
    """
    name: str
    produces: Tuple[str, ...]
    run: Callable[[StepExecutor], None]
    requires: Tuple[str, ...] = ()


@dataclass
class PipelineReport:
    name: str
    record: ArtifactRecord
    outcomes: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def executed(self) -> List[str]:
        return [name for name, status in self.outcomes if status == RECORDED]

    @property
    def skipped(self) -> List[str]:
        return [name for name, status in self.outcomes if status == SKIPPED]


class Pipeline:
    def __init__(self, name: str, steps: List[Step], external: Optional[Dict[str, str]] = None):
        """
        Args:
            name: Pipeline name for logs
            steps: Steps in the order they must run
            external: Keys this pipeline needs from elsewhere, mapped to the
                step (usually in another pipeline) that produces them; all of
                them are checked before the first step runs
        """
        self.name = name
        self.steps = list(steps)
        self.external = dict(external or {})

        names = [step.name for step in self.steps]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate step names in {name}: {sorted(duplicates)}")

    def producer_of(self, key: str) -> str:
        for step in self.steps:
            if key in step.produces:
                return step.name
        return self.external.get(key, "an earlier deployment")

    def _check(self, record: ArtifactRecord, keys) -> None:
        for key in keys:
            if not record.has(key):
                raise PrerequisiteError(key, self.producer_of(key))

    def run(self, executor: StepExecutor) -> PipelineReport:
        """
        Run every step that has not been recorded yet, in order.

        Raises:
            PrerequisiteError: A required key is missing; no transaction is sent for that step
            DeploymentError: A step returned without recording what it produces
        """
        logger.info(f"Running pipeline {self.name} on {executor.network_id}")
        self._check(executor.load(), self.external)

        report = PipelineReport(name=self.name, record=executor.load())
        for step in self.steps:
            record = executor.load()
            if not record.missing(*step.produces):
                logger.info(f"[{step.name}] already recorded, skipping")
                report.outcomes.append((step.name, SKIPPED))
                continue

            self._check(record, step.requires)

            logger.info(f"[{step.name}] running")
            step.run(executor)

            missing = executor.load().missing(*step.produces)
            if missing:
                raise DeploymentError(f"Step {step.name} finished without recording {', '.join(missing)}")
            report.outcomes.append((step.name, RECORDED))

        report.record = executor.load()
        logger.info(
            f"Pipeline {self.name} finished: {len(report.executed)} executed, {len(report.skipped)} skipped"
        )
        return report
