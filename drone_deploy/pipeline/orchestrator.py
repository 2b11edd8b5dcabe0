"""
Flow orchestrator: runs the steps of a flow in order and tracks the run state.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..build import DockerToolchain, Toolchain
from ..cancel import CancelToken
from ..cluster import Reconciler
from ..errors import Cancelled, StepFailed
from ..notify import Transport
from ..spec import DeploymentSpec, FlowKind
from .steps import FLOW_STEPS, BuildStep, DeployStep, NotifyStep, Step

logger = logging.getLogger(__name__)


class RunState(Enum):
    """Pipeline run states."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class PipelineRun:
    """State of one pipeline run."""
    spec: DeploymentSpec
    flow: FlowKind
    steps: List[str]
    state: RunState = RunState.PENDING
    step_index: Optional[int] = None
    completed: List[str] = field(default_factory=list)
    failed_step: Optional[str] = None
    error: Optional[BaseException] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def current_step(self) -> Optional[str]:
        if self.step_index is None or self.state != RunState.RUNNING:
            return None
        return self.steps[self.step_index]

    def begin(self, index: int) -> None:
        if self.state not in (RunState.PENDING, RunState.RUNNING):
            raise RuntimeError(f"Cannot start a step from state {self.state.value}")
        self.state = RunState.RUNNING
        self.step_index = index

    def step_done(self) -> None:
        self.completed.append(self.steps[self.step_index])

    def fail(self, error: BaseException) -> None:
        self.failed_step = self.current_step
        self.state = RunState.FAILED
        self.error = error

    def finish(self) -> None:
        self.state = RunState.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project": self.spec.project_name,
            "version": self.spec.version,
            "env": self.spec.env,
            "flow": self.flow.value,
            "steps": list(self.steps),
            "state": self.state.value,
            "completed": list(self.completed),
            "failed_step": self.failed_step,
            "error": str(self.error) if self.error else None,
            "warnings": list(self.warnings),
        }


class Pipeline:
    """
    Deployment pipeline executor.

    Collaborators default to the real implementations (docker CLI, kubeconfig
    based cluster client, requests webhook transport) and can be swapped for fakes.
    """

    def __init__(self, toolchain: Optional[Toolchain] = None,
                 reconciler: Optional[Reconciler] = None,
                 transport: Optional[Transport] = None,
                 cancel: Optional[CancelToken] = None):
        self.cancel = cancel or CancelToken()
        toolchain = toolchain or DockerToolchain(cancel=self.cancel)
        reconciler = reconciler or Reconciler(cancel=self.cancel)
        self.steps: Dict[str, Step] = {
            step.name: step
            for step in (
                BuildStep(toolchain, self.cancel),
                DeployStep(reconciler),
                NotifyStep(transport, self.cancel),
            )
        }

    def run(self, spec: DeploymentSpec, flow) -> PipelineRun:
        """
        Run a deployment flow.

        Args:
            spec: Deployment specification
            flow: FlowKind or flow identifier ("all", "docker", "k8s", ...)

        Returns:
            The succeeded PipelineRun (warnings hold any notification failure)

        Raises:
            UnsupportedFlow: If ``flow`` is unknown; nothing runs
            StepFailed: First mandatory step failure, original error as cause
            Cancelled: If the cancel token was set
        """
        kind = FlowKind.parse(flow)
        run = PipelineRun(spec=spec, flow=kind, steps=list(FLOW_STEPS[kind]))
        logger.info(f"Starting deployment of {spec.describe()}, flow: {kind.value}, steps: {', '.join(run.steps)}")

        for index, name in enumerate(run.steps):
            step = self.steps[name]
            run.begin(index)

            if self.cancel.cancelled:
                error = Cancelled(name)
                run.fail(error)
                raise error

            logger.info(f"step={name} status=started project={spec.project_name} "
                        f"version={spec.version} env={spec.env}")
            try:
                step.run(spec)
            except Cancelled as e:
                run.fail(e)
                logger.error(f"step={name} status=cancelled project={spec.project_name} env={spec.env}")
                raise
            except Exception as e:
                if not step.mandatory:
                    warning = f"{name} step failed: {e}"
                    run.warnings.append(warning)
                    logger.warning(f"step={name} status=failed project={spec.project_name} "
                                   f"env={spec.env} error={e} (ignored)")
                    run.step_done()
                    continue
                run.fail(e)
                logger.error(f"step={name} status=failed project={spec.project_name} env={spec.env} error={e}")
                raise StepFailed(name, e) from e

            run.step_done()
            logger.info(f"step={name} status=succeeded project={spec.project_name} "
                        f"version={spec.version} env={spec.env}")

        run.finish()
        logger.info(f"Deployment of {spec.describe()} finished")
        return run


def run(spec: DeploymentSpec, flow, **collaborators) -> PipelineRun:
    """Convenience wrapper: ``Pipeline(**collaborators).run(spec, flow)``."""
    return Pipeline(**collaborators).run(spec, flow)
