"""
Pipeline steps and the static flow table.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from ..build import Toolchain, build_and_publish
from ..cancel import CancelToken
from ..cluster import Reconciler
from ..errors import MissingClusterSpec
from ..notify import Transport, compose_message, notify
from ..spec import DeploymentSpec, FlowKind

logger = logging.getLogger(__name__)

BUILD = "build"
DEPLOY = "deploy"
NOTIFY = "notify"

FLOW_STEPS: Dict[FlowKind, Tuple[str, ...]] = {
    FlowKind.ALL: (BUILD, DEPLOY, NOTIFY),
    FlowKind.STANDARD: (BUILD, DEPLOY),
    FlowKind.DOCKER: (BUILD,),
    FlowKind.KUBERNETES: (DEPLOY,),
    FlowKind.NOTIFY: (NOTIFY,),
}


def steps_for(flow) -> Tuple[str, ...]:
    """
    Resolve a flow to its step sequence.

    Raises:
        UnsupportedFlow: If ``flow`` is not a known flow identifier
    """
    return FLOW_STEPS[FlowKind.parse(flow)]


class Step(ABC):
    """One unit of the pipeline. A failing mandatory step aborts the run."""

    name: str = ""
    mandatory: bool = True

    @abstractmethod
    def run(self, spec: DeploymentSpec) -> None:
        pass


class BuildStep(Step):
    name = BUILD

    def __init__(self, toolchain: Toolchain, cancel: Optional[CancelToken] = None):
        self.toolchain = toolchain
        self.cancel = cancel

    def run(self, spec: DeploymentSpec) -> None:
        build_and_publish(spec.build, self.toolchain, self.cancel)


class DeployStep(Step):
    """Workload, then service, then the rollout trigger."""

    name = DEPLOY

    def __init__(self, reconciler: Reconciler):
        self.reconciler = reconciler

    def run(self, spec: DeploymentSpec) -> None:
        cluster = spec.cluster
        if cluster is None:
            raise MissingClusterSpec()

        image = spec.build.image if spec.build is not None else None
        self.reconciler.apply_workload(cluster, image=image)
        self.reconciler.apply_service(cluster)
        self.reconciler.trigger_rollout(cluster)


class NotifyStep(Step):
    name = NOTIFY
    mandatory = False

    def __init__(self, transport: Optional[Transport] = None, cancel: Optional[CancelToken] = None):
        self.transport = transport
        self.cancel = cancel

    def run(self, spec: DeploymentSpec) -> None:
        notify(spec.notify, compose_message(spec), transport=self.transport, cancel=self.cancel)
