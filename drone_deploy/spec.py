"""
Deployment specification types.

A DeploymentSpec is built once per invocation (usually by ``config.load_config``)
and is read-only for the whole pipeline run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional, Tuple

from .errors import UnsupportedFlow

Protocol = Literal["TCP", "UDP", "SCTP"]


class FlowKind(Enum):
    """Named subsets of pipeline steps selectable per invocation."""
    ALL = "all"
    STANDARD = "standard"
    DOCKER = "docker"
    KUBERNETES = "k8s"
    NOTIFY = "notify"

    @classmethod
    def parse(cls, value) -> "FlowKind":
        """
        Resolve a flow identifier.

        Args:
            value: A FlowKind or one of its string identifiers

        Returns:
            The matching FlowKind

        Raises:
            UnsupportedFlow: If the identifier is not a known flow
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        key = FLOW_ALIASES.get(key, key)
        for kind in cls:
            if kind.value == key:
                return kind
        raise UnsupportedFlow(str(value))


FLOW_ALIASES = {
    "full": "all",
    "kubernetes": "k8s",
}


@dataclass(frozen=True)
class BuildSpec:
    image: str                      # "name:tag", also the push reference
    registry: str = "docker.io"
    username: Optional[str] = None
    password: Optional[str] = None
    dockerfile: str = "./Dockerfile"
    context: str = "."

    @property
    def has_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)


@dataclass(frozen=True)
class ResourceSpec:
    cpu_request: str = ""
    memory_request: str = ""
    cpu_limit: str = ""
    memory_limit: str = ""


@dataclass(frozen=True)
class PortMapping:
    name: str
    port: int                       # port exposed by the service
    target_port: int                # container port
    protocol: Protocol = "TCP"


@dataclass(frozen=True)
class EnvVar:
    name: str
    value: str = ""


@dataclass(frozen=True)
class ClusterTargetSpec:
    namespace: str
    deployment_name: str
    service_name: str
    kubeconfig: str = ""            # empty means ~/.kube/config
    replicas: int = 1
    resources: Optional[ResourceSpec] = None
    ports: Tuple[PortMapping, ...] = field(default_factory=tuple)
    env_vars: Tuple[EnvVar, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NotificationSpec:
    enabled: bool = False
    webhook_url: str = ""
    channel: str = ""


@dataclass(frozen=True)
class DeploymentSpec:
    # Identity
    project_name: str
    author: str = ""
    namespace: str = "default"
    version: str = "latest"
    env: str = "dev"

    # Optional sub-specs, consumed by their steps only
    build: Optional[BuildSpec] = None
    cluster: Optional[ClusterTargetSpec] = None
    notify: Optional[NotificationSpec] = None

    def describe(self) -> str:
        return f"{self.project_name}@{self.version} ({self.env})"
