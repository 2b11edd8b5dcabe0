"""
Load a DeploymentSpec from a YAML config file plus environment overrides.

Expected layout::

    project:  {name, author, namespace, version, env}
    docker:   {registry, username, password, image, dockerfile, context}
    k8s:      {kubeconfig, namespace, deployment, service, replicas,
               resources: {cpu_request, memory_request, cpu_limit, memory_limit},
               ports: [{name, port, target_port, protocol}],
               env: [{name, value}]}
    notify:   {enabled, webhook_url, channel}

Only ``project.name`` is required; the docker, k8s and notify sections are optional.
The file is validated with pydantic models and then mapped onto the frozen spec types.
"""

import os
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, conint, field_validator, model_validator

from .cluster.quantity import parse_quantity
from .errors import InvalidConfig, InvalidQuantity
from .spec import (
    BuildSpec, ClusterTargetSpec, DeploymentSpec, EnvVar,
    NotificationSpec, PortMapping, Protocol, ResourceSpec,
)

DEFAULT_CONFIG_PATH = "./configs/config.yaml"

# Secrets may come from the environment instead of the config file
ENV_REGISTRY_USERNAME = "DRONE_DEPLOY_REGISTRY_USERNAME"
ENV_REGISTRY_PASSWORD = "DRONE_DEPLOY_REGISTRY_PASSWORD"
ENV_WEBHOOK_URL = "DRONE_DEPLOY_WEBHOOK_URL"
ENV_KUBECONFIG = "DRONE_DEPLOY_KUBECONFIG"

Port = conint(ge=1, le=65535)


class Section(BaseModel):
    """Base for config sections: whitespace stripped, empty YAML keys fall back to defaults."""

    model_config = ConfigDict(str_strip_whitespace=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ProjectSection(Section):
    name: str = Field(min_length=1)
    author: str = ""
    namespace: str = "default"
    version: str = "latest"
    env: str = "dev"

    @field_validator("version", mode="before")
    @classmethod
    def version_must_be_text(cls, v: Any) -> Any:
        # YAML reads 1.10 as the float 1.1
        if not isinstance(v, str):
            raise ValueError(f'must be a string, quote numeric versions such as "1.10" (got {v!r})')
        return v


class DockerSection(Section):
    image: str = Field(min_length=1)
    registry: str = "docker.io"
    username: Optional[str] = None
    password: Optional[str] = None
    dockerfile: str = "./Dockerfile"
    context: str = "."


class ResourcesSection(Section):
    cpu_request: str = ""
    memory_request: str = ""
    cpu_limit: str = ""
    memory_limit: str = ""

    @field_validator("cpu_request", "memory_request", "cpu_limit", "memory_limit", mode="before")
    @classmethod
    def numbers_as_text(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("cpu_request", "memory_request", "cpu_limit", "memory_limit")
    @classmethod
    def quantity_must_parse(cls, v: str) -> str:
        if v:
            try:
                parse_quantity(v)
            except InvalidQuantity as e:
                raise ValueError(str(e)) from e
        return v


class PortSection(Section):
    name: str = Field(min_length=1)
    port: Port
    target_port: Optional[Port] = None
    protocol: Protocol = "TCP"

    @field_validator("protocol", mode="before")
    @classmethod
    def upper_protocol(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class EnvVarSection(Section):
    name: str = Field(min_length=1)
    value: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def scalar_as_text(cls, v: Any) -> Any:
        if isinstance(v, (bool, int, float)):
            return str(v)
        return v


class K8sSection(Section):
    deployment: str = Field(min_length=1)
    service: Optional[str] = None
    namespace: Optional[str] = None
    kubeconfig: str = ""
    replicas: conint(ge=0) = 1
    resources: Optional[ResourcesSection] = None
    ports: List[PortSection] = Field(default_factory=list)
    env: List[EnvVarSection] = Field(default_factory=list)

    @field_validator("env", mode="before")
    @classmethod
    def env_mapping_to_list(cls, v: Any) -> Any:
        # A mapping keeps YAML order as well as a list of {name, value}
        if isinstance(v, dict):
            return [{"name": str(k), "value": value} for k, value in v.items()]
        return v

    @field_validator("ports")
    @classmethod
    def port_names_unique(cls, ports: List[PortSection]) -> List[PortSection]:
        seen = set()
        for port in ports:
            if port.name in seen:
                raise ValueError(f"duplicate port name: {port.name}")
            seen.add(port.name)
        return ports


class NotifySection(Section):
    enabled: StrictBool = False
    webhook_url: str = ""
    channel: str = ""


class DeployConfig(BaseModel):
    project: ProjectSection
    docker: Optional[DockerSection] = None
    k8s: Optional[K8sSection] = None
    notify: Optional[NotifySection] = None


def load_config(path: str = DEFAULT_CONFIG_PATH, env: Optional[str] = None,
                environ: Optional[Mapping[str, str]] = None) -> DeploymentSpec:
    """
    Read and validate a deployment config file.

    Args:
        path: YAML file path
        env: Environment tag overriding ``project.env``
        environ: Environment variables (defaults to os.environ)

    Returns:
        Validated DeploymentSpec

    Raises:
        InvalidConfig: If the file is missing, unparsable or invalid
    """
    config_file = Path(path)
    if not config_file.is_file():
        raise InvalidConfig(f"Config file not found: {path}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise InvalidConfig(f"Failed to parse {path}: {e}") from e

    return parse_config(data, env=env, environ=environ)


def parse_config(data: Any, env: Optional[str] = None,
                 environ: Optional[Mapping[str, str]] = None) -> DeploymentSpec:
    """Build a DeploymentSpec from already-parsed config data."""
    environ = os.environ if environ is None else environ
    try:
        config = DeployConfig.model_validate(data)
    except ValidationError as e:
        raise InvalidConfig(f"Invalid config: {_describe(e)}") from e

    project = config.project
    return DeploymentSpec(
        project_name=project.name,
        author=project.author,
        namespace=project.namespace,
        version=project.version,
        env=env or project.env,
        build=_to_build(config.docker, environ),
        cluster=_to_cluster(config.k8s, project.namespace, environ),
        notify=_to_notify(config.notify, environ),
    )


def _to_build(section: Optional[DockerSection], environ: Mapping[str, str]) -> Optional[BuildSpec]:
    if section is None:
        return None
    return BuildSpec(
        image=section.image,
        registry=section.registry,
        username=environ.get(ENV_REGISTRY_USERNAME) or section.username or None,
        password=environ.get(ENV_REGISTRY_PASSWORD) or section.password or None,
        dockerfile=section.dockerfile,
        context=section.context,
    )


def _to_cluster(section: Optional[K8sSection], namespace: str,
                environ: Mapping[str, str]) -> Optional[ClusterTargetSpec]:
    if section is None:
        return None

    resources = None
    if section.resources is not None:
        resources = ResourceSpec(**section.resources.model_dump())

    return ClusterTargetSpec(
        kubeconfig=environ.get(ENV_KUBECONFIG) or section.kubeconfig,
        namespace=section.namespace or namespace,
        deployment_name=section.deployment,
        service_name=section.service or section.deployment,
        replicas=section.replicas,
        resources=resources,
        ports=tuple(
            PortMapping(name=p.name, port=p.port, target_port=p.target_port or p.port, protocol=p.protocol)
            for p in section.ports
        ),
        env_vars=tuple(EnvVar(name=e.name, value=e.value) for e in section.env),
    )


def _to_notify(section: Optional[NotifySection], environ: Mapping[str, str]) -> Optional[NotificationSpec]:
    if section is None:
        return None
    return NotificationSpec(
        enabled=section.enabled,
        webhook_url=environ.get(ENV_WEBHOOK_URL) or section.webhook_url,
        channel=section.channel,
    )


def _describe(error: ValidationError) -> str:
    """Flatten pydantic errors to ``k8s.ports.1.port: message; ...``."""
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'config'}: {err['msg']}"
        for err in error.errors()
    )
