"""
Translate a ClusterTargetSpec into Kubernetes API objects.

Pure functions, no I/O. The container image is left unset; the
reconciler fills it from the build step's tag or from the live object.
"""

from typing import Dict, List, Optional

from kubernetes import client

from ..spec import ClusterTargetSpec, ResourceSpec
from .quantity import parse_quantity

SELECTOR_LABEL = "app"
SERVICE_TYPE = "ClusterIP"


def selector_labels(cluster: ClusterTargetSpec) -> Dict[str, str]:
    """Label set shared by the deployment, its pod template and the service selector."""
    return {SELECTOR_LABEL: cluster.deployment_name}


def to_workload_object(cluster: ClusterTargetSpec) -> client.V1Deployment:
    """
    Build the Deployment object for a cluster target.

    Args:
        cluster: Cluster target spec

    Returns:
        V1Deployment with an empty container image

    Raises:
        InvalidQuantity: If a resource request/limit does not parse
    """
    labels = selector_labels(cluster)

    container = client.V1Container(
        name=cluster.deployment_name,
        image=None,
        ports=[
            client.V1ContainerPort(
                name=port.name,
                container_port=port.target_port,
                protocol=port.protocol,
            )
            for port in cluster.ports
        ],
        env=[client.V1EnvVar(name=env.name, value=env.value) for env in cluster.env_vars],
        resources=to_resource_requirements(cluster.resources),
    )

    template = client.V1PodTemplateSpec(
        metadata=client.V1ObjectMeta(labels=dict(labels)),
        spec=client.V1PodSpec(containers=[container]),
    )

    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=client.V1ObjectMeta(
            name=cluster.deployment_name,
            namespace=cluster.namespace,
            labels=dict(labels),
        ),
        spec=client.V1DeploymentSpec(
            replicas=cluster.replicas,
            selector=client.V1LabelSelector(match_labels=dict(labels)),
            template=template,
        ),
    )


def to_service_object(cluster: ClusterTargetSpec) -> client.V1Service:
    """Build the ClusterIP Service routing to the deployment's pods."""
    labels = selector_labels(cluster)

    return client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=client.V1ObjectMeta(
            name=cluster.service_name,
            namespace=cluster.namespace,
            labels=dict(labels),
        ),
        spec=client.V1ServiceSpec(
            type=SERVICE_TYPE,
            selector=dict(labels),
            ports=[
                client.V1ServicePort(
                    name=port.name,
                    port=port.port,
                    target_port=port.target_port,
                    protocol=port.protocol,
                )
                for port in cluster.ports
            ],
        ),
    )


def to_resource_requirements(resources: Optional[ResourceSpec]) -> Optional[client.V1ResourceRequirements]:
    """
    Translate requests/limits, keeping only the sub-fields that are set.

    CPU and memory are independent: a spec with only a CPU request yields
    ``requests == {"cpu": ...}`` and no limits.
    """
    if resources is None:
        return None

    requests = _resource_list(resources.cpu_request, resources.memory_request)
    limits = _resource_list(resources.cpu_limit, resources.memory_limit)
    if not requests and not limits:
        return None

    return client.V1ResourceRequirements(
        requests=requests or None,
        limits=limits or None,
    )


def _resource_list(cpu: str, memory: str) -> Dict[str, str]:
    entries = {}
    if cpu:
        entries["cpu"] = str(parse_quantity(cpu))
    if memory:
        entries["memory"] = str(parse_quantity(memory))
    return entries


def container_image(deployment: client.V1Deployment) -> Optional[str]:
    """Image of the first container, if any."""
    containers = _containers(deployment)
    return containers[0].image if containers else None


def set_container_image(deployment: client.V1Deployment, image: str) -> None:
    for container in _containers(deployment):
        container.image = image


def _containers(deployment: client.V1Deployment) -> List[client.V1Container]:
    spec = deployment.spec
    if spec is None or spec.template is None or spec.template.spec is None:
        return []
    return spec.template.spec.containers or []
