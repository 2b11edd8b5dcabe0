"""
Create-or-update reconciliation of the workload and its service, plus rollout triggering.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from kubernetes import client

from ..cancel import CancelToken, check
from ..errors import MissingClusterSpec, MissingImage, ObjectOperationFailed
from ..spec import ClusterTargetSpec
from .client import WORKLOAD_KIND, ClusterClient, connect
from .translate import container_image, set_container_image, to_service_object, to_workload_object

logger = logging.getLogger(__name__)

RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with second precision; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


class Reconciler:
    """
    Applies a ClusterTargetSpec to a cluster.

    Every operation is idempotent with respect to the declared state: a missing
    object is created, an existing one is replaced in full with the resource
    version of the fetched object carried over.
    """

    def __init__(self, client_factory: Callable[[str], ClusterClient] = connect,
                 clock: Callable[[], datetime] = utc_now,
                 cancel: Optional[CancelToken] = None):
        self.client_factory = client_factory
        self.clock = clock
        self.cancel = cancel
        self._clients: Dict[str, ClusterClient] = {}

    def _client(self, cluster: ClusterTargetSpec) -> ClusterClient:
        key = cluster.kubeconfig or ""
        if key not in self._clients:
            self._clients[key] = self.client_factory(key)
        return self._clients[key]

    def apply_workload(self, cluster: ClusterTargetSpec, image: Optional[str] = None) -> str:
        """
        Create or replace the Deployment.

        Args:
            cluster: Cluster target spec
            image: Image to run; defaults to the image of the live object

        Returns:
            "created" or "updated"

        Raises:
            MissingImage: If the Deployment must be created and no image is known
            ClusterUnreachable, ObjectOperationFailed: On cluster errors
        """
        _require(cluster)
        api = self._client(cluster)
        name, namespace = cluster.deployment_name, cluster.namespace

        check(self.cancel, f"get {WORKLOAD_KIND} {name}")
        existing = api.get_workload(namespace, name)

        desired = to_workload_object(cluster)
        if existing is None:
            if not image:
                raise MissingImage(name)
            set_container_image(desired, image)
            check(self.cancel, f"create {WORKLOAD_KIND} {name}")
            api.create_workload(namespace, desired)
            logger.info(f"Deployment {namespace}/{name} created (image {image})")
            return "created"

        image = image or container_image(existing)
        if image:
            set_container_image(desired, image)
        desired.metadata.resource_version = existing.metadata.resource_version
        check(self.cancel, f"update {WORKLOAD_KIND} {name}")
        api.update_workload(namespace, name, desired)
        logger.info(f"Deployment {namespace}/{name} updated (image {image})")
        return "updated"

    def apply_service(self, cluster: ClusterTargetSpec) -> str:
        """Create or replace the Service; returns "created" or "updated"."""
        _require(cluster)
        api = self._client(cluster)
        name, namespace = cluster.service_name, cluster.namespace

        check(self.cancel, f"get Service {name}")
        existing = api.get_service(namespace, name)

        desired = to_service_object(cluster)
        if existing is None:
            check(self.cancel, f"create Service {name}")
            api.create_service(namespace, desired)
            logger.info(f"Service {namespace}/{name} created")
            return "created"

        desired.metadata.resource_version = existing.metadata.resource_version
        # clusterIP is immutable and must be echoed back on replace
        if existing.spec is not None and existing.spec.cluster_ip:
            desired.spec.cluster_ip = existing.spec.cluster_ip
        check(self.cancel, f"update Service {name}")
        api.update_service(namespace, name, desired)
        logger.info(f"Service {namespace}/{name} updated")
        return "updated"

    def trigger_rollout(self, cluster: ClusterTargetSpec) -> str:
        """
        Force the Deployment's pods to be recreated without touching its image.

        Stamps the restartedAt annotation on the pod template of the live object
        and sends it back unchanged otherwise.

        Returns:
            The timestamp written to the annotation
        """
        _require(cluster)
        api = self._client(cluster)
        name, namespace = cluster.deployment_name, cluster.namespace

        check(self.cancel, f"get {WORKLOAD_KIND} {name}")
        deployment = api.get_workload(namespace, name)
        if deployment is None:
            raise ObjectOperationFailed("get", WORKLOAD_KIND, name, "not found")

        template = deployment.spec.template
        if template.metadata is None:
            template.metadata = client.V1ObjectMeta()
        annotations = dict(template.metadata.annotations or {})
        stamp = format_timestamp(self.clock())
        annotations[RESTARTED_AT_ANNOTATION] = stamp
        template.metadata.annotations = annotations

        check(self.cancel, f"update {WORKLOAD_KIND} {name}")
        api.update_workload(namespace, name, deployment)
        logger.info(f"Deployment {namespace}/{name} restarted at {stamp}")
        return stamp


def _require(cluster: Optional[ClusterTargetSpec]) -> None:
    if cluster is None:
        raise MissingClusterSpec()
