"""
Cluster client interface and the Kubernetes API implementation.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import urllib3
import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from ..errors import ClusterUnreachable, ObjectOperationFailed

logger = logging.getLogger(__name__)

DEFAULT_KUBECONFIG = os.path.join("~", ".kube", "config")

# Seconds allowed per API request
DEFAULT_REQUEST_TIMEOUT = 30

WORKLOAD_KIND = "Deployment"
SERVICE_KIND = "Service"


class ClusterClient(ABC):
    """
    get/create/update for the two object kinds the pipeline manages.

    ``get_*`` returns None when the object does not exist. Any other failure
    raises ObjectOperationFailed (or ClusterUnreachable for connection errors).
    """

    @abstractmethod
    def get_workload(self, namespace: str, name: str) -> Optional[client.V1Deployment]:
        pass

    @abstractmethod
    def create_workload(self, namespace: str, body: client.V1Deployment) -> client.V1Deployment:
        pass

    @abstractmethod
    def update_workload(self, namespace: str, name: str, body: client.V1Deployment) -> client.V1Deployment:
        pass

    @abstractmethod
    def get_service(self, namespace: str, name: str) -> Optional[client.V1Service]:
        pass

    @abstractmethod
    def create_service(self, namespace: str, body: client.V1Service) -> client.V1Service:
        pass

    @abstractmethod
    def update_service(self, namespace: str, name: str, body: client.V1Service) -> client.V1Service:
        pass


class KubernetesClusterClient(ClusterClient):
    """ClusterClient backed by the official ``kubernetes`` client."""

    def __init__(self, api_client: Optional[client.ApiClient] = None,
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.api_client = api_client
        self.request_timeout = request_timeout
        self.apps = client.AppsV1Api(api_client)
        self.core = client.CoreV1Api(api_client)

    @property
    def host(self) -> str:
        if self.api_client is None:
            return "default"
        return self.api_client.configuration.host

    def get_workload(self, namespace, name):
        return self._call("get", WORKLOAD_KIND, name, self.apps.read_namespaced_deployment,
                          name=name, namespace=namespace)

    def create_workload(self, namespace, body):
        return self._call("create", WORKLOAD_KIND, body.metadata.name, self.apps.create_namespaced_deployment,
                          namespace=namespace, body=body)

    def update_workload(self, namespace, name, body):
        return self._call("update", WORKLOAD_KIND, name, self.apps.replace_namespaced_deployment,
                          name=name, namespace=namespace, body=body)

    def get_service(self, namespace, name):
        return self._call("get", SERVICE_KIND, name, self.core.read_namespaced_service,
                          name=name, namespace=namespace)

    def create_service(self, namespace, body):
        return self._call("create", SERVICE_KIND, body.metadata.name, self.core.create_namespaced_service,
                          namespace=namespace, body=body)

    def update_service(self, namespace, name, body):
        return self._call("update", SERVICE_KIND, name, self.core.replace_namespaced_service,
                          name=name, namespace=namespace, body=body)

    def _call(self, verb: str, kind: str, obj_name: str, fn: Callable[..., Any], /, **kwargs) -> Any:
        try:
            return fn(_request_timeout=self.request_timeout, **kwargs)
        except ApiException as e:
            if verb == "get" and e.status == 404:
                logger.debug(f"{kind} {obj_name} not found")
                return None
            # 409 on update is a lost optimistic-concurrency race; surfaced, never retried
            raise ObjectOperationFailed(verb, kind, obj_name, f"{e.status} {e.reason}") from e
        except urllib3.exceptions.MaxRetryError as e:
            raise ClusterUnreachable(self.host, str(e.reason)) from e
        except urllib3.exceptions.HTTPError as e:
            raise ObjectOperationFailed(verb, kind, obj_name, str(e)) from e


def resolve_kubeconfig(kubeconfig: str = "") -> str:
    """Explicit path if given, else the conventional per-user kubeconfig."""
    return os.path.expanduser(kubeconfig or DEFAULT_KUBECONFIG)


def connect(kubeconfig: str = "", request_timeout: float = DEFAULT_REQUEST_TIMEOUT) -> KubernetesClusterClient:
    """
    Build a cluster client from a kubeconfig file.

    Args:
        kubeconfig: Path to the kubeconfig; empty means ~/.kube/config
        request_timeout: Seconds allowed per API request

    Returns:
        Connected KubernetesClusterClient

    Raises:
        ClusterUnreachable: If the kubeconfig is missing or invalid
    """
    path = resolve_kubeconfig(kubeconfig)
    if not os.path.isfile(path):
        raise ClusterUnreachable(path, "kubeconfig file not found")

    try:
        api_client = config.new_client_from_config(config_file=path)
    except (ConfigException, OSError, ValueError, yaml.YAMLError) as e:
        raise ClusterUnreachable(path, str(e)) from e

    logger.info(f"Loaded kubeconfig {path} (server {api_client.configuration.host})")
    return KubernetesClusterClient(api_client, request_timeout=request_timeout)
