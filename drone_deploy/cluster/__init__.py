"""
Kubernetes reconciliation: object translation, client access and upserts.
"""

from .client import ClusterClient, KubernetesClusterClient, connect, resolve_kubeconfig
from .quantity import Quantity, parse_quantity
from .reconcile import RESTARTED_AT_ANNOTATION, Reconciler
from .translate import selector_labels, to_service_object, to_workload_object

__all__ = [
    "ClusterClient",
    "KubernetesClusterClient",
    "connect",
    "resolve_kubeconfig",
    "Quantity",
    "parse_quantity",
    "RESTARTED_AT_ANNOTATION",
    "Reconciler",
    "selector_labels",
    "to_service_object",
    "to_workload_object",
]
