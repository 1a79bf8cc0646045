"""Kubernetes API abstraction layer.

Example:
    from linkerd_install.infra.k8s import Kr8sKubernetesAPI, run_sync

    api = Kr8sKubernetesAPI(kube_context="kind-linkerd", timeout=30.0)
    namespace = run_sync(api.get_namespace("linkerd"))
"""

from .api import (
    GLOBAL_RESOURCE_TYPES,
    ClusterResource,
    ClusterResourceType,
    KubernetesAPI,
)
from .kr8s_api import Kr8sKubernetesAPI
from .utils import run_sync

__all__ = [
    # API classes
    "KubernetesAPI",
    "Kr8sKubernetesAPI",
    # Data classes
    "ClusterResource",
    "ClusterResourceType",
    "GLOBAL_RESOURCE_TYPES",
    # Utilities
    "run_sync",
]
