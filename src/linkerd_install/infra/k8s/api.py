"""Abstract Kubernetes API interface.

Defines the read-only cluster operations the install pipeline needs. Every
lookup surfaces a missing object as ResourceNotFoundError so callers can
tell "absent" apart from any other failure (TransportError).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class ClusterResourceType:
    """A cluster-scoped resource type listed by the global resource checks."""

    kind: str
    plural: str
    group: str = ""
    version: str = "v1"

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version


@dataclass
class ClusterResource:
    """A cluster-scoped object found by a listing."""

    kind: str
    name: str
    group: str = ""


GLOBAL_RESOURCE_TYPES: tuple[ClusterResourceType, ...] = (
    ClusterResourceType("ClusterRole", "clusterroles", "rbac.authorization.k8s.io"),
    ClusterResourceType(
        "ClusterRoleBinding", "clusterrolebindings", "rbac.authorization.k8s.io"
    ),
    ClusterResourceType(
        "CustomResourceDefinition",
        "customresourcedefinitions",
        "apiextensions.k8s.io",
    ),
    ClusterResourceType(
        "MutatingWebhookConfiguration",
        "mutatingwebhookconfigurations",
        "admissionregistration.k8s.io",
    ),
    ClusterResourceType(
        "ValidatingWebhookConfiguration",
        "validatingwebhookconfigurations",
        "admissionregistration.k8s.io",
    ),
    ClusterResourceType(
        "PodSecurityPolicy", "podsecuritypolicies", "policy", "v1beta1"
    ),
)


class KubernetesAPI(ABC):
    """Read-only access to the cluster the control plane is installed into.

    All methods are async; synchronous callers drive them with run_sync().

    Raises (all methods):
        ResourceNotFoundError: If the requested object does not exist
        TransportError: If the request fails for any other reason
    """

    @abstractmethod
    async def get_version(self) -> dict[str, Any]:
        """Get the API server version information."""
        ...

    @abstractmethod
    async def get_namespace(self, name: str) -> dict[str, Any]:
        """Get a namespace object."""
        ...

    @abstractmethod
    async def get_config_map(self, namespace: str, name: str) -> dict[str, Any]:
        """Get a ConfigMap object."""
        ...

    @abstractmethod
    async def get_secret(self, namespace: str, name: str) -> dict[str, Any]:
        """Get a Secret object."""
        ...

    @abstractmethod
    async def list_cluster_resources(
        self, resource_type: ClusterResourceType, label_selector: str
    ) -> list[ClusterResource]:
        """List cluster-scoped objects of a type matching a label selector."""
        ...
