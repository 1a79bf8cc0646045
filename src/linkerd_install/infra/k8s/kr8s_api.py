"""Kr8s-based implementation of KubernetesAPI.

Uses the kr8s library for native async Kubernetes requests.
"""

from __future__ import annotations

from typing import Any

import httpx
import kr8s
from loguru import logger

from ...errors import InstallError, ResourceNotFoundError, TransportError
from ...options import HealthCheckOptions, InstallOptions
from .api import ClusterResource, ClusterResourceType, KubernetesAPI


class Kr8sKubernetesAPI(KubernetesAPI):
    """Kubernetes API client using the kr8s library.

    Requests go through ``Api.call_api`` so impersonation headers and the
    optional request timeout apply to every call.

    Note: The kr8s API client is NOT cached because it's tied to the event loop
    that was running when created. run_sync() creates a new event loop for
    every call, so each request builds a fresh client.
    """

    def __init__(
        self,
        kubeconfig_path: str | None = None,
        kube_context: str | None = None,
        impersonate: str | None = None,
        impersonate_group: tuple[str, ...] = (),
        api_addr: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.kubeconfig_path = kubeconfig_path
        self.kube_context = kube_context
        self.impersonate = impersonate
        self.impersonate_group = tuple(impersonate_group)
        self.api_addr = api_addr
        self.timeout = timeout

    @classmethod
    def from_options(
        cls,
        options: InstallOptions | HealthCheckOptions,
        timeout: float | None = None,
    ) -> Kr8sKubernetesAPI:
        """Build a client from install or health-check options."""
        return cls(
            kubeconfig_path=options.kubeconfig_path,
            kube_context=options.kube_context,
            impersonate=options.impersonate,
            impersonate_group=options.impersonate_group,
            api_addr=options.api_addr,
            timeout=timeout,
        )

    async def _get_api(self) -> Any:  # Returns kr8s._api.Api
        return await kr8s.asyncio.api(
            url=self.api_addr,
            kubeconfig=self.kubeconfig_path,
            context=self.kube_context,
        )

    def _request_kwargs(self) -> dict[str, Any]:
        headers: list[tuple[str, str]] = []
        if self.impersonate:
            headers.append(("Impersonate-User", self.impersonate))
        for group in self.impersonate_group:
            headers.append(("Impersonate-Group", group))
        kwargs: dict[str, Any] = {}
        if headers:
            kwargs["headers"] = headers
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return kwargs

    async def _get_json(
        self,
        kind: str,
        name: str | None,
        *,
        version: str,
        url: str,
        base: str = "",
        namespace: str | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """GET a resource path and decode the JSON response.

        Raises:
            ResourceNotFoundError: On a 404 response
            TransportError: On any other failure
        """
        kwargs = self._request_kwargs()
        if params:
            kwargs["params"] = params
        try:
            api = await self._get_api()
            async with api.call_api(
                "GET",
                version=version,
                base=base,
                namespace=namespace,
                url=url,
                **kwargs,
            ) as response:
                return response.json()
        except kr8s.ServerError as e:
            status = getattr(e.response, "status_code", None)
            if status == 404:
                raise ResourceNotFoundError(kind, name or url, namespace) from e
            raise TransportError(f"{kind} request failed: {e}") from e
        except httpx.TimeoutException as e:
            raise TransportError(
                f"{kind} request timed out after {self.timeout}s: {e}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"cannot reach the Kubernetes API: {e}") from e
        except InstallError:
            raise
        except Exception as e:
            raise TransportError(f"{kind} request failed: {e}") from e

    # =========================================================================
    # Cluster
    # =========================================================================

    async def get_version(self) -> dict[str, Any]:
        version = await self._get_json(
            "Version", None, version="", base="/version", url=""
        )
        logger.debug(f"Kubernetes API version: {version.get('gitVersion', 'unknown')}")
        return version

    # =========================================================================
    # Namespaced Objects
    # =========================================================================

    async def get_namespace(self, name: str) -> dict[str, Any]:
        return await self._get_json(
            "Namespace", name, version="v1", url=f"namespaces/{name}"
        )

    async def get_config_map(self, namespace: str, name: str) -> dict[str, Any]:
        return await self._get_json(
            "ConfigMap",
            name,
            version="v1",
            namespace=namespace,
            url=f"configmaps/{name}",
        )

    async def get_secret(self, namespace: str, name: str) -> dict[str, Any]:
        return await self._get_json(
            "Secret",
            name,
            version="v1",
            namespace=namespace,
            url=f"secrets/{name}",
        )

    # =========================================================================
    # Cluster-scoped Objects
    # =========================================================================

    async def list_cluster_resources(
        self, resource_type: ClusterResourceType, label_selector: str
    ) -> list[ClusterResource]:
        body = await self._get_json(
            resource_type.kind,
            None,
            version=resource_type.api_version,
            url=resource_type.plural,
            params={"labelSelector": label_selector},
        )
        resources: list[ClusterResource] = []
        for item in body.get("items", []):
            metadata = item.get("metadata", {})
            resources.append(
                ClusterResource(
                    kind=resource_type.kind,
                    name=metadata.get("name", ""),
                    group=resource_type.group,
                )
            )
        return resources
