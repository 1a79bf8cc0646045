"""Health-check runner.

Runs the checks of the requested categories in order and reports each
result to an observer. A failure in the ``kubernetes-api`` category is
fatal: no later check can produce a meaningful result without a client.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from loguru import logger

from ..constants import InstallConstants
from ..errors import InstallError
from ..infra.k8s import GLOBAL_RESOURCE_TYPES, KubernetesAPI, run_sync
from ..infra.k8s.api import ClusterResourceType
from ..options import HealthCheckOptions
from .results import (
    CategoryError,
    CheckCategory,
    CheckResult,
    ResourceDescriptor,
    ResourceError,
)

ApiFactory = Callable[[HealthCheckOptions], KubernetesAPI]
CheckObserver = Callable[[CheckResult], None]


def default_api_factory(options: HealthCheckOptions) -> KubernetesAPI:
    from ..infra.k8s import Kr8sKubernetesAPI

    return Kr8sKubernetesAPI.from_options(
        options, timeout=InstallConstants.API_TIMEOUT
    )


class HealthChecker:
    """Runs precondition checks against the cluster.

    Args:
        categories: Check categories to run, in order
        options: Cluster selection and control-plane namespace
        api_factory: Builds the API client (kr8s by default)
    """

    def __init__(
        self,
        categories: Sequence[CheckCategory],
        options: HealthCheckOptions,
        api_factory: ApiFactory | None = None,
    ) -> None:
        self.categories = list(categories)
        self.options = options
        self.api_factory = api_factory or default_api_factory
        self._api: KubernetesAPI | None = None

    def run_checks(self, observer: CheckObserver) -> bool:
        """Run every check, invoking ``observer`` once per result.

        Returns:
            True if every executed check passed
        """
        logger.debug(
            f"Running health checks for namespace {self.options.namespace} "
            f"(CNI enabled: {self.options.cni_enabled})"
        )
        success = True
        for category in self.categories:
            logger.debug(f"Running '{category.value}' checks")
            for result in self._run_category(category):
                observer(result)
                if result.err is not None:
                    success = False
                    if category == CheckCategory.KUBERNETES_API:
                        logger.debug("Kubernetes API check failed; skipping remaining checks")
                        return False
        return success

    def _run_category(self, category: CheckCategory) -> list[CheckResult]:
        if category == CheckCategory.KUBERNETES_API:
            return self._kubernetes_api_checks()
        if category == CheckCategory.PRE_INSTALL_GLOBAL_RESOURCES:
            return self._global_resource_checks()
        raise ValueError(f"unknown check category: {category}")

    # =========================================================================
    # kubernetes-api
    # =========================================================================

    def _kubernetes_api_checks(self) -> list[CheckResult]:
        category = CheckCategory.KUBERNETES_API
        try:
            self._api = self.api_factory(self.options)
        except Exception as e:
            return [
                CheckResult(
                    category, "can initialize the client", CategoryError(category, e)
                )
            ]

        results = [CheckResult(category, "can initialize the client")]
        try:
            run_sync(self._api.get_version())
        except InstallError as e:
            results.append(
                CheckResult(
                    category, "can query the Kubernetes API", CategoryError(category, e)
                )
            )
        else:
            results.append(CheckResult(category, "can query the Kubernetes API"))
        return results

    # =========================================================================
    # pre-linkerd-global-resources
    # =========================================================================

    def _global_resource_checks(self) -> list[CheckResult]:
        if self._api is None:
            self._api = self.api_factory(self.options)
        return [
            self._check_no_resources(resource_type)
            for resource_type in GLOBAL_RESOURCE_TYPES
        ]

    def _check_no_resources(self, resource_type: ClusterResourceType) -> CheckResult:
        category = CheckCategory.PRE_INSTALL_GLOBAL_RESOURCES
        description = f"no {resource_type.kind}s exist"
        assert self._api is not None
        try:
            found = run_sync(
                self._api.list_cluster_resources(
                    resource_type, InstallConstants.CONTROL_PLANE_NS_LABEL
                )
            )
        except InstallError as e:
            return CheckResult(category, description, CategoryError(category, e))

        if not found:
            return CheckResult(category, description)
        descriptors = [
            ResourceDescriptor(resource.kind, resource.name, resource.group)
            for resource in found
        ]
        logger.debug(f"Found {len(descriptors)} existing {resource_type.kind}(s)")
        return CheckResult(
            category, description, CategoryError(category, ResourceError(descriptors))
        )
