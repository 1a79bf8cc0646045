"""Precondition validation for the install stages.

run_preconditions() answers "can we reach the cluster, and is it free of
Linkerd's cluster-wide resources?"; check_existing_config() answers "has a
control plane already been configured in the namespace?".
"""

from __future__ import annotations

from loguru import logger

from ..constants import InstallConstants
from ..errors import ConflictError, InstallError, ResourceNotFoundError
from ..infra.k8s import KubernetesAPI, run_sync
from ..options import HealthCheckOptions
from .checker import ApiFactory, HealthChecker
from .results import CheckCategory, CheckResult, reduce_check_results

PRECONDITION_CATEGORIES: tuple[CheckCategory, ...] = (
    CheckCategory.KUBERNETES_API,
    CheckCategory.PRE_INSTALL_GLOBAL_RESOURCES,
)


def run_preconditions(
    options: HealthCheckOptions, api_factory: ApiFactory | None = None
) -> InstallError | None:
    """Run the reachability and global resource checks.

    Returns:
        ReachabilityError if the cluster cannot be reached,
        GlobalResourcesExistError if Linkerd global resources exist,
        None otherwise
    """
    results: list[CheckResult] = []
    checker = HealthChecker(PRECONDITION_CATEGORIES, options, api_factory)
    checker.run_checks(results.append)
    error = reduce_check_results(results)
    if error is None:
        logger.info("Precondition checks passed")
    else:
        logger.debug(f"Precondition checks failed: {type(error).__name__}")
    return error


def check_existing_config(api: KubernetesAPI, namespace: str) -> None:
    """Fail if a control plane has already been configured in ``namespace``.

    A missing namespace means nothing can exist in it. Otherwise the
    linkerd-config ConfigMap and the linkerd-config-overrides Secret must
    both be absent.

    Raises:
        ConflictError: If either object exists
        InstallError: Any lookup failure other than not-found, unchanged
    """
    constants = InstallConstants()
    try:
        run_sync(api.get_namespace(namespace))
    except ResourceNotFoundError:
        logger.debug(f"Namespace {namespace} does not exist yet")
        return

    try:
        run_sync(api.get_config_map(namespace, constants.CONFIG_MAP_NAME))
    except ResourceNotFoundError:
        pass
    else:
        raise ConflictError.existing_config(
            namespace, f"'{constants.CONFIG_MAP_NAME}' config map already exists"
        )

    check_no_stored_overrides(api, namespace)


def check_no_stored_overrides(api: KubernetesAPI, namespace: str) -> None:
    """Fail if the linkerd-config-overrides Secret exists in ``namespace``.

    Raises:
        ConflictError: If the Secret exists
        InstallError: Any lookup failure other than not-found, unchanged
    """
    name = InstallConstants.OVERRIDES_SECRET_NAME
    try:
        run_sync(api.get_secret(namespace, name))
    except ResourceNotFoundError:
        return
    raise ConflictError.existing_config(namespace, f"'{name}' secret already exists")
