"""Install orchestration.

The orchestrator drives one install invocation through a fixed sequence of
states. Each mode takes its own path:

- full:           START -> CLUSTER_CHECK -> EXISTING_INSTALL_CHECK ->
                  CREDENTIAL_INIT -> VALUE_VALIDATION -> RENDER -> DONE
- config:         START -> CLUSTER_CHECK -> RENDER -> DONE
- control-plane:  START -> EXISTING_INSTALL_CHECK -> VALUE_VALIDATION ->
                  RENDER -> DONE

Any error moves to ABORTED and is re-raised. The manifest is written to the
output stream only once it has been rendered completely.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import Enum
from typing import BinaryIO

from loguru import logger

from .charts import Stage, TemplateEngine, render
from .credentials import IssuerCredentials
from .errors import (
    GlobalResourcesExistError,
    GlobalResourcesMissingError,
    InstallError,
    ReachabilityError,
)
from .healthcheck import check_existing_config, check_no_stored_overrides, run_preconditions
from .healthcheck.checker import ApiFactory
from .infra.k8s import Kr8sKubernetesAPI, KubernetesAPI, run_sync
from .options import HealthCheckOptions, InstallOptions
from .values import (
    Flag,
    FlagGroup,
    Setting,
    Values,
    apply_overrides,
    derive_configs,
    flag_set,
    validate_values,
)
from .values.flags import EXTERNAL_ISSUER_SCHEME

ClientFactory = Callable[[InstallOptions, float | None], KubernetesAPI]


class InstallMode(str, Enum):
    """Install commands."""

    FULL = "full"
    CONFIG = "config"
    CONTROL_PLANE = "control-plane"

    @property
    def stage(self) -> Stage:
        return {
            InstallMode.FULL: Stage.ALL,
            InstallMode.CONFIG: Stage.CONFIG,
            InstallMode.CONTROL_PLANE: Stage.CONTROL_PLANE,
        }[self]

    @property
    def flag_groups(self) -> tuple[FlagGroup, ...]:
        """Setting groups accepted by the mode."""
        if self is InstallMode.CONFIG:
            return (FlagGroup.ALL_STAGE,)
        return tuple(FlagGroup)

    def flags(self) -> dict[str, Flag]:
        return flag_set(*self.flag_groups)


class InstallState(str, Enum):
    """States of an install run."""

    START = "start"
    CLUSTER_CHECK = "cluster-check"
    EXISTING_INSTALL_CHECK = "existing-install-check"
    CREDENTIAL_INIT = "credential-init"
    VALUE_VALIDATION = "value-validation"
    RENDER = "render"
    DONE = "done"
    ABORTED = "aborted"


def default_client_factory(
    options: InstallOptions, timeout: float | None
) -> KubernetesAPI:
    return Kr8sKubernetesAPI.from_options(options, timeout=timeout)


class InstallOrchestrator:
    """Runs one install invocation.

    Args:
        options: Cluster selection and the ignore-cluster/skip-checks toggles
        client_factory: Builds the cluster client used by the orchestrator
        health_api_factory: Builds the client used by the precondition checks
        credentials: Issuer credential initializer
        engine: Template engine used for rendering
    """

    def __init__(
        self,
        options: InstallOptions,
        *,
        client_factory: ClientFactory | None = None,
        health_api_factory: ApiFactory | None = None,
        credentials: IssuerCredentials | None = None,
        engine: TemplateEngine | None = None,
    ) -> None:
        self.options = options
        self.client_factory = client_factory or default_client_factory
        self.health_api_factory = health_api_factory
        self.credentials = credentials or IssuerCredentials()
        self.engine = engine
        self.state = InstallState.START
        self.history: list[InstallState] = [InstallState.START]
        self.warnings: list[str] = []

    def run(
        self,
        values: Values,
        settings: Iterable[Setting],
        mode: InstallMode,
        out: BinaryIO,
    ) -> bytes:
        """Apply ``settings`` to ``values`` and install in ``mode``.

        Returns:
            The manifest written to ``out``

        Raises:
            InstallError: The error that aborted the run
        """
        logger.info(f"Starting {mode.value} install")
        try:
            apply_overrides(values, settings, mode.flags())
            if mode is InstallMode.FULL:
                manifest = self._install_full(values)
            elif mode is InstallMode.CONFIG:
                manifest = self._install_config(values)
            else:
                manifest = self._install_control_plane(values)
        except Exception as e:
            logger.debug(f"Install aborted in state {self.state.value}: {e}")
            self._transition(InstallState.ABORTED)
            raise

        out.write(manifest)
        self._transition(InstallState.DONE)
        return manifest

    # =========================================================================
    # Modes
    # =========================================================================

    def _install_full(self, values: Values) -> bytes:
        api: KubernetesAPI | None = None
        if not self.options.ignore_cluster:
            self._transition(InstallState.CLUSTER_CHECK)
            try:
                api = self.client_factory(self.options, self.options.api_timeout)
                run_sync(api.get_version())
            except InstallError as e:
                raise ReachabilityError(e.message) from e
            except Exception as e:
                raise ReachabilityError(str(e)) from e

        self._transition(InstallState.EXISTING_INSTALL_CHECK)
        if api is not None:
            check_no_stored_overrides(api, values.namespace)

        self._transition(InstallState.CREDENTIAL_INIT)
        self.credentials.initialize(api, values)

        self._validate(values)
        return self._render(values, Stage.ALL)

    def _install_config(self, values: Values) -> bytes:
        if not self.options.ignore_cluster:
            self._transition(InstallState.CLUSTER_CHECK)
            error = run_preconditions(
                self._health_check_options(values), self.health_api_factory
            )
            if error is not None:
                raise error

        return self._render(values, Stage.CONFIG)

    def _install_control_plane(self, values: Values) -> bytes:
        """Render the namespaced control plane.

        Issuer credentials are not generated in this mode: the issuer
        certificate and key must be supplied through the identity-issuer-*
        settings (or an external issuer configured).
        """
        namespace = values.namespace
        self._transition(InstallState.EXISTING_INSTALL_CHECK)

        if not (self.options.skip_checks or self.options.ignore_cluster):
            error = run_preconditions(
                self._health_check_options(values), self.health_api_factory
            )
            if error is None:
                raise GlobalResourcesMissingError(namespace)
            if not isinstance(error, GlobalResourcesExistError):
                raise error
            logger.info("Linkerd global resources found; the config stage has run")

        if not self.options.ignore_cluster:
            check_existing_config(self.client_factory(self.options, None), namespace)

        issuer = values.identity.issuer
        if issuer.scheme != EXTERNAL_ISSUER_SCHEME and not issuer.tls.crt_pem:
            self._warn(
                "No identity issuer certificate supplied; set "
                "identity-issuer-certificate-file and identity-issuer-key-file "
                "or the issuer Secret will be rendered empty"
            )

        self._validate(values)
        return self._render(values, Stage.CONTROL_PLANE)

    # =========================================================================
    # Steps
    # =========================================================================

    def _validate(self, values: Values) -> None:
        self._transition(InstallState.VALUE_VALIDATION)
        validate_values(values)
        derive_configs(values)

    def _render(self, values: Values, stage: Stage) -> bytes:
        self._transition(InstallState.RENDER)
        return render(values, stage, self.engine)

    def _health_check_options(self, values: Values) -> HealthCheckOptions:
        return self.options.health_check_options(
            values.namespace, cni_enabled=values.global_.cni_enabled
        )

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def _transition(self, state: InstallState) -> None:
        logger.debug(f"Install state: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)
