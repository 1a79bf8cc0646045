"""Install options record.

InstallOptions replaces process-wide toggles (ignore-cluster, skip-checks,
kubeconfig selection) with one immutable record threaded through the
orchestrator, the precondition checks and the cluster client factory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .constants import InstallConstants


@dataclass(frozen=True)
class HealthCheckOptions:
    """Options consumed by the health-check runner."""

    namespace: str
    kubeconfig_path: str | None = None
    kube_context: str | None = None
    impersonate: str | None = None
    impersonate_group: tuple[str, ...] = ()
    api_addr: str | None = None
    cni_enabled: bool = False


@dataclass(frozen=True)
class InstallOptions:
    """Runtime options for one install invocation.

    Attributes:
        kubeconfig_path: Path to the kubeconfig file (None for the default)
        kube_context: Kubeconfig context to use (None for the current one)
        impersonate: User to impersonate for cluster requests
        impersonate_group: Groups to impersonate for cluster requests
        api_addr: Override of the Kubernetes API server address
        ignore_cluster: Never contact the cluster
        skip_checks: Skip the precondition checks of the control-plane stage
        api_timeout: Request timeout of the full-install client, in seconds
    """

    kubeconfig_path: str | None = None
    kube_context: str | None = None
    impersonate: str | None = None
    impersonate_group: tuple[str, ...] = field(default_factory=tuple)
    api_addr: str | None = None
    ignore_cluster: bool = False
    skip_checks: bool = False
    api_timeout: float = InstallConstants.API_TIMEOUT

    @classmethod
    def from_env(cls, **overrides: Any) -> InstallOptions:
        """Build options from the environment, then apply explicit overrides.

        A .env file in the working directory is loaded first without
        overriding variables already set in the process environment.
        Overrides whose value is None are ignored so unset CLI options fall
        back to the environment.
        """
        load_dotenv(Path.cwd() / ".env", override=False)
        options = cls(
            kubeconfig_path=os.getenv("KUBECONFIG") or None,
            kube_context=os.getenv("LINKERD_KUBE_CONTEXT") or None,
            api_addr=os.getenv("LINKERD_API_ADDR") or None,
        )
        explicit = {k: v for k, v in overrides.items() if v is not None}
        return replace(options, **explicit)

    def health_check_options(
        self, namespace: str, cni_enabled: bool = False
    ) -> HealthCheckOptions:
        """Derive the health-check runner options for a namespace."""
        return HealthCheckOptions(
            namespace=namespace,
            kubeconfig_path=self.kubeconfig_path,
            kube_context=self.kube_context,
            impersonate=self.impersonate,
            impersonate_group=self.impersonate_group,
            api_addr=self.api_addr,
            cni_enabled=cni_enabled,
        )
