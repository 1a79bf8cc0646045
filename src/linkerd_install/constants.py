"""Install constants and diagnostic templates.

This module centralizes the resource names, chart locations, timeouts and
user-facing error templates used throughout the install pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

CHARTS_DIR = Path(__file__).parent / "charts"


@dataclass(frozen=True)
class InstallConstants:
    """Constants for rendering and checking a Linkerd installation.

    All attributes are class-level and immutable.
    """

    # Chart identifiers
    CHART_NAME: str = "linkerd2"
    CHART_DIR: str = "linkerd2"
    ADDON_CHARTS_DIR: str = "add-ons"
    CHART_FILE: str = "Chart.yaml"
    VALUES_FILE: str = "values.yaml"

    # Cluster resource names
    DEFAULT_NAMESPACE: str = "linkerd"
    CONFIG_MAP_NAME: str = "linkerd-config"
    OVERRIDES_SECRET_NAME: str = "linkerd-config-overrides"
    IDENTITY_ISSUER_SECRET_NAME: str = "linkerd-identity-issuer"
    CONTROL_PLANE_NS_LABEL: str = "linkerd.io/control-plane-ns"

    # Timeouts (seconds)
    API_TIMEOUT: float = 30.0

    # Document separator between rendered manifests
    YAML_SEPARATOR: str = "---\n"

    @property
    def chart_path(self) -> Path:
        """Get the directory of the base chart."""
        return CHARTS_DIR / self.CHART_DIR

    def addon_chart_path(self, name: str) -> Path:
        """Get the directory of an add-on sub-chart."""
        return CHARTS_DIR / self.ADDON_CHARTS_DIR / name


ERR_CANNOT_INITIALIZE_CLIENT = """Unable to install the Linkerd control plane. Cannot connect to the Kubernetes cluster:

{reason}

You can use the --ignore-cluster flag if you just want to generate the installation config."""

ERR_GLOBAL_RESOURCES_EXIST = """Unable to install the Linkerd control plane. It appears that there is an existing installation:

{resources}

If you are sure you'd like to have a fresh install, remove these resources with:

    linkerd-install install --ignore-cluster | kubectl delete -f -

Otherwise, you can use the --ignore-cluster flag to overwrite the existing global resources."""

ERR_CONFIG_RESOURCE_CONFLICT = (
    "Can't install the Linkerd control plane in the '{namespace}' namespace. "
    "Reason: {reason}.\n"
    "If this is expected, use the --ignore-cluster flag to continue the installation."
)

ERR_GLOBAL_RESOURCES_MISSING = (
    "Can't install the Linkerd control plane in the '{namespace}' namespace. "
    "The required Linkerd global resources are missing.\n"
    "If this is expected, use the --skip-checks flag to continue the installation."
)
