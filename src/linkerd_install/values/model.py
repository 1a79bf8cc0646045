"""Chart value model.

The Values tree mirrors the linkerd2 chart's values.yaml: global settings,
per-component settings, free-form add-on blocks and the derived ``configs``
blob. Field names are snake_case in Python and camelCase in YAML.

Defaults come exclusively from the packaged values.yaml, so building them
never touches the cluster and always yields the same tree.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..constants import InstallConstants


class ValuesModel(BaseModel):
    """Base model for every node of the values tree."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        extra="forbid",
    )


# =============================================================================
# Global Settings
# =============================================================================


class ImageSettings(ValuesModel):
    name: str
    version: str
    pull_policy: str


class ResourceRequirement(ValuesModel):
    request: str
    limit: str


class ProxyResources(ValuesModel):
    cpu: ResourceRequirement
    memory: ResourceRequirement


class ProxyPorts(ValuesModel):
    admin: int
    control: int
    inbound: int
    outbound: int


class ProxySettings(ValuesModel):
    """Data-plane proxy settings injected into every meshed pod."""

    image: ImageSettings
    log_level: str
    uid: int
    enable_external_profiles: bool
    ports: ProxyPorts
    resources: ProxyResources


class ProxyInitSettings(ValuesModel):
    image: ImageSettings
    ignore_inbound_ports: str
    ignore_outbound_ports: str


class GlobalSettings(ValuesModel):
    """Settings shared by every component of the control plane."""

    namespace: str
    cluster_domain: str
    cni_enabled: bool
    identity_trust_domain: str
    identity_trust_anchors_pem: str = Field(alias="identityTrustAnchorsPEM")
    image_pull_policy: str
    linkerd_version: str
    controller_component_label: str
    controller_namespace_label: str
    control_plane_tracing: bool
    proxy: ProxySettings
    proxy_init: ProxyInitSettings


# =============================================================================
# Component Settings
# =============================================================================


class DashboardSettings(ValuesModel):
    replicas: int


class IssuerTLS(ValuesModel):
    crt_pem: str = Field(alias="crtPEM")
    key_pem: str = Field(alias="keyPEM")


class IssuerSettings(ValuesModel):
    """Identity issuer settings.

    ``scheme`` is ``linkerd.io/tls`` when the issuer certificate is part of
    the install, or ``kubernetes.io/tls`` when it is provided by an external
    issuer through the linkerd-identity-issuer Secret.
    """

    scheme: str
    clock_skew_allowance: str
    issuance_lifetime: str
    crt_expiry: str
    tls: IssuerTLS


class IdentitySettings(ValuesModel):
    issuer: IssuerSettings


class ConfigJSONs(ValuesModel):
    """JSON documents derived from the values for the linkerd-config map."""

    global_: str = Field(default="", alias="global")
    proxy: str = ""
    install: str = ""


# =============================================================================
# Values Root
# =============================================================================


class Values(ValuesModel):
    """Complete configuration of a Linkerd installation."""

    global_: GlobalSettings = Field(alias="global")
    controller_image: str
    controller_replicas: int
    controller_log_level: str
    controller_uid: int = Field(alias="controllerUID")
    enable_h2_upgrade: bool = Field(alias="enableH2Upgrade")
    enable_pod_anti_affinity: bool
    omit_webhook_side_effects: bool
    webhook_failure_policy: str
    restrict_dashboard_privileges: bool
    disable_heart_beat: bool
    heartbeat_schedule: str
    install_namespace: bool
    dashboard: DashboardSettings
    identity: IdentitySettings
    configs: ConfigJSONs = Field(default_factory=ConfigJSONs)

    # Add-on blocks are free-form; they are parsed by values.addons
    grafana: Any = None
    tracing: Any = None

    @property
    def namespace(self) -> str:
        """Control-plane namespace."""
        return self.global_.namespace

    def to_tree(self) -> dict[str, Any]:
        """Return the values as a plain tree keyed by chart (YAML) names."""
        return self.model_dump(by_alias=True, mode="json")

    def to_raw(self) -> bytes:
        """Serialize the values to the chart's raw values form."""
        return yaml.safe_dump(
            self.to_tree(), sort_keys=False, default_flow_style=False
        ).encode()

    def copy_deep(self) -> Values:
        """Return an independent copy of the values tree."""
        return self.model_copy(deep=True)


@lru_cache(maxsize=1)
def _load_default_tree() -> str:
    path = InstallConstants().chart_path / InstallConstants.VALUES_FILE
    return path.read_text()


def new_defaults() -> Values:
    """Build values from the packaged chart defaults only.

    Returns:
        A fresh Values instance; every call returns an independent tree
    """
    loaded: dict[str, Any] = yaml.safe_load(_load_default_tree())
    return Values.model_validate(loaded)


def values_from_tree(tree: dict[str, Any]) -> Values:
    """Validate a raw values tree into a Values instance."""
    return Values.model_validate(tree)
