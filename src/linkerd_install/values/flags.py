"""Install settings registry.

Each install setting is a Flag: a user-facing name bound either to a path
in the values tree or to a custom applier. Flags are grouped the way the
install commands expose them:

- all-stage: accepted by every install command
- install-only: only meaningful for a fresh install
- install-upgrade: shared by install and upgrade
- proxy: data-plane proxy settings

apply_overrides() applies an ordered list of (name, value) settings onto a
Values tree, coercing each value to the type of its target field.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from loguru import logger
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..errors import ParseError
from .model import Values

Setting = tuple[str, Any]

EXTERNAL_ISSUER_SCHEME = "kubernetes.io/tls"
LINKERD_ISSUER_SCHEME = "linkerd.io/tls"


class FlagGroup(str, Enum):
    """Groups of install settings."""

    ALL_STAGE = "all-stage"
    INSTALL_ONLY = "install-only"
    INSTALL_UPGRADE = "install-upgrade"
    PROXY = "proxy"


@dataclass(frozen=True)
class Flag:
    """A named install setting.

    Attributes:
        name: Setting name as given on the command line
        group: Flag group the setting belongs to
        help: One-line description
        path: Chart (YAML) key path of the target field
        value_type: Target type for values stored in free-form mappings
        from_file: The value is a file path whose content is the setting
        apply: Custom applier used instead of ``path``
    """

    name: str
    group: FlagGroup
    help: str
    path: tuple[str, ...] = ()
    value_type: Any = str
    from_file: bool = False
    apply: Callable[[Values, Any], None] | None = None

    def set(self, values: Values, raw: Any) -> None:
        """Coerce ``raw`` and store it into ``values``.

        Raises:
            ParseError: If the value cannot be read or coerced
        """
        value = _read_file(self.name, raw) if self.from_file else raw
        try:
            if self.apply is not None:
                self.apply(values, value)
            else:
                set_path(values, self.path, value, self.value_type)
        except PydanticValidationError as e:
            reason = e.errors()[0]["msg"] if e.errors() else str(e)
            raise ParseError(
                f"invalid value {raw!r} for setting '{self.name}': {reason}"
            ) from e


def _read_file(name: str, path: Any) -> str:
    try:
        return Path(str(path)).expanduser().read_text()
    except OSError as e:
        raise ParseError(f"cannot read file for setting '{name}': {e}") from e


# =============================================================================
# Tree Navigation
# =============================================================================


def _field_name(node: BaseModel, key: str) -> str:
    for name, info in type(node).model_fields.items():
        if key in (info.alias, name):
            return name
    raise ParseError(f"'{key}' is not a field of {type(node).__name__}")


def _child(node: Any, key: str) -> Any:
    if isinstance(node, BaseModel):
        return getattr(node, _field_name(node, key))
    if isinstance(node, dict):
        return node.setdefault(key, {})
    raise ParseError(f"cannot descend into '{key}': parent is not a mapping")


def set_path(values: Values, path: Sequence[str], value: Any, value_type: Any) -> None:
    """Assign ``value`` at the chart key ``path`` of ``values``.

    Model fields are coerced by pydantic assignment validation; entries of
    free-form mappings are coerced to ``value_type``.
    """
    if not path:
        raise ParseError("empty settings path")
    node: Any = values
    for key in path[:-1]:
        node = _child(node, key)
    leaf = path[-1]
    if isinstance(node, BaseModel):
        setattr(node, _field_name(node, leaf), value)
    elif isinstance(node, dict):
        node[leaf] = TypeAdapter(value_type).validate_python(value)
    else:
        raise ParseError(f"cannot set '{leaf}': parent is not a mapping")


# =============================================================================
# Custom Appliers
# =============================================================================


def _as_bool(value: Any) -> bool:
    return TypeAdapter(bool).validate_python(value)


def _apply_ha(values: Values, value: Any) -> None:
    if not _as_bool(value):
        return
    values.controller_replicas = 3
    values.enable_pod_anti_affinity = True
    values.webhook_failure_policy = "Fail"


def _apply_external_issuer(values: Values, value: Any) -> None:
    external = _as_bool(value)
    values.identity.issuer.scheme = (
        EXTERNAL_ISSUER_SCHEME if external else LINKERD_ISSUER_SCHEME
    )


def _port_list(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, Iterable):
        return ",".join(str(v) for v in value)
    return str(value)


def _apply_skip_inbound(values: Values, value: Any) -> None:
    values.global_.proxy_init.ignore_inbound_ports = _port_list(value)


def _apply_skip_outbound(values: Values, value: Any) -> None:
    values.global_.proxy_init.ignore_outbound_ports = _port_list(value)


def _deep_merge(base: dict[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_addon_config(values: Values, content: Any) -> None:
    from .addons import ADDON_TYPES

    try:
        loaded = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ParseError(f"invalid add-on configuration: {e}") from e
    if not isinstance(loaded, dict):
        raise ParseError("add-on configuration must be a mapping of add-on names")

    for name, block in loaded.items():
        if name not in ADDON_TYPES:
            raise ParseError(f"unknown add-on '{name}' in add-on configuration")
        if not isinstance(block, dict):
            raise ParseError(f"configuration of add-on '{name}' must be a mapping")
        current = getattr(values, name)
        base = current if isinstance(current, dict) else {}
        setattr(values, name, _deep_merge(base, block))


# =============================================================================
# Flag Sets
# =============================================================================

ALL_STAGE_FLAGS: tuple[Flag, ...] = (
    Flag(
        "linkerd-namespace",
        FlagGroup.ALL_STAGE,
        "Namespace in which Linkerd is installed",
        ("global", "namespace"),
    ),
    Flag(
        "cluster-domain",
        FlagGroup.ALL_STAGE,
        "Custom cluster domain",
        ("global", "clusterDomain"),
    ),
    Flag(
        "linkerd-cni-enabled",
        FlagGroup.ALL_STAGE,
        "Omit the NET_ADMIN capability in the PSP and the proxy-init container",
        ("global", "cniEnabled"),
    ),
    Flag(
        "restrict-dashboard-privileges",
        FlagGroup.ALL_STAGE,
        "Restrict the Linkerd Dashboard's default privileges to disallow Tap",
        ("restrictDashboardPrivileges",),
    ),
)

INSTALL_ONLY_FLAGS: tuple[Flag, ...] = (
    Flag(
        "identity-trust-domain",
        FlagGroup.INSTALL_ONLY,
        "Configures the name suffix used for identities",
        ("global", "identityTrustDomain"),
    ),
    Flag(
        "identity-trust-anchors-file",
        FlagGroup.INSTALL_ONLY,
        "A path to a PEM-encoded file containing Linkerd Identity trust anchors",
        ("global", "identityTrustAnchorsPEM"),
        from_file=True,
    ),
    Flag(
        "identity-issuance-lifetime",
        FlagGroup.INSTALL_ONLY,
        "The amount of time for which the Identity issuer should certify identity",
        ("identity", "issuer", "issuanceLifetime"),
    ),
    Flag(
        "identity-clock-skew-allowance",
        FlagGroup.INSTALL_ONLY,
        "The amount of time to allow for clock skew within a Linkerd cluster",
        ("identity", "issuer", "clockSkewAllowance"),
    ),
    Flag(
        "identity-external-issuer",
        FlagGroup.INSTALL_ONLY,
        "Use the linkerd-identity-issuer Secret managed by an external issuer",
        apply=_apply_external_issuer,
    ),
    Flag(
        "disable-heartbeat",
        FlagGroup.INSTALL_ONLY,
        "Disables the heartbeat cronjob",
        ("disableHeartBeat",),
    ),
)

INSTALL_UPGRADE_FLAGS: tuple[Flag, ...] = (
    Flag(
        "controller-replicas",
        FlagGroup.INSTALL_UPGRADE,
        "Replicas of the controller to deploy",
        ("controllerReplicas",),
    ),
    Flag(
        "controller-log-level",
        FlagGroup.INSTALL_UPGRADE,
        "Log level for the controller and web components",
        ("controllerLogLevel",),
    ),
    Flag(
        "ha",
        FlagGroup.INSTALL_UPGRADE,
        "Enable HA deployment config for the control plane",
        apply=_apply_ha,
    ),
    Flag(
        "enable-h2-upgrade",
        FlagGroup.INSTALL_UPGRADE,
        "Allow proxies to perform transparent HTTP/2 upgrading",
        ("enableH2Upgrade",),
    ),
    Flag(
        "omit-webhook-side-effects",
        FlagGroup.INSTALL_UPGRADE,
        "Omit the sideEffects flag in the webhook manifests",
        ("omitWebhookSideEffects",),
    ),
    Flag(
        "webhook-failure-policy",
        FlagGroup.INSTALL_UPGRADE,
        "Failure policy of the proxy injector and service profile validator",
        ("webhookFailurePolicy",),
    ),
    Flag(
        "control-plane-tracing",
        FlagGroup.INSTALL_UPGRADE,
        "Enables control plane tracing",
        ("global", "controlPlaneTracing"),
    ),
    Flag(
        "identity-issuer-certificate-file",
        FlagGroup.INSTALL_UPGRADE,
        "A path to a PEM-encoded file containing the Linkerd Identity issuer certificate",
        ("identity", "issuer", "tls", "crtPEM"),
        from_file=True,
    ),
    Flag(
        "identity-issuer-key-file",
        FlagGroup.INSTALL_UPGRADE,
        "A path to a PEM-encoded file containing the Linkerd Identity issuer private key",
        ("identity", "issuer", "tls", "keyPEM"),
        from_file=True,
    ),
    Flag(
        "addon-config",
        FlagGroup.INSTALL_UPGRADE,
        "A path to a YAML file with add-on configuration blocks",
        from_file=True,
        apply=_apply_addon_config,
    ),
)

PROXY_FLAGS: tuple[Flag, ...] = (
    Flag(
        "proxy-image",
        FlagGroup.PROXY,
        "Linkerd proxy container image name",
        ("global", "proxy", "image", "name"),
    ),
    Flag(
        "proxy-version",
        FlagGroup.PROXY,
        "Tag to be used for the Linkerd proxy images",
        ("global", "proxy", "image", "version"),
    ),
    Flag(
        "image-pull-policy",
        FlagGroup.PROXY,
        "Docker image pull policy",
        ("global", "imagePullPolicy"),
    ),
    Flag(
        "proxy-log-level",
        FlagGroup.PROXY,
        "Log level for the proxy",
        ("global", "proxy", "logLevel"),
    ),
    Flag(
        "proxy-uid",
        FlagGroup.PROXY,
        "Run the proxy under this user ID",
        ("global", "proxy", "uid"),
    ),
    Flag(
        "inbound-port",
        FlagGroup.PROXY,
        "Proxy port to use for inbound traffic",
        ("global", "proxy", "ports", "inbound"),
    ),
    Flag(
        "outbound-port",
        FlagGroup.PROXY,
        "Proxy port to use for outbound traffic",
        ("global", "proxy", "ports", "outbound"),
    ),
    Flag(
        "admin-port",
        FlagGroup.PROXY,
        "Proxy port to serve metrics on",
        ("global", "proxy", "ports", "admin"),
    ),
    Flag(
        "control-port",
        FlagGroup.PROXY,
        "Proxy port to use for control",
        ("global", "proxy", "ports", "control"),
    ),
    Flag(
        "skip-inbound-ports",
        FlagGroup.PROXY,
        "Ports and/or port ranges that should skip the proxy for inbound traffic",
        apply=_apply_skip_inbound,
    ),
    Flag(
        "skip-outbound-ports",
        FlagGroup.PROXY,
        "Ports and/or port ranges that should skip the proxy for outbound traffic",
        apply=_apply_skip_outbound,
    ),
    Flag(
        "proxy-cpu-request",
        FlagGroup.PROXY,
        "Amount of CPU units that the proxy sidecar requests",
        ("global", "proxy", "resources", "cpu", "request"),
    ),
    Flag(
        "proxy-cpu-limit",
        FlagGroup.PROXY,
        "Maximum amount of CPU units that the proxy sidecar can use",
        ("global", "proxy", "resources", "cpu", "limit"),
    ),
    Flag(
        "proxy-memory-request",
        FlagGroup.PROXY,
        "Amount of Memory that the proxy sidecar requests",
        ("global", "proxy", "resources", "memory", "request"),
    ),
    Flag(
        "proxy-memory-limit",
        FlagGroup.PROXY,
        "Maximum amount of Memory that the proxy sidecar can use",
        ("global", "proxy", "resources", "memory", "limit"),
    ),
    Flag(
        "init-image",
        FlagGroup.PROXY,
        "Linkerd init container image name",
        ("global", "proxyInit", "image", "name"),
    ),
    Flag(
        "init-image-version",
        FlagGroup.PROXY,
        "Linkerd init container image version",
        ("global", "proxyInit", "image", "version"),
    ),
    Flag(
        "enable-external-profiles",
        FlagGroup.PROXY,
        "Enable service profiles for non-Kubernetes services",
        ("global", "proxy", "enableExternalProfiles"),
    ),
)

_FLAGS_BY_GROUP: dict[FlagGroup, tuple[Flag, ...]] = {
    FlagGroup.ALL_STAGE: ALL_STAGE_FLAGS,
    FlagGroup.INSTALL_ONLY: INSTALL_ONLY_FLAGS,
    FlagGroup.INSTALL_UPGRADE: INSTALL_UPGRADE_FLAGS,
    FlagGroup.PROXY: PROXY_FLAGS,
}


def flag_set(*groups: FlagGroup) -> dict[str, Flag]:
    """Return the flags of the given groups (all groups when none given)."""
    selected = groups or tuple(FlagGroup)
    return {
        flag.name: flag for group in selected for flag in _FLAGS_BY_GROUP[group]
    }


def parse_setting(text: str) -> Setting:
    """Parse a ``name=value`` setting.

    Raises:
        ParseError: If the text has no ``=`` or an empty name
    """
    name, sep, value = text.partition("=")
    name = name.strip().lstrip("-")
    if not sep or not name:
        raise ParseError(f"invalid setting '{text}': expected name=value")
    return name, value


def apply_overrides(
    values: Values,
    settings: Iterable[Setting],
    flags: Mapping[str, Flag] | None = None,
) -> None:
    """Apply an ordered list of settings onto ``values`` in place.

    Args:
        values: Values tree to mutate
        settings: (name, value) pairs, applied in order
        flags: Accepted flags (defaults to every registered flag)

    Raises:
        ParseError: If a setting name is unknown or its value fails coercion
    """
    registry = flags if flags is not None else flag_set()
    for name, raw in settings:
        flag = registry.get(name)
        if flag is None:
            raise ParseError(f"unknown setting '{name}'")
        logger.debug(f"Applying setting {name}={raw!r}")
        flag.set(values, raw)
