"""Semantic validation of the effective values.

validate_values() collects every problem in one pass so the user sees the
full list at once; derive_configs() fills the ``configs`` blob consumed by
the linkerd-config ConfigMap once the values are known to be valid.
"""

from __future__ import annotations

import json
import re

from loguru import logger

from ..errors import ValidationError
from .flags import EXTERNAL_ISSUER_SCHEME, LINKERD_ISSUER_SCHEME
from .model import Values

DNS1123_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
DNS1123_SUBDOMAIN = re.compile(
    r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$"
)
GO_DURATION = re.compile(r"^([0-9]+(\.[0-9]+)?(ns|us|µs|ms|s|m|h))+$")
PORT_OR_RANGE = re.compile(r"^([0-9]+)(-([0-9]+))?$")

CONTROLLER_LOG_LEVELS = ("panic", "fatal", "error", "warn", "info", "debug")
PROXY_LOG_LEVELS = ("off", "error", "warn", "info", "debug", "trace")
WEBHOOK_FAILURE_POLICIES = ("Ignore", "Fail")
IMAGE_PULL_POLICIES = ("Always", "IfNotPresent", "Never")
ISSUER_SCHEMES = (LINKERD_ISSUER_SCHEME, EXTERNAL_ISSUER_SCHEME)


def _valid_port(port: int) -> bool:
    return 0 < port <= 65535


def _check_port_list(name: str, spec: str, problems: list[str]) -> None:
    if not spec:
        return
    for item in spec.split(","):
        item = item.strip()
        match = PORT_OR_RANGE.match(item)
        if not match:
            problems.append(f"{name}: '{item}' is not a port or port range")
            continue
        low = int(match.group(1))
        high = int(match.group(3)) if match.group(3) else low
        if not (_valid_port(low) and _valid_port(high)) or low > high:
            problems.append(f"{name}: '{item}' is not a valid port range")


def _check_proxy_log_level(level: str, problems: list[str]) -> None:
    if not level:
        problems.append("proxy log level must not be empty")
        return
    for directive in level.split(","):
        target, _, lvl = directive.rpartition("=")
        if lvl not in PROXY_LOG_LEVELS or (directive.count("=") and not target):
            problems.append(f"'{directive}' is not a valid proxy log level directive")


def validate_values(values: Values) -> None:
    """Validate the effective values.

    Raises:
        ValidationError: Listing every problem found
    """
    problems: list[str] = []
    glob = values.global_
    proxy = glob.proxy
    issuer = values.identity.issuer

    if len(glob.namespace) > 63 or not DNS1123_LABEL.match(glob.namespace):
        problems.append(
            f"'{glob.namespace}' is not a valid namespace (must be a DNS-1123 label)"
        )
    for label, domain in (
        ("cluster domain", glob.cluster_domain),
        ("identity trust domain", glob.identity_trust_domain),
    ):
        if len(domain) > 253 or not DNS1123_SUBDOMAIN.match(domain):
            problems.append(f"'{domain}' is not a valid {label}")

    if values.controller_log_level not in CONTROLLER_LOG_LEVELS:
        problems.append(
            f"--controller-log-level must be one of: {', '.join(CONTROLLER_LOG_LEVELS)}"
        )
    _check_proxy_log_level(proxy.log_level, problems)

    if values.webhook_failure_policy not in WEBHOOK_FAILURE_POLICIES:
        problems.append(
            "--webhook-failure-policy must be one of: "
            f"{', '.join(WEBHOOK_FAILURE_POLICIES)}"
        )
    if glob.image_pull_policy not in IMAGE_PULL_POLICIES:
        problems.append(
            f"--image-pull-policy must be one of: {', '.join(IMAGE_PULL_POLICIES)}"
        )
    if values.controller_replicas < 1:
        problems.append("--controller-replicas must be at least 1")
    if values.dashboard.replicas < 1:
        problems.append("dashboard replicas must be at least 1")

    ports = proxy.ports
    for name, port in (
        ("admin", ports.admin),
        ("control", ports.control),
        ("inbound", ports.inbound),
        ("outbound", ports.outbound),
    ):
        if not _valid_port(port):
            problems.append(f"proxy {name} port {port} is out of range")
    if ports.inbound == ports.outbound:
        problems.append("--inbound-port and --outbound-port must be different")
    _check_port_list("--skip-inbound-ports", glob.proxy_init.ignore_inbound_ports, problems)
    _check_port_list(
        "--skip-outbound-ports", glob.proxy_init.ignore_outbound_ports, problems
    )

    for flag, duration in (
        ("--identity-issuance-lifetime", issuer.issuance_lifetime),
        ("--identity-clock-skew-allowance", issuer.clock_skew_allowance),
    ):
        if not GO_DURATION.match(duration):
            problems.append(f"{flag}: '{duration}' is not a valid duration")

    if issuer.scheme not in ISSUER_SCHEMES:
        problems.append(
            f"identity issuer scheme must be one of: {', '.join(ISSUER_SCHEMES)}"
        )
    has_crt = bool(issuer.tls.crt_pem)
    has_key = bool(issuer.tls.key_pem)
    if issuer.scheme == EXTERNAL_ISSUER_SCHEME and (has_crt or has_key):
        problems.append(
            "--identity-issuer-certificate-file and --identity-issuer-key-file "
            "cannot be used with --identity-external-issuer"
        )
    elif has_crt != has_key:
        problems.append(
            "--identity-issuer-certificate-file and --identity-issuer-key-file "
            "must be provided together"
        )

    if problems:
        logger.debug(f"Value validation found {len(problems)} problem(s)")
        raise ValidationError(problems)


def derive_configs(values: Values) -> None:
    """Fill the ``configs`` blob from the other values, in place."""
    glob = values.global_
    proxy = glob.proxy
    issuer = values.identity.issuer

    global_config = {
        "linkerdNamespace": glob.namespace,
        "cniEnabled": glob.cni_enabled,
        "version": glob.linkerd_version,
        "identityContext": {
            "trustDomain": glob.identity_trust_domain,
            "trustAnchorsPem": glob.identity_trust_anchors_pem,
            "issuanceLifetime": issuer.issuance_lifetime,
            "clockSkewAllowance": issuer.clock_skew_allowance,
            "scheme": issuer.scheme,
        },
        "omitWebhookSideEffects": values.omit_webhook_side_effects,
        "clusterDomain": glob.cluster_domain,
    }
    proxy_config = {
        "proxyImage": {"imageName": proxy.image.name, "pullPolicy": proxy.image.pull_policy},
        "proxyInitImage": {
            "imageName": glob.proxy_init.image.name,
            "pullPolicy": glob.proxy_init.image.pull_policy,
        },
        "controlPort": {"port": proxy.ports.control},
        "ignoreInboundPorts": _port_config(glob.proxy_init.ignore_inbound_ports),
        "ignoreOutboundPorts": _port_config(glob.proxy_init.ignore_outbound_ports),
        "inboundPort": {"port": proxy.ports.inbound},
        "adminPort": {"port": proxy.ports.admin},
        "outboundPort": {"port": proxy.ports.outbound},
        "resource": {
            "requestCpu": proxy.resources.cpu.request,
            "limitCpu": proxy.resources.cpu.limit,
            "requestMemory": proxy.resources.memory.request,
            "limitMemory": proxy.resources.memory.limit,
        },
        "proxyUid": proxy.uid,
        "logLevel": {"level": proxy.log_level},
        "disableExternalProfiles": not proxy.enable_external_profiles,
        "proxyVersion": proxy.image.version,
        "proxyInitImageVersion": glob.proxy_init.image.version,
    }
    install_config = {
        "cliVersion": glob.linkerd_version,
        "flags": [],
    }

    values.configs.global_ = json.dumps(global_config, sort_keys=True)
    values.configs.proxy = json.dumps(proxy_config, sort_keys=True)
    values.configs.install = json.dumps(install_config, sort_keys=True)


def _port_config(spec: str) -> list[dict[str, str]]:
    return [{"portRange": item.strip()} for item in spec.split(",") if item.strip()]
