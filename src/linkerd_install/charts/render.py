"""Render pipeline.

Composes the base ``linkerd2`` chart with one sibling chart per enabled
add-on, renders them for the requested stage and appends the
``linkerd-config-overrides`` Secret holding the non-default settings.
"""

from __future__ import annotations

import base64
from typing import Any

import yaml  # type: ignore[import-untyped]
from loguru import logger

from ..constants import InstallConstants
from ..values.addons import discover_addons
from ..values.diff import diff
from ..values.model import Values, new_defaults
from .engine import Chart, TemplateEngine
from .registry import TEMPLATES_CONFIG_STAGE, TEMPLATES_CONTROL_PLANE_STAGE, Stage

_CONSTANTS = InstallConstants()


def render(
    values: Values,
    stage: Stage | str | None = Stage.ALL,
    engine: TemplateEngine | None = None,
) -> bytes:
    """Render the manifest stream for ``stage``.

    The base chart output comes first, then each enabled add-on chart in
    discovery order, then the override Secret. ``values`` is not modified.

    Args:
        values: Effective values
        stage: Installation stage to render
        engine: Template engine (a default Jinja2 engine when omitted)

    Returns:
        The complete YAML stream

    Raises:
        AddOnParseError: If an add-on block is malformed
        RenderError: If a chart fails to render
        DiffError: If the override record cannot be computed
    """
    resolved = Stage.parse(stage)
    engine = engine or TemplateEngine()
    values = values.copy_deep()
    namespace = values.namespace
    raw_values = values.to_raw()

    addons = discover_addons(values)
    base_files = [_CONSTANTS.CHART_FILE]
    addon_charts: list[Chart] = [
        Chart(
            name=addon.name,
            directory=_CONSTANTS.addon_chart_path(addon.name),
            namespace=namespace,
            raw_values=addon.values() + raw_values,
            files=[_CONSTANTS.CHART_FILE, _CONSTANTS.VALUES_FILE],
        )
        for addon in addons
    ]

    if resolved.includes_config:
        base_files.extend(TEMPLATES_CONFIG_STAGE)
        for addon, chart in zip(addons, addon_charts):
            chart.files.extend(addon.config_stage_templates())
    if resolved.includes_control_plane:
        base_files.extend(TEMPLATES_CONTROL_PLANE_STAGE)
        for addon, chart in zip(addons, addon_charts):
            chart.files.extend(addon.control_plane_stage_templates())

    logger.info(
        f"Rendering stage '{resolved.value or '(all)'}' for namespace {namespace} "
        f"with add-ons: {[addon.name for addon in addons] or 'none'}"
    )

    base_chart = Chart(
        name=_CONSTANTS.CHART_NAME,
        directory=_CONSTANTS.chart_path,
        namespace=namespace,
        raw_values=raw_values,
        files=base_files,
    )
    buffer = bytearray(engine.render(base_chart))
    for chart in addon_charts:
        buffer += engine.render(chart)

    buffer += _CONSTANTS.YAML_SEPARATOR.encode()
    buffer += render_overrides(values, namespace)
    return bytes(buffer)


def override_record(values: Values) -> dict[str, Any]:
    """Return the settings of ``values`` that differ from fresh defaults."""
    return diff(new_defaults(), values)


def render_overrides(values: Values, namespace: str) -> bytes:
    """Serialize the override record into the ``linkerd-config-overrides`` Secret."""
    overrides = override_record(values)
    logger.debug(f"Override record has {len(overrides)} top-level key(s)")
    payload = yaml.safe_dump(overrides, default_flow_style=False).encode()

    secret = {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {
            "name": _CONSTANTS.OVERRIDES_SECRET_NAME,
            "namespace": namespace,
        },
        "data": {
            _CONSTANTS.OVERRIDES_SECRET_NAME: base64.b64encode(payload).decode(),
        },
    }
    return yaml.safe_dump(secret, default_flow_style=False).encode()


def decode_overrides(manifest: bytes) -> dict[str, Any]:
    """Extract the override record from a rendered stream's Secret document."""
    for document in yaml.safe_load_all(manifest):
        if (
            isinstance(document, dict)
            and document.get("kind") == "Secret"
            and document.get("metadata", {}).get("name")
            == _CONSTANTS.OVERRIDES_SECRET_NAME
        ):
            encoded = document["data"][_CONSTANTS.OVERRIDES_SECRET_NAME]
            return yaml.safe_load(base64.b64decode(encoded)) or {}
    raise ValueError("manifest holds no override Secret")


__all__ = ["render", "render_overrides", "override_record", "decode_overrides"]
