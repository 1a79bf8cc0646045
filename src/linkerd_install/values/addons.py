"""Add-on discovery.

Add-ons are optional sub-charts rendered alongside the base chart. The set
of add-on kinds is closed: each kind is an AddOn subclass registered in
ADDON_TYPES, in the order their output is rendered.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar

import yaml  # type: ignore[import-untyped]

from ..errors import AddOnParseError
from .model import Values


class AddOn:
    """An enabled add-on and its configuration block.

    Subclasses declare the add-on name and the templates of their
    sub-chart for each install stage.
    """

    name: ClassVar[str]
    config_templates: ClassVar[tuple[str, ...]] = ()
    control_plane_templates: ClassVar[tuple[str, ...]] = ()

    def __init__(self, config: Mapping[str, Any]) -> None:
        self.config = dict(config)

    def values(self) -> bytes:
        """Return the add-on's own values in raw YAML form."""
        return yaml.safe_dump(
            self.config, sort_keys=False, default_flow_style=False
        ).encode()

    def config_stage_templates(self) -> list[str]:
        """Templates rendered by the config stage."""
        return list(self.config_templates)

    def control_plane_stage_templates(self) -> list[str]:
        """Templates rendered by the control-plane stage."""
        return list(self.control_plane_templates)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(enabled={self.config.get('enabled')})"


class Grafana(AddOn):
    name = "grafana"
    config_templates = ("templates/grafana-rbac.yaml",)
    control_plane_templates = ("templates/grafana.yaml",)


class Tracing(AddOn):
    name = "tracing"
    config_templates = ("templates/tracing-rbac.yaml",)
    control_plane_templates = ("templates/tracing.yaml",)


ADDON_TYPES: dict[str, type[AddOn]] = {
    Grafana.name: Grafana,
    Tracing.name: Tracing,
}


def discover_addons(values: Values) -> list[AddOn]:
    """Return the enabled add-ons in registry order.

    A missing or null block means the add-on is disabled.

    Raises:
        AddOnParseError: If a block is not a mapping or its ``enabled``
            key is not a boolean
    """
    addons: list[AddOn] = []
    for name, addon_type in ADDON_TYPES.items():
        block = getattr(values, name)
        if block is None:
            continue
        if not isinstance(block, Mapping):
            raise AddOnParseError(
                f"invalid '{name}' add-on configuration: expected a mapping, "
                f"got {type(block).__name__}"
            )
        enabled = block.get("enabled", False)
        if not isinstance(enabled, bool):
            raise AddOnParseError(
                f"invalid '{name}' add-on configuration: 'enabled' must be a "
                f"boolean, got {enabled!r}"
            )
        if enabled:
            addons.append(addon_type(block))
    return addons
