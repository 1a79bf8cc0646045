"""Stage template registry.

Installation can be split into a ``config`` stage (cluster-wide resources,
RBAC and CRDs, requiring elevated privileges) and a ``control-plane`` stage
(the namespaced control-plane workloads). Every template of the base chart
belongs to exactly one of them.
"""

from __future__ import annotations

from enum import Enum


class Stage(str, Enum):
    """Installation stage selecting which templates are rendered."""

    ALL = ""
    CONFIG = "config"
    CONTROL_PLANE = "control-plane"

    @classmethod
    def parse(cls, value: Stage | str | None) -> Stage:
        """Resolve a stage name; ``None`` and ``(all)`` mean every stage.

        Raises:
            ValueError: If the stage is unknown
        """
        if isinstance(value, Stage):
            return value
        if value is None or value == "(all)":
            return cls.ALL
        return cls(value)

    @property
    def includes_config(self) -> bool:
        return self in (Stage.ALL, Stage.CONFIG)

    @property
    def includes_control_plane(self) -> bool:
        return self in (Stage.ALL, Stage.CONTROL_PLANE)


TEMPLATES_CONFIG_STAGE: tuple[str, ...] = (
    "templates/namespace.yaml",
    "templates/identity-rbac.yaml",
    "templates/controller-rbac.yaml",
    "templates/destination-rbac.yaml",
    "templates/heartbeat-rbac.yaml",
    "templates/web-rbac.yaml",
    "templates/serviceprofile-crd.yaml",
    "templates/trafficsplit-crd.yaml",
    "templates/proxy-injector-rbac.yaml",
    "templates/sp-validator-rbac.yaml",
    "templates/tap-rbac.yaml",
    "templates/psp.yaml",
)

TEMPLATES_CONTROL_PLANE_STAGE: tuple[str, ...] = (
    "templates/_config.tpl",
    "templates/_helpers.tpl",
    "templates/identity.yaml",
    "templates/controller.yaml",
    "templates/destination.yaml",
    "templates/heartbeat.yaml",
    "templates/web.yaml",
    "templates/proxy-injector.yaml",
    "templates/sp-validator.yaml",
    "templates/tap.yaml",
    "templates/linkerd-config-addons.yaml",
)


def templates_for(stage: Stage | str | None) -> list[str]:
    """Return the base chart templates of a stage, in render order.

    The ALL stage is the config stage followed by the control-plane stage.

    Raises:
        ValueError: If the stage is unknown
    """
    resolved = Stage.parse(stage)
    templates: list[str] = []
    if resolved.includes_config:
        templates.extend(TEMPLATES_CONFIG_STAGE)
    if resolved.includes_control_plane:
        templates.extend(TEMPLATES_CONTROL_PLANE_STAGE)
    return templates
