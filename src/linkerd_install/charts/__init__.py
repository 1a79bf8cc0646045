"""Packaged charts, stage registry and the render pipeline."""

from .engine import Chart, TemplateEngine
from .registry import (
    TEMPLATES_CONFIG_STAGE,
    TEMPLATES_CONTROL_PLANE_STAGE,
    Stage,
    templates_for,
)
from .render import decode_overrides, override_record, render, render_overrides

__all__ = [
    "Chart",
    "TemplateEngine",
    "Stage",
    "TEMPLATES_CONFIG_STAGE",
    "TEMPLATES_CONTROL_PLANE_STAGE",
    "templates_for",
    "render",
    "render_overrides",
    "override_record",
    "decode_overrides",
]
