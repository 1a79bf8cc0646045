"""Chart model and Jinja2 template engine.

A Chart is a named bundle of raw YAML values and an ordered list of files
taken from a chart directory. The TemplateEngine renders the files in order
into one YAML stream, following the Helm conventions the charts are written
for:

- ``Chart.yaml`` is required and exposed to templates as ``Chart``
- ``values.yaml`` (when listed) supplies defaults underneath the raw values
- files whose name starts with ``_`` are macro libraries and are not emitted
- every emitted template is preceded by ``---`` and a ``# Source:`` comment
"""

from __future__ import annotations

import base64
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Any

import yaml  # type: ignore[import-untyped]
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError
from loguru import logger

from ..constants import InstallConstants
from ..errors import RenderError

_CONSTANTS = InstallConstants()


@dataclass
class Chart:
    """A chart instance ready to be rendered.

    Attributes:
        name: Chart name, used in ``# Source:`` comments and as release name
        directory: Directory holding Chart.yaml, values.yaml and templates/
        namespace: Namespace the release is rendered for
        raw_values: Raw YAML values
        files: Ordered chart files to render
    """

    name: str
    directory: Path
    namespace: str
    raw_values: bytes
    files: list[str] = field(default_factory=list)


class _FirstKeyWinsLoader(yaml.SafeLoader):
    """Safe loader keeping the first occurrence of a duplicated mapping key.

    Raw values of add-on charts are the add-on block followed by the base
    values; keys of the add-on block must win.
    """

    def construct_mapping(self, node: Any, deep: bool = False) -> dict[Any, Any]:
        self.flatten_mapping(node)
        mapping: dict[Any, Any] = {}
        for key_node, value_node in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in mapping:
                continue
            mapping[key] = self.construct_object(value_node, deep=deep)
        return mapping


def load_raw_values(raw: bytes) -> dict[str, Any]:
    """Parse raw chart values; the first occurrence of a key takes precedence."""
    loaded = yaml.load(raw, Loader=_FirstKeyWinsLoader) or {}
    if not isinstance(loaded, dict):
        raise RenderError("chart values must be a YAML mapping")
    return loaded


def merge_values(
    defaults: Mapping[str, Any], overrides: Mapping[str, Any]
) -> dict[str, Any]:
    """Deep-merge ``overrides`` onto ``defaults``."""
    merged = dict(defaults)
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = merge_values(current, value)
        else:
            merged[key] = value
    return merged


# =============================================================================
# Template Filters
# =============================================================================


def to_yaml(value: Any) -> str:
    return yaml.safe_dump(value, sort_keys=False, default_flow_style=False).rstrip("\n")


def to_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True)


def b64enc(value: Any) -> str:
    return base64.b64encode(str(value).encode()).decode()


def quote(value: Any) -> str:
    return json.dumps("" if value is None else str(value))


@lru_cache(maxsize=None)
def _environment(directory: str) -> Environment:
    env = Environment(
        loader=FileSystemLoader(directory),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters["toyaml"] = to_yaml
    env.filters["tojson"] = to_json
    env.filters["b64enc"] = b64enc
    env.filters["quote"] = quote
    return env


class TemplateEngine:
    """Renders charts from their directory with Jinja2."""

    def render(self, chart: Chart) -> bytes:
        """Render every listed file of ``chart`` into one YAML stream.

        Raises:
            RenderError: If the chart descriptor is missing, the values are
                malformed, or a template fails to load or render
        """
        if _CONSTANTS.CHART_FILE not in chart.files:
            raise RenderError(
                f"chart '{chart.name}' is missing its {_CONSTANTS.CHART_FILE} descriptor"
            )
        logger.debug(f"Rendering chart {chart.name} ({len(chart.files)} files)")

        try:
            context = self._context(chart)
            env = _environment(str(chart.directory))
            parts: list[str] = []
            for name in chart.files:
                if name in (_CONSTANTS.CHART_FILE, _CONSTANTS.VALUES_FILE):
                    continue
                template = env.get_template(name)
                if PurePosixPath(name).name.startswith("_"):
                    continue
                rendered = template.render(context)
                if not rendered.strip():
                    continue
                if not rendered.endswith("\n"):
                    rendered += "\n"
                parts.append(f"---\n# Source: {chart.name}/{name}\n{rendered}")
        except TemplateError as e:
            raise RenderError(f"failed to render chart '{chart.name}': {e}") from e
        except (OSError, yaml.YAMLError) as e:
            raise RenderError(f"failed to load chart '{chart.name}': {e}") from e

        return "".join(parts).encode()

    def _context(self, chart: Chart) -> dict[str, Any]:
        metadata = yaml.safe_load((chart.directory / _CONSTANTS.CHART_FILE).read_text())
        values = load_raw_values(chart.raw_values)
        if _CONSTANTS.VALUES_FILE in chart.files:
            defaults = yaml.safe_load(
                (chart.directory / _CONSTANTS.VALUES_FILE).read_text()
            ) or {}
            values = merge_values(defaults, values)
        return {
            "Values": values,
            "Chart": metadata,
            "Release": {
                "Name": chart.name,
                "Namespace": chart.namespace,
                "Service": "CLI",
            },
        }
