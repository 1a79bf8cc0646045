"""Structural diff of values trees.

The override record persisted alongside an installation holds only the
settings that differ from the chart defaults. diff() computes it by walking
both trees: mappings recurse, sequences and scalars are compared as whole
leaves.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..errors import DiffError
from .model import Values

# Derived from the other values at render time, never user-set
DERIVED_KEYS = ("configs",)

Tree = dict[str, Any]


def _as_tree(values: Values | Mapping[str, Any]) -> Tree:
    if isinstance(values, Values):
        tree = values.to_tree()
    else:
        tree = dict(values)
    for key in DERIVED_KEYS:
        tree.pop(key, None)
    return tree


def diff(
    defaults: Values | Mapping[str, Any], effective: Values | Mapping[str, Any]
) -> Tree:
    """Return the paths of ``effective`` whose values differ from ``defaults``.

    The derived ``configs`` blob is removed from both sides first.

    Args:
        defaults: Pristine default values
        effective: Values in use

    Returns:
        Nested mapping of overridden keys; empty when the trees are equal

    Raises:
        DiffError: If a key is a mapping on one side and a scalar or
            sequence on the other
    """
    return _diff_mapping(_as_tree(defaults), _as_tree(effective), ())


def _diff_mapping(
    defaults: Mapping[str, Any], effective: Mapping[str, Any], path: tuple[str, ...]
) -> Tree:
    delta: Tree = {}
    for key, value in effective.items():
        if key not in defaults:
            delta[key] = value
            continue

        default = defaults[key]
        here = (*path, str(key))
        default_is_map = isinstance(default, Mapping)
        value_is_map = isinstance(value, Mapping)

        if default_is_map and value_is_map:
            nested = _diff_mapping(default, value, here)
            if nested:
                delta[key] = nested
        elif default_is_map != value_is_map and None not in (default, value):
            raise DiffError(
                f"cannot diff '{'.'.join(here)}': "
                f"{type(default).__name__} in defaults, "
                f"{type(value).__name__} in effective values"
            )
        elif default != value:
            delta[key] = value
    return delta
