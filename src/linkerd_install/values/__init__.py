"""Chart values: model, settings, diffing and add-ons."""

from .addons import ADDON_TYPES, AddOn, discover_addons
from .diff import diff
from .flags import Flag, FlagGroup, Setting, apply_overrides, flag_set, parse_setting
from .model import Values, new_defaults
from .validation import derive_configs, validate_values

__all__ = [
    "Values",
    "new_defaults",
    "Flag",
    "FlagGroup",
    "Setting",
    "apply_overrides",
    "flag_set",
    "parse_setting",
    "diff",
    "AddOn",
    "ADDON_TYPES",
    "discover_addons",
    "validate_values",
    "derive_configs",
]
