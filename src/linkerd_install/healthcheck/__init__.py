"""Cluster precondition checks."""

from .checker import HealthChecker
from .preconditions import (
    check_existing_config,
    check_no_stored_overrides,
    run_preconditions,
)
from .results import (
    CategoryError,
    CheckCategory,
    CheckResult,
    ResourceDescriptor,
    ResourceError,
    reduce_check_results,
)

__all__ = [
    "HealthChecker",
    "run_preconditions",
    "check_existing_config",
    "check_no_stored_overrides",
    "CheckCategory",
    "CheckResult",
    "CategoryError",
    "ResourceError",
    "ResourceDescriptor",
    "reduce_check_results",
]
