"""Check results and their reduction to a single install error.

A health-check run yields one CheckResult per executed check. Failed checks
carry a CategoryError tagging the underlying error with the category that
produced it; resource findings are ResourceErrors listing the offending
objects.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from ..errors import GlobalResourcesExistError, InstallError, ReachabilityError


class CheckCategory(str, Enum):
    """Categories of precondition checks, in execution order."""

    KUBERNETES_API = "kubernetes-api"
    PRE_INSTALL_GLOBAL_RESOURCES = "pre-linkerd-global-resources"


@dataclass(frozen=True)
class ResourceDescriptor:
    """A cluster object reported by a check.

    Renders as ``kind/name`` or ``kind.group/name`` (lowercase kind), the
    form kubectl accepts.
    """

    kind: str
    name: str
    group: str = ""

    def __str__(self) -> str:
        kind = f"{self.kind}.{self.group}" if self.group else self.kind
        return f"{kind.lower()}/{self.name}"


class ResourceError(Exception):
    """Objects that should not exist were found."""

    def __init__(self, resources: Sequence[ResourceDescriptor]):
        self.resources = list(resources)
        super().__init__(
            "found resources: " + ", ".join(str(r) for r in self.resources)
        )


class CategoryError(Exception):
    """An error tagged with the check category that produced it."""

    def __init__(self, category: CheckCategory, err: BaseException):
        self.category = category
        self.err = err
        super().__init__(str(err))


@dataclass
class CheckResult:
    """Outcome of one executed check."""

    category: CheckCategory
    description: str
    err: Exception | None = None

    @property
    def success(self) -> bool:
        return self.err is None


def reduce_check_results(results: Iterable[CheckResult]) -> InstallError | None:
    """Reduce check results to the error an install should report.

    Precedence: a ``kubernetes-api`` category error wins and is reported on
    its own, since resource findings are meaningless without a reachable
    cluster. Otherwise every resource finding (and the message of any other
    error) is joined, one per line, into a GlobalResourcesExistError.

    Returns:
        The error to report, or None when every check passed
    """
    api_error: CategoryError | None = None
    messages: list[str] = []

    for result in results:
        err = result.err
        if err is None:
            continue
        if isinstance(err, CategoryError):
            if err.category == CheckCategory.KUBERNETES_API:
                api_error = err
            elif isinstance(err.err, ResourceError):
                messages.extend(str(r) for r in err.err.resources)
            else:
                messages.append(str(err))
        else:
            messages.append(str(err))

    if api_error is not None:
        return ReachabilityError(str(api_error.err))
    if messages:
        return GlobalResourcesExistError(messages)
    return None
