"""Exception taxonomy for the install pipeline.

Every failure surfaced to the user derives from InstallError, which carries
a printable message and optional details in the same shape the CLI error
handler renders. Cluster-facing failures carry templated diagnostics that
name the remediation flag; internal failures carry their raw text.
"""

from __future__ import annotations

from collections.abc import Sequence

from .constants import (
    ERR_CANNOT_INITIALIZE_CLIENT,
    ERR_CONFIG_RESOURCE_CONFLICT,
    ERR_GLOBAL_RESOURCES_EXIST,
    ERR_GLOBAL_RESOURCES_MISSING,
)


class InstallError(Exception):
    """Base class for install failures."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ReachabilityError(InstallError):
    """The Kubernetes API could not be contacted or queried."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(ERR_CANNOT_INITIALIZE_CLIENT.format(reason=reason))


class ConflictError(InstallError):
    """Artifacts of a previous installation already exist."""

    def __init__(self, message: str, reason: str | None = None):
        self.reason = reason or message
        super().__init__(message)

    @classmethod
    def existing_config(cls, namespace: str, reason: str) -> ConflictError:
        """Build the conflict raised when Linkerd config objects exist."""
        return cls(
            ERR_CONFIG_RESOURCE_CONFLICT.format(namespace=namespace, reason=reason),
            reason=reason,
        )


class GlobalResourcesExistError(ConflictError):
    """Cluster-wide Linkerd resources were found by the precondition checks."""

    def __init__(self, resources: Sequence[str]):
        self.resources = list(resources)
        joined = "\n".join(self.resources)
        super().__init__(ERR_GLOBAL_RESOURCES_EXIST.format(resources=joined), joined)


class GlobalResourcesMissingError(InstallError):
    """The config stage has not been applied before the control-plane stage."""

    def __init__(self, namespace: str):
        self.namespace = namespace
        super().__init__(ERR_GLOBAL_RESOURCES_MISSING.format(namespace=namespace))


class ValidationError(InstallError):
    """The effective configuration is malformed or contradictory."""

    def __init__(self, problems: Sequence[str]):
        self.problems = list(problems)
        super().__init__(
            "Invalid install configuration",
            details="\n".join(f"- {p}" for p in self.problems),
        )

    def __str__(self) -> str:
        return "; ".join(self.problems)


class ParseError(InstallError):
    """A setting name is unknown or its value cannot be coerced."""


class DiffError(InstallError):
    """Two value trees have incompatible shapes."""


class AddOnParseError(InstallError):
    """An add-on configuration block is malformed."""


class RenderError(InstallError):
    """The templating engine failed to render a chart."""


class TransportError(InstallError):
    """A cluster API request failed for a reason other than not-found."""


class ResourceNotFoundError(InstallError):
    """A requested cluster resource does not exist."""

    def __init__(self, kind: str, name: str, namespace: str | None = None):
        self.kind = kind
        self.name = name
        self.namespace = namespace
        where = f" in namespace '{namespace}'" if namespace else ""
        super().__init__(f"{kind} '{name}' not found{where}")


class CredentialError(InstallError):
    """Identity issuer credentials could not be initialized."""
