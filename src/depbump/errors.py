"""Exception hierarchy for depbump.

Parse and constraint errors identify the offending string. Network errors
carry the identity of the dependency being resolved so that callers can
decide between retrying, skipping, and aborting a batch.
"""

from typing import Optional


class DepbumpError(Exception):
    """Base class for all depbump errors."""


class MalformedSpecifier(DepbumpError, ValueError):
    """A specifier string does not match the grammar of its scheme."""

    def __init__(self, specifier: str, reason: str = "Unsupported format") -> None:
        self.specifier = specifier
        super().__init__(f"{reason} of dependency specifier: {specifier}")


class UnsupportedConstraintShape(DepbumpError, ValueError):
    """A version constraint cannot be handled by the constraint algebra."""

    def __init__(self, constraint: str) -> None:
        self.constraint = constraint
        super().__init__(f"Unexpected format of version constraint: {constraint}")


class RegistryUnreachable(DepbumpError):
    """A registry or origin could not be reached or answered with an error."""

    def __init__(
        self, identity: str, url: str, reason: Optional[str] = None
    ) -> None:
        self.identity = identity
        self.url = url
        message = f"Failed to fetch {url} for {identity}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class NetworkTimeout(RegistryUnreachable):
    """A request to a registry or origin timed out."""


class ResolutionSkipped(DepbumpError):
    """A dependency has no usable update; it is skipped, not failed."""

    def __init__(self, identity: str, message: str) -> None:
        self.identity = identity
        super().__init__(message)


class NoVersionsFound(ResolutionSkipped):
    """A registry lists no parsable versions for a package."""

    def __init__(self, identity: str) -> None:
        super().__init__(identity, f"No versions found for {identity}")


class ConstraintUnsatisfiable(ResolutionSkipped):
    """No available version satisfies the constraint of a dependency."""

    def __init__(self, identity: str, constraint: str) -> None:
        self.constraint = constraint
        super().__init__(
            identity, f"No version of {identity} satisfies {constraint}"
        )


class IntegrityComputationFailed(DepbumpError):
    """Integrity data for a package version is missing or invalid."""

    def __init__(self, identifier: str, reason: str) -> None:
        self.identifier = identifier
        super().__init__(f"Cannot compute integrity of {identifier}: {reason}")
