"""Base interface for package registries.

Registries list the published versions of a package and describe a single
version: its integrity hash and its declared dependency edges.
"""

from abc import ABC, abstractmethod

from depbump.models import Dependency, PackageInfo, Scheme


class BaseRegistry(ABC):
    """Abstract base class for package registries.

    Implementations are async and side-effect free; each call only reads
    from the network.
    """

    @property
    @abstractmethod
    def scheme(self) -> Scheme:
        """Return the specifier scheme served by this registry."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the registry name for logging/debugging.

        Returns:
            Name like "JSR" or "npm".
        """
        ...

    @abstractmethod
    async def fetch_versions(self, dep: Dependency) -> list[str]:
        """List the published, non-withdrawn versions of a package.

        Args:
            dep: Dependency naming the package.

        Returns:
            Version strings, in no particular order.

        Raises:
            RegistryUnreachable: If the registry cannot be queried.
        """
        ...

    @abstractmethod
    async def fetch_package(self, dep: Dependency, version: str) -> PackageInfo:
        """Fetch the lock metadata of one package version.

        Args:
            dep: Dependency naming the package.
            version: Concrete version to describe.

        Returns:
            Integrity hash and dependency edges of the version.

        Raises:
            RegistryUnreachable: If the registry cannot be queried.
            IntegrityComputationFailed: If no integrity can be derived.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the registry."""
