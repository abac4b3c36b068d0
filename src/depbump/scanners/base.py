"""Base interface for dependency reference scanners.

Scanners locate dependency specifiers in source files and import maps
without executing or bundling anything.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from depbump.models import DependencyRef


class BaseScanner(ABC):
    """Abstract base class for dependency reference scanners.

    Attributes:
        source_path: Optional path to the file being scanned.
    """

    def __init__(self, source_path: Optional[Path] = None) -> None:
        """Initialize the scanner.

        Args:
            source_path: Optional path to the source file (module, import map).
        """
        self.source_path = source_path

    @abstractmethod
    def scan(self) -> list[DependencyRef]:
        """Scan the source and extract dependency references.

        Returns:
            List of DependencyRef objects, sorted by dependency name.

        Raises:
            FileNotFoundError: If the source file does not exist.
            ValueError: If the source format is invalid.
        """
        ...

    @classmethod
    @abstractmethod
    def can_handle(cls, path: Path) -> bool:
        """Check if this scanner can handle the given file.

        Args:
            path: Path to check.

        Returns:
            True if this scanner can process the file, False otherwise.
        """
        ...

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return a human-readable name for this scanner's source type.

        Returns:
            Name like "import map" or "ES module".
        """
        ...

    def _read_source(self) -> str:
        """Read the source file as text.

        Raises:
            FileNotFoundError: If the source file does not exist.
            ValueError: If source_path is not set.
        """
        if self.source_path is None:
            raise ValueError("source_path must be set before calling scan()")

        if not self.source_path.exists():
            raise FileNotFoundError(f"Source file not found: {self.source_path}")

        return self.source_path.read_text(encoding="utf-8")
