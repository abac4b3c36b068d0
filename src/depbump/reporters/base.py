"""Base interface for output reporters.

Reporters generate formatted output from the update records of a run.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from depbump.models import CollectResult


class BaseReporter(ABC):
    """Abstract base class for output reporters."""

    @abstractmethod
    def render(self, result: CollectResult) -> str:
        """Render the outcome of an update run.

        Args:
            result: Update records and failures of the run.

        Returns:
            Rendered output as a string.
        """
        ...

    def write(self, result: CollectResult, output_path: Path) -> None:
        """Render and write output to a file.

        Args:
            result: Update records and failures of the run.
            output_path: Path to write the output file.
        """
        content = self.render(result)
        output_path.write_text(content, encoding="utf-8")

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Return the output format name.

        Returns:
            Format name like "markdown".
        """
        ...

    @property
    @abstractmethod
    def default_extension(self) -> str:
        """Return the default file extension for this format.

        Returns:
            Extension like ".md".
        """
        ...
