"""Markdown reporter for summarizing dependency updates.

This module provides a reporter that generates a Markdown summary of an
update run using Jinja2 templates.
"""

from datetime import datetime
from importlib.resources import files
from itertools import groupby
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, Template

from depbump.models import CollectResult, UpdateState
from depbump.reporters.base import BaseReporter
from depbump.specifiers import stringify


class MarkdownReporter(BaseReporter):
    """Reporter that generates Markdown update summaries.

    Updates are grouped by the file they were found in. References that
    need no change are only counted.

    Attributes:
        template: The Jinja2 template to use for rendering.
    """

    def __init__(self, template_path: Optional[Path] = None) -> None:
        """Initialize the Markdown reporter.

        Args:
            template_path: Optional path to a custom Jinja2 template.
                If not provided, uses the default bundled template.
        """
        if template_path:
            env = Environment(
                loader=FileSystemLoader(template_path.parent),
                autoescape=False,
                trim_blocks=True,
                lstrip_blocks=True,
            )
            self.template = env.get_template(template_path.name)
        else:
            self.template = self._load_default_template()

    def _load_default_template(self) -> Template:
        """Load the default bundled Jinja2 template."""
        template_content = (
            files("depbump.templates")
            .joinpath("updates.md.j2")
            .read_text(encoding="utf-8")
        )
        env = Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True)
        return env.from_string(template_content)

    def render(self, result: CollectResult) -> str:
        """Render update records to Markdown format.

        Args:
            result: Update records and failures of the run.

        Returns:
            Rendered Markdown document as a string.
        """
        changed = [u for u in result.updates if u.state is not UpdateState.UNCHANGED]
        changed.sort(key=lambda u: (u.ref.source.path, u.dependency.name))

        file_rows: list[tuple[str, list[dict[str, Any]]]] = []
        for path, updates in groupby(changed, key=lambda u: u.ref.source.path):
            rows = [
                {
                    "identity": update.dependency.identity,
                    "before": update.ref.specifier,
                    "after": stringify(update.to),
                    "version": update.version,
                    "state": update.state.value,
                }
                for update in updates
            ]
            file_rows.append((path, rows))

        return self.template.render(
            files=file_rows,
            unchanged=len(result.updates) - len(changed),
            errors=sorted((identity, str(e)) for identity, e in result.errors.items()),
            generated_at=datetime.now(),
        )

    @property
    def format_name(self) -> str:
        """Return the output format name.

        Returns:
            The string "markdown".
        """
        return "markdown"

    @property
    def default_extension(self) -> str:
        """Return the default file extension for Markdown files.

        Returns:
            The string ".md".
        """
        return ".md"
