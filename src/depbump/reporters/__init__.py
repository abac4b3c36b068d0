"""Output reporters for summarizing dependency updates.

This module provides reporters for rendering the outcome of an update
run to various output formats.
"""

from depbump.reporters.base import BaseReporter
from depbump.reporters.markdown import MarkdownReporter

__all__ = ["BaseReporter", "MarkdownReporter"]
