"""Scanner for ES modules.

Finds the specifiers of static ``import``/``export ... from`` declarations
and of dynamic ``import("...")`` calls with string literal arguments, and
records the position of each specifier so it can be rewritten in place.
"""

import logging
import re
from collections.abc import Iterator
from pathlib import Path

from depbump.models import DependencyRef, DependencySource, SourceKind, SourceSpan
from depbump.scanners.base import BaseScanner
from depbump.specifiers import try_parse

logger = logging.getLogger(__name__)

STATIC_IMPORT = re.compile(
    r"""\b(?:import|export)\s+"""  # Keyword
    r"""(?:[\w*{}\s,$]+?\s*\bfrom\s*)?"""  # Optional bindings and "from"
    r"""(["'])([^"'\n]+)\1"""  # Quoted specifier
)

DYNAMIC_IMPORT = re.compile(r"""\bimport\s*\(\s*(["'])([^"'\n]+)\1\s*\)""")

MODULE_SUFFIXES = frozenset({".ts", ".tsx", ".mts", ".js", ".jsx", ".mjs"})


def iter_import_specifiers(source: str) -> Iterator[tuple[str, int]]:
    """Yield imported specifiers with their offsets, in source order.

    Args:
        source: Module source text.

    Yields:
        Tuples of (specifier, offset of its first character).
    """
    found = {
        match.start(2): match.group(2)
        for pattern in (STATIC_IMPORT, DYNAMIC_IMPORT)
        for match in pattern.finditer(source)
    }
    for offset in sorted(found):
        yield found[offset], offset


def _span(source: str, offset: int, length: int) -> SourceSpan:
    line_start = source.rfind("\n", 0, offset) + 1
    start = offset - line_start
    return SourceSpan(line=source.count("\n", 0, offset), start=start, end=start + length)


class EsModuleScanner(BaseScanner):
    """Scanner for JavaScript and TypeScript modules.

    Only ``jsr:``, ``npm:``, ``http:`` and ``https:`` specifiers are
    reported; relative and bare specifiers are ignored.
    """

    def scan(self) -> list[DependencyRef]:
        """Scan the module and extract dependency references."""
        source = self._read_source()
        path = str(self.source_path)

        refs: list[DependencyRef] = []
        for specifier, offset in iter_import_specifiers(source):
            dep = try_parse(specifier, strict=False)
            if dep is None:
                logger.debug("Ignoring import %s in %s", specifier, path)
                continue
            refs.append(
                DependencyRef(
                    specifier=specifier,
                    dependency=dep,
                    source=DependencySource(
                        kind=SourceKind.MODULE,
                        path=path,
                        span=_span(source, offset, len(specifier)),
                    ),
                )
            )

        return sorted(refs, key=lambda ref: ref.dependency.name)

    @classmethod
    def can_handle(cls, path: Path) -> bool:
        """Return True for JavaScript and TypeScript module files."""
        return path.suffix in MODULE_SUFFIXES

    @property
    def source_name(self) -> str:
        return "ES module"
