"""Scanner for import maps and configuration files embedding one."""

import json
import logging
from pathlib import Path

from depbump.models import DependencyRef, DependencySource, SourceKind
from depbump.scanners.base import BaseScanner
from depbump.specifiers import try_parse

logger = logging.getLogger(__name__)


class ImportMapScanner(BaseScanner):
    """Scanner for the ``imports`` field of an import map.

    Works for standalone import maps as well as ``deno.json`` files, which
    carry the same field.
    """

    def scan(self) -> list[DependencyRef]:
        """Scan the import map and extract dependency references.

        Raises:
            FileNotFoundError: If the source file does not exist.
            ValueError: If the file is not a valid import map.
        """
        text = self._read_source()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {self.source_path}: {e}") from e

        imports = data.get("imports") if isinstance(data, dict) else None
        if not isinstance(imports, dict) or not all(
            isinstance(value, str) for value in imports.values()
        ):
            raise ValueError(f"{self.source_path} does not have a valid import map")

        path = str(self.source_path)
        refs: list[DependencyRef] = []
        for key, specifier in imports.items():
            dep = try_parse(specifier, strict=False)
            if dep is None:
                logger.debug("Ignoring import map entry %s: %s", key, specifier)
                continue
            refs.append(
                DependencyRef(
                    specifier=specifier,
                    dependency=dep,
                    source=DependencySource(kind=SourceKind.IMPORT_MAP, path=path, key=key),
                )
            )

        return sorted(refs, key=lambda ref: ref.dependency.name)

    @classmethod
    def can_handle(cls, path: Path) -> bool:
        """Return True for JSON files."""
        return path.suffix == ".json"

    @property
    def source_name(self) -> str:
        return "import map"
