"""Dependency reference scanners.

This module provides scanners for extracting dependency references from
ES modules and import maps.
"""

from pathlib import Path

from depbump.scanners.base import BaseScanner
from depbump.scanners.esm import EsModuleScanner
from depbump.scanners.import_map import ImportMapScanner

__all__ = [
    "BaseScanner",
    "EsModuleScanner",
    "ImportMapScanner",
    "get_scanner",
]

# Registry of available scanners in priority order
_SCANNERS: list[type[BaseScanner]] = [
    ImportMapScanner,
    EsModuleScanner,
]


def get_scanner(path: Path) -> BaseScanner:
    """Get the appropriate scanner for a given file path.

    Args:
        path: Path to an import map or module.

    Returns:
        Scanner instance configured for the given file.

    Raises:
        ValueError: If no scanner can handle the given file.
    """
    for scanner_cls in _SCANNERS:
        if scanner_cls.can_handle(path):
            return scanner_cls(path)

    raise ValueError(
        f"No scanner available for '{path.name}'. "
        f"Supported files: *.json import maps, *.ts/*.js modules"
    )
