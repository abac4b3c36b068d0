"""Registry and origin clients.

This module provides clients for the JSR and npm registries and for
direct-URL origins.
"""

from depbump.registries.base import BaseRegistry
from depbump.registries.http import HttpClient
from depbump.registries.jsr import JsrRegistry
from depbump.registries.npm import NpmRegistry
from depbump.registries.remote import RemoteOrigin

__all__ = [
    "BaseRegistry",
    "HttpClient",
    "JsrRegistry",
    "NpmRegistry",
    "RemoteOrigin",
]
