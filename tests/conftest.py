"""Pytest configuration and shared fixtures.

Registry tests hit aiohttp through aioresponses. Everything above the
registry clients runs against the in-memory registries defined here, whose
data mirrors a small slice of JSR and npm.
"""

import json
from typing import Any, Optional

import pytest

from depbump.errors import IntegrityComputationFailed
from depbump.graph import ModuleGraphLoader
from depbump.lockfile import Lockfile
from depbump.models import (
    Dependency,
    DependencyRef,
    DependencySource,
    PackageInfo,
    Scheme,
    SourceKind,
)
from depbump.registries.base import BaseRegistry
from depbump.registries.remote import RemoteOrigin
from depbump.specifiers import parse
from depbump.updates import UpdateResolver

ASSERT_0_222_0 = "cbf00c0d8125a56c087e3d1ea0e638760d47206b30e9d300bad826b811719fc7"
ASSERT_0_222_1 = "691637161ee584a9919d1f9950ddd1272feb8e0a19e83aa5b7563cedaf73d74c"
ASSERT_0_226_0 = "0dfb5f7c7723c18cec118e080fec76ce15b4c31154b15ad2bd74822603ef75b3"
FMT_0_222_0 = "0eb99babf1cc697d67e76e8753916c037bbc3ce4abcefa321e1465708b0adda1"
FMT_0_222_1 = "ec3382f9b0261c1ab1a5c804aa355d816515fa984cdd827ed32edfb187c0a722"
INTERNAL_1_0_0 = "ac6a6dfebf838582c4b4f61a6907374e27e05bedb6ce276e0f1608fe84e7cd9a"
TESTING_0_222_0 = "a6d10c9fbb1df052ad7f73174d511328c08b7408bdd162ef6c3bc04def49c2ae"
MATCH_0_2_5 = "55f38d482ce845958883571e543afa9da2eb89f6fe1825f38764bbd0e7585594"
TS_TOOLBELT_9_6_0 = "sha512-nsZd8ZeNUzukXPlJmTBwUAuABDe/9qtVDelJeT/qW0ow3ZS3BsQJtNkan1802aM9Uf68/Y8ljw86Hu0h5IUW3w=="
DEBUG_4_3_0 = "sha512-jjO6JD2rKfiZQnBoRzhRTbXjHLGLfH+UtGkWLc/UXAh/rzZMyjbgn0NcfFpqT8nd1kTtFnDiJcrIFkq4UKeJVg=="
DEBUG_4_3_5 = "sha512-pt0bNEmneDIvdL1Xsd9oDQ/wrQRkXDT4AUWlNZNPKvW5x/jyO9VFXkJUP07vQ2upmw5PlaITaPKc31jK13V+jg=="
MS_2_1_2 = "sha512-sGkPx+VjMtmA6MX27oA4FBFELFCZZ4S4XqeGOXCv68tT+jb3vk/RyaKWP0PTKyWtmLSM0b+adUTEvbs1PEaH2w=="

ASSERT_0_220_0_URL = "https://deno.land/std@0.220.0/assert/assert.ts"
ASSERTION_ERROR_0_220_0_URL = "https://deno.land/std@0.220.0/assert/assertion_error.ts"


class FakeRegistry(BaseRegistry):
    """In-memory registry recording how often it is queried."""

    def __init__(
        self,
        scheme: Scheme,
        versions: dict[str, list[str]],
        packages: dict[str, PackageInfo],
    ) -> None:
        self._scheme = scheme
        self.versions = versions
        self.packages = packages
        self.version_calls: list[str] = []
        self.package_calls: list[str] = []

    @property
    def scheme(self) -> Scheme:
        return self._scheme

    @property
    def name(self) -> str:
        return f"fake {self._scheme.value}"

    async def fetch_versions(self, dep: Dependency) -> list[str]:
        self.version_calls.append(dep.name)
        return list(self.versions.get(dep.name, []))

    async def fetch_package(self, dep: Dependency, version: str) -> PackageInfo:
        key = f"{dep.name}@{version}"
        self.package_calls.append(key)
        if key not in self.packages:
            raise IntegrityComputationFailed(key, "unknown package")
        return self.packages[key]


class FakeModuleGraph(ModuleGraphLoader):
    """Module graph returning canned sources per root URL."""

    def __init__(self, graphs: dict[str, dict[str, bytes]]) -> None:
        self.graphs = graphs
        self.loaded: list[str] = []

    async def load(self, url: str) -> dict[str, bytes]:
        self.loaded.append(url)
        return dict(sorted(self.graphs.get(url, {url: b""}).items()))


def _jsr(spec: str) -> Dependency:
    name, _, constraint = spec.rpartition("@")
    return Dependency(Scheme.JSR, name, constraint)


def _npm(spec: str) -> Dependency:
    name, _, constraint = spec.rpartition("@")
    return Dependency(Scheme.NPM, name, constraint)


@pytest.fixture
def jsr_registry() -> FakeRegistry:
    """Return an in-memory JSR registry."""
    return FakeRegistry(
        Scheme.JSR,
        versions={
            "@std/assert": ["0.222.0", "0.222.1", "0.226.0", "1.0.0-rc.1"],
            "@std/fmt": ["0.222.0", "0.222.1"],
            "@std/internal": ["1.0.0"],
            "@std/testing": ["0.222.0"],
            "@core/match": ["0.2.0", "0.2.5"],
        },
        packages={
            "@std/assert@0.222.0": PackageInfo(ASSERT_0_222_0, [_jsr("@std/fmt@^0.222.0")]),
            "@std/assert@0.222.1": PackageInfo(ASSERT_0_222_1, [_jsr("@std/fmt@^0.222.1")]),
            "@std/assert@0.226.0": PackageInfo(ASSERT_0_226_0, [_jsr("@std/internal@^1.0.0")]),
            "@std/fmt@0.222.0": PackageInfo(FMT_0_222_0),
            "@std/fmt@0.222.1": PackageInfo(FMT_0_222_1),
            "@std/internal@1.0.0": PackageInfo(INTERNAL_1_0_0),
            "@std/testing@0.222.0": PackageInfo(TESTING_0_222_0),
            "@core/match@0.2.5": PackageInfo(MATCH_0_2_5, [_npm("ts-toolbelt@9.6.0")]),
        },
    )


@pytest.fixture
def npm_registry() -> FakeRegistry:
    """Return an in-memory npm registry."""
    return FakeRegistry(
        Scheme.NPM,
        versions={
            "debug": ["4.3.0", "4.3.5"],
            "ms": ["2.1.2", "2.1.3"],
            "ts-toolbelt": ["9.6.0"],
        },
        packages={
            "debug@4.3.0": PackageInfo(DEBUG_4_3_0, [_npm("ms@2.1.2")]),
            "debug@4.3.5": PackageInfo(DEBUG_4_3_5, [_npm("ms@2.1.2")]),
            "ms@2.1.2": PackageInfo(MS_2_1_2),
            "ts-toolbelt@9.6.0": PackageInfo(TS_TOOLBELT_9_6_0),
        },
    )


@pytest.fixture
def remote_origin(mocker) -> RemoteOrigin:
    """Return a RemoteOrigin whose probe is mocked."""
    origin = RemoteOrigin()
    mocker.patch.object(origin, "probe_latest", return_value="0.224.0")
    return origin


@pytest.fixture
def module_graph() -> FakeModuleGraph:
    """Return a module graph holding two versions of a deno.land module."""
    return FakeModuleGraph(
        {
            ASSERT_0_220_0_URL: {
                ASSERT_0_220_0_URL: b"export * from './assertion_error.ts';\n",
                ASSERTION_ERROR_0_220_0_URL: b"export class AssertionError {}\n",
            },
            "https://deno.land/std@0.224.0/assert/assert.ts": {
                "https://deno.land/std@0.224.0/assert/assert.ts": b"export * from './assertion_error.ts';\n",
                "https://deno.land/std@0.224.0/assert/assertion_error.ts": b"export class AssertionError extends Error {}\n",
            },
        }
    )


@pytest.fixture
async def resolver(jsr_registry, npm_registry, remote_origin):
    """Return an UpdateResolver over the in-memory registries."""
    resolver = UpdateResolver(jsr=jsr_registry, npm=npm_registry, remote=remote_origin)
    yield resolver
    await remote_origin.close()


@pytest.fixture
def lockfile_json() -> dict[str, Any]:
    """Return a lockfile with jsr, npm and remote entries."""
    return {
        "version": "3",
        "packages": {
            "specifiers": {
                "jsr:@std/assert@^0.222.0": "jsr:@std/assert@0.222.0",
                "jsr:@std/fmt@^0.222.0": "jsr:@std/fmt@0.222.0",
                "jsr:@std/testing@^0.222.0": "jsr:@std/testing@0.222.0",
                "npm:debug@^4.3.0": "npm:debug@4.3.0",
            },
            "jsr": {
                "@std/assert@0.222.0": {
                    "integrity": ASSERT_0_222_0,
                    "dependencies": ["jsr:@std/fmt@^0.222.0"],
                },
                "@std/fmt@0.222.0": {"integrity": FMT_0_222_0},
                "@std/testing@0.222.0": {"integrity": TESTING_0_222_0},
            },
            "npm": {
                "debug@4.3.0": {
                    "integrity": DEBUG_4_3_0,
                    "dependencies": {"ms": "ms@2.1.2"},
                },
                "ms@2.1.2": {"integrity": MS_2_1_2, "dependencies": {}},
            },
        },
        "remote": {
            ASSERT_0_220_0_URL: "bec068b2fccdd434c138a555b19a2c2393b71dfaada02b7d568a01541e67cdc5",
            ASSERTION_ERROR_0_220_0_URL: "9f689a101ee586c4ce92f52fa7ddd362e86434ffdf1f848e45987dc7689976b8",
        },
        "workspace": {
            "dependencies": [
                "jsr:@std/assert@^0.222.0",
                "jsr:@std/testing@^0.222.0",
                "npm:debug@^4.3.0",
            ]
        },
    }


@pytest.fixture
def lockfile(lockfile_json) -> Lockfile:
    """Return the sample lockfile parsed."""
    return Lockfile.from_json(lockfile_json)


@pytest.fixture
def lockfile_path(tmp_path, lockfile_json):
    """Write the sample lockfile to disk and return its path."""
    path = tmp_path / "deno.lock"
    path.write_text(json.dumps(lockfile_json, indent=2) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def make_ref():
    """Return a factory of import map references."""

    def factory(
        specifier: str, path: str = "deno.json", key: Optional[str] = None
    ) -> DependencyRef:
        return DependencyRef(
            specifier=specifier,
            dependency=parse(specifier, strict=False),
            source=DependencySource(kind=SourceKind.IMPORT_MAP, path=path, key=key),
        )

    return factory


@pytest.fixture
def integrity(jsr_registry, npm_registry) -> dict[str, str]:
    """Return the integrity of every in-memory package by package key."""
    return {
        key: info.integrity
        for registry in (jsr_registry, npm_registry)
        for key, info in registry.packages.items()
    }
