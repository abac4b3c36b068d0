"""Tests for the update orchestrator."""

import pytest

from depbump.errors import ConstraintUnsatisfiable, RegistryUnreachable
from depbump.lockfile import Lockfile
from depbump.locks import LockBuilder
from depbump.models import Scheme, UpdateDecision, UpdatePolicy, UpdateState
from depbump.orchestrator import UpdateOrchestrator, select_target
from depbump.specifiers import parse, stringify


@pytest.fixture
def orchestrator(resolver, module_graph) -> UpdateOrchestrator:
    return UpdateOrchestrator(resolver, builder=LockBuilder(resolver, graph=module_graph))


class TestSelectTarget:
    """Test version selection by policy."""

    @pytest.fixture
    def decision(self) -> UpdateDecision:
        return UpdateDecision(latest="1.0.0-rc.1", released="0.226.0", satisfying="0.222.1")

    @pytest.mark.parametrize(
        "policy,expected",
        [
            (UpdatePolicy.LATEST, "1.0.0-rc.1"),
            (UpdatePolicy.RELEASED, "0.226.0"),
            (UpdatePolicy.SATISFYING, "0.222.1"),
        ],
    )
    def test_policies(self, decision, policy, expected) -> None:
        assert select_target(decision, policy) == expected

    def test_released_falls_back_to_latest(self) -> None:
        decision = UpdateDecision(latest="1.0.0-rc.1")
        assert select_target(decision, UpdatePolicy.RELEASED) == "1.0.0-rc.1"


class TestCollect:
    """Test UpdateOrchestrator.collect without a lockfile."""

    @pytest.mark.asyncio
    async def test_rewrites_constraints(self, orchestrator, make_ref) -> None:
        """Test that outdated constraints are increased to the released version."""
        refs = [
            make_ref("jsr:@std/assert@^0.222.0", key="@std/assert"),
            make_ref("npm:debug@^4.3.0", key="debug"),
            make_ref("https://deno.land/std@0.220.0/assert/assert.ts", key="assert"),
        ]

        result = await orchestrator.collect(refs)

        assert result.errors == {}
        assert result.lockfile is None
        assert [
            (stringify(update.to), update.version, update.state) for update in result.updates
        ] == [
            ("jsr:@std/assert@^0.226.0", "0.226.0", UpdateState.REWRITTEN),
            ("npm:debug@^4.3.0", "4.3.5", UpdateState.UNCHANGED),
            (
                "https://deno.land/std@0.224.0/assert/assert.ts",
                "0.224.0",
                UpdateState.REWRITTEN,
            ),
        ]

    @pytest.mark.asyncio
    async def test_probes_module_url(self, orchestrator, make_ref, remote_origin) -> None:
        await orchestrator.collect([make_ref("https://deno.land/std@0.220.0/assert/assert.ts")])

        (dep,) = remote_origin.probe_latest.call_args.args
        assert dep.subpath == "/assert/assert.ts"

    async def test_keeps_subpath(self, orchestrator, make_ref) -> None:
        result = await orchestrator.collect([make_ref("jsr:@std/assert@~0.222.0/equals")])

        (update,) = result.updates
        assert stringify(update.to) == "jsr:@std/assert@~0.226.0/equals"

    @pytest.mark.asyncio
    async def test_satisfying_policy(self, orchestrator, make_ref) -> None:
        result = await orchestrator.collect(
            [make_ref("jsr:@std/assert@^0.222.0")], policy=UpdatePolicy.SATISFYING
        )

        (update,) = result.updates
        assert update.version == "0.222.1"
        assert update.state is UpdateState.UNCHANGED

    @pytest.mark.asyncio
    async def test_one_record_per_reference(self, orchestrator, make_ref, jsr_registry) -> None:
        """Test that references of one identity share a registry lookup."""
        refs = [
            make_ref("jsr:@std/assert@^0.222.0", path="deno.json"),
            make_ref("jsr:@std/assert@^0.226.0/equals", path="a.ts"),
            make_ref("jsr:@std/assert@0.222.0", path="b.ts"),
        ]

        result = await orchestrator.collect(refs)

        assert [(update.ref.source.path, stringify(update.to)) for update in result.updates] == [
            ("a.ts", "jsr:@std/assert@^0.226.0/equals"),
            ("b.ts", "jsr:@std/assert@0.226.0"),
            ("deno.json", "jsr:@std/assert@^0.226.0"),
        ]
        assert jsr_registry.version_calls == ["@std/assert"]

    @pytest.mark.asyncio
    async def test_skips_unversioned(self, orchestrator, make_ref, npm_registry) -> None:
        result = await orchestrator.collect([make_ref("npm:chalk")])

        assert result.updates == []
        assert result.errors == {}
        assert npm_registry.version_calls == []

    @pytest.mark.asyncio
    async def test_skips_unsatisfiable(self, orchestrator, make_ref) -> None:
        refs = [make_ref("jsr:@std/assert@^2.0.0"), make_ref("npm:debug@^4.3.0")]

        result = await orchestrator.collect(refs)

        assert [update.dependency.name for update in result.updates] == ["debug"]
        assert result.errors == {}

    @pytest.mark.asyncio
    async def test_records_failures(self, orchestrator, make_ref, npm_registry, mocker) -> None:
        """Test that a failing identity does not stop the others."""
        mocker.patch.object(
            npm_registry,
            "fetch_versions",
            side_effect=RegistryUnreachable("npm:debug", "https://registry.npmjs.org/debug"),
        )
        refs = [make_ref("jsr:@std/assert@^0.222.0"), make_ref("npm:debug@^4.3.0")]

        result = await orchestrator.collect(refs)

        assert [update.dependency.name for update in result.updates] == ["@std/assert"]
        assert isinstance(result.errors["npm:debug"], RegistryUnreachable)

    @pytest.mark.asyncio
    async def test_unsupported_constraint_fails(self, orchestrator, make_ref) -> None:
        result = await orchestrator.collect([make_ref("jsr:@std/assert@>=0.222.0 <0.223.0")])

        assert result.updates == []
        assert "jsr:@std/assert" in result.errors

    @pytest.mark.asyncio
    async def test_fail_fast(self, orchestrator, make_ref, npm_registry, mocker) -> None:
        mocker.patch.object(
            npm_registry,
            "fetch_versions",
            side_effect=RegistryUnreachable("npm:debug", "https://registry.npmjs.org/debug"),
        )
        refs = [make_ref("jsr:@std/assert@^0.222.0"), make_ref("npm:debug@^4.3.0")]

        with pytest.raises(RegistryUnreachable):
            await orchestrator.collect(refs, fail_fast=True)

    @pytest.mark.asyncio
    async def test_no_rewrite(self, orchestrator, make_ref) -> None:
        result = await orchestrator.collect([make_ref("jsr:@std/assert@^0.222.0")], rewrite=False)

        (update,) = result.updates
        assert update.to == update.dependency
        assert update.version == "0.222.1"
        assert update.state is UpdateState.UNCHANGED

    @pytest.mark.asyncio
    async def test_empty(self, orchestrator) -> None:
        result = await orchestrator.collect([])
        assert result.updates == []


class TestCollectWithLockfile:
    """Test lockfile reconciliation during collect."""

    @pytest.fixture
    def workspace_refs(self, make_ref):
        return [
            make_ref("jsr:@std/assert@^0.222.0", key="@std/assert"),
            make_ref("jsr:@std/testing@^0.222.0", key="@std/testing"),
            make_ref("npm:debug@^4.3.0", key="debug"),
        ]

    @pytest.mark.asyncio
    async def test_updates_lockfile(
        self, orchestrator, workspace_refs, lockfile, integrity
    ) -> None:
        """Test that moved and relocked dependencies are merged into the lockfile."""
        result = await orchestrator.collect(workspace_refs, lockfile=lockfile)

        assert result.lockfile is lockfile
        assert [update.state for update in result.updates] == [
            UpdateState.LOCKED,
            UpdateState.UNCHANGED,
            UpdateState.LOCKED,
        ]
        assert lockfile.to_json()["packages"] == {
            "specifiers": {
                "jsr:@std/assert@^0.226.0": "jsr:@std/assert@0.226.0",
                "jsr:@std/internal@^1.0.0": "jsr:@std/internal@1.0.0",
                "jsr:@std/testing@^0.222.0": "jsr:@std/testing@0.222.0",
                "npm:debug@^4.3.0": "npm:debug@4.3.5",
            },
            "jsr": {
                "@std/assert@0.226.0": {
                    "integrity": integrity["@std/assert@0.226.0"],
                    "dependencies": ["jsr:@std/internal@^1.0.0"],
                },
                "@std/internal@1.0.0": {"integrity": integrity["@std/internal@1.0.0"]},
                "@std/testing@0.222.0": {"integrity": integrity["@std/testing@0.222.0"]},
            },
            "npm": {
                "debug@4.3.5": {
                    "integrity": integrity["debug@4.3.5"],
                    "dependencies": {"ms": "ms@2.1.2"},
                },
                "ms@2.1.2": {"integrity": integrity["ms@2.1.2"], "dependencies": {}},
            },
        }
        assert lockfile.workspace == [
            "jsr:@std/assert@^0.226.0",
            "jsr:@std/testing@^0.222.0",
            "npm:debug@^4.3.0",
        ]

    @pytest.mark.asyncio
    async def test_relocks_without_rewrite(self, orchestrator, make_ref, lockfile) -> None:
        result = await orchestrator.collect(
            [make_ref("jsr:@std/assert@^0.222.0")], lockfile=lockfile, rewrite=False
        )

        (update,) = result.updates
        assert update.state is UpdateState.LOCKED
        assert lockfile.specifiers["jsr:@std/assert@^0.222.0"] == "jsr:@std/assert@0.222.1"

    @pytest.mark.asyncio
    async def test_unlocked_without_version(self, orchestrator, make_ref, lockfile) -> None:
        result = await orchestrator.collect(
            [make_ref("jsr:@std/assert@latest")], lockfile=lockfile, rewrite=False
        )

        (update,) = result.updates
        assert update.state is UpdateState.UNLOCKED
        assert update.version == "latest"

    @pytest.mark.asyncio
    async def test_locks_each_move_once(self, orchestrator, make_ref, lockfile, mocker) -> None:
        """Test that references moving to the same requirement share a lock update."""
        spy = mocker.spy(orchestrator.builder, "update")
        refs = [
            make_ref("jsr:@std/assert@^0.222.0", path="deno.json"),
            make_ref("jsr:@std/assert@^0.222.0/equals", path="main.ts"),
        ]

        result = await orchestrator.collect(refs, lockfile=lockfile)

        assert [update.state for update in result.updates] == [UpdateState.LOCKED] * 2
        assert spy.call_count == 1

    @pytest.mark.asyncio
    async def test_remote_dependency(self, orchestrator, make_ref, lockfile, module_graph) -> None:
        ref = make_ref("https://deno.land/std@0.220.0/assert/assert.ts")

        result = await orchestrator.collect([ref], lockfile=lockfile)

        (update,) = result.updates
        assert update.state is UpdateState.LOCKED
        assert sorted(lockfile.remote) == sorted(
            module_graph.graphs["https://deno.land/std@0.224.0/assert/assert.ts"]
        )

    @pytest.mark.asyncio
    async def test_unscanned_roots_keep_shared_entries(
        self, orchestrator, make_ref, lockfile, integrity
    ) -> None:
        """Test that lockfile roots absent from the sources still own their entries."""
        lockfile.packages[Scheme.JSR]["@std/testing@0.222.0"].dependencies = [
            "jsr:@std/fmt@^0.222.0"
        ]

        await orchestrator.collect([make_ref("jsr:@std/assert@^0.222.0")], lockfile=lockfile)

        assert "jsr:@std/assert@^0.222.0" not in lockfile.specifiers
        assert lockfile.specifiers["jsr:@std/fmt@^0.222.0"] == "jsr:@std/fmt@0.222.0"
        assert lockfile.packages[Scheme.JSR]["@std/fmt@0.222.0"].integrity == (
            integrity["@std/fmt@0.222.0"]
        )
        assert lockfile.specifiers["npm:debug@^4.3.0"] == "npm:debug@4.3.0"
        assert sorted(lockfile.packages[Scheme.NPM]) == ["debug@4.3.0", "ms@2.1.2"]
        assert lockfile.workspace == [
            "jsr:@std/assert@^0.226.0",
            "jsr:@std/testing@^0.222.0",
            "npm:debug@^4.3.0",
        ]

    @pytest.mark.asyncio
    async def test_unsatisfiable_child_is_reported(
        self, orchestrator, make_ref, lockfile, lockfile_json, jsr_registry
    ) -> None:
        """Test that a lock that cannot be built fails the identity but keeps the rewrite."""
        jsr_registry.versions["@std/internal"] = ["2.0.0"]

        result = await orchestrator.collect(
            [make_ref("jsr:@std/assert@^0.222.0")], lockfile=lockfile
        )

        (update,) = result.updates
        assert stringify(update.to) == "jsr:@std/assert@^0.226.0"
        assert update.state is UpdateState.UNLOCKED
        assert isinstance(result.errors["jsr:@std/assert"], ConstraintUnsatisfiable)
        assert lockfile == Lockfile.from_json(lockfile_json)
