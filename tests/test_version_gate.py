"""Tests for the installation and version check."""

import asyncio
from pathlib import Path

import pytest

from contextpilot_cli.errors import CommandFailedError, IncompatibleVersionError, ToolNotInstalledError
from contextpilot_cli.models import ToolVersion, VersionCheckResult
from contextpilot_cli.version_gate import VersionGate, is_compatible

from conftest import is_version_query


@pytest.mark.parametrize(
    "installed, required, expected",
    [
        ("1.0.0", "0.9.0", True),
        ("0.9.0", "0.9.0", True),
        ("0.8.9", "0.9.0", False),
        ("0.10.0", "0.9.0", True),
        ("1.0.0", "1.0.1", False),
        ("2.0.0", "1.99.99", True),
    ],
)
def test_is_compatible(installed, required, expected):
    assert is_compatible(installed, required) is expected


def test_is_compatible_accepts_versions():
    assert is_compatible(ToolVersion(1, 2, 3), "1.2.3")


class TestCandidates:
    def test_bare_name_then_install_dirs(self, runtime_context, fake_invoker):
        gate = VersionGate(runtime_context, fake_invoker, "contextpilot", ("/opt/tools", "~/bin"))
        assert gate.candidates() == [
            "contextpilot",
            "/opt/tools/contextpilot",
            str(Path("~/bin").expanduser() / "contextpilot"),
        ]

    def test_explicit_path_is_the_only_candidate(self, runtime_context, fake_invoker):
        gate = VersionGate(runtime_context, fake_invoker, "/custom/contextpilot", ("/opt/tools",))
        assert gate.candidates() == ["/custom/contextpilot"]


class TestEnsureCompatible:
    def _gate(self, context, invoker):
        return VersionGate(context, invoker, "contextpilot", ("/first", "/second"))

    def test_compatible_checked_once(self, runtime_context, fake_invoker):
        fake_invoker.respond(is_version_query, "contextpilot 1.4.0\n")
        gate = self._gate(runtime_context, fake_invoker)

        assert asyncio.run(gate.ensure_compatible("0.9.0")) is True
        assert asyncio.run(gate.ensure_compatible("0.9.0")) is True

        assert len(fake_invoker.calls) == 1
        assert runtime_context.version_check is VersionCheckResult.COMPATIBLE
        assert runtime_context.resolved_binary == "contextpilot"
        assert runtime_context.installed_version == ToolVersion(1, 4, 0)

    def test_falls_through_to_install_dirs(self, runtime_context, fake_invoker):
        fake_invoker.respond(lambda spec: spec.binary == "contextpilot", error=CommandFailedError("x", "not found"))
        fake_invoker.respond(lambda spec: spec.binary == "/first/contextpilot", "unrelated banner\n")
        fake_invoker.respond(lambda spec: spec.binary == "/second/contextpilot", "contextpilot 0.9.0\n")

        asyncio.run(self._gate(runtime_context, fake_invoker).ensure_compatible("0.9.0"))

        assert [spec.binary for spec in fake_invoker.calls] == [
            "contextpilot",
            "/first/contextpilot",
            "/second/contextpilot",
        ]
        assert runtime_context.resolved_binary == "/second/contextpilot"

    def test_too_old_stops_scanning_and_is_remembered(self, runtime_context, fake_invoker):
        fake_invoker.respond(is_version_query, "contextpilot 0.1.0\n")
        gate = self._gate(runtime_context, fake_invoker)

        with pytest.raises(IncompatibleVersionError) as first:
            asyncio.run(gate.ensure_compatible("0.9.0"))
        with pytest.raises(IncompatibleVersionError) as second:
            asyncio.run(gate.ensure_compatible("0.9.0"))

        assert len(fake_invoker.calls) == 1
        assert second.value is first.value
        assert first.value.installed == "0.1.0"
        assert "cargo install" in str(first.value)
        assert runtime_context.version_check is VersionCheckResult.INCOMPATIBLE

    def test_not_installed(self, runtime_context, fake_invoker):
        gate = self._gate(runtime_context, fake_invoker)

        with pytest.raises(ToolNotInstalledError) as exc_info:
            asyncio.run(gate.ensure_compatible("0.9.0"))

        assert len(fake_invoker.calls) == 3
        assert "brew install" in str(exc_info.value)
        assert runtime_context.version_check is VersionCheckResult.INCOMPATIBLE
        assert runtime_context.resolved_binary is None
