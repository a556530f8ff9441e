"""Tests for emu_launcher.models module."""

from __future__ import annotations

from pathlib import Path

from emu_launcher.models import BootTarget, DiskRole, LaunchOverrides, LaunchPlan, NetworkMode


class TestLaunchOverrides:
    def test_defaults(self):
        overrides = LaunchOverrides()
        assert overrides.removable is None
        assert overrides.extra_disks == ()
        assert overrides.boot_target is BootTarget.PRIMARY

    def test_boot_target_requires_removable(self):
        assert LaunchOverrides(boot_from_removable=True).boot_target is BootTarget.PRIMARY
        overrides = LaunchOverrides(removable=Path("cd.iso"), boot_from_removable=True)
        assert overrides.boot_target is BootTarget.REMOVABLE


class TestConfigRecord:
    def test_disks(self, m68k_record):
        primary, shared = m68k_record.disks()
        assert primary.role is DiskRole.PRIMARY
        assert primary.size == "1G"
        assert shared.role is DiskRole.SHARED
        assert shared.path == m68k_record.shared_hdd


class TestLaunchPlan:
    def test_command(self):
        plan = LaunchPlan(executable="qemu-system-ppc", argv=("-M", "mac99"))
        assert plan.command() == ("qemu-system-ppc", "-M", "mac99")


class TestNetworkMode:
    def test_cli_names(self):
        assert NetworkMode("tap") is NetworkMode.BRIDGED
        assert NetworkMode("passt") is NetworkMode.DAEMON
        assert NetworkMode("user") is NetworkMode.BUILTIN
