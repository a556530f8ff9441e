"""Shared test fixtures for emu-launcher."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from emu_launcher import constants
from emu_launcher.exceptions import NetworkSetupError
from emu_launcher.models import ConfigRecord


@pytest.fixture(autouse=True)
def quiet_debug_logging(monkeypatch):
    monkeypatch.setattr(constants, "_LOG_VERBOSE", False)


@pytest.fixture
def rom_file(tmp_path) -> Path:
    rom = tmp_path / "roms" / "800.ROM"
    rom.parent.mkdir()
    rom.write_bytes(b"\x00" * 1024)
    return rom


@pytest.fixture
def write_config(tmp_path):
    """Return a helper that writes KEY="value" lines to a .conf file."""

    def _write(values: Dict[str, Optional[str]], name: str = "test-q800.conf") -> Path:
        lines = ["# generated by tests"]
        for key, value in values.items():
            if value is None:
                continue
            lines.append(f'{key}="{value}"')
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def m68k_values(tmp_path, rom_file) -> Dict[str, str]:
    disks = tmp_path / "images"
    return {
        "ARCH": "m68k",
        "QEMU_MACHINE": "q800",
        "QEMU_ROM": str(rom_file),
        "QEMU_HDD": str(disks / "hdd.img"),
        "QEMU_SHARED_HDD": str(disks / "shared.img"),
        "QEMU_RAM": "128",
        "QEMU_GRAPHICS": "1152x870x8",
        "QEMU_PRAM": str(disks / "pram.img"),
    }


@pytest.fixture
def ppc_values(tmp_path) -> Dict[str, str]:
    disks = tmp_path / "images"
    return {
        "ARCH": "ppc",
        "QEMU_MACHINE": "mac99",
        "QEMU_HDD": str(disks / "hdd.img"),
        "QEMU_SHARED_HDD": str(disks / "shared.img"),
        "QEMU_RAM": "512",
        "QEMU_GRAPHICS": "1024x768x8",
    }


@pytest.fixture
def m68k_record(tmp_path) -> ConfigRecord:
    """Return a minimal m68k ConfigRecord with sensible defaults."""
    disks = tmp_path / "images"
    return ConfigRecord(
        name="sys753-q800",
        source=tmp_path / "sys753-q800.conf",
        arch="m68k",
        machine="q800",
        ram="128",
        graphics="1152x870x8",
        hdd=disks / "hdd.img",
        shared_hdd=disks / "shared.img",
        hdd_size="1G",
        shared_hdd_size="200M",
        extra_hdd_size="1G",
        rom=tmp_path / "800.ROM",
        pram=disks / "pram.img",
        bridge_name="br0",
    )


@pytest.fixture
def ppc_record(tmp_path) -> ConfigRecord:
    disks = tmp_path / "images"
    return ConfigRecord(
        name="osx-mac99",
        source=tmp_path / "osx-mac99.conf",
        arch="ppc",
        machine="mac99",
        ram="512",
        graphics="1024x768x8",
        hdd=disks / "hdd.img",
        shared_hdd=disks / "shared.img",
        hdd_size="2G",
        shared_hdd_size="200M",
        extra_hdd_size="1G",
        bridge_name="br0",
    )


class FakeIpRoute:
    """In-memory stand-in for IpRoute that tracks links like the kernel would."""

    def __init__(self, links: Optional[Dict[str, dict]] = None, fail_on: Optional[Set[str]] = None) -> None:
        self.links: Dict[str, dict] = dict(links or {})
        self.fail_on = set(fail_on or ())
        self.calls: List[tuple] = []

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail_on:
            raise NetworkSetupError(f"simulated failure in {op}")

    def exists(self, name: str) -> bool:
        return name in self.links

    def add_bridge(self, name: str) -> None:
        self.calls.append(("add_bridge", name))
        self._maybe_fail("add_bridge")
        self.links[name] = {"kind": "bridge", "up": False, "master": None}

    def add_tap(self, name: str, user: str) -> None:
        self.calls.append(("add_tap", name))
        self._maybe_fail("add_tap")
        self.links[name] = {"kind": "tap", "up": False, "master": None}

    def set_master(self, name: str, bridge: str) -> None:
        self.calls.append(("set_master", name, bridge))
        self._maybe_fail("set_master")
        self.links[name]["master"] = bridge

    def set_up(self, name: str) -> None:
        self.calls.append(("set_up", name))
        self._maybe_fail(f"set_up:{name}")
        self.links[name]["up"] = True

    def try_nomaster(self, name: str) -> bool:
        self.calls.append(("nomaster", name))
        if name not in self.links:
            return False
        self.links[name]["master"] = None
        return True

    def try_down(self, name: str) -> bool:
        self.calls.append(("down", name))
        if name not in self.links:
            return False
        self.links[name]["up"] = False
        return True

    def try_delete_tap(self, name: str) -> bool:
        self.calls.append(("delete", name))
        return self.links.pop(name, None) is not None


@pytest.fixture
def fake_ip() -> FakeIpRoute:
    return FakeIpRoute(links={"br0": {"kind": "bridge", "up": True, "master": None}})
