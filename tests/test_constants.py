"""Tests for emu_launcher.constants module."""

from emu_launcher.constants import (
    DISK_SIZE_RE,
    EXIT_CODES,
    IFACE_NAME_RE,
    MAC_ADDRESS_RE,
    PRAM_BOOT_LENGTH,
    PRAM_BOOT_OFFSET,
    PRAM_SIZE,
    SUPPORTED_ARCHES,
    TRUTHY,
)


class TestConstants:
    def test_truthy_values(self):
        assert "1" in TRUTHY
        assert "true" in TRUTHY
        assert "yes" in TRUTHY
        assert "on" in TRUTHY
        assert "false" not in TRUTHY

    def test_mac_address_regex(self):
        assert MAC_ADDRESS_RE.match("52:54:00:aa:bb:cc")
        assert not MAC_ADDRESS_RE.match("52:54:00:AA:BB")

    def test_disk_size_regex(self):
        assert DISK_SIZE_RE.match("200M")
        assert not DISK_SIZE_RE.match("200MB")

    def test_iface_name_limit(self):
        assert IFACE_NAME_RE.match("tap_sys753-q800")
        assert not IFACE_NAME_RE.match("tap_sys753-q800x")

    def test_boot_field_inside_pram(self):
        assert PRAM_BOOT_OFFSET + PRAM_BOOT_LENGTH <= PRAM_SIZE

    def test_profiles_are_complete(self):
        for arch, profile in SUPPORTED_ARCHES.items():
            assert profile["emulator"] == f"qemu-system-{arch}"
            assert set(profile["must_exist"]) <= set(profile["required"])
            assert {"QEMU_HDD_SIZE", "QEMU_SHARED_HDD_SIZE", "BRIDGE_NAME"} <= set(profile["defaults"])

    def test_m68k_requires_rom_and_pram(self):
        required = SUPPORTED_ARCHES["m68k"]["required"]
        assert "QEMU_ROM" in required
        assert "QEMU_PRAM" in required
        assert "QEMU_ROM" not in SUPPORTED_ARCHES["ppc"]["required"]

    def test_exit_codes_outside_common_range(self):
        reserved = [code for kind, code in EXIT_CODES.items() if kind != "interrupted"]
        assert min(reserved) >= 240
