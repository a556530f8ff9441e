"""Tests for emu_launcher.bootorder module."""

from __future__ import annotations

import pytest

from emu_launcher import bootorder
from emu_launcher.constants import PRAM_BOOT_OFFSET, SUPPORTED_ARCHES
from emu_launcher.exceptions import CodecError
from emu_launcher.models import BootTarget


@pytest.fixture
def pram(tmp_path):
    path = tmp_path / "pram.img"
    path.write_bytes(bytes((i * 7) & 0xFF for i in range(256)))
    return path


class TestEncoding:
    def test_known_values(self):
        assert bootorder.encode_refnum(0) == b"\xff\xdf"
        assert bootorder.encode_refnum(2) == b"\xff\xdd"
        assert bootorder.encode_refnum(6) == b"\xff\xd9"

    def test_decode_inverts_encode(self):
        for bus_id in range(7):
            assert bootorder.decode_refnum(bootorder.encode_refnum(bus_id)) == bus_id

    def test_decode_wrong_length(self):
        with pytest.raises(CodecError):
            bootorder.decode_refnum(b"\xff")

    def test_bus_ids(self):
        for arch in SUPPORTED_ARCHES:
            assert bootorder.boot_bus_id(arch, BootTarget.PRIMARY) == 0
            assert bootorder.boot_bus_id(arch, BootTarget.REMOVABLE) == 2

    def test_unknown_arch(self):
        with pytest.raises(CodecError):
            bootorder.boot_bus_id("sparc", BootTarget.PRIMARY)

    def test_pram_boot_only_on_m68k(self):
        assert bootorder.uses_pram_boot("m68k")
        assert not bootorder.uses_pram_boot("ppc")


class TestPatch:
    def test_writes_only_boot_field(self, pram):
        before = pram.read_bytes()
        bootorder.patch(pram, BootTarget.REMOVABLE)
        after = pram.read_bytes()
        assert len(after) == 256
        assert after[PRAM_BOOT_OFFSET:PRAM_BOOT_OFFSET + 2] == b"\xff\xdd"
        assert after[:PRAM_BOOT_OFFSET] == before[:PRAM_BOOT_OFFSET]
        assert after[PRAM_BOOT_OFFSET + 2:] == before[PRAM_BOOT_OFFSET + 2:]

    def test_round_trip_restores_primary(self, pram):
        bootorder.patch(pram, BootTarget.PRIMARY)
        primary = pram.read_bytes()
        bootorder.patch(pram, BootTarget.REMOVABLE)
        bootorder.patch(pram, BootTarget.PRIMARY)
        assert pram.read_bytes() == primary

    def test_read_boot_target(self, pram):
        bootorder.patch(pram, BootTarget.REMOVABLE)
        assert bootorder.read_boot_target(pram) is BootTarget.REMOVABLE
        bootorder.patch(pram, BootTarget.PRIMARY)
        assert bootorder.read_boot_target(pram) is BootTarget.PRIMARY

    def test_missing_file(self, tmp_path):
        with pytest.raises(CodecError, match="does not exist"):
            bootorder.patch(tmp_path / "missing.img", BootTarget.PRIMARY)

    def test_undersized_file(self, tmp_path):
        path = tmp_path / "short.img"
        path.write_bytes(bytes(PRAM_BOOT_OFFSET + 1))
        with pytest.raises(CodecError, match="at least"):
            bootorder.patch(path, BootTarget.PRIMARY)
        assert path.read_bytes() == bytes(PRAM_BOOT_OFFSET + 1)

    def test_minimum_size_is_enough(self, tmp_path):
        path = tmp_path / "exact.img"
        path.write_bytes(bytes(PRAM_BOOT_OFFSET + 2))
        bootorder.patch(path, BootTarget.PRIMARY)
        assert path.read_bytes()[-2:] == b"\xff\xdf"


class TestDescribe:
    def test_unset_field(self, tmp_path):
        path = tmp_path / "pram.img"
        path.write_bytes(bytes(256))
        info = bootorder.describe(path)
        assert info["raw"] == "00 00"
        assert info["target"] is None
        assert "unset" in info["summary"]
        assert len(info["dump"]) == 16

    def test_patched_field(self, pram):
        bootorder.patch(pram, BootTarget.REMOVABLE)
        info = bootorder.describe(pram)
        assert info["offset"] == "0x7A"
        assert info["raw"] == "FF DD"
        assert info["bus_id"] == 2
        assert info["target"] == "removable"
