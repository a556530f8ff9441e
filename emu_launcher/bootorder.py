"""Boot device encoding for the Macintosh PRAM parameter block.

The ROM reads the startup device from a 16-bit driver reference number at
offset 0x7A. For a SCSI device the value is ``~(scsi_id + 32) & 0xFFFF``,
stored big-endian, so SCSI 0 is ``FF DF`` and SCSI 2 is ``FF DD``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from emu_launcher.constants import (
    PRAM_BOOT_LENGTH,
    PRAM_BOOT_OFFSET,
    PRAM_REFNUM_BIAS,
    PRIMARY_BUS_ID,
    REMOVABLE_BUS_ID,
    SUPPORTED_ARCHES,
)
from emu_launcher.exceptions import CodecError
from emu_launcher.models import BootTarget
from emu_launcher.utils import log

_BUS_IDS = {
    BootTarget.PRIMARY: PRIMARY_BUS_ID,
    BootTarget.REMOVABLE: REMOVABLE_BUS_ID,
}


def boot_bus_id(arch: str, target: BootTarget) -> int:
    """Bus identifier a boot target must be attached at on ``arch``."""
    if arch not in SUPPORTED_ARCHES:
        raise CodecError(f"No boot bus mapping for architecture '{arch}'")
    return _BUS_IDS[target]


def uses_pram_boot(arch: str) -> bool:
    return SUPPORTED_ARCHES[arch]["boot_control"] == "pram"


def encode_refnum(bus_id: int) -> bytes:
    refnum = ~(bus_id + PRAM_REFNUM_BIAS) & 0xFFFF
    return refnum.to_bytes(PRAM_BOOT_LENGTH, "big")


def decode_refnum(raw: bytes) -> int:
    """Inverse of :func:`encode_refnum`: return the encoded bus id."""
    if len(raw) != PRAM_BOOT_LENGTH:
        raise CodecError(f"Boot field must be {PRAM_BOOT_LENGTH} bytes (got {len(raw)})")
    refnum = int.from_bytes(raw, "big")
    return (~refnum & 0xFFFF) - PRAM_REFNUM_BIAS


def _check_block(path: Path) -> None:
    if not path.is_file():
        raise CodecError(f"PRAM file {path} does not exist; provision storage before patching")
    size = path.stat().st_size
    if size < PRAM_BOOT_OFFSET + PRAM_BOOT_LENGTH:
        raise CodecError(
            f"PRAM file {path} is {size} bytes; at least "
            f"{PRAM_BOOT_OFFSET + PRAM_BOOT_LENGTH} bytes are required"
        )


def patch(path: Path, target: BootTarget, arch: str = "m68k") -> None:
    """Overwrite the boot field in place, leaving every other byte untouched."""
    path = Path(path)
    _check_block(path)
    payload = encode_refnum(boot_bus_id(arch, target))
    try:
        with path.open("r+b") as handle:
            handle.seek(PRAM_BOOT_OFFSET)
            handle.write(payload)
    except OSError as exc:
        raise CodecError(f"Failed to patch PRAM file {path}: {exc}")
    log("INFO", f"PRAM boot device set to {target.value} (0x{PRAM_BOOT_OFFSET:02X} = {payload.hex(' ').upper()})")


def read_boot_field(path: Path) -> bytes:
    path = Path(path)
    _check_block(path)
    with path.open("rb") as handle:
        handle.seek(PRAM_BOOT_OFFSET)
        return handle.read(PRAM_BOOT_LENGTH)


def read_boot_target(path: Path, arch: str = "m68k") -> Optional[BootTarget]:
    """Return the boot target recorded in the PRAM, or None if unrecognised."""
    bus_id = decode_refnum(read_boot_field(path))
    for target in BootTarget:
        if boot_bus_id(arch, target) == bus_id:
            return target
    return None


def hexdump(data: bytes, width: int = 16) -> List[str]:
    lines = []
    for offset in range(0, len(data), width):
        chunk = data[offset:offset + width]
        hex_part = " ".join(f"{byte:02x}" for byte in chunk)
        text = "".join(chr(byte) if 32 <= byte < 127 else "." for byte in chunk)
        lines.append(f"{offset:08x}  {hex_part:<{width * 3}} |{text}|")
    return lines


def describe(path: Path, arch: str = "m68k") -> Dict[str, object]:
    """Summarise the boot field of a PRAM file for debugging."""
    path = Path(path)
    raw = read_boot_field(path)
    bus_id = decode_refnum(raw)
    target = read_boot_target(path, arch)
    if raw == b"\x00\x00":
        note = "unset (ROM default search order)"
    elif target is None:
        note = f"bus id {bus_id} (not a launcher boot target)"
    else:
        note = f"{target.value} (bus id {bus_id})"
    return {
        "path": str(path),
        "size": path.stat().st_size,
        "offset": f"0x{PRAM_BOOT_OFFSET:02X}",
        "raw": raw.hex(" ").upper(),
        "bus_id": bus_id,
        "target": target.value if target else None,
        "summary": note,
        "dump": hexdump(path.read_bytes()),
    }
