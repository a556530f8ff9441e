"""Global constants and architecture profiles for emu-launcher."""

from __future__ import annotations

import os
import re

TRUTHY = {"1", "true", "yes", "on"}
FALSY = {"0", "false", "no", "off"}
_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").strip().lower() in TRUTHY

CONFIG_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+\.(conf|ya?ml)$")
YAML_SUFFIXES = {".yaml", ".yml"}
MAC_ADDRESS_RE = re.compile(r"^[0-9a-f]{2}(:[0-9a-f]{2}){5}$")
DISK_SIZE_RE = re.compile(r"^\d+[KMGTkmgt]?$")
IFACE_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]{1,15}$")
IFNAMSIZ = 15

ARCH_KEY = "ARCH"

# Parameter block (PRAM) layout.
PRAM_SIZE = 256
PRAM_BOOT_OFFSET = 0x7A
PRAM_BOOT_LENGTH = 2
PRAM_REFNUM_BIAS = 32

# Bus identifiers for the boot candidates, shared by the PRAM codec and the
# command builder.
PRIMARY_BUS_ID = 0
SHARED_BUS_ID = 1
REMOVABLE_BUS_ID = 2

SUPPORTED_ARCHES = {
    "m68k": {
        "emulator": "qemu-system-m68k",
        "bus": "scsi",
        "boot_control": "pram",
        "nic_model": "dp83932",
        "network_mode": "tap",
        "extra_bus_ids": (3, 4, 5, 6),
        "required": {
            "QEMU_MACHINE": "QEMU machine type (e.g., q800)",
            "QEMU_ROM": "ROM file path",
            "QEMU_HDD": "Hard disk image path",
            "QEMU_SHARED_HDD": "Shared disk image path",
            "QEMU_RAM": "RAM amount in MB",
            "QEMU_GRAPHICS": "Graphics settings (e.g., 1152x870x8)",
            "QEMU_PRAM": "PRAM file path",
        },
        "must_exist": ("QEMU_ROM",),
        "defaults": {
            "QEMU_HDD_SIZE": "1G",
            "QEMU_SHARED_HDD_SIZE": "200M",
            "QEMU_EXTRA_HDD_SIZE": "1G",
            "BRIDGE_NAME": "br0",
        },
    },
    "ppc": {
        "emulator": "qemu-system-ppc",
        "bus": "ide",
        "boot_control": "boot-flag",
        "nic_model": "rtl8139",
        "network_mode": "user",
        "extra_bus_ids": (3,),
        "required": {
            "QEMU_MACHINE": "QEMU machine type (e.g., mac99, g3beige)",
            "QEMU_HDD": "Hard disk image path",
            "QEMU_SHARED_HDD": "Shared disk image path",
            "QEMU_RAM": "RAM amount in MB",
            "QEMU_GRAPHICS": "Graphics settings (e.g., 1024x768x8)",
        },
        "must_exist": (),
        "defaults": {
            "QEMU_HDD_SIZE": "2G",
            "QEMU_SHARED_HDD_SIZE": "200M",
            "QEMU_EXTRA_HDD_SIZE": "1G",
            "BRIDGE_NAME": "br0",
        },
    },
}

# Older configuration units name the storage knobs after the bus.
FIELD_ALIASES = {
    "QEMU_CACHE_MODE": ("QEMU_SCSI_CACHE_MODE", "QEMU_IDE_CACHE_MODE"),
    "QEMU_AIO_MODE": ("QEMU_SCSI_AIO_MODE", "QEMU_IDE_AIO_MODE"),
}

CACHE_MODES = ("writethrough", "writeback", "none", "directsync", "unsafe")
AIO_MODES = ("threads", "native", "io_uring")
TCG_THREAD_MODES = ("single", "multi")
MEMORY_BACKENDS = ("ram", "file", "memfd")
AUDIO_BACKENDS = ("pa", "alsa", "sdl", "oss", "none", "wav", "coreaudio", "pipewire", "dbus", "spice")
ASC_MODES = ("easc", "asc")
DISPLAY_TYPES = ("sdl", "gtk", "cocoa", "vnc", "curses", "none")
TB_SIZE_RECOMMENDED = (64, 1024)

ENUM_FIELDS = {
    "QEMU_CACHE_MODE": CACHE_MODES,
    "QEMU_AIO_MODE": AIO_MODES,
    "QEMU_TCG_THREAD_MODE": TCG_THREAD_MODES,
    "QEMU_MEMORY_BACKEND": MEMORY_BACKENDS,
    "QEMU_AUDIO_BACKEND": AUDIO_BACKENDS,
    "QEMU_ASC_MODE": ASC_MODES,
}
POSITIVE_INT_FIELDS = ("QEMU_RAM", "QEMU_TB_SIZE", "QEMU_SMP_CORES", "QEMU_AUDIO_LATENCY")

# CLI network type -> resource mode.
NETWORK_TYPES = ("tap", "passt", "user")

PASST_BINARY = "passt"
PASST_SOCKET_NAME = "passt.socket"
PASST_STARTUP_TIMEOUT = 5.0
PROCESS_STOP_TIMEOUT = 5.0

# Orchestrator failures use a reserved range so callers can tell them apart
# from the emulator's own exit status.
EXIT_CODES = {
    "generic": 240,
    "schema": 241,
    "not_found": 242,
    "provision": 243,
    "codec": 244,
    "network": 245,
    "launch": 246,
    "invocation": 247,
    "interrupted": 130,
}
