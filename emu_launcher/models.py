"""Data models for emu-launcher."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple


class BootTarget(enum.Enum):
    PRIMARY = "primary"
    REMOVABLE = "removable"


class NetworkMode(enum.Enum):
    BRIDGED = "tap"
    DAEMON = "passt"
    BUILTIN = "user"


class DiskRole(enum.Enum):
    PRIMARY = "primary"
    SHARED = "shared"
    EXTRA = "extra"
    REMOVABLE = "removable"


@dataclass(frozen=True)
class DiskImage:
    path: Path
    role: DiskRole
    size: Optional[str] = None  # only used when the image is created


@dataclass(frozen=True)
class ConfigRecord:
    """Validated, read-only view of one configuration unit."""

    name: str
    source: Path
    arch: str
    machine: str
    ram: str
    graphics: str
    hdd: Path
    shared_hdd: Path
    hdd_size: str
    shared_hdd_size: str
    extra_hdd_size: str
    rom: Optional[Path] = None
    pram: Optional[Path] = None
    cpu: Optional[str] = None
    cache_mode: Optional[str] = None
    aio_mode: Optional[str] = None
    tcg_thread_mode: Optional[str] = None
    tb_size: Optional[str] = None
    memory_backend: Optional[str] = None
    smp_cores: Optional[str] = None
    audio_backend: Optional[str] = None
    audio_latency: Optional[str] = None
    sound_device: Optional[str] = None
    asc_mode: Optional[str] = None
    usb_enabled: bool = False
    bridge_name: Optional[str] = None
    tap_iface: Optional[str] = None
    mac_address: Optional[str] = None
    network_device: Optional[str] = None
    user_smb_dir: Optional[str] = None
    values: Dict[str, str] = field(default_factory=dict, compare=False, repr=False)

    def disks(self) -> Tuple[DiskImage, DiskImage]:
        return (
            DiskImage(self.hdd, DiskRole.PRIMARY, self.hdd_size),
            DiskImage(self.shared_hdd, DiskRole.SHARED, self.shared_hdd_size),
        )


@dataclass(frozen=True)
class NetworkResource:
    """Handle describing what the network manager acquired for a session."""

    mode: NetworkMode
    nic_model: str
    mac_address: str
    tap_name: Optional[str] = None
    bridge_name: Optional[str] = None
    socket_path: Optional[Path] = None
    session_dir: Optional[Path] = None
    smb_dir: Optional[str] = None


@dataclass(frozen=True)
class LaunchOverrides:
    removable: Optional[Path] = None
    extra_disks: Tuple[Path, ...] = ()
    boot_from_removable: bool = False
    display: str = "sdl"
    extra_args: Tuple[str, ...] = ()

    @property
    def boot_target(self) -> BootTarget:
        if self.boot_from_removable and self.removable is not None:
            return BootTarget.REMOVABLE
        return BootTarget.PRIMARY


@dataclass(frozen=True)
class DriveAttachment:
    path: Path
    role: DiskRole
    bus_id: int
    drive_id: str
    bootindex: Optional[int] = None


@dataclass(frozen=True)
class LaunchPlan:
    executable: str
    argv: Tuple[str, ...]

    def command(self) -> Tuple[str, ...]:
        return (self.executable, *self.argv)
