"""QEMU command line synthesis for emu-launcher."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from emu_launcher.bootorder import boot_bus_id
from emu_launcher.constants import SHARED_BUS_ID, SUPPORTED_ARCHES
from emu_launcher.exceptions import InvalidInvocation
from emu_launcher.models import (
    BootTarget,
    ConfigRecord,
    DiskRole,
    DriveAttachment,
    LaunchOverrides,
    LaunchPlan,
    NetworkMode,
    NetworkResource,
)

_SCSI_PRODUCTS = {
    DiskRole.PRIMARY: "QEMU_OS_DISK",
    DiskRole.SHARED: "QEMU_SHARED",
    DiskRole.EXTRA: "QEMU_EXTRA",
}


def _escape(value: object) -> str:
    """Escape a value for use inside a QEMU comma-separated option list."""
    return str(value).replace(",", ",,")


def assign_drives(record: ConfigRecord, overrides: LaunchOverrides) -> List[DriveAttachment]:
    """Resolve the bus id and boot index of every attached storage device."""
    profile = SUPPORTED_ARCHES[record.arch]
    target = overrides.boot_target
    removable_boots = target is BootTarget.REMOVABLE

    drives = [
        DriveAttachment(
            path=record.hdd,
            role=DiskRole.PRIMARY,
            bus_id=boot_bus_id(record.arch, BootTarget.PRIMARY),
            drive_id="hd0",
            bootindex=2 if removable_boots else 1,
        ),
        DriveAttachment(path=record.shared_hdd, role=DiskRole.SHARED, bus_id=SHARED_BUS_ID, drive_id="hd1"),
    ]
    if overrides.removable is not None:
        drives.append(
            DriveAttachment(
                path=overrides.removable,
                role=DiskRole.REMOVABLE,
                bus_id=boot_bus_id(record.arch, BootTarget.REMOVABLE),
                drive_id="cd0",
                bootindex=1 if removable_boots else 2,
            )
        )

    free_ids = profile["extra_bus_ids"]
    if len(overrides.extra_disks) > len(free_ids):
        raise InvalidInvocation(
            f"{record.arch} supports at most {len(free_ids)} additional disk(s) "
            f"(got {len(overrides.extra_disks)})"
        )
    for index, (path, bus_id) in enumerate(zip(overrides.extra_disks, free_ids), start=2):
        drives.append(DriveAttachment(path=Path(path), role=DiskRole.EXTRA, bus_id=bus_id, drive_id=f"hd{index}"))
    return drives


def _drive_options(record: ConfigRecord) -> str:
    options = []
    if record.cache_mode:
        options.append(f"cache={record.cache_mode}")
    if record.aio_mode:
        options.append(f"aio={record.aio_mode}")
        if record.aio_mode == "native":
            options.append("cache.direct=on")
    return "".join(f",{option}" for option in options)


def _accel_args(record: ConfigRecord) -> List[str]:
    if not (record.tcg_thread_mode or record.tb_size):
        return []
    accel = "tcg"
    if record.tcg_thread_mode:
        accel += f",thread={record.tcg_thread_mode}"
    if record.tb_size:
        accel += f",tb-size={record.tb_size}"
    return ["-accel", accel]


def _memory_args(record: ConfigRecord) -> List[str]:
    if not record.memory_backend:
        return []
    backend = f"memory-backend-{record.memory_backend},size={record.ram}M,id=ram0"
    if record.memory_backend == "file":
        backend += ",mem-path=/dev/shm"
    return ["-object", backend, "-machine", "memory-backend=ram0"]


def _audio_args(record: ConfigRecord) -> List[str]:
    if not record.audio_backend:
        return []
    audiodev = f"driver={record.audio_backend}"
    if record.audio_latency:
        audiodev += f",timer-period={record.audio_latency}"
    args = ["-audiodev", f"{audiodev},id=audio0"]
    if record.sound_device:
        args += ["-device", f"{record.sound_device},audiodev=audio0"]
    return args


def network_args(resource: NetworkResource) -> List[str]:
    nic = f"nic,model={resource.nic_model}"
    if resource.mode is NetworkMode.BRIDGED:
        return [
            "-netdev", f"tap,id=net0,ifname={resource.tap_name},script=no,downscript=no",
            "-net", f"{nic},netdev=net0,macaddr={resource.mac_address}",
        ]
    if resource.mode is NetworkMode.DAEMON:
        return [
            "-netdev", f"stream,id=net0,server=off,addr.type=unix,addr.path={_escape(resource.socket_path)}",
            "-net", f"{nic},netdev=net0,macaddr={resource.mac_address}",
        ]
    user = "user"
    if resource.smb_dir:
        user += f",smb={_escape(resource.smb_dir)}"
    return ["-net", f"{nic},macaddr={resource.mac_address}", "-net", user]


def _m68k_storage(record: ConfigRecord, drives: List[DriveAttachment]) -> List[str]:
    args: List[str] = []
    perf = _drive_options(record)
    for drive in drives:
        bootindex = f",bootindex={drive.bootindex}" if drive.bootindex is not None else ""
        path = _escape(drive.path)
        if drive.role is DiskRole.REMOVABLE:
            args += [
                "-device", f"scsi-cd,scsi-id={drive.bus_id},drive={drive.drive_id}{bootindex}",
                "-drive", f"file={path},format=raw,media=cdrom,if=none,id={drive.drive_id}",
            ]
        else:
            product = _SCSI_PRODUCTS[drive.role]
            args += [
                "-device",
                f"scsi-hd,scsi-id={drive.bus_id},drive={drive.drive_id}{bootindex},vendor=QEMU,product={product}",
                "-drive", f"file={path},media=disk,format=raw,if=none,id={drive.drive_id}{perf}",
            ]
    return args


def _ppc_storage(record: ConfigRecord, drives: List[DriveAttachment]) -> List[str]:
    args: List[str] = []
    perf = _drive_options(record)
    for drive in drives:
        path = _escape(drive.path)
        if drive.role is DiskRole.REMOVABLE:
            args += ["-drive", f"file={path},format=raw,media=cdrom,index={drive.bus_id}"]
        else:
            args += ["-drive", f"file={path},format=raw,media=disk,index={drive.bus_id}{perf}"]
    return args


def _build_m68k(record: ConfigRecord, resource: NetworkResource, overrides: LaunchOverrides) -> List[str]:
    machine = record.machine
    if record.asc_mode:
        machine += ",easc=on" if record.asc_mode == "easc" else ",easc=off"
    if record.audio_backend:
        machine += ",audiodev=audio0"
    args = [
        "-M", machine,
        "-m", record.ram,
        "-bios", str(record.rom),
        "-display", overrides.display,
        "-g", record.graphics,
    ]
    if record.pram is not None:
        args += ["-drive", f"file={_escape(record.pram)},format=raw,if=mtd"]
    if record.cpu:
        args += ["-cpu", record.cpu]
    args += _accel_args(record)
    args += _memory_args(record)
    args += _audio_args(record)
    args += network_args(resource)
    args += _m68k_storage(record, assign_drives(record, overrides))
    return args


def _build_ppc(record: ConfigRecord, resource: NetworkResource, overrides: LaunchOverrides) -> List[str]:
    args = [
        "-L", "pc-bios",
        "-M", record.machine,
        "-display", overrides.display,
        "-m", record.ram,
    ]
    if record.cpu:
        args += ["-cpu", record.cpu]
    if record.smp_cores and int(record.smp_cores) > 1:
        args += ["-smp", record.smp_cores]
    args += _accel_args(record)
    args += _memory_args(record)
    args += ["-boot", "d" if overrides.boot_target is BootTarget.REMOVABLE else "c"]
    args += ["-g", record.graphics]
    args += _ppc_storage(record, assign_drives(record, overrides))
    args += _audio_args(record)
    if record.usb_enabled:
        args.append("-usb")
    args += network_args(resource)
    return args


_BUILDERS = {
    "m68k": _build_m68k,
    "ppc": _build_ppc,
}


def build(
    record: ConfigRecord,
    resource: NetworkResource,
    overrides: Optional[LaunchOverrides] = None,
) -> LaunchPlan:
    """Turn a configuration, its network handle and per-run overrides into a launch plan."""
    if overrides is None:
        overrides = LaunchOverrides()
    builder = _BUILDERS[record.arch]
    argv = builder(record, resource, overrides)
    argv += list(overrides.extra_args)
    return LaunchPlan(executable=SUPPORTED_ARCHES[record.arch]["emulator"], argv=tuple(argv))
