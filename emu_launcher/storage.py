"""Disk image and PRAM provisioning for emu-launcher."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from emu_launcher.constants import PRAM_SIZE
from emu_launcher.exceptions import ProvisionError
from emu_launcher.models import ConfigRecord, DiskImage, DiskRole
from emu_launcher.utils import ensure_directory, log, parse_size_to_bytes


def _prepare_parent(path: Path) -> None:
    parent = path.parent
    if parent.exists():
        return
    try:
        ensure_directory(parent)
    except OSError as exc:
        raise ProvisionError(parent, exc)
    log("INFO", f"Created directory {parent}")


def create_disk_image(image: DiskImage) -> bool:
    """Create a sparse raw image when missing. Returns True if one was created."""
    path = image.path
    _prepare_parent(path)
    if path.exists():
        log("DEBUG", f"Using existing {image.role.value} disk {path}")
        return False
    try:
        size_bytes = parse_size_to_bytes(image.size or "")
    except ValueError as exc:
        raise ProvisionError(path, exc)
    log("INFO", f"Creating {image.role.value} disk image {path} ({image.size})")
    try:
        # "x" refuses to clobber a file that appeared after the existence check.
        with path.open("xb") as handle:
            handle.truncate(size_bytes)
    except OSError as exc:
        raise ProvisionError(path, exc)
    return True


def create_pram(path: Path) -> bool:
    """Create a zero-filled PRAM file when missing or empty."""
    _prepare_parent(path)
    try:
        if path.exists() and path.stat().st_size > 0:
            return False
        log("INFO", f"Creating PRAM file {path} ({PRAM_SIZE} bytes)")
        with path.open("wb") as handle:
            handle.write(bytes(PRAM_SIZE))
    except OSError as exc:
        raise ProvisionError(path, exc)
    return True


def declared_images(record: ConfigRecord, extra_disks: Iterable[Path] = ()) -> List[DiskImage]:
    images = list(record.disks())
    images.extend(DiskImage(Path(extra), DiskRole.EXTRA, record.extra_hdd_size) for extra in extra_disks)
    return images


def ensure(record: ConfigRecord, extra_disks: Iterable[Path] = ()) -> None:
    """Make sure every disk image and the PRAM file of a configuration exist."""
    created = 0
    for image in declared_images(record, extra_disks):
        if create_disk_image(image):
            created += 1
    if record.pram is not None and create_pram(record.pram):
        created += 1
    if created:
        log("SUCCESS", f"Provisioned {created} new file(s) for '{record.name}'")
