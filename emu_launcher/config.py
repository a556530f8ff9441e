"""Configuration loading and schema validation for emu-launcher."""

from __future__ import annotations

import re
import shlex
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from emu_launcher.constants import (
    ARCH_KEY,
    CONFIG_NAME_RE,
    DISPLAY_TYPES,
    ENUM_FIELDS,
    FIELD_ALIASES,
    IFACE_NAME_RE,
    MAC_ADDRESS_RE,
    POSITIVE_INT_FIELDS,
    SUPPORTED_ARCHES,
    TB_SIZE_RECOMMENDED,
    TRUTHY,
    FALSY,
    YAML_SUFFIXES,
)
from emu_launcher.exceptions import (
    InvalidFieldValue,
    InvalidInvocation,
    MissingRequiredField,
    ResourceNotFound,
    SchemaError,
    UnknownArchitecture,
)
from emu_launcher.models import ConfigRecord, NetworkMode
from emu_launcher.utils import log

_ASSIGNMENT_RE = re.compile(r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


def parse_assignments(text: str, source: Union[str, Path] = "<config>") -> Dict[str, str]:
    """Parse shell-style KEY="value" lines into a flat namespace.

    Blank lines, comments and anything that is not a plain assignment are
    skipped. Later assignments win, as they would when the file is sourced.
    """
    values: Dict[str, str] = {}
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        match = _ASSIGNMENT_RE.match(line)
        if not match:
            log("DEBUG", f"{source}:{lineno}: ignoring non-assignment line")
            continue
        key, raw_value = match.groups()
        try:
            words = shlex.split(raw_value, comments=True, posix=True)
        except ValueError as exc:
            raise SchemaError(f"{source}:{lineno}: cannot parse value for {key}: {exc}")
        values[key] = " ".join(words)
    return values


def parse_yaml_mapping(text: str, source: Union[str, Path] = "<config>") -> Dict[str, str]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SchemaError(f"{source} contains invalid YAML: {exc}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SchemaError(f"{source} must contain a mapping of KEY: value pairs")
    values: Dict[str, str] = {}
    for key, value in data.items():
        if value is None:
            values[str(key)] = ""
        elif isinstance(value, bool):
            values[str(key)] = "true" if value else "false"
        elif isinstance(value, (dict, list)):
            raise SchemaError(f"{source}: value for {key} must be a scalar")
        else:
            values[str(key)] = str(value)
    return values


def read_config_unit(path: Path) -> Dict[str, str]:
    if not path.is_file():
        raise ResourceNotFound(
            path,
            what="Configuration file",
            hint="Pass the path to an existing .conf file (e.g. configs/sys755-q800.conf)",
        )
    if not CONFIG_NAME_RE.match(path.name):
        raise SchemaError(
            f"Invalid configuration file name '{path.name}'. "
            "Use letters, digits, '.', '_' or '-' and a .conf (or .yaml) suffix."
        )
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ResourceNotFound(path, what=f"Readable configuration file ({exc.strerror})")
    except UnicodeDecodeError as exc:
        raise SchemaError(f"Configuration file {path} is not valid UTF-8: {exc.reason}")
    if path.suffix.lower() in YAML_SUFFIXES:
        return parse_yaml_mapping(text, path)
    return parse_assignments(text, path)


def _apply_aliases(values: Dict[str, str]) -> Dict[str, str]:
    merged = dict(values)
    for canonical, aliases in FIELD_ALIASES.items():
        if canonical in merged:
            continue
        for alias in aliases:
            if alias in merged:
                merged[canonical] = merged[alias]
                break
    return merged


def _check_values(values: Dict[str, str]) -> List[str]:
    problems: List[str] = []
    for key, allowed in ENUM_FIELDS.items():
        value = values.get(key, "")
        if value and value not in allowed:
            problems.append(f"{key}='{value}' (supported: {', '.join(allowed)})")
    for key in POSITIVE_INT_FIELDS:
        value = values.get(key, "")
        if not value:
            continue
        if not (value.isascii() and value.isdigit()) or int(value) < 1:
            problems.append(f"{key}='{value}' must be a positive integer")
    mac = values.get("QEMU_MAC_ADDR", "")
    if mac and not MAC_ADDRESS_RE.match(mac.lower()):
        problems.append(f"QEMU_MAC_ADDR='{mac}' must look like 52:54:00:12:34:56")
    usb = values.get("QEMU_USB_ENABLED", "")
    if usb and usb.lower() not in TRUTHY | FALSY:
        problems.append(f"QEMU_USB_ENABLED='{usb}' must be true or false")
    return problems


def _optional(values: Dict[str, str], key: str) -> Optional[str]:
    value = values.get(key, "").strip()
    return value or None


def _optional_path(values: Dict[str, str], key: str) -> Optional[Path]:
    value = _optional(values, key)
    return Path(value).expanduser() if value else None


def load(path: Union[str, Path]) -> ConfigRecord:
    """Load and validate a configuration unit into an immutable record."""
    path = Path(path)
    raw = read_config_unit(path)

    arch = raw.get(ARCH_KEY, "").strip()
    if arch not in SUPPORTED_ARCHES:
        raise UnknownArchitecture(arch or None, SUPPORTED_ARCHES.keys())
    profile = SUPPORTED_ARCHES[arch]

    values = _apply_aliases(raw)
    missing: List[Tuple[str, str]] = [
        (key, description)
        for key, description in profile["required"].items()
        if not values.get(key, "").strip()
    ]
    if missing:
        raise MissingRequiredField(missing, source=path)

    for key, default in profile["defaults"].items():
        if key not in values:
            values[key] = default

    problems = _check_values(values)
    if problems:
        raise InvalidFieldValue(problems)

    tb_size = _optional(values, "QEMU_TB_SIZE")
    if tb_size:
        low, high = TB_SIZE_RECOMMENDED
        if not low <= int(tb_size) <= high:
            log("WARN", f"QEMU_TB_SIZE={tb_size} is outside the recommended range ({low}-{high} MB)")

    for key in profile["must_exist"]:
        candidate = Path(values[key]).expanduser()
        if not candidate.is_file():
            raise ResourceNotFound(
                candidate,
                what=f"{key} file",
                hint=f"Place the file at {candidate} or update {key} in {path.name}",
            )
        try:
            with candidate.open("rb"):
                pass
        except OSError as exc:
            raise ResourceNotFound(candidate, what=f"Readable {key} file ({exc.strerror})")

    mac = _optional(values, "QEMU_MAC_ADDR")
    record = ConfigRecord(
        name=path.stem,
        source=path,
        arch=arch,
        machine=values["QEMU_MACHINE"].strip(),
        ram=values["QEMU_RAM"].strip(),
        graphics=values["QEMU_GRAPHICS"].strip(),
        hdd=Path(values["QEMU_HDD"].strip()).expanduser(),
        shared_hdd=Path(values["QEMU_SHARED_HDD"].strip()).expanduser(),
        hdd_size=values["QEMU_HDD_SIZE"].strip(),
        shared_hdd_size=values["QEMU_SHARED_HDD_SIZE"].strip(),
        extra_hdd_size=values["QEMU_EXTRA_HDD_SIZE"].strip(),
        rom=_optional_path(values, "QEMU_ROM"),
        pram=_optional_path(values, "QEMU_PRAM"),
        cpu=_optional(values, "QEMU_CPU"),
        cache_mode=_optional(values, "QEMU_CACHE_MODE"),
        aio_mode=_optional(values, "QEMU_AIO_MODE"),
        tcg_thread_mode=_optional(values, "QEMU_TCG_THREAD_MODE"),
        tb_size=tb_size,
        memory_backend=_optional(values, "QEMU_MEMORY_BACKEND"),
        smp_cores=_optional(values, "QEMU_SMP_CORES"),
        audio_backend=_optional(values, "QEMU_AUDIO_BACKEND"),
        audio_latency=_optional(values, "QEMU_AUDIO_LATENCY"),
        sound_device=_optional(values, "QEMU_SOUND_DEVICE"),
        asc_mode=_optional(values, "QEMU_ASC_MODE"),
        usb_enabled=values.get("QEMU_USB_ENABLED", "").strip().lower() in TRUTHY,
        bridge_name=values["BRIDGE_NAME"].strip(),
        tap_iface=_optional(values, "QEMU_TAP_IFACE"),
        mac_address=mac.lower() if mac else None,
        network_device=_optional(values, "QEMU_NETWORK_DEVICE"),
        user_smb_dir=_optional(values, "QEMU_USER_SMB_DIR"),
        values=raw,
    )
    log("DEBUG", f"Loaded {arch} configuration '{record.name}' from {path}")
    return record


def validate_network(record: ConfigRecord, mode: NetworkMode) -> None:
    """Check the knobs that only matter for the selected network mode."""
    if mode is NetworkMode.BRIDGED:
        if not record.bridge_name:
            raise MissingRequiredField(
                [("BRIDGE_NAME", "Bridge interface the tap device joins (e.g., br0)")],
                source=record.source,
            )
        if not IFACE_NAME_RE.match(record.bridge_name):
            raise InvalidFieldValue([f"BRIDGE_NAME='{record.bridge_name}' is not a valid interface name"])
        if record.tap_iface and not IFACE_NAME_RE.match(record.tap_iface):
            raise InvalidFieldValue(
                [f"QEMU_TAP_IFACE='{record.tap_iface}' is not a valid interface name (max 15 characters)"]
            )
    elif mode is NetworkMode.BUILTIN and record.user_smb_dir:
        if not Path(record.user_smb_dir).expanduser().is_dir():
            log("WARN", f"SMB directory '{record.user_smb_dir}' not found, skipping SMB share")


def resolve_display(requested: Optional[str], platform: Optional[str] = None) -> str:
    if platform is None:
        platform = sys.platform
    if requested:
        display = requested.strip().lower()
        if display not in DISPLAY_TYPES:
            raise InvalidInvocation(
                f"Unknown display type '{requested}'. Supported: {', '.join(DISPLAY_TYPES)}"
            )
        return display
    return "cocoa" if platform == "darwin" else "sdl"


def resolve_network_mode(record: ConfigRecord, requested: Optional[str]) -> NetworkMode:
    name = requested or SUPPORTED_ARCHES[record.arch]["network_mode"]
    try:
        return NetworkMode(name)
    except ValueError:
        supported = ", ".join(mode.value for mode in NetworkMode)
        raise InvalidInvocation(f"Unknown network type '{name}'. Supported: {supported}")
