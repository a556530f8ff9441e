"""CLI entry points for emu-launcher."""

from __future__ import annotations

import argparse
import dataclasses
import sys
import traceback
from pathlib import Path
from typing import Dict, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from emu_launcher import bootorder, config, session
from emu_launcher.constants import DISPLAY_TYPES, EXIT_CODES, NETWORK_TYPES, SUPPORTED_ARCHES
from emu_launcher.exceptions import LauncherError, SessionInterrupted
from emu_launcher.models import ConfigRecord, LaunchOverrides, NetworkMode
from emu_launcher.utils import format_command, log, set_verbose


def _plain(value: object) -> object:
    if isinstance(value, Path):
        return str(value)
    return value


def show_config(record: ConfigRecord) -> None:
    """Print the resolved configuration record as YAML."""
    data: Dict[str, object] = {}
    for field in dataclasses.fields(record):
        if field.name == "values":
            continue
        data[field.name] = _plain(getattr(record, field.name))
    print(yaml.safe_dump(data, sort_keys=False, default_flow_style=False), end="", flush=True)


def decode_pram(path: Path, arch: str = "m68k") -> None:
    """Print the boot field of a PRAM file and a hex dump of its contents."""
    info = bootorder.describe(path, arch)
    summary = {key: value for key, value in info.items() if key != "dump"}
    print(yaml.safe_dump(summary, sort_keys=False), end="", flush=True)
    for line in info["dump"]:
        print(line, flush=True)


def print_startup_banner(record: ConfigRecord, mode: NetworkMode, overrides: LaunchOverrides) -> None:
    """Print a short summary of the session about to start."""
    lines: List[str] = []
    lines.append(f"  Config: {record.name} ({record.source})")
    lines.append(f"  Arch: {record.arch} | Machine: {record.machine} | RAM: {record.ram} MB")
    lines.append(f"  HDD: {record.hdd} | Shared: {record.shared_hdd}")
    for extra in overrides.extra_disks:
        lines.append(f"  Extra disk: {extra}")
    if overrides.removable is not None:
        lines.append(f"  CD-ROM: {overrides.removable}")
    lines.append(f"  Boot: {overrides.boot_target.value} | Display: {overrides.display} | Network: {mode.value}")

    max_len = max(len(line) for line in lines)
    border_len = max_len + 2
    banner_colour = "\033[0;36m"
    reset = "\033[0m"
    print(f"{banner_colour}{'=' * border_len}{reset}", flush=True)
    for line in lines:
        print(f"{banner_colour}{line}{reset}", flush=True)
    print(f"{banner_colour}{'=' * border_len}{reset}", flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="emu-launcher",
        description="Launch classic Macintosh QEMU sessions from a configuration file",
        epilog="Arguments after '--' are passed to QEMU unchanged.",
    )
    parser.add_argument("config", nargs="?", help="Configuration file (.conf or .yaml)")
    parser.add_argument("-c", "--cdrom", metavar="IMAGE", help="Attach a CD-ROM image")
    parser.add_argument(
        "-a",
        "--add-disk",
        metavar="IMAGE",
        action="append",
        default=[],
        help="Attach an additional hard disk image (created if missing, repeatable)",
    )
    parser.add_argument("-b", "--boot-cdrom", action="store_true", help="Boot from the CD-ROM given with -c")
    parser.add_argument(
        "-d",
        "--display",
        metavar="TYPE",
        help=f"Display type ({', '.join(DISPLAY_TYPES)}); default: cocoa on macOS, sdl elsewhere",
    )
    parser.add_argument(
        "-N",
        "--network",
        choices=NETWORK_TYPES,
        help="Network type; default: "
        + ", ".join(f"{arch}={profile['network_mode']}" for arch, profile in SUPPORTED_ARCHES.items()),
    )
    parser.add_argument("-D", "--debug", action="store_true", help="Show PRAM and command, pause before launch")
    parser.add_argument("--dry-run", action="store_true", help="Validate and print the QEMU command without running it")
    parser.add_argument("--show-config", action="store_true", help="Show the resolved configuration and exit")
    parser.add_argument("--decode-pram", metavar="PRAM", help="Decode the boot device stored in a PRAM file and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    extra_args: List[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, extra_args = argv[:split], argv[split + 1:]

    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        set_verbose(True)

    try:
        if args.decode_pram:
            decode_pram(Path(args.decode_pram))
            return 0
        if not args.config:
            parser.error("a configuration file is required")

        record = config.load(args.config)
        if args.show_config:
            show_config(record)
            return 0

        mode = config.resolve_network_mode(record, args.network)
        overrides = LaunchOverrides(
            removable=Path(args.cdrom).expanduser() if args.cdrom else None,
            extra_disks=tuple(Path(path).expanduser() for path in args.add_disk),
            boot_from_removable=args.boot_cdrom,
            display=config.resolve_display(args.display),
            extra_args=tuple(extra_args),
        )

        if args.dry_run:
            plan = session.preview(record, mode, overrides)
            log("INFO", "=== Dry-run complete (no emulator started) ===")
            print(format_command(list(plan.command())), flush=True)
            return 0

        print_startup_banner(record, mode, overrides)
        return session.run_session(record, mode, overrides, debug=args.debug)
    except SessionInterrupted as exc:
        log("WARN", str(exc))
        return exc.exit_code
    except LauncherError as exc:
        log("ERROR", str(exc))
        return exc.exit_code
    except KeyboardInterrupt:
        log("WARN", "Interrupted")
        return EXIT_CODES["interrupted"]
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        log("ERROR", "This is likely a bug. Please report it with the command line you used.")
        traceback.print_exc()
        return EXIT_CODES["generic"]
