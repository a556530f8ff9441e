"""End-to-end launch flow for one emulator session."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from emu_launcher import bootorder, command, config, storage, supervisor
from emu_launcher.exceptions import ResourceNotFound
from emu_launcher.models import ConfigRecord, LaunchOverrides, LaunchPlan, NetworkMode
from emu_launcher.network import NetworkManager, create_network, network_session, preview_resource
from emu_launcher.supervisor import interrupt_on_signals
from emu_launcher.utils import format_command, has_controlling_tty, log


def check_overrides(overrides: LaunchOverrides) -> None:
    if overrides.removable is not None and not Path(overrides.removable).is_file():
        raise ResourceNotFound(
            overrides.removable,
            what="CD-ROM image",
            hint="Check the path passed with -c",
        )
    if overrides.boot_from_removable and overrides.removable is None:
        log("WARN", "-b specified but no CD image provided with -c; booting from the hard disk")


def preview(record: ConfigRecord, mode: NetworkMode, overrides: LaunchOverrides) -> LaunchPlan:
    """Build the launch plan without touching disks, PRAM or host networking."""
    check_overrides(overrides)
    config.validate_network(record, mode)
    return command.build(record, preview_resource(record, mode), overrides)


def debug_pause(record: ConfigRecord, plan: LaunchPlan, prompt: Optional[Callable[[str], str]] = None) -> None:
    """Show the PRAM boot field and the command, then wait for the operator."""
    if record.pram is not None and bootorder.uses_pram_boot(record.arch):
        info = bootorder.describe(record.pram, record.arch)
        log("INFO", f"PRAM {info['path']}: {info['offset']} = {info['raw']} -> {info['summary']}")
        for line in info["dump"]:
            print(f"  {line}", flush=True)
    log("INFO", f"Command: {format_command(list(plan.command()))}")
    if has_controlling_tty():
        (prompt or input)("Press Enter to launch the emulator (Ctrl+C to abort)... ")
    else:
        log("WARN", "No TTY attached; not pausing before launch")


def run_session(
    record: ConfigRecord,
    mode: NetworkMode,
    overrides: LaunchOverrides,
    debug: bool = False,
    manager: Optional[NetworkManager] = None,
    launcher: Callable[..., int] = supervisor.run,
) -> int:
    """Prepare resources, launch the emulator and always release the network."""
    check_overrides(overrides)
    config.validate_network(record, mode)

    storage.ensure(record, overrides.extra_disks)
    if record.pram is not None and bootorder.uses_pram_boot(record.arch):
        bootorder.patch(record.pram, overrides.boot_target, record.arch)

    if manager is None:
        manager = create_network(record, mode)
    # Installed before acquire: a SIGTERM at any later point still releases.
    with interrupt_on_signals(f"during session {record.name}"), network_session(manager) as resource:
        plan = command.build(record, resource, overrides)
        if debug:
            debug_pause(record, plan)
        log("INFO", f"Configuration: {record.name} ({record.arch}, {record.machine}, {record.ram} MB)")
        return launcher(plan.executable, plan.argv)
