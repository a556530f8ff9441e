"""Emulator process supervision for emu-launcher."""

from __future__ import annotations

import signal
import subprocess
from contextlib import contextmanager
from typing import Callable, Iterator, List, Sequence

from emu_launcher.constants import PROCESS_STOP_TIMEOUT
from emu_launcher.exceptions import LaunchError, SessionInterrupted
from emu_launcher.utils import format_command, log


def normalize_returncode(returncode: int) -> int:
    """Map Popen's negative 'killed by signal' codes to the shell convention."""
    if returncode < 0:
        return 128 + (-returncode)
    return returncode


_INTERRUPT_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)


# Signals already turned into SessionInterrupted by any active scope; nested
# scopes share it so one interrupt raises exactly once.
_received: List[int] = []
_depth = [0]


@contextmanager
def interrupt_on_signals(context: str) -> Iterator[None]:
    """Turn SIGTERM/SIGHUP into SessionInterrupted for the duration of the block.

    Only the first signal raises; later ones are logged so that cleanup
    running in the caller's ``finally`` is not cut short. Previous handlers
    are restored on exit.
    """

    def _interrupt(signum, frame):
        if _received:
            log("WARN", f"Received signal {signum} again; still cleaning up")
            return
        _received.append(signum)
        raise SessionInterrupted(f"Received signal {signum} {context}")

    previous = {signum: signal.signal(signum, _interrupt) for signum in _INTERRUPT_SIGNALS}
    _depth[0] += 1
    try:
        yield
    finally:
        _depth[0] -= 1
        if not _depth[0]:
            _received.clear()
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def stop(proc: subprocess.Popen, name: str) -> None:
    if proc.poll() is not None:
        return
    log("INFO", f"Stopping {name}")
    proc.terminate()
    try:
        proc.wait(timeout=PROCESS_STOP_TIMEOUT)
    except subprocess.TimeoutExpired:
        log("WARN", f"{name} did not exit after SIGTERM; killing it")
        proc.kill()
        proc.wait()


def run(
    executable: str,
    argv: Sequence[str],
    popen: Callable[..., subprocess.Popen] = subprocess.Popen,
) -> int:
    """Launch the emulator, stream its output through and return its exit code.

    Releasing session resources is the caller's job. A SIGTERM or SIGHUP
    delivered while waiting stops the emulator and is raised as
    SessionInterrupted so the caller's cleanup runs.
    """
    cmd = [executable, *argv]
    log("INFO", f"Starting {executable}")
    log("DEBUG", f"Command: {format_command(cmd)}")
    try:
        proc = popen(cmd)
    except FileNotFoundError:
        raise LaunchError(
            f"Emulator executable not found: {executable}\n"
            "  Possible fixes:\n"
            f"    - Install QEMU with {executable} support\n"
            "    - Make sure it is on PATH"
        )
    except PermissionError:
        raise LaunchError(f"Permission denied executing {executable}")
    except OSError as exc:
        raise LaunchError(f"Failed to start {executable}: {exc}")

    try:
        with interrupt_on_signals(f"while {executable} was running"):
            returncode = normalize_returncode(proc.wait())
    except SessionInterrupted:
        stop(proc, executable)
        raise

    if returncode != 0:
        log("WARN", f"{executable} exited with status {returncode}")
    else:
        log("INFO", f"{executable} exited normally")
    return returncode
