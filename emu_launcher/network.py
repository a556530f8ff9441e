"""Host-side network resources (bridge + tap, passt daemon) for emu-launcher."""

from __future__ import annotations

import getpass
import os
import shutil
import subprocess
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from emu_launcher.constants import (
    IFNAMSIZ,
    PASST_BINARY,
    PASST_SOCKET_NAME,
    PASST_STARTUP_TIMEOUT,
    SUPPORTED_ARCHES,
)
from emu_launcher.exceptions import NetworkSetupError
from emu_launcher.models import ConfigRecord, NetworkMode, NetworkResource
from emu_launcher.supervisor import stop
from emu_launcher.utils import (
    deterministic_mac,
    get_env,
    get_env_bool,
    log,
    run,
    sanitize_name,
    short_digest,
    wait_for_path,
)

Runner = Callable[..., subprocess.CompletedProcess]


def tap_name_for(record: ConfigRecord) -> str:
    """Deterministic tap interface name for a configuration."""
    if record.tap_iface:
        return record.tap_iface
    base = sanitize_name(record.name) or "session"
    candidate = f"tap_{base}"
    if len(candidate) <= IFNAMSIZ:
        return candidate
    # Keep it recognisable but unique across long, similar config names.
    return f"tap_{base[:6]}_{short_digest(record.name)}"


def mac_address_for(record: ConfigRecord) -> str:
    return record.mac_address or deterministic_mac(record.name)


def nic_model_for(record: ConfigRecord) -> str:
    return record.network_device or SUPPORTED_ARCHES[record.arch]["nic_model"]


def _default_use_sudo() -> bool:
    if (get_env("EMU_LAUNCHER_SUDO") or "").strip():
        return get_env_bool("EMU_LAUNCHER_SUDO")
    return os.geteuid() != 0


class IpRoute:
    """Thin wrapper over the iproute2 commands needed for tap networking."""

    def __init__(self, runner: Runner = run, use_sudo: Optional[bool] = None) -> None:
        self.runner = runner
        self.use_sudo = _default_use_sudo() if use_sudo is None else use_sudo

    def _exec(self, args: List[str], check: bool = True, privileged: bool = True) -> subprocess.CompletedProcess:
        cmd = ["ip", *args]
        if privileged and self.use_sudo:
            cmd = ["sudo", *cmd]
        try:
            result = self.runner(cmd, check=False, capture_output=True)
        except FileNotFoundError as exc:
            raise NetworkSetupError(
                f"Cannot run '{cmd[0]}': {exc}\n"
                "  Possible fixes:\n"
                "    - Install iproute2 (and sudo when not running as root)"
            )
        if check and result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise NetworkSetupError(f"'{' '.join(cmd)}' failed (code {result.returncode}): {stderr}")
        return result

    def exists(self, name: str) -> bool:
        return self._exec(["link", "show", "dev", name], check=False, privileged=False).returncode == 0

    def add_bridge(self, name: str) -> None:
        self._exec(["link", "add", "name", name, "type", "bridge"])

    def add_tap(self, name: str, user: str) -> None:
        self._exec(["tuntap", "add", "dev", name, "mode", "tap", "user", user])

    def set_master(self, name: str, bridge: str) -> None:
        self._exec(["link", "set", "dev", name, "master", bridge])

    def set_up(self, name: str) -> None:
        self._exec(["link", "set", "dev", name, "up"])

    def try_nomaster(self, name: str) -> bool:
        return self._exec(["link", "set", "dev", name, "nomaster"], check=False).returncode == 0

    def try_down(self, name: str) -> bool:
        return self._exec(["link", "set", "dev", name, "down"], check=False).returncode == 0

    def try_delete_tap(self, name: str) -> bool:
        return self._exec(["tuntap", "del", "dev", name, "mode", "tap"], check=False).returncode == 0


class NetworkManager:
    """Base class: one instance owns the network resource of one session."""

    mode: NetworkMode

    def __init__(self, record: ConfigRecord) -> None:
        self.record = record
        self.resource: Optional[NetworkResource] = None
        self.state = "unallocated"

    def acquire(self) -> NetworkResource:
        raise NotImplementedError

    def release(self) -> None:
        raise NotImplementedError

    def _base_resource(self, **kwargs) -> NetworkResource:
        return NetworkResource(
            mode=self.mode,
            nic_model=nic_model_for(self.record),
            mac_address=mac_address_for(self.record),
            **kwargs,
        )


class BuiltinNetwork(NetworkManager):
    """QEMU user-mode networking: nothing to create on the host."""

    mode = NetworkMode.BUILTIN

    def acquire(self) -> NetworkResource:
        smb_dir = None
        if self.record.user_smb_dir:
            candidate = Path(self.record.user_smb_dir).expanduser()
            if candidate.is_dir():
                smb_dir = str(candidate)
        self.resource = self._base_resource(smb_dir=smb_dir)
        self.state = "ready"
        log("INFO", "Network: user mode (no host resources)")
        return self.resource

    def release(self) -> None:
        self.state = "unallocated"


class BridgedNetwork(NetworkManager):
    """Tap interface attached to a persistent host bridge."""

    mode = NetworkMode.BRIDGED

    def __init__(self, record: ConfigRecord, ip: Optional[IpRoute] = None) -> None:
        super().__init__(record)
        self.ip = ip or IpRoute()
        self.tap_name = tap_name_for(record)
        self.bridge_name = record.bridge_name or ""

    def _ensure_bridge(self) -> None:
        if not self.ip.exists(self.bridge_name):
            log("INFO", f"Creating bridge {self.bridge_name}")
            try:
                self.ip.add_bridge(self.bridge_name)
            except NetworkSetupError as exc:
                raise NetworkSetupError(
                    f"{exc}\n"
                    "  Possible fixes:\n"
                    f"    - Create the bridge manually: sudo ip link add name {self.bridge_name} type bridge\n"
                    "    - Or use -N user for user-mode networking"
                )
        self.ip.set_up(self.bridge_name)

    def _reset_interface(self) -> None:
        log("WARN", f"Interface {self.tap_name} already exists (previous session?); resetting it")
        self.ip.try_nomaster(self.tap_name)
        self.ip.try_down(self.tap_name)
        self.ip.try_delete_tap(self.tap_name)
        if self.ip.exists(self.tap_name):
            raise NetworkSetupError(
                f"Stale interface {self.tap_name} could not be removed.\n"
                "  Possible fixes:\n"
                f"    - Remove it manually: sudo ip link delete {self.tap_name}\n"
                "    - Set QEMU_TAP_IFACE to a different name"
            )

    def acquire(self) -> NetworkResource:
        try:
            self._ensure_bridge()
            self.state = "bridge-ensured"
            if self.ip.exists(self.tap_name):
                self._reset_interface()
            self.ip.add_tap(self.tap_name, getpass.getuser())
            self.state = "interface-created"
            self.ip.set_master(self.tap_name, self.bridge_name)
            self.state = "attached"
            self.ip.set_up(self.tap_name)
            self.state = "up"
        except BaseException:
            self.release()
            raise
        self.resource = self._base_resource(tap_name=self.tap_name, bridge_name=self.bridge_name)
        log("SUCCESS", f"Network: tap {self.tap_name} on bridge {self.bridge_name}, MAC {self.resource.mac_address}")
        return self.resource

    def release(self) -> None:
        if self.state in {"interface-created", "attached", "up"}:
            log("INFO", f"Removing tap interface {self.tap_name}")
            if self.state in {"attached", "up"} and not self.ip.try_nomaster(self.tap_name):
                log("WARN", f"Failed to detach {self.tap_name} from {self.bridge_name}")
            if not self.ip.try_down(self.tap_name):
                log("WARN", f"Failed to bring down {self.tap_name}")
            if not self.ip.try_delete_tap(self.tap_name):
                log("WARN", f"Failed to delete {self.tap_name}; remove it with: sudo ip tuntap del dev {self.tap_name} mode tap")
        self.state = "unallocated"


class DaemonNetwork(NetworkManager):
    """passt userspace networking bound to a per-session UNIX socket."""

    mode = NetworkMode.DAEMON

    def __init__(
        self,
        record: ConfigRecord,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        timeout: float = PASST_STARTUP_TIMEOUT,
    ) -> None:
        super().__init__(record)
        self.popen = popen
        self.timeout = timeout
        self.process: Optional[subprocess.Popen] = None
        self.session_dir: Optional[Path] = None

    def _log_path(self) -> Optional[Path]:
        return self.session_dir / "passt.log" if self.session_dir else None

    def _startup_failure(self, reason: str) -> NetworkSetupError:
        details = ""
        log_path = self._log_path()
        if log_path and log_path.exists():
            output = log_path.read_text(errors="replace").strip()
            if output:
                details = f"\n  passt output:\n{output}"
        return NetworkSetupError(f"passt {reason}{details}")

    def _wait_for_socket(self, socket_path: Path) -> None:
        assert self.process is not None
        deadline = time.time() + self.timeout
        while True:
            remaining = max(deadline - time.time(), 0.0)
            if wait_for_path(socket_path, timeout=min(remaining, 0.5)) or socket_path.exists():
                return
            if self.process.poll() is not None:
                raise self._startup_failure(f"exited prematurely (code {self.process.returncode})")
            if remaining == 0.0:
                break
        raise self._startup_failure(f"socket {socket_path} did not appear within {self.timeout:.0f}s")

    def acquire(self) -> NetworkResource:
        binary = shutil.which(PASST_BINARY)
        if binary is None:
            raise NetworkSetupError(
                "passt is not installed.\n"
                "  Possible fixes:\n"
                "    - Install the passt package\n"
                "    - Or use -N user (built-in) or -N tap networking"
            )
        try:
            self.session_dir = Path(tempfile.mkdtemp(prefix="qemu-passt-"))
            self.state = "dir-created"
            socket_path = self.session_dir / PASST_SOCKET_NAME
            cmd = [binary, "--foreground", "--socket", str(socket_path)]
            log("DEBUG", f"Running: {' '.join(cmd)}")
            with open(self.session_dir / "passt.log", "wb") as output:
                self.process = self.popen(cmd, stdout=output, stderr=subprocess.STDOUT)
            self.state = "daemon-started"
            self._wait_for_socket(socket_path)
            self.state = "socket-ready"
        except OSError as exc:
            self.release()
            raise NetworkSetupError(f"Failed to start passt: {exc}")
        except BaseException:
            self.release()
            raise
        self.resource = self._base_resource(socket_path=socket_path, session_dir=self.session_dir)
        log("SUCCESS", f"Network: passt listening on {socket_path}")
        return self.resource

    def release(self) -> None:
        if self.process is not None:
            stop(self.process, "passt")
        self.process = None
        if self.session_dir is not None:
            shutil.rmtree(self.session_dir, ignore_errors=True)
            if self.session_dir.exists():
                log("WARN", f"Failed to remove passt session directory {self.session_dir}")
            self.session_dir = None
        self.state = "unallocated"


def create_network(record: ConfigRecord, mode: NetworkMode, **kwargs) -> NetworkManager:
    if mode is NetworkMode.BRIDGED:
        return BridgedNetwork(record, **kwargs)
    if mode is NetworkMode.DAEMON:
        return DaemonNetwork(record, **kwargs)
    return BuiltinNetwork(record)


def preview_resource(record: ConfigRecord, mode: NetworkMode) -> NetworkResource:
    """Describe the resource a session would acquire, without creating it."""
    kwargs = {}
    if mode is NetworkMode.BRIDGED:
        kwargs = {"tap_name": tap_name_for(record), "bridge_name": record.bridge_name}
    elif mode is NetworkMode.DAEMON:
        session_dir = Path(tempfile.gettempdir()) / "qemu-passt-XXXXXX"
        kwargs = {"socket_path": session_dir / PASST_SOCKET_NAME, "session_dir": session_dir}
    elif record.user_smb_dir:
        kwargs = {"smb_dir": record.user_smb_dir}
    return NetworkResource(
        mode=mode,
        nic_model=nic_model_for(record),
        mac_address=mac_address_for(record),
        **kwargs,
    )


@contextmanager
def network_session(manager: NetworkManager) -> Iterator[NetworkResource]:
    """Acquire a network resource and release it on every exit path."""
    try:
        yield manager.acquire()
    finally:
        manager.release()
