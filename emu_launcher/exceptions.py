"""Custom exceptions for emu-launcher."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from emu_launcher.constants import EXIT_CODES


class LauncherError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""

    kind = "generic"

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.kind]


class SchemaError(LauncherError):
    """The configuration unit does not satisfy its architecture schema."""

    kind = "schema"


class UnknownArchitecture(SchemaError):
    def __init__(self, arch: Optional[str], supported: Iterable[str]) -> None:
        self.arch = arch
        self.supported = sorted(supported)
        shown = f"'{arch}'" if arch else "(not set)"
        super().__init__(
            f"Unknown architecture {shown}.\n"
            f"  Supported values for ARCH: {', '.join(self.supported)}\n"
            f"  Possible fixes:\n"
            f"    - Add ARCH=\"{self.supported[0]}\" (or another supported value) to the config file"
        )


class MissingRequiredField(SchemaError):
    """One or more required fields are absent or empty; all are reported at once."""

    def __init__(self, fields: List[Tuple[str, str]], source: Optional[Path] = None) -> None:
        self.fields = list(fields)
        lines = "\n".join(f"    - {name}: {description}" for name, description in self.fields)
        where = f" in {source}" if source else ""
        super().__init__(f"Missing required configuration{where}:\n{lines}")

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.fields]


class InvalidFieldValue(SchemaError):
    """One or more present fields hold values outside their allowed set."""

    def __init__(self, problems: List[str]) -> None:
        self.problems = list(problems)
        lines = "\n".join(f"    - {problem}" for problem in self.problems)
        super().__init__(f"Invalid configuration values:\n{lines}")


class ResourceNotFound(LauncherError):
    kind = "not_found"

    def __init__(self, path: Union[str, Path], what: str = "File", hint: Optional[str] = None) -> None:
        self.path = Path(path)
        message = f"{what} not found: {self.path}"
        if hint:
            message += f"\n  Possible fixes:\n    - {hint}"
        super().__init__(message)


class ProvisionError(LauncherError):
    kind = "provision"

    def __init__(self, path: Union[str, Path], cause: object) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Failed to provision {self.path}: {cause}")


class CodecError(LauncherError):
    kind = "codec"


class NetworkSetupError(LauncherError):
    kind = "network"


class LaunchError(LauncherError):
    kind = "launch"


class InvalidInvocation(LauncherError):
    kind = "invocation"


class SessionInterrupted(LauncherError):
    """Raised when the session receives SIGTERM while waiting on the emulator."""

    kind = "interrupted"
