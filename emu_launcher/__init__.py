"""emu-launcher package."""

__all__ = [
    "bootorder",
    "cli",
    "command",
    "config",
    "constants",
    "exceptions",
    "models",
    "network",
    "session",
    "storage",
    "supervisor",
    "utils",
]
