"""Allow ``python -m emu_launcher``."""

from emu_launcher import cli

if __name__ == "__main__":
    raise SystemExit(cli.main())
