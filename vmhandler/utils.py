"""Path helpers for locating the handler's working and data folders."""

from __future__ import annotations

import os
import sys

AGENT_DIR = "/var/lib/waagent"


def current_process_working_dir(argv0: str | None = None) -> str:
    """Return the absolute directory holding the running program."""
    program = sys.argv[0] if argv0 is None else argv0
    return os.path.dirname(os.path.abspath(program))


def _join_slash(*parts: str) -> str:
    return "/".join(part.rstrip("/") for part in parts if part)


def data_folder(name: str, version: str, platform: str | None = None) -> str:
    """Return the folder the agent uses as the extension's data directory."""
    platform = sys.platform if platform is None else platform
    if platform.startswith("win"):
        system_drive = os.environ.get("SystemDrive", "")
        return _join_slash(system_drive, "Packages\\Plugins", name, version, "Downloads")
    return _join_slash(AGENT_DIR, name)