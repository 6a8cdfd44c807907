"""Host diagnostics: collaborators, shell detection and config validity."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

import psutil

from shellrc.config import ConfigError, default_config_path, load_config
from shellrc.console import error, log, warn
from shellrc.context import run_query
from shellrc.profile import SHELLS, START_MARKER, rc_path


def detect_shell(pid: int | None = None) -> str | None:
    """Name of the shell that launched us (``bash``/``zsh``), from the parent process."""
    try:
        parent = psutil.Process(os.getppid() if pid is None else pid)
        name = parent.name()
    except (psutil.Error, OSError):
        return None
    # Login shells show up as "-bash"
    name = name.lstrip("-")
    return name if name in SHELLS else None


@dataclass
class ToolInfo:
    name: str
    path: str | None
    version: str | None


def get_tool_info(name: str, version_args: list[str], timeout: float = 2.0) -> ToolInfo:
    path = shutil.which(name)
    version = None
    if path:
        output = run_query([name, *version_args], timeout)
        if output:
            version = output.strip().splitlines()[0]
    return ToolInfo(name=name, path=path, version=version)


def run_doctor(home: Path, config_path: Path | None = None) -> bool:
    log("Checking prompt collaborators...")
    tools = [
        get_tool_info("git", ["--version"]),
        get_tool_info("kubectl", ["version", "--client"]),
    ]
    for tool in tools:
        if tool.path:
            log(f"{tool.name}: {tool.version or tool.path}", success=True)
        else:
            warn(f"{tool.name} not found (its prompt segment will be omitted)")

    shell = detect_shell()
    if shell:
        log(f"Shell: {shell}", success=True)
    else:
        warn("Could not detect a supported shell (bash, zsh)")

    config_path = default_config_path() if config_path is None else config_path
    log(f"Validating {config_path}...")
    failed = False
    try:
        load_config(config_path)
        if config_path.exists():
            log(f"{config_path.name}: Valid", success=True)
        else:
            log("No user config, using defaults", success=True)
    except ConfigError as e:
        error(str(e))
        failed = True

    for name in [shell] if shell else SHELLS:
        rc_file = rc_path(name, home)
        content = rc_file.read_text(encoding="utf-8", errors="replace") if rc_file.exists() else ""
        if START_MARKER in content:
            log(f"{rc_file.name}: prompt hook enabled", success=True)
        else:
            warn(f"{rc_file.name}: prompt hook not enabled (run `shellrc init`)")

    return not failed
