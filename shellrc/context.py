"""Sample the live state a prompt is built from.

Every value here is optional except the exit status and identity. A source
that is missing, slow or broken yields ``None`` and the prompt simply drops
that segment.
"""

from __future__ import annotations

import getpass
import os
import platform
import socket
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml

from shellrc.config import PromptConfig, VcsConfig

CHROOT_FILE = Path("/etc/debian_chroot")


@dataclass(frozen=True)
class PromptContext:
    exit_status: int
    user: str
    host: str
    path: str
    is_root: bool = False
    chroot_label: str | None = None
    venv_name: str | None = None
    kube_context: str | None = None
    vcs_status: str | None = None


def run_query(args: list[str], timeout: float, cwd: str | None = None) -> str | None:
    """Run a read-only command; stdout on success, None on any failure or timeout."""
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            check=True,
            timeout=timeout,
            cwd=cwd,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
        return None
    return result.stdout


# Identity


def get_user(env: Mapping[str, str]) -> str:
    if user := env.get("USER"):
        return user
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "?"


def get_host() -> str:
    return socket.gethostname().split(".", 1)[0]


def is_root() -> bool:
    if platform.system() == "Windows":
        return False
    return os.geteuid() == 0


def abbreviate_home(path: str, home: str | None) -> str:
    """Replace a leading home directory with ``~`` the way bash's ``\\w`` does."""
    if not home or home == "/":
        return path
    home = home.rstrip("/")
    if path == home:
        return "~"
    if path.startswith(home + "/"):
        return "~" + path[len(home):]
    return path


def get_cwd(env: Mapping[str, str]) -> str:
    try:
        return str(Path.cwd())
    except FileNotFoundError:
        # Working directory was removed underneath the shell
        return env.get("PWD") or "?"


# Badges


def get_venv_name(env: Mapping[str, str]) -> str | None:
    venv = env.get("VIRTUAL_ENV", "").rstrip("/")
    if not venv:
        return None
    return os.path.basename(venv) or None


def get_chroot_label(env: Mapping[str, str], chroot_file: Path) -> str | None:
    if label := env.get("debian_chroot", "").strip():
        return label
    try:
        lines = chroot_file.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError:
        return None
    return (lines[0].strip() if lines else "") or None


def get_kube_context_kubectl(timeout: float) -> str | None:
    output = run_query(["kubectl", "config", "current-context"], timeout)
    if output is None:
        return None
    return output.strip() or None


def get_kube_context_kubeconfig(env: Mapping[str, str]) -> str | None:
    """Read ``current-context`` without starting kubectl.

    Mirrors kubectl's lookup: the first file in ``$KUBECONFIG`` that sets a
    current context wins; ``~/.kube/config`` is used only when the variable is
    unset.
    """
    if kubeconfig := env.get("KUBECONFIG"):
        candidates = [Path(p).expanduser() for p in kubeconfig.split(os.pathsep) if p]
    else:
        home = env.get("HOME") or str(Path.home())
        candidates = [Path(home) / ".kube" / "config"]

    for candidate in candidates:
        try:
            with candidate.open(encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, UnicodeDecodeError, yaml.YAMLError):
            continue
        if not isinstance(data, dict):
            continue
        current = data.get("current-context")
        if isinstance(current, str) and current.strip():
            return current.strip()
    return None


# Version control


def parse_git_status(output: str, has_stash: bool, options: VcsConfig) -> str | None:
    """Format ``git status --porcelain=v2 --branch`` output like ``__git_ps1``."""
    oid = head = None
    ahead = behind = 0
    has_upstream = False
    staged = unstaged = untracked = False

    for line in output.splitlines():
        if line.startswith("# branch.oid "):
            oid = line[len("# branch.oid "):]
        elif line.startswith("# branch.head "):
            head = line[len("# branch.head "):]
        elif line.startswith("# branch.upstream "):
            has_upstream = True
        elif line.startswith("# branch.ab "):
            for part in line[len("# branch.ab "):].split():
                if part.startswith("+"):
                    ahead = int(part[1:])
                elif part.startswith("-"):
                    behind = int(part[1:])
        elif line.startswith(("1 ", "2 ")):
            xy = line[2:4]
            staged = staged or xy[0] != "."
            unstaged = unstaged or xy[1] != "."
        elif line.startswith("u "):
            unstaged = True
        elif line.startswith("? "):
            untracked = True

    if head is None:
        return None
    if head == "(detached)":
        if not oid or oid == "(initial)":
            return None
        name = f"({oid[:7]}...)"
    else:
        name = head

    flags = ""
    if options.show_dirty:
        flags += "*" if unstaged else ""
        flags += "+" if staged else ""
    if options.show_stash and has_stash:
        flags += "$"
    if options.show_untracked and untracked:
        flags += "%"

    upstream = ""
    if options.show_upstream and has_upstream:
        if ahead and behind:
            upstream = "<>"
        elif ahead:
            upstream = ">"
        elif behind:
            upstream = "<"
        else:
            upstream = "="

    return f"{name}{' ' + flags if flags else ''}{upstream}"


def get_vcs_status(cwd: str, timeout: float, options: VcsConfig) -> str | None:
    # Optional locks off: a plain status refreshes .git/index under index.lock
    args = ["git", "--no-optional-locks", "status", "--porcelain=v2", "--branch"]
    if not options.show_untracked:
        args.append("--untracked-files=no")
    output = run_query(args, timeout, cwd=cwd)
    if output is None:
        return None

    has_stash = False
    if options.show_stash:
        stash = run_query(
            ["git", "--no-optional-locks", "rev-parse", "--verify", "--quiet", "refs/stash"],
            timeout,
            cwd=cwd,
        )
        has_stash = stash is not None

    return parse_git_status(output, has_stash, options)


def sample_context(
    exit_status: int,
    config: PromptConfig,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    chroot_file: Path | None = None,
) -> PromptContext:
    """Gather a fresh PromptContext. Never raises for an unavailable source."""
    env = os.environ if env is None else env
    cwd = get_cwd(env) if cwd is None else cwd
    chroot_file = CHROOT_FILE if chroot_file is None else chroot_file

    kube_context = None
    if config.show_kube:
        if config.kube_source == "kubeconfig":
            kube_context = get_kube_context_kubeconfig(env)
        else:
            kube_context = get_kube_context_kubectl(config.query_timeout)

    vcs_status = None
    if config.show_vcs and os.path.isdir(cwd):
        vcs_status = get_vcs_status(cwd, config.query_timeout, config.vcs)

    return PromptContext(
        exit_status=exit_status,
        user=get_user(env),
        host=get_host(),
        path=abbreviate_home(cwd, env.get("HOME")),
        is_root=is_root(),
        chroot_label=get_chroot_label(env, chroot_file),
        venv_name=get_venv_name(env) if config.show_venv else None,
        kube_context=kube_context,
        vcs_status=vcs_status,
    )
