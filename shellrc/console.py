"""Colored status output."""

from __future__ import annotations

import sys

GREEN = "\033[0;32m"
CYAN = "\033[0;36m"
YELLOW = "\033[0;33m"
RED = "\033[0;31m"
RESET = "\033[0m"


def log(msg: str, success: bool = False) -> None:
    prefix = f"{GREEN}✓ " if success else f"{CYAN}→ "
    print(f"{prefix}{msg}{RESET}")


def warn(msg: str) -> None:
    print(f"{YELLOW}WARNING: {msg}{RESET}", file=sys.stderr)


def error(msg: str) -> None:
    print(f"{RED}ERROR: {msg}{RESET}", file=sys.stderr)
