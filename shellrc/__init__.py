"""Informational multi-segment shell prompt and the profile that installs it."""

from __future__ import annotations

__version__ = "0.1.0"
