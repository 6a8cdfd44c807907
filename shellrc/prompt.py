"""Render a PromptContext into the prompt string."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from shellrc.config import PromptConfig, color_sequence
from shellrc.context import PromptContext

RESET = "\033[0m"


class EscapeStyle(str, Enum):
    PLAIN = "plain"
    BASH = "bash"
    ZSH = "zsh"


@dataclass(frozen=True)
class Palette:
    venv: str = "\033[0;35m"
    kube: str = "\033[0;34m"
    identity: str = "\033[01;32m"
    path: str = "\033[01;36m"
    vcs: str = "\033[01;33m"
    ok: str = RESET
    error: str = "\033[01;31m"

    @classmethod
    def from_config(cls, config: PromptConfig) -> Palette:
        return cls(**{key: color_sequence(name) for key, name in config.colors.items()})


class PromptComposer:
    """Compose badges, identity, VCS status and the status glyph.

    ``render`` is pure: the same context always yields the same string, and a
    missing optional field only removes its segment.
    """

    def __init__(self, palette: Palette | None = None, style: EscapeStyle = EscapeStyle.PLAIN):
        self.palette = palette or Palette()
        self.style = EscapeStyle(style)

    def _color(self, sequence: str) -> str:
        if self.style is EscapeStyle.BASH:
            # readline RL_PROMPT_START_IGNORE / RL_PROMPT_END_IGNORE
            return f"\001{sequence}\002"
        if self.style is EscapeStyle.ZSH:
            return f"%{{{sequence}%}}"
        return sequence

    def _text(self, text: str) -> str:
        if self.style is EscapeStyle.ZSH:
            return text.replace("%", "%%")
        return text

    def _paint(self, sequence: str, text: str) -> str:
        return f"{self._color(sequence)}{self._text(text)}{self._color(RESET)}"

    def _badge(self, label: str, value: str | None, sequence: str) -> str:
        if not value:
            return ""
        return self._paint(sequence, f"({label}:{value})") + " "

    def render(self, context: PromptContext) -> str:
        p = self.palette
        parts = [
            self._badge("venv", context.venv_name, p.venv),
            self._badge("k8s", context.kube_context, p.kube),
        ]

        if context.chroot_label:
            parts.append(self._text(f"({context.chroot_label})"))
        parts.append(self._paint(p.identity, f"{context.user}@{context.host}"))
        parts.append(":")
        parts.append(self._paint(p.path, context.path))

        if context.vcs_status:
            parts.append(self._paint(p.vcs, f" ({context.vcs_status})"))

        glyph = "#" if context.is_root else "$"
        status_color = p.ok if context.exit_status == 0 else p.error
        parts.append("\n")
        parts.append(self._paint(status_color, glyph))
        parts.append(" ")
        return "".join(parts)
