"""YAML configuration: built-in defaults merged with an optional user file."""

from __future__ import annotations

import copy
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from shellrc.console import warn

KUBE_SOURCES = ("kubectl", "kubeconfig")

ANSI_CODES = {
    "black": "30",
    "red": "31",
    "green": "32",
    "yellow": "33",
    "blue": "34",
    "magenta": "35",
    "cyan": "36",
    "white": "37",
}

DEFAULTS: dict[str, Any] = {
    "prompt": {
        "show_venv": True,
        "show_kube": True,
        "show_vcs": True,
        "kube_source": "kubectl",
        "query_timeout": 0.5,
        "vcs": {
            "show_dirty": True,
            "show_stash": True,
            "show_untracked": True,
            "show_upstream": True,
        },
        "colors": {
            "venv": "magenta",
            "kube": "blue",
            "identity": "bold-green",
            "path": "bold-cyan",
            "vcs": "bold-yellow",
            "ok": "reset",
            "error": "bold-red",
        },
    },
    "history": {
        "size": 10000,
        "file_size": 20000,
        "control": "ignoredups:erasedups",
        "file": None,
    },
    "completion": {
        "ignore_case": True,
        "show_all_if_ambiguous": True,
        "colored_stats": True,
        "history_search": True,
    },
}

STARTER_CONFIG = """\
# shellrc user configuration (merged over the built-in defaults)
# Run `shellrc config` to see the effective settings.

prompt:
  # kube_source: kubectl      # or "kubeconfig" to read the file directly
  # query_timeout: 0.5        # seconds allowed for git/kubectl queries
  # show_kube: true
  colors: {}

history: {}

completion: {}
"""


class ConfigError(Exception):
    """Raised when the configuration file cannot be used."""


def color_sequence(name: str) -> str:
    """Translate a color name like ``green`` or ``bold-cyan`` to an ANSI SGR sequence."""
    if name == "reset":
        return "\033[0m"
    bold = name.startswith("bold-")
    base = name[len("bold-"):] if bold else name
    code = ANSI_CODES.get(base)
    if code is None:
        raise ConfigError(f"Unknown color: {name!r}")
    return f"\033[{'01' if bold else '0'};{code}m"


@dataclass
class VcsConfig:
    show_dirty: bool = True
    show_stash: bool = True
    show_untracked: bool = True
    show_upstream: bool = True


@dataclass
class PromptConfig:
    show_venv: bool = True
    show_kube: bool = True
    show_vcs: bool = True
    kube_source: str = "kubectl"
    query_timeout: float = 0.5
    vcs: VcsConfig = field(default_factory=VcsConfig)
    colors: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULTS["prompt"]["colors"])
    )


@dataclass
class HistoryConfig:
    size: int = 10000
    file_size: int = 20000
    control: str = "ignoredups:erasedups"
    file: str | None = None


@dataclass
class CompletionConfig:
    ignore_case: bool = True
    show_all_if_ambiguous: bool = True
    colored_stats: bool = True
    history_search: bool = True


@dataclass
class Config:
    prompt: PromptConfig = field(default_factory=PromptConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    completion: CompletionConfig = field(default_factory=CompletionConfig)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def default_config_path(env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    if explicit := env.get("SHELLRC_CONFIG"):
        return Path(explicit).expanduser()
    base = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "shellrc" / "config.yml"


def merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``; override wins."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _warn_unknown(
    data: Mapping[str, Any], allowed: Mapping[str, Any], where: str
) -> None:
    unknown = set(data) - set(allowed)
    if unknown:
        warn(f"{where}: Unknown keys: {', '.join(sorted(map(str, unknown)))}")


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name)
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{name}' must be a mapping")
    return value


def _bool(section: Mapping[str, Any], key: str, where: str) -> bool:
    value = section[key]
    if not isinstance(value, bool):
        raise ConfigError(f"{where}.{key}: expected true/false, got {value!r}")
    return value


def _int(section: Mapping[str, Any], key: str, where: str) -> int:
    value = section[key]
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"{where}.{key}: expected a non-negative integer, got {value!r}")
    return value


def _str(section: Mapping[str, Any], key: str, where: str, optional: bool = False) -> str | None:
    value = section[key]
    if value is None and optional:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{where}.{key}: expected a string, got {value!r}")
    return value


def parse_config(data: Mapping[str, Any], report_unknown: bool = True) -> Config:
    """Build a typed Config from an already-merged document."""
    if report_unknown:
        _warn_unknown(data, DEFAULTS, "config")

    # Prompt
    prompt = _section(data, "prompt")
    if report_unknown:
        _warn_unknown(prompt, DEFAULTS["prompt"], "prompt")

    kube_source = _str(prompt, "kube_source", "prompt")
    if kube_source not in KUBE_SOURCES:
        raise ConfigError(
            f"prompt.kube_source: expected one of {', '.join(KUBE_SOURCES)}, got {kube_source!r}"
        )

    timeout = prompt["query_timeout"]
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(f"prompt.query_timeout: expected a positive number, got {timeout!r}")

    vcs = _section(prompt, "vcs")
    if report_unknown:
        _warn_unknown(vcs, DEFAULTS["prompt"]["vcs"], "prompt.vcs")

    colors = _section(prompt, "colors")
    if report_unknown:
        _warn_unknown(colors, DEFAULTS["prompt"]["colors"], "prompt.colors")
    for key in DEFAULTS["prompt"]["colors"]:
        name = colors[key]
        if not isinstance(name, str):
            raise ConfigError(f"prompt.colors.{key}: expected a color name, got {name!r}")
        color_sequence(name)

    # History
    history = _section(data, "history")
    if report_unknown:
        _warn_unknown(history, DEFAULTS["history"], "history")

    # Completion
    completion = _section(data, "completion")
    if report_unknown:
        _warn_unknown(completion, DEFAULTS["completion"], "completion")

    return Config(
        prompt=PromptConfig(
            show_venv=_bool(prompt, "show_venv", "prompt"),
            show_kube=_bool(prompt, "show_kube", "prompt"),
            show_vcs=_bool(prompt, "show_vcs", "prompt"),
            kube_source=kube_source,
            query_timeout=float(timeout),
            vcs=VcsConfig(**{k: _bool(vcs, k, "prompt.vcs") for k in DEFAULTS["prompt"]["vcs"]}),
            colors={k: colors[k] for k in DEFAULTS["prompt"]["colors"]},
        ),
        history=HistoryConfig(
            size=_int(history, "size", "history"),
            file_size=_int(history, "file_size", "history"),
            control=_str(history, "control", "history"),
            file=_str(history, "file", "history", optional=True),
        ),
        completion=CompletionConfig(
            **{k: _bool(completion, k, "completion") for k in DEFAULTS["completion"]}
        ),
    )


def load_config(path: Path | None = None, report_unknown: bool = True) -> Config:
    """Load the user file (if any) over the defaults. Raises ConfigError."""
    path = default_config_path() if path is None else path
    if not path.exists():
        return parse_config(DEFAULTS, report_unknown=False)

    try:
        with path.open(encoding="utf-8") as f:
            custom = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"{path.name}: YAML error: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"{path.name}: not valid UTF-8: {e}") from e
    except OSError as e:
        raise ConfigError(f"{path}: {e}") from e

    if not isinstance(custom, dict):
        raise ConfigError(f"{path.name}: Invalid YAML (expected dict)")

    return parse_config(merge(DEFAULTS, custom), report_unknown=report_unknown)


def create_config(path: Path) -> bool:
    """Write the starter user file. Returns False if one already exists."""
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(STARTER_CONFIG)
    return True


def dump_config(config: Config) -> str:
    return yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False)
