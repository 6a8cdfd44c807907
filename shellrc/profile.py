"""Generate the shell profile that installs the prompt hook."""

from __future__ import annotations

import shlex
from pathlib import Path

from shellrc.config import CompletionConfig, Config, HistoryConfig
from shellrc.console import log

SHELLS = ("bash", "zsh")

START_MARKER = "# >>> shellrc managed >>>"
END_MARKER = "# <<< shellrc managed <<<"


def profile_path(shell: str, home: Path) -> Path:
    return home / (".shellrc_profile" if shell == "bash" else ".shellrc_profile.zsh")


def rc_path(shell: str, home: Path) -> Path:
    return home / (".bashrc" if shell == "bash" else ".zshrc")


def history_file(shell: str, history: HistoryConfig, home: Path) -> Path:
    if history.file:
        return Path(history.file).expanduser()
    return home / ".local/share" / shell / "history"


def render_inputrc(completion: CompletionConfig) -> str:
    lines = []
    if completion.ignore_case:
        lines.append("set completion-ignore-case on")
    if completion.show_all_if_ambiguous:
        lines.append("set show-all-if-ambiguous on")
    if completion.colored_stats:
        lines.extend(
            [
                "set colored-stats on",
                "set colored-completion-prefix on",
                "set visible-stats on",
            ]
        )
    if completion.history_search:
        lines.extend(
            [
                '"\\e[A": history-search-backward',
                '"\\e[B": history-search-forward',
            ]
        )
    lines.extend(['"\\e[1;5C": forward-word', '"\\e[1;5D": backward-word'])
    return "\n".join(lines) + "\n"


def render_bash_profile(config: Config, home: Path) -> str:
    history = config.history
    histfile = shlex.quote(str(history_file("bash", history, home)))
    return f"""\
# Generated by shellrc; re-run `shellrc init --force` to regenerate.

# Bash completion
if ! shopt -oq posix; then
  [ -f /usr/share/bash-completion/bash_completion ] && . /usr/share/bash-completion/bash_completion
fi

# History
export HISTFILE={histfile}
export HISTSIZE={history.size}
export HISTFILESIZE={history.file_size}
export HISTCONTROL={shlex.quote(history.control)}
shopt -s histappend

# Shell options
shopt -s checkwinsize 2>/dev/null

# Prompt
_shellrc_prompt() {{
    local status=$?
    history -a
    if command -v shellrc &>/dev/null; then
        _shellrc_ps1="$(shellrc prompt --shell bash --exit-status "$status")"
        PS1='${{_shellrc_ps1}}'
    fi
    return $status
}}
case ";${{PROMPT_COMMAND:-}};" in
    *";_shellrc_prompt;"*) ;;
    *) PROMPT_COMMAND="_shellrc_prompt${{PROMPT_COMMAND:+;$PROMPT_COMMAND}}" ;;
esac
"""


def render_zsh_profile(config: Config, home: Path) -> str:
    history = config.history
    histfile = shlex.quote(str(history_file("zsh", history, home)))
    dedup = "setopt hist_ignore_all_dups" if "erasedups" in history.control else "setopt hist_ignore_dups"
    completion = config.completion
    matcher = (
        "zstyle ':completion:*' matcher-list 'm:{a-zA-Z}={A-Za-z}'\n"
        if completion.ignore_case
        else ""
    )
    return f"""\
# Generated by shellrc; re-run `shellrc init --shell zsh --force` to regenerate.

# Completion
autoload -Uz compinit && compinit
{matcher}
# History
HISTFILE={histfile}
HISTSIZE={history.size}
SAVEHIST={history.file_size}
setopt append_history inc_append_history
{dedup}

# Prompt
setopt prompt_subst
_shellrc_precmd() {{
    local exit_status=$?
    if (( $+commands[shellrc] )); then
        _shellrc_prompt="$(shellrc prompt --shell zsh --exit-status $exit_status)"
        PROMPT='${{_shellrc_prompt}}'
    fi
}}
autoload -Uz add-zsh-hook
add-zsh-hook precmd _shellrc_precmd
"""


def render_profile(shell: str, config: Config, home: Path) -> str:
    if shell == "zsh":
        return render_zsh_profile(config, home)
    return render_bash_profile(config, home)


def source_block(profile: Path) -> str:
    quoted = shlex.quote(str(profile))
    return f"{START_MARKER}\n[ -f {quoted} ] && . {quoted}\n{END_MARKER}"


def has_block(content: str) -> bool:
    return START_MARKER in content and END_MARKER in content


def enable_profile(rc_file: Path, profile: Path) -> bool:
    """Source the profile from the rc file. Returns True if the rc file changed."""
    # surrogateescape keeps foreign bytes in the rc file intact on write-back
    content = rc_file.read_text(encoding="utf-8", errors="surrogateescape") if rc_file.exists() else ""
    if has_block(content):
        return False
    if content and not content.endswith("\n"):
        content += "\n"
    content += f"\n{source_block(profile)}\n"
    rc_file.write_text(content, encoding="utf-8", errors="surrogateescape")
    return True


def write_profile(shell: str, config: Config, home: Path, force: bool = False) -> Path:
    path = profile_path(shell, home)
    if path.exists() and not force:
        log(f"{path.name} already exists (use --force to regenerate)", success=True)
        return path
    log(f"Creating {path.name}...")
    path.write_text(render_profile(shell, config, home))
    log(f"Created {path.name}", success=True)
    return path


def configure_inputrc(config: Config, home: Path, force: bool = False) -> None:
    path = home / ".inputrc"
    if path.exists() and not force:
        log(".inputrc already exists, leaving it untouched", success=True)
        return
    log("Configuring .inputrc...")
    path.write_text(render_inputrc(config.completion))
    log("Configured .inputrc", success=True)


def install(
    shell: str,
    config: Config,
    home: Path,
    rc_file: Path | None = None,
    force: bool = False,
) -> Path:
    """Write the profile and hook it into the rc file. Raises OSError on write failure."""
    history_file(shell, config.history, home).parent.mkdir(parents=True, exist_ok=True)

    profile = write_profile(shell, config, home, force=force)
    if shell == "bash":
        configure_inputrc(config, home, force=force)

    rc_file = rc_path(shell, home) if rc_file is None else rc_file
    log(f"Enabling {profile.name} in {rc_file.name}...")
    if enable_profile(rc_file, profile):
        log(f"Enabled {profile.name}", success=True)
    else:
        log(f"{profile.name} already enabled", success=True)
    return profile
