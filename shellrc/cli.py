"""Command-line entry point."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from shellrc import __version__
from shellrc.config import (
    Config,
    ConfigError,
    create_config,
    default_config_path,
    dump_config,
    load_config,
)
from shellrc.console import error, log
from shellrc.context import sample_context
from shellrc.doctor import detect_shell, run_doctor
from shellrc.profile import SHELLS, install
from shellrc.prompt import EscapeStyle, Palette, PromptComposer


def cmd_prompt(args: argparse.Namespace) -> int:
    # A broken config must never break the shell: fall back to defaults
    try:
        config = load_config(args.config, report_unknown=False)
    except ConfigError:
        config = Config()

    style = args.shell or detect_shell() or EscapeStyle.PLAIN.value
    context = sample_context(args.exit_status, config.prompt)
    composer = PromptComposer(Palette.from_config(config.prompt), EscapeStyle(style))
    sys.stdout.write(composer.render(context))
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    shell = args.shell or detect_shell() or "bash"
    try:
        config = load_config(args.config)
    except ConfigError as e:
        error(str(e))
        return 1

    log(f"Configuring {shell} prompt...")
    try:
        install(shell, config, Path.home(), rc_file=args.rc_file, force=args.force)
    except OSError as e:
        error(f"Failed to write shell configuration: {e}")
        return 1

    log("Shell prompt configured! Open a new terminal to use it.", success=True)
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    return 0 if run_doctor(Path.home(), args.config) else 1


def cmd_config(args: argparse.Namespace) -> int:
    path = default_config_path() if args.config is None else args.config
    if args.init:
        try:
            created = create_config(path)
        except OSError as e:
            error(f"Failed to create {path}: {e}")
            return 1
        if created:
            log(f"Created {path}", success=True)
        else:
            log(f"{path} already exists", success=True)
        return 0

    try:
        config = load_config(path)
    except ConfigError as e:
        error(str(e))
        return 1
    print(dump_config(config), end="")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="shellrc",
        description="Informational shell prompt with git, venv and Kubernetes badges",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--config", type=Path, help="Config file (default: ~/.config/shellrc/config.yml)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # prompt
    p_prompt = subparsers.add_parser("prompt", help="Render the prompt")
    p_prompt.add_argument(
        "--exit-status", type=int, default=0, help="Exit status of the previous command"
    )
    p_prompt.add_argument(
        "--shell",
        choices=[s.value for s in EscapeStyle],
        help="Escape style (default: detected from the parent process)",
    )

    # init
    p_init = subparsers.add_parser("init", help="Install the shell profile and prompt hook")
    p_init.add_argument("--shell", choices=SHELLS, help="Target shell (default: detected)")
    p_init.add_argument("--rc-file", type=Path, help="rc file to hook into (default: ~/.bashrc or ~/.zshrc)")
    p_init.add_argument("--force", action="store_true", help="Regenerate existing files")

    # doctor
    subparsers.add_parser("doctor", help="Check collaborators and configuration")

    # config
    p_config = subparsers.add_parser("config", help="Show the effective configuration")
    p_config.add_argument("--init", action="store_true", help="Create a starter user config")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    dispatch = {
        "prompt": cmd_prompt,
        "init": cmd_init,
        "doctor": cmd_doctor,
        "config": cmd_config,
    }
    return dispatch[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
