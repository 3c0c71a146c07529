#!/usr/bin/env python3
"""gitritual CLI - run the configured replication steps."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Fail fast on unsupported interpreter version
if sys.version_info < (3, 10):
    print(f"gitritual requires Python 3.10+; found {sys.version.split()[0]}", file=sys.stderr)
    sys.exit(1)

from git.exc import GitCommandError

from . import __version__
from .config_loader import load_config
from .errors import ConfigError, GitRitualError, UserCancelled
from .observability import configure_logging, log_error, log_success, log_warning
from .prompts import TerminalInteraction
from .runner import run_steps
from .workspace import git_error_text


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="gitritual",
        description="Replicate commits across branches by content, with interactive conflict recovery",
    )
    ap.add_argument("--config", help="Config file (default: gitritual.toml or .gitritual/config.toml, searched upward)")
    ap.add_argument("--cwd", help="Repository working directory (overrides globals.cwd)")
    ap.add_argument("-y", "--yes", action="store_true", help="Keep every option in selections and accept confirmation defaults")
    ap.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper, help="Log file level")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return ap


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(
            config_path=Path(args.config) if args.config else None,
            overrides={"globals": {"cwd": args.cwd}},
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    log_config = config.logging
    configure_logging(
        level=args.log_level or log_config.level,
        console_level=log_config.console_level,
        log_dir=log_config.dir or None,
        disable_file=True if log_config.disable_file else None,
        max_bytes=log_config.max_bytes,
        backup_count=log_config.backup_count,
    )

    interaction = TerminalInteraction(assume_yes=args.yes)
    try:
        reports = run_steps(config, interaction)
    except UserCancelled:
        log_warning("Operation cancelled by user.")
        sys.exit(0)
    except GitRitualError as e:
        log_error(str(e))
        sys.exit(1)
    except GitCommandError as e:
        log_error(f"git failed: {git_error_text(e)}")
        sys.exit(1)

    failed = [r.step_name for r in reports if not r.succeeded]
    if failed:
        log_error(f"Finished with failures in: {', '.join(failed)}")
        sys.exit(1)
    log_success("All steps completed successfully!")
    sys.exit(0)


if __name__ == "__main__":
    main()
