"""
Command-line entry point — composition root for `ca-setup`.

  ca-setup setup --cert-bundle BUNDLE --private-key KEY [--crl-chain CHAIN] [--config CONF]

Responsibilities:
  1. Parse arguments (help/version handled here so output goes to `out`)
  2. Check every supplied path is readable before doing anything else
  3. Warn when no CRL chain was given
  4. Load settings and configure structlog
  5. Run the X509Loader and print every collected error
  6. Report settings errors, which only surface once the material is valid
  7. Install the material via FileCaStore only when no errors were found

`run()` takes the argument list and output streams explicitly so it can be
driven from tests; `main()` wires it to sys.argv and the process exit code.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

import structlog
from pydantic import ValidationError as SettingsError

from ca_setup import __version__
from ca_setup.adapters.ca_store import FileCaStore
from ca_setup.config import AppSettings, load_settings
from ca_setup.loader import create_loader

VALID_COMMANDS = ("setup",)


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for human-readable console output on stderr.

    stdout is reserved for help and version text.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


class UsageError(Exception):
    """Raised instead of argparse's own exit on malformed arguments."""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def _general_parser() -> _ArgumentParser:
    parser = _ArgumentParser(
        prog="ca-setup",
        usage="ca-setup <command> [options]",
        description="Available commands: setup",
        add_help=False,
    )
    parser.add_argument("--help", action="store_true", help="This general help output")
    parser.add_argument("--version", action="store_true", help="Output the version")
    return parser


def _setup_parser() -> _ArgumentParser:
    parser = _ArgumentParser(
        prog="ca-setup setup",
        usage="ca-setup setup [options]",
        add_help=False,
    )
    parser.add_argument("--help", action="store_true", help="This setup specific help output")
    parser.add_argument("--version", action="store_true", help="Output the version")
    parser.add_argument("--config", metavar="CONF", type=Path, help="Path to a settings file")
    parser.add_argument("--private-key", metavar="KEY", type=Path, help="Path to PEM encoded key")
    parser.add_argument(
        "--cert-bundle", metavar="BUNDLE", type=Path, help="Path to PEM encoded bundle"
    )
    parser.add_argument(
        "--crl-chain", metavar="CHAIN", type=Path, help="Path to PEM encoded chain"
    )
    return parser


def _print_errors(err: TextIO, messages: Sequence[str]) -> None:
    err.write("Error:\n")
    for message in messages:
        err.write(f"    {message}\n")


def validate_file_paths(paths: Sequence[Path]) -> list[str]:
    """One message per path that does not exist or cannot be read."""
    return [
        f"Could not read file '{path}'"
        for path in paths
        if not path.is_file() or not os.access(path, os.R_OK)
    ]


def _settings_messages(exc: SettingsError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]


def _validate_setup_inputs(
    args: argparse.Namespace, usage: str, out: TextIO, err: TextIO
) -> int | None:
    """Exit code when the invocation ends here (help, version, missing args), else None."""
    if args.help:
        out.write(usage)
        return 0
    if args.version:
        out.write(f"{__version__}\n")
        return 0
    if args.cert_bundle is None or args.private_key is None:
        err.write("Error:\n")
        err.write("Missing required argument\n")
        err.write("    Both --cert-bundle and --private-key are required\n\n")
        err.write(usage)
        return 1
    return None


def run_setup(argv: Sequence[str], out: TextIO, err: TextIO) -> int:
    parser = _setup_parser()
    try:
        args = parser.parse_args(list(argv))
    except UsageError as e:
        _print_errors(err, [str(e)])
        err.write("\n")
        err.write(parser.format_help())
        return 1

    exit_code = _validate_setup_inputs(args, parser.format_help(), out, err)
    if exit_code is not None:
        return exit_code

    paths = [args.cert_bundle, args.private_key]
    if args.crl_chain is not None:
        paths.append(args.crl_chain)
    if args.config is not None:
        paths.append(args.config)

    path_errors = validate_file_paths(paths)
    if path_errors:
        _print_errors(err, path_errors)
        return 1

    if args.crl_chain is None:
        err.write("Warning:\n")
        err.write("    No CRL chain given\n")
        err.write("    Full CRL chain checking will not be possible\n\n")

    settings: AppSettings | None = None
    settings_errors: list[str] = []
    try:
        settings = load_settings(args.config)
    except SettingsError as e:
        settings_errors = _settings_messages(e)

    configure_structlog(settings.log_level if settings is not None else "INFO")
    log = structlog.get_logger()

    try:
        cert_bundle = args.cert_bundle.read_bytes()
        private_key = args.private_key.read_bytes()
        crl_chain = args.crl_chain.read_bytes() if args.crl_chain is not None else None
    except OSError as e:
        log.error("cli.read_failed", error=str(e))
        _print_errors(err, [str(e)])
        return 1

    result = create_loader().load_and_validate(cert_bundle, private_key, crl_chain)
    if not result.is_valid:
        log.warning("cli.setup_failed", errors=len(result.errors))
        _print_errors(err, result.messages)
        return 1

    if settings is None:
        _print_errors(err, settings_errors)
        return 1

    store = FileCaStore(
        cert_path=settings.store.ca_cert_path,
        key_path=settings.store.ca_key_path,
        crl_path=settings.store.ca_crl_path,
    )
    stored = store.store(result)
    if stored.is_failure():
        _print_errors(err, [stored.error().message])
        return 1
    return 0


def run(
    argv: Sequence[str] | None = None,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Dispatch to a command and return the process exit code."""
    out = sys.stdout if out is None else out
    err = sys.stderr if err is None else err
    args = list(sys.argv[1:] if argv is None else argv)

    if args and args[0] in VALID_COMMANDS:
        return run_setup(args[1:], out, err)

    parser = _general_parser()
    try:
        parsed = parser.parse_args(args)
    except UsageError:
        err.write(parser.format_help())
        return 1

    if parsed.help:
        out.write(parser.format_help())
    elif parsed.version:
        out.write(f"{__version__}\n")
    else:
        err.write(parser.format_help())
        return 1
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
