"""
Command-line entry point.

    goreinstall [-v] [-a] [-u] [-f] [-l] [-t N] [binaries...]
"""

from __future__ import annotations

import argparse
import signal
import sys

from .batch import MODE_REINSTALL, MODE_UPDATE, BatchRequest, execute_batch
from .buildinfo import list_build_info
from .cancellation import CancellationToken
from .common import debug_enabled, vlog
from .config import MAX_WORKERS_LIMIT, load_config
from .environment import GoEnv, find_binaries, get_go_env, resolve_binary_path
from .errors import Cancelled, GoReinstallError
from .logging_config import setup_logging
from .render import print_outcomes, render_build_records


EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="goreinstall",
        description="Reinstall or update Go binaries built by an older compiler or module version",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "examples:\n"
            "  goreinstall -a          reinstall every binary built with an older Go\n"
            "  goreinstall -u -a       update every binary to its latest module version\n"
            "  goreinstall -f gopls    rebuild gopls even if it is up to date\n"
            "  goreinstall -l -a       list binaries with their Go and module versions"
        ),
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("-a", "--all", action="store_true", help="Process all binaries in GOBIN or GOPATH/bin")
    parser.add_argument("-u", "--update", action="store_true", help="Update binaries to the latest module version")
    parser.add_argument("-f", "--force", action="store_true", help="Reinstall even if the binary is up to date")
    parser.add_argument("-l", "--list", action="store_true", help="List binaries with their Go and module versions (all binaries when none are named)")
    parser.add_argument("-t", "--threads", type=int, default=None, metavar="N",
                        help=f"Maximum parallel go install processes (1-{MAX_WORKERS_LIMIT})")
    parser.add_argument("--config", default=None, metavar="FILE", help="Configuration file to use")
    parser.add_argument("--log-file", default=None, metavar="FILE", help="Also write logs to FILE")
    parser.add_argument("binaries", nargs="*", help="Binary names or paths")
    return parser


def _install_signal_handlers(token: CancellationToken) -> None:
    def _handler(signum, frame):
        token.cancel(f"interrupted by {signal.Signals(signum).name}")

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def _dedupe(paths: list[str]) -> list[str]:
    seen = set()
    unique = []
    for path in paths:
        if path not in seen:
            seen.add(path)
            unique.append(path)
    return unique


def resolve_paths(args: argparse.Namespace, go_env: GoEnv, verbose: bool = False) -> list[str]:
    """Binary paths named on the command line, plus all installed ones with -a."""
    paths = []
    if args.all:
        paths.extend(find_binaries(go_env, verbose))
    paths.extend(resolve_binary_path(name, go_env) for name in args.binaries)
    return _dedupe(paths)


def cmd_list(paths: list[str], token: CancellationToken, verbose: bool) -> int:
    records = list_build_info(paths, token, verbose)
    for line in render_build_records(records):
        print(line)
    return EXIT_INTERRUPTED if token.cancelled else 0


def cmd_batch(args: argparse.Namespace, paths: list[str], go_env: GoEnv, config, token: CancellationToken, verbose: bool) -> int:
    preferences = config.preferences
    workers = args.threads if args.threads is not None else preferences.max_workers

    request = BatchRequest(
        paths=tuple(paths),
        mode=MODE_UPDATE if args.update else MODE_REINSTALL,
        reference_compiler_version=go_env.compiler_version,
        concurrency_limit=workers,
        force=args.force,
        go_command=preferences.go_command,
        read_timeout=preferences.read_timeout_seconds or None,
        proxy_url=preferences.proxy or None,
        lookup_timeout=preferences.lookup_timeout_seconds,
        verbose=verbose,
    )

    result = execute_batch(request, token)
    print_outcomes(result)

    if token.cancelled:
        return EXIT_INTERRUPTED
    return 1 if result.error is not None else 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for goreinstall."""
    parser = build_parser()
    args = parser.parse_args(argv)
    verbose = args.verbose or debug_enabled()

    setup_logging(verbose=verbose, log_file=args.log_file)

    if args.list and not args.binaries:
        args.all = True

    if not args.binaries and not args.all:
        parser.print_usage(sys.stderr)
        return 1

    if args.threads is not None and not 1 <= args.threads <= MAX_WORKERS_LIMIT:
        parser.error(f"-t must be between 1 and {MAX_WORKERS_LIMIT}")

    token = CancellationToken()
    _install_signal_handlers(token)

    try:
        config = load_config(args.config, verbose)
        go_env = get_go_env(config.preferences.go_command, verbose=verbose)
        paths = resolve_paths(args, go_env, verbose)
        if not paths:
            vlog("no binaries found", verbose)
            return 0

        if args.list:
            return cmd_list(paths, token, verbose)
        return cmd_batch(args, paths, go_env, config, token, verbose)
    except Cancelled as e:
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_INTERRUPTED
    except (GoReinstallError, ValueError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
