"""
Convert state test fixtures into trace tests.

Single files are converted to stdout (or to ``--out``):

    ``evmtrace --fork Cancun stExample/add11.json``

Whole directories are converted into a mirror tree, reporting on each file as
it goes and carrying on past failures:

    ``evmtrace --dir GeneralStateTests --out traces --gzip --incremental``
"""
import argparse
import logging
import os
import sys
from typing import (
    Sequence,
    Tuple,
)

from termcolor import (
    colored,
)

from evmtrace.constants import (
    ONE_MB,
)
from evmtrace.exceptions import (
    EVMTraceError,
)
from evmtrace.tools.driver import (
    InstanceFailure,
    TraceGenerator,
    fork_filter,
)
from evmtrace.tools.fixtures import (
    DEFAULT_EXCLUDES,
    DEFAULT_INCLUDES,
    LazyOutputFile,
    dump_document,
    find_fixture_files,
    load_glob_matcher,
    load_json_fixture,
    output_path_for,
)
from evmtrace.tools.t8n import (
    GethT8n,
)

logger = logging.getLogger("evmtrace.cli")

SKIPPED = -1


def parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("true", "yes", "1"):
        return True
    elif lowered in ("false", "no", "0"):
        return False
    else:
        raise argparse.ArgumentTypeError(f"Expected true or false, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="evmtrace",
        description="Generate trace tests from state test fixtures",
    )
    parser.add_argument(
        "files",
        nargs="*",
        metavar="FILE",
        help="State test fixture files to convert (ignored with --dir).",
    )
    parser.add_argument(
        "--dir",
        type=str,
        dest="fixtures_dir",
        default=None,
        help="Read all state tests from the given directory.",
    )
    parser.add_argument(
        "--out",
        type=str,
        dest="out_dir",
        default=None,
        help="Directory to write generated files to. Defaults to stdout.",
    )
    parser.add_argument(
        "--gzip",
        action="store_true",
        help="Compress generated files using gzip.",
    )
    parser.add_argument(
        "--fork",
        type=str,
        default=None,
        help='Restrict to a particular fork (e.g. "Berlin").',
    )
    parser.add_argument(
        "--prettify",
        action="store_true",
        help="Write indented JSON.",
    )
    parser.add_argument(
        "--abbreviate",
        type=parse_bool,
        default=True,
        metavar="{true,false}",
        help="Enable or disable abbreviation of repeated bytes in memory. Defaults to true.",
    )
    parser.add_argument(
        "--includes",
        type=str,
        default=None,
        help="Only convert files matching one of the globs (one per line) in this file.",
    )
    parser.add_argument(
        "--excludes",
        type=str,
        default=None,
        help="Don't convert files matching any of the globs (one per line) in this file.",
    )
    parser.add_argument(
        "--incremental",
        action="store_true",
        help="Don't regenerate trace tests which already exist.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to allow the EVM per transaction.",
    )
    parser.add_argument(
        "--stack-size",
        type=int,
        dest="stack_size",
        default=None,
        help="Number of stack items (from the top) recorded per step.",
    )
    parser.add_argument(
        "--geth",
        type=str,
        dest="geth_binary",
        default=None,
        help="Path to Geth's evm binary.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of transactions to execute in parallel.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to stderr.",
    )
    return parser


def format_status(length: int, failures: Sequence[InstanceFailure]) -> str:
    if length == SKIPPED:
        return colored(" [skipped]", "yellow")
    elif failures:
        return colored(f" [{len(failures)} instances failed]", "red")
    elif length >= ONE_MB:
        return colored(f" [{length // ONE_MB}mb]", "green")
    else:
        return ""


def convert_file(
    args: argparse.Namespace,
    generator: TraceGenerator,
    fixture_path: str,
    relative_path: str,
) -> Tuple[int, Tuple[InstanceFailure, ...]]:
    """
    Convert a single fixture file, returning the length of the document written
    (or ``SKIPPED``) and any instance failures.
    """
    if args.out_dir is None:
        out_file = None
    else:
        out_file = LazyOutputFile(
            output_path_for(args.out_dir, relative_path, args.gzip), compress=args.gzip
        )
        if args.incremental and out_file.exists():
            return SKIPPED, ()

    fixture = load_json_fixture(fixture_path)
    document, failures = generator.convert_fixture(fixture)
    text = dump_document(document, args.prettify)

    if out_file is None:
        sys.stdout.write(text + "\n")
    else:
        with out_file:
            out_file.write(text)
    return len(text), failures


def run_directory(args: argparse.Namespace, generator: TraceGenerator) -> int:
    includes = load_glob_matcher(args.includes, DEFAULT_INCLUDES)
    excludes = load_glob_matcher(args.excludes, DEFAULT_EXCLUDES)
    relative_paths = find_fixture_files(args.fixtures_dir, includes, excludes)

    failed = 0
    for index, relative_path in enumerate(relative_paths):
        print(colored(f"({index}/{len(relative_paths)}) ", "yellow") + relative_path, end="")
        try:
            length, failures = convert_file(
                args,
                generator,
                os.path.join(args.fixtures_dir, relative_path),
                relative_path,
            )
        except (EVMTraceError, OSError) as err:
            logger.debug("Conversion of %s failed", relative_path, exc_info=True)
            print(colored(f" [{err}]", "red"), flush=True)
            failed += 1
        else:
            print(format_status(length, failures), flush=True)
            if failures:
                failed += 1

    return 0 if failed == 0 else 1


def run_files(args: argparse.Namespace, generator: TraceGenerator) -> int:
    failed = 0
    for fixture_path in args.files:
        relative_path = os.path.basename(fixture_path) if os.path.isabs(fixture_path) else fixture_path
        try:
            _, failures = convert_file(args, generator, fixture_path, relative_path)
        except (EVMTraceError, OSError) as err:
            print(colored(f"{fixture_path}: {err}", "red"), file=sys.stderr)
            failed += 1
        else:
            for failure in failures:
                print(colored(str(failure), "red"), file=sys.stderr)
            if failures:
                failed += 1

    return 0 if failed == 0 else 1


def main(argv: Sequence[str] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.fixtures_dir is None and not args.files:
        parser.error("Either --dir or at least one FILE is required")

    try:
        evm = GethT8n(
            binary=args.geth_binary,
            timeout=args.timeout,
            stack_size=args.stack_size,
        )
        generator = TraceGenerator(
            evm,
            instance_filter=None if args.fork is None else fork_filter(args.fork),
            abbreviate=args.abbreviate,
            workers=args.workers,
        )
    except ValueError as err:
        parser.error(str(err))

    # Sanity check the EVM is installed before converting anything
    try:
        geth_version = evm.version()
    except EVMTraceError as err:
        print(colored(f"*** {evm.binary} --version failed: {err}", "red"), file=sys.stderr)
        return 1
    if geth_version is None:
        print(colored(f"*** {evm.binary} not installed", "red"), file=sys.stderr)
        return 1
    print(f"Geth version: {geth_version}", file=sys.stderr)

    if args.fixtures_dir is not None:
        return run_directory(args, generator)
    else:
        return run_files(args, generator)


def _main() -> None:
    sys.exit(main())


if __name__ == "__main__":
    _main()
