from argparse import ArgumentParser, HelpFormatter, RawTextHelpFormatter
from dataclasses import dataclass
import logging
import os
import sys
from textwrap import dedent
import traceback

from crates.name import NAMESPACE
from crates.requirement import MalformedRange

from .maker import RegistryMaker


EXIT_MALFORMED_RANGE = 3


def parser() -> ArgumentParser:
    try:
        width = min(os.get_terminal_size()[0], 70)
    except OSError:
        width = 70

    def width_limited_formatter(prog: str) -> HelpFormatter:
        return RawTextHelpFormatter(prog, width=width)

    parser = ArgumentParser('cargo-import',
        description=dedent("""
            Convert the crates.io index into a registry of packages, their
            versions, and the version requirements of their dependencies, for
            use as test fixtures for a dependency resolver.

            The registry only includes normal, non-optional dependencies.
            Cargo's version requirements are translated into the resolver's
            simpler range syntax. Compound requirements without an exact
            counterpart are approximated by a range that admits no version
            the original requirement rejects. Requirements that cannot be
            translated are kept as is, unless `--strict` is given.

            By default, cargo-import reads a snapshot of the index at a fixed
            commit, downloading it into the current directory first if
            necessary. Use `--cargo-home` to read the index cached by Cargo
            instead. The registry is written to standard output as
            MessagePack, or as indented JSON with `--json`.
        """),
        formatter_class=width_limited_formatter)
    parser.add_argument(
        '--cargo-home',
        nargs='?', const='', metavar='DIR',
        help="read Cargo's cached index from DIR or\n$CARGO_HOME or ~/.cargo")
    parser.add_argument(
        '-i', '--index',
        metavar='DIR',
        help='read the index snapshot in this directory')
    parser.add_argument(
        '-j', '--jobs',
        type=int, default=1, metavar='N',
        help='read index files with N threads')
    parser.add_argument(
        '--json',
        action='store_true',
        help='write indented JSON instead of MessagePack')
    parser.add_argument(
        '--namespace',
        default=NAMESPACE, metavar='PREFIX',
        help=f'prefix for normalized package names\n(default "{NAMESPACE}")')
    parser.add_argument(
        '--no-fetch',
        action='store_true',
        help='do not download a missing index snapshot')
    parser.add_argument(
        '-o', '--output',
        metavar='FILENAME',
        help='write registry to this file')
    parser.add_argument(
        '--raw-names',
        action='store_true',
        help='keep package names as they are')
    parser.add_argument(
        '--strict',
        action='store_true',
        help='fail on untranslatable version requirements')
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='enable verbose output')
    return parser


@dataclass
class ToolOptions:
    cargo_home: 'None | str' = None
    index: 'None | str' = None
    jobs: int = 1
    json: bool = False
    namespace: str = NAMESPACE
    no_fetch: bool = False
    output: 'None | str' = None
    raw_names: bool = False
    strict: bool = False
    verbose: bool = False


def main(args: 'None | list[str]' = None) -> int:
    options = parser().parse_args(args, namespace=ToolOptions())

    logging.basicConfig(
        level=logging.DEBUG if options.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )

    try:
        if options.cargo_home is not None and options.index is not None:
            raise ValueError('--cargo-home is incompatible with --index')
        if options.jobs < 1:
            raise ValueError('--jobs must be at least 1')

        RegistryMaker(
            options.index,
            cargo_home=options.cargo_home or None,
            fetch=not options.no_fetch,
            jobs=options.jobs,
            as_json=options.json,
            namespace=options.namespace,
            normalize=not options.raw_names,
            output=options.output,
            strict=options.strict,
            use_cargo_home=options.cargo_home is not None,
        ).run()
    except Exception as x:
        if options.verbose:
            traceback.print_exception(x)
        else:
            print(f'Error: {x}', file=sys.stderr)
        return EXIT_MALFORMED_RANGE if isinstance(x, MalformedRange) else 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
