#!/usr/bin/env python3
"""
omnidepsctl - dependency and OmniBOR provenance tool

Compute gitoids, write Make dependency rules and record BOM documents for a
list of files a build step read.
"""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from omnideps.bom.metadata import BuildContext, CompileMode
from omnideps.bom.note import build_note
from omnideps.config import OmniborConfig, parse_algorithms
from omnideps.gitoid import gitoid_for_file, gitoid_uri, parse_algorithm
from omnideps.ledger import DependencyLedger
from omnideps.makefile import write_makefile
from omnideps.recorder import BuildRecorder


class OmnidepsCLI:
    """omnidepsctl command implementations."""

    def __init__(self, out: Optional[TextIO] = None):
        self.out = out or sys.stdout

    def _build_ledger(self, deps: List[str], vpaths: List[str], targets: Optional[List[str]] = None) -> DependencyLedger:
        ledger = DependencyLedger()
        for spec in vpaths:
            ledger.add_vpath(spec)
        for target in targets or []:
            ledger.add_target(target)
        for dep in deps:
            ledger.add_dependency(dep)
        return ledger

    def gitoid(self, files: List[str], hash_name: str) -> int:
        """Print the gitoid of each file."""
        algorithm = parse_algorithm(hash_name)
        status = 0

        for path in files:
            gitoid = gitoid_for_file(path, algorithm)
            if gitoid is None:
                print(f"Error: cannot read {path}", file=sys.stderr)
                status = 1
                continue
            print(f"{gitoid}  {path}", file=self.out)

        return status

    def record(self, deps: List[str], config: OmniborConfig, context: BuildContext,
               vpaths: List[str]) -> int:
        """Record BOM documents and metadata for ``deps``."""
        ledger = self._build_ledger(deps, vpaths)
        result = BuildRecorder(config).record(ledger, context)

        root = config.root_dir or "."
        print(f"OmniBOR Record ({root})", file=self.out)
        print("=" * 50, file=self.out)

        for algorithm, gitoid in result.documents.items():
            if gitoid is None:
                print(f"{algorithm.value}: not written", file=self.out)
                continue
            print(f"{algorithm.value}: {gitoid_uri(gitoid, algorithm)}", file=self.out)
            metadata = result.metadata_paths.get(algorithm)
            if metadata:
                print(f"  Metadata: {metadata}", file=self.out)
            for path in result.skipped.get(algorithm, []):
                print(f"  Skipped: {path}", file=self.out)

        return 0 if result.complete else 1

    def deps(self, deps: List[str], targets: List[str], vpaths: List[str], colmax: int,
             phony: bool, output: Optional[str]) -> int:
        """Write a Make rule for ``deps``."""
        ledger = self._build_ledger(deps, vpaths, targets)
        ledger.add_default_target(deps[0] if deps else "")

        if output:
            with open(output, 'w') as f:
                write_makefile(ledger, f, colmax=colmax, phony_targets=phony)
        else:
            write_makefile(ledger, self.out, colmax=colmax, phony_targets=phony)

        return 0

    def note(self, gitoid: str, hash_name: str, byteorder: str) -> int:
        """Print the ``.note.omnibor`` entry for a document gitoid as hex."""
        algorithm = parse_algorithm(hash_name)
        print(build_note(gitoid, algorithm, byteorder).hex(), file=self.out)
        return 0


def _configure_logging(verbose: bool):
    level = logging.DEBUG if verbose else os.environ.get('OMNIBOR_LOG_LEVEL', 'WARNING').upper()
    if not isinstance(level, int) and not isinstance(getattr(logging, level, None), int):
        raise ValueError(f"Unknown log level in OMNIBOR_LOG_LEVEL: {level}")
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='omnidepsctl',
        description='Dependency and OmniBOR provenance tool',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # gitoid
    gitoid_parser = subparsers.add_parser('gitoid', help='Print gitoids of files')
    gitoid_parser.add_argument('files', nargs='+', help='Files to hash')
    gitoid_parser.add_argument('--hash', default='sha1', help='sha1 or sha256 (default: sha1)')

    # record
    record_parser = subparsers.add_parser('record', help='Record BOM documents and metadata')
    record_parser.add_argument('deps', nargs='+', help='Dependencies, primary source first')
    record_parser.add_argument('--root', help='Output root (default: $OMNIBOR_DIR or current directory)')
    record_parser.add_argument('--hash', help='sha1, sha256 or both (default: $OMNIBOR_HASH or both)')
    record_parser.add_argument('--output', help='Build output file')
    record_parser.add_argument('--mode', choices=[m.value for m in CompileMode], default=CompileMode.COMPILE.value,
                               help='Build step mode (default: compile)')
    record_parser.add_argument('--vpath', action='append', default=[], help='Colon-separated vpath prefixes')
    record_parser.add_argument('--config', help='YAML config file')
    record_parser.add_argument('--build-cmd', default='', help='Command recorded in metadata')

    # deps
    deps_parser = subparsers.add_parser('deps', help='Write a Make dependency rule')
    deps_parser.add_argument('deps', nargs='+', help='Dependencies, primary source first')
    deps_parser.add_argument('--target', action='append', default=[], help='Rule target (repeatable)')
    deps_parser.add_argument('--vpath', action='append', default=[], help='Colon-separated vpath prefixes')
    deps_parser.add_argument('--colmax', type=int, default=0, help='Wrap column (default: no wrapping)')
    deps_parser.add_argument('--phony', action='store_true', help='Add empty rules for dependencies')
    deps_parser.add_argument('-o', '--output', help='Write to file instead of stdout')

    # note
    note_parser = subparsers.add_parser('note', help='Encode a .note.omnibor entry')
    note_parser.add_argument('gitoid', help='BOM document gitoid')
    note_parser.add_argument('--hash', default='sha1', help='sha1 or sha256 (default: sha1)')
    note_parser.add_argument('--byteorder', choices=['little', 'big'], default='little')

    args = parser.parse_args(argv)

    try:
        _configure_logging(args.verbose)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not args.command:
        parser.print_help()
        return 1

    cli = OmnidepsCLI()

    try:
        if args.command == 'gitoid':
            return cli.gitoid(args.files, args.hash)
        elif args.command == 'record':
            if args.config:
                config = OmniborConfig.from_yaml(Path(args.config))
            else:
                config = OmniborConfig.from_env()
            if args.root is not None:
                config.root_dir = args.root
            if args.hash:
                config.algorithms = parse_algorithms(args.hash)
            context = BuildContext(
                output_path=args.output,
                mode=CompileMode(args.mode),
                build_command=args.build_cmd
            )
            return cli.record(args.deps, config, context, args.vpath)
        elif args.command == 'deps':
            return cli.deps(args.deps, args.target, args.vpath, args.colmax, args.phony, args.output)
        elif args.command == 'note':
            return cli.note(args.gitoid, args.hash, args.byteorder)
        else:
            parser.print_help()
            return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
