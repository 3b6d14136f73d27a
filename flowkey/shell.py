#!/usr/bin/env python3
"""
Interactive shell for flow key definitions.

Usage:
    flowkey                                   # interactive loop
    flowkey parse-key 'ip6destination,group:ip6source:trusted:bad'
    flowkey --extensions extra.yaml --format tree
"""

import argparse
import cmd
import json
import logging
import sys

import yaml

from .catalog import DEFAULT_CATALOG, KeyNameCatalog
from .config import load_all_extensions
from .converter import format_tree, to_dict
from .errors import ConfigError, ParseError
from .key_ast import KeyDefinition
from .parser import parse
from .registry import DEFAULT_REGISTRY, FunctionRegistry
from .validate import validate_definition

logger = logging.getLogger(__name__)

FORMATS = ("debug", "tree", "yaml", "json")


def render(definition: KeyDefinition, fmt: str = "debug") -> str:
    """Render a parsed definition in one of FORMATS."""
    if fmt == "debug":
        return repr(definition)
    if fmt == "tree":
        return format_tree(definition)
    if fmt == "yaml":
        return yaml.safe_dump(to_dict(definition), sort_keys=False).rstrip()
    if fmt == "json":
        return json.dumps(to_dict(definition), indent=2)
    raise ValueError(f"Unknown format: {fmt}")


def format_error(error: ParseError) -> str:
    if error.offset is None:
        return f"error: {error.kind}: {error.detail}"
    return f"error: {error.kind} at offset {error.offset}: {error.detail}"


class KeyShell(cmd.Cmd):
    """Read-eval-print loop around the flow key parser."""

    intro = "Flow key definition shell. Type 'help' for commands, 'quit' to exit."
    prompt = "flowkey> "

    def __init__(self, catalog: KeyNameCatalog = None, registry: FunctionRegistry = None,
                 fmt: str = "debug", stdin=None, stdout=None, stderr=None):
        super().__init__(stdin=stdin, stdout=stdout)
        if stdin is not None:
            self.use_rawinput = False
        self.catalog = catalog if catalog is not None else DEFAULT_CATALOG
        self.registry = registry if registry is not None else DEFAULT_REGISTRY
        self.format = fmt
        self.stderr = stderr if stderr is not None else sys.stderr
        self.last_ok = True

    def precmd(self, line):
        # cmd only dispatches on identifier characters
        parts = line.split(None, 1)
        if parts and parts[0] == "parse-key":
            return "parse_key " + (parts[1] if len(parts) > 1 else "")
        return line

    def emptyline(self):
        pass

    def default(self, line):
        print(f"Unknown command: {line.split()[0]}. Type 'help' for commands.", file=self.stderr)
        self.last_ok = False

    def do_parse_key(self, arg):
        """parse-key <text>: parse a flow key definition and print its AST."""
        try:
            definition = parse(arg, self.catalog, self.registry)
        except ParseError as e:
            logger.debug("Rejected %r: %r", arg, e)
            print(format_error(e), file=self.stderr)
            self.last_ok = False
            return

        print(render(definition, self.format), file=self.stdout)
        for warning in validate_definition(definition).warnings:
            print(f"warning: {warning}", file=self.stderr)
        self.last_ok = True

    def help_parse_key(self):
        print(self.do_parse_key.__doc__, file=self.stdout)
        print("Known key functions: " + ", ".join(sorted(self.registry.names())), file=self.stdout)
        print("Known key names: " + ", ".join(sorted(self.catalog.names())), file=self.stdout)

    def do_quit(self, arg):
        """quit: leave the shell."""
        return True

    do_exit = do_quit

    def do_EOF(self, arg):
        print(file=self.stdout)
        return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="flowkey",
        description="Parse flow key definitions.",
    )
    parser.add_argument(
        "--extensions", "-e",
        action="append",
        default=[],
        metavar="FILE",
        help="YAML file adding key names and functions (repeatable)",
    )
    parser.add_argument(
        "--format", "-f",
        choices=FORMATS,
        default="debug",
        help="How to print parsed definitions (default: debug)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed output",
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Run a single command (e.g. parse-key TEXT) and exit",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        catalog, registry = load_all_extensions(args.extensions)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    logger.debug("Catalog: %d key names; registry: %s", len(catalog), ", ".join(registry.names()))

    shell = KeyShell(catalog, registry, args.format)
    if args.command:
        shell.onecmd(shell.precmd(" ".join(args.command)))
        return 0 if shell.last_ok else 1

    try:
        shell.cmdloop()
    except KeyboardInterrupt:
        print(file=sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
