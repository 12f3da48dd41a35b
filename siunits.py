# Copyright (c) 2025, Spaghetti Software Inc
#
# MIT License
#
# Permission is hereby granted, free of charge, to any person obtaining a copy of this software and 
# associated documentation files (the "Software"), to deal in the Software without restriction, 
# including without limitation the rights to use, copy, modify, merge, publish, distribute, 
# sublicense, and/or sell copies of the Software, and to permit persons to whom the Software is 
# furnished to do so, subject to the following conditions:
# The above copyright notice and this permission notice shall be included in all copies or 
# substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR IMPLIED, INCLUDING 
# BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND 
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, 
# DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, 
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.
#
# siunits: evaluate physical units by reducing them to SI base units.
#
# Example usage:
# $ units add km '1000*m'
# $ units add h '3600*s'
# $ units '36*km*h^-1'
# 10.000000*m*s^-1
# $ units list
# A
# K
# cd
# h = 3600*s
# ...
#

import argparse
import logging
import os
import sys

from rich.console import Console
from rich.markup import escape

from uniterrors import AlreadyDefinedError, InUseError, UnitsError
from unitexpr import evaluate, find_users, format_expression, parse_expression, validate
from unitreg import UnitRegistry

# Optionally import readline for arrow-key history on Unix-like systems
try:
    import readline  # noqa: F401
except ImportError:
    pass

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

COMMANDS = ("list", "add", "remove")

USAGE = """\
When starting the first time, {prog} knows the seven SI base units
(s, m, kg, A, K, mol, cd); further units can be added as described below.

{prog} list
    Prints all known units. Base units are printed as their bare symbol,
    units created with 'add' as "symbol = definition".
{prog} add <unit> <expression>
    Defines a new unit named <unit> as <expression>, e.g.
      {prog} add km '1000*m'
{prog} remove <unit>
    Removes a unit created with 'add'. Base units and units used in other
    definitions cannot be removed.
{prog} <expression>
    Validates <expression> and substitutes every derived unit by SI base
    units. With km and h defined as kilometre and hour, '36*km*h^-1'
    evaluates to '10*m*s^-1'.

Expressions have the form [<coefficient>*]<term1>*...*<termN> where
<coefficient> is a floating point number and each <term> is
<unit>[^<exponent>] with an integer exponent.
"""


class UsageError(UnitsError):
    def __init__(self):
        super().__init__("invalid command line")

##############################################
# 1. CONFIGURATION
##############################################

def unit_file(path=None):
    """--file wins over $UNITS_FILE, which wins over ~/.units."""
    if path:
        return path
    env = os.environ.get("UNITS_FILE")
    if env:
        return env
    return os.path.join(os.path.expanduser("~"), ".units")


def setup_logging(verbose=False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )

##############################################
# 2. REGISTRY POLICIES
##############################################

def add_unit(registry, name, formula):
    """Define `name` as `formula`; every unit in `formula` must already exist."""
    if name in registry:
        raise AlreadyDefinedError(name)
    expr = parse_expression(formula)
    validate(expr, registry)
    return registry.add(name, formula)


def remove_unit(registry, name):
    unit = registry.get(name)
    if unit.is_base_unit:
        raise InUseError(f"Cannot remove base unit '{name}'")
    users = find_users(registry, name)
    if users:
        raise InUseError(f"Unit '{name}' still in use (at least by '{users[0]}')")
    registry.remove(name)

##############################################
# 3. COMMANDS
##############################################

def show(text):
    console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)


def show_error(prog, message):
    err_console.print(f"[red]error {escape(prog)}:[/] {escape(str(message))}", emoji=False, soft_wrap=True)


def cmd_list(registry, path, args):
    if args:
        raise UsageError()
    for unit in registry:
        if unit.is_base_unit:
            show(unit.name)
        else:
            show(f"{unit.name} = {unit.formula}")


def cmd_add(registry, path, args):
    if len(args) != 2:
        raise UsageError()
    name, formula = args
    add_unit(registry, name, formula)
    registry.store(path)
    logger.info("Added unit %s = %s", name, formula)


def cmd_remove(registry, path, args):
    if len(args) != 1:
        raise UsageError()
    remove_unit(registry, args[0])
    registry.store(path)
    logger.info("Removed unit %s", args[0])


def cmd_eval(registry, path, args):
    if len(args) != 1:
        raise UsageError()
    show(format_expression(evaluate(args[0], registry)))


def execute(registry, path, words):
    """Run one command line (already split into words)."""
    handlers = {"list": cmd_list, "add": cmd_add, "remove": cmd_remove}
    handler = handlers.get(words[0])
    if handler is None:
        return cmd_eval(registry, path, words)
    return handler(registry, path, words[1:])

##############################################
# 4. REPL
##############################################

def split_line(line):
    """
    "add km 1000 * m" -> ["add", "km", "1000 * m"]
    "remove km"       -> ["remove", "km"]
    "36 * km"         -> ["36 * km"]
    """
    words = line.split(None, 1)
    if words[0] == "add":
        return line.split(None, 2)
    if words[0] in COMMANDS:
        return line.split()
    return [line]


def repl(registry, path, prog):
    console.print(f"[bold cyan]This is {escape(prog)}: SI unit evaluator[/]")
    console.print("Commands: list, add <unit> <expression>, remove <unit>, <expression>")
    console.print("Type 'q', 'quit', or 'exit' to quit.\n")

    while True:
        try:
            line = console.input("[bold green]dim> [/]")
        except (EOFError, KeyboardInterrupt):
            console.print()
            break
        line = line.strip()
        if line.lower() in ("q", "quit", "exit"):
            console.print("Goodbye!")
            break
        if not line:
            continue

        try:
            execute(registry, path, split_line(line))
        except UnitsError as e:
            show_error(prog, e)

##############################################
# 5. MAIN
##############################################

class ArgumentParser(argparse.ArgumentParser):
    """Reports bad command lines as UsageError instead of exiting with status 2."""

    def error(self, message):
        logger.debug("argparse: %s", message)
        raise UsageError()


def build_parser(prog):
    parser = ArgumentParser(
        prog=prog,
        description="Utility to evaluate physical units.",
        epilog=USAGE.format(prog=prog),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-f", "--file", help="Unit definition file (default: $UNITS_FILE or ~/.units)")
    parser.add_argument("-i", "--interactive", action="store_true", help="Read commands interactively")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    parser.add_argument("words", nargs="*", help="list | add <unit> <expression> | remove <unit> | <expression>")
    return parser


def parse_command_line(parser, argv):
    """
    Parse options and command words. Words such as "-2*m" look like options
    to argparse; they are handed back as unknown arguments and merged into
    the command words in their original order.
    """
    args, extras = parser.parse_known_args(argv)
    for extra in extras:
        if extra.startswith("--"):
            raise UsageError()

    known, unknown = list(args.words), list(extras)
    words = []
    for token in argv:
        if known and token == known[0]:
            words.append(known.pop(0))
        elif unknown and token == unknown[0]:
            words.append(unknown.pop(0))
    args.words = words
    return args


def main(argv=None):
    if argv is None:
        argv = sys.argv
    prog = (os.path.basename(argv[0]) if argv else "") or "units"
    parser = build_parser(prog)
    try:
        args = parse_command_line(parser, argv[1:])
    except UsageError as e:
        show_error(prog, e)
        return 1
    setup_logging(args.verbose)

    if not args.words and not args.interactive:
        parser.print_help()
        return 0

    path = unit_file(args.file)
    registry = UnitRegistry()
    status = 0
    try:
        try:
            registry.load(path)
        except UnitsError as e:
            # list still shows what could be loaded
            if args.interactive or args.words[0] != "list":
                raise
            show_error(prog, e)
            status = 1
        if args.interactive:
            if args.words:
                raise UsageError()
            repl(registry, path, prog)
        else:
            execute(registry, path, args.words)
    except UnitsError as e:
        show_error(prog, e)
        return 1
    return status


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
