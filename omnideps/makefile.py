"""
Make dependency rule writer.

Turns a DependencyLedger into ``target: dep dep ...`` rules, quoting names
the way GNU Make reads them back and wrapping long lines.
"""
from typing import Iterable, Optional, TextIO

from omnideps.ledger import DependencyLedger

# Narrowest wrap column honoured; smaller nonzero values are raised to this
MIN_COLMAX = 34

MODULE_SUFFIX = ".c++m"


def munge(name: str, trail: Optional[str] = None) -> str:
    """
    Apply Make quoting to ``name`` followed by ``trail``.

    ``$`` becomes ``$$`` and ``#`` becomes ``\\#``. GNU Make reads a space
    or tab preceded by 2N+1 backslashes as N backslashes and a space, so
    whitespace gets its preceding backslashes doubled plus one more. Other
    backslashes are left alone. Newlines, ``%``, ``*``, ``?``, ``[`` and
    ``~`` cannot be quoted reliably in any Make and are passed through.
    """
    out = []

    for part in (name, trail):
        if part is None:
            continue
        slashes = 0
        for c in part:
            if c == '\\':
                slashes += 1
            elif c == '$':
                out.append('$')
                slashes = 0
            elif c in ' \t':
                out.append('\\' * slashes)
                out.append('\\')
                slashes = 0
            elif c == '#':
                out.append('\\')
                slashes = 0
            else:
                slashes = 0
            out.append(c)

    return ''.join(out)


class MakefileWriter:
    """Writes space-separated names to a stream, wrapping at ``colmax``."""

    def __init__(self, fp: TextIO, colmax: int = 0):
        self.fp = fp
        if colmax and colmax < MIN_COLMAX:
            colmax = MIN_COLMAX
        self.colmax = colmax

    def write(self, text: str) -> int:
        """Write raw text and return its length."""
        self.fp.write(text)
        return len(text)

    def write_name(self, name: str, col: int, quote: bool = True,
                   trail: Optional[str] = None) -> int:
        """
        Write ``name`` preceded by a space unless at column 0.

        Returns the new column. ``trail`` is only appended to quoted names.
        """
        if quote:
            name = munge(name, trail)

        if col:
            if self.colmax and col + len(name) > self.colmax:
                self.fp.write(" \\\n")
                col = 0
            col += 1
            self.fp.write(" ")

        self.fp.write(name)
        return col + len(name)

    def write_names(self, names: Iterable[str], col: int, quote_lwm: int = 0,
                    trail: Optional[str] = None) -> int:
        """Write names in order; those at index >= quote_lwm are quoted."""
        for ix, name in enumerate(names):
            col = self.write_name(name, col, ix >= quote_lwm, trail)
        return col


def write_makefile(ledger: DependencyLedger, fp: TextIO, colmax: int = 0,
                   phony_targets: bool = False, modules: bool = False):
    """
    Write the ledger as Make rules.

    Args:
        ledger: Recorded targets, dependencies and modules
        fp: Text stream to write to
        colmax: Wrap column (0 disables wrapping)
        phony_targets: Emit an empty rule for every dependency after the first
        modules: Emit C++ module rules as well
    """
    out = MakefileWriter(fp, colmax)

    if ledger.deps:
        column = out.write_names(ledger.targets, 0, ledger.quote_lwm)
        if modules and ledger.cmi_name:
            column = out.write_name(ledger.cmi_name, column)
        column += out.write(":")
        out.write_names(ledger.deps, column)
        out.write("\n")

        if phony_targets:
            for dep in ledger.deps[1:]:
                out.write(f"{munge(dep)}:\n")

    if not modules:
        return

    if ledger.modules:
        column = out.write_names(ledger.targets, 0, ledger.quote_lwm)
        if ledger.cmi_name:
            column = out.write_name(ledger.cmi_name, column)
        column += out.write(":")
        out.write_names(ledger.modules, column, 0, MODULE_SUFFIX)
        out.write("\n")

    if ledger.module_name:
        if ledger.cmi_name:
            # module-name : cmi-name
            column = out.write_name(ledger.module_name, 0, True, MODULE_SUFFIX)
            column += out.write(":")
            out.write_name(ledger.cmi_name, column)
            out.write("\n")

            column = out.write(".PHONY:")
            out.write_name(ledger.module_name, column, True, MODULE_SUFFIX)
            out.write("\n")

        if ledger.cmi_name and not ledger.is_header_unit and ledger.targets:
            # Order-only dependency: cmi-name :| first-target
            column = out.write_name(ledger.cmi_name, 0)
            out.write(":|")
            column += 1
            out.write_name(ledger.targets[0], column)
            out.write("\n")

    if ledger.modules:
        column = out.write("CXX_IMPORTS +=")
        out.write_names(ledger.modules, column, 0, MODULE_SUFFIX)
        out.write("\n")
