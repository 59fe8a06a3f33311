"""
Directive scripts and constraint files.

Both use the same line-oriented command grammar (positions are 1-based)::

    F i j k          force k stacked pairs (i,j), (i+1,j-1), ...
    F i 0 k          force positions i..i+k-1 to be paired
    P i j k          prohibit k stacked pairs
    P i 0 k          prohibit positions i..i+k-1 from pairing
    E i 0 k e        add pseudo-energy e to unpaired positions i..i+k-1
    E i j k e        add pseudo-energy e to k stacked pairs
    UD motif e [L]   register an unstructured-domain motif with binding
                     energy e for loop types L (A, E, H, I, M; default A)

``#`` starts a comment. Malformed lines are reported and skipped.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

from .errors import FileIOError, ParseError

__all__ = [
    "Directive",
    "parse_directive",
    "parse_directives",
    "read_directives",
]

FORCE = "F"
PROHIBIT = "P"
ENERGY = "E"
DOMAIN = "UD"

COMMANDS = (FORCE, PROHIBIT, ENERGY, DOMAIN)


@dataclass(frozen=True)
class Directive:
    command: str
    i: int = 0
    j: int = 0
    k: int = 1
    energy: float = 0.0
    motif: str = ""
    loop_types: str = "EHIM"
    source: str = "commands"
    line: int = 0

    @property
    def positions(self) -> list[int]:
        return list(range(self.i, self.i + self.k))

    @property
    def pairs(self) -> list[tuple[int, int]]:
        return [(self.i + n, self.j - n) for n in range(self.k)]

    def max_position(self) -> int:
        if self.command == DOMAIN:
            return 0
        if self.j:
            return max(self.i + self.k - 1, self.j)
        return self.i + self.k - 1

    def check(self, length: int) -> None:
        """Raise ParseError when the directive does not fit a sequence of ``length``."""
        if self.command == DOMAIN:
            return
        if self.i < 1 or self.max_position() > length:
            raise ParseError(
                f"{self.source} line {self.line}: positions out of range for length {length}"
            )
        if self.j:
            for a, b in self.pairs:
                if a >= b:
                    raise ParseError(
                        f"{self.source} line {self.line}: pair ({a},{b}) is not i < j"
                    )


def _loop_types(token: str) -> str:
    token = token.upper()
    if "A" in token:
        return "EHIM"
    bad = set(token) - set("EHIM")
    if bad:
        raise ParseError(f"unknown loop type(s) {''.join(sorted(bad))}")
    return "".join(ch for ch in "EHIM" if ch in token)


def parse_directive(line: str, source: str = "commands", lineno: int = 0) -> Directive:
    """Parse one non-empty, non-comment line."""
    parts = line.split()
    cmd = parts[0].upper()
    args = parts[1:]
    try:
        if cmd == DOMAIN:
            if len(args) < 2:
                raise ParseError("UD needs a motif and an energy")
            loops = _loop_types(args[2]) if len(args) > 2 else "EHIM"
            return Directive(
                command=DOMAIN,
                motif=args[0].upper(),
                energy=float(args[1]),
                loop_types=loops,
                source=source,
                line=lineno,
            )
        if cmd in (FORCE, PROHIBIT):
            if len(args) < 2:
                raise ParseError(f"{cmd} needs at least i and j")
            i, j = int(args[0]), int(args[1])
            k = int(args[2]) if len(args) > 2 else 1
            return Directive(command=cmd, i=i, j=j, k=k, source=source, line=lineno)
        if cmd == ENERGY:
            if len(args) < 4:
                raise ParseError("E needs i, j, k and an energy")
            return Directive(
                command=ENERGY,
                i=int(args[0]),
                j=int(args[1]),
                k=int(args[2]),
                energy=float(args[3]),
                source=source,
                line=lineno,
            )
    except ParseError as e:
        raise ParseError(f"{source} line {lineno}: {e}") from None
    except ValueError as e:
        raise ParseError(f"{source} line {lineno}: bad number ({e})") from e
    raise ParseError(f"{source} line {lineno}: unknown command {parts[0]!r}")


def parse_directives(text: str, source: str = "commands") -> list[Directive]:
    """Parse a whole script; malformed lines are reported and skipped."""
    out: list[Directive] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        try:
            d = parse_directive(line, source=source, lineno=lineno)
        except ParseError as e:
            sys.stderr.write(f"[WARN] Skipping directive: {e}\n")
            continue
        if d.k < 1:
            sys.stderr.write(f"[WARN] Skipping directive: {source} line {lineno}: k < 1\n")
            continue
        out.append(d)
    return out


def read_directives(path: Path, source: str = "commands") -> list[Directive]:
    try:
        text = Path(path).read_text()
    except OSError as e:
        raise FileIOError(f"Unable to open {source} file \"{path}\" for reading") from e
    return parse_directives(text, source=source)
