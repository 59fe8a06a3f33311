"""
Constraint composition.

All constraint sources for a record are collected into one immutable
``ConstraintPlan`` before the folding context is built. The plan applies its
sources in a fixed total order:

    1. constraint file          (exclusive with 2; the file wins)
    2. inline dot-bracket       (from the record's trailing lines)
    3. SHAPE pseudo-energies
    4. ligand motifs
    5. directive script         (last, may override everything above)

Length rules for the inline constraint: longer than the sequence is fatal,
shorter is a warning and the constraint is right-padded with ``.``.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

from .config import RunConfig
from .directives import DOMAIN, Directive, read_directives
from .errors import ConstraintLengthError, FileIOError, ParseError
from .motifs import LigandMotif, MotifRegistry, UnstructuredDomain

__all__ = [
    "DotBracketConstraint",
    "ShapeData",
    "ConstraintPlan",
    "ConstraintComposer",
    "extract_inline_constraint",
    "fit_constraint",
    "parse_shape_method",
    "read_shape_file",
]

SOURCE_FILE = "file"
SOURCE_INLINE = "inline"
SOURCE_SHAPE = "shape"
SOURCE_LIGAND = "ligand"
SOURCE_COMMANDS = "commands"


CONSTRAINT_SYMBOLS = set(".()|x<>[]{}+")

SHAPE_MISSING = -999.0


@dataclass(frozen=True)
class DotBracketConstraint:
    structure: str
    enforce: bool = False
    canonical_only: bool = False


@dataclass(frozen=True)
class ShapeData:
    """SHAPE reactivities (1-based, index 0 unused, missing = SHAPE_MISSING)."""

    reactivities: tuple[float, ...]
    method: str = "D"
    slope: float = 1.8
    intercept: float = -0.6
    beta: float = 0.89
    conversion: str = "O"


@dataclass(frozen=True)
class ConstraintPlan:
    """Everything that constrains one fold, in application order."""

    sequence: str
    file_directives: tuple[Directive, ...] = ()
    dot_bracket: Optional[DotBracketConstraint] = None
    shape: Optional[ShapeData] = None
    ligands: tuple[LigandMotif, ...] = ()
    directives: tuple[Directive, ...] = ()
    domains: tuple[UnstructuredDomain, ...] = ()
    constraint_file: Optional[Path] = None

    @property
    def sources(self) -> tuple[str, ...]:
        active = []
        if self.constraint_file is not None:
            active.append(SOURCE_FILE)
        if self.dot_bracket is not None:
            active.append(SOURCE_INLINE)
        if self.shape is not None:
            active.append(SOURCE_SHAPE)
        if self.ligands:
            active.append(SOURCE_LIGAND)
        if self.directives or self.domains:
            active.append(SOURCE_COMMANDS)
        return tuple(active)

    @property
    def active(self) -> bool:
        return bool(self.sources)

    def steps(self) -> Iterator[tuple[str, object]]:
        """Yield ``(source, payload)`` in application order."""
        for d in self.file_directives:
            yield SOURCE_FILE, d
        if self.dot_bracket is not None:
            yield SOURCE_INLINE, self.dot_bracket
        if self.shape is not None:
            yield SOURCE_SHAPE, self.shape
        for m in self.ligands:
            yield SOURCE_LIGAND, m
        for d in self.directives:
            yield SOURCE_COMMANDS, d
        for u in self.domains:
            yield SOURCE_COMMANDS, u

    def registry(self) -> MotifRegistry:
        return MotifRegistry(ligands=list(self.ligands), domains=list(self.domains))


def extract_inline_constraint(rest: Sequence[str], multiline: bool = False) -> Optional[str]:
    """Pull a pseudo dot-bracket constraint out of a record's trailing lines.

    Only a leading run of lines made purely of constraint symbols is used;
    without ``multiline`` only the first such line is taken.
    """
    parts: list[str] = []
    for line in rest:
        line = line.strip()
        if not line:
            continue
        if not set(line) <= CONSTRAINT_SYMBOLS:
            break
        parts.append(line)
        if not multiline:
            break
    if not parts:
        return None
    return "".join(parts)


def fit_constraint(constraint: Optional[str], length: int) -> Optional[str]:
    """Apply the length rules to an inline constraint.

    Raises:
        ConstraintLengthError: if the constraint is longer than the sequence
    """
    cl = len(constraint) if constraint else 0
    if cl == 0:
        sys.stderr.write("[WARN] structure constraint is missing\n")
        return None
    if cl > length:
        raise ConstraintLengthError(cl, length)
    if cl < length:
        sys.stderr.write("[WARN] structure constraint is shorter than sequence\n")
        constraint = constraint.ljust(length, ".")
    return constraint


_DEIGAN_RE = re.compile(r"^D(?:m(?P<m>[-+]?[\d.]+))?(?:b(?P<b>[-+]?[\d.]+))?$")
_ZARRINGHALAM_RE = re.compile(r"^Z(?:b(?P<b>[-+]?[\d.]+))?$")


def parse_shape_method(method: str) -> dict[str, Union[str, float]]:
    """Parse ``D[mX][bY]`` (Deigan) or ``Z[bX]`` (Zarringhalam).

    Raises:
        ParseError: for any other method string
    """
    method = (method or "D").strip()
    m = _DEIGAN_RE.match(method)
    if m:
        return {
            "method": "D",
            "slope": float(m.group("m")) if m.group("m") else 1.8,
            "intercept": float(m.group("b")) if m.group("b") else -0.6,
        }
    m = _ZARRINGHALAM_RE.match(method)
    if m:
        return {"method": "Z", "beta": float(m.group("b")) if m.group("b") else 0.89}
    raise ParseError(f"Method for SHAPE reactivity data conversion not recognized: {method!r}")


def read_shape_file(path: Path, length: int) -> tuple[float, ...]:
    """Read ``<pos> [<nt>] <value>`` lines into a 1-based reactivity vector."""
    values = [SHAPE_MISSING] * (length + 1)
    try:
        fh = Path(path).open()
    except OSError as e:
        raise FileIOError(f"Unable to open SHAPE file \"{path}\" for reading") from e
    with fh:
        for raw in fh:
            parts = raw.split()
            if len(parts) < 2 or parts[0].startswith("#"):
                continue
            try:
                pos = int(parts[0])
                val = float(parts[-1])
            except ValueError:
                continue
            if not 1 <= pos <= length:
                continue
            values[pos] = val
    return tuple(values)


@dataclass
class ConstraintComposer:
    """Builds a ``ConstraintPlan`` per record from the run configuration.

    File-based sources (constraint file, directive script) are read once
    and reused for every record.
    """

    cfg: RunConfig
    _file_directives: Optional[list[Directive]] = field(default=None, init=False)
    _commands: Optional[list[Directive]] = field(default=None, init=False)

    def __post_init__(self) -> None:
        if self.cfg.constrained and self.cfg.constraint_file is not None:
            directives = read_directives(self.cfg.constraint_file, source="constraint file")
            kept = []
            for d in directives:
                if d.command == DOMAIN:
                    sys.stderr.write(
                        f"[WARN] constraint file line {d.line}: UD is not a structure "
                        "constraint, ignored\n"
                    )
                    continue
                kept.append(d)
            self._file_directives = kept
        if self.cfg.commands_file is not None:
            self._commands = read_directives(self.cfg.commands_file, source="commands")

    def compose(
        self,
        sequence: str,
        rest: Sequence[str] = (),
        maybe_multiline: bool = False,
    ) -> ConstraintPlan:
        cfg = self.cfg
        length = len(sequence)

        file_directives: tuple[Directive, ...] = ()
        dot_bracket = None
        if cfg.constrained:
            if self._file_directives is not None:
                file_directives = tuple(self._checked(self._file_directives, length))
            else:
                cstruc = extract_inline_constraint(rest, multiline=maybe_multiline)
                cstruc = fit_constraint(cstruc, length)
                if cstruc is not None:
                    dot_bracket = DotBracketConstraint(
                        structure=cstruc,
                        enforce=cfg.constraint_enforce,
                        canonical_only=cfg.constraint_canonical,
                    )

        shape = None
        if cfg.shape:
            shape = self._shape(length)

        ligands: tuple[LigandMotif, ...] = ()
        if cfg.ligand_motif:
            registry = MotifRegistry()
            motif = registry.add_ligand_spec(cfg.ligand_motif, verbose=cfg.verbose)
            if motif is not None:
                ligands = (motif,)

        directives: tuple[Directive, ...] = ()
        domains: tuple[UnstructuredDomain, ...] = ()
        if self._commands:
            checked = self._checked(self._commands, length)
            directives = tuple(d for d in checked if d.command != DOMAIN)
            domains = tuple(
                UnstructuredDomain(
                    sequence=d.motif,
                    energy=d.energy,
                    loop_types=d.loop_types,
                    name=f"ud{n}",
                )
                for n, d in enumerate(d for d in checked if d.command == DOMAIN)
            )

        return ConstraintPlan(
            sequence=sequence,
            file_directives=file_directives,
            dot_bracket=dot_bracket,
            shape=shape,
            ligands=ligands,
            directives=directives,
            domains=domains,
            constraint_file=(
                cfg.constraint_file
                if cfg.constrained and self._file_directives is not None
                else None
            ),
        )

    def _checked(self, directives: Sequence[Directive], length: int) -> list[Directive]:
        out = []
        for d in directives:
            try:
                d.check(length)
            except ParseError as e:
                sys.stderr.write(f"[WARN] Skipping directive: {e}\n")
                continue
            out.append(d)
        return out

    def _shape(self, length: int) -> Optional[ShapeData]:
        cfg = self.cfg
        try:
            method = parse_shape_method(cfg.shape_method)
        except ParseError as e:
            sys.stderr.write(f"[WARN] {e}; SHAPE data ignored\n")
            return None
        reactivities = read_shape_file(cfg.shape_file, length)
        if cfg.verbose:
            n = sum(1 for v in reactivities[1:] if v != SHAPE_MISSING)
            sys.stderr.write(
                f"[INFO] Read {n} SHAPE reactivities from {cfg.shape_file} "
                f"(method {cfg.shape_method})\n"
            )
        return ShapeData(
            reactivities=reactivities,
            conversion=cfg.shape_conversion,
            **method,
        )
