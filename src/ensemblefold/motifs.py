"""
Ligand-binding motifs and unstructured domains.

A ligand motif is a sequence/structure fragment that receives an extrinsic
stabilising energy when the folded structure contains it, e.g. an aptamer
pocket. Hairpin motifs are a single strand whose first and last
nucleotides pair with each other::

    GAUACCAG,(......)

Interior-loop motifs are two strands separated by ``&``; the first strand
opens the enclosing pair and the inner pair, the second strand closes them::

    GAUACCAG&CCCUUGGCAGC,(...((((&)...)))...)

Unstructured domains are sequence motifs that bind something only while
single stranded. Both kinds are registered once per record and then
detected in any structure produced for that record.

All positions are 1-based.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .errors import ParseError
from .structure import is_balanced, loop_contexts, pair_table

__all__ = [
    "HAIRPIN",
    "INTERIOR",
    "LigandMotif",
    "MotifOccurrence",
    "UnstructuredDomain",
    "DomainOccurrence",
    "parse_ligand_motif",
    "MotifRegistry",
]

HAIRPIN = "hairpin"
INTERIOR = "interior"

LOOP_TYPES = "EHIM"

_FLOAT_RE = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")


@dataclass(frozen=True)
class LigandMotif:
    sequence: str
    structure: str
    energy: float

    def __post_init__(self) -> None:
        if not self.sequence:
            raise ParseError("Sequence length in ligand motif is zero!")
        if len(self.sequence) != len(self.structure):
            raise ParseError(
                "Sequence and structure length in ligand motif have unequal lengths!"
            )

    @property
    def kind(self) -> str:
        return INTERIOR if "&" in self.sequence else HAIRPIN

    def strands(self) -> tuple[tuple[str, str], Optional[tuple[str, str]]]:
        """Split into ``(seq5, struct5)`` and, for interior motifs, ``(seq3, struct3)``."""
        if self.kind == HAIRPIN:
            return (self.sequence, self.structure), None
        s5, s3 = self.sequence.split("&", 1)
        t5, t3 = self.structure.split("&", 1)
        return (s5, t5), (s3, t3)

    def is_well_formed(self) -> bool:
        """Whether the structure describes a closed hairpin or interior loop."""
        (s5, t5), three = self.strands()
        if three is None:
            return (
                len(t5) >= 2
                and t5[0] == "("
                and t5[-1] == ")"
                and is_balanced(t5)
                and pair_table(t5)[1] == len(t5)
            )
        s3, t3 = three
        if len(s5) != len(t5) or len(s3) != len(t3) or "&" in s3:
            return False
        if not t5 or not t3:
            return False
        return (
            t5[0] == "("
            and t5[-1] == "("
            and t3[0] == ")"
            and t3[-1] == ")"
            and is_balanced(t5 + t3)
        )


@dataclass(frozen=True, order=True)
class MotifOccurrence:
    """One detected motif.

    Hairpin occurrences cover ``[i:j]`` and have ``k == i``, ``l == j``.
    Interior occurrences have the enclosing pair ``(i, j)`` and the inner
    pair ``(k, l)``; the 5' strand is ``[i:k]``, the 3' strand ``[l:j]``.
    """

    i: int
    j: int
    k: int
    l: int
    kind: str = field(default=HAIRPIN, compare=False)

    @classmethod
    def hairpin(cls, i: int, j: int) -> MotifOccurrence:
        return cls(i, j, i, j, HAIRPIN)

    @classmethod
    def interior(cls, i: int, j: int, k: int, l: int) -> MotifOccurrence:
        return cls(i, j, k, l, INTERIOR)

    @property
    def is_hairpin(self) -> bool:
        return self.kind == HAIRPIN


@dataclass(frozen=True)
class UnstructuredDomain:
    sequence: str
    energy: float
    loop_types: str = LOOP_TYPES
    name: str = ""

    @property
    def size(self) -> int:
        return len(self.sequence)


@dataclass(frozen=True, order=True)
class DomainOccurrence:
    start: int
    number: int
    size: int = field(compare=False)

    @property
    def end(self) -> int:
        return self.start + self.size - 1


def parse_ligand_motif(spec: str) -> LigandMotif:
    """Parse ``"<sequence>,<structure>,<energy>"``.

    The sequence is upper-cased; the energy is read from the start of the
    third field (trailing text is ignored).

    Raises:
        ParseError: on a missing or unparsable energy, unequal sequence and
            structure lengths, or an empty sequence
    """
    parts = spec.split(",", 2)
    seq = parts[0].strip().upper()
    struct = parts[1].strip() if len(parts) > 1 else ""
    if len(parts) < 3:
        raise ParseError("Energy contribution in ligand motif missing!")
    try:
        energy = float(parts[2].strip())
    except ValueError:
        m = _FLOAT_RE.match(parts[2])
        if m is None:
            raise ParseError("Energy contribution in ligand motif missing!") from None
        energy = float(m.group(1))
    return LigandMotif(sequence=seq, structure=struct, energy=energy)


def _find_all(haystack: str, needle: str) -> Iterator[int]:
    """1-based start positions of (possibly overlapping) matches."""
    start = haystack.find(needle)
    while start != -1:
        yield start + 1
        start = haystack.find(needle, start + 1)


@dataclass
class MotifRegistry:
    """Motifs registered for one record."""

    ligands: list[LigandMotif] = field(default_factory=list)
    domains: list[UnstructuredDomain] = field(default_factory=list)

    def add_ligand_spec(self, spec: str, verbose: bool = False) -> Optional[LigandMotif]:
        """Parse and register a ligand motif; malformed specs only warn."""
        try:
            motif = parse_ligand_motif(spec)
        except ParseError as e:
            sys.stderr.write(f"[WARN] {e}\n")
            motif = None
        else:
            if verbose:
                # fields as given
                fields = ", ".join(p.strip() for p in spec.split(",", 2))
                sys.stderr.write(f"[INFO] Read ligand motif: {fields}\n")

        if motif is None or not self.add_ligand_motif(motif):
            sys.stderr.write("[WARN] Malformatted ligand motif! Skipping stabilizing motif.\n")
            return None
        return motif

    def add_ligand_motif(self, motif: LigandMotif) -> bool:
        if not motif.is_well_formed():
            return False
        self.ligands.append(motif)
        return True

    def add_domain(self, domain: UnstructuredDomain) -> None:
        self.domains.append(domain)

    # ------------------------------------------------------------------
    # Ligand motif detection
    # ------------------------------------------------------------------

    def detect(self, sequence: str, structure: str) -> list[MotifOccurrence]:
        """Occurrences of registered ligand motifs in ``structure``, by ascending i."""
        if len(sequence) != len(structure):
            raise ValueError(
                f"Length mismatch: seq={len(sequence)}, struct={len(structure)}"
            )
        seq = sequence.upper()
        pt = pair_table(structure)
        found: set[MotifOccurrence] = set()

        for motif in self.ligands:
            (s5, t5), three = motif.strands()
            for i in _find_all(seq, s5):
                if structure[i - 1 : i - 1 + len(t5)] != t5:
                    continue
                if three is None:
                    found.add(MotifOccurrence.hairpin(i, i + len(s5) - 1))
                    continue
                s3, t3 = three
                j = pt[i]
                k = i + len(s5) - 1
                l = j - len(s3) + 1
                if j <= k or l <= k:
                    continue
                if seq[l - 1 : j] != s3 or structure[l - 1 : j] != t3:
                    continue
                if pt[k] != l:
                    continue
                found.add(MotifOccurrence.interior(i, j, k, l))

        return sorted(found)

    def all_sites(self, sequence: str) -> list[MotifOccurrence]:
        """Every place the registered motifs could form, regardless of structure.

        Used to mark possible ligand-binding sites in the probability dot plot.
        """
        seq = sequence.upper()
        found: set[MotifOccurrence] = set()
        for motif in self.ligands:
            (s5, _t5), three = motif.strands()
            for i in _find_all(seq, s5):
                if three is None:
                    found.add(MotifOccurrence.hairpin(i, i + len(s5) - 1))
                    continue
                s3, _t3 = three
                k = i + len(s5) - 1
                for l in _find_all(seq, s3):
                    if l > k:
                        found.add(MotifOccurrence.interior(i, l + len(s3) - 1, k, l))
        return sorted(found)

    # ------------------------------------------------------------------
    # Unstructured domain detection
    # ------------------------------------------------------------------

    def detect_domains(self, sequence: str, structure: str) -> list[DomainOccurrence]:
        """Unstructured-domain motifs lying in single-stranded loops of ``structure``.

        A motif occurrence counts only when every nucleotide it covers is
        unpaired and lies in a loop type the motif was registered for.
        """
        if not self.domains:
            return []
        seq = sequence.upper()
        ctx = loop_contexts(structure)
        found: list[DomainOccurrence] = []
        for number, domain in enumerate(self.domains):
            allowed = set(domain.loop_types)
            for start in _find_all(seq, domain.sequence.upper()):
                window = ctx[start : start + domain.size]
                if all(c and c in allowed for c in window):
                    found.append(DomainOccurrence(start, number, domain.size))
        return sorted(found)
