"""
Sparse base pair probability lists for dot plots.

A ``ProbabilityList`` is an ordered list of ``ProbabilityEntry`` values that
is unique on ``(i, j)``. It grows its backing store in fixed chunks and
carries its own length, so appending never requires a scan to the end of
the list.

Merging motif occurrences appends new entries in detection order and never
reorders existing ones. When an occurrence hits a pair that is already
listed, the entry is upgraded in place: it keeps the higher-ranked
provenance and the larger probability. Because both are maxima, merging
two occurrence sets in either order yields the same set of entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence

import numpy as np

from .motifs import MotifOccurrence
from .structure import parse_structure_to_pairs

__all__ = [
    "BASEPAIR",
    "MFE_PAIR",
    "STACK",
    "HAIRPIN_MOTIF",
    "INTERIOR_MOTIF",
    "CERTAIN_PROBABILITY",
    "GROWTH_CHUNK",
    "ProbabilityEntry",
    "ProbabilityList",
    "from_probabilities",
    "from_structure",
    "from_pairs",
]

BASEPAIR = "basepair"
MFE_PAIR = "mfe-pair"
STACK = "stack"
HAIRPIN_MOTIF = "hairpin-motif"
INTERIOR_MOTIF = "interior-motif"

PROVENANCE_RANK = {
    BASEPAIR: 0,
    MFE_PAIR: 1,
    STACK: 2,
    HAIRPIN_MOTIF: 3,
    INTERIOR_MOTIF: 4,
}

# Weight drawn for pairs known to be present (0.95 squared)
CERTAIN_PROBABILITY = 0.95 * 0.95

GROWTH_CHUNK = 10


@dataclass(frozen=True)
class ProbabilityEntry:
    i: int
    j: int
    p: float
    provenance: str = BASEPAIR

    def __post_init__(self) -> None:
        if not 0 < self.i < self.j:
            raise ValueError(f"Invalid pair ({self.i}, {self.j}): need 0 < i < j")
        if not 0.0 <= self.p <= 1.0:
            raise ValueError(f"Probability {self.p} outside [0, 1]")
        if self.provenance not in PROVENANCE_RANK:
            raise ValueError(f"Unknown provenance {self.provenance!r}")

    def as_tuple(self) -> tuple[int, int, float, str]:
        return self.i, self.j, self.p, self.provenance


class ProbabilityList:
    """Growable, length-carrying list of probability entries."""

    def __init__(self, entries: Iterable[ProbabilityEntry] = ()) -> None:
        self._slots: list[Optional[ProbabilityEntry]] = []
        self._size = 0
        self._index: dict[tuple[int, int], int] = {}
        for e in entries:
            self.add(e)

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[ProbabilityEntry]:
        for n in range(self._size):
            yield self._slots[n]  # type: ignore[misc]

    def __getitem__(self, n: int) -> ProbabilityEntry:
        if n < 0:
            n += self._size
        if not 0 <= n < self._size:
            raise IndexError(n)
        return self._slots[n]  # type: ignore[return-value]

    def __contains__(self, pair: object) -> bool:
        return pair in self._index

    def __repr__(self) -> str:
        return f"ProbabilityList(size={self._size}, capacity={self.capacity})"

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def reserve(self, extra: int) -> None:
        """Make room for ``extra`` more entries, growing in whole chunks."""
        need = self._size + extra
        while len(self._slots) < need:
            self._slots.extend([None] * GROWTH_CHUNK)

    def shrink_to_fit(self) -> None:
        del self._slots[self._size :]

    def get(self, i: int, j: int) -> Optional[ProbabilityEntry]:
        n = self._index.get((i, j))
        return None if n is None else self._slots[n]

    def add(self, entry: ProbabilityEntry) -> None:
        """Append ``entry`` or upgrade the existing entry for the same pair."""
        key = (entry.i, entry.j)
        old = self.get(entry.i, entry.j)
        if old is not None:
            provenance = max(old.provenance, entry.provenance, key=PROVENANCE_RANK.__getitem__)
            p = max(old.p, entry.p)
            self._slots[self._index[key]] = ProbabilityEntry(entry.i, entry.j, p, provenance)
            return
        self.reserve(1)
        self._slots[self._size] = entry
        self._index[key] = self._size
        self._size += 1

    def merge(self, occurrences: Sequence[MotifOccurrence]) -> ProbabilityList:
        """Add motif occurrences in place and return ``self``.

        Hairpin occurrences add ``(i, j)``; interior occurrences add the
        enclosing pair ``(i, j)`` and the inner pair ``(k, l)``.
        """
        self.reserve(2 * len(occurrences))
        for occ in occurrences:
            if occ.is_hairpin:
                self.add(ProbabilityEntry(occ.i, occ.j, CERTAIN_PROBABILITY, HAIRPIN_MOTIF))
            else:
                self.add(ProbabilityEntry(occ.i, occ.j, CERTAIN_PROBABILITY, INTERIOR_MOTIF))
                self.add(ProbabilityEntry(occ.k, occ.l, CERTAIN_PROBABILITY, INTERIOR_MOTIF))
        self.shrink_to_fit()
        return self

    def as_set(self) -> set[tuple[int, int, str]]:
        return {(e.i, e.j, e.provenance) for e in self}

    def as_tuples(self) -> list[tuple[int, int, float, str]]:
        return [e.as_tuple() for e in self]


def from_probabilities(bpp: np.ndarray, threshold: float) -> ProbabilityList:
    """Entries with ``p >= threshold`` from a 1-based probability matrix.

    Only the strict upper triangle is read; entries come out sorted by
    ``(i, j)``.
    """
    probs = np.triu(np.asarray(bpp, dtype=float), k=1)
    probs[0, :] = 0.0
    mask = (probs >= threshold) & (probs > 0.0)
    out = ProbabilityList()
    idx = np.argwhere(mask)
    out.reserve(len(idx))
    for i, j in idx:
        out.add(ProbabilityEntry(int(i), int(j), float(min(1.0, probs[i, j])), BASEPAIR))
    out.shrink_to_fit()
    return out


def from_structure(structure: str) -> ProbabilityList:
    """One ``CERTAIN_PROBABILITY`` entry per base pair of ``structure``."""
    pairs = parse_structure_to_pairs(structure)
    return from_pairs(((i, j, CERTAIN_PROBABILITY) for i, j in pairs), MFE_PAIR)


def from_pairs(pairs: Iterable[tuple[int, int, float]], provenance: str) -> ProbabilityList:
    out = ProbabilityList()
    for i, j, p in sorted(pairs):
        out.add(ProbabilityEntry(i, j, p, provenance))
    out.shrink_to_fit()
    return out
