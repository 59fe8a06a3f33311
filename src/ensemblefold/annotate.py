"""
Plot annotations and log lines for detected motifs.

Annotation strings are PostScript drawing directives understood by the
structure plot: ``Fomark`` highlights a hairpin span, ``BFmark`` brackets the
two strands of an interior motif and ``omark`` outlines an unstructured
domain.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .motifs import DomainOccurrence, MotifOccurrence

__all__ = [
    "render_ligand_annotation",
    "render_domain_annotation",
    "ligand_log_lines",
    "domain_log_lines",
    "join_annotations",
]

HAIRPIN_MARK = "1. 0 0 Fomark"
INTERIOR_MARK = "1. 0 0 BFmark"
DOMAIN_MARK = "12 0.4 0.65 0.95 omark"


def render_ligand_annotation(occurrences: Iterable[MotifOccurrence]) -> Optional[str]:
    parts = []
    for m in occurrences:
        if m.is_hairpin:
            parts.append(f"{m.i} {m.j} {HAIRPIN_MARK}")
        else:
            parts.append(f"{m.i} {m.j} {m.k} {m.l} {INTERIOR_MARK}")
    return " ".join(parts) if parts else None


def render_domain_annotation(occurrences: Iterable[DomainOccurrence]) -> Optional[str]:
    parts = [f"{m.start} {m.end} {DOMAIN_MARK}" for m in occurrences]
    return " ".join(parts) if parts else None


def join_annotations(*annotations: Optional[str]) -> Optional[str]:
    parts = [a for a in annotations if a]
    return " ".join(parts) if parts else None


def ligand_log_lines(occurrences: Iterable[MotifOccurrence], structure_name: str) -> list[str]:
    lines = []
    for m in occurrences:
        if m.is_hairpin:
            lines.append(
                f"specified motif detected in {structure_name} structure: [{m.i}:{m.j}]"
            )
        else:
            lines.append(
                f"specified motif detected in {structure_name} structure: "
                f"[{m.i}:{m.k}] & [{m.l}:{m.j}]"
            )
    return lines


def domain_log_lines(occurrences: Iterable[DomainOccurrence], structure_name: str) -> list[str]:
    return [
        f"ud motif {m.number} detected in {structure_name} structure: [{m.start}:{m.end}]"
        for m in occurrences
    ]
