"""
Maximum expected accuracy (MEA) structures.

The MEA structure maximises::

    sum over pairs (i,j) of 2*gamma*p_ij  +  sum over unpaired i of pu_i

where ``pu_i = 1 - sum_j p_ij``. ``gamma > 1`` favours sensitivity (more
pairs), ``gamma < 1`` favours specificity.

Two probability variants exist and the choice between them is explicit:

- ``PlainPairProbabilities``: a sparse pair list; the optimisation runs here.
- ``QuadruplexPairProbabilities``: the model includes G-quadruplexes, whose
  contributions the sparse list cannot express; the optimisation is done by
  the engine on the whole folding context.

Use :func:`pair_probabilities` to get the right variant for a context and
:func:`mea_structure` to optimise it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

import numpy as np

from .plist import ProbabilityList, from_probabilities

if TYPE_CHECKING:
    from .engine import FoldingContext, FoldingEngine

__all__ = [
    "PlainPairProbabilities",
    "QuadruplexPairProbabilities",
    "PairProbabilities",
    "mea_cutoff",
    "pair_probabilities",
    "mea_structure",
    "mea_fold",
]

MIN_HAIRPIN = 3


@dataclass(frozen=True)
class PlainPairProbabilities:
    sequence: str
    pairs: tuple[tuple[int, int, float], ...]


@dataclass(frozen=True)
class QuadruplexPairProbabilities:
    sequence: str
    context: FoldingContext


PairProbabilities = Union[PlainPairProbabilities, QuadruplexPairProbabilities]


def mea_cutoff(gamma: float) -> float:
    """Smallest probability that can still contribute to an MEA pair."""
    return 1e-4 / (1.0 + gamma)


def pair_probabilities(
    ctx: FoldingContext, bpp: np.ndarray, gamma: float
) -> PairProbabilities:
    """Pick the probability variant the context's model requires."""
    if ctx.model.gquad:
        return QuadruplexPairProbabilities(sequence=ctx.sequence, context=ctx)
    plist: ProbabilityList = from_probabilities(bpp, mea_cutoff(gamma))
    return PlainPairProbabilities(
        sequence=ctx.sequence,
        pairs=tuple((e.i, e.j, e.p) for e in plist),
    )


def mea_structure(
    probs: PairProbabilities, gamma: float, engine: FoldingEngine
) -> tuple[str, float]:
    """Return ``(structure, expected accuracy)`` for either variant."""
    if isinstance(probs, QuadruplexPairProbabilities):
        return engine.mea_quadruplex(probs.context, gamma)
    if isinstance(probs, PlainPairProbabilities):
        return mea_fold(len(probs.sequence), probs.pairs, gamma)
    raise TypeError(f"Unsupported probability variant: {type(probs).__name__}")


def mea_fold(
    n: int, pairs: tuple[tuple[int, int, float], ...], gamma: float
) -> tuple[str, float]:
    """Nested MEA structure over a sparse 1-based pair list.

    Args:
        n: Sequence length
        pairs: (i, j, p) with i < j
        gamma: Weight of paired against unpaired accuracy

    Returns:
        Tuple of (dot-bracket structure, expected accuracy)
    """
    if n == 0:
        return "", 0.0

    pu = np.ones(n + 2)
    by_j: dict[int, list[tuple[int, float]]] = {}
    for i, j, p in pairs:
        pu[i] -= p
        pu[j] -= p
        if j - i - 1 >= MIN_HAIRPIN:
            by_j.setdefault(j, []).append((i, 2.0 * gamma * p))
    np.clip(pu, 0.0, 1.0, out=pu)

    # M[i, j] = best score on [i, j]; M[i, i-1] = 0
    # T[i, j] = 5' partner of j in that optimum, 0 when j is unpaired
    M = np.zeros((n + 2, n + 2))
    T = np.zeros((n + 2, n + 2), dtype=np.int64)
    for d in range(0, n):
        for i in range(1, n - d + 1):
            j = i + d
            best = M[i, j - 1] + pu[j]
            choice = 0
            for k, w in by_j.get(j, ()):
                if k < i:
                    continue
                score = M[i, k - 1] + M[k + 1, j - 1] + w
                if score > best:
                    best = score
                    choice = k
            M[i, j] = best
            T[i, j] = choice

    chars = ["."] * n
    stack = [(1, n)]
    while stack:
        i, j = stack.pop()
        if i >= j:
            continue
        k = int(T[i, j])
        if k == 0:
            stack.append((i, j - 1))
            continue
        chars[k - 1] = "("
        chars[j - 1] = ")"
        stack.append((i, k - 1))
        stack.append((k + 1, j - 1))

    return "".join(chars), float(M[1, n])
