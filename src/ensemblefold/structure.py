"""
Dot-bracket helpers shared by motif detection, probability lists and the
ensemble statistics.

All positions handled here are 1-based, matching the folding engine's pair
tables: ``pt[0]`` holds the sequence length and ``pt[i] == 0`` means
position ``i`` is unpaired.
"""

from __future__ import annotations

__all__ = [
    "OPEN_TO_CLOSE",
    "CLOSE_TO_OPEN",
    "parse_structure_to_pairs",
    "pair_table",
    "pairs_to_structure",
    "is_balanced",
    "loop_contexts",
]

# Bracket types for WUSS notation
OPEN_TO_CLOSE = {
    "(": ")",
    "[": "]",
    "{": "}",
    "<": ">",
}
# Add a-z -> A-Z
for _i in range(26):
    OPEN_TO_CLOSE[chr(ord("a") + _i)] = chr(ord("A") + _i)

CLOSE_TO_OPEN = {v: k for k, v in OPEN_TO_CLOSE.items()}

# Loop context codes for unpaired positions
EXTERIOR = "E"
HAIRPIN = "H"
INTERIOR = "I"
MULTI = "M"


def parse_structure_to_pairs(struct: str) -> list[tuple[int, int]]:
    """Parse a dot-bracket structure into base pairs.

    Unmatched brackets are ignored; use :func:`is_balanced` to reject them.

    Args:
        struct: Dot-bracket string (may include pseudoknot brackets)

    Returns:
        Sorted list of 1-based (i, j) pairs with i < j
    """
    stacks: dict[str, list[int]] = {op: [] for op in OPEN_TO_CLOSE}
    pairs = []

    for pos, ch in enumerate(struct, start=1):
        if ch in OPEN_TO_CLOSE:
            stacks[ch].append(pos)
        elif ch in CLOSE_TO_OPEN:
            open_ch = CLOSE_TO_OPEN[ch]
            if stacks[open_ch]:
                i = stacks[open_ch].pop()
                pairs.append((i, pos))

    return sorted(pairs)


def pair_table(struct: str) -> list[int]:
    """Return the 1-based pair table of ``struct``."""
    pt = [0] * (len(struct) + 1)
    pt[0] = len(struct)
    for i, j in parse_structure_to_pairs(struct):
        pt[i] = j
        pt[j] = i
    return pt


def pairs_to_structure(pairs: list[tuple[int, int]], length: int) -> str:
    """Convert nested 1-based pairs to a plain ``()`` dot-bracket string."""
    chars = ["."] * length
    for i, j in pairs:
        if i > j:
            i, j = j, i
        chars[i - 1] = "("
        chars[j - 1] = ")"
    return "".join(chars)


def is_balanced(struct: str) -> bool:
    """True when every bracket in ``struct`` has a partner of its own type."""
    stacks: dict[str, int] = {op: 0 for op in OPEN_TO_CLOSE}
    for ch in struct:
        if ch in OPEN_TO_CLOSE:
            stacks[ch] += 1
        elif ch in CLOSE_TO_OPEN:
            op = CLOSE_TO_OPEN[ch]
            if stacks[op] == 0:
                return False
            stacks[op] -= 1
    return not any(stacks.values())


def loop_contexts(struct: str) -> list[str]:
    """Classify every position by the loop it lies in.

    Paired positions get ``""``; unpaired positions get one of
    ``E`` (exterior), ``H`` (hairpin), ``I`` (interior/bulge) or
    ``M`` (multibranch). Only the nested ``()`` layer is considered.

    Returns:
        List of length ``len(struct) + 1``; index 0 is unused.
    """
    n = len(struct)
    pt = [0] * (n + 1)
    stack: list[int] = []
    for pos, ch in enumerate(struct, start=1):
        if ch == "(":
            stack.append(pos)
        elif ch == ")" and stack:
            i = stack.pop()
            pt[i] = pos
            pt[pos] = i

    ctx = [""] * (n + 1)

    # exterior loop
    p = 1
    while p <= n:
        if pt[p] > p:
            p = pt[p] + 1
            continue
        if pt[p] == 0:
            ctx[p] = EXTERIOR
        p += 1

    for i in range(1, n + 1):
        j = pt[i]
        if j <= i:
            continue
        branches = 0
        p = i + 1
        while p < j:
            if pt[p] > p:
                branches += 1
                p = pt[p] + 1
            else:
                p += 1
        code = HAIRPIN if branches == 0 else INTERIOR if branches == 1 else MULTI
        # only unpaired positions directly enclosed by (i, j)
        p = i + 1
        while p < j:
            if pt[p] > p:
                p = pt[p] + 1
                continue
            if pt[p] == 0:
                ctx[p] = code
            p += 1

    return ctx

