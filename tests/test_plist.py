"""Tests for probability lists and motif merging."""

import numpy as np
import pytest

from ensemblefold.motifs import MotifOccurrence
from ensemblefold.plist import (
    BASEPAIR,
    CERTAIN_PROBABILITY,
    GROWTH_CHUNK,
    HAIRPIN_MOTIF,
    INTERIOR_MOTIF,
    MFE_PAIR,
    ProbabilityEntry,
    ProbabilityList,
    from_pairs,
    from_probabilities,
    from_structure,
)


def test_certain_probability() -> None:
    assert CERTAIN_PROBABILITY == pytest.approx(0.9025)


class TestFromProbabilities:
    def test_threshold_and_order(self) -> None:
        bpp = np.zeros((6, 6))
        bpp[2, 4] = 0.3
        bpp[1, 5] = 0.9
        bpp[1, 3] = 1e-7
        bpp[5, 1] = 0.9  # lower triangle is ignored
        pl = from_probabilities(bpp, 1e-5)
        assert [(e.i, e.j) for e in pl] == [(1, 5), (2, 4)]
        assert pl[0].p == pytest.approx(0.9)
        assert all(e.provenance == BASEPAIR for e in pl)

    def test_nothing_above_threshold(self) -> None:
        assert len(from_probabilities(np.full((4, 4), 0.01), 0.5)) == 0


def test_from_structure() -> None:
    pl = from_structure("((...))")
    assert pl.as_tuples() == [
        (1, 7, CERTAIN_PROBABILITY, MFE_PAIR),
        (2, 6, CERTAIN_PROBABILITY, MFE_PAIR),
    ]


class TestGrowth:
    def test_capacity_grows_in_chunks(self) -> None:
        pl = ProbabilityList()
        assert pl.capacity == 0
        for n in range(GROWTH_CHUNK + 1):
            pl.add(ProbabilityEntry(1, n + 2, 0.5))
        assert len(pl) == GROWTH_CHUNK + 1
        assert pl.capacity == 2 * GROWTH_CHUNK
        pl.shrink_to_fit()
        assert pl.capacity == len(pl)

    def test_index_bounds(self) -> None:
        pl = from_structure("(.)")
        assert pl[-1].i == 1
        with pytest.raises(IndexError):
            pl[1]


class TestMerge:
    def test_appends_in_detection_order(self) -> None:
        pl = from_structure("((...))")
        pl.merge([MotifOccurrence.hairpin(3, 5)])
        assert [(e.i, e.j) for e in pl] == [(1, 7), (2, 6), (3, 5)]
        assert pl.get(3, 5).provenance == HAIRPIN_MOTIF

    def test_interior_adds_two_entries(self) -> None:
        pl = ProbabilityList().merge([MotifOccurrence.interior(1, 13, 4, 10)])
        assert pl.as_set() == {(1, 13, INTERIOR_MOTIF), (4, 10, INTERIOR_MOTIF)}

    def test_existing_pair_is_upgraded_not_duplicated(self) -> None:
        pl = from_structure("(((...)))")
        pl.merge([MotifOccurrence.hairpin(3, 7)])
        assert len(pl) == 3
        assert pl.get(3, 7).provenance == HAIRPIN_MOTIF
        assert (3, 7) in pl

    def test_merge_is_set_commutative(self) -> None:
        a = [MotifOccurrence.hairpin(2, 8)]
        b = [MotifOccurrence.interior(2, 8, 3, 7)]
        left = from_pairs([(1, 9, 0.5)], BASEPAIR).merge(a).merge(b)
        right = from_pairs([(1, 9, 0.5)], BASEPAIR).merge(b).merge(a)
        assert left.as_set() == right.as_set()
        assert sorted(left.as_tuples()) == sorted(right.as_tuples())

    def test_probability_keeps_maximum(self) -> None:
        pl = from_pairs([(3, 7, 0.95)], BASEPAIR).merge([MotifOccurrence.hairpin(3, 7)])
        assert pl.get(3, 7).p == 0.95


class TestEntryValidation:
    def test_bad_pair(self) -> None:
        with pytest.raises(ValueError):
            ProbabilityEntry(5, 5, 0.1)

    def test_bad_probability(self) -> None:
        with pytest.raises(ValueError):
            ProbabilityEntry(1, 5, 1.5)

    def test_bad_provenance(self) -> None:
        with pytest.raises(ValueError):
            ProbabilityEntry(1, 5, 0.5, "unknown")
