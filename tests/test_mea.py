"""Tests for MEA structure selection.

The quadruplex-aware variant must be chosen whenever the model allows
G-quadruplexes; the plain optimisation would silently give a wrong answer.
"""

import numpy as np
import pytest

from ensemblefold.config import ModelDetails
from ensemblefold.constraints import ConstraintPlan
from ensemblefold.engine import FoldingContext
from ensemblefold.mea import (
    PlainPairProbabilities,
    QuadruplexPairProbabilities,
    mea_cutoff,
    mea_fold,
    mea_structure,
    pair_probabilities,
)
from ensemblefold.motifs import MotifRegistry

SEQ = "GGGAAACCC"


def _ctx(**model) -> FoldingContext:
    return FoldingContext(
        sequence=SEQ,
        model=ModelDetails(**model),
        plan=ConstraintPlan(sequence=SEQ),
        registry=MotifRegistry(),
    )


def _bpp(value: float = 0.8) -> np.ndarray:
    m = np.zeros((10, 10))
    for i, j in [(1, 9), (2, 8), (3, 7)]:
        m[i, j] = value
    return m


def test_mea_cutoff() -> None:
    assert mea_cutoff(1.0) == pytest.approx(5e-5)


class TestMeaFold:
    def test_confident_helix(self) -> None:
        pairs = ((1, 9, 0.9), (2, 8, 0.9), (3, 7, 0.9))
        structure, score = mea_fold(9, pairs, gamma=1.0)
        assert structure == "(((...)))"
        # 3 pairs * 2 * 0.9 + three certain unpaired hairpin bases
        assert score == pytest.approx(8.4)

    def test_weak_pair_left_open(self) -> None:
        structure, score = mea_fold(9, ((1, 9, 0.2),), gamma=1.0)
        assert structure == "........."
        assert score == pytest.approx(8.6)

    def test_gamma_favours_pairs(self) -> None:
        structure, _ = mea_fold(9, ((1, 9, 0.2),), gamma=10.0)
        assert structure == "(.......)"

    def test_min_hairpin(self) -> None:
        structure, _ = mea_fold(4, ((1, 4, 0.99),), gamma=1.0)
        assert structure == "...."

    def test_empty(self) -> None:
        assert mea_fold(0, (), 1.0) == ("", 0.0)

    def test_small_gain_on_long_sequence(self) -> None:
        # pairing 1-1000 beats leaving both ends open by only 0.003
        n = 1000
        structure, score = mea_fold(n, ((1, 3, 0.003), (1, n, 0.5)), gamma=1.0)
        assert structure == "(" + "." * (n - 2) + ")"
        assert score == pytest.approx(998.997)
        # the score is the accuracy of the returned structure
        unpaired = (n - 3) + 0.997
        assert score == pytest.approx(unpaired + 2 * 0.5)


class TestVariantSelection:
    def test_plain_model_uses_sparse_list(self, fake_engine) -> None:
        probs = pair_probabilities(_ctx(), _bpp(), gamma=1.0)
        assert isinstance(probs, PlainPairProbabilities)
        assert [p[:2] for p in probs.pairs] == [(1, 9), (2, 8), (3, 7)]

        structure, score = mea_structure(probs, 1.0, fake_engine)
        assert structure == "(((...)))"
        assert score == pytest.approx(7.8)
        assert fake_engine.quadruplex_calls == []

    def test_quadruplex_model_uses_engine(self, fake_engine) -> None:
        probs = pair_probabilities(_ctx(gquad=True), _bpp(), gamma=2.0)
        assert isinstance(probs, QuadruplexPairProbabilities)

        structure, score = mea_structure(probs, 2.0, fake_engine)
        assert fake_engine.quadruplex_calls == [2.0]
        assert (structure, score) == ("(((...)))", 1.0)

    def test_unknown_variant(self, fake_engine) -> None:
        with pytest.raises(TypeError):
            mea_structure(object(), 1.0, fake_engine)
