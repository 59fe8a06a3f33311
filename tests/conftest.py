# tests/conftest.py
"""Shared test fixtures for ensemblefold tests."""

import sys
from pathlib import Path
from typing import Optional

import numpy as np
import pytest

# Repo root = parent of this file's directory
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

# Ensure src/ is on sys.path so `import ensemblefold` works without installing
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from ensemblefold.engine import FoldingContext  # noqa: E402
from ensemblefold.structure import parse_structure_to_pairs  # noqa: E402


class FakeEngine:
    """Deterministic stand-in for the ViennaRNA engine.

    The MFE (and partition function, sample, MEA) structure is fixed at
    construction; pair probabilities are ``bpp_value`` for every pair of that
    structure. Structure energies are -1 per base pair. Calls are recorded.
    """

    def __init__(
        self,
        structure: Optional[str] = None,
        energy: float = -1.2,
        bpp_value: float = 0.8,
        stacks=(),
    ) -> None:
        self.structure = structure
        self.energy = energy
        self.bpp_value = bpp_value
        self.stacks = list(stacks)
        self.plans = []
        self.eval_calls = []
        self.rescaled = []
        self.quadruplex_calls = []
        self.structure_plots = []
        self.dot_plots = []

    def _structure(self, ctx):
        return self.structure if self.structure is not None else "." * ctx.length

    def build_context(self, sequence, model, plan):
        self.plans.append(plan)
        return FoldingContext(
            sequence=sequence,
            model=model,
            plan=plan,
            registry=plan.registry(),
            handle=object(),
        )

    def mfe(self, ctx):
        return self._structure(ctx), self.energy

    def eval_structure(self, ctx, structure, model=None):
        self.eval_calls.append((structure, model))
        return -1.0 * structure.count("(")

    def rescale(self, ctx, energy):
        self.rescaled.append(energy)
        return 1.0

    def pf(self, ctx):
        return self._structure(ctx), self.energy - 0.5

    def bpp(self, ctx):
        n = ctx.length
        m = np.zeros((n + 1, n + 1))
        for i, j in parse_structure_to_pairs(self._structure(ctx)):
            m[i, j] = self.bpp_value
        return m

    def stack_probabilities(self, ctx, cutoff):
        return list(self.stacks)

    def mea_quadruplex(self, ctx, gamma):
        self.quadruplex_calls.append(gamma)
        return self._structure(ctx), 1.0

    def sample(self, ctx):
        return self._structure(ctx)

    def pr_structure(self, ctx, structure):
        return 0.5

    def plot_structure(self, sequence, structure, path, annotation, model):
        self.structure_plots.append((Path(path), structure, annotation))

    def plot_dotplot(self, sequence, path, upper, lower, comment=None):
        self.dot_plots.append((Path(path), list(upper), list(lower), comment))


@pytest.fixture
def fake_engine() -> FakeEngine:
    """Engine folding every sequence into ``(((...)))``-style hairpins of length 9."""
    return FakeEngine(structure="(((...)))")


@pytest.fixture
def engine_factory():
    """The FakeEngine class, for tests that need a custom structure or energy."""
    return FakeEngine


@pytest.fixture
def hairpin_record():
    from ensemblefold.records import SequenceRecord

    return SequenceRecord(header="seq1", sequence="GGGAAACCC")
