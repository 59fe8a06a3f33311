"""
Folding engine adapter.

The dynamic programming itself (MFE, partition function, pair
probabilities, stochastic backtracking, plotting) is done by the ViennaRNA
library through its Python bindings. This module is the only place that
talks to ``RNA``; the rest of the package works against the
``FoldingEngine`` protocol so it can be exercised with a stand-in engine.

A ``FoldingContext`` is built in one step from a finished
``ConstraintPlan``: nothing is registered on it after construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence

import numpy as np

from .config import ModelDetails
from .constraints import ConstraintPlan, DotBracketConstraint, ShapeData
from .directives import ENERGY, FORCE, PROHIBIT, Directive
from .motifs import LigandMotif, MotifRegistry, UnstructuredDomain

__all__ = [
    "INFEASIBLE_ENERGY",
    "FoldingContext",
    "FoldingEngine",
    "ViennaEngine",
]

# INF / 100 in the engine's integer (dcal/mol) energy units
INFEASIBLE_ENERGY = 100000.0


@dataclass
class FoldingContext:
    """Sequence, model and constraints for one record, plus the engine handle."""

    sequence: str
    model: ModelDetails
    plan: ConstraintPlan
    registry: MotifRegistry
    handle: Any = None

    @property
    def length(self) -> int:
        return len(self.sequence)


class FoldingEngine(Protocol):
    def build_context(
        self, sequence: str, model: ModelDetails, plan: ConstraintPlan
    ) -> FoldingContext: ...

    def mfe(self, ctx: FoldingContext) -> tuple[str, float]: ...

    def eval_structure(
        self, ctx: FoldingContext, structure: str, model: Optional[ModelDetails] = None
    ) -> float: ...

    def rescale(self, ctx: FoldingContext, energy: float) -> float: ...

    def pf(self, ctx: FoldingContext) -> tuple[str, float]: ...

    def bpp(self, ctx: FoldingContext) -> np.ndarray: ...

    def stack_probabilities(
        self, ctx: FoldingContext, cutoff: float
    ) -> list[tuple[int, int, float]]: ...

    def mea_quadruplex(self, ctx: FoldingContext, gamma: float) -> tuple[str, float]: ...

    def sample(self, ctx: FoldingContext) -> str: ...

    def pr_structure(self, ctx: FoldingContext, structure: str) -> float: ...

    def plot_structure(
        self,
        sequence: str,
        structure: str,
        path: Path,
        annotation: Optional[str],
        model: ModelDetails,
    ) -> None: ...

    def plot_dotplot(
        self,
        sequence: str,
        path: Path,
        upper: Sequence[tuple[int, int, float, str]],
        lower: Sequence[tuple[int, int, float, str]],
        comment: Optional[str] = None,
    ) -> None: ...


class ViennaEngine:
    """``FoldingEngine`` backed by the ViennaRNA Python bindings."""

    def __init__(self) -> None:
        try:
            import RNA  # type: ignore
        except ImportError as e:  # pragma: no cover - only hit at runtime
            raise SystemExit(
                "The ViennaRNA Python bindings are required. "
                "Install with `pip install ViennaRNA`."
            ) from e
        self.RNA = RNA
        RNA.init_rand()

    # ------------------------------------------------------------------
    # Context construction
    # ------------------------------------------------------------------

    def make_md(self, model: ModelDetails) -> Any:
        md = self.RNA.md()
        md.temperature = model.temperature
        md.dangles = model.dangles
        md.noLP = int(model.noLP)
        md.noGU = int(model.noGU)
        md.circ = int(model.circ)
        md.gquad = int(model.gquad)
        md.uniq_ML = int(model.uniq_ML)
        md.compute_bpp = model.compute_bpp
        md.max_bp_span = model.max_bp_span
        return md

    def build_context(
        self, sequence: str, model: ModelDetails, plan: ConstraintPlan
    ) -> FoldingContext:
        fc = self.RNA.fold_compound(sequence, self.make_md(model))
        for source, payload in plan.steps():
            if isinstance(payload, Directive):
                self._apply_directive(fc, payload)
            elif isinstance(payload, DotBracketConstraint):
                self._apply_dot_bracket(fc, payload)
            elif isinstance(payload, ShapeData):
                self._apply_shape(fc, payload)
            elif isinstance(payload, LigandMotif):
                self._apply_ligand(fc, payload)
            elif isinstance(payload, UnstructuredDomain):
                self._apply_domain(fc, payload)
            else:  # pragma: no cover - plan only yields the types above
                raise TypeError(f"Unknown {source} constraint payload: {payload!r}")
        return FoldingContext(
            sequence=sequence,
            model=model,
            plan=plan,
            registry=plan.registry(),
            handle=fc,
        )

    def _apply_dot_bracket(self, fc: Any, c: DotBracketConstraint) -> None:
        RNA = self.RNA
        options = RNA.CONSTRAINT_DB_DEFAULT
        if c.enforce:
            options |= RNA.CONSTRAINT_DB_ENFORCE_BP
        if c.canonical_only:
            options |= RNA.CONSTRAINT_DB_CANONICAL_BP
        fc.constraints_add(c.structure, options)

    def _apply_directive(self, fc: Any, d: Directive) -> None:
        RNA = self.RNA
        if d.command == FORCE:
            if d.j:
                for i, j in d.pairs:
                    fc.hc_add_bp(
                        i, j, RNA.CONSTRAINT_CONTEXT_ALL_LOOPS | RNA.CONSTRAINT_CONTEXT_ENFORCE
                    )
            else:
                for i in d.positions:
                    fc.hc_add_bp_nonspecific(i, 0, RNA.CONSTRAINT_CONTEXT_ALL_LOOPS)
        elif d.command == PROHIBIT:
            if d.j:
                for i, j in d.pairs:
                    fc.hc_add_bp(i, j, RNA.CONSTRAINT_CONTEXT_NONE)
            else:
                for i in d.positions:
                    fc.hc_add_up(i, RNA.CONSTRAINT_CONTEXT_ALL_LOOPS)
        elif d.command == ENERGY:
            if d.j:
                for i, j in d.pairs:
                    fc.sc_add_bp(i, j, d.energy)
            else:
                for i in d.positions:
                    fc.sc_add_up(i, d.energy)

    def _apply_shape(self, fc: Any, s: ShapeData) -> None:
        RNA = self.RNA
        reactivities = list(s.reactivities)
        if s.method == "D":
            fc.sc_add_SHAPE_deigan(reactivities, s.slope, s.intercept, RNA.OPTION_DEFAULT)
        else:
            fc.sc_add_SHAPE_zarringhalam(
                reactivities, s.beta, 0.5, s.conversion, RNA.OPTION_DEFAULT
            )

    def _apply_ligand(self, fc: Any, m: LigandMotif) -> None:
        RNA = self.RNA
        fc.sc_add_hi_motif(m.sequence, m.structure, m.energy, RNA.OPTION_MFE | RNA.OPTION_PF)

    def _apply_domain(self, fc: Any, u: UnstructuredDomain) -> None:
        RNA = self.RNA
        flags = {
            "E": RNA.UNSTRUCTURED_DOMAIN_EXT_LOOP,
            "H": RNA.UNSTRUCTURED_DOMAIN_HP_LOOP,
            "I": RNA.UNSTRUCTURED_DOMAIN_INT_LOOP,
            "M": RNA.UNSTRUCTURED_DOMAIN_MB_LOOP,
        }
        loop_type = 0
        for ch in u.loop_types:
            loop_type |= flags[ch]
        fc.ud_add_motif(u.sequence, u.energy, u.name, loop_type)

    # ------------------------------------------------------------------
    # Folding
    # ------------------------------------------------------------------

    def mfe(self, ctx: FoldingContext) -> tuple[str, float]:
        structure, energy = ctx.handle.mfe()
        return structure, float(energy)

    def eval_structure(
        self, ctx: FoldingContext, structure: str, model: Optional[ModelDetails] = None
    ) -> float:
        if model is None or model == ctx.model:
            return float(ctx.handle.eval_structure(structure))
        other = self.build_context(ctx.sequence, model, ctx.plan)
        return float(other.handle.eval_structure(structure))

    def rescale(self, ctx: FoldingContext, energy: float) -> float:
        ctx.handle.exp_params_rescale(energy)
        return float(ctx.handle.exp_params.pf_scale)

    def pf(self, ctx: FoldingContext) -> tuple[str, float]:
        structure, energy = ctx.handle.pf()
        return structure, float(energy)

    def bpp(self, ctx: FoldingContext) -> np.ndarray:
        return np.array(ctx.handle.bpp(), dtype=float)

    def stack_probabilities(
        self, ctx: FoldingContext, cutoff: float
    ) -> list[tuple[int, int, float]]:
        return [(e.i, e.j, float(e.p)) for e in ctx.handle.stack_prob(cutoff) if e.i]

    def mea_quadruplex(self, ctx: FoldingContext, gamma: float) -> tuple[str, float]:
        structure, score = ctx.handle.MEA(gamma)
        return structure, float(score)

    def sample(self, ctx: FoldingContext) -> str:
        return ctx.handle.pbacktrack()

    def pr_structure(self, ctx: FoldingContext, structure: str) -> float:
        return float(ctx.handle.pr_structure(structure))

    # ------------------------------------------------------------------
    # Plotting
    # ------------------------------------------------------------------

    def plot_structure(
        self,
        sequence: str,
        structure: str,
        path: Path,
        annotation: Optional[str],
        model: ModelDetails,
    ) -> None:
        self.RNA.file_PS_rnaplot_a(
            sequence, structure, str(path), annotation or "", "", self.make_md(model)
        )

    def _ep_list(self, entries: Sequence[tuple[int, int, float, str]]) -> list[Any]:
        RNA = self.RNA
        types = {
            "basepair": RNA.PLIST_TYPE_BASEPAIR,
            "mfe-pair": RNA.PLIST_TYPE_BASEPAIR,
            "stack": RNA.PLIST_TYPE_STACK,
            "hairpin-motif": RNA.PLIST_TYPE_H_MOTIF,
            "interior-motif": RNA.PLIST_TYPE_I_MOTIF,
        }
        return [RNA.ep(i, j, p, types[kind]) for i, j, p, kind in entries]

    def plot_dotplot(
        self,
        sequence: str,
        path: Path,
        upper: Sequence[tuple[int, int, float, str]],
        lower: Sequence[tuple[int, int, float, str]],
        comment: Optional[str] = None,
    ) -> None:
        self.RNA.PS_dot_plot_list(
            sequence, str(path), self._ep_list(upper), self._ep_list(lower), comment or ""
        )
