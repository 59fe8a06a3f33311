"""
Per-record folding orchestration.

For each record the analyzer walks the stages::

    INIT -> NORMALIZED -> CONSTRAINTS_APPLIED -> MFE_COMPUTED
         -> [PF_COMPUTED -> CENTROID_COMPUTED -> MEA_COMPUTED]
         -> OUTPUT_WRITTEN -> RELEASED

and writes the record's result block. Recoverable problems (malformed
records or motifs, short constraints) are reported and folding continues
without the affected feature. Fatal errors mark the record ``FATAL`` and
propagate to the caller; the record's output file is only opened once the
MFE is known to be feasible, and is always closed again.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, TextIO

import numpy as np

from .annotate import (
    domain_log_lines,
    join_annotations,
    ligand_log_lines,
    render_domain_annotation,
    render_ligand_annotation,
)
from .config import RunConfig
from .constraints import ConstraintComposer, ConstraintPlan
from .engine import INFEASIBLE_ENERGY, FoldingContext, FoldingEngine
from .errors import FoldError, InfeasibleConstraints, ParseError
from .mea import mea_structure, pair_probabilities
from .output import OutputRouter
from .plist import STACK, from_pairs, from_probabilities, from_structure
from .records import IdControl, SequenceRecord, normalize_sequence
from .structure import pairs_to_structure

__all__ = [
    "Stage",
    "RecordResult",
    "EnsembleAnalyzer",
    "centroid_from_probabilities",
    "mean_bp_distance",
]

# Above these lengths the rescaling details are reported, since that is
# where overflow in the Boltzmann weights starts to become a concern.
SCALE_INFO_LENGTH = 2000
PF_INFO_LENGTH = 1600

STACK_CUTOFF = 1e-5


class Stage(Enum):
    INIT = "init"
    NORMALIZED = "normalized"
    CONSTRAINTS_APPLIED = "constraints_applied"
    MFE_COMPUTED = "mfe_computed"
    PF_COMPUTED = "pf_computed"
    CENTROID_COMPUTED = "centroid_computed"
    MEA_COMPUTED = "mea_computed"
    OUTPUT_WRITTEN = "output_written"
    RELEASED = "released"
    WARNING = "warning"
    FATAL = "fatal"


@dataclass
class RecordResult:
    seq_id: Optional[str]
    sequence: str = ""
    length: int = 0
    mfe_structure: Optional[str] = None
    mfe: Optional[float] = None
    ensemble_energy: Optional[float] = None
    pf_structure: Optional[str] = None
    centroid: Optional[str] = None
    centroid_energy: Optional[float] = None
    centroid_distance: Optional[float] = None
    mea_structure: Optional[str] = None
    mea_energy: Optional[float] = None
    mea_score: Optional[float] = None
    sample_structure: Optional[str] = None
    sample_energy: Optional[float] = None
    mfe_frequency: Optional[float] = None
    diversity: Optional[float] = None
    output_path: Optional[Path] = None
    plots: list[Path] = field(default_factory=list)
    stages: list[Stage] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def stage(self) -> Stage:
        return self.stages[-1] if self.stages else Stage.INIT


def centroid_from_probabilities(bpp: np.ndarray) -> tuple[str, float]:
    """Centroid structure and its expected distance to the ensemble.

    The centroid contains every pair with probability above 0.5; its
    distance is the sum over pairs of ``1 - p`` for included pairs and
    ``p`` for excluded ones.
    """
    n = bpp.shape[0] - 1
    upper = np.triu(np.asarray(bpp, dtype=float)[1:, 1:], k=1)
    paired = upper > 0.5
    dist = float(np.where(paired, 1.0 - upper, upper).sum())
    pairs = [(int(i) + 1, int(j) + 1) for i, j in np.argwhere(paired)]
    return pairs_to_structure(pairs, n), dist


def mean_bp_distance(bpp: np.ndarray) -> float:
    """Ensemble diversity: expected base pair distance between two members."""
    upper = np.triu(np.asarray(bpp, dtype=float)[1:, 1:], k=1)
    return float(2.0 * (upper * (1.0 - upper)).sum())


class EnsembleAnalyzer:
    """Folds records one at a time and writes their result blocks."""

    def __init__(
        self,
        engine: FoldingEngine,
        cfg: RunConfig,
        composer: ConstraintComposer,
        router: OutputRouter,
        ids: IdControl,
    ) -> None:
        self.engine = engine
        self.cfg = cfg
        self.composer = composer
        self.router = router
        self.ids = ids

    # ------------------------------------------------------------------
    # Stage operations
    # ------------------------------------------------------------------

    def compute_mfe(
        self, ctx: FoldingContext, display: Optional[str] = None
    ) -> tuple[str, float]:
        """MFE structure and energy; infeasible constraints are fatal.

        ``display`` is the sequence as the user wrote it, used in the error.
        """
        structure, energy = self.engine.mfe(ctx)
        if ctx.plan.active and energy >= INFEASIBLE_ENERGY:
            raise InfeasibleConstraints(display or ctx.sequence)
        return structure, energy

    def compute_partition_function(
        self, ctx: FoldingContext, mfe_structure: str, mfe: float
    ) -> tuple[str, float]:
        """Ensemble free energy after rescaling the Boltzmann weights.

        With an odd dangle model the reference energy for rescaling is
        re-evaluated under dangles=2, which is what the partition function
        uses; the reported MFE is not changed.
        """
        reference = mfe
        if ctx.model.dangles % 2:
            reference = self.engine.eval_structure(
                ctx, mfe_structure, ctx.model.with_even_dangles()
            )
        scale = self.engine.rescale(ctx, reference)
        if ctx.length > SCALE_INFO_LENGTH:
            sys.stderr.write(f"[INFO] scaling factor {scale:f}\n")

        structure, energy = self.engine.pf(ctx)
        if ctx.length > PF_INFO_LENGTH:
            sys.stderr.write(f"[INFO] free energy = {energy:8.2f}\n")
        return structure, energy

    def compute_centroid(self, ctx: FoldingContext, bpp: np.ndarray) -> tuple[str, float, float]:
        structure, dist = centroid_from_probabilities(bpp)
        return structure, self.engine.eval_structure(ctx, structure), dist

    def compute_mea(
        self, ctx: FoldingContext, bpp: np.ndarray, gamma: float
    ) -> tuple[str, float, float]:
        probs = pair_probabilities(ctx, bpp, gamma)
        structure, score = mea_structure(probs, gamma, self.engine)
        return structure, self.engine.eval_structure(ctx, structure), score

    def sample_stochastic(self, ctx: FoldingContext) -> tuple[str, float]:
        structure = self.engine.sample(ctx)
        return structure, self.engine.eval_structure(ctx, structure)

    # ------------------------------------------------------------------
    # Record loop body
    # ------------------------------------------------------------------

    def process(self, record: SequenceRecord) -> Optional[RecordResult]:
        """Fold one record. Returns ``None`` when the record was skipped."""
        cfg = self.cfg
        self.ids.assign(record)
        result = RecordResult(seq_id=record.seq_id)
        result.stages.append(Stage.INIT)

        try:
            record.display_sequence, record.normalized_sequence = normalize_sequence(
                record.sequence, noconv=cfg.noconv
            )
        except ParseError as e:
            name = record.seq_id or record.sequence[:20]
            sys.stderr.write(f"[WARN] Skipping record {name}: {e}\n")
            return None
        result.sequence = record.display_sequence
        result.length = record.length
        result.stages.append(Stage.NORMALIZED)

        ctx: Optional[FoldingContext] = None
        try:
            plan = self.composer.compose(
                record.normalized_sequence, record.rest, record.maybe_multiline
            )
            ctx = self.engine.build_context(record.normalized_sequence, cfg.model, plan)
            result.stages.append(Stage.CONSTRAINTS_APPLIED)
            self._note_degraded(plan, result)

            mfe_structure, mfe = self.compute_mfe(ctx, record.display_sequence)
            result.mfe_structure, result.mfe = mfe_structure, mfe
            result.stages.append(Stage.MFE_COMPUTED)

            result.output_path = self.router.record_path(record.file_prefix) if cfg.tofile else None
            with self.router.open_record(result.output_path) as out:
                self._write_record(ctx, record, result, mfe_structure, mfe, out)
            result.stages.append(Stage.OUTPUT_WRITTEN)
        except FoldError:
            result.stages.append(Stage.FATAL)
            raise
        finally:
            if ctx is not None:
                ctx.handle = None
        result.stages.append(Stage.RELEASED)
        return result

    def _note_degraded(self, plan: ConstraintPlan, result: RecordResult) -> None:
        # inputs that were asked for but dropped with a warning
        if self.cfg.ligand_motif and not plan.ligands:
            result.warnings.append("ligand motif ignored")
        if self.cfg.shape_file is not None and plan.shape is None:
            result.warnings.append("SHAPE data ignored")
        if result.warnings:
            result.stages.append(Stage.WARNING)

    def _write_record(
        self,
        ctx: FoldingContext,
        record: SequenceRecord,
        result: RecordResult,
        mfe_structure: str,
        mfe: float,
        out: TextIO,
    ) -> None:
        cfg = self.cfg

        if record.seq_id is not None:
            out.write(f">{record.seq_id}\n")
        out.write(f"{record.display_sequence}\n")

        if not cfg.lucky:
            out.write(f"{mfe_structure} ({mfe:6.2f})\n")
            self._write_motifs(ctx, mfe_structure, "MFE", out)
            out.flush()
            if not cfg.no_ps:
                self._plot_structure(ctx, record, result, mfe_structure, annotate=True)

        if not cfg.pf:
            return

        result.pf_structure, result.ensemble_energy = self.compute_partition_function(
            ctx, mfe_structure, mfe
        )
        result.stages.append(Stage.PF_COMPUTED)

        if cfg.lucky:
            result.sample_structure, result.sample_energy = self.sample_stochastic(ctx)
            out.write(f"{result.sample_structure} ({result.sample_energy:6.2f})\n")
            out.flush()
            if not cfg.no_ps:
                self._plot_structure(ctx, record, result, result.sample_structure, annotate=False)
            return

        result.mfe_frequency = self.engine.pr_structure(ctx, mfe_structure)

        if ctx.model.compute_bpp:
            out.write(f"{result.pf_structure} [{result.ensemble_energy:6.2f}]\n")
            bpp = self.engine.bpp(ctx)
            if not cfg.no_ps:
                self._plot_probabilities(ctx, record, result, mfe_structure, bpp)

            (
                result.centroid,
                result.centroid_energy,
                result.centroid_distance,
            ) = self.compute_centroid(ctx, bpp)
            out.write(
                f"{result.centroid} {{{result.centroid_energy:6.2f} "
                f"d={result.centroid_distance:.2f}}}\n"
            )
            self._write_motifs(ctx, result.centroid, "centroid", out)
            result.stages.append(Stage.CENTROID_COMPUTED)

            if cfg.mea:
                (
                    result.mea_structure,
                    result.mea_energy,
                    result.mea_score,
                ) = self.compute_mea(ctx, bpp, cfg.mea_gamma)
                out.write(
                    f"{result.mea_structure} {{{result.mea_energy:6.2f} "
                    f"MEA={result.mea_score:.2f}}}\n"
                )
                self._write_motifs(ctx, result.mea_structure, "MEA", out)
                result.stages.append(Stage.MEA_COMPUTED)

            result.diversity = mean_bp_distance(bpp)
            out.write(
                " frequency of mfe structure in ensemble %g; ensemble diversity %-6.2f\n"
                % (result.mfe_frequency, result.diversity)
            )
        else:
            out.write(f" free energy of ensemble = {result.ensemble_energy:6.2f} kcal/mol\n")
            out.write(" frequency of mfe structure in ensemble %g;\n" % result.mfe_frequency)
        out.flush()

    # ------------------------------------------------------------------
    # Motif reporting and plots
    # ------------------------------------------------------------------

    def _write_motifs(self, ctx: FoldingContext, structure: str, name: str, out: TextIO) -> None:
        if not self.cfg.verbose:
            return
        registry = ctx.registry
        lines: list[str] = []
        if registry.ligands:
            lines += ligand_log_lines(registry.detect(ctx.sequence, structure), name)
        if registry.domains:
            lines += domain_log_lines(registry.detect_domains(ctx.sequence, structure), name)
        for line in lines:
            out.write(line + "\n")

    def _plot_structure(
        self,
        ctx: FoldingContext,
        record: SequenceRecord,
        result: RecordResult,
        structure: str,
        annotate: bool,
    ) -> None:
        annotation = None
        if annotate:
            registry = ctx.registry
            annotation = join_annotations(
                render_ligand_annotation(registry.detect(ctx.sequence, structure))
                if registry.ligands
                else None,
                render_domain_annotation(registry.detect_domains(ctx.sequence, structure))
                if registry.domains
                else None,
            )
        path = self.router.structure_plot(record.file_prefix)
        self.engine.plot_structure(record.display_sequence, structure, path, annotation, ctx.model)
        result.plots.append(path)

    def _plot_probabilities(
        self,
        ctx: FoldingContext,
        record: SequenceRecord,
        result: RecordResult,
        mfe_structure: str,
        bpp: np.ndarray,
    ) -> None:
        pl1 = from_probabilities(bpp, self.cfg.bppm_threshold)
        pl2 = from_structure(mfe_structure)
        registry = ctx.registry
        if registry.ligands:
            pl1.merge(registry.all_sites(ctx.sequence))
            pl2.merge(registry.detect(ctx.sequence, mfe_structure))

        path = self.router.dot_plot(record.file_prefix)
        self.engine.plot_dotplot(record.display_sequence, path, pl1.as_tuples(), pl2.as_tuples())
        result.plots.append(path)

        if ctx.model.compute_bpp == 2:
            stacks = from_pairs(self.engine.stack_probabilities(ctx, STACK_CUTOFF), STACK)
            path = self.router.stack_plot(record.file_prefix)
            self.engine.plot_dotplot(
                record.display_sequence,
                path,
                pl1.as_tuples(),
                stacks.as_tuples(),
                "Probabilities for stacked pairs (i,j)(i+1,j-1)",
            )
            result.plots.append(path)
