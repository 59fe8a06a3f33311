"""ensemblefold command line: fold sequence records and report ensemble statistics.

Reads records from the given files (or stdin), folds each one and writes
its result block to stdout or, with ``--outfile``, to one file per record.
Flags override values from an optional ``--config`` YAML/JSON file.
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence, TextIO

from .analyzer import EnsembleAnalyzer, RecordResult
from .config import RunConfig, config_to_dict, load_config, validate_config
from .constraints import ConstraintComposer
from .engine import FoldingEngine, ViennaEngine
from .errors import FileIOError, FoldError, ParseError
from .output import OutputRouter
from .records import IdControl, read_records
from .report import write_summary

__all__ = ["build_parser", "build_config", "run", "main"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ensemblefold",
        description=(
            "Predict MFE secondary structures and Boltzmann-ensemble statistics "
            "(partition function, centroid, MEA) for RNA sequences."
        ),
    )
    parser.add_argument("inputs", nargs="*", type=Path, help="Input files (default: stdin)")
    parser.add_argument(
        "-i", "--infile", action="append", type=Path, default=[],
        help="Additional input file (may be repeated)",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML or JSON run config")

    g = parser.add_argument_group("ensemble")
    g.add_argument(
        "-p", "--partfunc", nargs="?", type=int, const=1, default=None,
        help="Compute the partition function (0: energy only, 1: pair probabilities, "
        "2: also stacking probabilities; default 1)",
    )
    g.add_argument(
        "--MEA", dest="mea", nargs="?", type=float, const=1.0, default=None,
        help="Compute the MEA structure with the given gamma (default 1.0)",
    )
    g.add_argument("--bppmThreshold", type=float, default=None, help="Dot plot probability cutoff")
    g.add_argument(
        "--ImFeelingLucky", dest="lucky", action="store_true", default=None,
        help="Report one structure sampled from the ensemble instead of the MFE",
    )

    g = parser.add_argument_group("constraints")
    g.add_argument(
        "-C", "--constraint", nargs="?", const="", default=None,
        help="Fold with structure constraints, read inline from the input or from FILE",
    )
    g.add_argument("--batch", action="store_true", default=None,
                   help="Apply the constraint file to every record")
    g.add_argument("--enforceConstraint", action="store_true", default=None)
    g.add_argument("--canonicalBPonly", action="store_true", default=None)
    g.add_argument("--shape", type=Path, default=None, help="SHAPE reactivity file")
    g.add_argument("--shapeMethod", default=None, help="D[mX][bY] or Z[bX] (default D)")
    g.add_argument("--shapeConversion", default=None, help="Reactivity conversion (default O)")
    g.add_argument("--motif", default=None, help='Ligand motif "SEQUENCE,STRUCTURE,ENERGY"')
    g.add_argument("--commands", type=Path, default=None, help="Directive script")

    g = parser.add_argument_group("model")
    g.add_argument("-T", "--temp", type=float, default=None, help="Temperature in C")
    g.add_argument("-d", "--dangles", type=int, default=None, help="Dangle model 0-3")
    g.add_argument("--noLP", action="store_true", default=None)
    g.add_argument("--noGU", action="store_true", default=None)
    g.add_argument("-c", "--circ", action="store_true", default=None)
    g.add_argument("-g", "--gquad", action="store_true", default=None)
    g.add_argument("--maxBPspan", type=int, default=None)

    g = parser.add_argument_group("output")
    g.add_argument(
        "-o", "--outfile", nargs="?", const="", default=None,
        help="Write each record to <id>.fold, or append all records to NAME",
    )
    g.add_argument("--noPS", action="store_true", default=None, help="Do not draw plots")
    g.add_argument("--noconv", action="store_true", default=None, help="Keep T in sequences")
    g.add_argument("--filename-delim", default=None)
    g.add_argument("--filename-full", action="store_true", default=None)
    g.add_argument("--auto-id", action="store_true", default=None)
    g.add_argument("--id-prefix", default=None)
    g.add_argument("--id-delim", default=None)
    g.add_argument("--id-digits", type=int, default=None)
    g.add_argument("--id-start", type=int, default=None)
    g.add_argument("--summary", type=Path, default=None, help="Write a TSV summary table")
    g.add_argument("-v", "--verbose", action="store_true", default=None)
    return parser


def _set(obj, **values):
    """``dataclasses.replace`` with the ``None`` values dropped."""
    changes = {k: v for k, v in values.items() if v is not None}
    return replace(obj, **changes) if changes else obj


def build_config(args: argparse.Namespace) -> RunConfig:
    cfg = load_config(args.config) if args.config is not None else RunConfig()

    cfg.model = _set(
        cfg.model,
        temperature=args.temp,
        dangles=args.dangles,
        noLP=args.noLP,
        noGU=args.noGU,
        circ=args.circ,
        gquad=args.gquad,
        max_bp_span=args.maxBPspan,
        compute_bpp=args.partfunc,
    )
    cfg.ids = _set(
        cfg.ids,
        auto_id=args.auto_id,
        prefix=args.id_prefix,
        delimiter=args.id_delim,
        digits=args.id_digits,
        start=args.id_start,
    )
    cfg = _set(
        cfg,
        bppm_threshold=args.bppmThreshold,
        lucky=args.lucky,
        constraint_batch=args.batch,
        constraint_enforce=args.enforceConstraint,
        constraint_canonical=args.canonicalBPonly,
        shape_file=args.shape,
        shape_method=args.shapeMethod,
        shape_conversion=args.shapeConversion,
        ligand_motif=args.motif,
        commands_file=args.commands,
        no_ps=args.noPS,
        noconv=args.noconv,
        filename_delim=args.filename_delim,
        filename_full=args.filename_full,
        summary=args.summary,
        verbose=args.verbose,
    )

    if args.partfunc is not None:
        cfg.pf = True
    if args.mea is not None:
        cfg.mea = True
        cfg.mea_gamma = args.mea
    if args.constraint is not None:
        cfg.constrained = True
        if args.constraint:
            cfg.constraint_file = Path(args.constraint)
    if args.outfile is not None:
        cfg.tofile = True
        if args.outfile:
            cfg.output_file = args.outfile
    return cfg


def _stops_after_first(cfg: RunConfig) -> bool:
    # SHAPE data and unbatched constraint files describe a single sequence
    return cfg.shape or (cfg.constraint_file is not None and not cfg.constraint_batch)


def _fold_stream(
    stream: TextIO,
    analyzer: EnsembleAnalyzer,
    cfg: RunConfig,
    results: list[RecordResult],
) -> bool:
    """Fold every record of ``stream``. Returns True when the run should stop."""
    for record in read_records(stream, constrained=cfg.constrained):
        try:
            result = analyzer.process(record)
        except ParseError as e:
            sys.stderr.write(f"[WARN] Skipping record: {e}\n")
            result = None
        if result is not None:
            results.append(result)
        if _stops_after_first(cfg):
            return True
    return False


def run(
    cfg: RunConfig,
    inputs: Sequence[Path] = (),
    engine: Optional[FoldingEngine] = None,
) -> list[RecordResult]:
    """Fold all records of ``inputs`` (stdin when empty) and return their results."""
    engine = engine if engine is not None else ViennaEngine()
    analyzer = EnsembleAnalyzer(
        engine=engine,
        cfg=cfg,
        composer=ConstraintComposer(cfg),
        router=OutputRouter(inputs, delim=cfg.filename_delim, output_file=cfg.output_file),
        ids=IdControl(cfg.ids, filename_full=cfg.filename_full),
    )

    results: list[RecordResult] = []
    if not inputs:
        _fold_stream(sys.stdin, analyzer, cfg, results)
    for n, path in enumerate(inputs, 1):
        if cfg.verbose:
            sys.stderr.write(f"[INFO] Processing {n}. input file \"{path}\"\n")
        try:
            fh = path.open()
        except OSError as e:
            raise FileIOError(f"Unable to open {n}. input file \"{path}\" for reading") from e
        with fh:
            if _fold_stream(fh, analyzer, cfg, results):
                break

    if cfg.summary is not None:
        write_summary(results, cfg.summary)
        if cfg.verbose:
            sys.stderr.write(f"[INFO] Wrote summary for {len(results)} records to {cfg.summary}\n")
    return results


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    inputs = list(args.inputs) + list(args.infile)

    try:
        cfg = validate_config(build_config(args))
        if cfg.verbose:
            sys.stderr.write(
                "[INFO] Run configuration:\n"
                + json.dumps(config_to_dict(cfg), indent=2, default=str)
                + "\n"
            )
        run(cfg, inputs)
    except FoldError as e:
        sys.stderr.write(f"[ERROR] {e}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
