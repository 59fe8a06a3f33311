"""Tabulate per-record results."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas as pd

from .analyzer import RecordResult

__all__ = ["SUMMARY_COLUMNS", "summarize_results", "write_summary"]

SUMMARY_COLUMNS = [
    "id",
    "length",
    "mfe_structure",
    "mfe",
    "ensemble_energy",
    "centroid",
    "centroid_energy",
    "centroid_distance",
    "mea_structure",
    "mea_energy",
    "mea_score",
    "mfe_frequency",
    "diversity",
    "output",
]


def summarize_results(results: Iterable[RecordResult]) -> pd.DataFrame:
    rows = []
    for r in results:
        rows.append({
            "id": r.seq_id,
            "length": r.length,
            "mfe_structure": r.mfe_structure,
            "mfe": r.mfe,
            "ensemble_energy": r.ensemble_energy,
            "centroid": r.centroid,
            "centroid_energy": r.centroid_energy,
            "centroid_distance": r.centroid_distance,
            "mea_structure": r.mea_structure,
            "mea_energy": r.mea_energy,
            "mea_score": r.mea_score,
            "mfe_frequency": r.mfe_frequency,
            "diversity": r.diversity,
            "output": str(r.output_path) if r.output_path else None,
        })
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def write_summary(results: Iterable[RecordResult], out_path: str | Path) -> pd.DataFrame:
    """Write one tab-separated row per folded record and return the table."""
    df = summarize_results(results)
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out, sep="\t", index=False, float_format="%.4f")
    return df
