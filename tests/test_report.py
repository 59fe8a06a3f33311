from pathlib import Path

import pandas as pd

from ensemblefold.analyzer import RecordResult
from ensemblefold.report import SUMMARY_COLUMNS, summarize_results, write_summary


def _results() -> list[RecordResult]:
    return [
        RecordResult(seq_id="a", length=9, mfe_structure="(((...)))", mfe=-1.2, diversity=0.5),
        RecordResult(seq_id=None, length=4, mfe_structure="....", mfe=0.0,
                     output_path=Path("RNAfold_output.fold")),
    ]


def test_summarize_results() -> None:
    df = summarize_results(_results())
    assert list(df.columns) == SUMMARY_COLUMNS
    assert len(df) == 2
    assert df.loc[0, "mfe"] == -1.2
    assert df.loc[1, "output"] == "RNAfold_output.fold"
    assert pd.isna(df.loc[1, "diversity"])


def test_empty_summary_has_columns() -> None:
    assert list(summarize_results([]).columns) == SUMMARY_COLUMNS


def test_write_summary(tmp_path: Path) -> None:
    out = tmp_path / "nested" / "summary.tsv"
    write_summary(_results(), out)
    df = pd.read_csv(out, sep="\t")
    assert list(df["length"]) == [9, 4]
    assert df.loc[0, "mfe_structure"] == "(((...)))"
