"""End-to-end tests for the command line front end (with a fake engine)."""

import textwrap
from pathlib import Path
from unittest.mock import patch

import pandas as pd
import pytest

from ensemblefold import cli
from ensemblefold.config import RunConfig, validate_config

FASTA = textwrap.dedent(
    """\
    >seq1
    GGGAAACCC
    >seq2
    GGGAAACCC
    """
)


@pytest.fixture
def fasta(tmp_path: Path) -> Path:
    path = tmp_path / "in.fa"
    path.write_text(FASTA)
    return path


@pytest.fixture
def patched_engine(fake_engine):
    with patch("ensemblefold.cli.ViennaEngine", return_value=fake_engine):
        yield fake_engine


class TestBuildConfig:
    def test_flags(self) -> None:
        args = cli.build_parser().parse_args(
            ["in.fa", "-p2", "--MEA", "0.5", "-d", "3", "-T", "25", "-C"]
        )
        cfg = cli.build_config(args)
        assert cfg.pf and cfg.mea
        assert cfg.mea_gamma == 0.5
        assert cfg.model.compute_bpp == 2
        assert cfg.model.dangles == 3
        assert cfg.model.temperature == 25.0
        assert cfg.constrained and cfg.constraint_file is None

    def test_optional_values(self) -> None:
        args = cli.build_parser().parse_args(["-p", "--MEA", "-o", "all.fold", "-C", "c.txt"])
        cfg = cli.build_config(args)
        assert cfg.model.compute_bpp == 1
        assert cfg.mea_gamma == 1.0
        assert cfg.tofile and cfg.output_file == "all.fold"
        assert cfg.constraint_file == Path("c.txt")

    def test_flags_override_config_file(self, tmp_path: Path) -> None:
        path = tmp_path / "run.yaml"
        path.write_text("pf: true\nmodel:\n  temperature: 20.0\n  noGU: true\n")
        args = cli.build_parser().parse_args(["--config", str(path), "-T", "30"])
        cfg = cli.build_config(args)
        assert cfg.pf
        assert cfg.model.temperature == 30.0
        assert cfg.model.noGU


class TestMain:
    def test_folds_every_record(self, fasta, patched_engine, capsys) -> None:
        assert cli.main([str(fasta), "--noPS"]) == 0
        out = capsys.readouterr().out
        assert out.count("(((...))) ( -1.20)") == 2
        assert ">seq2" in out

    def test_missing_input_is_fatal(self, tmp_path, patched_engine, capsys) -> None:
        assert cli.main([str(tmp_path / "missing.fa")]) == 1
        assert "[ERROR] Unable to open 1. input file" in capsys.readouterr().err

    def test_config_error(self, fasta, patched_engine, capsys) -> None:
        assert cli.main([str(fasta), "--circ", "-g"]) == 1
        assert capsys.readouterr().err.startswith("[ERROR]")

    def test_outfile_per_record(self, fasta, tmp_path, patched_engine, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert cli.main([str(fasta), "--noPS", "-o"]) == 0
        assert (tmp_path / "seq1.fold").read_text().startswith(">seq1\n")
        assert (tmp_path / "seq2.fold").exists()

    def test_summary_table(self, fasta, tmp_path, patched_engine, capsys) -> None:
        summary = tmp_path / "out" / "summary.tsv"
        assert cli.main([str(fasta), "--noPS", "-p", "--summary", str(summary)]) == 0
        df = pd.read_csv(summary, sep="\t")
        assert list(df["id"]) == ["seq1", "seq2"]
        assert df["diversity"].iloc[0] == pytest.approx(0.96)


class TestStoppingRule:
    def test_shape_stops_after_first_record(self, fasta, tmp_path, fake_engine, capsys) -> None:
        shape = tmp_path / "r.shape"
        shape.write_text("1 0.5\n")
        cfg = validate_config(RunConfig(no_ps=True, shape_file=shape))
        results = cli.run(cfg, [fasta], engine=fake_engine)
        assert [r.seq_id for r in results] == ["seq1"]

    def test_constraint_file_without_batch(self, fasta, tmp_path, fake_engine, capsys) -> None:
        cons = tmp_path / "c.txt"
        cons.write_text("F 1 9 1\n")
        cfg = validate_config(RunConfig(no_ps=True, constraint_file=cons))
        assert len(cli.run(cfg, [fasta], engine=fake_engine)) == 1

    def test_constraint_file_batch(self, fasta, tmp_path, fake_engine, capsys) -> None:
        cons = tmp_path / "c.txt"
        cons.write_text("F 1 9 1\n")
        cfg = validate_config(
            RunConfig(no_ps=True, constraint_file=cons, constraint_batch=True)
        )
        assert len(cli.run(cfg, [fasta], engine=fake_engine)) == 2

    def test_bad_record_is_skipped(self, tmp_path, fake_engine, capsys) -> None:
        path = tmp_path / "in.fa"
        path.write_text(">bad\nACGXZ\n>good\nGGGAAACCC\n")
        cfg = validate_config(RunConfig(no_ps=True))
        results = cli.run(cfg, [path], engine=fake_engine)
        assert [r.seq_id for r in results] == ["good"]
