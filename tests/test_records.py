import io
import textwrap

import pytest

from ensemblefold.config import IdSettings
from ensemblefold.errors import ParseError
from ensemblefold.records import IdControl, SequenceRecord, normalize_sequence, read_records


class TestReadRecords:
    def test_fasta_multiline_sequence(self) -> None:
        stream = io.StringIO(
            textwrap.dedent(
                ">a\n"
                "ACGU\n"
                "ACGU\n"
                ">b some description\n"
                "GGGG\n"
            )
        )
        records = list(read_records(stream))
        assert [r.header for r in records] == ["a", "b some description"]
        assert records[0].sequence == "ACGUACGU"
        assert records[1].sequence == "GGGG"

    def test_comments_blank_lines_and_quit(self) -> None:
        stream = io.StringIO("# comment\n\n>a\n; note\nAC\n@\n>b\nGG\n")
        records = list(read_records(stream))
        assert len(records) == 1
        assert records[0].sequence == "AC"

    def test_constrained_keeps_trailing_lines(self) -> None:
        stream = io.StringIO(">a\nGGGAAACCC\n(((...)))\n>b\nAAAA\n")
        records = list(read_records(stream, constrained=True))
        assert records[0].sequence == "GGGAAACCC"
        assert records[0].rest == ("(((...)))",)
        assert records[0].maybe_multiline
        assert records[1].rest == ()

    def test_headerless_one_record_per_line(self) -> None:
        records = list(read_records(io.StringIO("ACGU\nGGGG\n")))
        assert [r.sequence for r in records] == ["ACGU", "GGGG"]
        assert all(r.header is None for r in records)

    def test_headerless_constrained_pairs_lines(self) -> None:
        stream = io.StringIO("GGGAAACCC\n(((...)))\nAAAA\n")
        records = list(read_records(stream, constrained=True))
        assert len(records) == 2
        assert records[0].rest == ("(((...)))",)
        assert not records[0].maybe_multiline
        assert records[1].sequence == "AAAA"


class TestNormalizeSequence:
    def test_t_to_u_keeps_case(self) -> None:
        assert normalize_sequence("acgT") == ("acgu", "ACGU")

    def test_noconv(self) -> None:
        assert normalize_sequence("ACGT", noconv=True) == ("ACGT", "ACGT")

    def test_iupac_and_strand_separator(self) -> None:
        assert normalize_sequence("ACNR&GGY")[1] == "ACNR&GGY"

    def test_invalid_character(self) -> None:
        with pytest.raises(ParseError, match="invalid characters"):
            normalize_sequence("ACGZ")

    def test_empty(self) -> None:
        with pytest.raises(ParseError):
            normalize_sequence("  ")


class TestIdControl:
    def test_no_header_no_id(self) -> None:
        ids = IdControl(IdSettings())
        assert ids.next_id(None) is None
        assert ids.next_id("seq1") == "seq1"

    def test_auto_id_counter(self) -> None:
        ids = IdControl(IdSettings(auto_id=True))
        assert ids.next_id(None) == "sequence_0001"
        assert ids.next_id("ignored") == "sequence_0002"

    def test_auto_id_settings(self) -> None:
        ids = IdControl(IdSettings(auto_id=True, prefix="rna", delimiter="-", digits=2, start=7))
        assert ids.next_id(None) == "rna-07"

    def test_file_prefix_first_word(self) -> None:
        ids = IdControl(IdSettings())
        assert ids.file_prefix("seq1 homo sapiens") == "seq1"

    def test_file_prefix_full(self) -> None:
        ids = IdControl(IdSettings(), filename_full=True)
        assert ids.file_prefix("seq1 homo") == "seq1 homo"

    def test_duplicate_ids_get_suffix(self) -> None:
        ids = IdControl(IdSettings())
        assert [ids.file_prefix("seq") for _ in range(3)] == ["seq", "seq_2", "seq_3"]

    def test_suffix_skips_taken_names(self) -> None:
        ids = IdControl(IdSettings())
        got = [ids.file_prefix(h) for h in ("seq", "seq", "seq_2", "seq")]
        assert got == ["seq", "seq_2", "seq_2_2", "seq_3"]

    def test_assign(self) -> None:
        rec = SequenceRecord(header="x desc", sequence="ACGU")
        IdControl(IdSettings()).assign(rec)
        assert rec.seq_id == "x desc"
        assert rec.file_prefix == "x"
