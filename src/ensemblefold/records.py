"""
Sequence record reading, sequence normalisation and sequence-id control.

A record is an optional ``>`` header, a sequence and (in constraint mode)
the trailing lines that may hold an inline structure constraint. Records
are yielded lazily so each one can be folded and released before the
next is read.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, TextIO

from .config import IdSettings
from .errors import ParseError

__all__ = [
    "SequenceRecord",
    "read_records",
    "normalize_sequence",
    "IdControl",
]

QUIT_MARKER = "@"
COMMENT_PREFIXES = ("#", ";")

# IUPAC nucleotides, ambiguity codes and the strand separator
VALID_SYMBOLS = set("ACGUTRYSWKMBDHVN&")


@dataclass
class SequenceRecord:
    """One input record and the values derived from it while it is folded."""

    header: Optional[str]
    sequence: str
    rest: tuple[str, ...] = ()
    seq_id: Optional[str] = None
    display_sequence: str = ""
    normalized_sequence: str = ""
    file_prefix: Optional[str] = None

    @property
    def length(self) -> int:
        return len(self.normalized_sequence or self.sequence)

    @property
    def maybe_multiline(self) -> bool:
        """Constraint lines may span several lines only for FASTA-style records."""
        return self.header is not None


def read_records(stream: TextIO, constrained: bool = False) -> Iterator[SequenceRecord]:
    """Yield records from ``stream``.

    Without constraint mode every non-header line up to the next header is
    part of the sequence. In constraint mode the first line is the sequence
    and the following lines are kept as the record's trailing lines.
    A line holding only ``@`` ends the input.
    """
    header: Optional[str] = None
    body: list[str] = []
    in_record = False

    def _emit() -> Optional[SequenceRecord]:
        if not body:
            return None
        if constrained:
            return SequenceRecord(header=header, sequence=body[0], rest=tuple(body[1:]))
        return SequenceRecord(header=header, sequence="".join(body))

    for raw in stream:
        line = raw.strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue
        if line == QUIT_MARKER:
            break
        if line.startswith(">"):
            if in_record:
                rec = _emit()
                if rec is not None:
                    yield rec
            header = line[1:].strip()
            body = []
            in_record = True
            continue
        if not in_record:
            # header-less input: one record per sequence line (plus its
            # constraint line in constraint mode)
            if body and (not constrained or len(body) >= 2 or not _is_constraint_line(line)):
                rec = _emit()
                if rec is not None:
                    yield rec
                body = []
                header = None
        body.append(line)

    rec = _emit()
    if rec is not None:
        yield rec


def _is_constraint_line(line: str) -> bool:
    return bool(line) and all(ch in ".()|x<>[]{}+" for ch in line)


def normalize_sequence(seq: str, noconv: bool = False) -> tuple[str, str]:
    """Return ``(display, folding)`` forms of a raw sequence.

    The display form keeps the input's case (after T->U conversion unless
    ``noconv``); the folding form is upper case.

    Raises:
        ParseError: for characters outside the nucleotide alphabet
    """
    seq = "".join(str(seq or "").split())
    if not seq:
        raise ParseError("empty sequence")
    if not noconv:
        seq = seq.replace("T", "U").replace("t", "u")
    upper = seq.upper()
    bad = sorted(set(upper) - VALID_SYMBOLS)
    if bad:
        raise ParseError(f"invalid characters in sequence: {''.join(bad)}")
    return seq, upper


class IdControl:
    """Assigns record ids and file-name prefixes across a whole run.

    The counter advances once per record, whether or not the record carries
    a header, so automatically generated ids stay stable across files.
    Repeated header ids are disambiguated with an occurrence suffix, skipping
    any suffixed name that an earlier record already took.
    """

    def __init__(self, settings: IdSettings, filename_full: bool = False) -> None:
        self.settings = settings
        self.filename_full = filename_full
        self.counter = settings.start - 1
        self._seen: dict[str, int] = {}
        self._taken: set[str] = set()

    def next_id(self, header: Optional[str]) -> Optional[str]:
        self.counter += 1
        s = self.settings
        if s.auto_id or (header is not None and not header.strip()):
            return f"{s.prefix}{s.delimiter}{self.counter:0{s.digits}d}"
        if header is None:
            return None
        return header

    def file_prefix(self, seq_id: Optional[str]) -> Optional[str]:
        if seq_id is None:
            return None
        base = seq_id if self.filename_full else seq_id.split()[0]
        prefix = base
        n = self._seen.get(base, 1)
        while prefix in self._taken:
            n += 1
            prefix = f"{base}{self.settings.delimiter}{n}"
        self._seen[base] = n
        self._taken.add(prefix)
        return prefix

    def assign(self, record: SequenceRecord) -> SequenceRecord:
        record.seq_id = self.next_id(record.header)
        record.file_prefix = self.file_prefix(record.seq_id)
        return record
