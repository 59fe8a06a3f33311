"""
Output file naming.

Every file a record produces is named from its id through a pattern such as
``{id}{delim}ss.ps``; records without an id get a fixed default name. Ids
are sanitised so they cannot escape the working directory or contain
characters that are unsafe in file names, and no resolved name may equal
one of the run's input files.
"""

from __future__ import annotations

import re
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional, TextIO

from .errors import FileIOError, OutputCollisionError

__all__ = [
    "UNSAFE_CHARS",
    "sanitize_filename",
    "resolve",
    "OutputRouter",
]

UNSAFE_CHARS = '\\/?%*:|"<>'
MAX_FILENAME = 255

STRUCTURE_PLOT = ("{id}{delim}ss.ps", "rna.ps")
DOT_PLOT = ("{id}{delim}dp.ps", "dot.ps")
STACK_PLOT = ("{id}{delim}dp2.ps", "dot2.ps")
RECORD_OUTPUT = ("{id}.fold", "RNAfold_output.fold")


def sanitize_filename(name: str, delim: Optional[str] = "_") -> str:
    """Replace unsafe characters by ``delim`` and collapse repeated delimiters.

    With no delimiter the unsafe characters are dropped. Names reduced to
    ``.`` or ``..`` are replaced by the delimiter, and overlong names are
    truncated keeping their extension.
    """
    repl = delim or ""
    out = "".join(repl if (ch in UNSAFE_CHARS or ord(ch) < 32) else ch for ch in name)
    if repl:
        out = re.sub(f"(?:{re.escape(repl)}){{2,}}", repl, out)
    if out in {".", ".."}:
        out = repl or "_"
    if len(out) > MAX_FILENAME:
        stem, dot, suffix = out.rpartition(".")
        if dot and len(suffix) < 16:
            out = stem[: MAX_FILENAME - len(suffix) - 1] + "." + suffix
        else:
            out = out[:MAX_FILENAME]
    return out


def resolve(pattern: str, default_name: str, seq_id: Optional[str], delim: Optional[str]) -> str:
    """Instantiate ``pattern`` for ``seq_id`` or fall back to ``default_name``."""
    if seq_id is None:
        return default_name
    filename = pattern.format(id=seq_id, delim=delim or "")
    return sanitize_filename(filename, delim)


def _same_file(a: Path, b: Path) -> bool:
    if str(a) == str(b):
        return True
    try:
        return a.resolve() == b.resolve()
    except OSError:
        return False


class OutputRouter:
    """Resolves and opens per-record output files for one run.

    Args:
        input_paths: Every declared input file of the run
        delim: Filename delimiter (``None`` drops unsafe characters)
        out_dir: Directory the resolved names are placed in
        output_file: Fixed record output name (overrides ``<id>.fold``)
    """

    def __init__(
        self,
        input_paths: Iterable[Path] = (),
        delim: Optional[str] = "_",
        out_dir: Optional[Path] = None,
        output_file: Optional[str] = None,
    ) -> None:
        self.input_paths = [Path(p) for p in input_paths]
        self.delim = delim
        self.out_dir = out_dir
        self.output_file = output_file
        self.used: set[Path] = set()

    def _place(self, name: str) -> Path:
        path = Path(name) if self.out_dir is None else self.out_dir / name
        for inp in self.input_paths:
            if _same_file(path, inp):
                raise OutputCollisionError(str(path))
        return path

    def path_for(self, pattern: str, default_name: str, seq_id: Optional[str]) -> Path:
        return self._place(resolve(pattern, default_name, seq_id, self.delim))

    def record_path(self, seq_id: Optional[str]) -> Path:
        if self.output_file:
            return self._place(sanitize_filename(self.output_file, self.delim))
        path = self.path_for(*RECORD_OUTPUT, seq_id)
        # distinct ids may still sanitise to one name
        if seq_id is not None and path in self.used:
            raise OutputCollisionError(str(path), "Output file already written for an earlier record")
        return path

    def structure_plot(self, seq_id: Optional[str]) -> Path:
        return self.path_for(*STRUCTURE_PLOT, seq_id)

    def dot_plot(self, seq_id: Optional[str]) -> Path:
        return self.path_for(*DOT_PLOT, seq_id)

    def stack_plot(self, seq_id: Optional[str]) -> Path:
        return self.path_for(*STACK_PLOT, seq_id)

    @contextmanager
    def open_record(self, path: Optional[Path]) -> Iterator[TextIO]:
        """Yield an append-mode handle for ``path`` (stdout when ``None``).

        The handle is flushed and closed when the block exits, also on error.
        """
        if path is None:
            yield sys.stdout
            sys.stdout.flush()
            return
        try:
            fh = path.open("a")
        except OSError as e:
            raise FileIOError(f"Failed to open file \"{path}\" for writing") from e
        self.used.add(path)
        with fh:
            yield fh
            fh.flush()
