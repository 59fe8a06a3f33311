"""
Error taxonomy for ensemblefold.

Recoverable errors (``ParseError`` and the "constraint shorter than
sequence" case) are handled where they occur: a warning is written and the
offending unit is skipped. Everything else derives from ``FoldError`` and
is fatal once it escapes a record; the CLI turns it into a single
``[ERROR]`` line and a non-zero exit status.
"""

from __future__ import annotations

__all__ = [
    "FoldError",
    "ParseError",
    "ConstraintLengthError",
    "InfeasibleConstraints",
    "FileIOError",
    "OutputCollisionError",
    "ConfigError",
]


class FoldError(Exception):
    """Base class for all ensemblefold errors."""


class ParseError(FoldError, ValueError):
    """Malformed record, motif spec or directive line."""


class ConstraintLengthError(FoldError, ValueError):
    """Structure constraint longer than the sequence it constrains."""

    def __init__(self, constraint_length: int, sequence_length: int) -> None:
        self.constraint_length = constraint_length
        self.sequence_length = sequence_length
        super().__init__(
            f"structure constraint is too long "
            f"({constraint_length} > {sequence_length})"
        )


class InfeasibleConstraints(FoldError):
    """The active constraints leave no structure to fold into."""

    def __init__(self, sequence: str) -> None:
        self.sequence = sequence
        super().__init__(
            "Supplied structure constraints create empty solution set for "
            f"sequence:\n{sequence}"
        )


class FileIOError(FoldError, OSError):
    """A declared input or output file cannot be opened."""


class OutputCollisionError(FoldError):
    """Resolved output path would overwrite an input or an earlier record."""

    def __init__(self, path: str, reason: str = "Input and output file names are identical") -> None:
        self.path = path
        super().__init__(f"{reason}: {path}")


class ConfigError(FoldError, ValueError):
    """Invalid combination of model or run settings."""
