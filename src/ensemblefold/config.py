"""
Run and model configuration for ensemblefold.

``ModelDetails`` is the immutable description of the energy model that is
threaded through every engine call. ``RunConfig`` carries everything else a
run needs. Both can be loaded from a YAML or JSON file and are then
overridden by command-line flags (see :mod:`ensemblefold.cli`).
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigError, FileIOError

__all__ = [
    "ModelDetails",
    "IdSettings",
    "RunConfig",
    "load_config",
    "validate_config",
    "config_to_dict",
]


@dataclass(frozen=True)
class ModelDetails:
    """Energy model settings passed to the folding engine.

    Attributes:
        temperature: Folding temperature in degrees Celsius
        dangles: Dangling end treatment (0, 1, 2 or 3)
        noLP: Forbid lonely pairs
        noGU: Forbid GU pairs
        circ: Treat the sequence as circular
        gquad: Include G-quadruplex structures
        uniq_ML: Unique multiloop decomposition (needed for sampling)
        compute_bpp: 0 = no probabilities, 1 = pair probabilities,
            2 = pair and stacking probabilities
        max_bp_span: Maximum base pair span (-1 = unlimited)
    """

    temperature: float = 37.0
    dangles: int = 2
    noLP: bool = False
    noGU: bool = False
    circ: bool = False
    gquad: bool = False
    uniq_ML: bool = False
    compute_bpp: int = 1
    max_bp_span: int = -1

    def with_even_dangles(self) -> ModelDetails:
        """Model used for the partition-function rescaling reference energy."""
        if self.dangles % 2:
            return replace(self, dangles=2)
        return self


@dataclass
class IdSettings:
    prefix: str = "sequence"
    delimiter: str = "_"
    digits: int = 4
    start: int = 1
    auto_id: bool = False


@dataclass
class RunConfig:
    model: ModelDetails = field(default_factory=ModelDetails)
    ids: IdSettings = field(default_factory=IdSettings)

    pf: bool = False
    mea: bool = False
    mea_gamma: float = 1.0
    bppm_threshold: float = 1e-5
    lucky: bool = False
    no_ps: bool = False
    noconv: bool = False
    verbose: bool = False

    ligand_motif: Optional[str] = None
    commands_file: Optional[Path] = None

    constrained: bool = False
    constraint_file: Optional[Path] = None
    constraint_batch: bool = False
    constraint_enforce: bool = False
    constraint_canonical: bool = False

    shape_file: Optional[Path] = None
    shape_method: str = "D"
    shape_conversion: str = "O"

    tofile: bool = False
    output_file: Optional[str] = None
    filename_delim: Optional[str] = None
    filename_full: bool = False

    summary: Optional[Path] = None

    @property
    def shape(self) -> bool:
        return self.shape_file is not None


_PATH_KEYS = {"commands_file", "constraint_file", "shape_file", "summary"}


def _resolve(path_str: Optional[str], base: Path) -> Optional[Path]:
    if path_str is None:
        return None
    p = Path(path_str)
    if not p.is_absolute():
        p = base / p
    return p


def load_config(path: Path) -> RunConfig:
    """
    Load a run config from JSON or YAML.

    Relative paths inside the file are resolved against the file's
    directory. Unknown keys are rejected.
    """
    try:
        text = path.read_text()
    except OSError as e:
        raise FileIOError(f"Unable to read config file {path}: {e}") from e

    if path.suffix in {".yaml", ".yml"}:
        raw = yaml.safe_load(text) or {}
    else:
        raw = json.loads(text)

    base = path.parent
    model_raw = raw.pop("model", {}) or {}
    ids_raw = raw.pop("ids", {}) or {}

    known = {f.name for f in fields(RunConfig)} - {"model", "ids"}
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {sorted(unknown)}")

    for key in _PATH_KEYS & set(raw):
        raw[key] = _resolve(raw[key], base)

    try:
        model = ModelDetails(**model_raw)
        ids = IdSettings(**ids_raw)
    except TypeError as e:
        raise ConfigError(f"Invalid config section in {path}: {e}") from e

    return RunConfig(model=model, ids=ids, **raw)


def validate_config(cfg: RunConfig) -> RunConfig:
    """Normalise option combinations in place and return ``cfg``.

    Mirrors the checks done before any sequence is read: unsupported
    dangle models fall back to 2, circular folding cannot be combined with
    quadruplexes, and modes that need the partition function switch it on.
    """
    md = cfg.model

    if md.dangles < 0 or md.dangles > 3:
        sys.stderr.write(
            "[WARN] required dangle model not implemented, "
            "falling back to default dangles=2\n"
        )
        md = replace(md, dangles=2)

    if md.circ and md.gquad:
        raise ConfigError(
            "G-Quadruplex support is currently not available for circular RNA structures"
        )

    if md.circ and md.noLP:
        sys.stderr.write(
            "[WARN] depending on the origin of the circular sequence, some structures "
            "may be missed when using --noLP\n"
            "Try rotating your sequence a few times\n"
        )

    if cfg.lucky:
        md = replace(md, uniq_ML=True)
        cfg.pf = True

    if cfg.mea:
        cfg.pf = True

    cfg.bppm_threshold = min(1.0, max(0.0, cfg.bppm_threshold))

    if cfg.constraint_file is not None:
        cfg.constrained = True

    if cfg.filename_delim is None:
        cfg.filename_delim = cfg.ids.delimiter
    if cfg.filename_delim is not None and cfg.filename_delim[:1].isspace():
        cfg.filename_delim = None

    cfg.model = md
    return cfg


def config_to_dict(cfg: RunConfig) -> dict[str, Any]:
    """Flat, JSON-friendly view of a config (used for verbose echo)."""
    out: dict[str, Any] = {}
    for f in fields(cfg):
        value = getattr(cfg, f.name)
        if isinstance(value, (ModelDetails, IdSettings)):
            out[f.name] = {g.name: getattr(value, g.name) for g in fields(value)}
        elif isinstance(value, Path):
            out[f.name] = str(value)
        else:
            out[f.name] = value
    return out
