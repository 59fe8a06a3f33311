from ensemblefold.annotate import (
    domain_log_lines,
    join_annotations,
    ligand_log_lines,
    render_domain_annotation,
    render_ligand_annotation,
)
from ensemblefold.motifs import DomainOccurrence, MotifOccurrence

OCCURRENCES = [MotifOccurrence.hairpin(3, 7), MotifOccurrence.interior(1, 13, 4, 10)]


def test_render_ligand_annotation_in_detection_order() -> None:
    assert render_ligand_annotation(OCCURRENCES) == (
        "3 7 1. 0 0 Fomark 1 13 4 10 1. 0 0 BFmark"
    )


def test_render_nothing() -> None:
    assert render_ligand_annotation([]) is None
    assert render_domain_annotation([]) is None


def test_render_domain_annotation() -> None:
    assert render_domain_annotation([DomainOccurrence(4, 0, 3)]) == "4 6 12 0.4 0.65 0.95 omark"


def test_join_annotations() -> None:
    assert join_annotations(None, "a", "") == "a"
    assert join_annotations("a", "b") == "a b"
    assert join_annotations(None, None) is None


def test_log_lines() -> None:
    assert ligand_log_lines(OCCURRENCES, "MFE") == [
        "specified motif detected in MFE structure: [3:7]",
        "specified motif detected in MFE structure: [1:4] & [10:13]",
    ]
    assert domain_log_lines([DomainOccurrence(4, 1, 3)], "centroid") == [
        "ud motif 1 detected in centroid structure: [4:6]"
    ]
