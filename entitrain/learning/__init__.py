"""
Learning
========

Solver SVM strutturato e i due modelli che lo usano:
- SequenceSegmenter (catena lineare BIO)
- LinearMulticlassClassifier (Crammer-Singer)
"""

from entitrain.learning.ssvm import StructuralProblem, StructuralSVMSolver, SolverResult
from entitrain.learning.sequence import SegmenterProblem, SequenceSegmenter
from entitrain.learning.multiclass import (
    LinearMulticlassClassifier,
    MulticlassProblem,
    count_of_least_common_label,
    stratified_partitions,
)

__all__ = [
    "StructuralProblem",
    "StructuralSVMSolver",
    "SolverResult",
    "SegmenterProblem",
    "SequenceSegmenter",
    "LinearMulticlassClassifier",
    "MulticlassProblem",
    "count_of_least_common_label",
    "stratified_partitions",
]
