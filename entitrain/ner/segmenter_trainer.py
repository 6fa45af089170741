"""
Boundary (Segmenter) Trainer
============================

Addestra il segmenter che individua gli span candidati, ignorando il tipo
dell'entita': ogni span annotato e' un esempio positivo di "entita'".

Il parametro beta entra nella loss strutturata come costo asimmetrico:
- token di uno span vero mancato: costo ``beta``
- token di un falso allarme: costo ``1/beta`` (limitato superiormente)

beta < 1 produce modelli orientati alla precisione, beta > 1 alla recall.
"""

from typing import List, Sequence

import numpy as np
import structlog

from entitrain.config import TrainerConfig
from entitrain.learning.sequence import SegmenterProblem, SequenceSegmenter
from entitrain.learning.ssvm import StructuralSVMSolver
from entitrain.ner.instance import Span

log = structlog.get_logger()


def segment_losses(beta: float, max_false_alarm_loss: float):
    """
    Costi (mancato, falso allarme) per un dato beta.

    Con beta == 0 il falso allarme costa ``max_false_alarm_loss``.
    """
    missed = float(beta)
    false_alarm = max_false_alarm_loss if beta == 0 else min(1.0 / beta, max_false_alarm_loss)
    return missed, false_alarm


def train_segmenter(
    token_feats: Sequence[np.ndarray],
    spans: Sequence[List[Span]],
    beta: float,
    num_threads: int,
    config: TrainerConfig,
) -> SequenceSegmenter:
    """
    Addestra il segmenter su tutto il corpus.

    Args:
        token_feats: Matrice di feature per ogni frase
        spans: Span annotati per ogni frase
        beta: Trade-off precisione/recall
        num_threads: Worker per l'oracolo di separazione
        config: Iperparametri del solver

    Returns:
        SequenceSegmenter addestrato

    Raises:
        ConvergenceError: se il solver non converge entro max_iterations
    """
    missed, false_alarm = segment_losses(beta, config.max_false_alarm_loss)
    problem = SegmenterProblem(
        token_feats,
        spans,
        loss_per_missed_segment=missed,
        loss_per_false_alarm=false_alarm,
    )

    log.info(
        "segmenter_training_started",
        sentences=problem.num_samples,
        dimensionality=problem.dimensionality,
        loss_per_missed_segment=missed,
        loss_per_false_alarm=round(false_alarm, 4),
        num_threads=num_threads,
    )

    solver = StructuralSVMSolver(
        c=config.segmenter_c,
        epsilon=config.epsilon,
        max_iterations=config.max_iterations,
        num_threads=num_threads,
    )
    result = solver.solve(problem)

    segmenter = SequenceSegmenter(
        weights=result.weights,
        token_dimensionality=problem.token_dimensionality,
    )

    log.info(
        "segmenter_training_completed",
        iterations=result.iterations,
        primal=round(result.primal, 6),
        gap=round(result.gap, 6),
        planes=result.num_planes,
    )
    return segmenter
