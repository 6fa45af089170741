"""
Type Classifier Trainer
=======================

Secondo stadio del training: classificazione del tipo degli span.

1. ``harvest_span_samples`` applica il segmenter a ogni frase di training:
   gli span predetti che coincidono esattamente con uno span annotato
   diventano esempi etichettati, gli altri vengono scartati (gli errori di
   confine sono responsabilita' del segmenter). Gli span annotati mancati
   dal segmenter possono essere aggiunti (``include_missed_spans``).
2. ``train_span_classifier`` addestra un SVM lineare multiclasse sugli
   esempi raccolti. Se ogni classe ha almeno 2 esempi, la costante C viene
   scelta con cross-validation su fold stratificati, eseguita in parallelo.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np
import structlog

from entitrain.config import TrainerConfig
from entitrain.exceptions import TrainingError
from entitrain.features.segment_features import SegmentFeatureExtractor
from entitrain.learning.multiclass import (
    LinearMulticlassClassifier,
    MulticlassProblem,
    count_of_least_common_label,
    stratified_partitions,
)
from entitrain.learning.sequence import SequenceSegmenter
from entitrain.learning.ssvm import StructuralSVMSolver
from entitrain.ner.corpus import CorpusAccumulator
from entitrain.ner.instance import Span

log = structlog.get_logger()

SOURCE_PREDICTED = "predicted"
SOURCE_ANNOTATED = "annotated"


@dataclass(frozen=True)
class LabeledSpanSample:
    """
    Esempio di training per il classificatore.

    Attributes:
        sentence_index: Indice della frase nel corpus
        span: Range [start, end)
        label_id: Id della label vera
        features: Vettore di feature dello span
        source: "predicted" se trovato dal segmenter, "annotated" se mancato
    """
    sentence_index: int
    span: Span
    label_id: int
    features: np.ndarray
    source: str = SOURCE_PREDICTED


def harvest_span_samples(
    segmenter: SequenceSegmenter,
    corpus: CorpusAccumulator,
    token_feats: Sequence[np.ndarray],
    feature_extractor: SegmentFeatureExtractor,
    include_missed_spans: bool = True,
) -> List[LabeledSpanSample]:
    """Raccoglie gli esempi etichettati riapplicando il segmenter al corpus."""
    samples: List[LabeledSpanSample] = []
    predicted_total = 0
    discarded = 0
    missed = 0

    for sentence in corpus.iter_sentences():
        feats = token_feats[sentence.index]
        truth: Dict[Span, int] = dict(zip(sentence.chunks, sentence.label_ids))

        predicted = segmenter.segment(feats)
        predicted_total += len(predicted)
        found = set()
        for span in predicted:
            label_id = truth.get(span)
            if label_id is None:
                discarded += 1
                continue
            found.add(span)
            samples.append(LabeledSpanSample(
                sentence_index=sentence.index,
                span=span,
                label_id=label_id,
                features=feature_extractor.span_features(feats, span),
            ))

        for span in sentence.chunks:
            if span in found:
                continue
            missed += 1
            if include_missed_spans:
                samples.append(LabeledSpanSample(
                    sentence_index=sentence.index,
                    span=span,
                    label_id=truth[span],
                    features=feature_extractor.span_features(feats, span),
                    source=SOURCE_ANNOTATED,
                ))

    log.info(
        "span_samples_harvested",
        samples=len(samples),
        predicted_spans=predicted_total,
        discarded=discarded,
        missed=missed,
        include_missed_spans=include_missed_spans,
    )
    return samples


def _fit(
    x: np.ndarray,
    y: Sequence[int],
    num_classes: int,
    c: float,
    config: TrainerConfig,
    num_threads: int,
) -> LinearMulticlassClassifier:
    problem = MulticlassProblem(x, y, num_classes)
    solver = StructuralSVMSolver(
        c=c,
        epsilon=config.epsilon,
        max_iterations=config.max_iterations,
        num_threads=num_threads,
    )
    result = solver.solve(problem)
    return LinearMulticlassClassifier(weights=result.weights.reshape(num_classes, -1))


def select_regularization(
    x: np.ndarray,
    y: Sequence[int],
    num_classes: int,
    config: TrainerConfig,
    num_threads: int,
) -> Tuple[float, Dict[float, float]]:
    """
    Sceglie C con cross-validation stratificata.

    Ogni coppia (C, fold) e' un job indipendente; i job girano su
    ``num_threads`` worker. A parita' di accuratezza vince il C piu' piccolo.

    Returns:
        (C scelto, accuratezza media per C)
    """
    least = count_of_least_common_label(y)
    num_folds = min(config.cv_folds, least)
    folds = stratified_partitions(y, num_folds)
    y = np.asarray(y)
    grid = sorted(config.classifier_c_grid)

    def run(job: Tuple[float, int]) -> float:
        c, f = job
        held_out = np.asarray(folds[f])
        train_mask = np.ones(len(y), dtype=bool)
        train_mask[held_out] = False
        model = _fit(x[train_mask], y[train_mask], num_classes, c, config, num_threads=1)
        return model.accuracy(x[held_out], y[held_out])

    jobs = [(c, f) for c in grid for f in range(num_folds)]
    with ThreadPoolExecutor(max_workers=max(1, min(num_threads, len(jobs)))) as executor:
        accuracies = list(executor.map(run, jobs))

    scores: Dict[float, float] = {}
    for c in grid:
        fold_scores = [acc for (jc, _), acc in zip(jobs, accuracies) if jc == c]
        scores[c] = float(np.mean(fold_scores))
        log.debug("classifier_cv_result", c=c, accuracy=round(scores[c], 4), folds=num_folds)

    best_c = grid[0]
    for c in grid:
        if scores[c] > scores[best_c]:
            best_c = c
    return best_c, scores


def train_span_classifier(
    samples: Sequence[LabeledSpanSample],
    num_classes: int,
    config: TrainerConfig,
    num_threads: int,
) -> LinearMulticlassClassifier:
    """
    Addestra il classificatore di tipo.

    Raises:
        TrainingError: se non ci sono esempi
    """
    if not samples:
        raise TrainingError("Nessuno span etichettato disponibile per il classificatore")

    x = np.vstack([s.features for s in samples])
    y = [s.label_id for s in samples]
    least = count_of_least_common_label(y)

    log.info(
        "classifier_training_started",
        samples=len(samples),
        num_classes=num_classes,
        classes_present=len(set(y)),
        least_common_label_count=least,
    )

    if num_classes == 1:
        log.info("classifier_single_label")
        return LinearMulticlassClassifier(weights=np.zeros((1, x.shape[1])))

    c = config.classifier_c
    if least >= 2 and len(set(y)) > 1:
        c, _ = select_regularization(x, y, num_classes, config, num_threads)

    classifier = _fit(x, y, num_classes, c, config, num_threads)
    log.info(
        "classifier_training_completed",
        c=c,
        train_accuracy=round(classifier.accuracy(x, y), 4),
    )
    return classifier
