"""
NER Trainer
===========

Orchestratore del training: possiede corpus, iperparametri e numero di
thread, esegue i due stadi nell'ordine corretto e assembla l'estrattore.

Pipeline di ``train()``:
1. feature per token di ogni frase
2. training del segmenter (span senza tipo)
3. raccolta degli span etichettati riapplicando il segmenter
4. training del classificatore di tipo
5. assemblaggio del NamedEntityExtractor

Il training riesce completamente oppure solleva un'eccezione: non viene
mai restituito un estrattore parziale.

Example:
    >>> from entitrain.ner import NERTrainer, NERTrainingInstance
    >>>
    >>> trainer = NERTrainer("embeddings.txt")
    >>> sample = NERTrainingInstance(["John", "lives", "in", "Boston"])
    >>> sample.add_entity((0, 1), "PERSON")
    >>> sample.add_entity(3, 1, "LOCATION")
    >>> trainer.add(sample)
    >>> trainer.set_num_threads(4)
    >>> extractor = trainer.train()
    >>> extractor.get_tag_names()
    ['PERSON', 'LOCATION']
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import structlog

from entitrain.config import TrainerConfig, validate_beta, validate_num_threads
from entitrain.exceptions import EmptyCorpusError, InvalidSpanError
from entitrain.features.segment_features import SegmentFeatureExtractor
from entitrain.features.word_features import WordFeatureSource
from entitrain.ner.classifier_trainer import harvest_span_samples, train_span_classifier
from entitrain.ner.corpus import CorpusAccumulator, build_instance
from entitrain.ner.evaluation import NERMetrics, evaluate_extractor
from entitrain.ner.extractor import NamedEntityExtractor, assemble_extractor
from entitrain.ner.instance import NERTrainingInstance, Span
from entitrain.ner.segmenter_trainer import train_segmenter

log = structlog.get_logger()


@dataclass
class TrainingReport:
    """
    Riepilogo dell'ultimo training.

    Attributes:
        sentences: Frasi nel corpus
        entities: Entita' annotate
        labels: Vocabolario delle label
        span_samples: Esempi raccolti per il classificatore
        beta: Beta usato
        num_threads: Thread usati
        elapsed_seconds: Durata del training
    """
    sentences: int
    entities: int
    labels: List[str]
    span_samples: int
    beta: float
    num_threads: int
    elapsed_seconds: float
    sources: Dict[str, int] = field(default_factory=dict)


class NERTrainer:
    """
    Trainer per NamedEntityExtractor.

    Args:
        feature_source: Path del file di embedding oppure WordFeatureSource
            gia' caricata
        config: Iperparametri (default: TrainerConfig())

    Raises:
        FeatureSourceLoadError: se la sorgente di feature non si carica
    """

    def __init__(
        self,
        feature_source: Union[str, Path, WordFeatureSource],
        config: Optional[TrainerConfig] = None,
    ):
        self.config = (config or TrainerConfig()).validate()

        if isinstance(feature_source, WordFeatureSource):
            self._feature_source = feature_source
        else:
            self._feature_source = WordFeatureSource.load(feature_source)

        self._beta = self.config.beta
        self._num_threads = self.config.num_threads
        self._corpus = CorpusAccumulator()
        self.last_report: Optional[TrainingReport] = None

        log.info(
            "ner_trainer_initialized",
            beta=self._beta,
            num_threads=self._num_threads,
            feature_dimensionality=self._feature_source.dimensionality,
        )

    # =========================================================================
    # CORPUS
    # =========================================================================

    def size(self) -> int:
        return len(self._corpus)

    def __len__(self) -> int:
        return len(self._corpus)

    def add(self, *args: Any) -> None:
        """
        Aggiunge dati di training.

        Forme accettate:
            add(instance)
            add(tokens, ranges, labels)                  una frase
            add(list_of_tokens, list_of_ranges, list_of_labels)   batch

        Le forme bulk validano tutte le istanze prima di modificare il
        corpus: se una sola e' invalida non viene aggiunto nulla.

        Raises:
            InvalidSpanError: range invalidi, sovrapposti o liste disallineate
        """
        if len(args) == 1 and isinstance(args[0], NERTrainingInstance):
            self._corpus.add(args[0])
            return
        if len(args) != 3:
            raise TypeError(
                "add() accetta un NERTrainingInstance oppure (tokens, ranges, labels)"
            )

        tokens, ranges, labels = args
        if _is_token_sequence(tokens):
            self._corpus.add(build_instance(tokens, ranges, labels))
        else:
            self._corpus.add_all(self._build_batch(tokens, ranges, labels))

    @staticmethod
    def _build_batch(
        tokens: Sequence[Sequence[str]],
        ranges: Sequence[Sequence[Span]],
        labels: Sequence[Sequence[str]],
    ) -> List[NERTrainingInstance]:
        if not (len(tokens) == len(ranges) == len(labels)):
            raise InvalidSpanError(
                f"tokens, ranges e labels hanno lunghezze diverse "
                f"({len(tokens)}, {len(ranges)}, {len(labels)})"
            )
        instances = []
        for i, (t, r, lab) in enumerate(zip(tokens, ranges, labels)):
            try:
                instances.append(build_instance(t, r, lab))
            except InvalidSpanError as e:
                raise InvalidSpanError(f"istanza {i}: {e.message}") from e
        return instances

    def get_all_labels(self) -> List[str]:
        return self._corpus.get_all_labels()

    def corpus_statistics(self) -> Dict[str, Any]:
        return self._corpus.statistics()

    # =========================================================================
    # HYPERPARAMETERS
    # =========================================================================

    def get_num_threads(self) -> int:
        return self._num_threads

    def set_num_threads(self, num: int) -> None:
        self._num_threads = validate_num_threads(num)

    def get_beta(self) -> float:
        return self._beta

    def set_beta(self, new_beta: float) -> None:
        self._beta = validate_beta(new_beta)

    @property
    def feature_source(self) -> WordFeatureSource:
        return self._feature_source

    # =========================================================================
    # TRAINING
    # =========================================================================

    def train(self) -> NamedEntityExtractor:
        """
        Addestra un NamedEntityExtractor sulle istanze aggiunte.

        Returns:
            Estrattore completo

        Raises:
            EmptyCorpusError: se size() == 0
            TrainingError: se un solver fallisce o non converge
        """
        if self.size() == 0:
            raise EmptyCorpusError()

        corpus = self._corpus
        beta = self._beta
        num_threads = self._num_threads
        labels = corpus.get_all_labels()
        started = time.monotonic()

        log.info(
            "training_started",
            sentences=len(corpus),
            entities=corpus.num_entities(),
            labels=labels,
            beta=beta,
            num_threads=num_threads,
        )

        try:
            feature_extractor = SegmentFeatureExtractor(
                self._feature_source, window=self.config.context_window
            )
            token_feats = self._compute_token_features(feature_extractor, num_threads)

            segmenter = train_segmenter(
                token_feats,
                corpus.chunks,
                beta=beta,
                num_threads=num_threads,
                config=self.config,
            )

            samples = harvest_span_samples(
                segmenter,
                corpus,
                token_feats,
                feature_extractor,
                include_missed_spans=self.config.include_missed_spans,
            )

            classifier = train_span_classifier(
                samples,
                num_classes=len(labels),
                config=self.config,
                num_threads=num_threads,
            )

            extractor = assemble_extractor(segmenter, classifier, labels, feature_extractor)
        except Exception as e:
            log.error("training_failed", error=str(e), error_type=type(e).__name__)
            raise

        sources: Dict[str, int] = {}
        for sample in samples:
            sources[sample.source] = sources.get(sample.source, 0) + 1

        self.last_report = TrainingReport(
            sentences=len(corpus),
            entities=corpus.num_entities(),
            labels=labels,
            span_samples=len(samples),
            beta=beta,
            num_threads=num_threads,
            elapsed_seconds=round(time.monotonic() - started, 3),
            sources=sources,
        )
        log.info("training_completed", **self.last_report.__dict__)
        return extractor

    def _compute_token_features(
        self,
        feature_extractor: SegmentFeatureExtractor,
        num_threads: int,
    ) -> List[np.ndarray]:
        sentences = self._corpus.sentences
        with ThreadPoolExecutor(max_workers=max(1, min(num_threads, len(sentences)))) as executor:
            return list(executor.map(feature_extractor.token_features, sentences))

    def evaluate(
        self,
        extractor: NamedEntityExtractor,
        instances: Sequence[NERTrainingInstance],
    ) -> NERMetrics:
        """
        Valuta un estrattore su istanze annotate.

        Returns:
            NERMetrics con precision, recall e F1 exact-match
        """
        metrics = evaluate_extractor(extractor, instances)
        log.info(
            "evaluation_completed",
            precision=round(metrics.precision, 4),
            recall=round(metrics.recall, 4),
            f1=round(metrics.f1, 4),
            n_sentences=metrics.n_sentences,
        )
        return metrics


def _is_token_sequence(tokens: Any) -> bool:
    """True se ``tokens`` e' una singola frase (sequenza di stringhe)."""
    if isinstance(tokens, str):
        raise TypeError("tokens deve essere una sequenza, non una stringa")
    return len(tokens) == 0 or isinstance(tokens[0], str)
