"""
Named Entity Extractor
======================

Artefatto prodotto dal training: segmenter + classificatore + tabella
delle label + sorgente di feature.

L'inferenza e' volutamente minimale: segmenta la frase, calcola le feature
di ogni span e assegna la label con punteggio massimo.
"""

from dataclasses import dataclass
from typing import List, Sequence

import structlog

from entitrain.features.segment_features import SegmentFeatureExtractor
from entitrain.features.word_features import WordFeatureSource
from entitrain.learning.multiclass import LinearMulticlassClassifier
from entitrain.learning.sequence import SequenceSegmenter

log = structlog.get_logger()


@dataclass
class EntityMention:
    """
    Entita' riconosciuta in una sequenza di token.

    Attributes:
        start: Indice del primo token
        end: Indice dopo l'ultimo token
        label: Tipo di entita'
        label_id: Id della label
        score: Punteggio del classificatore
    """
    start: int
    end: int
    label: str
    label_id: int
    score: float = 0.0

    @property
    def span(self):
        return (self.start, self.end)

    def __repr__(self) -> str:
        return f"EntityMention({self.label}, [{self.start}:{self.end}), score={self.score:.3f})"


class NamedEntityExtractor:
    """
    Estrattore NER addestrato.

    Example:
        >>> extractor = trainer.train()
        >>> extractor.get_tag_names()
        ['PERSON', 'LOCATION']
        >>> extractor.extract_entities(["Paris", "is", "nice"])
        [EntityMention(LOCATION, [0:1), score=...)]
    """

    def __init__(
        self,
        segmenter: SequenceSegmenter,
        classifier: LinearMulticlassClassifier,
        labels: Sequence[str],
        feature_extractor: SegmentFeatureExtractor,
    ):
        if classifier.num_classes != len(labels):
            raise ValueError(
                f"classificatore con {classifier.num_classes} classi per {len(labels)} label"
            )
        self.segmenter = segmenter
        self.classifier = classifier
        self._labels = list(labels)
        self.feature_extractor = feature_extractor

    @property
    def feature_source(self) -> WordFeatureSource:
        return self.feature_extractor.feature_source

    def get_tag_names(self) -> List[str]:
        return list(self._labels)

    def extract_entities(self, tokens: Sequence[str]) -> List[EntityMention]:
        """Entita' trovate nella sequenza, in ordine di posizione."""
        tokens = list(tokens)
        if not tokens:
            return []
        feats = self.feature_extractor.token_features(tokens)
        mentions = []
        for span in self.segmenter.segment(feats):
            label_id, score = self.classifier.predict(
                self.feature_extractor.span_features(feats, span)
            )
            mentions.append(EntityMention(
                start=span[0],
                end=span[1],
                label=self._labels[label_id],
                label_id=label_id,
                score=score,
            ))
        return mentions


def assemble_extractor(
    segmenter: SequenceSegmenter,
    classifier: LinearMulticlassClassifier,
    labels: Sequence[str],
    feature_extractor: SegmentFeatureExtractor,
) -> NamedEntityExtractor:
    """Combina i componenti addestrati nell'estrattore finale."""
    extractor = NamedEntityExtractor(segmenter, classifier, labels, feature_extractor)
    log.info("extractor_assembled", labels=list(labels))
    return extractor
