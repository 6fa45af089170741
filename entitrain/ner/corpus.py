"""
Corpus Accumulator
==================

Accumula le istanze di training e mantiene il vocabolario delle label.

Ogni label riceve un id intero denso nell'ordine in cui viene vista per
la prima volta. Gli id restano stabili per tutta la vita del corpus e
definiscono il vocabolario di output dell'estrattore.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence, Tuple

import structlog

from entitrain.exceptions import InvalidSpanError
from entitrain.ner.instance import NERTrainingInstance, Span

log = structlog.get_logger()


@dataclass(frozen=True)
class CorpusSentence:
    """Vista in sola lettura di una frase del corpus."""

    index: int
    tokens: Tuple[str, ...]
    chunks: Tuple[Span, ...]
    label_ids: Tuple[int, ...]


class CorpusAccumulator:
    """
    Collezioni parallele di frasi, range e id delle label.

    Invariante: ``sentences``, ``chunks`` e ``chunk_labels`` hanno sempre la
    stessa lunghezza e per ogni i ``chunks[i]`` e ``chunk_labels[i]`` anche.
    """

    def __init__(self):
        self.sentences: List[Tuple[str, ...]] = []
        self.chunks: List[List[Span]] = []
        self.chunk_labels: List[List[int]] = []
        self.label_to_id: Dict[str, int] = {}
        self.label_counts: Counter = Counter()

    def __len__(self) -> int:
        return len(self.sentences)

    def add(self, instance: NERTrainingInstance) -> None:
        """Copia token, range e label dell'istanza nel corpus."""
        entities = instance.entities()
        ids = [self.get_label_id(label) for _, label in entities]

        self.sentences.append(tuple(instance.tokens))
        self.chunks.append([span for span, _ in entities])
        self.chunk_labels.append(ids)
        self.label_counts.update(ids)

    def add_all(self, instances: Sequence[NERTrainingInstance]) -> None:
        for instance in instances:
            self.add(instance)

    def get_label_id(self, label: str) -> int:
        """Restituisce l'id della label, registrandola se nuova."""
        label_id = self.label_to_id.get(label)
        if label_id is None:
            label_id = len(self.label_to_id)
            self.label_to_id[label] = label_id
            log.debug("label_registered", label=label, label_id=label_id)
        return label_id

    def get_all_labels(self) -> List[str]:
        """Label ordinate per id."""
        labels = [""] * len(self.label_to_id)
        for label, label_id in self.label_to_id.items():
            labels[label_id] = label
        return labels

    def num_entities(self) -> int:
        return sum(len(c) for c in self.chunks)

    def iter_sentences(self) -> Iterator[CorpusSentence]:
        for i, tokens in enumerate(self.sentences):
            yield CorpusSentence(
                index=i,
                tokens=tokens,
                chunks=tuple(self.chunks[i]),
                label_ids=tuple(self.chunk_labels[i]),
            )

    def statistics(self) -> Dict[str, object]:
        """Statistiche per label, indicizzate per nome."""
        labels = self.get_all_labels()
        return {
            "sentences": len(self.sentences),
            "tokens": sum(len(s) for s in self.sentences),
            "entities": self.num_entities(),
            "labels": {labels[i]: self.label_counts[i] for i in range(len(labels))},
        }


def build_instance(
    tokens: Sequence[str],
    ranges: Sequence[Span],
    labels: Sequence[str],
) -> NERTrainingInstance:
    """
    Costruisce un'istanza da collezioni parallele di range e label.

    Raises:
        InvalidSpanError: se le lunghezze differiscono o un range e' invalido
    """
    if len(ranges) != len(labels):
        raise InvalidSpanError(
            f"ranges e labels hanno lunghezze diverse ({len(ranges)} != {len(labels)})"
        )
    instance = NERTrainingInstance(tokens)
    for span, label in zip(ranges, labels):
        instance.add_entity(tuple(span), label)
    return instance
