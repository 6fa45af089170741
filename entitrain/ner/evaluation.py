"""
NER Evaluation
==============

Metriche exact-match per un estrattore addestrato.

Uno span predetto e' corretto solo se range e label coincidono con
un'annotazione.

Esempio:
    >>> metrics = evaluate_extractor(extractor, test_instances)
    >>> print(f"F1: {metrics.f1:.3f}")
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Sequence

from entitrain.ner.extractor import NamedEntityExtractor
from entitrain.ner.instance import NERTrainingInstance


def _prf(tp: int, fp: int, fn: int) -> Dict[str, float]:
    precision = tp / (tp + fp) if tp + fp else 0.0
    recall = tp / (tp + fn) if tp + fn else 0.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
    return {"precision": precision, "recall": recall, "f1": f1}


@dataclass
class NERMetrics:
    """
    Metriche di valutazione.

    Attributes:
        precision: Span corretti / span predetti
        recall: Span corretti / span annotati
        f1: Media armonica di precision e recall
        true_positives: Span con range e label corretti
        false_positives: Span predetti non corretti
        false_negatives: Span annotati non trovati
        per_label: Metriche per singola label
        n_sentences: Frasi valutate
    """
    precision: float = 0.0
    recall: float = 0.0
    f1: float = 0.0
    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    per_label: Dict[str, Dict[str, float]] = field(default_factory=dict)
    n_sentences: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serializza in dizionario."""
        return {
            "precision": self.precision,
            "recall": self.recall,
            "f1": self.f1,
            "true_positives": self.true_positives,
            "false_positives": self.false_positives,
            "false_negatives": self.false_negatives,
            "per_label": self.per_label,
            "n_sentences": self.n_sentences,
        }

    def summary(self) -> str:
        return (
            f"NERMetrics (n={self.n_sentences}): "
            f"P={self.precision:.3f}, R={self.recall:.3f}, F1={self.f1:.3f}"
        )


def evaluate_extractor(
    extractor: NamedEntityExtractor,
    instances: Sequence[NERTrainingInstance],
) -> NERMetrics:
    """Confronta le entita' estratte con le annotazioni delle istanze."""
    counts: Dict[str, Dict[str, int]] = {}

    def bucket(label: str) -> Dict[str, int]:
        return counts.setdefault(label, {"tp": 0, "fp": 0, "fn": 0})

    for instance in instances:
        gold = {span: label for span, label in instance.entities()}
        predicted = {m.span: m.label for m in extractor.extract_entities(instance.tokens)}

        for span, label in predicted.items():
            if gold.get(span) == label:
                bucket(label)["tp"] += 1
            else:
                bucket(label)["fp"] += 1
        for span, label in gold.items():
            if predicted.get(span) != label:
                bucket(label)["fn"] += 1

    tp = sum(c["tp"] for c in counts.values())
    fp = sum(c["fp"] for c in counts.values())
    fn = sum(c["fn"] for c in counts.values())
    overall = _prf(tp, fp, fn)

    per_label = {}
    for label in sorted(counts):
        c = counts[label]
        per_label[label] = {**_prf(c["tp"], c["fp"], c["fn"]), "support": c["tp"] + c["fn"]}

    return NERMetrics(
        precision=overall["precision"],
        recall=overall["recall"],
        f1=overall["f1"],
        true_positives=tp,
        false_positives=fp,
        false_negatives=fn,
        per_label=per_label,
        n_sentences=len(instances),
    )
