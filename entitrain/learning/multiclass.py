"""
Multiclass Linear SVM
=====================

Classificatore lineare multiclasse (formulazione Crammer-Singer) risolto
con lo stesso solver strutturato del segmenter:

    phi(x, y) = e_y (x) x        L(y, y') = [y != y']

Include gli helper di stratificazione usati per partizionare gli esempi
tra i worker senza lasciare classi scoperte.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np

from entitrain.learning.ssvm import StructuralProblem


def count_of_least_common_label(labels: Sequence[int]) -> int:
    """Numero di occorrenze della label meno frequente (0 se vuoto)."""
    counts = Counter(labels)
    return min(counts.values()) if counts else 0


def stratified_partitions(labels: Sequence[int], num_partitions: int) -> List[List[int]]:
    """
    Distribuisce gli indici degli esempi su ``num_partitions`` partizioni.

    Gli indici di ogni classe vengono assegnati round-robin, con un offset
    che ruota tra le classi per bilanciare le dimensioni. Se
    ``num_partitions <= count_of_least_common_label(labels)`` ogni classe
    compare in ogni partizione.
    """
    if num_partitions < 1:
        raise ValueError("num_partitions deve essere >= 1")

    by_class: Dict[int, List[int]] = {}
    for i, label in enumerate(labels):
        by_class.setdefault(label, []).append(i)

    partitions: List[List[int]] = [[] for _ in range(num_partitions)]
    offset = 0
    for label in sorted(by_class):
        for k, i in enumerate(by_class[label]):
            partitions[(offset + k) % num_partitions].append(i)
        offset += len(by_class[label])
    for part in partitions:
        part.sort()
    return partitions


class MulticlassProblem(StructuralProblem):
    """
    Problema Crammer-Singer su vettori di feature densi.

    Args:
        samples: Matrice (n, d)
        labels: Id di classe in [0, num_classes)
        num_classes: Numero di classi
    """

    def __init__(self, samples: np.ndarray, labels: Sequence[int], num_classes: int):
        samples = np.asarray(samples, dtype=np.float64)
        if samples.ndim != 2 or samples.shape[0] != len(labels):
            raise ValueError("samples e labels non allineati")
        self._x = samples
        self._y = np.asarray(labels, dtype=np.int64)
        self.num_classes = num_classes

    @property
    def num_samples(self) -> int:
        return self._x.shape[0]

    @property
    def dimensionality(self) -> int:
        return self.num_classes * self._x.shape[1]

    def _phi(self, i: int, label: int) -> np.ndarray:
        d = self._x.shape[1]
        out = np.zeros(self.dimensionality)
        out[label * d:(label + 1) * d] = self._x[i]
        return out

    def true_feature(self, i: int) -> np.ndarray:
        return self._phi(i, int(self._y[i]))

    def separation_oracle(self, i: int, weights: np.ndarray) -> Tuple[np.ndarray, float]:
        w = weights.reshape(self.num_classes, -1)
        scores = w @ self._x[i] + 1.0
        truth = int(self._y[i])
        scores[truth] -= 1.0
        predicted = int(scores.argmax())
        return self._phi(i, predicted), float(predicted != truth)


@dataclass
class LinearMulticlassClassifier:
    """
    Classificatore lineare: argmax_y <w_y, x>.

    Attributes:
        weights: Matrice (num_classes, d)
    """
    weights: np.ndarray

    @property
    def num_classes(self) -> int:
        return self.weights.shape[0]

    def scores(self, x: np.ndarray) -> np.ndarray:
        return self.weights @ x

    def predict(self, x: np.ndarray) -> Tuple[int, float]:
        """Restituisce (label_id, punteggio)."""
        scores = self.scores(x)
        best = int(scores.argmax())
        return best, float(scores[best])

    def predict_batch(self, samples: np.ndarray) -> np.ndarray:
        if len(samples) == 0:
            return np.zeros(0, dtype=np.int64)
        return (np.asarray(samples) @ self.weights.T).argmax(axis=1)

    def accuracy(self, samples: np.ndarray, labels: Sequence[int]) -> float:
        if len(labels) == 0:
            return 0.0
        predicted = self.predict_batch(samples)
        return float(np.mean(predicted == np.asarray(labels)))
