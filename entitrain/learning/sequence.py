"""
Sequence Segmenter
==================

Modello lineare a catena per la segmentazione di sequenze con schema BIO.

Il modello predice span contigui e non sovrapposti (entita' si/no, senza
tipo). I pesi sono un unico vettore:

    [ emissioni (3 x D) | transizioni (3 x 3) | start (3) ]

Le transizioni O -> I e start -> I sono vietate, quindi ogni sequenza di
tag decodificata corrisponde a un insieme valido di span.

La loss strutturata e' decomponibile per token: un token dentro uno span
vero etichettato male costa ``loss_per_missed_segment``, un token fuori da
tutti gli span etichettato male costa ``loss_per_false_alarm``.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from entitrain.learning.ssvm import StructuralProblem

Span = Tuple[int, int]

OUTSIDE, BEGIN, INSIDE = 0, 1, 2
NUM_TAGS = 3

_TRANSITION_MASK = np.zeros((NUM_TAGS, NUM_TAGS))
_TRANSITION_MASK[OUTSIDE, INSIDE] = -np.inf
_START_MASK = np.zeros(NUM_TAGS)
_START_MASK[INSIDE] = -np.inf


def spans_to_tags(num_tokens: int, spans: Sequence[Span]) -> np.ndarray:
    """Tag BIO per una lista di span non sovrapposti."""
    tags = np.full(num_tokens, OUTSIDE, dtype=np.int64)
    for start, end in spans:
        tags[start] = BEGIN
        tags[start + 1:end] = INSIDE
    return tags


def tags_to_spans(tags: Sequence[int]) -> List[Span]:
    """Span [start, end) codificati da una sequenza BIO."""
    spans: List[Span] = []
    start = None
    for t, tag in enumerate(tags):
        if tag == BEGIN:
            if start is not None:
                spans.append((start, t))
            start = t
        elif tag == OUTSIDE:
            if start is not None:
                spans.append((start, t))
            start = None
        elif start is None:
            # I senza B: trattato come inizio di span
            start = t
    if start is not None:
        spans.append((start, len(tags)))
    return spans


def viterbi(unary: np.ndarray, transitions: np.ndarray, start: np.ndarray) -> List[int]:
    """
    Decodifica la sequenza di tag a punteggio massimo.

    Args:
        unary: Punteggi (T, NUM_TAGS)
        transitions: Punteggi (NUM_TAGS, NUM_TAGS), indice [precedente, corrente]
        start: Punteggi (NUM_TAGS,) del primo tag
    """
    num_tokens = unary.shape[0]
    if num_tokens == 0:
        return []

    transitions = transitions + _TRANSITION_MASK
    score = start + _START_MASK + unary[0]
    back = np.zeros((num_tokens, NUM_TAGS), dtype=np.int64)
    for t in range(1, num_tokens):
        cand = score[:, None] + transitions
        back[t] = cand.argmax(axis=0)
        score = cand.max(axis=0) + unary[t]

    path = [int(score.argmax())]
    for t in range(num_tokens - 1, 0, -1):
        path.append(int(back[t, path[-1]]))
    path.reverse()
    return path


def split_weights(weights: np.ndarray, token_dim: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Viste (emissioni, transizioni, start) sul vettore dei pesi."""
    n_emit = NUM_TAGS * token_dim
    n_trans = NUM_TAGS * NUM_TAGS
    emissions = weights[:n_emit].reshape(NUM_TAGS, token_dim)
    transitions = weights[n_emit:n_emit + n_trans].reshape(NUM_TAGS, NUM_TAGS)
    start = weights[n_emit + n_trans:]
    return emissions, transitions, start


def segmenter_dimensionality(token_dim: int) -> int:
    return NUM_TAGS * token_dim + NUM_TAGS * NUM_TAGS + NUM_TAGS


def joint_feature(token_feats: np.ndarray, tags: np.ndarray) -> np.ndarray:
    """phi(x, y) per una sequenza di tag."""
    token_dim = token_feats.shape[1]
    out = np.zeros(segmenter_dimensionality(token_dim))
    if len(tags) == 0:
        return out
    emissions, transitions, start = split_weights(out, token_dim)
    for tag in range(NUM_TAGS):
        mask = tags == tag
        if mask.any():
            emissions[tag] = token_feats[mask].sum(axis=0)
    np.add.at(transitions, (tags[:-1], tags[1:]), 1.0)
    start[tags[0]] += 1.0
    return out


@dataclass
class SequenceSegmenter:
    """
    Segmenter addestrato.

    Attributes:
        weights: Vettore dei pesi del modello
        token_dimensionality: Dimensione delle feature per token
    """
    weights: np.ndarray
    token_dimensionality: int

    def tag(self, token_feats: np.ndarray) -> List[int]:
        emissions, transitions, start = split_weights(self.weights, self.token_dimensionality)
        return viterbi(token_feats @ emissions.T, transitions, start)

    def segment(self, token_feats: np.ndarray) -> List[Span]:
        """Span predetti per una matrice di feature (T, D)."""
        return tags_to_spans(self.tag(token_feats))


class SegmenterProblem(StructuralProblem):
    """
    Problema strutturato per il segmenter.

    Args:
        token_feats: Una matrice (T_i, D) per frase
        spans: Span annotati per frase
        loss_per_missed_segment: Costo per token di uno span vero mancato
        loss_per_false_alarm: Costo per token di un falso allarme
    """

    def __init__(
        self,
        token_feats: Sequence[np.ndarray],
        spans: Sequence[Sequence[Span]],
        loss_per_missed_segment: float,
        loss_per_false_alarm: float,
    ):
        if len(token_feats) != len(spans):
            raise ValueError("token_feats e spans devono avere la stessa lunghezza")
        if not token_feats:
            raise ValueError("nessuna frase")
        self._feats = list(token_feats)
        self._tags = [spans_to_tags(f.shape[0], s) for f, s in zip(self._feats, spans)]
        self._token_dim = self._feats[0].shape[1]
        self.loss_per_missed_segment = loss_per_missed_segment
        self.loss_per_false_alarm = loss_per_false_alarm

    @property
    def num_samples(self) -> int:
        return len(self._feats)

    @property
    def dimensionality(self) -> int:
        return segmenter_dimensionality(self._token_dim)

    @property
    def token_dimensionality(self) -> int:
        return self._token_dim

    def true_feature(self, i: int) -> np.ndarray:
        return joint_feature(self._feats[i], self._tags[i])

    def token_costs(self, i: int) -> np.ndarray:
        truth = self._tags[i]
        return np.where(truth == OUTSIDE, self.loss_per_false_alarm, self.loss_per_missed_segment)

    def separation_oracle(self, i: int, weights: np.ndarray) -> Tuple[np.ndarray, float]:
        feats = self._feats[i]
        truth = self._tags[i]
        if len(truth) == 0:
            return np.zeros(self.dimensionality), 0.0

        emissions, transitions, start = split_weights(weights, self._token_dim)
        costs = self.token_costs(i)
        unary = feats @ emissions.T
        # loss-augmentation: +costo su ogni tag diverso da quello vero
        augmented = unary + costs[:, None]
        augmented[np.arange(len(truth)), truth] -= costs

        predicted = np.array(viterbi(augmented, transitions, start), dtype=np.int64)
        loss = float(costs[predicted != truth].sum())
        return joint_feature(feats, predicted), loss
