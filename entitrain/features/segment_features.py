"""
Segment Feature Extractor
=========================

Converte una sequenza di token in feature per token (usate dal segmenter)
e in feature per span (usate dal classificatore di tipo).

Feature per token:
- embedding del token e dei vicini entro ``window`` posizioni (L2-normalizzati,
  vettore nullo fuori dalla frase)
- feature di superficie: maiuscole, cifre, trattini, punteggiatura, posizione,
  lunghezza
- bias costante

Feature per span:
- media dei vettori dei token dello span
- vettore del primo e dell'ultimo token (che includono il contesto sinistro
  e destro tramite la finestra)
- one-hot della lunghezza (1, 2, 3, 4+)
"""

from typing import List, Sequence, Tuple

import numpy as np

from entitrain.features.word_features import WordFeatureSource

SURFACE_FEATURES = (
    "first_upper",
    "all_upper",
    "all_lower",
    "has_digit",
    "all_digits",
    "has_hyphen",
    "has_punct",
    "sentence_initial",
    "len_1",
    "len_2_3",
    "len_4_7",
    "len_8_plus",
    "prev_first_upper",
    "next_first_upper",
)

SPAN_LENGTH_BUCKETS = 4


def surface_features(tokens: Sequence[str], position: int) -> List[float]:
    """Feature di superficie binarie del token in ``position``."""
    token = tokens[position]
    n = len(token)
    prev_token = tokens[position - 1] if position > 0 else ""
    next_token = tokens[position + 1] if position + 1 < len(tokens) else ""
    flags = (
        token[:1].isupper(),
        n > 1 and token.isupper(),
        token.islower(),
        any(ch.isdigit() for ch in token),
        token.isdigit(),
        "-" in token,
        any(not ch.isalnum() for ch in token),
        position == 0,
        n == 1,
        2 <= n <= 3,
        4 <= n <= 7,
        n >= 8,
        prev_token[:1].isupper(),
        next_token[:1].isupper(),
    )
    return [1.0 if flag else 0.0 for flag in flags]


class SegmentFeatureExtractor:
    """
    Estrattore di feature per token e per span.

    Example:
        >>> fe = SegmentFeatureExtractor(source, window=1)
        >>> feats = fe.token_features(["John", "lives", "in", "Boston"])
        >>> feats.shape == (4, fe.token_dimensionality)
        True
    """

    def __init__(self, feature_source: WordFeatureSource, window: int = 1):
        if window < 0:
            raise ValueError("window deve essere >= 0")
        self.feature_source = feature_source
        self.window = window

    @property
    def token_dimensionality(self) -> int:
        emb = (2 * self.window + 1) * self.feature_source.dimensionality
        return emb + len(SURFACE_FEATURES) + 1

    @property
    def span_dimensionality(self) -> int:
        return 3 * self.token_dimensionality + SPAN_LENGTH_BUCKETS

    def _embeddings(self, tokens: Sequence[str]) -> np.ndarray:
        dim = self.feature_source.dimensionality
        out = np.zeros((len(tokens), dim))
        for i, token in enumerate(tokens):
            vec = self.feature_source.vector(token)
            norm = np.linalg.norm(vec)
            if norm > 0:
                out[i] = vec / norm
        return out

    def token_features(self, tokens: Sequence[str]) -> np.ndarray:
        """Matrice (len(tokens), token_dimensionality)."""
        n = len(tokens)
        dim = self.feature_source.dimensionality
        w = self.window

        padded = np.zeros((n + 2 * w, dim))
        padded[w:w + n] = self._embeddings(tokens)

        blocks = [padded[offset:offset + n] for offset in range(2 * w + 1)]
        surface = np.array(
            [surface_features(tokens, i) for i in range(n)],
            dtype=np.float64,
        ).reshape(n, len(SURFACE_FEATURES))
        bias = np.ones((n, 1))
        return np.hstack(blocks + [surface, bias])

    def span_features(self, token_feats: np.ndarray, span: Tuple[int, int]) -> np.ndarray:
        """Vettore di feature per lo span [start, end)."""
        start, end = span
        length = end - start
        length_onehot = np.zeros(SPAN_LENGTH_BUCKETS)
        length_onehot[min(length, SPAN_LENGTH_BUCKETS) - 1] = 1.0
        return np.concatenate([
            token_feats[start:end].mean(axis=0),
            token_feats[start],
            token_feats[end - 1],
            length_onehot,
        ])
