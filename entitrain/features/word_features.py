"""
Dense Word-Feature Source
=========================

Lookup token -> vettore denso di lunghezza fissa, caricato una sola volta
da file e usato in sola lettura durante il training.

Formati supportati:
- word2vec testuale: ``parola v1 v2 ... vD`` (header ``count dim`` opzionale)
- archivio ``.npz`` con gli array ``words`` e ``vectors``

Per i token fuori vocabolario si prova prima il lowercase, poi si costruisce
un vettore deterministico dai trigrammi di caratteri (hash blake2b, stabile
tra processi).

Esempio:
    >>> source = WordFeatureSource.load("embeddings.txt")
    >>> source.vector("Boston").shape
    (50,)
"""

import hashlib
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import numpy as np
import structlog

from entitrain.exceptions import FeatureSourceLoadError

log = structlog.get_logger()


class WordFeatureSource:
    """
    Tabella di embedding in sola lettura.

    Attributes:
        dimensionality: Lunghezza dei vettori
        path: File da cui e' stata caricata (se presente)
    """

    def __init__(
        self,
        words: Iterable[str],
        vectors: np.ndarray,
        path: Optional[str] = None,
    ):
        words = list(words)
        vectors = np.array(vectors, dtype=np.float64)
        if vectors.ndim != 2 or vectors.shape[0] != len(words):
            raise ValueError(
                f"attesi {len(words)} vettori 2D, ricevuto shape {vectors.shape}"
            )
        if vectors.shape[1] == 0:
            raise ValueError("dimensionalita' nulla")

        self.path = path
        self._index: Dict[str, int] = {w: i for i, w in enumerate(words)}
        self._vectors = vectors
        self._vectors.setflags(write=False)
        self._oov_cache: Dict[str, np.ndarray] = {}
        self._lower_index: Dict[str, int] = {}
        for word, i in self._index.items():
            self._lower_index.setdefault(word.lower(), i)

    @property
    def dimensionality(self) -> int:
        return self._vectors.shape[1]

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, token: str) -> bool:
        return token in self._index

    def vector(self, token: str) -> np.ndarray:
        """Vettore del token, con fallback per parole fuori vocabolario."""
        i = self._index.get(token)
        if i is None:
            i = self._lower_index.get(token.lower())
        if i is not None:
            return self._vectors[i]
        return self.oov_vector(token)

    def oov_vector(self, token: str) -> np.ndarray:
        """Vettore unitario deterministico dai trigrammi di caratteri."""
        cached = self._oov_cache.get(token)
        if cached is not None:
            return cached
        padded = f"<{token.lower()}>"
        grams = [padded[i:i + 3] for i in range(max(1, len(padded) - 2))]
        out = np.zeros(self.dimensionality)
        for gram in grams:
            digest = hashlib.blake2b(gram.encode("utf-8"), digest_size=8).digest()
            rng = np.random.default_rng(int.from_bytes(digest, "little"))
            out += rng.standard_normal(self.dimensionality)
        norm = np.linalg.norm(out)
        if norm > 0:
            out /= norm
        out.setflags(write=False)
        self._oov_cache[token] = out
        return out

    @classmethod
    def load(cls, path: Union[str, Path]) -> "WordFeatureSource":
        """
        Carica la tabella da file.

        Raises:
            FeatureSourceLoadError: file mancante, formato invalido o tabella vuota
        """
        path = Path(path)
        if not path.is_file():
            raise FeatureSourceLoadError(str(path), "file non trovato")

        try:
            if path.suffix == ".npz":
                words, vectors = _read_npz(path)
            else:
                words, vectors = _read_word2vec_text(path)
            source = cls(words, vectors, path=str(path))
        except FeatureSourceLoadError:
            raise
        except (OSError, ValueError, KeyError, UnicodeDecodeError) as e:
            log.error("feature_source_load_failed", path=str(path), error=str(e))
            raise FeatureSourceLoadError(str(path), f"formato non valido: {e}", e) from e

        log.info(
            "feature_source_loaded",
            path=str(path),
            words=len(source),
            dimensionality=source.dimensionality,
        )
        return source


def _read_npz(path: Path):
    with np.load(path, allow_pickle=False) as archive:
        words = [str(w) for w in archive["words"]]
        vectors = np.array(archive["vectors"], dtype=np.float64)
    if not words:
        raise FeatureSourceLoadError(str(path), "tabella vuota")
    return words, vectors


def _read_word2vec_text(path: Path):
    words: List[str] = []
    rows: List[List[float]] = []
    dim: Optional[int] = None

    with open(path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            parts = line.rstrip("\n").split()
            if not parts:
                continue
            # header "count dim"
            if line_no == 1 and len(parts) == 2 and all(p.isdigit() for p in parts):
                dim = int(parts[1])
                continue
            values = [float(v) for v in parts[1:]]
            if dim is None:
                dim = len(values)
            if len(values) != dim or dim == 0:
                raise ValueError(
                    f"riga {line_no}: attese {dim} componenti, trovate {len(values)}"
                )
            words.append(parts[0])
            rows.append(values)

    if not words:
        raise FeatureSourceLoadError(str(path), "tabella vuota")
    return words, np.array(rows, dtype=np.float64)
