"""
Pytest configuration for entitrain tests.
"""

import pytest

from entitrain.config import TrainerConfig
from entitrain.features.word_features import WordFeatureSource

# Persone, luoghi e parole funzionali in cluster separati
EMBEDDINGS = {
    "John":   [1.0, 0.1, 0.0, 0.0, 0.0, 0.0, 0.2, 0.0],
    "Mary":   [0.9, 0.2, 0.0, 0.0, 0.0, 0.1, 0.0, 0.0],
    "Boston": [0.0, 0.0, 1.0, 0.1, 0.0, 0.0, 0.0, 0.2],
    "Paris":  [0.0, 0.1, 0.9, 0.2, 0.0, 0.0, 0.0, 0.0],
    "London": [0.1, 0.0, 0.8, 0.3, 0.0, 0.0, 0.1, 0.0],
    "lives":  [0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.1],
    "works":  [0.0, 0.0, 0.0, 0.0, 0.9, 0.2, 0.0, 0.0],
    "in":     [0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.1, 0.0],
    "is":     [0.0, 0.0, 0.0, 0.0, 0.1, 0.0, 1.0, 0.0],
    "nice":   [0.0, 0.0, 0.1, 0.0, 0.0, 0.0, 0.0, 1.0],
    "the":    [0.0, 0.2, 0.0, 0.0, 0.0, 0.9, 0.0, 0.1],
    "city":   [0.0, 0.0, 0.3, 0.0, 0.0, 0.0, 0.1, 0.9],
}


@pytest.fixture
def embeddings_path(tmp_path):
    """File word2vec testuale con header."""
    path = tmp_path / "embeddings.txt"
    lines = [f"{len(EMBEDDINGS)} 8"]
    for word, vec in EMBEDDINGS.items():
        lines.append(word + " " + " ".join(str(v) for v in vec))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def feature_source(embeddings_path):
    return WordFeatureSource.load(embeddings_path)


@pytest.fixture
def fast_config():
    """Configurazione con pochi thread per i test."""
    return TrainerConfig(num_threads=2)


@pytest.fixture
def toy_corpus():
    """Corpus minimo: (tokens, ranges, labels) per frase."""
    return (
        [["John", "lives", "in", "Boston"], ["Paris", "is", "nice"]],
        [[(0, 1), (3, 4)], [(0, 1)]],
        [["PERSON", "LOCATION"], ["LOCATION"]],
    )
