"""
Entitrain Exceptions
====================

Gerarchia di eccezioni del trainer NER.

Tutta la validazione avviene nel punto della chiamata che la viola
(costruzione, add_entity, add, setter): uno stato invalido non entra mai
nel corpus.
"""

from typing import Any, Optional


class EntitrainError(Exception):
    """Eccezione base per gli errori di entitrain."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidSpanError(EntitrainError, ValueError):
    """Span fuori dai limiti, vuoto o sovrapposto a un altro span."""

    def __init__(
        self,
        message: str,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ):
        self.start = start
        self.end = end
        if start is not None and end is not None:
            message = f"{message} [{start}:{end})"
        super().__init__(message)


class EmptyCorpusError(EntitrainError):
    """train() chiamato senza istanze di training."""

    def __init__(self, message: str = "Nessuna istanza di training: chiamare add() prima di train()"):
        super().__init__(message)


class InvalidHyperparameterError(EntitrainError, ValueError):
    """Iperparametro fuori dal dominio valido."""

    def __init__(self, name: str, value: Any, reason: str):
        self.name = name
        self.value = value
        super().__init__(f"Valore non valido per {name}={value!r}: {reason}")


class FeatureSourceLoadError(EntitrainError):
    """Impossibile caricare la sorgente di feature densa."""

    def __init__(self, path: str, message: str, original_error: Optional[Exception] = None):
        self.path = path
        self.original_error = original_error
        super().__init__(f"[{path}] {message}")


class TrainingError(EntitrainError):
    """Training fallito: nessun estrattore prodotto."""


class ConvergenceError(TrainingError):
    """Il solver ha esaurito le iterazioni senza raggiungere la tolleranza."""

    def __init__(self, iterations: int, gap: float, epsilon: float):
        self.iterations = iterations
        self.gap = gap
        self.epsilon = epsilon
        super().__init__(
            f"Solver non convergente dopo {iterations} iterazioni "
            f"(gap={gap:.6g}, epsilon={epsilon:.6g})"
        )
