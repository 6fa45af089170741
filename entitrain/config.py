"""
Trainer Configuration
=====================

Iperparametri del trainer NER.

I valori di default riproducono il comportamento standard del trainer
(beta=0.5, 16 thread). La configurazione puo' essere caricata da YAML
e sovrascritta da variabili d'ambiente.

Usage:
    from entitrain.config import TrainerConfig, load_config

    config = load_config("config/trainer.yaml")
    print(config.beta)  # 0.5
"""

import math
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import structlog
import yaml

from entitrain.exceptions import InvalidHyperparameterError

log = structlog.get_logger()

ENV_PREFIX = "ENTITRAIN_"


@dataclass(frozen=True)
class TrainerConfig:
    """Configurazione del training NER."""

    # Segmenter
    beta: float = 0.5
    segmenter_c: float = 20.0
    max_false_alarm_loss: float = 100.0

    # Parallelismo
    num_threads: int = 16

    # Features
    context_window: int = 1

    # Classificatore
    classifier_c: float = 1.0
    classifier_c_grid: Tuple[float, ...] = field(default=(0.1, 1.0, 10.0))
    cv_folds: int = 5
    include_missed_spans: bool = True

    # Solver
    epsilon: float = 0.01
    max_iterations: int = 2000

    def validate(self) -> "TrainerConfig":
        """
        Verifica tutti i valori e restituisce self.

        Raises:
            InvalidHyperparameterError: al primo valore non valido
        """
        validate_beta(self.beta)
        validate_num_threads(self.num_threads)
        for name in ("segmenter_c", "classifier_c", "epsilon", "max_false_alarm_loss"):
            value = getattr(self, name)
            if not _is_real(value) or not math.isfinite(value) or value <= 0:
                raise InvalidHyperparameterError(name, value, "deve essere un numero > 0")
        for name in ("max_iterations", "cv_folds"):
            value = getattr(self, name)
            if not _is_int(value) or value < 1:
                raise InvalidHyperparameterError(name, value, "deve essere un intero >= 1")
        if not _is_int(self.context_window) or self.context_window < 0:
            raise InvalidHyperparameterError(
                "context_window", self.context_window, "deve essere un intero >= 0"
            )
        if not self.classifier_c_grid:
            raise InvalidHyperparameterError("classifier_c_grid", self.classifier_c_grid, "vuota")
        for c in self.classifier_c_grid:
            if not _is_real(c) or not math.isfinite(c) or c <= 0:
                raise InvalidHyperparameterError("classifier_c_grid", self.classifier_c_grid, "valori > 0")
        return self

    def with_overrides(self, **overrides: Any) -> "TrainerConfig":
        """Copia con override, validata."""
        if "classifier_c_grid" in overrides:
            overrides["classifier_c_grid"] = tuple(overrides["classifier_c_grid"])
        return replace(self, **overrides).validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrainerConfig":
        """Costruisce da un dizionario, rifiutando chiavi sconosciute."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidHyperparameterError("config", unknown, "chiavi sconosciute")
        return cls().with_overrides(**data)

    @classmethod
    def from_env(cls, base: Optional["TrainerConfig"] = None) -> "TrainerConfig":
        """
        Applica override da variabili d'ambiente.

        Supporta ENTITRAIN_BETA e ENTITRAIN_NUM_THREADS.
        """
        base = base or cls()
        overrides: Dict[str, Any] = {}
        beta = os.getenv(f"{ENV_PREFIX}BETA")
        if beta is not None:
            try:
                overrides["beta"] = float(beta)
            except ValueError:
                raise InvalidHyperparameterError("beta", beta, "non numerico") from None
        threads = os.getenv(f"{ENV_PREFIX}NUM_THREADS")
        if threads is not None:
            try:
                overrides["num_threads"] = int(threads)
            except ValueError:
                raise InvalidHyperparameterError("num_threads", threads, "non intero") from None
        if overrides:
            log.debug("config_env_overrides", **overrides)
        return base.with_overrides(**overrides)

    def to_dict(self) -> Dict[str, Any]:
        """Serializza in dizionario."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["classifier_c_grid"] = list(self.classifier_c_grid)
        return data


def load_config(path: Union[str, Path]) -> TrainerConfig:
    """
    Carica la configurazione da file YAML.

    Il file puo' contenere i campi direttamente oppure sotto una
    sezione ``trainer:``.

    Args:
        path: Path al file YAML

    Returns:
        TrainerConfig validata
    """
    config_path = Path(path)
    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise InvalidHyperparameterError("config", str(config_path), "il file non contiene un mapping")
    if "trainer" in data:
        data = data["trainer"] or {}

    config = TrainerConfig.from_dict(data)
    log.info("config_loaded", path=str(config_path), **config.to_dict())
    return config


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_real(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_beta(value: Any) -> float:
    """Beta deve essere reale, finito e >= 0."""
    if not _is_real(value) or not math.isfinite(value) or value < 0:
        raise InvalidHyperparameterError("beta", value, "deve essere un numero finito >= 0")
    return float(value)


def validate_num_threads(value: Any) -> int:
    """Il numero di thread deve essere un intero > 0."""
    if not _is_int(value) or value <= 0:
        raise InvalidHyperparameterError("num_threads", value, "deve essere un intero > 0")
    return value
