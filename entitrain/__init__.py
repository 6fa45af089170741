"""
Entitrain
=========

Training di named-entity recognizer da testo annotato manualmente.

Componenti:
- NERTrainingInstance: sequenza di token con entita' annotate
- NERTrainer: orchestratore (segmenter + classificatore di tipo)
- NamedEntityExtractor: artefatto addestrato
- WordFeatureSource: embedding densi usati come feature
"""

__version__ = "0.1.0"

from entitrain.config import TrainerConfig, load_config
from entitrain.exceptions import (
    ConvergenceError,
    EmptyCorpusError,
    EntitrainError,
    FeatureSourceLoadError,
    InvalidHyperparameterError,
    InvalidSpanError,
    TrainingError,
)
from entitrain.features import WordFeatureSource
from entitrain.ner import (
    EntityMention,
    NamedEntityExtractor,
    NERTrainer,
    NERTrainingInstance,
)

__all__ = [
    "__version__",
    # Config
    "TrainerConfig",
    "load_config",
    # Errors
    "EntitrainError",
    "InvalidSpanError",
    "EmptyCorpusError",
    "InvalidHyperparameterError",
    "FeatureSourceLoadError",
    "TrainingError",
    "ConvergenceError",
    # Core
    "NERTrainingInstance",
    "NERTrainer",
    "NamedEntityExtractor",
    "EntityMention",
    "WordFeatureSource",
]
