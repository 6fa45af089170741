"""
NER Training Module
===================

Training di un estrattore di entita' in due stadi.

Componenti:
- NERTrainingInstance: frase annotata
- NERTrainer: corpus, iperparametri e pipeline di training
- NamedEntityExtractor: segmenter + classificatore + label
- evaluate_extractor: metriche exact-match
"""

from entitrain.ner.instance import NERTrainingInstance
from entitrain.ner.corpus import CorpusAccumulator
from entitrain.ner.extractor import EntityMention, NamedEntityExtractor, assemble_extractor
from entitrain.ner.classifier_trainer import LabeledSpanSample, harvest_span_samples
from entitrain.ner.evaluation import NERMetrics, evaluate_extractor
from entitrain.ner.trainer import NERTrainer, TrainingReport

__all__ = [
    # Core
    "NERTrainingInstance",
    "NERTrainer",
    "TrainingReport",
    "CorpusAccumulator",
    # Output
    "NamedEntityExtractor",
    "EntityMention",
    "assemble_extractor",
    # Stages
    "LabeledSpanSample",
    "harvest_span_samples",
    # Evaluation
    "NERMetrics",
    "evaluate_extractor",
]
