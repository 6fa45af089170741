"""
Feature Extraction
==================

- WordFeatureSource: lookup token -> embedding denso
- SegmentFeatureExtractor: feature per token e per span
"""

from entitrain.features.word_features import WordFeatureSource
from entitrain.features.segment_features import SegmentFeatureExtractor, surface_features

__all__ = [
    "WordFeatureSource",
    "SegmentFeatureExtractor",
    "surface_features",
]
