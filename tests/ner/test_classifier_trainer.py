"""
Test per il training del classificatore di tipo
===============================================
"""

import numpy as np
import pytest

from entitrain.config import TrainerConfig
from entitrain.exceptions import TrainingError
from entitrain.features.segment_features import SegmentFeatureExtractor
from entitrain.ner.classifier_trainer import (
    SOURCE_ANNOTATED,
    SOURCE_PREDICTED,
    LabeledSpanSample,
    harvest_span_samples,
    select_regularization,
    train_span_classifier,
)
from entitrain.ner.corpus import CorpusAccumulator, build_instance
from entitrain.ner.segmenter_trainer import segment_losses


class FixedSegmenter:
    """Restituisce span predefiniti, una lista per frase."""

    def __init__(self, outputs):
        self.outputs = list(outputs)

    def segment(self, token_feats):
        return self.outputs.pop(0)


@pytest.fixture
def corpus(toy_corpus):
    acc = CorpusAccumulator()
    for tokens, ranges, labels in zip(*toy_corpus):
        acc.add(build_instance(tokens, ranges, labels))
    return acc


@pytest.fixture
def extractor(feature_source):
    return SegmentFeatureExtractor(feature_source, window=1)


def sample(label_id, features):
    return LabeledSpanSample(
        sentence_index=0,
        span=(0, 1),
        label_id=label_id,
        features=np.asarray(features, dtype=float),
    )


class TestSegmentLosses:
    """Test costi asimmetrici."""

    def test_default_beta(self):
        assert segment_losses(0.5, 100.0) == (0.5, 2.0)

    def test_recall_oriented(self):
        assert segment_losses(2.0, 100.0) == (2.0, 0.5)

    def test_false_alarm_is_capped(self):
        assert segment_losses(0.0, 100.0) == (0.0, 100.0)
        assert segment_losses(0.001, 100.0) == (0.001, 100.0)


class TestHarvest:
    """Test raccolta degli esempi."""

    def _harvest(self, corpus, extractor, outputs, include_missed_spans=True):
        token_feats = [extractor.token_features(s) for s in corpus.sentences]
        return harvest_span_samples(
            FixedSegmenter(outputs),
            corpus,
            token_feats,
            extractor,
            include_missed_spans=include_missed_spans,
        )

    def test_exact_matches_kept_others_discarded(self, corpus, extractor):
        samples = self._harvest(
            corpus, extractor, [[(0, 1), (2, 4)], [(0, 1)]], include_missed_spans=False
        )
        assert [(s.sentence_index, s.span, s.label_id) for s in samples] == [
            (0, (0, 1), 0),
            (1, (0, 1), 1),
        ]
        assert all(s.source == SOURCE_PREDICTED for s in samples)

    def test_missed_spans_added(self, corpus, extractor):
        samples = self._harvest(corpus, extractor, [[(0, 1), (2, 4)], [(0, 1)]])
        assert len(samples) == 3
        missed = [s for s in samples if s.source == SOURCE_ANNOTATED]
        assert [(s.sentence_index, s.span, s.label_id) for s in missed] == [(0, (3, 4), 1)]

    def test_features_have_span_dimensionality(self, corpus, extractor):
        samples = self._harvest(corpus, extractor, [[], []])
        assert len(samples) == 3
        for s in samples:
            assert s.features.shape == (extractor.span_dimensionality,)

    def test_nothing_found_nothing_added(self, corpus, extractor):
        samples = self._harvest(corpus, extractor, [[(1, 3)], []], include_missed_spans=False)
        assert samples == []


class TestTrainSpanClassifier:
    """Test classificatore di tipo."""

    def test_no_samples(self):
        with pytest.raises(TrainingError):
            train_span_classifier([], num_classes=2, config=TrainerConfig(), num_threads=1)

    def test_single_label(self):
        samples = [sample(0, [1.0, 0.5]), sample(0, [0.2, 1.0])]
        clf = train_span_classifier(samples, num_classes=1, config=TrainerConfig(), num_threads=1)
        assert clf.weights.shape == (1, 2)
        assert clf.predict(np.array([3.0, -1.0]))[0] == 0

    def test_separable_with_cross_validation(self):
        config = TrainerConfig(cv_folds=3, num_threads=2)
        rng = np.random.default_rng(0)
        samples = []
        for _ in range(4):
            samples.append(sample(0, [2.0 + rng.normal(0, 0.1), 0.0, 1.0]))
            samples.append(sample(1, [-2.0 + rng.normal(0, 0.1), 0.0, 1.0]))

        clf = train_span_classifier(samples, num_classes=2, config=config, num_threads=2)
        x = np.vstack([s.features for s in samples])
        assert clf.accuracy(x, [s.label_id for s in samples]) == 1.0

    def test_without_cross_validation(self):
        samples = [sample(0, [1.0, 0.0, 1.0]), sample(1, [0.0, 1.0, 1.0])]
        clf = train_span_classifier(samples, num_classes=2, config=TrainerConfig(), num_threads=1)
        assert clf.predict(np.array([1.0, 0.0, 1.0]))[0] == 0
        assert clf.predict(np.array([0.0, 1.0, 1.0]))[0] == 1


class TestSelectRegularization:
    """Test scelta di C."""

    def test_returns_value_from_grid(self):
        config = TrainerConfig(classifier_c_grid=(10.0, 0.1, 1.0), cv_folds=2)
        x = np.array([[1.0, 0.0], [1.1, 0.0], [0.0, 1.0], [0.0, 1.2]])
        best, scores = select_regularization(x, [0, 0, 1, 1], 2, config, num_threads=3)
        assert set(scores) == {0.1, 1.0, 10.0}
        assert best in scores
        assert scores[best] == max(scores.values())
