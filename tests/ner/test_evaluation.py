"""
Test per le metriche di valutazione
===================================
"""

import pytest

from entitrain.ner.evaluation import NERMetrics, evaluate_extractor
from entitrain.ner.extractor import EntityMention
from entitrain.ner.instance import NERTrainingInstance


class StubExtractor:
    """Predizioni fisse per sequenza di token."""

    def __init__(self, predictions):
        self.predictions = predictions

    def extract_entities(self, tokens):
        return self.predictions.get(tuple(tokens), [])


def mention(start, end, label):
    return EntityMention(start=start, end=end, label=label, label_id=0)


@pytest.fixture
def instances():
    first = NERTrainingInstance(["John", "lives", "Boston"])
    first.add_entity((0, 1), "PERSON")
    first.add_entity((2, 3), "LOCATION")
    second = NERTrainingInstance(["New", "York"])
    second.add_entity((0, 2), "LOCATION")
    return [first, second]


class TestEvaluateExtractor:
    """Test exact-match."""

    def test_partial_match(self, instances):
        extractor = StubExtractor({
            ("John", "lives", "Boston"): [mention(0, 1, "PERSON"), mention(2, 3, "PERSON")],
        })
        metrics = evaluate_extractor(extractor, instances)

        assert metrics.true_positives == 1
        assert metrics.false_positives == 1
        assert metrics.false_negatives == 2
        assert metrics.precision == pytest.approx(0.5)
        assert metrics.recall == pytest.approx(1 / 3)
        assert metrics.f1 == pytest.approx(0.4)
        assert metrics.n_sentences == 2

        assert metrics.per_label["PERSON"]["precision"] == pytest.approx(0.5)
        assert metrics.per_label["PERSON"]["support"] == 1
        assert metrics.per_label["LOCATION"]["recall"] == 0.0
        assert metrics.per_label["LOCATION"]["support"] == 2

    def test_boundary_error_is_not_a_match(self, instances):
        extractor = StubExtractor({("New", "York"): [mention(0, 1, "LOCATION")]})
        metrics = evaluate_extractor(extractor, instances[1:])
        assert metrics.true_positives == 0
        assert metrics.false_positives == 1
        assert metrics.false_negatives == 1

    def test_perfect(self, instances):
        extractor = StubExtractor({
            ("John", "lives", "Boston"): [mention(0, 1, "PERSON"), mention(2, 3, "LOCATION")],
            ("New", "York"): [mention(0, 2, "LOCATION")],
        })
        metrics = evaluate_extractor(extractor, instances)
        assert metrics.f1 == 1.0

    def test_no_instances(self):
        metrics = evaluate_extractor(StubExtractor({}), [])
        assert metrics.f1 == 0.0
        assert metrics.per_label == {}


class TestNERMetrics:
    """Test serializzazione."""

    def test_to_dict_and_summary(self):
        metrics = NERMetrics(precision=0.5, recall=0.25, f1=1 / 3, n_sentences=4)
        data = metrics.to_dict()
        assert data["precision"] == 0.5
        assert data["n_sentences"] == 4
        assert "F1=0.333" in metrics.summary()
