"""
Test per NERTrainer
===================

Corpus, iperparametri e training end-to-end.
"""

import pytest
from structlog.testing import capture_logs

from entitrain.config import TrainerConfig
from entitrain.exceptions import (
    ConvergenceError,
    EmptyCorpusError,
    FeatureSourceLoadError,
    InvalidHyperparameterError,
    InvalidSpanError,
)
from entitrain.ner import NamedEntityExtractor, NERTrainer, NERTrainingInstance


@pytest.fixture
def trainer(feature_source, fast_config):
    return NERTrainer(feature_source, config=fast_config)


def make_instance(tokens, *entities):
    instance = NERTrainingInstance(tokens)
    for span, label in entities:
        instance.add_entity(span, label)
    return instance


class TestConstruction:
    """Test inizializzazione."""

    def test_defaults(self, feature_source):
        trainer = NERTrainer(feature_source)
        assert trainer.get_beta() == 0.5
        assert trainer.get_num_threads() == 16
        assert trainer.size() == 0

    def test_load_from_path(self, embeddings_path):
        trainer = NERTrainer(str(embeddings_path))
        assert trainer.feature_source.dimensionality == 8

    def test_missing_feature_file(self, tmp_path):
        with pytest.raises(FeatureSourceLoadError):
            NERTrainer(tmp_path / "missing.txt")

    def test_invalid_config(self, feature_source):
        with pytest.raises(InvalidHyperparameterError):
            NERTrainer(feature_source, config=TrainerConfig(beta=-1.0))


class TestCorpus:
    """Test add() e vocabolario delle label."""

    def test_add_instance(self, trainer):
        trainer.add(make_instance(["John", "lives"], ((0, 1), "PERSON")))
        assert trainer.size() == 1
        assert len(trainer) == 1

    def test_labels_first_seen_order(self, trainer, toy_corpus):
        trainer.add(*toy_corpus)
        assert trainer.size() == 2
        assert trainer.get_all_labels() == ["PERSON", "LOCATION"]

    def test_add_single_tokens_form(self, trainer):
        trainer.add(["Paris", "is", "nice"], [(0, 1)], ["LOCATION"])
        assert trainer.size() == 1
        assert trainer.corpus_statistics()["labels"] == {"LOCATION": 1}

    def test_instance_copied_on_add(self, trainer):
        instance = make_instance(["John", "lives", "in", "Boston"], ((0, 1), "PERSON"))
        trainer.add(instance)
        instance.add_entity((3, 4), "LOCATION")
        assert trainer.corpus_statistics()["entities"] == 1
        assert trainer.get_all_labels() == ["PERSON"]

    def test_mismatched_ranges_labels(self, trainer):
        with pytest.raises(InvalidSpanError):
            trainer.add(["Paris", "is", "nice"], [(0, 1)], ["LOCATION", "PERSON"])
        assert trainer.size() == 0

    def test_batch_is_atomic(self, trainer):
        tokens = [["John", "lives"], ["Paris", "is", "nice"]]
        ranges = [[(0, 1)], [(0, 2), (1, 3)]]
        labels = [["PERSON"], ["LOCATION", "LOCATION"]]
        with pytest.raises(InvalidSpanError):
            trainer.add(tokens, ranges, labels)
        assert trainer.size() == 0
        assert trainer.get_all_labels() == []

    def test_batch_mismatched_lengths(self, trainer):
        with pytest.raises(InvalidSpanError):
            trainer.add([["a"], ["b"]], [[]], [[], []])
        assert trainer.size() == 0

    def test_out_of_bounds_range(self, trainer):
        with pytest.raises(InvalidSpanError):
            trainer.add(["Paris"], [(0, 2)], ["LOCATION"])
        assert trainer.size() == 0

    def test_bad_arity(self, trainer):
        with pytest.raises(TypeError):
            trainer.add(["Paris"], [(0, 1)])


class TestHyperparameters:
    """Test setter/getter."""

    def test_beta_round_trip(self, trainer):
        for value in (0.0, 0.25, 1.0, 3.5):
            trainer.set_beta(value)
            assert trainer.get_beta() == value

    def test_negative_beta_rejected(self, trainer):
        with pytest.raises(InvalidHyperparameterError):
            trainer.set_beta(-0.1)
        assert trainer.get_beta() == 0.5

    def test_threads_round_trip(self, trainer):
        for value in (1, 4, 32):
            trainer.set_num_threads(value)
            assert trainer.get_num_threads() == value

    @pytest.mark.parametrize("value", [0, -2, 1.5])
    def test_invalid_threads_rejected(self, trainer, value):
        with pytest.raises(InvalidHyperparameterError):
            trainer.set_num_threads(value)
        assert trainer.get_num_threads() == 2


class TestTrain:
    """Test training end-to-end."""

    def test_empty_corpus(self, trainer):
        with pytest.raises(EmptyCorpusError):
            trainer.train()
        assert trainer.last_report is None

    def test_two_sentence_scenario(self, feature_source, toy_corpus):
        trainer = NERTrainer(feature_source)
        trainer.add(*toy_corpus)

        extractor = trainer.train()

        assert isinstance(extractor, NamedEntityExtractor)
        assert set(extractor.get_tag_names()) == {"PERSON", "LOCATION"}
        assert len(extractor.get_tag_names()) == 2

        tokens, ranges, labels = toy_corpus
        exact = 0
        for sent_tokens, sent_ranges, sent_labels in zip(tokens, ranges, labels):
            gold = dict(zip(sent_ranges, sent_labels))
            for mention in extractor.extract_entities(sent_tokens):
                if mention.span in gold:
                    exact += 1
                    assert mention.label == gold[mention.span]
        assert exact >= 1

        report = trainer.last_report
        assert report.sentences == 2
        assert report.entities == 3
        assert report.span_samples == 3

    def test_thread_count_does_not_change_labels(self, feature_source):
        corpus = (
            [
                ["John", "lives", "in", "Boston"],
                ["Paris", "is", "nice"],
                ["Mary", "works", "in", "London"],
                ["the", "city", "is", "Paris"],
            ],
            [[(0, 1), (3, 4)], [(0, 1)], [(0, 1), (3, 4)], [(3, 4)]],
            [["PERSON", "LOCATION"], ["LOCATION"], ["PERSON", "LOCATION"], ["LOCATION"]],
        )
        held_out = [["Mary", "lives", "in", "Paris"], ["London", "is", "nice"]]

        results = []
        for threads in (1, 3):
            trainer = NERTrainer(feature_source, config=TrainerConfig(num_threads=threads))
            trainer.add(*corpus)
            extractor = trainer.train()
            results.append({
                (i, m.span): m.label
                for i, sent in enumerate(corpus[0] + held_out)
                for m in extractor.extract_entities(sent)
            })

        common = set(results[0]) & set(results[1])
        assert common
        for key in ((0, (0, 1)), (0, (3, 4))):
            assert key in results[0]
            assert key in results[1]
        for key in common:
            assert results[0][key] == results[1][key]

    def test_evaluate(self, trainer, toy_corpus):
        trainer.add(*toy_corpus)
        extractor = trainer.train()
        instances = [
            make_instance(["Paris", "is", "nice"], ((0, 1), "LOCATION")),
        ]
        metrics = trainer.evaluate(extractor, instances)
        assert metrics.n_sentences == 1
        assert 0.0 <= metrics.f1 <= 1.0

    def test_convergence_failure_leaves_no_report(self, feature_source, toy_corpus):
        trainer = NERTrainer(
            feature_source, config=TrainerConfig(num_threads=2, max_iterations=1)
        )
        trainer.add(*toy_corpus)

        with capture_logs() as logs:
            with pytest.raises(ConvergenceError):
                trainer.train()

        assert trainer.last_report is None
        assert any(entry["event"] == "training_failed" for entry in logs)

    def test_unexpected_error_is_logged(self, trainer, toy_corpus, monkeypatch):
        def broken(*args, **kwargs):
            raise FloatingPointError("overflow")

        monkeypatch.setattr("entitrain.ner.trainer.train_segmenter", broken)
        trainer.add(*toy_corpus)

        with capture_logs() as logs:
            with pytest.raises(FloatingPointError):
                trainer.train()

        failed = [entry for entry in logs if entry["event"] == "training_failed"]
        assert failed[0]["error_type"] == "FloatingPointError"
        assert trainer.last_report is None
