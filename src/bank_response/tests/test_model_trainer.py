import numpy as np
import pandas as pd
import pytest

from bank_response.errors import DegenerateDataError
from bank_response.model_trainer import (
    ForestModel,
    ForestTrainer,
    LogisticModel,
    LogisticTrainer,
    model_from_dict,
)


@pytest.fixture
def forest_trainer(levels):
    return ForestTrainer(levels, n_estimators=25, random_state=7, n_jobs=1)


def test_logistic_trainer_scores_are_probabilities(partitions, levels):
    train, test = partitions
    model = LogisticTrainer(levels).fit(train)

    scores = model.predict(test)
    assert scores.shape == (len(test),)
    assert ((scores >= 0) & (scores <= 1)).all()


def test_logistic_describe_documents_baselines(partitions, levels):
    train, _ = partitions
    stats = LogisticTrainer(levels).fit(train).describe()

    assert {"term", "coefficient", "std_error", "z_value", "p_value", "odds_ratio", "baseline"}.issubset(stats.columns)
    assert stats["term"].iloc[0] == "Intercept"
    contact = stats[stats["term"] == "contact[T.telephone]"]
    assert contact["baseline"].iloc[0] == "cellular"


def test_logistic_level_unseen_in_training_scores_as_baseline(partitions, levels):
    train, test = partitions
    train = train.copy()
    train["month"] = pd.Categorical(train["month"].astype(str).replace({"nov": "may"}), categories=levels["month"])
    model = LogisticTrainer(levels).fit(train)

    assert model.coefficients["month[T.nov]"] == 0.0
    nov = test[test["month"] == "nov"].copy()
    as_baseline = nov.copy()
    as_baseline["month"] = model.preprocessor.baselines["month"]
    np.testing.assert_allclose(model.predict(nov), model.predict(as_baseline))


def test_forest_trainer_is_deterministic_with_fixed_seed(partitions, forest_trainer):
    train, test = partitions
    s1 = forest_trainer.fit(train).predict(test)
    s2 = forest_trainer.fit(train).predict(test)

    np.testing.assert_array_equal(s1, s2)
    assert ((s1 >= 0) & (s1 <= 1)).all()


def test_forest_importance_is_sorted_and_covers_features(partitions, forest_trainer):
    train, _ = partitions
    model = forest_trainer.fit(train)
    importance = model.describe()

    assert importance["importance"].is_monotonic_decreasing
    assert set(importance["feature"]) == set(model.preprocessor.feature_names)


def test_exported_models_reproduce_predictions(partitions, levels, forest_trainer):
    train, test = partitions
    logistic = LogisticTrainer(levels).fit(train)
    forest = forest_trainer.fit(train)

    logistic_restored = model_from_dict(logistic.to_dict())
    forest_restored = model_from_dict(forest.to_dict())

    assert isinstance(logistic_restored, LogisticModel)
    assert isinstance(forest_restored, ForestModel) and forest_restored.estimator is None
    np.testing.assert_allclose(logistic_restored.predict(test), logistic.predict(test))
    np.testing.assert_allclose(forest_restored.predict(test), forest.predict(test), atol=1e-9)


def test_trainers_fit_partitions_read_from_database(partitions, levels, forest_trainer):
    train, test = partitions
    assert all(type(col) is str for col in train.columns)

    for model in (LogisticTrainer(levels).fit(train), forest_trainer.fit(train)):
        scores = model.predict(test)
        assert scores.shape == (len(test),)
        assert np.isfinite(scores).all()


def test_trainers_reject_empty_training_partition(partitions, levels, forest_trainer):
    train, _ = partitions
    empty = train.iloc[0:0]

    with pytest.raises(DegenerateDataError):
        LogisticTrainer(levels).fit(empty)
    with pytest.raises(DegenerateDataError):
        forest_trainer.fit(empty)


def test_trainers_reject_constant_response(partitions, levels, forest_trainer):
    train, _ = partitions
    train = train.assign(resp=0)

    with pytest.raises(DegenerateDataError):
        LogisticTrainer(levels).fit(train)
    with pytest.raises(DegenerateDataError):
        forest_trainer.fit(train)


def test_trainers_reject_single_level_factor(partitions, levels):
    train, _ = partitions
    train = train.copy()
    train["contact"] = pd.Categorical(["cellular"] * len(train), categories=levels["contact"])

    with pytest.raises(DegenerateDataError):
        LogisticTrainer(levels).fit(train)


def test_model_from_dict_rejects_unknown_format():
    with pytest.raises(ValueError):
        model_from_dict({"format_version": 99, "kind": "logistic"})
