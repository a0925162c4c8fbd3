import numpy as np
import pandas as pd
import pytest

from bank_response.errors import SchemaError
from bank_response.preprocessor import Preprocessor

LEVELS = {
    "contact": ["cellular", "telephone"],
    "month": ["jul", "may", "nov"],
}


def _make_small_X():
    return pd.DataFrame(
        {
            "age": [30.0, 45.0, np.nan, 52.0],
            "euribor3m": [1.2, np.nan, 4.9, 4.8],
            "contact": ["cellular", "telephone", "cellular", "telephone"],
            "month": ["may", "nov", "may", "jul"],
        }
    )


def test_preprocessor_fit_transform_preserves_row_count_and_no_nans():
    X = _make_small_X()
    Xt = Preprocessor(LEVELS).fit(X).transform(X)

    assert Xt.shape[0] == X.shape[0]
    assert np.isfinite(Xt.to_numpy()).all()


def test_preprocessor_treatment_coding_drops_baseline_level():
    X = _make_small_X()
    prep = Preprocessor(LEVELS).fit(X)
    Xt = prep.transform(X)

    assert prep.baselines == {"contact": "cellular", "month": "jul"}
    assert list(Xt.columns) == [
        "age",
        "euribor3m",
        "contact[T.telephone]",
        "month[T.may]",
        "month[T.nov]",
    ]
    assert Xt["month[T.may]"].tolist() == [1.0, 0.0, 1.0, 0.0]


def test_preprocessor_baseline_is_first_observed_level():
    X = _make_small_X()
    X["month"] = ["may", "nov", "may", "nov"]
    prep = Preprocessor(LEVELS).fit(X)

    assert prep.baselines["month"] == "may"
    # jul is declared but never seen: its dummy is all zero
    Xt = prep.transform(X)
    assert Preprocessor.zero_columns(Xt) == ["month[T.jul]"]


def test_preprocessor_fills_numerics_with_training_median():
    X = _make_small_X()
    prep = Preprocessor(LEVELS).fit(X)

    assert prep.fill_values["age"] == pytest.approx(45.0)
    assert prep.transform(X).loc[2, "age"] == pytest.approx(45.0)


def test_preprocessor_unknown_level_is_schema_error():
    X = _make_small_X()
    prep = Preprocessor(LEVELS).fit(X)

    X_new = X.copy()
    X_new.loc[0, "month"] = "dec"
    with pytest.raises(SchemaError):
        prep.transform(X_new)


def test_preprocessor_to_dict_restores_identical_encoding():
    X = _make_small_X()
    prep = Preprocessor(LEVELS).fit(X)
    restored = Preprocessor.from_dict(prep.to_dict())

    pd.testing.assert_frame_equal(prep.transform(X), restored.transform(X))


def test_preprocessor_missing_category_codes_as_baseline():
    X = _make_small_X()
    prep = Preprocessor(LEVELS).fit(X)

    X_new = X.copy()
    X_new.loc[1, "month"] = None
    row = prep.transform(X_new).loc[1]
    assert row["month[T.may]"] == 0.0 and row["month[T.nov]"] == 0.0


def test_preprocessor_restores_fitted_sklearn_state():
    X = _make_small_X()
    prep = Preprocessor(LEVELS, impute_strategy="mean").fit(X)
    restored = Preprocessor.from_dict(prep.to_dict())

    assert restored.impute_strategy == "mean"
    np.testing.assert_allclose(restored.imputer.statistics_, prep.imputer.statistics_)
    assert [list(c) for c in restored.encoder.categories_] == [list(c) for c in prep.encoder.categories_]
    np.testing.assert_array_equal(restored.encoder.drop_idx_, prep.encoder.drop_idx_)
