"""Shared fixtures: synthetic contact records in a temporary SQLite file."""

import numpy as np
import pandas as pd
import pytest
from sqlalchemy import create_engine

from bank_response.data_loader import DataLoader
from bank_response.feature_engineer import FeatureEngineer
from bank_response.sampler import Sampler

TABLE = "bank_marketing"

CATEGORICAL = [
    "job",
    "marital",
    "education",
    "housing_loan",
    "contact",
    "month",
    "day_of_week",
    "prior_outcome",
]


def make_contacts(n: int = 1000, seed: int = 42) -> pd.DataFrame:
    """Raw contact rows; exactly n/100 rows per percentile 1..100, ~10% subscribers."""
    rng = np.random.RandomState(seed)
    df = pd.DataFrame(
        {
            "job": rng.choice(["admin.", "blue-collar", "technician"], n),
            "marital": rng.choice(["married", "single", "divorced"], n, p=[0.5, 0.3, 0.2]),
            "education": rng.choice(
                ["basic 4-year", "basic 6-year", "illiterate", "high school", "university degree"],
                n,
                p=[0.15, 0.1, 0.05, 0.35, 0.35],
            ),
            "housing_loan": rng.choice(["yes", "no"], n),
            "contact": rng.choice(["cellular", "telephone"], n, p=[0.65, 0.35]),
            "month": rng.choice(["may", "jul", "nov"], n),
            "day_of_week": rng.choice(["mon", "wed", "fri"], n),
            "prior_outcome": rng.choice(["nonexistent", "failure", "success"], n, p=[0.6, 0.25, 0.15]),
            "age": rng.randint(18, 90, n),
            "euribor3m": rng.uniform(0.5, 5.0, n).round(3),
            "in_default": rng.choice(["no", "unknown"], n, p=[0.8, 0.2]),
            "date": pd.date_range("2008-05-01", periods=n, freq="D").strftime("%Y-%m-%d"),
            "personal_loan": rng.choice(["yes", "no"], n, p=[0.15, 0.85]),
            "percentile": rng.permutation(np.repeat(np.arange(1, 101), n // 100)),
        }
    )

    logit = -2.6 - 0.5 * (df["euribor3m"] - 2.75) + 1.5 * (df["prior_outcome"] == "success")
    prob = 1 / (1 + np.exp(-logit))
    df["term_deposit"] = np.where(rng.uniform(size=n) < prob, "yes", "no")
    return df


@pytest.fixture
def contacts():
    return make_contacts()


@pytest.fixture
def db_url(tmp_path, contacts):
    """SQLite file holding the synthetic contacts table."""
    url = f"sqlite:///{tmp_path / 'bank.db'}"
    engine = create_engine(url)
    contacts.to_sql(TABLE, engine, index=False)
    engine.dispose()
    return url


@pytest.fixture
def sampled(db_url):
    """(levels, train, test) read through the database, as the pipeline reads them."""
    with DataLoader(db_url, TABLE) as loader:
        prepared = FeatureEngineer().transform(loader.table())
        sampler = Sampler(loader, CATEGORICAL)
        train, test = sampler.split(prepared)
    return sampler.levels, train, test


@pytest.fixture
def levels(sampled):
    return sampled[0]


@pytest.fixture
def partitions(sampled):
    _, train, test = sampled
    return train, test


@pytest.fixture
def combined(partitions, levels):
    train, test = partitions
    return Sampler.combine(train, test, levels)
