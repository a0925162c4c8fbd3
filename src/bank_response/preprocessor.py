from __future__ import annotations

from typing import Any, Optional

import numpy as np
import pandas as pd
from sklearn.impute import SimpleImputer
from sklearn.preprocessing import OneHotEncoder

from .errors import SchemaError
from .utils.logger import get_logger

FORMAT_VERSION = 1


class Preprocessor:
    """Builds a numeric design matrix from numeric and categorical features.

    Numerics go through a ``SimpleImputer``; categorical columns through a
    ``OneHotEncoder`` with a fixed level set that drops each column's baseline,
    giving one ``col[T.level]`` dummy per non-baseline level in level order.
    """

    def __init__(
        self,
        levels: dict[str, list[str]],
        impute_strategy: str = "median",
        verbose: bool = False,
    ):
        """
        Parameters
        ----------
        levels:
            Fixed, ordered level set for every categorical column.
        impute_strategy:
            Strategy for numeric imputation (median/mean/most_frequent).
        verbose:
            If True, logs detected feature groups.
        """
        self.levels = {str(col): [str(c) for c in cats] for col, cats in levels.items()}
        self.impute_strategy = impute_strategy
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)
        self.numeric_cols: list[str] = []
        self.baselines: dict[str, str] = {}
        self.imputer: Optional[SimpleImputer] = None
        self.encoder: Optional[OneHotEncoder] = None

    @staticmethod
    def _make_onehot(categories: list[list[str]], drop: list[str]) -> OneHotEncoder:
        """
        Create OneHotEncoder with compatibility across sklearn versions:
        - newer sklearn uses sparse_output
        - older sklearn uses sparse
        """
        try:
            return OneHotEncoder(
                categories=categories, drop=drop, handle_unknown="error", sparse_output=False, dtype=float
            )
        except TypeError:
            return OneHotEncoder(categories=categories, drop=drop, handle_unknown="error", sparse=False, dtype=float)

    def _build(self) -> None:
        """Create (but do not fit) the imputer and encoder for the recorded columns."""
        self.imputer = SimpleImputer(strategy=self.impute_strategy, keep_empty_features=True)
        cols = list(self.levels)
        self.encoder = self._make_onehot([self.levels[c] for c in cols], [self.baselines[c] for c in cols])

    def _numeric(self, X: pd.DataFrame) -> pd.DataFrame:
        return pd.DataFrame(
            X[self.numeric_cols].astype(float).to_numpy(), columns=self.numeric_cols
        )

    def _categorical(self, X: pd.DataFrame) -> pd.DataFrame:
        # missing categories code as the baseline (all dummies zero)
        data = {
            col: [self.baselines[col] if pd.isna(v) else str(v) for v in X[col]]
            for col in self.levels
        }
        return pd.DataFrame(data, columns=list(self.levels), dtype=object)

    def fit(self, X: pd.DataFrame) -> "Preprocessor":
        """Fit the numeric imputer and the baseline-dropping encoder.

        The baseline is the first level (in level order) that occurs in ``X``,
        so the reference category is always one the model has seen.
        """
        self.numeric_cols = [
            str(col) for col in X.select_dtypes(include=["number", "bool"]).columns
            if str(col) not in self.levels
        ]

        self.baselines = {}
        for col, cats in self.levels.items():
            observed = set(X[col].dropna().astype(str))
            present = [c for c in cats if c in observed]
            self.baselines[col] = present[0] if present else cats[0]

        self._build()
        if self.numeric_cols:
            self.imputer.fit(self._numeric(X))
        if self.levels:
            self.encoder.fit(self._categorical(X))

        if self.verbose:
            self.logger.info(
                f"Columns detected: numeric={len(self.numeric_cols)}, categorical={len(self.levels)}"
            )
        return self

    @property
    def fill_values(self) -> dict[str, float]:
        if not self.numeric_cols:
            return {}
        return {col: float(v) for col, v in zip(self.numeric_cols, self.imputer.statistics_)}

    @property
    def feature_names(self) -> list[str]:
        names = list(self.numeric_cols)
        for col, cats in self.levels.items():
            names.extend(f"{col}[T.{c}]" for c in cats if c != self.baselines[col])
        return names

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        if self.encoder is None:
            raise RuntimeError("Preprocessor is not fitted. Call fit() first.")
        missing = sorted((set(self.numeric_cols) | set(self.levels)) - {str(c) for c in X.columns})
        if missing:
            raise SchemaError(f"Missing feature columns: {missing}")

        parts = []
        if self.numeric_cols:
            parts.append(self.imputer.transform(self._numeric(X)))
        if self.levels:
            try:
                parts.append(self.encoder.transform(self._categorical(X)))
            except ValueError as e:
                raise SchemaError(f"Categorical value outside the fixed level set: {e}") from e

        values = np.hstack(parts) if parts else np.empty((len(X), 0))
        return pd.DataFrame(values, columns=self.feature_names)

    def to_dict(self) -> dict[str, Any]:
        return {
            "format_version": FORMAT_VERSION,
            "impute_strategy": self.impute_strategy,
            "numeric_cols": list(self.numeric_cols),
            "fill_values": self.fill_values,
            "levels": {col: list(cats) for col, cats in self.levels.items()},
            "baselines": dict(self.baselines),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Preprocessor":
        """Rebuild a fitted Preprocessor from ``to_dict`` output.

        The imputer is refitted on a single row of the stored fill values and
        the encoder on the declared levels, which reproduces the fitted state.
        """
        if data.get("format_version") != FORMAT_VERSION:
            raise ValueError(f"Unsupported preprocessor format: {data.get('format_version')}")
        prep = cls(levels=data["levels"], impute_strategy=data.get("impute_strategy", "median"))
        prep.numeric_cols = list(data["numeric_cols"])
        prep.baselines = dict(data["baselines"])
        prep._build()

        if prep.numeric_cols:
            fills = data["fill_values"]
            prep.imputer.fit(pd.DataFrame([[float(fills[c]) for c in prep.numeric_cols]], columns=prep.numeric_cols))
        if prep.levels:
            n = max(len(cats) for cats in prep.levels.values())
            rows = {col: [cats[i % len(cats)] for i in range(n)] for col, cats in prep.levels.items()}
            prep.encoder.fit(pd.DataFrame(rows, columns=list(prep.levels), dtype=object))
        return prep

    @staticmethod
    def zero_columns(Xt: pd.DataFrame) -> list[str]:
        """Design columns that never take a non-zero value."""
        return [col for col in Xt.columns if not np.any(Xt[col].to_numpy() != 0)]
