from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd
from sqlalchemy.sql import Select

from .data_loader import DataLoader, is_numeric_column
from .errors import DegenerateDataError, SchemaError
from .utils.logger import get_logger

PARTITION_COL = "partition"


class Sampler:
    """Splits prepared rows into disjoint train/test partitions by percentile.

    Rows with ``train_max < percentile <= test_min`` belong to neither
    partition. Categorical columns are cast to ``pd.Categorical`` with a
    fixed, sorted level set: shared by both partitions when
    ``global_levels`` is set, otherwise observed per partition.
    """

    def __init__(
        self,
        loader: DataLoader,
        categorical_columns: Iterable[str],
        percentile_col: str = "percentile",
        train_max_percentile: float = 15,
        test_min_percentile: float = 75,
        global_levels: bool = True,
    ):
        if train_max_percentile >= test_min_percentile:
            raise ValueError(
                f"train_max_percentile ({train_max_percentile}) must be below "
                f"test_min_percentile ({test_min_percentile})"
            )
        self.loader = loader
        self.categorical_columns = list(categorical_columns)
        self.percentile_col = percentile_col
        self.train_max_percentile = train_max_percentile
        self.test_min_percentile = test_min_percentile
        self.global_levels = global_levels
        self.logger = get_logger(self.__class__.__name__)
        self.levels: Dict[str, List[str]] = {}

    def _read_partition(self, prepared: Select, name: str) -> pd.DataFrame:
        columns = prepared.selected_columns
        if self.percentile_col not in columns:
            raise SchemaError(f"Missing source column: {self.percentile_col}")

        pct = columns[self.percentile_col]
        if not is_numeric_column(pct):
            raise SchemaError(f"Column {self.percentile_col} must be numeric, found {pct.type}")
        if name == "train":
            query = prepared.where(pct <= self.train_max_percentile)
        else:
            query = prepared.where(pct > self.test_min_percentile)

        df = self.loader.read(query)
        if df.empty:
            raise DegenerateDataError(f"The {name} partition is empty")
        # untyped columns are only known once read
        if not pd.api.types.is_numeric_dtype(df[self.percentile_col]):
            raise SchemaError(f"Column {self.percentile_col} must be numeric, found {df[self.percentile_col].dtype}")
        df = df.drop(columns=[self.percentile_col])

        missing = sorted(set(self.categorical_columns) - set(df.columns))
        if missing:
            raise SchemaError(f"Missing categorical columns: {missing}")
        return df

    @staticmethod
    def _observed_levels(frames: Iterable[pd.DataFrame], col: str) -> List[str]:
        values = pd.concat([df[col] for df in frames]).dropna().astype(str)
        return sorted(values.unique())

    def _cast(self, df: pd.DataFrame, levels: Dict[str, List[str]]) -> pd.DataFrame:
        out = df.copy()
        for col in self.categorical_columns:
            out[col] = pd.Categorical(out[col].astype(str), categories=levels[col])
        return out

    def split(self, prepared: Select) -> Tuple[pd.DataFrame, pd.DataFrame]:
        train = self._read_partition(prepared, "train")
        test = self._read_partition(prepared, "test")

        if self.global_levels:
            self.levels = {col: self._observed_levels([train, test], col) for col in self.categorical_columns}
            train = self._cast(train, self.levels)
            test = self._cast(test, self.levels)
        else:
            train_levels = {col: self._observed_levels([train], col) for col in self.categorical_columns}
            test_levels = {col: self._observed_levels([test], col) for col in self.categorical_columns}
            train = self._cast(train, train_levels)
            test = self._cast(test, test_levels)
            self.levels = train_levels

        self.logger.info(
            f"Sampled train={len(train):,} (percentile <= {self.train_max_percentile}), "
            f"test={len(test):,} (percentile > {self.test_min_percentile})"
        )
        return train, test

    @staticmethod
    def combine(train: pd.DataFrame, test: pd.DataFrame, levels: Optional[Dict[str, List[str]]] = None) -> pd.DataFrame:
        """Stack both partitions, tagging each row with its partition name."""
        parts = []
        for name, df in (("train", train), ("test", test)):
            part = df.copy()
            if levels:
                for col, cats in levels.items():
                    part[col] = pd.Categorical(part[col].astype(str), categories=cats)
            part[PARTITION_COL] = name
            parts.append(part)
        return pd.concat(parts, ignore_index=True)
