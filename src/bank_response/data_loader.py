from decimal import Decimal
from typing import Optional

import pandas as pd
from sqlalchemy import MetaData, Table, create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlalchemy.sql import Select

from .errors import DataSourceError, SchemaError
from .utils.logger import get_logger

NUMERIC_TYPES = (int, float, Decimal)


def python_type(column) -> Optional[type]:
    """Python type a column's SQL type maps to, or None when the dialect cannot tell."""
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def is_numeric_column(column) -> bool:
    kind = python_type(column)
    return kind is None or (issubclass(kind, NUMERIC_TYPES) and not issubclass(kind, bool))


def is_text_column(column) -> bool:
    kind = python_type(column)
    return kind is None or issubclass(kind, str)


class DataLoader:
    """Scoped read-only connection to the relational source.

    Example:
        with DataLoader("sqlite:///data/bank_marketing.db", "bank_marketing") as loader:
            table = loader.table()
            df = loader.read(select(table))
    """

    def __init__(self, url: str, table_name: str):
        self.url = url
        self.table_name = table_name
        self.logger = get_logger(self.__class__.__name__)
        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None

    def __enter__(self) -> "DataLoader":
        try:
            self._engine = create_engine(self.url)
            self._connection = self._engine.connect()
        except SQLAlchemyError as exc:
            self.close()
            raise DataSourceError(f"Cannot connect to data source: {exc}") from exc
        self.logger.info(f"Connected to {self._engine.url.render_as_string(hide_password=True)}")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            raise RuntimeError("DataLoader must be used as a context manager.")
        return self._connection

    def table(self) -> Table:
        """Reflect the source table; returns a lazy, composable handle."""
        try:
            return Table(self.table_name, MetaData(), autoload_with=self.connection)
        except NoSuchTableError as exc:
            raise SchemaError(f"Table not found: {self.table_name}") from exc

    def read(self, query: Select) -> pd.DataFrame:
        df = pd.read_sql(query, self.connection)
        # SQLAlchemy labels arrive as quoted_name; downstream code expects plain str
        df.columns = [str(c) for c in df.columns]
        self.logger.info(f"Read {df.shape[0]:,} rows x {df.shape[1]} cols")
        return df
