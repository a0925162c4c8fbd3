from typing import Dict, Iterable, Optional

from sqlalchemy import Integer, Table, case, literal, select
from sqlalchemy.sql import Select

from .data_loader import is_text_column
from .errors import SchemaError

RESPONSE_COL = "resp"

EDUCATION_RECODE = {
    "basic 4-year": "less than 5 years",
    "basic 6-year": "less than 5 years",
    "illiterate": "less than 5 years",
}

DROP_COLUMNS = ["in_default", "date", "personal_loan", "term_deposit"]


class FeatureEngineer:
    """Derives the response label, collapses rare education levels and drops
    leakage columns, as one query that runs inside the data source.
    """

    def __init__(
        self,
        recode_education: Optional[Dict[str, str]] = None,
        drop_columns: Optional[Iterable[str]] = None,
        target_col: str = "term_deposit",
        positive_label: str = "yes",
    ):
        self.recode_education = dict(EDUCATION_RECODE if recode_education is None else recode_education)
        self.drop_columns = list(DROP_COLUMNS if drop_columns is None else drop_columns)
        self.target_col = target_col
        self.positive_label = positive_label

    def _check_columns(self, table: Table) -> None:
        required = {"education", self.target_col, *self.drop_columns}
        missing = sorted(required - set(table.c.keys()))
        if missing:
            raise SchemaError(f"Missing source columns: {missing}")

        # a numeric target would compare unequal to the label on every row
        target = table.c[self.target_col]
        if not is_text_column(target):
            raise SchemaError(f"Column {self.target_col} must hold text labels, found {target.type}")

    def transform(self, table: Table) -> Select:
        self._check_columns(table)

        education = table.c.education
        if self.recode_education:
            education = case(
                *[(table.c.education == raw, literal(new)) for raw, new in self.recode_education.items()],
                else_=table.c.education,
            )

        resp = case((table.c[self.target_col] == self.positive_label, 1), else_=0)

        columns = []
        for col in table.c:
            if col.name in self.drop_columns:
                continue
            if col.name == "education":
                columns.append(education.label("education"))
            else:
                columns.append(col)
        columns.append(resp.cast(Integer).label(RESPONSE_COL))

        return select(*columns)
