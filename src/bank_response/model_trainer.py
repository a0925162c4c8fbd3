from typing import Any

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.special import expit
from sklearn.ensemble import RandomForestClassifier

from .errors import DegenerateDataError
from .preprocessor import Preprocessor
from .sampler import PARTITION_COL
from .utils.logger import get_logger

FORMAT_VERSION = 1
INTERCEPT = "Intercept"


def _split_xy(df: pd.DataFrame, response: str) -> tuple[pd.DataFrame, np.ndarray]:
    X = df.drop(columns=[c for c in (response, PARTITION_COL) if c in df.columns])
    y = df[response].astype(int).to_numpy()
    return X, y


def check_trainable(X: pd.DataFrame, y: np.ndarray, levels: dict[str, list[str]]) -> None:
    """Raise DegenerateDataError when the training rows cannot support a fit."""
    if len(y) == 0:
        raise DegenerateDataError("Training partition has no rows")
    if len(np.unique(y)) < 2:
        raise DegenerateDataError(f"Response is constant in training rows (all {int(y[0])})")
    single = [col for col in levels if X[col].dropna().astype(str).nunique() < 2]
    if single:
        raise DegenerateDataError(f"Categorical predictors with a single observed level: {single}")


class LogisticModel:
    """Binomial GLM with logit link over a treatment-coded design matrix.

    Coefficients are relative to each factor's baseline level; a positive
    coefficient raises the subscription probability.
    """

    kind = "logistic"

    def __init__(self, preprocessor: Preprocessor, intercept: float, coefficients: dict[str, float], stats: pd.DataFrame):
        self.preprocessor = preprocessor
        self.intercept = float(intercept)
        self.coefficients = dict(coefficients)
        self.stats = stats

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        Xt = self.preprocessor.transform(X)
        beta = np.array([self.coefficients.get(name, 0.0) for name in Xt.columns])
        return expit(self.intercept + Xt.to_numpy() @ beta)

    def describe(self) -> pd.DataFrame:
        return self.stats.copy()

    def to_dict(self) -> dict[str, Any]:
        return {
            "format_version": FORMAT_VERSION,
            "kind": self.kind,
            "preprocessor": self.preprocessor.to_dict(),
            "intercept": self.intercept,
            "coefficients": dict(self.coefficients),
            "stats": self.stats.astype(object).where(self.stats.notna(), None).to_dict(orient="records"),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogisticModel":
        return cls(
            preprocessor=Preprocessor.from_dict(data["preprocessor"]),
            intercept=data["intercept"],
            coefficients={k: float(v) for k, v in data["coefficients"].items()},
            stats=pd.DataFrame.from_records(data["stats"]),
        )


class LogisticTrainer:
    """Fits a binomial GLM (statsmodels) on the training partition."""

    def __init__(self, levels: dict[str, list[str]], response: str = "resp", max_iter: int = 100):
        self.levels = levels
        self.response = response
        self.max_iter = max_iter
        self.logger = get_logger(self.__class__.__name__)

    def fit(self, train: pd.DataFrame) -> LogisticModel:
        X, y = _split_xy(train, self.response)
        check_trainable(X, y, self.levels)

        prep = Preprocessor(self.levels).fit(X)
        Xt = prep.transform(X)

        # levels never seen in training score as the baseline
        unseen = Preprocessor.zero_columns(Xt)
        if unseen:
            self.logger.warning(f"Levels absent from training, scored as baseline: {unseen}")
        design = sm.add_constant(Xt.drop(columns=unseen), has_constant="add").rename(columns={"const": INTERCEPT})

        result = sm.GLM(y, design, family=sm.families.Binomial()).fit(maxiter=self.max_iter)
        if not np.all(np.isfinite(result.params)):
            raise DegenerateDataError("Logistic regression did not converge to finite coefficients")

        coefficients = {name: float(result.params.get(name, 0.0)) for name in Xt.columns}
        stats = pd.DataFrame(
            {
                "term": result.params.index,
                "coefficient": result.params.to_numpy(),
                "std_error": result.bse.to_numpy(),
                "z_value": result.tvalues.to_numpy(),
                "p_value": result.pvalues.to_numpy(),
            }
        )
        stats["odds_ratio"] = np.exp(stats["coefficient"])
        stats["baseline"] = [
            prep.baselines.get(term.split("[T.")[0]) if "[T." in term else None
            for term in stats["term"]
        ]

        self.logger.info(
            f"Fitted logistic regression: {len(coefficients)} terms, "
            f"deviance={result.deviance:.2f}, AIC={result.aic:.2f}"
        )
        return LogisticModel(prep, result.params[INTERCEPT], coefficients, stats)


class ForestModel:
    """Random forest scored by the fraction of positive votes.

    Built from a fitted RandomForestClassifier, or from exported tree arrays
    (``from_dict``), in which case scoring walks the trees directly.
    """

    kind = "forest"

    def __init__(
        self,
        preprocessor: Preprocessor,
        importances: dict[str, float],
        estimator: RandomForestClassifier | None = None,
        trees: list[dict[str, list]] | None = None,
    ):
        if estimator is None and trees is None:
            raise ValueError("ForestModel needs a fitted estimator or exported trees.")
        self.preprocessor = preprocessor
        self.importances = dict(importances)
        self.estimator = estimator
        self._trees = trees

    @property
    def trees(self) -> list[dict[str, list]]:
        if self._trees is None:
            self._trees = self._export_trees(self.estimator)
        return self._trees

    @staticmethod
    def _export_trees(estimator: RandomForestClassifier) -> list[dict[str, list]]:
        pos = list(estimator.classes_).index(1)
        trees = []
        for est in estimator.estimators_:
            tree = est.tree_
            value = tree.value[:, 0, :]
            totals = value.sum(axis=1)
            totals[totals == 0] = 1.0
            trees.append(
                {
                    "children_left": tree.children_left.tolist(),
                    "children_right": tree.children_right.tolist(),
                    "feature": tree.feature.tolist(),
                    "threshold": tree.threshold.tolist(),
                    "proba": (value[:, pos] / totals).tolist(),
                }
            )
        return trees

    @staticmethod
    def _walk(tree: dict[str, list], X: np.ndarray) -> np.ndarray:
        left = np.asarray(tree["children_left"])
        right = np.asarray(tree["children_right"])
        feature = np.asarray(tree["feature"])
        threshold = np.asarray(tree["threshold"], dtype=float)
        node = np.zeros(X.shape[0], dtype=int)
        active = left[node] != -1
        while active.any():
            rows = np.flatnonzero(active)
            current = node[rows]
            go_left = X[rows, feature[current]] <= threshold[current]
            node[rows] = np.where(go_left, left[current], right[current])
            active = left[node] != -1
        return np.asarray(tree["proba"], dtype=float)[node]

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        Xt = self.preprocessor.transform(X)
        if self.estimator is not None:
            pos = list(self.estimator.classes_).index(1)
            return self.estimator.predict_proba(Xt)[:, pos]
        # tree splits compare float32 inputs, as scikit-learn does
        values = Xt.to_numpy(dtype=np.float32)
        return np.mean([self._walk(tree, values) for tree in self.trees], axis=0)

    def describe(self) -> pd.DataFrame:
        df = pd.DataFrame({"feature": list(self.importances), "importance": list(self.importances.values())})
        return df.sort_values("importance", ascending=False, kind="mergesort").reset_index(drop=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "format_version": FORMAT_VERSION,
            "kind": self.kind,
            "preprocessor": self.preprocessor.to_dict(),
            "importances": dict(self.importances),
            "trees": self.trees,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ForestModel":
        return cls(
            preprocessor=Preprocessor.from_dict(data["preprocessor"]),
            importances={k: float(v) for k, v in data["importances"].items()},
            trees=data["trees"],
        )


class ForestTrainer:
    """Fits a random forest classifier on the training partition."""

    def __init__(
        self,
        levels: dict[str, list[str]],
        response: str = "resp",
        n_estimators: int = 100,
        random_state: int = 42,
        **params: Any,
    ):
        self.levels = levels
        self.response = response
        self.params = dict(params)
        self.params["n_estimators"] = n_estimators
        self.params["random_state"] = random_state
        self.logger = get_logger(self.__class__.__name__)

    def fit(self, train: pd.DataFrame) -> ForestModel:
        X, y = _split_xy(train, self.response)
        check_trainable(X, y, self.levels)

        prep = Preprocessor(self.levels).fit(X)
        Xt = prep.transform(X)

        params = dict(self.params)
        params.setdefault("max_features", "sqrt")
        model = RandomForestClassifier(**params)
        model.fit(Xt, y)

        importances = dict(zip(Xt.columns, (float(v) for v in model.feature_importances_)))
        self.logger.info(f"Fitted random forest: {params['n_estimators']} trees, {Xt.shape[1]} features")
        return ForestModel(prep, importances, estimator=model)


def model_from_dict(data: dict[str, Any]):
    """Rebuild a LogisticModel or ForestModel from its exported dict."""
    if data.get("format_version") != FORMAT_VERSION:
        raise ValueError(f"Unsupported model format: {data.get('format_version')}")
    kinds = {LogisticModel.kind: LogisticModel, ForestModel.kind: ForestModel}
    if data.get("kind") not in kinds:
        raise ValueError(f"Unknown model kind: {data.get('kind')}")
    return kinds[data["kind"]].from_dict(data)
