import json
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import cohen_kappa_score, confusion_matrix, roc_auc_score

from .feature_engineer import RESPONSE_COL
from .sampler import PARTITION_COL
from .utils.logger import get_logger


def assign_deciles(scores, n_deciles: int = 10) -> np.ndarray:
    """Bucket scores into ``n_deciles`` equal-count groups, 1 = highest scores.

    Ties keep their original order; bucket sizes differ by at most one.
    """
    scores = np.asarray(scores, dtype=float)
    n = len(scores)
    order = np.argsort(-scores, kind="stable")
    buckets = np.empty(n, dtype=int)
    buckets[order] = (np.arange(n) * n_deciles) // max(n, 1) + 1
    return buckets


def json_safe(metrics: Dict[str, float]) -> Dict[str, Optional[float]]:
    """Undefined rates (NaN) become None, written as JSON null."""
    return {k: None if isinstance(v, float) and np.isnan(v) else v for k, v in metrics.items()}


def classify(scores, cutoff: float) -> np.ndarray:
    return (np.asarray(scores, dtype=float) >= cutoff).astype(int)


def confusion_metrics(y_true, y_pred, y_score=None) -> Dict[str, float]:
    """Contingency counts and the classification rates derived from them."""
    y_true = np.asarray(y_true).astype(int)
    y_pred = np.asarray(y_pred).astype(int)

    tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
    total = tn + fp + fn + tp

    def rate(num, den) -> float:
        return float(num / den) if den else float("nan")

    sensitivity = rate(tp, tp + fn)
    specificity = rate(tn, tn + fp)
    metrics: Dict[str, float] = {
        "TP": int(tp),
        "FP": int(fp),
        "TN": int(tn),
        "FN": int(fn),
        "Total": int(total),
        "Accuracy": rate(tp + tn, total),
        "Sensitivity": sensitivity,
        "Specificity": specificity,
        "PPV": rate(tp, tp + fp),
        "NPV": rate(tn, tn + fn),
        "Prevalence": rate(tp + fn, total),
        "Detection_Rate": rate(tp, total),
        "Balanced_Accuracy": float(np.nanmean([sensitivity, specificity])),
        "Kappa": float(cohen_kappa_score(y_true, y_pred, labels=[0, 1])),
    }
    if y_score is not None and len(np.unique(y_true)) == 2:
        metrics["ROC_AUC"] = float(roc_auc_score(y_true, y_score))
    return metrics


@dataclass
class EvaluationResult:
    predictions: pd.DataFrame
    lift: Dict[str, pd.DataFrame] = field(default_factory=dict)
    metrics: Dict[str, Dict[str, float]] = field(default_factory=dict)
    cutoff: float = 0.88
    # cutoff per model reaching the configured target specificity
    suggested_cutoffs: Dict[str, float] = field(default_factory=dict)


class Evaluator:
    """Scores the combined sample with every model at one shared cutoff.

    Holding the cutoff fixed across models keeps the comparison of
    sensitivities at comparable specificity.
    """

    def __init__(
        self,
        cutoff: float = 0.88,
        n_deciles: int = 10,
        metrics_path: Optional[str] = None,
        verbose: bool = True,
    ):
        self.cutoff = cutoff
        self.n_deciles = n_deciles
        self.metrics_path = metrics_path
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def score(self, model, combined: pd.DataFrame, name: str) -> pd.DataFrame:
        out = combined.copy()
        scores = np.asarray(model.predict(combined), dtype=float)
        out[f"{name}_score"] = scores
        out[f"{name}_decile"] = 0
        for _, idx in out.groupby(PARTITION_COL, sort=False).groups.items():
            out.loc[idx, f"{name}_decile"] = assign_deciles(out.loc[idx, f"{name}_score"], self.n_deciles)
        out[f"{name}_pred"] = classify(scores, self.cutoff)
        return out

    @staticmethod
    def lift_table(scored: pd.DataFrame, name: str) -> pd.DataFrame:
        """Response rate (%) per partition and decile."""
        lift = (
            scored.groupby([PARTITION_COL, f"{name}_decile"], sort=True)[RESPONSE_COL]
            .agg(n="size", responders="sum")
            .reset_index()
            .rename(columns={f"{name}_decile": "decile"})
        )
        lift["lift_pct"] = 100.0 * lift["responders"] / lift["n"]
        return lift

    def evaluate(self, models: Dict[str, object], combined: pd.DataFrame) -> EvaluationResult:
        predictions = combined.copy()
        result = EvaluationResult(predictions=predictions, cutoff=self.cutoff)

        for name, model in models.items():
            scored = self.score(model, combined, name)
            for col in (f"{name}_score", f"{name}_decile", f"{name}_pred"):
                predictions[col] = scored[col]

            result.lift[name] = self.lift_table(scored, name)
            result.metrics[name] = confusion_metrics(
                scored[RESPONSE_COL], scored[f"{name}_pred"], scored[f"{name}_score"]
            )

            if self.verbose:
                m = result.metrics[name]
                self.logger.info(
                    f"{name} @ cutoff {self.cutoff:.2f}: accuracy={m['Accuracy']:.4f}, "
                    f"sensitivity={m['Sensitivity']:.4f}, specificity={m['Specificity']:.4f}"
                )

        result.predictions = predictions

        if self.metrics_path:
            os.makedirs(os.path.dirname(self.metrics_path) or ".", exist_ok=True)
            with open(self.metrics_path, "w") as f:
                payload = {"cutoff": self.cutoff, "models": {name: json_safe(m) for name, m in result.metrics.items()}}
                json.dump(payload, f, indent=4, allow_nan=False)
            if self.verbose:
                self.logger.info(f"Saved metrics: {self.metrics_path}")

        return result
