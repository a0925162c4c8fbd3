import os
from typing import Dict

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .utils.logger import get_logger


class Reporter:
    """Renders diagnostic charts for fitted models and their lift tables."""

    def __init__(self, figures_dir: str = "artifacts", verbose: bool = True):
        self.figures_dir = figures_dir
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def _save(self, filename: str) -> str:
        os.makedirs(self.figures_dir, exist_ok=True)
        path = os.path.join(self.figures_dir, filename)
        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()
        if self.verbose:
            self.logger.info(f"Saved figure: {path}")
        return path

    def plot_coefficients(self, stats: pd.DataFrame, p_value: float = 0.05, filename: str = "logistic_coefficients.png") -> str:
        """|z| of significant logistic terms, most significant first."""
        sig = stats[(stats["term"] != "Intercept") & (stats["p_value"] < p_value)].copy()
        sig = sig.sort_values("p_value", kind="mergesort")
        sig["abs_z"] = sig["z_value"].abs()

        plt.figure(figsize=(8, max(3, 0.35 * len(sig) + 1)))
        if sig.empty:
            plt.text(0.5, 0.5, f"No terms with p < {p_value}", ha="center", va="center")
            plt.axis("off")
        else:
            sns.barplot(data=sig, x="abs_z", y="term", color="steelblue")
            plt.xlabel("|z value|")
            plt.ylabel("")
        plt.title(f"Logistic Regression: terms with p < {p_value}")
        return self._save(filename)

    def plot_importance(self, importance: pd.DataFrame, top_n: int = 20, filename: str = "forest_importance.png") -> str:
        top = importance.head(top_n)
        plt.figure(figsize=(8, max(3, 0.35 * len(top) + 1)))
        sns.barplot(data=top, x="importance", y="feature", color="darkgreen")
        plt.xlabel("Mean decrease in impurity")
        plt.ylabel("")
        plt.title("Random Forest: variable importance")
        return self._save(filename)

    def plot_lift(self, lift: pd.DataFrame, name: str) -> str:
        plt.figure(figsize=(8, 5))
        sns.barplot(data=lift, x="decile", y="lift_pct", hue="partition", hue_order=["train", "test"])
        plt.xlabel("Decile (1 = highest score)")
        plt.ylabel("Responders (%)")
        plt.title(f"Lift by decile: {name}")
        return self._save(f"lift_{name}.png")

    def plot_confusion_matrix(self, metrics: Dict[str, float], name: str, normalize: bool = True) -> str:
        cm = np.array([[metrics["TN"], metrics["FP"]], [metrics["FN"], metrics["TP"]]], dtype=float)

        if normalize:
            row_sums = cm.sum(axis=1, keepdims=True)
            row_sums[row_sums == 0] = 1.0
            cm = cm / row_sums

        plt.figure(figsize=(6, 5))
        sns.heatmap(
            cm,
            annot=True,
            fmt=".2f" if normalize else ".0f",
            cmap="Blues",
            xticklabels=["No Deposit", "Deposit"],
            yticklabels=["No Deposit", "Deposit"],
        )
        plt.xlabel("Predicted")
        plt.ylabel("Actual")
        plt.title(f"Confusion Matrix: {name}" + (" (Normalized)" if normalize else ""))
        return self._save(f"confusion_matrix_{name}.png")
