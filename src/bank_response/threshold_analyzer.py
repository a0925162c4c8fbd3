import os
from typing import Dict

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .evaluator import classify, confusion_metrics
from .utils.logger import get_logger


class ThresholdAnalyzer:
    """Sweep probability cutoffs and (optionally) plot sensitivity/specificity trade-offs."""

    def __init__(
        self,
        output_dir: str = "artifacts",
        step: float = 0.02,
        filename: str = "threshold_sweep.png",
        verbose: bool = True,
    ):
        self.output_dir = output_dir
        self.step = step
        self.filename = filename
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    @property
    def cutoffs(self) -> np.ndarray:
        return np.round(np.arange(1, int(round(1 / self.step))) * self.step, 6)

    def sweep(self, y_true, y_score) -> pd.DataFrame:
        rows = []
        for cutoff in self.cutoffs:
            y_pred = classify(y_score, cutoff)
            m = confusion_metrics(y_true, y_pred)
            rows.append(
                {
                    "cutoff": float(cutoff),
                    "positives": int(y_pred.sum()),
                    "sensitivity": m["Sensitivity"],
                    "specificity": m["Specificity"],
                }
            )
        return pd.DataFrame(rows)

    def cutoff_for_specificity(self, y_true, y_score, target: float) -> float:
        """Smallest swept cutoff whose specificity reaches ``target``."""
        sweep = self.sweep(y_true, y_score)
        hits = sweep.loc[sweep["specificity"] >= target, "cutoff"]
        if hits.empty:
            raise ValueError(f"No cutoff reaches specificity {target:.3f}")
        return float(hits.min())

    def run(self, y_true, scores: Dict[str, np.ndarray], plot: bool = True) -> pd.DataFrame:
        frames = []
        for name, y_score in scores.items():
            sweep = self.sweep(y_true, y_score)
            sweep.insert(0, "model", name)
            frames.append(sweep)
        result = pd.concat(frames, ignore_index=True)

        if plot:
            long = result.melt(
                id_vars=["model", "cutoff"],
                value_vars=["sensitivity", "specificity"],
                var_name="metric",
            )
            plt.figure(figsize=(7, 5))
            sns.lineplot(data=long, x="cutoff", y="value", hue="model", style="metric")
            plt.xlabel("Cutoff")
            plt.ylabel("Rate")
            plt.title("Cutoff Sweep")

            os.makedirs(self.output_dir, exist_ok=True)
            path = os.path.join(self.output_dir, self.filename)
            plt.tight_layout()
            plt.savefig(path, dpi=200)
            plt.close()

            if self.verbose:
                self.logger.info(f"Saved cutoff sweep plot: {path}")

        return result
