import json
import os
import tempfile
from typing import Callable, Dict

import joblib
import pandas as pd

from .errors import ExportError
from .model_trainer import model_from_dict
from .utils.logger import get_logger

ARTIFACT_NAMES = {
    "logistic": "logistic_model.json",
    "forest": "forest_model.json",
    "predictions": "predictions.joblib",
    "schema": "sample_schema.joblib",
    "sample": "sample.csv",
}


class ArtifactExporter:
    """Writes the run's artifacts to fixed names under ``api_dir``.

    Existing artifacts are overwritten. Each file is written beside its
    destination and renamed into place; a failure leaves earlier artifacts
    of the run as they are.
    """

    def __init__(self, api_dir: str = "api"):
        self.api_dir = api_dir
        self.logger = get_logger(self.__class__.__name__)

    def path(self, key: str) -> str:
        return os.path.join(self.api_dir, ARTIFACT_NAMES[key])

    def _write(self, key: str, writer: Callable[[str], None]) -> str:
        path = self.path(key)
        tmp_path = None
        try:
            os.makedirs(self.api_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.api_dir, prefix=".tmp_", suffix=os.path.basename(path))
            os.close(fd)
            writer(tmp_path)
            os.replace(tmp_path, path)
        except OSError as exc:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise ExportError(f"Cannot write {path}: {exc}") from exc
        self.logger.info(f"Saved {key}: {path}")
        return path

    def save_model(self, key: str, model) -> str:
        def writer(tmp: str) -> None:
            with open(tmp, "w") as f:
                json.dump(model.to_dict(), f)

        return self._write(key, writer)

    def export(self, models: Dict[str, object], predictions: pd.DataFrame, combined: pd.DataFrame) -> Dict[str, str]:
        paths = {key: self.save_model(key, model) for key, model in models.items()}
        paths["predictions"] = self._write("predictions", lambda tmp: joblib.dump(predictions, tmp))
        paths["schema"] = self._write("schema", lambda tmp: joblib.dump(combined.iloc[0:0].copy(), tmp))
        paths["sample"] = self._write("sample", lambda tmp: combined.to_csv(tmp, index=False))
        return paths


def load_model(path: str):
    """Load a model JSON written by ArtifactExporter."""
    with open(path, "r") as f:
        return model_from_dict(json.load(f))
