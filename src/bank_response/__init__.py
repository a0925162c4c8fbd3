"""
Bank Marketing Response — term deposit response models

This package reads customer-contact records from a relational source,
fits a logistic regression and a random forest on a low-percentile
training sample, compares them on a combined train/test sample at a
shared probability cutoff, and exports the models and sample data for
an external scoring service.

Modules:
    config              — Load YAML configuration safely.
    data_loader         — Scoped connection and lazy table handle.
    feature_engineer    — In-database response derivation and recoding.
    sampler             — Percentile train/test partitions with fixed levels.
    preprocessor        — Treatment-coded design matrix.
    model_trainer       — Logistic regression (GLM) and random forest.
    evaluator           — Deciles, lift and confusion metrics.
    threshold_analyzer  — Sweep cutoffs for sensitivity/specificity.
    reporting           — Coefficient, importance and lift charts.
    exporter            — Write model and sample artifacts.
    pipeline            — Orchestrates all components.
    utils.logger        — Unified timestamped console logger.
"""

from .config import Config
from .data_loader import DataLoader
from .feature_engineer import FeatureEngineer
from .sampler import Sampler
from .preprocessor import Preprocessor
from .model_trainer import ForestModel, ForestTrainer, LogisticModel, LogisticTrainer
from .evaluator import EvaluationResult, Evaluator
from .threshold_analyzer import ThresholdAnalyzer
from .reporting import Reporter
from .exporter import ArtifactExporter, load_model
from .pipeline import PipelineRunner

__all__ = [
    "Config",
    "DataLoader",
    "FeatureEngineer",
    "Sampler",
    "Preprocessor",
    "LogisticTrainer",
    "LogisticModel",
    "ForestTrainer",
    "ForestModel",
    "Evaluator",
    "EvaluationResult",
    "ThresholdAnalyzer",
    "Reporter",
    "ArtifactExporter",
    "load_model",
    "PipelineRunner",
]
