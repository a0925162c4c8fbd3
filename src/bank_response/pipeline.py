import warnings
from textwrap import indent

from .config import Config
from .data_loader import DataLoader
from .errors import PipelineError
from .evaluator import EvaluationResult, Evaluator
from .exporter import ArtifactExporter
from .feature_engineer import RESPONSE_COL, FeatureEngineer
from .model_trainer import ForestTrainer, LogisticTrainer
from .reporting import Reporter
from .sampler import Sampler
from .threshold_analyzer import ThresholdAnalyzer
from .utils.logger import get_logger


class PipelineRunner:
    """End-to-end bank marketing response pipeline.

    Steps:
      1. Connect to the relational source and reflect the contact table
      2. Prepare features in-database (education recode, resp, dropped columns)
      3. Sample train (low percentiles) and test (high percentiles) partitions
      4. Fit logistic regression and random forest on the training partition
      5. Score the combined sample: deciles, lift, confusion metrics at one cutoff
      6. Optionally sweep cutoffs and suggest one per model for a target specificity
      7. Render coefficient, importance, lift and confusion-matrix charts
      8. Export models, predictions and sample data for the scoring service"""

    def __init__(self, config_path: str):
        self.config = Config.from_yaml(config_path)
        self.logger = get_logger(self.__class__.__name__)
        warnings.filterwarnings(
            "ignore",
            message="X does not have valid feature names",
            category=UserWarning,
            module="sklearn",
        )

    def run(self) -> EvaluationResult:
        try:
            return self._run()
        except PipelineError as exc:
            self.logger.error(f"Pipeline aborted: {exc}")
            raise

    def _run(self) -> EvaluationResult:
        cfg = self.config
        self.logger.info("Starting bank marketing response pipeline")

        fe = FeatureEngineer(
            recode_education=cfg.preprocessing.get("recode_education"),
            drop_columns=cfg.preprocessing.get("drop_columns"),
            target_col=cfg.data.get("target_col", "term_deposit"),
            positive_label=cfg.data.get("positive_label", "yes"),
        )

        with DataLoader(cfg.data["url"], cfg.data["table"]) as loader:
            prepared = fe.transform(loader.table())

            sampler = Sampler(
                loader,
                categorical_columns=cfg.preprocessing["categorical_columns"],
                percentile_col=cfg.sampling.get("percentile_col", "percentile"),
                train_max_percentile=cfg.sampling.get("train_max_percentile", 15),
                test_min_percentile=cfg.sampling.get("test_min_percentile", 75),
                global_levels=cfg.preprocessing.get("global_levels", True),
            )
            train, test = sampler.split(prepared)

        levels = sampler.levels
        combined = Sampler.combine(train, test, levels if sampler.global_levels else None)
        self.logger.info(
            f"Combined sample: {len(combined):,} rows, response rate {combined[RESPONSE_COL].mean():.3f}"
        )

        response = cfg.model.get("response", RESPONSE_COL)
        logistic = LogisticTrainer(levels, response=response, **cfg.model.get("logistic", {})).fit(train)
        forest = ForestTrainer(levels, response=response, **cfg.model.get("forest", {})).fit(train)
        models = {"logistic": logistic, "forest": forest}

        evaluator = Evaluator(
            cutoff=cfg.evaluation.get("cutoff", 0.88),
            n_deciles=cfg.evaluation.get("n_deciles", 10),
            metrics_path=cfg.output.get("metrics_path"),
        )
        result = evaluator.evaluate(models, combined)

        for name, metrics in result.metrics.items():
            metrics_str = indent(
                "\n".join([f"{k}: {v:.4f}" for k, v in metrics.items() if isinstance(v, float)]),
                " " * 4,
            )
            self.logger.info(f"{name} metrics:\n{metrics_str}")

        figures_dir = cfg.output.get("figures_dir", "artifacts")
        if cfg.evaluation.get("analyze_thresholds", False):
            analyzer = ThresholdAnalyzer(figures_dir)
            y_true = result.predictions[RESPONSE_COL]
            scores = {name: result.predictions[f"{name}_score"] for name in models}
            analyzer.run(y_true, scores)

            target = cfg.evaluation.get("target_specificity")
            if target is not None:
                for name, y_score in scores.items():
                    try:
                        cutoff = analyzer.cutoff_for_specificity(y_true, y_score, target)
                    except ValueError as exc:
                        self.logger.warning(f"{name}: {exc}")
                        continue
                    result.suggested_cutoffs[name] = cutoff
                    self.logger.info(f"{name}: cutoff {cutoff:.2f} reaches specificity {target:.2f}")

        reporter = Reporter(figures_dir)
        reporter.plot_coefficients(logistic.describe(), p_value=cfg.evaluation.get("p_value", 0.05))
        reporter.plot_importance(forest.describe())
        for name in models:
            reporter.plot_lift(result.lift[name], name)
            reporter.plot_confusion_matrix(result.metrics[name], name)

        exporter = ArtifactExporter(cfg.output.get("api_dir", "api"))
        exporter.export(models, result.predictions, combined)

        self.logger.info("Pipeline finished")
        return result
