import pandas as pd

from bank_response.reporting import Reporter


def test_reporter_saves_every_chart(tmp_path):
    reporter = Reporter(str(tmp_path), verbose=False)
    stats = pd.DataFrame(
        {
            "term": ["Intercept", "age", "month[T.may]"],
            "z_value": [-5.0, 2.5, -0.3],
            "p_value": [1e-6, 0.012, 0.76],
        }
    )
    importance = pd.DataFrame({"feature": ["euribor3m", "age"], "importance": [0.6, 0.4]})
    lift = pd.DataFrame(
        {
            "partition": ["train", "train", "test", "test"],
            "decile": [1, 2, 1, 2],
            "lift_pct": [30.0, 5.0, 25.0, 6.0],
        }
    )
    metrics = {"TP": 5, "FP": 3, "TN": 80, "FN": 12}

    paths = [
        reporter.plot_coefficients(stats),
        reporter.plot_importance(importance),
        reporter.plot_lift(lift, "logistic"),
        reporter.plot_confusion_matrix(metrics, "logistic"),
    ]
    for path in paths:
        assert (tmp_path / path.split("/")[-1]).exists()


def test_reporter_coefficients_without_significant_terms(tmp_path):
    stats = pd.DataFrame({"term": ["Intercept", "age"], "z_value": [1.0, 0.1], "p_value": [0.3, 0.9]})
    path = Reporter(str(tmp_path), verbose=False).plot_coefficients(stats)
    assert path.endswith("logistic_coefficients.png")
