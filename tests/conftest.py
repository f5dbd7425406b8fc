import pytest
import pandas as pd
import numpy as np


@pytest.fixture(scope="session")
def seed():
    return 42


@pytest.fixture
def tiny_clf_df(seed):
    """
    Small deterministic classification frame.
    Includes:
      - label (binary target driven mostly by f0)
      - const (zero-variance column)
      - row_id (identifier that must be ignored)
    """
    rng = np.random.default_rng(seed)
    n = 60

    df = pd.DataFrame({
        "f0": rng.normal(size=n),
        "f1": rng.normal(size=n),
        "f2": rng.normal(size=n),
        "const": np.ones(n),
    })
    df["f3"] = df["f0"] * 0.8 + rng.normal(scale=0.3, size=n)
    df["label"] = (df["f0"] + 0.5 * rng.normal(size=n) > 0).astype(int)
    df["row_id"] = np.arange(n)
    return df


@pytest.fixture
def tiny_reg_df(seed):
    rng = np.random.default_rng(seed)
    n = 50

    df = pd.DataFrame({
        "x0": rng.normal(size=n),
        "x1": rng.normal(size=n),
        "x2": rng.integers(0, 5, size=n).astype(float),
    })
    df["score"] = 2.0 * df["x0"] - df["x1"] + rng.normal(scale=0.1, size=n)
    return df


@pytest.fixture
def clf_settings(tiny_clf_df, seed):
    """Shared settings for a classification grid on tiny_clf_df."""
    return {
        "data": tiny_clf_df,
        "target_column": "label",
        "target_type": "classification",
        "ignored_columns": ["row_id"],
        "method": "logistic_regression",
        "params": {"max_iter": 200},
        "resampling": "cv-3",
        "metric": "AUC",
        "seed": seed,
    }


@pytest.fixture
def reg_settings(tiny_reg_df, seed):
    return {
        "data": tiny_reg_df,
        "target_column": "score",
        "target_type": "regression",
        "method": "ridge",
        "resampling": "repeatedcv-4-2",
        "metric": "RMSE",
        "seed": seed,
    }


class RecordingEngine:
    """Preprocessing engine stand-in that records calls and fails on request."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = []

    def apply(self, spec, data, config):
        self.calls.append((spec, data, dict(config)))
        if spec in self.fail_on:
            raise np.linalg.LinAlgError(f"could not estimate '{spec}'")
        return {"prepared_with": spec, "data": data}


class RecordingTrainer:
    """Trainer stand-in that returns the config it saw as the 'model'."""

    def __init__(self, fail_when=None):
        self.fail_when = fail_when
        self.calls = []

    def fit(self, data, config):
        self.calls.append((data, dict(config)))
        if self.fail_when is not None and self.fail_when(config):
            raise ValueError("trainer rejected config")
        metric = config.get("metric", "accuracy")
        scores = [0.5, 0.75, 1.0]
        return ("fitted", dict(config)), {
            "metric": metric,
            metric: {"mean": float(np.mean(scores)), "std": float(np.std(scores)), "all": scores},
        }


@pytest.fixture
def recording_engine():
    return RecordingEngine()


@pytest.fixture
def recording_trainer():
    return RecordingTrainer()


@pytest.fixture
def fake_grid(recording_engine, recording_trainer):
    from model_grid import ModelGrid
    return ModelGrid.create(preprocessor=recording_engine, trainer=recording_trainer, verbose=False)


@pytest.fixture
def write_yaml(tmp_path):
    import yaml
    def _write(cfg, name="grid.yaml"):
        p = tmp_path / name
        with open(p, "w") as f:
            yaml.safe_dump(cfg, f, default_flow_style=False)
        return str(p)
    return _write


@pytest.fixture
def grid_file_config(tmp_path, tiny_clf_df, seed):
    """Grid YAML content pointing at tiny_clf_df written to CSV."""
    csv_path = tmp_path / "tiny.csv"
    tiny_clf_df.to_csv(csv_path, index=False)
    return {
        "name": "pytest_grid",
        "output_dir": str(tmp_path / "runs"),
        "shared": {
            "data": str(csv_path),
            "target_column": "label",
            "target_type": "classification",
            "ignored_columns": ["row_id"],
            "method": "logistic_regression",
            "params": {"max_iter": 200},
            "resampling": "cv-3",
            "metric": "AUC",
            "seed": seed,
        },
        "experiments": [
            {"name": "plain"},
            {"name": "pca", "preprocessing": [{"step": "standardize"}, {"step": "pca", "n_components": 2}]},
            {"name": "forest", "overrides": {"method": "random_forest", "params": {"n_estimators": 20}}},
        ],
    }
