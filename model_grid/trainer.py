# Default trainer
# Resamples a (preprocessing + model) pipeline, then refits it on all data

from sklearn.base import clone
from sklearn.pipeline import Pipeline

from .config_schema import validate_effective_config
from .cv import normalize_metric, parse_resampling, run_repeated_cv
from .data import load_dataset, split_features_target, validate_data_integrity
from .models import DEFAULT_SEED, build_model
from .preprocessing import PreparedData


class CVTrainer:
    """
    Fits one experiment: ``fit(data, config) -> (fitted_model, metrics)``.

    ``data`` is ``PreparedData`` from the preprocessing engine, a DataFrame or a
    CSV path. The preprocessing estimate is cloned into the model pipeline so it
    is re-estimated inside every resample.
    """

    def __init__(self, verbose=True):
        self.verbose = verbose

    def _log(self, msg):
        if self.verbose:
            print(msg)

    def fit(self, data, config):
        validate_effective_config(config)

        task_type = config['target_type']
        metric = normalize_metric(config.get('metric'), task_type)
        n_splits, n_repeats = parse_resampling(config.get('resampling'))
        seed = config.get('seed', DEFAULT_SEED)

        if isinstance(data, PreparedData):
            X, y, transformer = data.X, data.y, data.transformer
        else:
            df = load_dataset(data)
            X, y = split_features_target(df, config)
            validate_data_integrity(X, y, config)
            transformer = None

        def make_estimator():
            model = build_model(config)
            if transformer is None:
                return model
            return Pipeline([('preprocess', clone(transformer)), ('model', model)])

        self._log(f"  Running {n_splits}-fold x {n_repeats} repeats CV ({task_type}, "
                  f"method={config['method']}, metric={metric})...")
        metrics = run_repeated_cv(make_estimator, X, y, task_type,
                                  n_splits=n_splits, n_repeats=n_repeats, seed=seed)
        metrics['metric'] = metric

        # Final model on all data
        final_model = make_estimator()
        final_model.fit(X, y)

        self._log(f"  {metric}: {metrics[metric]['mean']:.4f} +/- {metrics[metric]['std']:.4f}")
        return final_model, metrics
