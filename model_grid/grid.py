"""
Model grid: a registry of named experiments sharing default settings.

Each experiment carries option overrides and an optional preprocessing spec.
``run()`` resolves every experiment's effective config (shared settings, then
overrides, key by key), hands the preprocessing spec to the preprocessing
engine and the result to the trainer, and stores one artifact per experiment.

Usage:
    grid = (ModelGrid.create()
            .set_shared_settings({'data': df, 'target_column': 'y',
                                  'target_type': 'classification',
                                  'method': 'logistic_regression',
                                  'resampling': 'cv-5', 'metric': 'AUC'})
            .add_experiment('baseline')
            .add_experiment('pca', preprocessing=Recipe().standardize().pca(3))
            .add_experiment('rf', overrides={'method': 'random_forest'})
            .run())
    artifacts = grid.get_artifacts()

Failures are per experiment: ``run()`` attempts every experiment, never raises
for a failing one, and records the outcome. Use ``failures`` or
``raise_for_failures()`` to act on them.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from .config_schema import validate_grid_config
from .cv import METRIC_ALIASES
from .preprocessing import PreprocessingEngine
from .recipes import Recipe
from .trainer import CVTrainer


class ModelGridError(Exception):
    """Base class for model grid errors."""
    pass


class DuplicateNameError(ModelGridError):
    """Raised when adding an experiment whose name is already registered."""
    pass


class NotFoundError(ModelGridError, KeyError):
    """Raised when removing or looking up an unregistered experiment."""

    def __str__(self):
        return str(self.args[0]) if self.args else ''


class ExperimentError(ModelGridError):
    """An experiment failed during run(); wraps the underlying cause."""

    stage = 'run'

    def __init__(self, name, cause):
        self.name = name
        self.cause = cause
        super().__init__(f"{self.stage} failed for experiment '{name}': {type(cause).__name__}: {cause}")


class PreprocessingError(ExperimentError):
    stage = 'Preprocessing'


class TrainingError(ExperimentError):
    stage = 'Training'


class ModelGridRunError(ModelGridError):
    """Aggregate of every experiment that failed in the latest run()."""

    def __init__(self, failures):
        self.failures = dict(failures)
        lines = [str(err) for err in self.failures.values()]
        super().__init__(f"{len(lines)} experiment(s) failed:\n  - " + "\n  - ".join(lines))


@dataclass(frozen=True)
class ExperimentSpec:
    name: str
    overrides: Dict[str, Any] = field(default_factory=dict)
    preprocessing: Any = None


@dataclass(frozen=True)
class Artifact:
    """Fitted model, effective config and resampled metrics of one experiment."""

    name: str
    model: Any
    config: Mapping[str, Any]
    metrics: Dict[str, Any]
    preprocessing: Any = None

    @property
    def metric(self) -> Optional[str]:
        return self.metrics.get('metric')

    def scores(self, metric: Optional[str] = None) -> List[float]:
        """Fold-level scores of ``metric`` (default: the primary metric)."""
        metric = metric or self.metric
        if metric not in self.metrics:
            metric = METRIC_ALIASES.get(str(metric).lower(), metric)
        if metric not in self.metrics:
            raise KeyError(f"Metric '{metric}' not in results of experiment '{self.name}'")
        return list(self.metrics[metric]['all'])


@dataclass(frozen=True)
class RunOutcome:
    name: str
    status: str
    error: Optional[ExperimentError] = None

    @property
    def ok(self) -> bool:
        return self.status == 'ok'


class ModelGrid:
    """Registry of experiments: shared settings, named overrides, artifacts."""

    def __init__(self, preprocessor=None, trainer=None, verbose=True):
        self.verbose = verbose
        self.preprocessor = preprocessor if preprocessor is not None else PreprocessingEngine(verbose=verbose)
        self.trainer = trainer if trainer is not None else CVTrainer(verbose=verbose)
        self._shared: Dict[str, Any] = {}
        self._specs: Dict[str, ExperimentSpec] = {}
        self._artifacts: Dict[str, Artifact] = {}
        self._outcomes: Dict[str, RunOutcome] = {}

    @classmethod
    def create(cls, preprocessor=None, trainer=None, verbose=True) -> 'ModelGrid':
        return cls(preprocessor=preprocessor, trainer=trainer, verbose=verbose)

    @classmethod
    def from_config(cls, config, preprocessor=None, trainer=None, verbose=True) -> 'ModelGrid':
        """Build a grid from a grid config with 'shared' and 'experiments' sections."""
        validate_grid_config(config)
        grid = cls(preprocessor=preprocessor, trainer=trainer, verbose=verbose)
        grid.set_shared_settings(config['shared'])
        for exp in config['experiments']:
            steps = exp.get('preprocessing')
            grid.add_experiment(
                exp['name'],
                overrides=exp.get('overrides'),
                preprocessing=Recipe.from_config(steps) if steps is not None else None,
            )
        return grid

    def _log(self, msg):
        if self.verbose:
            print(msg)

    # ----- shared settings ------------------------------------------------

    def set_shared_settings(self, options=None, merge=False, **kwargs) -> 'ModelGrid':
        """Replace the shared settings, or merge keys into them with merge=True."""
        new = dict(options or {})
        new.update(kwargs)
        if merge:
            self._shared.update(new)
        else:
            self._shared = new
        return self

    @property
    def shared_settings(self) -> Dict[str, Any]:
        return dict(self._shared)

    # ----- experiments ------------------------------------------------------

    def add_experiment(self, name, overrides=None, preprocessing=None) -> 'ModelGrid':
        if not isinstance(name, str) or not name:
            raise ValueError(f"Experiment name must be a non-empty string, got {name!r}")
        if name in self._specs:
            raise DuplicateNameError(f"Experiment '{name}' is already registered")
        self._specs[name] = ExperimentSpec(name=name, overrides=dict(overrides or {}),
                                           preprocessing=preprocessing)
        return self

    def remove_experiment(self, name) -> 'ModelGrid':
        """Remove an experiment and its artifact. Raises NotFoundError if absent."""
        if name not in self._specs:
            raise NotFoundError(f"Experiment '{name}' is not registered")
        del self._specs[name]
        self._artifacts.pop(name, None)
        self._outcomes.pop(name, None)
        return self

    def get_experiment(self, name) -> ExperimentSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise NotFoundError(f"Experiment '{name}' is not registered") from None

    def effective_config(self, name) -> Dict[str, Any]:
        spec = self.get_experiment(name)
        return {**self._shared, **spec.overrides}

    @property
    def experiment_names(self) -> List[str]:
        return list(self._specs)

    def __len__(self):
        return len(self._specs)

    def __contains__(self, name):
        return name in self._specs

    def __repr__(self):
        return f"ModelGrid(experiments={self.experiment_names}, trained={list(self._artifacts)})"

    # ----- execution --------------------------------------------------------

    def run(self) -> 'ModelGrid':
        """Train every registered experiment in registration order."""
        self._outcomes = {}
        total = len(self._specs)
        for i, spec in enumerate(self._specs.values(), 1):
            self._log(f"[{i}/{total}] Experiment: {spec.name}")
            try:
                self._artifacts[spec.name] = self._run_one(spec)
                self._outcomes[spec.name] = RunOutcome(spec.name, 'ok')
            except ExperimentError as err:
                # A stale artifact from an earlier run would misreport this one
                self._artifacts.pop(spec.name, None)
                self._outcomes[spec.name] = RunOutcome(spec.name, 'failed', err)
                self._log(f"  FAILED: {err}")

        n_failed = len(self.failures)
        self._log(f"Trained {total - n_failed}/{total} experiments"
                  + (f" ({n_failed} failed: {list(self.failures)})" if n_failed else ""))
        return self

    train = run

    def _run_one(self, spec):
        config = self.effective_config(spec.name)
        data = config.get('data')

        if spec.preprocessing is not None:
            try:
                data = self.preprocessor.apply(spec.preprocessing, data, config)
            except Exception as e:
                raise PreprocessingError(spec.name, e) from e

        try:
            model, metrics = self.trainer.fit(data, config)
        except Exception as e:
            raise TrainingError(spec.name, e) from e

        return Artifact(
            name=spec.name,
            model=model,
            config=MappingProxyType(config),
            metrics=metrics,
            preprocessing=spec.preprocessing,
        )

    # ----- results ----------------------------------------------------------

    def get_artifacts(self) -> Dict[str, Artifact]:
        return {name: self._artifacts[name] for name in self._specs if name in self._artifacts}

    @property
    def outcomes(self) -> Dict[str, RunOutcome]:
        return {name: self._outcomes[name] for name in self._specs if name in self._outcomes}

    @property
    def failures(self) -> Dict[str, ExperimentError]:
        return {name: o.error for name, o in self.outcomes.items() if not o.ok}

    def raise_for_failures(self) -> None:
        """Raise ModelGridRunError if any experiment failed in the latest run()."""
        failures = self.failures
        if failures:
            raise ModelGridRunError(failures)

    def compare(self, metric=None) -> pd.DataFrame:
        """
        Fold-level scores side by side: one column per trained experiment, one
        row per resample.
        """
        artifacts = self.get_artifacts()
        if not artifacts:
            raise ModelGridError("No trained experiments to compare; call run() first")

        if metric is None:
            primaries = {a.metric for a in artifacts.values()}
            if len(primaries) != 1:
                raise ValueError(f"Experiments use different metrics {sorted(primaries)}; pass metric=")
            metric = primaries.pop()

        columns = {name: a.scores(metric) for name, a in artifacts.items()}
        lengths = {len(v) for v in columns.values()}
        if len(lengths) != 1:
            raise ValueError("Experiments used different resampling schemes; scores are not aligned")

        frame = pd.DataFrame(columns)
        frame.index.name = 'resample'
        return frame

    def summary(self) -> pd.DataFrame:
        """One row per registered experiment with its primary metric statistics."""
        rows = []
        artifacts = self.get_artifacts()
        for name in self._specs:
            config = self.effective_config(name)
            outcome = self._outcomes.get(name)
            row = {
                'experiment': name,
                'method': config.get('method'),
                'preprocessing': repr(self._specs[name].preprocessing) if self._specs[name].preprocessing is not None else None,
                'status': outcome.status if outcome else 'not_run',
                'metric': None,
                'mean': np.nan,
                'std': np.nan,
                'n_resamples': 0,
            }
            artifact = artifacts.get(name)
            if artifact is not None and artifact.metric in artifact.metrics:
                stats = artifact.metrics[artifact.metric]
                row.update(metric=artifact.metric, mean=stats['mean'], std=stats['std'],
                           n_resamples=len(stats['all']))
            rows.append(row)
        columns = ['experiment', 'method', 'preprocessing', 'status', 'metric', 'mean', 'std', 'n_resamples']
        return pd.DataFrame(rows, columns=columns).set_index('experiment')
