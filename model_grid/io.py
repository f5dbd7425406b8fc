# I/O utilities for model grid runs
# Config loading, run directory management, artifact persistence

import os
import json
import hashlib
from datetime import datetime

import yaml
import numpy as np
import pandas as pd


def load_config(config_path):
    """Load YAML configuration file."""
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    if config is None:
        raise ValueError(f"Config file is empty or invalid: {config_path}")

    return config


def _jsonable(value):
    if isinstance(value, pd.DataFrame):
        return f"<DataFrame {value.shape[0]}x{value.shape[1]}>"
    if isinstance(value, (np.integer, np.floating)):
        return value.item()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return repr(value)


def config_hash(config):
    """Generate deterministic hash of config for run naming."""
    config_str = json.dumps(_jsonable(config), sort_keys=True)
    return hashlib.md5(config_str.encode()).hexdigest()[:8]


def create_run_dir(config, output_dir=None):
    """Create unique run directory for grid outputs."""
    output_dir = output_dir or config.get('output_dir', 'runs')
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    cfg_hash = config_hash(config)
    run_name = f"{config.get('name', 'model_grid')}_{timestamp}_{cfg_hash}"
    run_dir = os.path.join(output_dir, run_name)
    os.makedirs(run_dir, exist_ok=True)
    return run_dir


def _metric_block(values):
    return {
        'mean': float(values['mean']),
        'std': float(values['std']),
        'all': [float(v) for v in values.get('all', [])]  # fold-level scores
    }


def save_grid_results(run_dir, grid, config, save_plots=True):
    """
    Save all grid artifacts to run directory.

    Writes config.yaml, summary.json, one joblib model per trained experiment
    and, optionally, a fold-distribution comparison plot.
    """
    import joblib

    # Save config
    with open(os.path.join(run_dir, 'config.yaml'), 'w') as f:
        yaml.dump(_jsonable(config), f, default_flow_style=False, sort_keys=False)

    artifacts = grid.get_artifacts()
    failures = grid.failures
    models_dir = os.path.join(run_dir, 'models')
    os.makedirs(models_dir, exist_ok=True)

    summary = {
        'grid_name': config.get('name', 'model_grid'),
        'experiments': {}
    }

    for name in grid.experiment_names:
        effective = grid.effective_config(name)
        entry = {
            'method': effective.get('method'),
            'preprocessing': None,
            'status': 'ok' if name in artifacts else ('failed' if name in failures else 'not_run'),
        }
        spec = grid.get_experiment(name).preprocessing
        if spec is not None:
            entry['preprocessing'] = spec.to_config() if hasattr(spec, 'to_config') else repr(spec)

        artifact = artifacts.get(name)
        if artifact is not None:
            entry['metric'] = artifact.metric
            entry['cv_results'] = {}
            for metric, values in artifact.metrics.items():
                if isinstance(values, dict) and 'mean' in values:
                    entry['cv_results'][metric] = _metric_block(values)
                elif metric != 'metric':
                    entry['cv_results'][metric] = _jsonable(values)

            model_path = os.path.join(models_dir, f"{name}.joblib")
            joblib.dump(artifact.model, model_path)
            entry['model_path'] = os.path.relpath(model_path, run_dir)
        elif name in failures:
            entry['error'] = str(failures[name])

        summary['experiments'][name] = entry

    with open(os.path.join(run_dir, 'summary.json'), 'w') as f:
        json.dump(summary, f, indent=2)

    if save_plots and artifacts:
        _save_comparison_plot(run_dir, artifacts)

    return run_dir


def _save_comparison_plot(run_dir, artifacts):
    """Save fold-level score distributions, one box per experiment and metric."""
    import matplotlib
    matplotlib.use('Agg')
    import matplotlib.pyplot as plt

    by_metric = {}
    for name, artifact in artifacts.items():
        if artifact.metric in artifact.metrics:
            by_metric.setdefault(artifact.metric, {})[name] = artifact.scores()
    if not by_metric:
        return

    fig, axes = plt.subplots(1, len(by_metric), figsize=(6 * len(by_metric), 5), squeeze=False)

    for ax, (metric, columns) in zip(axes[0], by_metric.items()):
        names = list(columns)
        data = [[v for v in columns[n] if np.isfinite(v)] for n in names]
        ax.boxplot(data)
        ax.set_xticks(range(1, len(names) + 1))
        ax.set_xticklabels(names, rotation=30, ha='right')
        ax.set_title(f"{metric.upper()} across resamples")
        ax.set_ylabel(metric)

    plt.tight_layout()
    plt.savefig(os.path.join(run_dir, 'cv_comparison.png'), dpi=150)
    plt.close()
