# Cross-validation utilities
# Repeated (stratified) K-fold resampling with fold-level metric collection

import re

import numpy as np
from sklearn.model_selection import RepeatedKFold, RepeatedStratifiedKFold
from sklearn.metrics import (
    mean_absolute_error, mean_squared_error, r2_score,
    f1_score, accuracy_score, precision_score, recall_score, roc_auc_score
)
from scipy.stats import spearmanr

CLASSIFICATION_METRICS = ['auc', 'accuracy', 'f1', 'precision', 'recall']
REGRESSION_METRICS = ['rmse', 'mae', 'r2', 'spearman']

DEFAULT_METRIC = {'classification': 'accuracy', 'regression': 'rmse'}

# Caller-facing names (case-insensitive) -> result keys
METRIC_ALIASES = {
    'auc': 'auc', 'roc': 'auc', 'roc_auc': 'auc',
    'accuracy': 'accuracy', 'acc': 'accuracy',
    'f1': 'f1', 'macro_f1': 'f1',
    'precision': 'precision',
    'recall': 'recall',
    'rmse': 'rmse',
    'mae': 'mae',
    'r2': 'r2', 'rsquared': 'r2',
    'spearman': 'spearman',
}

# Metrics where a smaller value is better
LOWER_IS_BETTER = {'rmse', 'mae'}

DEFAULT_RESAMPLING = 'cv-5'

_CV_PATTERN = re.compile(r'^cv-(\d+)$')
_REPEATED_CV_PATTERN = re.compile(r'^repeatedcv-(\d+)-(\d+)$')


def normalize_metric(name, task_type):
    """Map a metric name to its result key, checking it fits the task type."""
    if name is None:
        return DEFAULT_METRIC[task_type]
    key = METRIC_ALIASES.get(str(name).strip().lower())
    allowed = CLASSIFICATION_METRICS if task_type == 'classification' else REGRESSION_METRICS
    if key not in allowed:
        raise ValueError(f"Metric '{name}' is not available for {task_type}. Allowed: {allowed}")
    return key


def parse_resampling(resampling):
    """
    Parse a resampling scheme into (n_splits, n_repeats).

    Accepts 'cv-<k>', 'repeatedcv-<k>-<r>' or a dict with n_splits / n_repeats.
    """
    if resampling is None:
        resampling = DEFAULT_RESAMPLING

    if isinstance(resampling, dict):
        n_splits = resampling.get('n_splits', 5)
        n_repeats = resampling.get('n_repeats', 1)
    else:
        text = str(resampling).strip().lower()
        m = _CV_PATTERN.match(text)
        m_rep = _REPEATED_CV_PATTERN.match(text)
        if m:
            n_splits, n_repeats = int(m.group(1)), 1
        elif m_rep:
            n_splits, n_repeats = int(m_rep.group(1)), int(m_rep.group(2))
        else:
            raise ValueError(
                f"Invalid resampling '{resampling}'. Use 'cv-<k>', 'repeatedcv-<k>-<r>' "
                f"or {{'n_splits': k, 'n_repeats': r}}"
            )

    if not isinstance(n_splits, int) or n_splits < 2:
        raise ValueError("resampling n_splits must be an integer >= 2")
    if not isinstance(n_repeats, int) or n_repeats < 1:
        raise ValueError("resampling n_repeats must be an integer >= 1")

    return n_splits, n_repeats


def _validate_cv_split(train_idx, val_idx):
    """Train/val indices must be disjoint."""
    train_set = set(train_idx)
    val_set = set(val_idx)
    if not train_set.isdisjoint(val_set):
        overlap = train_set.intersection(val_set)
        raise ValueError(f"CV LEAK: Train/val indices overlap! {len(overlap)} shared indices")
    return True


def _auc(model, X_val, y_val):
    if not hasattr(model, 'predict_proba'):
        return np.nan
    proba = model.predict_proba(X_val)
    try:
        if proba.shape[1] == 2:
            return roc_auc_score(y_val, proba[:, 1])
        return roc_auc_score(y_val, proba, multi_class='ovr', labels=model.classes_)
    except ValueError:
        # Undefined when a validation fold holds a single class
        return np.nan


def _spearman(y_val, y_pred):
    # Handle constant arrays for Spearman correlation
    if np.std(y_val) > 1e-8 and np.std(y_pred) > 1e-8:
        return spearmanr(y_val, y_pred)[0]
    return 0.0


def _summarize(scores):
    values = np.asarray(scores, dtype=float)
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return {'mean': float('nan'), 'std': float('nan'), 'all': [float(v) for v in values]}
    return {'mean': float(np.mean(finite)), 'std': float(np.std(finite)), 'all': [float(v) for v in values]}


def run_repeated_cv(make_estimator, X, y, task_type, n_splits=5, n_repeats=1, seed=42):
    """
    Run repeated K-fold cross-validation.

    Args:
        make_estimator: callable returning a fresh unfitted estimator per fold
        X, y: features (DataFrame) and target (Series)
        task_type: 'classification' (stratified folds) or 'regression'

    Returns dict keyed by metric name; each metric has mean, std and all (fold
    scores in split order), plus n_folds and n_repeats.
    """
    if task_type == 'classification':
        cv = RepeatedStratifiedKFold(n_splits=n_splits, n_repeats=n_repeats, random_state=seed)
        metric_names = CLASSIFICATION_METRICS
    else:
        cv = RepeatedKFold(n_splits=n_splits, n_repeats=n_repeats, random_state=seed)
        metric_names = REGRESSION_METRICS

    scores = {name: [] for name in metric_names}

    for train_idx, val_idx in cv.split(X, y):
        _validate_cv_split(train_idx, val_idx)

        X_train, X_val = X.iloc[train_idx], X.iloc[val_idx]
        y_train, y_val = y.iloc[train_idx], y.iloc[val_idx]

        model = make_estimator()
        model.fit(X_train, y_train)
        y_pred = model.predict(X_val)

        if task_type == 'classification':
            scores['auc'].append(_auc(model, X_val, y_val))
            scores['accuracy'].append(accuracy_score(y_val, y_pred))
            scores['f1'].append(f1_score(y_val, y_pred, average='macro'))
            scores['precision'].append(precision_score(y_val, y_pred, average='macro', zero_division=0))
            scores['recall'].append(recall_score(y_val, y_pred, average='macro', zero_division=0))
        else:
            scores['rmse'].append(np.sqrt(mean_squared_error(y_val, y_pred)))
            scores['mae'].append(mean_absolute_error(y_val, y_pred))
            scores['r2'].append(r2_score(y_val, y_pred))
            scores['spearman'].append(_spearman(y_val, y_pred))

    results = {name: _summarize(values) for name, values in scores.items()}
    results['n_folds'] = n_splits
    results['n_repeats'] = n_repeats
    return results
