# Data loading and feature/target utilities
# The data reference in an effective config is either a DataFrame or a CSV path

import os

import numpy as np
import pandas as pd


def load_dataset(data_ref):
    """
    Resolve a data reference to a DataFrame.

    Accepts a DataFrame (returned as-is) or a path to a CSV file.
    """
    if isinstance(data_ref, pd.DataFrame):
        return data_ref

    if data_ref is None:
        raise ValueError("No dataset given: set 'data' in the shared settings or overrides")

    path = os.fspath(data_ref)
    if not os.path.exists(path):
        raise FileNotFoundError(f"Dataset not found: {path}")

    return pd.read_csv(path)


def split_features_target(df, config):
    """
    Extract features and target.

    Returns:
        X: DataFrame of features
        y: Series of target values
    """
    target = config.get('target_column')
    if not target:
        raise ValueError("Missing required setting: 'target_column'")

    # Verify target exists
    if target not in df.columns:
        raise ValueError(f"Target column '{target}' not found in dataset. Available: {list(df.columns)}")

    # Ignored columns stay in the frame but are not used as features
    ignored = config.get('ignored_columns') or []
    ignored = [c for c in ignored if c in df.columns and c != target]

    feature_cols = [c for c in df.columns if c != target and c not in ignored]
    if not feature_cols:
        raise ValueError("No feature columns left after removing target and ignored columns")

    X = df[feature_cols].copy()
    y = df[target].copy()

    return X, y


def validate_data_integrity(X, y, config):
    """
    Validate data integrity before training.

    Checks:
    - No NaN/infinite values in the target
    - No infinite values in numeric features
    - No NaN in features unless an 'impute' step handles them (allow_missing)
    - Classification targets have at least two classes
    """
    errors = []

    if not config.get('allow_missing', False):
        nan_cols = X.columns[X.isnull().any()].tolist()
        if nan_cols:
            errors.append(f"NaN values found in features: {nan_cols}")

    # Check for NaN in target
    if y.isnull().any():
        errors.append(f"NaN values found in target ({y.name}): {y.isnull().sum()} missing")

    # Check for infinite values in features
    numeric_cols = X.select_dtypes(include=[np.number]).columns
    for col in numeric_cols:
        values = X[col].dropna()
        if not np.isfinite(values).all():
            errors.append(f"Infinite values found in feature: {col}")

    # Check for infinite values in target (if numeric)
    if np.issubdtype(y.dtype, np.number):
        if not np.isfinite(y.dropna()).all():
            errors.append(f"Infinite values found in target: {y.name}")

    non_numeric = [c for c in X.columns if c not in numeric_cols]
    if non_numeric:
        errors.append(f"Non-numeric feature columns (encode or ignore them): {non_numeric}")

    if config.get('target_type') == 'classification' and y.nunique() < 2:
        errors.append(f"Classification target '{y.name}' has a single class")

    if errors:
        raise ValueError("Data integrity check failed:\n  - " + "\n  - ".join(errors))

    return True
