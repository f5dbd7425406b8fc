# Model building utilities
# Maps a training-method identifier from the effective config to an estimator

from sklearn.linear_model import LogisticRegression, Ridge, Lasso
from sklearn.ensemble import (
    RandomForestClassifier, RandomForestRegressor,
    GradientBoostingClassifier, GradientBoostingRegressor
)

from xgboost import XGBClassifier, XGBRegressor
from lightgbm import LGBMClassifier, LGBMRegressor


SUPPORTED_MODELS = {
    'regression': [
        'ridge', 'lasso', 'random_forest_reg', 'gradient_boosting_reg',
        'xgboost_reg', 'lightgbm_reg'
    ],
    'classification': [
        'logistic_regression', 'random_forest', 'gradient_boosting',
        'xgboost_clf', 'lightgbm_clf'
    ]
}

ALL_MODELS = SUPPORTED_MODELS['regression'] + SUPPORTED_MODELS['classification']

DEFAULT_SEED = 42


def build_model(config):
    """
    Build and return an unfitted estimator for the effective config.

    Reads ``method`` (identifier), ``params`` (hyperparameters forwarded to the
    estimator) and ``seed``. Ridge and Lasso are deterministic solvers and don't
    use random_state.
    """
    model_type = config.get('method')
    params = dict(config.get('params') or {})
    seed = config.get('seed', DEFAULT_SEED)

    # Regression models
    if model_type == 'ridge':
        return Ridge(**params)

    elif model_type == 'lasso':
        return Lasso(**params)

    elif model_type == 'random_forest_reg':
        return RandomForestRegressor(random_state=seed, **params)

    elif model_type == 'gradient_boosting_reg':
        return GradientBoostingRegressor(random_state=seed, **params)

    elif model_type == 'xgboost_reg':
        return XGBRegressor(random_state=seed, verbosity=0, **params)

    elif model_type == 'lightgbm_reg':
        return LGBMRegressor(random_state=seed, verbose=-1, **params)

    # Classification models
    elif model_type == 'logistic_regression':
        return LogisticRegression(random_state=seed, **params)

    elif model_type == 'random_forest':
        return RandomForestClassifier(random_state=seed, **params)

    elif model_type == 'gradient_boosting':
        return GradientBoostingClassifier(random_state=seed, **params)

    elif model_type == 'xgboost_clf':
        return XGBClassifier(random_state=seed, verbosity=0, eval_metric='logloss', **params)

    elif model_type == 'lightgbm_clf':
        return LGBMClassifier(random_state=seed, verbose=-1, **params)

    else:
        raise ValueError(
            f"Unknown model type: '{model_type}'. "
            f"Supported: {SUPPORTED_MODELS}"
        )
