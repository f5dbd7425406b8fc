# Default preprocessing engine
# Estimates a recipe once on the reference data and keeps the fitted transform
# so it can be reapplied identically to other data sets

from .data import load_dataset, split_features_target, validate_data_integrity
from .models import DEFAULT_SEED
from .recipes import Recipe


class PreparedData:
    """Reference features/target plus the transform estimated on them."""

    def __init__(self, X, y, transformer, spec=None):
        self.X = X
        self.y = y
        self.transformer = transformer
        self.spec = spec
        self._transformed = None

    def transform(self, X_new):
        """Reapply the estimated transform to another feature frame."""
        missing = [c for c in self.X.columns if c not in X_new.columns]
        if missing:
            raise ValueError(f"Columns missing from data to transform: {missing}")
        return self.transformer.transform(X_new[list(self.X.columns)])

    @property
    def transformed(self):
        if self._transformed is None:
            self._transformed = self.transformer.transform(self.X)
        return self._transformed

    @property
    def n_features_out(self):
        return self.transformed.shape[1]

    def __repr__(self):
        return f"PreparedData(rows={len(self.X)}, features={self.X.shape[1]}, spec={self.spec!r})"


class PreprocessingEngine:
    """
    Turns a declarative preprocessing spec plus data into ``PreparedData``.

    Estimates are cached per (spec object, data object) identity together with
    the settings that shape the estimate (target column, ignored columns, task
    type, seed). Experiments that share the same recipe instance, data and
    those settings reuse one estimate.

    Cache entries hold strong references to the data and the fitted pipeline
    until ``clear_cache()`` is called.
    """

    def __init__(self, verbose=True):
        self.verbose = verbose
        self._cache = {}

    def _log(self, msg):
        if self.verbose:
            print(msg)

    @staticmethod
    def _cache_key(spec, data, config):
        return (
            id(spec),
            id(data),
            config.get('target_column'),
            tuple(config.get('ignored_columns') or ()),
            config.get('target_type'),
            config.get('seed', DEFAULT_SEED),
        )

    def apply(self, spec, data, config):
        recipe = Recipe.from_config(spec)
        key = self._cache_key(spec, data, config)
        cached = self._cache.get(key)
        # Holding spec and data in the entry keeps their ids from being reused
        if cached is not None and cached[0] is spec and cached[1] is data:
            self._log(f"  Reusing estimated preprocessing: {recipe!r}")
            return cached[2]

        df = load_dataset(data)
        X, y = split_features_target(df, config)
        validate_data_integrity(X, y, {**config, 'allow_missing': recipe.has_step('impute')})

        transformer = recipe.build_pipeline(seed=config.get('seed', DEFAULT_SEED))
        self._log(f"  Estimating preprocessing {recipe!r} on {X.shape[0]} rows x {X.shape[1]} features")
        transformer.fit(X, y)

        prepared = PreparedData(X, y, transformer, spec=recipe)
        self._cache[key] = (spec, data, prepared)
        return prepared

    def clear_cache(self):
        self._cache.clear()

    @property
    def cache_size(self):
        return len(self._cache)
