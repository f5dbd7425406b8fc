"""
Declarative preprocessing recipes.

A recipe is an ordered list of tagged steps drawn from a closed set of kinds.
Each kind maps onto a scikit-learn transformer; the recipe itself estimates
nothing; ``build_pipeline`` returns an unfitted ``Pipeline`` that the
preprocessing engine estimates on reference data.

Usage:
    recipe = Recipe().zero_variance().standardize().pca(n_components=5)
    pipe = recipe.build_pipeline(seed=42)
"""

from typing import Any, Dict, List, Optional

from sklearn.decomposition import PCA
from sklearn.feature_selection import VarianceThreshold
from sklearn.impute import SimpleImputer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler


def _impute(params, seed):
    return SimpleImputer(strategy=params.get('strategy', 'mean'))


def _zero_variance(params, seed):
    return VarianceThreshold(threshold=params.get('threshold', 0.0))


def _center(params, seed):
    return StandardScaler(with_mean=True, with_std=False)


def _scale(params, seed):
    return StandardScaler(with_mean=False, with_std=True)


def _standardize(params, seed):
    return StandardScaler()


def _pca(params, seed):
    return PCA(
        n_components=params.get('n_components'),
        whiten=params.get('whiten', False),
        random_state=seed,
    )


STEP_BUILDERS = {
    'impute': _impute,
    'zero_variance': _zero_variance,
    'center': _center,
    'scale': _scale,
    'standardize': _standardize,
    'pca': _pca,
}

# Parameters each step kind accepts
STEP_PARAMS = {
    'impute': {'strategy'},
    'zero_variance': {'threshold'},
    'center': set(),
    'scale': set(),
    'standardize': set(),
    'pca': {'n_components', 'whiten'},
}

ALLOWED_STEPS = list(STEP_BUILDERS)


class Recipe:
    """Ordered, declarative chain of preprocessing steps."""

    def __init__(self, steps: Optional[List[Dict[str, Any]]] = None):
        self.steps: List[Dict[str, Any]] = []
        for step in steps or []:
            step = dict(step)
            kind = step.pop('step', None)
            self.add_step(kind, **step)

    @classmethod
    def from_config(cls, steps: List[Dict[str, Any]]) -> 'Recipe':
        """Build from ``[{'step': 'pca', 'n_components': 3}, ...]``."""
        if isinstance(steps, cls):
            return steps
        if not isinstance(steps, (list, tuple)):
            raise TypeError(f"Recipe steps must be a list of dicts, got {type(steps).__name__}")
        return cls(steps)

    def add_step(self, kind: str, **params) -> 'Recipe':
        if kind not in STEP_BUILDERS:
            raise ValueError(f"Unknown preprocessing step '{kind}'. Allowed: {ALLOWED_STEPS}")
        unknown = set(params) - STEP_PARAMS[kind]
        if unknown:
            raise ValueError(f"Step '{kind}' got unexpected parameters: {sorted(unknown)}")
        self.steps.append({'step': kind, **params})
        return self

    def impute(self, strategy: str = 'mean') -> 'Recipe':
        return self.add_step('impute', strategy=strategy)

    def zero_variance(self, threshold: float = 0.0) -> 'Recipe':
        return self.add_step('zero_variance', threshold=threshold)

    def center(self) -> 'Recipe':
        return self.add_step('center')

    def scale(self) -> 'Recipe':
        return self.add_step('scale')

    def standardize(self) -> 'Recipe':
        return self.add_step('standardize')

    def pca(self, n_components=None, whiten: bool = False) -> 'Recipe':
        return self.add_step('pca', n_components=n_components, whiten=whiten)

    def has_step(self, kind: str) -> bool:
        return any(s['step'] == kind for s in self.steps)

    def build_pipeline(self, seed: Optional[int] = None) -> Pipeline:
        """Return an unfitted sklearn Pipeline, one named stage per step."""
        if not self.steps:
            raise ValueError("Recipe has no steps")
        stages = []
        for i, step in enumerate(self.steps):
            params = {k: v for k, v in step.items() if k != 'step'}
            stages.append((f"{i}_{step['step']}", STEP_BUILDERS[step['step']](params, seed)))
        return Pipeline(stages)

    def to_config(self) -> List[Dict[str, Any]]:
        return [dict(s) for s in self.steps]

    def __len__(self):
        return len(self.steps)

    def __eq__(self, other):
        if not isinstance(other, Recipe):
            return NotImplemented
        return self.steps == other.steps

    __hash__ = object.__hash__

    def __repr__(self):
        chain = ' -> '.join(s['step'] for s in self.steps) or '<empty>'
        return f"Recipe({chain})"
