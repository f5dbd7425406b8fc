# Model grid package
# Registry of named preprocessing + model experiments sharing default settings

from .grid import (
    ModelGrid,
    ExperimentSpec,
    Artifact,
    RunOutcome,
    ModelGridError,
    DuplicateNameError,
    NotFoundError,
    ExperimentError,
    PreprocessingError,
    TrainingError,
    ModelGridRunError,
)
from .recipes import Recipe, ALLOWED_STEPS
from .preprocessing import PreprocessingEngine, PreparedData
from .trainer import CVTrainer
from .config_schema import validate_effective_config, validate_grid_config, ConfigValidationError
from .io import load_config, config_hash, create_run_dir, save_grid_results
from .models import build_model, SUPPORTED_MODELS

__all__ = [
    'ModelGrid',
    'ExperimentSpec',
    'Artifact',
    'RunOutcome',
    'ModelGridError',
    'DuplicateNameError',
    'NotFoundError',
    'ExperimentError',
    'PreprocessingError',
    'TrainingError',
    'ModelGridRunError',
    'Recipe',
    'ALLOWED_STEPS',
    'PreprocessingEngine',
    'PreparedData',
    'CVTrainer',
    'validate_effective_config',
    'validate_grid_config',
    'ConfigValidationError',
    'load_config',
    'config_hash',
    'create_run_dir',
    'save_grid_results',
    'build_model',
    'SUPPORTED_MODELS',
]
