# Config schema validation
# Validates effective experiment configs and grid YAML files

from .cv import METRIC_ALIASES, normalize_metric, parse_resampling
from .models import ALL_MODELS, SUPPORTED_MODELS
from .recipes import ALLOWED_STEPS, STEP_PARAMS

ALLOWED_TARGET_TYPES = ['regression', 'classification']

# Keys every effective config must carry for the default trainer
REQUIRED_KEYS = ['target_column', 'target_type', 'method']

# Top-level sections of a grid file
REQUIRED_SECTIONS = ['shared', 'experiments']


class ConfigValidationError(Exception):
    """Raised when config validation fails."""
    pass


def validate_effective_config(config):
    """
    Validate an effective (shared + overrides) experiment configuration.

    Raises:
        ConfigValidationError listing every problem found
    """
    errors = []

    for key in REQUIRED_KEYS:
        if key not in config or config[key] in (None, ''):
            errors.append(f"Missing required key: '{key}'")

    if errors:
        raise ConfigValidationError("Config validation failed:\n  - " + "\n  - ".join(errors))

    target_type = config['target_type']
    if target_type not in ALLOWED_TARGET_TYPES:
        errors.append(f"Invalid target_type '{target_type}'. Allowed: {ALLOWED_TARGET_TYPES}")

    method = config['method']
    if method not in ALL_MODELS:
        errors.append(f"Invalid method '{method}'. Allowed: {ALL_MODELS}")
    elif target_type in SUPPORTED_MODELS and method not in SUPPORTED_MODELS[target_type]:
        errors.append(f"Method '{method}' does not fit target_type '{target_type}'. "
                      f"Allowed: {SUPPORTED_MODELS[target_type]}")

    if target_type in ALLOWED_TARGET_TYPES:
        try:
            normalize_metric(config.get('metric'), target_type)
        except ValueError as e:
            errors.append(str(e))

    try:
        parse_resampling(config.get('resampling'))
    except ValueError as e:
        errors.append(str(e))

    params = config.get('params')
    if params is not None and not isinstance(params, dict):
        errors.append("params must be a mapping of hyperparameter name -> value")

    seed = config.get('seed')
    if seed is not None and not isinstance(seed, int):
        errors.append("seed must be an integer")

    if errors:
        raise ConfigValidationError("Config validation failed:\n  - " + "\n  - ".join(errors))

    return True


def validate_grid_config(config):
    """
    Validate the structure of a grid file.

    Only structural checks and values that can be judged in isolation are made
    here; whether a given combination trains is only known at run time.
    """
    errors = []

    if not isinstance(config, dict):
        raise ConfigValidationError("Config validation failed:\n  - Grid config must be a mapping")

    for section in REQUIRED_SECTIONS:
        if section not in config:
            errors.append(f"Missing required section: '{section}'")

    if errors:
        raise ConfigValidationError("Config validation failed:\n  - " + "\n  - ".join(errors))

    shared = config['shared']
    if not isinstance(shared, dict):
        errors.append("'shared' must be a mapping")
        shared = {}

    experiments = config['experiments']
    if not isinstance(experiments, list) or not experiments:
        errors.append("'experiments' must be a non-empty list")
        experiments = []

    errors.extend(_check_options(shared, 'shared'))

    seen = set()
    for i, exp in enumerate(experiments):
        where = f"experiments[{i}]"
        if not isinstance(exp, dict):
            errors.append(f"{where} must be a mapping")
            continue

        name = exp.get('name')
        if not isinstance(name, str) or not name:
            errors.append(f"{where}.name must be a non-empty string")
        elif name in seen:
            errors.append(f"Duplicate experiment name: '{name}'")
        else:
            seen.add(name)
            where = f"experiments['{name}']"

        unknown = set(exp) - {'name', 'overrides', 'preprocessing'}
        if unknown:
            errors.append(f"{where} has unknown keys: {sorted(unknown)}")

        overrides = exp.get('overrides') or {}
        if not isinstance(overrides, dict):
            errors.append(f"{where}.overrides must be a mapping")
        else:
            errors.extend(_check_options(overrides, f"{where}.overrides"))

        steps = exp.get('preprocessing')
        if steps is not None:
            errors.extend(_check_steps(steps, f"{where}.preprocessing"))

    if errors:
        raise ConfigValidationError("Config validation failed:\n  - " + "\n  - ".join(errors))

    return True


def _check_options(options, where):
    """Check option values that are meaningful on their own."""
    found = []
    method = options.get('method')
    if method is not None and method not in ALL_MODELS:
        found.append(f"{where}: invalid method '{method}'. Allowed: {ALL_MODELS}")

    target_type = options.get('target_type')
    if target_type is not None and target_type not in ALLOWED_TARGET_TYPES:
        found.append(f"{where}: invalid target_type '{target_type}'. Allowed: {ALLOWED_TARGET_TYPES}")

    metric = options.get('metric')
    if metric is not None and str(metric).strip().lower() not in METRIC_ALIASES:
        found.append(f"{where}: unknown metric '{metric}'")

    if 'resampling' in options:
        try:
            parse_resampling(options['resampling'])
        except ValueError as e:
            found.append(f"{where}: {e}")

    return found


def _check_steps(steps, where):
    if not isinstance(steps, list) or not steps:
        return [f"{where} must be a non-empty list of steps"]
    found = []
    for j, step in enumerate(steps):
        kind = step.get('step') if isinstance(step, dict) else None
        if kind not in ALLOWED_STEPS:
            found.append(f"{where}[{j}]: unknown step '{kind}'. Allowed: {ALLOWED_STEPS}")
            continue
        unknown = sorted(set(step) - {'step'} - STEP_PARAMS[kind])
        if unknown:
            found.append(f"{where}[{j}]: unexpected parameters {unknown} for step '{kind}'. "
                         f"Allowed: {sorted(STEP_PARAMS[kind])}")
    return found
