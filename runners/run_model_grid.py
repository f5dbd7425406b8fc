# Model grid runner
# Loads a grid YAML file, trains every experiment and saves the results

import argparse
import random
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np

from model_grid.config_schema import validate_grid_config, ConfigValidationError
from model_grid.cv import LOWER_IS_BETTER
from model_grid.grid import ModelGrid
from model_grid.io import load_config, create_run_dir, save_grid_results
from model_grid.models import DEFAULT_SEED


def set_seeds(seed):
    """Set all random seeds for reproducibility."""
    random.seed(seed)
    np.random.seed(seed)


def print_results(grid):
    """Print one line per experiment and mark the best of each metric."""
    summary = grid.summary()

    best = {}
    for metric, group in summary.dropna(subset=['mean']).groupby('metric'):
        best[metric] = group['mean'].idxmin() if metric in LOWER_IS_BETTER else group['mean'].idxmax()

    print("\n" + "=" * 60)
    print("MODEL GRID RESULTS (resampled)")
    print("=" * 60)
    for name, row in summary.iterrows():
        if row['status'] == 'ok':
            marker = "  <- best" if best.get(row['metric']) == name else ""
            print(f"{name:24s} | {row['method'] or '-':20s} | "
                  f"{row['metric']}: {row['mean']:.4f} +/- {row['std']:.4f}{marker}")
        else:
            print(f"{name:24s} | {row['method'] or '-':20s} | {row['status'].upper()}")

    for name, err in grid.failures.items():
        print(f"\n[{name}] {err}")


def run_model_grid(config_path, dataset_path=None, output_dir=None, verbose=True, strict=False, save_plots=True):
    """
    Run every experiment of a grid file.

    Args:
        config_path: Path to grid YAML file
        dataset_path: Optional path to dataset CSV (overrides shared.data)
        output_dir: Optional output directory (overrides config)
        strict: Raise ModelGridRunError after saving results if any experiment failed

    Returns:
        run_dir: Path to grid output directory
    """
    config = load_config(config_path)

    if dataset_path:
        config.setdefault('shared', {})['data'] = dataset_path
    if output_dir:
        config['output_dir'] = output_dir

    try:
        validate_grid_config(config)
    except ConfigValidationError as e:
        print(f"\nCONFIG ERROR:\n{e}")
        raise

    seed = config['shared'].get('seed', DEFAULT_SEED)
    set_seeds(seed)

    print("=" * 60)
    print("MODEL GRID")
    print("=" * 60)
    print(f"Grid: {config.get('name', 'model_grid')}")
    print(f"Data: {config['shared'].get('data')}")
    print(f"Target: {config['shared'].get('target_column')} ({config['shared'].get('target_type')})")
    print(f"Experiments: {[e['name'] for e in config['experiments']]}")
    print(f"Seed: {seed}")
    print("=" * 60)

    grid = ModelGrid.from_config(config, verbose=verbose)
    grid.run()

    print_results(grid)

    run_dir = create_run_dir(config)
    save_grid_results(run_dir, grid, config, save_plots=save_plots)
    print(f"\nResults saved to: {run_dir}")

    if strict:
        grid.raise_for_failures()

    return run_dir


def main():
    parser = argparse.ArgumentParser(
        description='Train every experiment of a model grid and compare resampled performance'
    )
    parser.add_argument('--config', '-c', type=str, required=True,
                        help='Path to grid YAML file')
    parser.add_argument('--dataset', '-d', type=str, default=None,
                        help='Path to dataset CSV (overrides shared.data)')
    parser.add_argument('--output-dir', '-o', type=str, default=None,
                        help='Output directory (overrides config)')
    parser.add_argument('--quiet', '-q', action='store_true',
                        help='Only print the results table')
    parser.add_argument('--strict', action='store_true',
                        help='Exit with an error if any experiment failed')
    parser.add_argument('--no-plots', action='store_true',
                        help='Skip the comparison plot')
    args = parser.parse_args()

    run_model_grid(args.config, args.dataset, args.output_dir,
                   verbose=not args.quiet, strict=args.strict, save_plots=not args.no_plots)


if __name__ == "__main__":
    main()
