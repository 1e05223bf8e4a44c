import os
import json
import logging
import argparse
from pathlib import Path

import pandas as pd
from src.pipeline.glasso_mice.simulator import SimulationStudy, ALL_METHODS

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('simulation.log.txt'),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger()

REQUIRED_KEYS = ['n', 'p', 'num_runs', 'missing_prob', 'seed']

DEFAULT_CONFIG = {
    'n': 100,
    'p': 50,
    'num_runs': 2,
    'missing_prob': 0.1,
    'seed': 100,
    'rho_max': 10.0,
    'rho_step': 0.05,
    'n_iterations': 5,
    'n_passes': 5,
    'selection': 'max',
    'include_diagonal': True,
    'zero_diagonal': False,
    'zero_tol': 0.0,
    'methods': list(ALL_METHODS),
    'n_jobs': 1,
}

TIME_COLUMNS = ['initial_imputation_time', 'imputation_time', 'evaluation_time']

def load_config(config_path):
    """
    Load simulation configuration from a JSON file.

    Parameters:
    -----------
    config_path : str or Path
        Path to the JSON configuration file

    Returns:
    --------
    dict : Configuration dictionary, optional keys filled from DEFAULT_CONFIG

    Example JSON structure:
    {
        "n": 100,
        "p": 50,
        "num_runs": 2,
        "missing_prob": 0.1,
        "seed": 100,
        "rho_max": 10.0,
        "rho_step": 0.05
    }
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = json.load(f)

    # Validate required keys
    missing_keys = [key for key in REQUIRED_KEYS if key not in config]
    if missing_keys:
        raise ValueError(f"Missing required configuration keys: {missing_keys}")
    unknown_keys = [key for key in config if key not in DEFAULT_CONFIG]
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    logger.info(f"Loaded configuration from {config_path}")
    return {**DEFAULT_CONFIG, **config}

def param_suffix(config):
    """Directory name identifying a parameter set."""
    return (f"n_{config['n']}_p_{config['p']}_runs_{config['num_runs']}_miss_{config['missing_prob']}_"
            f"rho_{config['rho_max']}_step_{config['rho_step']}_sel_{config['selection']}_seed_{config['seed']}")

def summarize_results(results_all):
    """
    Mean and standard deviation across runs of the AUC and of each phase time.

    Parameters:
    -----------
    results_all : DataFrame
        One row per (run, method), as returned by SimulationStudy.run_all

    Returns:
    --------
    auc_summary : DataFrame
        Columns method, auc_mean, auc_std, runs
    timing_summary : DataFrame
        Columns method, <phase>_mean, <phase>_std for every phase
    """
    grouped = results_all.groupby('method', sort=False)
    auc_summary = grouped['auc'].agg(auc_mean='mean', auc_std='std', runs='count').reset_index()

    timing_mean = grouped[TIME_COLUMNS].mean().add_suffix('_mean')
    timing_std = grouped[TIME_COLUMNS].std().add_suffix('_std')
    timing_summary = pd.concat([timing_mean, timing_std], axis=1).reset_index()
    return auc_summary, timing_summary

def run_simulation(config_file=None, output_dir='results/report/', **overrides):
    """
    Run the structure-recovery simulation and save its result tables.

    Parameters can be provided either via a JSON config file or directly as
    keyword arguments. Keyword arguments override values from the file.

    Parameters:
    -----------
    config_file : str or Path, optional
        Path to JSON configuration file
    output_dir : str
        Base directory for the report; results go to <output_dir>/<param-suffix>/
    **overrides :
        Any key of DEFAULT_CONFIG

    Returns:
    --------
    results_all : DataFrame
        One row per completed (run, method) with AUC and phase times
    auc_summary : DataFrame
        AUC mean/std per method across completed runs

    Example:
    --------
    # Using JSON config file
    results_all, auc_summary = run_simulation(config_file='configs/default.json')

    # Using direct parameters
    results_all, auc_summary = run_simulation(n=100, p=20, num_runs=2, rho_max=1.0, rho_step=0.1)
    """
    unknown_keys = [key for key in overrides if key not in DEFAULT_CONFIG]
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    config = load_config(config_file) if config_file is not None else dict(DEFAULT_CONFIG)
    config.update(overrides)

    logger.info(f"Starting simulation with seed={config['seed']}, {config['num_runs']} run(s), "
                f"methods={config['methods']}")

    study = SimulationStudy(**config)
    results_all, roc_curves = study.run_all()

    if results_all.empty:
        logger.error("No run completed; nothing to summarize.")
        return results_all, pd.DataFrame(columns=['method', 'auc_mean', 'auc_std', 'runs'])

    auc_summary, timing_summary = summarize_results(results_all)

    report_dir = os.path.join(output_dir, param_suffix(config))
    os.makedirs(report_dir, exist_ok=True)

    results_all.to_csv(os.path.join(report_dir, 'results_all_runs.csv'), index=False)
    auc_summary.to_csv(os.path.join(report_dir, 'auc_summary.csv'), index=False)
    timing_summary.to_csv(os.path.join(report_dir, 'timing_summary.csv'), index=False)

    roc_frames = [roc_df.assign(method=name) for name, curves in roc_curves.items() for roc_df in curves]
    if roc_frames:
        pd.concat(roc_frames, ignore_index=True).to_csv(os.path.join(report_dir, 'roc_curves.csv'), index=False)
    logger.info(f"Saved results to {report_dir}")

    for row in auc_summary.itertuples():
        logger.info(f"{row.method}: AUC {row.auc_mean:.4f} (std {row.auc_std:.4f}) over {row.runs} run(s)")

    logger.info(f"Simulation complete. Results saved in {report_dir}")
    return results_all, auc_summary

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Graphical-lasso-guided imputation structure recovery study')
    parser.add_argument('--config', '-c', type=str, default=None,
                        help='Path to a JSON configuration file')
    parser.add_argument('--runs', type=int, default=None,
                        help='Number of runs (overrides the configuration)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Base random seed (overrides the configuration)')
    parser.add_argument('--jobs', type=int, default=None,
                        help='Number of worker processes (overrides the configuration)')
    parser.add_argument('--output-dir', type=str, default='results/report/',
                        help='Base directory for result tables (default: results/report/)')

    args = parser.parse_args()

    overrides = {}
    if args.runs is not None:
        overrides['num_runs'] = args.runs
    if args.seed is not None:
        overrides['seed'] = args.seed
    if args.jobs is not None:
        overrides['n_jobs'] = args.jobs

    run_simulation(config_file=args.config, output_dir=args.output_dir, **overrides)
