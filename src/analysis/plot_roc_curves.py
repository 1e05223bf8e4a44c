import os
import math
import pandas as pd
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import seaborn as sns
import logging

from src.pipeline.glasso_mice.evaluator import average_roc_curve, compute_auc

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

METHOD_LABELS = {
    'glasso_mice': 'Proposed Method',
    'completed_data': 'Completed Data',
    'mice_default': 'MICE Default',
    'mice_lasso': 'MICE Lasso',
    'oracle': 'Oracle (Fully Observed)',
}

def load_report(report_dir):
    """Load results_all_runs.csv and roc_curves.csv from a report directory."""
    results_path = os.path.join(report_dir, 'results_all_runs.csv')
    roc_path = os.path.join(report_dir, 'roc_curves.csv')
    if not os.path.exists(results_path) or not os.path.exists(roc_path):
        logger.warning(f"Missing results_all_runs.csv or roc_curves.csv in {report_dir}")
        return None, None
    return pd.read_csv(results_path), pd.read_csv(roc_path)

def average_curves_by_method(roc_all, n_points=100):
    """Average each method's per-run ROC curves on a common FPR grid."""
    averaged = {}
    for method, method_df in roc_all.groupby('method', sort=False):
        curves = [run_df for _, run_df in method_df.groupby('run_idx')]
        averaged[method] = average_roc_curve(curves, n_points=n_points)
    return averaged

def plot_average_roc_curves(averaged, output_path):
    """Grid of average ROC curves, one panel per method, AUC in the title."""
    n_methods = len(averaged)
    ncols = 2
    nrows = math.ceil(n_methods / ncols)
    fig, axes = plt.subplots(nrows, ncols, figsize=(6 * ncols, 5 * nrows), squeeze=False)

    for ax, (method, avg_df) in zip(axes.flat, averaged.items()):
        auc_value = compute_auc(avg_df)
        ax.plot(avg_df['FPR'], avg_df['TPR'], color='skyblue')
        ax.scatter(avg_df['FPR'], avg_df['TPR'], color='red', s=8)
        ax.plot([0, 1], [0, 1], linestyle='--', color='lightgray')
        ax.set_title(f"ROC Curve (AUC = {auc_value:.5f})\n{METHOD_LABELS.get(method, method)}")
        ax.set_xlabel('1 - SP')
        ax.set_ylabel('SE')
        ax.set_xlim(0, 1)
        ax.set_ylim(0, 1)

    for ax in list(axes.flat)[n_methods:]:
        ax.axis('off')

    plt.tight_layout()
    plt.savefig(output_path, dpi=300)
    plt.close(fig)

def plot_auc_distribution(results_all, output_path):
    """Box plot of per-run AUC for each method."""
    plt.figure(figsize=(10, 6))
    sns.boxplot(data=results_all, x='method', y='auc', palette='Set2', hue='method', legend=False)
    sns.stripplot(data=results_all, x='method', y='auc', color='black', size=4, alpha=0.6)
    plt.title('AUC of Recovered Structure Across Runs')
    plt.xlabel('Imputation Method')
    plt.ylabel('AUC')
    plt.xticks(rotation=45, ha='right')
    plt.tight_layout()
    plt.savefig(output_path, dpi=300)
    plt.close()

def make_figures(report_dir, figures_dir=None):
    """Write the average ROC grid and AUC box plot for one report directory."""
    results_all, roc_all = load_report(report_dir)
    if results_all is None:
        logger.error(f"No valid results found in {report_dir}")
        return None

    figures_dir = figures_dir or os.path.join(report_dir, 'figures')
    os.makedirs(figures_dir, exist_ok=True)

    averaged = average_curves_by_method(roc_all)
    pd.concat([df.assign(method=m) for m, df in averaged.items()], ignore_index=True).to_csv(
        os.path.join(figures_dir, 'average_roc_curves.csv'), index=False)

    logger.info("Generating average ROC curves...")
    plot_average_roc_curves(averaged, os.path.join(figures_dir, 'average_roc_curves.png'))
    logger.info("Generating AUC distribution plot...")
    plot_auc_distribution(results_all, os.path.join(figures_dir, 'auc_boxplot.png'))

    logger.info(f"Figures saved in {figures_dir}")
    return averaged

if __name__ == "__main__":
    import sys
    import argparse

    parser = argparse.ArgumentParser(description='Plot ROC curves and AUC distributions from a simulation report')
    parser.add_argument('report_dir', type=str,
                        help='Report directory containing results_all_runs.csv and roc_curves.csv')
    parser.add_argument('--figures-dir', type=str, default=None,
                        help='Output directory for figures (default: <report_dir>/figures)')

    args = parser.parse_args()
    if not os.path.isdir(args.report_dir):
        logger.error(f"Directory not found: {args.report_dir}")
        sys.exit(1)

    make_figures(args.report_dir, args.figures_dir)
