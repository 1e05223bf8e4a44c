import os
import sys
import pytest
import logging
import pandas as pd

# Add parent directory to path to import from src
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.analysis.plot_roc_curves import load_report, average_curves_by_method, make_figures
from src.pipeline.glasso_mice.evaluator import compute_auc

@pytest.fixture
def report_dir(tmp_path):
    report_dir = tmp_path / "report"
    report_dir.mkdir()
    results_all = pd.DataFrame({
        'run_idx': [0, 0, 1, 1],
        'method': ['glasso_mice', 'mice_default', 'glasso_mice', 'mice_default'],
        'auc': [0.9, 0.7, 0.85, 0.75],
        'initial_imputation_time': [0.5, 0.0, 0.4, 0.0],
        'imputation_time': [2.0, 1.0, 2.1, 1.1],
        'evaluation_time': [1.0, 1.0, 1.0, 1.0],
    })
    results_all.to_csv(report_dir / 'results_all_runs.csv', index=False)

    rows = []
    for run_idx in (0, 1):
        rows += [
            {'FPR': 0.0, 'TPR': 0.6, 'rho': 1.0, 'run_idx': run_idx, 'method': 'glasso_mice'},
            {'FPR': 0.2, 'TPR': 0.9, 'rho': 0.5, 'run_idx': run_idx, 'method': 'glasso_mice'},
            {'FPR': 0.3, 'TPR': 0.5, 'rho': 1.0, 'run_idx': run_idx, 'method': 'mice_default'},
            {'FPR': 0.6, 'TPR': 0.8, 'rho': 0.5, 'run_idx': run_idx, 'method': 'mice_default'},
        ]
    pd.DataFrame(rows).to_csv(report_dir / 'roc_curves.csv', index=False)
    return report_dir

def test_average_curves_by_method(report_dir):
    _, roc_all = load_report(str(report_dir))
    averaged = average_curves_by_method(roc_all, n_points=50)

    assert list(averaged) == ['glasso_mice', 'mice_default']
    for avg_df in averaged.values():
        assert len(avg_df) == 50
        assert avg_df['TPR'].iloc[-1] == pytest.approx(1.0)
    assert compute_auc(averaged["glasso_mice"]) > compute_auc(averaged["mice_default"])

def test_make_figures(report_dir, tmp_path):
    figures_dir = tmp_path / "figures"
    averaged = make_figures(str(report_dir), str(figures_dir))

    assert averaged is not None
    for name in ['average_roc_curves.png', 'auc_boxplot.png', 'average_roc_curves.csv']:
        assert (figures_dir / name).exists(), f"{name} was not written"

def test_missing_report_files(tmp_path, caplog):
    with caplog.at_level(logging.WARNING):
        assert make_figures(str(tmp_path)) is None
    assert any("Missing results_all_runs.csv" in record.message for record in caplog.records)
