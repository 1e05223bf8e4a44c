"""Evaluation of recovered structures.

This module compares binary structure estimates, one per regularization
strength, against the nonzero pattern of the true precision matrix. Each
strength gives a single (FPR, TPR) operating point; sweeping the strength
traces an ROC curve whose trapezoidal area is the AUC.
"""

import logging

import numpy as np
import pandas as pd
from scipy.integrate import trapezoid
from sklearn.metrics import confusion_matrix

logger = logging.getLogger(__name__)

ROC_COLUMNS = ['FPR', 'TPR', 'rho']


def true_structure(precision):
    """
    Binary adjacency of a precision matrix.

    Parameters:
    -----------
    precision : np.ndarray
        (p, p) precision matrix

    Returns:
    --------
    np.ndarray : (p, p) int array, 1 where the precision entry is nonzero
    """
    return (np.abs(np.asarray(precision)) > 0).astype(int)


def _entries(matrix, include_diagonal):
    matrix = np.asarray(matrix)
    if include_diagonal:
        return matrix.ravel()
    return matrix[~np.eye(matrix.shape[0], dtype=bool)]


def roc_point(estimate_bin, truth_bin, include_diagonal=True):
    """
    False- and true-positive rate of one binary estimate.

    Parameters:
    -----------
    estimate_bin : np.ndarray
        (p, p) 0/1 predicted adjacency
    truth_bin : np.ndarray
        (p, p) 0/1 true adjacency
    include_diagonal : bool
        Whether the diagonal entries take part in the comparison

    Returns:
    --------
    tuple : (fpr, tpr); a rate whose class is empty is reported as 0.0
    """
    y_pred = _entries(estimate_bin, include_diagonal).astype(int)
    y_true = _entries(truth_bin, include_diagonal).astype(int)
    tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
    fpr = fp / (fp + tn) if (fp + tn) > 0 else 0.0
    tpr = tp / (tp + fn) if (tp + fn) > 0 else 0.0
    return float(fpr), float(tpr)


def roc_curve(voted, truth_bin, rhos, include_diagonal=True):
    """
    One ROC operating point per regularization strength.

    Parameters:
    -----------
    voted : np.ndarray
        (p, p, K) array of 0/1 estimates; NaN slices mark strengths that
        produced no estimate and are skipped
    truth_bin : np.ndarray
        (p, p) 0/1 true adjacency
    rhos : array-like
        The K regularization strengths
    include_diagonal : bool
        Whether the diagonal entries take part in the comparison

    Returns:
    --------
    pd.DataFrame : Columns FPR, TPR, rho sorted by (FPR, TPR) ascending
    """
    voted = np.asarray(voted, dtype=float)
    if voted.shape[2] != len(rhos):
        raise ValueError(f"voted has {voted.shape[2]} slices but {len(rhos)} strengths were given.")

    rows = []
    for k, rho in enumerate(rhos):
        estimate = voted[:, :, k]
        if np.isnan(estimate).any():
            continue
        fpr, tpr = roc_point(estimate, truth_bin, include_diagonal)
        rows.append((fpr, tpr, rho))

    skipped = len(rhos) - len(rows)
    if skipped:
        logger.warning(f"ROC curve built from {len(rows)} of {len(rhos)} strengths ({skipped} without an estimate)")

    roc_df = pd.DataFrame(rows, columns=ROC_COLUMNS)
    return roc_df.sort_values(['FPR', 'TPR'], kind='mergesort').reset_index(drop=True)


def compute_auc(roc_df):
    """
    Trapezoidal area under an ROC curve.

    The points are anchored at (0, 0) and (1, 1), as the curve of any binary
    prediction is, and sorted by (FPR, TPR) so the input order does not
    matter. Repeated FPR values add zero width.

    Parameters:
    -----------
    roc_df : pd.DataFrame
        Columns FPR and TPR

    Returns:
    --------
    float : AUC in [0, 1]
    """
    fpr = np.concatenate([[0.0], roc_df['FPR'].to_numpy(dtype=float), [1.0]])
    tpr = np.concatenate([[0.0], roc_df['TPR'].to_numpy(dtype=float), [1.0]])
    order = np.lexsort((tpr, fpr))
    return float(trapezoid(tpr[order], fpr[order]))


def evaluate_structure(voted, truth_bin, rhos, include_diagonal=True):
    """Return (roc_df, auc) for one voted structure."""
    roc_df = roc_curve(voted, truth_bin, rhos, include_diagonal)
    return roc_df, compute_auc(roc_df)


def average_roc_curve(roc_dfs, n_points=100):
    """
    Average several ROC curves on a common FPR grid.

    Tied FPR values of a curve are replaced by their mean TPR, the curve is
    anchored at (0, 0) and (1, 1) where it has no point at FPR 0 or 1, and it is
    linearly interpolated onto `n_points` evenly spaced FPR values before the
    TPRs are averaged.

    Parameters:
    -----------
    roc_dfs : list of pd.DataFrame
        Curves with columns FPR and TPR
    n_points : int
        Size of the FPR grid

    Returns:
    --------
    pd.DataFrame : Columns FPR, TPR
    """
    fpr_grid = np.linspace(0, 1, n_points)
    if not roc_dfs:
        logger.warning("No ROC curves to average, returning an empty curve.")
        return pd.DataFrame(columns=['FPR', 'TPR'])

    interpolated = []
    for roc_df in roc_dfs:
        curve = roc_df.groupby('FPR')['TPR'].mean()
        for anchor in (0.0, 1.0):
            if anchor not in curve.index:
                curve.loc[anchor] = anchor
        curve = curve.sort_index()
        interpolated.append(np.interp(fpr_grid, curve.index.to_numpy(dtype=float), curve.to_numpy(dtype=float)))

    return pd.DataFrame({'FPR': fpr_grid, 'TPR': np.mean(interpolated, axis=0)})
