"""Ground-truth structure and complete data generation."""

import numpy as np
import pandas as pd
from numpy.random import default_rng

from src.pipeline.glasso_mice.errors import SingularMatrixError

# Condition numbers above this are treated as numerically singular
MAX_CONDITION_NUMBER = 1e12


def build_precision_matrix(p, off_diagonal=0.5):
    """
    Build the ground-truth precision matrix.

    Parameters:
    - p: Number of variables (>= 2)
    - off_diagonal: Coupling between index-adjacent variables

    Returns:
    - omega: (p, p) array with unit diagonal and `off_diagonal` at |i-j| = 1
    """
    if p < 2:
        raise ValueError(f"p must be at least 2. Got {p}.")
    omega = np.eye(p)
    idx = np.arange(p - 1)
    omega[idx, idx + 1] = off_diagonal
    omega[idx + 1, idx] = off_diagonal
    return omega


def build_structure(p, off_diagonal=0.5):
    """
    Build the precision matrix and its matching covariance matrix.

    Raises SingularMatrixError if the precision matrix is not positive
    definite or too badly conditioned to invert.

    Returns:
    - omega: Ground-truth precision matrix
    - sigma: Covariance matrix, inverse of omega
    """
    omega = build_precision_matrix(p, off_diagonal)
    try:
        np.linalg.cholesky(omega)
    except np.linalg.LinAlgError as e:
        raise SingularMatrixError(f"Precision matrix is not positive definite (p={p}, off_diagonal={off_diagonal})") from e

    cond = np.linalg.cond(omega)
    if not np.isfinite(cond) or cond > MAX_CONDITION_NUMBER:
        raise SingularMatrixError(f"Precision matrix is ill-conditioned (cond={cond:.3g})")

    sigma = np.linalg.inv(omega)
    # Symmetrize away round-off so downstream sampling sees an exact covariance
    sigma = (sigma + sigma.T) / 2
    return omega, sigma


def generate_data(n, covariance, rng=None):
    """
    Sample a complete data table from N(0, covariance).

    Returns:
    - data: DataFrame with columns X1..Xp
    """
    if rng is None:
        rng = default_rng(123)
    p = covariance.shape[0]
    values = rng.multivariate_normal(np.zeros(p), covariance, size=n)
    columns = [f'X{i+1}' for i in range(p)]
    return pd.DataFrame(values, columns=columns)
