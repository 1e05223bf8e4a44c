"""Majority-vote aggregation of binary structure estimates."""

import logging

import numpy as np

from src.pipeline.glasso_mice.errors import NonConvergentSolveError
from src.pipeline.glasso_mice.sparsity import GraphicalLassoSolver

logger = logging.getLogger(__name__)


def estimate_structures(covariances, rho, solver=None, zero_tol=0.0):
    """
    Fixed-strength graphical lasso on each covariance matrix, binarized.

    Returns a list aligned with `covariances`: a 0/1 (p, p) array per matrix,
    or None where the solve failed.
    """
    if solver is None:
        solver = GraphicalLassoSolver()
    structures = []
    for covariance in covariances:
        try:
            precision = solver.solve(covariance, rho)
        except NonConvergentSolveError as e:
            logger.warning(f"Excluding one dataset from the vote: {e}")
            structures.append(None)
            continue
        structures.append((np.abs(precision) > zero_tol).astype(int))
    return structures


def vote(structures):
    """
    Strict majority over binary matrices.

    An entry is 1 iff more than half of the matrices are 1 there; a tie is 0.
    """
    stacked = np.stack(structures, axis=-1)
    return (stacked.sum(axis=-1) > stacked.shape[-1] / 2).astype(int)


def majority_vote(datasets, rhos, solver=None, zero_tol=0.0, zero_diagonal=False):
    """
    Build the voted structure at every regularization strength.

    Parameters:
    - datasets: List of completed DataFrames (order does not matter)
    - rhos: Regularization path
    - solver: Graphical lasso solver, GraphicalLassoSolver by default
    - zero_tol: Absolute values at or below this count as zero
    - zero_diagonal: Force the diagonal of every voted slice to 0

    Returns:
    - voted: (p, p, len(rhos)) float array of 0/1 votes. A slice is NaN
      when no dataset produced an estimate at that strength; otherwise the
      vote runs over the datasets that did.
    """
    if len(datasets) == 0:
        raise ValueError("majority_vote needs at least one dataset.")
    p = datasets[0].shape[1]
    covariances = [data.cov().to_numpy() for data in datasets]
    voted = np.full((p, p, len(rhos)), np.nan)
    for k, rho in enumerate(rhos):
        structures = [s for s in estimate_structures(covariances, rho, solver, zero_tol) if s is not None]
        if not structures:
            logger.warning(f"No dataset produced an estimate at rho={rho}; strength excluded")
            continue
        combined = vote(structures)
        if zero_diagonal:
            np.fill_diagonal(combined, 0)
        voted[:, :, k] = combined
    return voted
