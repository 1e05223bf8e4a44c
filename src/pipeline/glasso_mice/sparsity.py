"""Graphical lasso paths and BIC-style selection of the regularization strength."""

import logging
import warnings
from collections import namedtuple

import numpy as np
from sklearn.covariance import graphical_lasso
from sklearn.exceptions import ConvergenceWarning

from src.pipeline.glasso_mice.errors import NonConvergentSolveError

logger = logging.getLogger(__name__)

SELECTION_RULES = ('max', 'min')

SparsityPath = namedtuple('SparsityPath', ['rhos', 'estimates', 'scores', 'best_index'])
SparsityPath.__doc__ = """One graphical lasso estimate per strength and the selected index.

`estimates[k]` is None when the solve at `rhos[k]` failed; its score is then
-inf (or +inf under the 'min' rule) so it can never be selected.
"""


def regularization_path(rho_max=10.0, step=0.05):
    """
    Build the ordered sequence of regularization strengths 0, step, ..., rho_max.

    Parameters:
    - rho_max: Largest strength (inclusive)
    - step: Spacing between consecutive strengths

    Returns:
    - rhos: 1-D float array
    """
    if step <= 0:
        raise ValueError(f"step must be positive. Got {step}.")
    if rho_max < 0:
        raise ValueError(f"rho_max must be non-negative. Got {rho_max}.")
    n_steps = int(round(rho_max / step))
    return np.round(np.arange(n_steps + 1) * step, 10)


class GraphicalLassoSolver:
    """L1-regularized inverse covariance solver.

    Wraps scikit-learn's coordinate-descent `graphical_lasso`. A strength of 0
    is the unregularized estimate, i.e. the plain inverse of the covariance.
    """

    def __init__(self, max_iter=100, tol=1e-4):
        self.max_iter = max_iter
        self.tol = tol

    def solve(self, covariance, rho):
        covariance = np.asarray(covariance, dtype=np.float64)
        try:
            if rho == 0:
                precision = np.linalg.inv(covariance)
            else:
                with warnings.catch_warnings():
                    # Unconverged solves are still usable estimates
                    warnings.simplefilter('ignore', ConvergenceWarning)
                    _, precision = graphical_lasso(covariance, alpha=rho, max_iter=self.max_iter, tol=self.tol)
        except (FloatingPointError, np.linalg.LinAlgError, ValueError) as e:
            raise NonConvergentSolveError(rho, str(e)) from e

        if not np.all(np.isfinite(precision)):
            raise NonConvergentSolveError(rho, 'non-finite precision estimate')
        return precision

    def path(self, covariance, rhos):
        """Return one estimate per strength, None where the solve failed."""
        estimates = []
        for rho in rhos:
            try:
                estimates.append(self.solve(covariance, rho))
            except NonConvergentSolveError as e:
                logger.warning(f"Skipping strength: {e}")
                estimates.append(None)
        return estimates


def bic_score(precision, covariance, n, zero_tol=0.0):
    """
    Penalized log-likelihood of a precision estimate.

    score = log det(precision) - tr(covariance @ precision) - nonzero_count * log(n)

    A precision estimate that is not positive definite scores -inf.
    """
    sign, logdet = np.linalg.slogdet(precision)
    if sign <= 0:
        return -np.inf
    non_zero_count = np.sum(np.abs(precision) > zero_tol)
    return logdet - np.trace(covariance @ precision) - non_zero_count * np.log(n)


class SparsityEstimator:
    """Compute a graphical lasso path and select one strength by BIC-style score.

    `selection='max'` keeps the strength with the highest penalized
    log-likelihood. `selection='min'` reproduces a literal minimum over the
    same score.
    """

    def __init__(self, solver=None, rhos=None, selection='max', zero_tol=0.0):
        if selection not in SELECTION_RULES:
            raise ValueError(f"selection must be one of {SELECTION_RULES}. Got {selection!r}.")
        self.solver = solver if solver is not None else GraphicalLassoSolver()
        self.rhos = np.asarray(rhos if rhos is not None else regularization_path())
        self.selection = selection
        self.zero_tol = zero_tol

    def estimate(self, covariance, n):
        covariance = np.asarray(covariance, dtype=np.float64)
        estimates = self.solver.path(covariance, self.rhos)

        failed_score = -np.inf if self.selection == 'max' else np.inf
        scores = np.full(len(self.rhos), failed_score)
        for k, precision in enumerate(estimates):
            if precision is None:
                continue
            score = bic_score(precision, covariance, n, self.zero_tol)
            if np.isfinite(score):
                scores[k] = score

        if not np.any(np.isfinite(scores)):
            raise NonConvergentSolveError(self.rhos.tolist(), 'no strength produced a usable estimate')

        best_index = int(np.argmax(scores) if self.selection == 'max' else np.argmin(scores))
        return SparsityPath(self.rhos, estimates, scores, best_index)
