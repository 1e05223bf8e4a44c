"""Iterative graphical-lasso-guided imputation.

Each pass alternates between estimating a sparse precision matrix from the
current completed table and re-imputing the originally missing cells with the
resulting predictor mask. Several passes run independently from the same seed
table to produce a set of pseudo-complete tables.
"""

import logging
from multiprocessing import Pool

import numpy as np
from tqdm import tqdm
from numpy.random import default_rng

from src.pipeline.glasso_mice.chained_equations import ChainedEquationImputer, iterative_impute
from src.pipeline.glasso_mice.errors import DegenerateMaskError, ImputationFailure, NonConvergentSolveError
from src.pipeline.glasso_mice.predictor_mask import build_predictor_mask, check_predictor_mask
from src.pipeline.glasso_mice.sparsity import SparsityEstimator

logger = logging.getLogger(__name__)


def _run_pass_worker(args):
    """Pool entry point; must live at module level to be picklable."""
    stepper, seed_table, where, rng, pass_idx = args
    return stepper.run_pass(seed_table, where, rng, pass_idx=pass_idx)


class ImputationStepper:
    def __init__(self, estimator=None, imputer=None, n_iterations=5, n_passes=5, n_jobs=1):
        if n_iterations < 1 or n_passes < 1:
            raise ValueError(f"n_iterations and n_passes must be >= 1. Got {n_iterations} and {n_passes}.")
        self.estimator = estimator if estimator is not None else SparsityEstimator()
        self.imputer = imputer if imputer is not None else ChainedEquationImputer(method='norm', max_iter=1)
        self.n_iterations = n_iterations
        self.n_passes = n_passes
        self.n_jobs = n_jobs

    def initial_imputation(self, data_miss, rng=None):
        """Single unconstrained sweep used to seed the first covariance estimate."""
        return iterative_impute(data_miss, max_iter=1, rng=rng)

    def next_mask(self, data):
        """
        Estimate the sparsity path on `data` and return (mask, selected rho).

        When no strength gives a usable estimate the mask is all zero and rho
        is None, so the iteration falls back to unconditional imputation.
        """
        covariance = data.cov().to_numpy()
        try:
            path = self.estimator.estimate(covariance, len(data))
        except NonConvergentSolveError as e:
            logger.warning(f"{e}; using an empty predictor mask")
            p = data.shape[1]
            return np.zeros((p, p), dtype=int), None
        mask = build_predictor_mask(path.estimates[path.best_index], self.estimator.zero_tol)
        return mask, path.rhos[path.best_index]

    def run_pass(self, seed_table, where, rng=None, pass_idx=0):
        """
        Run one pass of `n_iterations` (estimate -> mask -> impute) cycles.

        Only cells flagged by `where` are ever rewritten.
        """
        if rng is None:
            rng = default_rng(123)
        data = seed_table.copy()
        for iteration in range(self.n_iterations):
            mask, rho = self.next_mask(data)
            logger.debug(f"Pass {pass_idx} iteration {iteration}: rho={rho}, {mask.sum()} predictor links")
            try:
                check_predictor_mask(mask)
            except DegenerateMaskError as e:
                # An all-zero mask makes every column an intercept-only draw
                logger.warning(f"Pass {pass_idx} iteration {iteration}: {e}; imputing unconditionally")

            try:
                data = self.imputer.impute(data, where=where, predictor_mask=mask, rng=rng)
            except ImputationFailure as e:
                logger.warning(f"Pass {pass_idx} iteration {iteration}: {e}; retrying without predictor constraint")
                data = self.imputer.impute(data, where=where, predictor_mask=None, rng=rng)
        return data

    def run(self, data_miss, rng=None, seed_table=None):
        """
        Produce `n_passes` independently completed tables from one partial table.

        Parameters:
        - data_miss: DataFrame with NaN in the missing cells
        - rng: numpy Generator; every pass gets its own spawned stream
        - seed_table: Completed table to start every pass from. Computed with
          `initial_imputation` when omitted.

        Returns:
        - tables: List of completed DataFrames, ordered by pass index
        """
        if rng is None:
            rng = default_rng(123)
        where = data_miss.isna()
        if seed_table is None:
            seed_table = self.initial_imputation(data_miss, rng=rng.spawn(1)[0])
        pass_rngs = rng.spawn(self.n_passes)
        args_list = [(self, seed_table, where, pass_rngs[i], i) for i in range(self.n_passes)]

        if self.n_jobs > 1:
            with Pool(processes=min(self.n_jobs, self.n_passes)) as pool:
                tables = pool.map(_run_pass_worker, args_list)
        else:
            tables = [_run_pass_worker(args) for args in tqdm(args_list, desc="Glasso passes", leave=False)]
        return tables
