"""Chained-equation imputation with an explicit predictor mask."""

import logging
import warnings

import numpy as np
import pandas as pd
from numpy.random import default_rng
from sklearn.exceptions import ConvergenceWarning
from sklearn.experimental import enable_iterative_imputer
from sklearn.impute import IterativeImputer
from sklearn.linear_model import BayesianRidge, LassoCV

from src.pipeline.glasso_mice.errors import ImputationFailure

logger = logging.getLogger(__name__)

IMPUTATION_MODES = ('norm', 'lasso')


class ChainedEquationImputer:
    """Per-column conditional imputation, one regression per target column.

    Each target column is regressed on the predictors its mask row allows,
    using the rows where it is observed, and missing cells are drawn from the
    posterior predictive of a BayesianRidge fit. In 'lasso' mode the
    predictors are first narrowed to those with a nonzero LassoCV coefficient.
    A target with no predictors gets an intercept-only draw. A target with no
    observed value at all is drawn from N(0, 1) on every sweep.

    Parameters:
    - method: 'norm' or 'lasso'
    - max_iter: Number of full sweeps over the target columns
    - lasso_cv: Folds used by LassoCV in 'lasso' mode
    """

    def __init__(self, method='norm', max_iter=1, lasso_cv=5):
        if method not in IMPUTATION_MODES:
            raise ValueError(f"method must be one of {IMPUTATION_MODES}. Got {method!r}.")
        if max_iter < 1:
            raise ValueError(f"max_iter must be at least 1. Got {max_iter}.")
        self.method = method
        self.max_iter = max_iter
        self.lasso_cv = lasso_cv

    def impute(self, data, where=None, predictor_mask=None, rng=None):
        """
        Fill the cells flagged by `where` and return a new DataFrame.

        Parameters:
        - data: DataFrame; cells outside `where` must be observed
        - where: Boolean array/DataFrame of cells to (re)impute, defaults to data.isna()
        - predictor_mask: (p, p) 0/1 array, row j = predictors of column j;
          None allows every other column
        - rng: numpy Generator

        Returns:
        - imputed: DataFrame with the same index and columns; cells outside
          `where` are copied unchanged
        """
        if rng is None:
            rng = default_rng(123)
        columns = list(data.columns)
        p = len(columns)
        X = data.to_numpy(dtype=np.float64, copy=True)
        where = data.isna().to_numpy() if where is None else np.asarray(where, dtype=bool)
        if where.shape != X.shape:
            raise ValueError(f"where has shape {where.shape}, data has shape {X.shape}.")
        if np.isnan(X[~where]).any():
            raise ValueError("data has missing values outside the cells flagged by where.")

        if predictor_mask is None:
            predictor_mask = np.ones((p, p), dtype=int)
        predictor_mask = np.asarray(predictor_mask)
        if predictor_mask.shape != (p, p):
            raise ValueError(f"predictor_mask must have shape {(p, p)}. Got {predictor_mask.shape}.")

        targets = [j for j in range(p) if where[:, j].any()]
        empty = [j for j in targets if where[:, j].all()]
        if empty:
            logger.warning(f"Columns {[columns[j] for j in empty]} have no observed values; drawing them from N(0, 1)")

        # Start every flagged cell from a random draw of the column's observed values
        for j in targets:
            if j in empty:
                X[:, j] = rng.standard_normal(len(X))
                continue
            observed = ~where[:, j]
            X[where[:, j], j] = rng.choice(X[observed, j], size=where[:, j].sum())

        for _ in range(self.max_iter):
            for j in targets:
                if j in empty:
                    X[:, j] = rng.standard_normal(len(X))
                    continue
                predictors = np.array([k for k in np.flatnonzero(predictor_mask[j]) if k != j], dtype=int)
                X[where[:, j], j] = self._draw_column(X, j, where[:, j], predictors, columns[j], rng)

        return pd.DataFrame(X, index=data.index, columns=columns)

    def _draw_column(self, X, j, missing, predictors, column, rng):
        observed = ~missing
        y_obs = X[observed, j]
        if len(y_obs) < 2:
            raise ImputationFailure(column, f'only {len(y_obs)} observed value(s)')

        if len(predictors) > 0 and self.method == 'lasso':
            predictors = self._select_predictors(X[np.ix_(observed, predictors)], y_obs, predictors, column)
        if len(predictors) == 0:
            return self._draw_unconditional(y_obs, missing.sum(), rng)

        X_obs = X[np.ix_(observed, predictors)]
        X_mis = X[np.ix_(missing, predictors)]
        try:
            model = BayesianRidge().fit(X_obs, y_obs)
            mus, sigmas = model.predict(X_mis, return_std=True)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise ImputationFailure(column, str(e)) from e
        if not (np.all(np.isfinite(mus)) and np.all(np.isfinite(sigmas))):
            raise ImputationFailure(column, 'non-finite posterior predictive')
        return rng.normal(mus, sigmas)

    def _select_predictors(self, X_obs, y_obs, predictors, column):
        cv = min(self.lasso_cv, len(y_obs))
        try:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore', ConvergenceWarning)
                lasso = LassoCV(cv=cv).fit(X_obs, y_obs)
        except ValueError as e:
            raise ImputationFailure(column, f'lasso selection failed: {e}') from e
        selected = predictors[np.abs(lasso.coef_) > 0]
        logger.debug(f"Lasso kept {len(selected)}/{len(predictors)} predictors for {column}")
        return selected

    @staticmethod
    def _draw_unconditional(y_obs, size, rng):
        return rng.normal(y_obs.mean(), y_obs.std(ddof=1), size=size)


def iterative_impute(data, max_iter=1, rng=None):
    """
    Unconstrained chained-equation imputation with scikit-learn's IterativeImputer.

    Every other column predicts every column, and imputations are drawn from
    the BayesianRidge posterior so repeated calls with different generators
    give different completions.

    Returns:
    - imputed: DataFrame with the same index and columns as `data`
    """
    if rng is None:
        rng = default_rng(123)
    imp = IterativeImputer(max_iter=max_iter, sample_posterior=True, keep_empty_features=True,
                           random_state=int(rng.integers(0, 2**32 - 1)))
    with warnings.catch_warnings():
        # Small max_iter never meets the early stopping criterion
        warnings.simplefilter('ignore', ConvergenceWarning)
        values = imp.fit_transform(data.to_numpy(dtype=np.float64, copy=True))

    # IterativeImputer leaves empty columns constant
    empty = data.isna().all().to_numpy()
    if empty.any():
        logger.warning(f"Columns {list(data.columns[empty])} have no observed values; drawing them from N(0, 1)")
        values[:, empty] = rng.standard_normal((len(data), int(empty.sum())))
    return pd.DataFrame(values, index=data.index, columns=data.columns)
