"""Imputation strategies compared in the simulation study."""

import time
import logging
from abc import ABC, abstractmethod

from tqdm import tqdm
from numpy.random import default_rng

from src.pipeline.glasso_mice.chained_equations import ChainedEquationImputer, iterative_impute
from src.pipeline.glasso_mice.imputation_stepper import ImputationStepper

logger = logging.getLogger(__name__)

class ImputationMethod(ABC):
    """Abstract base class for imputation methods.

    All imputation methods must implement:
    - impute(data, original_data, rng=None): Return list of completed DataFrames
    - name: Property for descriptive name
    """

    @abstractmethod
    def impute(self, data, original_data, rng=None):
        pass

    @property
    @abstractmethod
    def name(self):
        pass

class OracleData(ImputationMethod):
    """The fully observed table, before any cell was removed."""

    def impute(self, data, original_data, rng=None):
        return [original_data.copy()]

    @property
    def name(self):
        return 'oracle'

class GlassoGuidedImputation(ImputationMethod):
    """Proposed method: passes of graphical-lasso-guided chained equations.

    The seconds spent on the initial single-shot imputation are kept in
    `initial_imputation_time` after each call to `impute`.
    """

    def __init__(self, estimator=None, n_iterations=5, n_passes=5, n_jobs=1):
        self.stepper = ImputationStepper(estimator=estimator, n_iterations=n_iterations,
                                         n_passes=n_passes, n_jobs=n_jobs)
        self.initial_imputation_time = 0.0

    def impute(self, data, original_data, rng=None):
        if rng is None:
            rng = default_rng(123)
        initial_rng, passes_rng = rng.spawn(2)

        start = time.perf_counter()
        seed_table = self.stepper.initial_imputation(data, rng=initial_rng)
        self.initial_imputation_time = time.perf_counter() - start

        return self.stepper.run(data, rng=passes_rng, seed_table=seed_table)

    @property
    def name(self):
        return 'glasso_mice'

class MICEImputation(ImputationMethod):
    """Default chained equations: every variable predicts every other."""

    def __init__(self, n_imputations=5, max_iter=5):
        self.n_imputations = n_imputations
        self.max_iter = max_iter

    def impute(self, data, original_data, rng=None):
        if rng is None:
            rng = default_rng(123)
        imputation_rngs = rng.spawn(self.n_imputations)
        return [
            iterative_impute(data, max_iter=self.max_iter, rng=imputation_rngs[i])
            for i in tqdm(range(self.n_imputations), desc="MICE Imputations", leave=False)
        ]

    @property
    def name(self):
        return 'mice_default'

class MICELassoImputation(ImputationMethod):
    """Chained equations with LassoCV-selected predictors per column."""

    def __init__(self, n_imputations=5, max_iter=5):
        self.n_imputations = n_imputations
        self.imputer = ChainedEquationImputer(method='lasso', max_iter=max_iter)

    def impute(self, data, original_data, rng=None):
        if rng is None:
            rng = default_rng(123)
        imputation_rngs = rng.spawn(self.n_imputations)
        return [
            self.imputer.impute(data, rng=imputation_rngs[i])
            for i in tqdm(range(self.n_imputations), desc="MICE Lasso Imputations", leave=False)
        ]

    @property
    def name(self):
        return 'mice_lasso'

METHODS = {
    'glasso_mice': GlassoGuidedImputation,
    'mice_default': MICEImputation,
    'mice_lasso': MICELassoImputation,
    'oracle': OracleData,
}
