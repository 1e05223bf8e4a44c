import pytest
import logging
import numpy as np
import pandas as pd
import sys
import os
from numpy.random import default_rng

# Add parent directory to path to import from src
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.pipeline.glasso_mice.data_generators import build_structure, generate_data
from src.pipeline.glasso_mice.missingness_patterns import MCARPattern
from src.pipeline.glasso_mice.chained_equations import ChainedEquationImputer
from src.pipeline.glasso_mice.imputation_stepper import ImputationStepper
from src.pipeline.glasso_mice.sparsity import GraphicalLassoSolver, SparsityEstimator, regularization_path
from src.pipeline.glasso_mice.errors import ImputationFailure, NonConvergentSolveError

class FlakyImputer(ChainedEquationImputer):
    """Fails on every constrained call, succeeds without a predictor mask."""

    def __init__(self):
        super().__init__()
        self.calls = []

    def impute(self, data, where=None, predictor_mask=None, rng=None):
        self.calls.append(predictor_mask)
        if predictor_mask is not None:
            raise ImputationFailure('X1', 'forced failure')
        return super().impute(data, where=where, predictor_mask=None, rng=rng)

class BrokenImputer(ChainedEquationImputer):
    def impute(self, data, where=None, predictor_mask=None, rng=None):
        raise ImputationFailure('X2', 'always fails')

@pytest.fixture(scope="module")
def scenario():
    """p=20, n=100, 10% MCAR, seed 100."""
    _, sigma = build_structure(20)
    rng = default_rng(100)
    complete = generate_data(100, sigma, rng=rng)
    dat_miss, mask = MCARPattern(prob=0.1).apply(complete, rng=rng)
    return complete, dat_miss, mask

@pytest.fixture(scope="module")
def estimator():
    return SparsityEstimator(rhos=regularization_path(1.0, 0.1))

@pytest.fixture(scope="module")
def pseudo_complete(scenario, estimator):
    _, dat_miss, _ = scenario
    stepper = ImputationStepper(estimator=estimator, n_iterations=5, n_passes=3)
    return stepper.run(dat_miss, rng=default_rng(100))

# ----------------------------------------------------------------------
# End-to-end scenario: observed cells untouched, nothing left missing
# ----------------------------------------------------------------------
def test_observed_cells_never_altered(scenario, pseudo_complete):
    _, dat_miss, mask = scenario
    observed = ~mask.to_numpy()
    for table in pseudo_complete:
        assert np.array_equal(table.to_numpy()[observed], dat_miss.to_numpy()[observed]), \
            "A cell marked observed was altered"

def test_no_missing_values_remain(pseudo_complete):
    for table in pseudo_complete:
        assert not table.isna().any().any(), "Completed table still has missing cells"

def test_returns_one_table_per_pass(scenario, pseudo_complete):
    _, dat_miss, _ = scenario
    assert isinstance(pseudo_complete, list)
    assert len(pseudo_complete) == 3
    for table in pseudo_complete:
        assert table.shape == dat_miss.shape

def test_passes_are_independent(scenario, pseudo_complete):
    _, _, mask = scenario
    missing = mask.to_numpy()
    first = pseudo_complete[0].to_numpy()[missing]
    for table in pseudo_complete[1:]:
        assert not np.allclose(first, table.to_numpy()[missing]), "Passes should use different random streams"

def test_same_seed_reproduces_passes(scenario, estimator):
    _, dat_miss, _ = scenario
    stepper = ImputationStepper(estimator=estimator, n_iterations=1, n_passes=2)
    run1 = stepper.run(dat_miss, rng=default_rng(3))
    run2 = stepper.run(dat_miss, rng=default_rng(3))
    for table1, table2 in zip(run1, run2):
        pd.testing.assert_frame_equal(table1, table2, check_exact=True)

# ----------------------------------------------------------------------
# Recoverable failures
# ----------------------------------------------------------------------
def test_degenerate_mask_falls_back_to_unconditional(scenario, caplog):
    _, dat_miss, mask = scenario
    # Only strong penalties: every off-diagonal entry is shrunk to zero
    sparse_estimator = SparsityEstimator(rhos=np.array([500.0, 1000.0]))
    stepper = ImputationStepper(estimator=sparse_estimator, n_iterations=2, n_passes=1)

    with caplog.at_level(logging.WARNING):
        tables = stepper.run(dat_miss, rng=default_rng(4))

    assert any("imputing unconditionally" in record.message for record in caplog.records)
    assert not tables[0].isna().any().any()
    observed = ~mask.to_numpy()
    assert np.array_equal(tables[0].to_numpy()[observed], dat_miss.to_numpy()[observed])

def test_imputation_failure_retries_without_mask(scenario, estimator, caplog):
    _, dat_miss, _ = scenario
    imputer = FlakyImputer()
    stepper = ImputationStepper(estimator=estimator, imputer=imputer, n_iterations=2, n_passes=1)

    with caplog.at_level(logging.WARNING):
        tables = stepper.run(dat_miss, rng=default_rng(5))

    assert len(tables) == 1
    assert any("retrying without predictor constraint" in record.message for record in caplog.records)
    # Each iteration: one constrained attempt, then one unconstrained retry
    assert len(imputer.calls) == 4
    assert imputer.calls[1] is None and imputer.calls[3] is None

def test_repeated_imputation_failure_propagates(scenario, estimator):
    _, dat_miss, _ = scenario
    stepper = ImputationStepper(estimator=estimator, imputer=BrokenImputer(), n_iterations=1, n_passes=1)
    with pytest.raises(ImputationFailure):
        stepper.run(dat_miss, rng=default_rng(6))

def test_invalid_counts():
    with pytest.raises(ValueError):
        ImputationStepper(n_iterations=0)
    with pytest.raises(ValueError):
        ImputationStepper(n_passes=0)

# ----------------------------------------------------------------------
# Degenerate conditioning
# ----------------------------------------------------------------------
def test_fully_missing_column_and_row(scenario, estimator):
    _, dat_miss, mask = scenario
    dat_miss = dat_miss.copy()
    dat_miss['X3'] = np.nan
    dat_miss.iloc[7] = np.nan
    stepper = ImputationStepper(estimator=estimator, n_iterations=2, n_passes=2)

    tables = stepper.run(dat_miss, rng=default_rng(7))

    observed = dat_miss.notna().to_numpy()
    for table in tables:
        assert not table.isna().any().any()
        assert np.array_equal(table.to_numpy()[observed], dat_miss.to_numpy()[observed])
        assert table['X3'].std() > 0

def test_unusable_path_gives_empty_mask(scenario, caplog):
    _, dat_miss, _ = scenario

    class AlwaysFailingSolver(GraphicalLassoSolver):
        def solve(self, covariance, rho):
            raise NonConvergentSolveError(rho, 'forced failure')

    failing_estimator = SparsityEstimator(solver=AlwaysFailingSolver(), rhos=np.array([0.0, 0.5]))
    stepper = ImputationStepper(estimator=failing_estimator, n_iterations=1, n_passes=1)
    seed_table = stepper.initial_imputation(dat_miss, rng=default_rng(8))

    mask, rho = stepper.next_mask(seed_table)
    assert rho is None
    assert not mask.any()

    with caplog.at_level(logging.WARNING):
        tables = stepper.run(dat_miss, rng=default_rng(9), seed_table=seed_table)
    assert not tables[0].isna().any().any()
    assert any("empty predictor mask" in record.message for record in caplog.records)
    assert any("imputing unconditionally" in record.message for record in caplog.records)
