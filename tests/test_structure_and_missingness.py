import pytest
import numpy as np
import pandas as pd
import sys
import os
from numpy.random import default_rng

# Add parent directory to path to import from src
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.pipeline.glasso_mice.data_generators import build_precision_matrix, build_structure, generate_data
from src.pipeline.glasso_mice.missingness_patterns import MCARPattern
from src.pipeline.glasso_mice.errors import SingularMatrixError

# ----------------------------------------------------------------------
# Ground-truth structure
# ----------------------------------------------------------------------
@pytest.mark.parametrize("p", [2, 3, 5, 20, 50])
def test_precision_is_symmetric_and_inverse_is_spd(p):
    omega, sigma = build_structure(p)

    assert omega.shape == (p, p)
    assert np.allclose(omega, omega.T), "Precision matrix should be symmetric"
    assert np.allclose(sigma, sigma.T), "Covariance matrix should be symmetric"
    assert np.all(np.linalg.eigvalsh(sigma) > 0), "Covariance matrix should be positive definite"
    assert np.allclose(omega @ sigma, np.eye(p), atol=1e-8), "Covariance should be the inverse of the precision"

def test_precision_pattern():
    omega = build_precision_matrix(5)

    assert np.all(np.diag(omega) == 1.0)
    for i in range(5):
        for j in range(5):
            if abs(i - j) == 1:
                assert omega[i, j] == 0.5
            elif i != j:
                assert omega[i, j] == 0.0

def test_precision_requires_two_variables():
    with pytest.raises(ValueError) as exc_info:
        build_precision_matrix(1)
    assert "at least 2" in str(exc_info.value)

def test_non_positive_definite_structure_raises():
    # A coupling of 1.0 makes the chain indefinite once p >= 3
    with pytest.raises(SingularMatrixError):
        build_structure(10, off_diagonal=1.0)

def test_generate_data_shape_and_reproducibility():
    _, sigma = build_structure(6)
    data1 = generate_data(40, sigma, rng=default_rng(7))
    data2 = generate_data(40, sigma, rng=default_rng(7))

    assert data1.shape == (40, 6)
    assert list(data1.columns) == [f'X{i+1}' for i in range(6)]
    assert not data1.isna().any().any()
    pd.testing.assert_frame_equal(data1, data2, check_exact=True)

# ----------------------------------------------------------------------
# MCAR missingness
# ----------------------------------------------------------------------
@pytest.fixture(scope="module")
def complete_data():
    _, sigma = build_structure(20)
    return generate_data(100, sigma, rng=default_rng(100))

def test_zero_probability_removes_nothing(complete_data):
    dat_miss, mask = MCARPattern(prob=0.0).apply(complete_data, rng=default_rng(1))

    assert not mask.to_numpy().any(), "No cell should be marked missing with prob=0"
    pd.testing.assert_frame_equal(dat_miss, complete_data, check_exact=True)

def test_mask_matches_removed_cells(complete_data):
    dat_miss, mask = MCARPattern(prob=0.1).apply(complete_data, rng=default_rng(2))

    assert mask.shape == complete_data.shape
    assert mask.dtypes.eq(bool).all()
    pd.testing.assert_frame_equal(dat_miss.isna(), mask, check_names=False)
    observed = ~mask.to_numpy()
    assert np.array_equal(dat_miss.to_numpy()[observed], complete_data.to_numpy()[observed]), \
        "Observed cells must keep their original values"

def test_missing_rate_close_to_probability(complete_data):
    _, mask = MCARPattern(prob=0.1).apply(complete_data, rng=default_rng(3))
    rate = mask.to_numpy().mean()
    assert 0.06 < rate < 0.14, f"Missing rate {rate} should be close to 0.1"

def test_invalid_probability():
    with pytest.raises(ValueError):
        MCARPattern(prob=1.0)
    with pytest.raises(ValueError):
        MCARPattern(prob=-0.1)

def test_pattern_name():
    assert MCARPattern().name == 'mcar'
