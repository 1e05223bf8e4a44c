"""Predictor masks derived from precision estimates."""

import numpy as np

from src.pipeline.glasso_mice.errors import DegenerateMaskError


def build_predictor_mask(estimate, zero_tol=0.0):
    """
    Convert a precision estimate into a 0/1 predictor mask.

    mask[i, j] = 1 iff |estimate[i, j]| > zero_tol, with the diagonal forced
    to 0. Row j lists the predictors allowed for target column j.
    """
    estimate = np.asarray(estimate)
    if estimate.ndim != 2 or estimate.shape[0] != estimate.shape[1]:
        raise ValueError(f"Estimate must be a square matrix. Got shape {estimate.shape}.")
    mask = (np.abs(estimate) > zero_tol).astype(int)
    np.fill_diagonal(mask, 0)
    return mask


def check_predictor_mask(mask):
    """Raise DegenerateMaskError when no variable is allowed to predict any other."""
    if not np.any(mask):
        raise DegenerateMaskError(f"Predictor mask of shape {np.shape(mask)} is all zero")
    return mask
