"""Structure recovery from incomplete data with graphical-lasso-guided MICE.

This package simulates multivariate normal data with a sparse, chain-shaped
precision matrix, removes cells completely at random, and compares imputation
strategies by how well the structure estimated from their completed tables
matches the truth (ROC/AUC over the graphical lasso regularization path).

Basic Usage
-----------
>>> from src.pipeline.glasso_mice import SimulationStudy
>>>
>>> study = SimulationStudy(n=100, p=20, num_runs=1, rho_max=1.0, rho_step=0.1, seed=100)
>>> results, roc_curves = study.run_all()
>>> print(results[['method', 'auc']])

Modules
-------
data_generators : Ground-truth precision matrix and data sampling
missingness_patterns : MCAR cell removal
sparsity : Graphical lasso path and BIC-style strength selection
predictor_mask : Predictor masks from precision estimates
chained_equations : Chained-equation imputation engines
imputation_stepper : Iterative glasso-guided imputation passes
imputation_methods : Imputation strategies compared in the study
voting : Majority vote over structure estimates
evaluator : ROC curves and AUC
simulator : Study orchestration
errors : Exception hierarchy
"""

from .data_generators import build_precision_matrix, build_structure, generate_data
from .missingness_patterns import MissingnessPattern, MCARPattern
from .sparsity import GraphicalLassoSolver, SparsityEstimator, SparsityPath, bic_score, regularization_path
from .predictor_mask import build_predictor_mask, check_predictor_mask
from .chained_equations import ChainedEquationImputer, iterative_impute
from .imputation_stepper import ImputationStepper
from .imputation_methods import (
    ImputationMethod,
    GlassoGuidedImputation,
    MICEImputation,
    MICELassoImputation,
    OracleData
)
from .voting import estimate_structures, majority_vote, vote
from .evaluator import average_roc_curve, compute_auc, evaluate_structure, roc_curve, roc_point, true_structure
from .simulator import RunRecord, SimulationStudy
from .errors import (
    SimulationError,
    SingularMatrixError,
    NonConvergentSolveError,
    DegenerateMaskError,
    ImputationFailure,
    RunFailure
)

__version__ = '1.0.0'

__all__ = [
    # Ground truth and data
    'build_precision_matrix',
    'build_structure',
    'generate_data',
    'MissingnessPattern',
    'MCARPattern',

    # Structure estimation
    'GraphicalLassoSolver',
    'SparsityEstimator',
    'SparsityPath',
    'bic_score',
    'regularization_path',
    'build_predictor_mask',
    'check_predictor_mask',

    # Imputation
    'ChainedEquationImputer',
    'iterative_impute',
    'ImputationStepper',
    'ImputationMethod',
    'GlassoGuidedImputation',
    'MICEImputation',
    'MICELassoImputation',
    'OracleData',

    # Aggregation and evaluation
    'estimate_structures',
    'majority_vote',
    'vote',
    'average_roc_curve',
    'compute_auc',
    'evaluate_structure',
    'roc_curve',
    'roc_point',
    'true_structure',

    # Simulation
    'RunRecord',
    'SimulationStudy',

    # Errors
    'SimulationError',
    'SingularMatrixError',
    'NonConvergentSolveError',
    'DegenerateMaskError',
    'ImputationFailure',
    'RunFailure',
]
