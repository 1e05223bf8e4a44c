"""Exceptions raised by the structure-recovery simulation."""


class SimulationError(Exception):
    """Base class for all errors raised inside a simulation run."""


class SingularMatrixError(SimulationError):
    """The ground-truth precision matrix cannot be inverted safely."""


class NonConvergentSolveError(SimulationError):
    """The graphical lasso solve failed for a single regularization strength."""

    def __init__(self, rho, reason=''):
        self.rho = rho
        self.reason = reason
        super().__init__(f"Graphical lasso failed at rho={rho}: {reason}")


class DegenerateMaskError(SimulationError):
    """The predictor mask has no nonzero entry."""


class ImputationFailure(SimulationError):
    """A column could not be imputed from its conditioning set."""

    def __init__(self, column, reason=''):
        self.column = column
        self.reason = reason
        super().__init__(f"Could not impute column {column}: {reason}")


class RunFailure(SimulationError):
    """A whole run failed; carries the run index and the phase it failed in."""

    def __init__(self, run_idx, phase, cause=None):
        self.run_idx = run_idx
        self.phase = phase
        self.cause = cause
        super().__init__(f"Run {run_idx} failed during {phase}: {cause}")
