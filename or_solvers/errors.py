"""Exception hierarchy shared by every solver.

Unbounded and infeasible linear programs are reported through the state's
status, never raised. Exceptions are reserved for malformed input and for
states that break a solver's preconditions.
"""

from __future__ import annotations


class SolverError(Exception):
    """Base class for every error raised by or_solvers."""


class ProblemDefinitionError(SolverError, ValueError):
    """The problem record or its textual form is malformed."""


class InvalidStateError(SolverError):
    """A step was requested on a state that does not satisfy its preconditions."""


class DegenerateBasisError(InvalidStateError):
    """The MODI basis does not span every row and column."""


class ClosedLoopError(InvalidStateError):
    def __init__(self, cell, basis_size: int):
        self.cell = cell
        self.basis_size = basis_size
        super().__init__(
            f"no closed loop through entering cell {cell} "
            f"(basis has {basis_size} cells)"
        )


class NonConvergenceError(SolverError):
    def __init__(self, steps: int):
        self.steps = steps
        super().__init__(f"stopped after {steps} iterations without reaching a terminal state")
