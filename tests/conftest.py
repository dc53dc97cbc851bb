import numpy as np
import pytest

from or_solvers.hungarian import AssignmentProblem
from or_solvers.simplex import Constraint, Objective
from or_solvers.transportation import TransportationProblem


@pytest.fixture
def transport_problem():
    return TransportationProblem(
        supply=np.array([25, 35, 40]),
        demand=np.array([30, 25, 45]),
        costs=np.array([[8, 6, 10], [9, 12, 13], [14, 9, 16]]),
    )


@pytest.fixture
def furniture_lp():
    """max z = 40x1 + 30x2, x1 + x2 <= 12, 2x1 + x2 <= 16."""
    objective = Objective((40, 30))
    constraints = [
        Constraint((1, 1), type="<=", rhs=12),
        Constraint((2, 1), type="<=", rhs=16),
    ]
    return objective, constraints


@pytest.fixture
def assignment_problem():
    return AssignmentProblem(np.array([[9, 2, 7], [6, 4, 3], [5, 8, 1]]))
