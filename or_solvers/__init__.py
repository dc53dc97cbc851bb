"""Step-by-step operations research solvers.

Every solver exposes a pure ``step(state) -> state`` transition and a
``solve`` helper returning the whole trace, so each intermediate tableau,
allocation or cost matrix can be shown to a student.
"""

from .errors import (
    ClosedLoopError,
    DegenerateBasisError,
    InvalidStateError,
    NonConvergenceError,
    ProblemDefinitionError,
    SolverError,
)
from .hungarian import (
    AssignmentProblem,
    HungarianState,
    initialize_hungarian_problem,
    perform_hungarian_step,
    solve_hungarian_problem,
)
from .lp_parser import parse_problem
from .mnumber import MNumber
from .simplex import (
    Constraint,
    Objective,
    SimplexState,
    initialize_problem,
    interpret_solution,
    perform_simplex_iteration,
    solve_all,
)
from .trace import MAX_STEPS
from .transportation import (
    Method,
    TransportationProblem,
    TransportationState,
    initialize_modi,
    initialize_transportation_problem,
    perform_transportation_step,
    solve_transportation_problem,
)

__version__ = "0.1.0"
