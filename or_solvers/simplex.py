"""
Tableau Simplex with the Big-M method, one pivot per step.

- A maximisation whose constraints are all ``<=`` runs as the plain Simplex
  method (one slack per row, real costs).
- Anything else uses Big-M: ``<=`` rows get a slack, ``>=`` rows a surplus
  and an artificial variable, ``=`` rows an artificial variable only.
  Artificial columns cost ``-M`` when maximising and ``+M`` when minimising,
  kept symbolic through ``MNumber``.
- Every transition returns a new ``SimplexState``; the input is never
  modified, so a caller can keep the whole trace for replay.

Input contract:
- objective: ``Objective(coefficients, variables)``
- constraints: ``Constraint(coefficients, variables, type, rhs)`` with type
  in {"<=", ">=", "="}
- is_maximization: bool
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidStateError, ProblemDefinitionError
from .mnumber import MNumber, msum
from .numeric import format_number
from .trace import MAX_STEPS, run_trace

logger = logging.getLogger(__name__)

EPS = 1e-9
M_PENALTY = 1.0
CONSTRAINT_TYPES = ("<=", ">=", "=")
_FLIPPED = {"<=": ">=", ">=": "<=", "=": "="}


class Status(str, Enum):
    INITIAL = "Initial"
    RUNNING = "Running"
    OPTIMAL = "Optimal"
    INFEASIBLE = "Infeasible"
    UNBOUNDED = "Unbounded"


TERMINAL = frozenset({Status.OPTIMAL, Status.INFEASIBLE, Status.UNBOUNDED})


# ----------------------------- problem records -----------------------------

@dataclass(frozen=True)
class Objective:
    coefficients: Tuple[float, ...]
    variables: Tuple[str, ...] = ()

    def __post_init__(self):
        coefficients = tuple(float(c) for c in self.coefficients)
        variables = tuple(self.variables) or tuple(f"x{j + 1}" for j in range(len(coefficients)))
        if len(variables) != len(coefficients):
            raise ProblemDefinitionError(
                f"objective has {len(coefficients)} coefficients but {len(variables)} variables"
            )
        if len(set(variables)) != len(variables):
            raise ProblemDefinitionError("objective variables must be unique")
        object.__setattr__(self, "coefficients", coefficients)
        object.__setattr__(self, "variables", variables)


@dataclass(frozen=True)
class Constraint:
    coefficients: Tuple[float, ...]
    variables: Tuple[str, ...] = ()
    type: str = "<="
    rhs: float = 0.0

    def __post_init__(self):
        if self.type not in CONSTRAINT_TYPES:
            raise ProblemDefinitionError(f"constraint type must be one of {CONSTRAINT_TYPES}, got {self.type!r}")
        coefficients = tuple(float(c) for c in self.coefficients)
        variables = tuple(self.variables)
        if variables and len(variables) != len(coefficients):
            raise ProblemDefinitionError(
                f"constraint has {len(coefficients)} coefficients but {len(variables)} variables"
            )
        object.__setattr__(self, "coefficients", coefficients)
        object.__setattr__(self, "variables", variables)
        object.__setattr__(self, "rhs", float(self.rhs))

    def is_non_negativity(self) -> bool:
        nonzero = [c for c in self.coefficients if c != 0]
        return self.type == ">=" and self.rhs == 0 and len(nonzero) == 1 and nonzero[0] > 0


@dataclass(frozen=True)
class PivotInfo:
    entering: Optional[int] = None
    leaving: Optional[int] = None
    ratios: Tuple[Optional[float], ...] = ()
    min_ratio: Optional[float] = None
    unbounded: bool = False


@dataclass(frozen=True, eq=False)
class SimplexState:
    cj: Tuple[MNumber, ...]
    variables: Tuple[str, ...]
    basis: Tuple[str, ...]
    cb: Tuple[MNumber, ...]
    rhs: np.ndarray
    tableau: np.ndarray
    zj_cj: Tuple[MNumber, ...]
    objective_value: MNumber
    is_maximization: bool
    status: Status
    explanation: str
    use_big_m: bool
    formulation: str
    artificial_variables: Tuple[str, ...] = ()
    iteration: int = 0
    pivot: Optional[PivotInfo] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL


# ----------------------------- construction -----------------------------

def _align(constraint: Constraint, names: Sequence[str]) -> List[float]:
    if not constraint.variables:
        if len(constraint.coefficients) > len(names):
            raise ProblemDefinitionError(
                f"constraint has {len(constraint.coefficients)} coefficients for {len(names)} variables"
            )
        return list(constraint.coefficients) + [0.0] * (len(names) - len(constraint.coefficients))
    index = {name: j for j, name in enumerate(names)}
    row = [0.0] * len(names)
    for name, coef in zip(constraint.variables, constraint.coefficients):
        if name not in index:
            raise ProblemDefinitionError(f"constraint uses variable {name!r} missing from the objective")
        row[index[name]] += coef
    return row


def _evaluate(cb: Sequence[MNumber], cj: Sequence[MNumber], tableau: np.ndarray,
              rhs: np.ndarray) -> Tuple[Tuple[MNumber, ...], MNumber]:
    # Zj = sum(cb[i] * a[i][j]); Z = sum(cb[i] * rhs[i])
    m = len(cb)
    z = msum(cb[i] * float(rhs[i]) for i in range(m))
    zj_cj = tuple(
        msum(cb[i] * float(tableau[i, j]) for i in range(m)) - cj[j]
        for j in range(len(cj))
    )
    return zj_cj, z


def _term(coef: str, name: str) -> Optional[str]:
    if coef == "0":
        return None
    if coef == "1":
        return name
    if coef == "-1":
        return f"-{name}"
    return f"{coef}{name}"


def _join(terms: Sequence[str]) -> str:
    text = ""
    for t in terms:
        if t.startswith("-"):
            text = f"{text} - {t[1:]}" if text else t
        else:
            text = f"{text} + {t}" if text else t
    return text or "0"


def build_formulation(cj: Sequence[MNumber], variables: Sequence[str], tableau: np.ndarray,
                      rhs: np.ndarray, is_maximization: bool) -> str:
    objective = [t for t in (_term(str(c), v) for c, v in zip(cj, variables)) if t]
    lines = [f"{'max' if is_maximization else 'min'} z = {_join(objective)}"]
    for i, row in enumerate(tableau):
        terms = [t for t in (_term(format_number(c), v) for c, v in zip(row, variables)) if t]
        lines.append(f"{_join(terms)} = {format_number(rhs[i])}")
    return "\n".join(lines)


def initialize_problem(objective: Objective, constraints: Sequence[Constraint],
                       is_maximization: bool = False) -> SimplexState:
    relevant = [c for c in constraints if not c.is_non_negativity()]
    if not relevant:
        raise ProblemDefinitionError("need at least one constraint besides non-negativity")

    names = list(objective.variables)
    rows = []
    for con in relevant:
        coeffs, ctype, rhs = _align(con, names), con.type, con.rhs
        if rhs < 0:
            coeffs, ctype, rhs = [-c for c in coeffs], _FLIPPED[ctype], -rhs
        rows.append((coeffs, ctype, rhs))

    standard = is_maximization and all(ctype == "<=" for _, ctype, _ in rows)
    penalty = MNumber(0, -M_PENALTY if is_maximization else M_PENALTY)

    variables = list(names)
    cj = [MNumber(c) for c in objective.coefficients]
    extra = []  # (row, coefficient) per added column
    basis: List[str] = []
    cb: List[MNumber] = []
    artificials: List[str] = []

    for i, (_, ctype, _) in enumerate(rows):
        slack, artificial = f"s{i + 1}", f"a{i + 1}"
        if ctype in ("<=", ">="):
            variables.append(slack)
            cj.append(MNumber())
            extra.append((i, 1.0 if ctype == "<=" else -1.0))
        if ctype == "<=":
            basis.append(slack)
            cb.append(MNumber())
        else:
            variables.append(artificial)
            cj.append(penalty)
            extra.append((i, 1.0))
            artificials.append(artificial)
            basis.append(artificial)
            cb.append(penalty)

    if len(set(variables)) != len(variables):
        raise ProblemDefinitionError("decision variable names clash with generated slack/artificial names")

    n = len(names)
    tableau = np.zeros((len(rows), len(variables)), dtype=float)
    for i, (coeffs, _, _) in enumerate(rows):
        tableau[i, :n] = coeffs
    for k, (row, coef) in enumerate(extra):
        tableau[row, n + k] = coef
    rhs = np.array([r for _, _, r in rows], dtype=float)

    zj_cj, z = _evaluate(cb, cj, tableau, rhs)
    formulation = build_formulation(cj, variables, tableau, rhs, is_maximization)
    tableau.flags.writeable = False
    rhs.flags.writeable = False

    use_big_m = not standard
    logger.info("Initialized %s with %d constraints and %d columns",
                "Big-M tableau" if use_big_m else "standard tableau", len(rows), len(variables))
    return SimplexState(
        cj=tuple(cj),
        variables=tuple(variables),
        basis=tuple(basis),
        cb=tuple(cb),
        rhs=rhs,
        tableau=tableau,
        zj_cj=zj_cj,
        objective_value=z,
        is_maximization=is_maximization,
        status=Status.INITIAL,
        explanation="Big M Method (artificial variables included)" if use_big_m else "Standard Simplex Method",
        use_big_m=use_big_m,
        formulation=formulation,
        artificial_variables=tuple(artificials),
    )


# ----------------------------- iteration -----------------------------

def _entering_column(state: SimplexState) -> Optional[int]:
    # max: most negative Zj-Cj; min: most positive; ties keep the first column
    zero = MNumber()
    best = None
    for j, value in enumerate(state.zj_cj):
        if state.is_maximization:
            if value < zero and (best is None or value < state.zj_cj[best]):
                best = j
        elif value > zero and (best is None or value > state.zj_cj[best]):
            best = j
    return best


def calculate_pivot_info(state: SimplexState) -> PivotInfo:
    """Describe the next pivot (entering column, ratio column, leaving row) without performing it."""
    if state.is_terminal:
        return PivotInfo()
    entering = _entering_column(state)
    if entering is None:
        return PivotInfo()

    ratios: List[Optional[float]] = []
    leaving, min_ratio = None, None
    for i, coeff in enumerate(state.tableau[:, entering]):
        if coeff > EPS:
            ratio = float(state.rhs[i] / coeff)
            ratios.append(ratio)
            if ratio >= -EPS and (min_ratio is None or ratio < min_ratio):
                leaving, min_ratio = i, ratio
        else:
            ratios.append(None)
    return PivotInfo(
        entering=entering,
        leaving=leaving,
        ratios=tuple(ratios),
        min_ratio=min_ratio,
        unbounded=all(r is None for r in ratios),
    )


def artificial_in_basis(state: SimplexState) -> bool:
    artificials = set(state.artificial_variables)
    return any(name in artificials and state.rhs[i] > EPS for i, name in enumerate(state.basis))


def _finish(state: SimplexState) -> SimplexState:
    sign = ">=" if state.is_maximization else "<="
    if artificial_in_basis(state):
        logger.info("Optimality reached with a positive artificial variable: infeasible")
        return replace(
            state,
            status=Status.INFEASIBLE,
            pivot=None,
            explanation="Optimal tableau reached, but artificial variables remain in the basis "
                        "with positive values. Problem is infeasible.",
        )
    logger.info("Optimal after %d iterations, Z = %s", state.iteration, state.objective_value)
    return replace(
        state,
        status=Status.OPTIMAL,
        pivot=None,
        explanation=f"Optimal solution found (all Zj - Cj {sign} 0).",
    )


def perform_simplex_iteration(state: SimplexState) -> SimplexState:
    if state.is_terminal:
        return state

    info = calculate_pivot_info(state)
    if info.entering is None:
        return _finish(state)

    entering = info.entering
    entering_name = state.variables[entering]
    explanation = f"Entering variable: {entering_name} (Zj-Cj = {state.zj_cj[entering]}). "

    if info.unbounded:
        logger.info("Column %s has no positive coefficient: unbounded", entering_name)
        return replace(
            state,
            status=Status.UNBOUNDED,
            pivot=info,
            explanation=explanation + f"Entering variable {entering_name} has no positive "
                                      "coefficients in its column. Problem is unbounded.",
        )
    if info.leaving is None:
        raise InvalidStateError("no row passes the minimum ratio test; the basis is not feasible")

    leaving = info.leaving
    pivot = state.tableau[leaving, entering]
    explanation += (
        f"Leaving variable: {state.basis[leaving]} (min ratio {format_number(info.min_ratio)} "
        f"at row {leaving + 1}). Pivot element: {format_number(pivot)}."
    )
    logger.debug("Iteration %d: %s enters, %s leaves, pivot %g",
                 state.iteration + 1, entering_name, state.basis[leaving], pivot)

    tableau = state.tableau.copy()
    rhs = state.rhs.copy()
    tableau[leaving] /= pivot
    rhs[leaving] /= pivot
    for i in range(tableau.shape[0]):
        if i == leaving:
            continue
        factor = tableau[i, entering]
        if factor != 0:
            tableau[i] -= factor * tableau[leaving]
            rhs[i] -= factor * rhs[leaving]
    tableau[np.abs(tableau) < EPS] = 0.0
    rhs[np.abs(rhs) < EPS] = 0.0
    tableau.flags.writeable = False
    rhs.flags.writeable = False

    basis = list(state.basis)
    cb = list(state.cb)
    basis[leaving] = entering_name
    cb[leaving] = state.cj[entering]
    zj_cj, z = _evaluate(cb, state.cj, tableau, rhs)

    return replace(
        state,
        basis=tuple(basis),
        cb=tuple(cb),
        rhs=rhs,
        tableau=tableau,
        zj_cj=zj_cj,
        objective_value=z,
        status=Status.RUNNING,
        explanation=explanation,
        iteration=state.iteration + 1,
        pivot=info,
    )


# ----------------------------- results -----------------------------

def solution_values(state: SimplexState) -> Dict[str, float]:
    artificials = set(state.artificial_variables)
    values = {name: 0.0 for name in state.variables if name not in artificials}
    for i, name in enumerate(state.basis):
        if name in values:
            values[name] = float(state.rhs[i])
    return values


def interpret_solution(state: SimplexState) -> str:
    if state.status == Status.OPTIMAL:
        if artificial_in_basis(state):
            return ("Problem is Infeasible. Artificial variable(s) remain in the optimal basis "
                    f"with positive values. Z = {state.objective_value}")
        lines = ["Optimal solution found.", f"Objective value (Z) = {state.objective_value}", "Variable values:"]
        for name, value in solution_values(state).items():
            lines.append(f"  {name} = {format_number(value)}")
        return "\n".join(lines)
    if state.status == Status.INFEASIBLE:
        return ("Problem is Infeasible. Artificial variable(s) remain in the basis when optimality "
                f"conditions are met. Z = {state.objective_value}")
    if state.status == Status.UNBOUNDED:
        return ("Problem is Unbounded. The objective function can be decreased (for min) "
                "or increased (for max) indefinitely.")
    return "Solver did not reach a terminal state."


def solve_all(state: SimplexState, max_steps: int = MAX_STEPS) -> List[SimplexState]:
    return run_trace(state, perform_simplex_iteration, lambda s: s.is_terminal, max_steps)


def describe_outcome(trace: Sequence[SimplexState]) -> str:
    final = trace[-1]
    if not final.is_terminal:
        return f"Stopped after {len(trace) - 1} iterations without reaching a terminal state."
    return interpret_solution(final)
