"""
Hungarian method for the assignment problem, one phase per step.

Phases run in the order reduce_rows -> reduce_cols -> cover_zeros, then
adjust_matrix repeats until every column is covered by a starred zero, and
find_assignment reads the starred zeros off the matrix.

Rectangular problems are padded with zero-cost dummy rows or columns.
Maximisation is turned into minimisation with ``max(costs) - cost``; the
reported total always comes from the original (balanced) matrix.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .errors import ProblemDefinitionError
from .trace import MAX_STEPS, readonly, run_trace

logger = logging.getLogger(__name__)

EPS = 1e-9


class Status(str, Enum):
    INITIAL = "Initial"
    RUNNING = "Running"
    COMPLETE = "Complete"


class Phase(str, Enum):
    REDUCE_ROWS = "reduce_rows"
    REDUCE_COLS = "reduce_cols"
    COVER_ZEROS = "cover_zeros"
    FIND_ASSIGNMENT = "find_assignment"
    ADJUST_MATRIX = "adjust_matrix"
    COMPLETE = "complete"


class Mark(str, Enum):
    STARRED = "starred"
    PRIMED = "primed"


Marks = Tuple[Tuple[Optional[Mark], ...], ...]


@dataclass(frozen=True, eq=False)
class AssignmentProblem:
    costs: np.ndarray
    row_labels: Tuple[str, ...] = ()
    col_labels: Tuple[str, ...] = ()
    is_maximization: bool = False

    def __post_init__(self):
        costs = readonly(self.costs)
        if costs.ndim != 2 or costs.size == 0:
            raise ProblemDefinitionError("assignment costs must be a non-empty matrix")
        rows, cols = costs.shape
        row_labels = tuple(self.row_labels) or tuple(f"R{i + 1}" for i in range(rows))
        col_labels = tuple(self.col_labels) or tuple(f"C{j + 1}" for j in range(cols))
        if len(row_labels) != rows or len(col_labels) != cols:
            raise ProblemDefinitionError("one label is required per row and per column")
        object.__setattr__(self, "costs", costs)
        object.__setattr__(self, "row_labels", row_labels)
        object.__setattr__(self, "col_labels", col_labels)


@dataclass(frozen=True, eq=False)
class HungarianState:
    problem: AssignmentProblem
    cost_matrix: np.ndarray
    original_matrix: np.ndarray
    assignments: Tuple[Tuple[int, int], ...]
    total_cost: float
    step: int
    status: Status
    explanation: str
    covered_rows: Tuple[bool, ...]
    covered_cols: Tuple[bool, ...]
    marks: Marks
    phase: Phase
    min_uncovered: Optional[float] = None

    @property
    def size(self) -> int:
        return self.cost_matrix.shape[0]

    @property
    def is_terminal(self) -> bool:
        return self.status == Status.COMPLETE


# ----------------------------- setup -----------------------------

def balance_assignment_problem(problem: AssignmentProblem) -> AssignmentProblem:
    rows, cols = problem.costs.shape
    n = max(rows, cols)
    if rows == cols:
        return problem
    costs = np.zeros((n, n), dtype=float)
    costs[:rows, :cols] = problem.costs
    row_labels = list(problem.row_labels) + [f"Dummy-{i + 1}" for i in range(rows, n)]
    col_labels = list(problem.col_labels) + [f"Dummy-{j + 1}" for j in range(cols, n)]
    logger.info("Padded %dx%d assignment problem to %dx%d", rows, cols, n, n)
    return AssignmentProblem(costs, tuple(row_labels), tuple(col_labels), problem.is_maximization)


def initialize_hungarian_problem(problem: AssignmentProblem) -> HungarianState:
    balanced = balance_assignment_problem(problem)
    n = balanced.costs.shape[0]
    if balanced.is_maximization:
        cost_matrix = balanced.costs.max() - balanced.costs
    else:
        cost_matrix = balanced.costs
    sense = "maximization" if balanced.is_maximization else "minimization"
    return HungarianState(
        problem=balanced,
        cost_matrix=readonly(cost_matrix),
        original_matrix=readonly(balanced.costs),
        assignments=(),
        total_cost=0.0,
        step=0,
        status=Status.INITIAL,
        explanation=f"Starting Hungarian Method for {sense} assignment problem.",
        covered_rows=(False,) * n,
        covered_cols=(False,) * n,
        marks=tuple((None,) * n for _ in range(n)),
        phase=Phase.REDUCE_ROWS,
    )


# ----------------------------- helpers -----------------------------

def _clean(matrix: np.ndarray) -> np.ndarray:
    matrix[np.abs(matrix) < EPS] = 0.0
    matrix.flags.writeable = False
    return matrix


def _is_zero(x: float) -> bool:
    return abs(x) < EPS


def _freeze(marks: List[List[Optional[Mark]]]) -> Marks:
    return tuple(tuple(row) for row in marks)


def _star_columns(marks) -> Tuple[bool, ...]:
    n = len(marks)
    return tuple(any(marks[i][j] == Mark.STARRED for i in range(n)) for j in range(n))


def find_uncovered_zeros(state: HungarianState) -> List[Tuple[int, int]]:
    zeros = []
    for i in range(state.size):
        if state.covered_rows[i]:
            continue
        for j in range(state.size):
            if not state.covered_cols[j] and _is_zero(state.cost_matrix[i, j]):
                zeros.append((i, j))
    return zeros


def find_min_uncovered_value(state: HungarianState) -> float:
    rows = ~np.array(state.covered_rows, dtype=bool)
    cols = ~np.array(state.covered_cols, dtype=bool)
    block = state.cost_matrix[np.ix_(rows, cols)]
    return float(block.min()) if block.size else 0.0


def calculate_total_assignment_cost(assignments, original: np.ndarray) -> float:
    return float(sum(original[r, c] for r, c in assignments))


# ----------------------------- phases -----------------------------

def reduce_rows(state: HungarianState) -> HungarianState:
    matrix = state.cost_matrix - state.cost_matrix.min(axis=1, keepdims=True)
    return replace(
        state,
        cost_matrix=_clean(matrix),
        step=state.step + 1,
        status=Status.RUNNING,
        phase=Phase.REDUCE_COLS,
        explanation=f"Step {state.step + 1}: Reduced rows by subtracting minimum value from each row.",
    )


def reduce_cols(state: HungarianState) -> HungarianState:
    matrix = state.cost_matrix - state.cost_matrix.min(axis=0, keepdims=True)
    return replace(
        state,
        cost_matrix=_clean(matrix),
        step=state.step + 1,
        phase=Phase.COVER_ZEROS,
        explanation=f"Step {state.step + 1}: Reduced columns by subtracting minimum value from each column.",
    )


def cover_zeros(state: HungarianState) -> HungarianState:
    n = state.size
    marks = [list(row) for row in state.marks]
    starred_rows = [False] * n
    starred_cols = [False] * n
    for i in range(n):
        for j in range(n):
            if marks[i][j] == Mark.STARRED:
                starred_rows[i] = starred_cols[j] = True
    for i in range(n):
        for j in range(n):
            if (_is_zero(state.cost_matrix[i, j]) and marks[i][j] is None
                    and not starred_rows[i] and not starred_cols[j]):
                marks[i][j] = Mark.STARRED
                starred_rows[i] = starred_cols[j] = True

    covered_cols = _star_columns(marks)
    count = sum(covered_cols)
    done = count == n
    return replace(
        state,
        marks=_freeze(marks),
        covered_rows=(False,) * n,
        covered_cols=covered_cols,
        step=state.step + 1,
        phase=Phase.FIND_ASSIGNMENT if done else Phase.ADJUST_MATRIX,
        explanation=(f"Step {state.step + 1}: Starred independent zeros and covered {count} columns. "
                     + ("Optimal assignment found!" if done else "Need to find more zeros.")),
    )


def _augment(state: HungarianState, start: Tuple[int, int]) -> HungarianState:
    # alternate primed -> starred (same column) -> primed (same row) until a
    # primed zero has no starred zero in its column
    n = state.size
    marks = [list(row) for row in state.marks]
    marks[start[0]][start[1]] = Mark.PRIMED
    path = [start]
    while True:
        col = path[-1][1]
        star_row = next((i for i in range(n) if marks[i][col] == Mark.STARRED), None)
        if star_row is None:
            break
        path.append((star_row, col))
        prime_col = next(j for j in range(n) if marks[star_row][j] == Mark.PRIMED)
        path.append((star_row, prime_col))

    for i, j in path:
        marks[i][j] = None if marks[i][j] == Mark.STARRED else Mark.STARRED
    for i in range(n):
        for j in range(n):
            if marks[i][j] == Mark.PRIMED:
                marks[i][j] = None

    covered_cols = _star_columns(marks)
    count = sum(covered_cols)
    logger.debug("Augmenting path of length %d, %d columns covered", len(path), count)
    return replace(
        state,
        marks=_freeze(marks),
        covered_rows=(False,) * n,
        covered_cols=covered_cols,
        step=state.step + 1,
        phase=Phase.FIND_ASSIGNMENT if count == n else Phase.ADJUST_MATRIX,
        explanation=f"Step {state.step + 1}: Constructed augmenting path. Now covering {count} columns.",
    )


def _modify_matrix(state: HungarianState) -> HungarianState:
    min_uncovered = find_min_uncovered_value(state)
    rows = np.array(state.covered_rows, dtype=bool)
    cols = np.array(state.covered_cols, dtype=bool)
    matrix = np.array(state.cost_matrix, dtype=float)
    matrix[np.ix_(~rows, ~cols)] -= min_uncovered
    matrix[np.ix_(rows, cols)] += min_uncovered
    return replace(
        state,
        cost_matrix=_clean(matrix),
        min_uncovered=min_uncovered,
        step=state.step + 1,
        explanation=(f"Step {state.step + 1}: Modified matrix by subtracting {min_uncovered:g} from uncovered "
                     "elements and adding to doubly-covered elements."),
    )


def adjust_matrix(state: HungarianState) -> HungarianState:
    zeros = find_uncovered_zeros(state)
    if not zeros:
        return _modify_matrix(state)

    row, col = zeros[0]
    star_col = next((j for j in range(state.size) if state.marks[row][j] == Mark.STARRED), None)
    if star_col is None:
        return _augment(state, (row, col))

    marks = [list(r) for r in state.marks]
    marks[row][col] = Mark.PRIMED
    covered_rows = list(state.covered_rows)
    covered_cols = list(state.covered_cols)
    covered_rows[row] = True
    covered_cols[star_col] = False
    return replace(
        state,
        marks=_freeze(marks),
        covered_rows=tuple(covered_rows),
        covered_cols=tuple(covered_cols),
        step=state.step + 1,
        explanation=(f"Step {state.step + 1}: Primed zero at ({row + 1}, {col + 1}). "
                     f"Covered row {row + 1} and uncovered column {star_col + 1}."),
    )


def find_optimal_assignment(state: HungarianState) -> HungarianState:
    n = state.size
    assignments = tuple((i, j) for i in range(n) for j in range(n) if state.marks[i][j] == Mark.STARRED)
    total = calculate_total_assignment_cost(assignments, state.original_matrix)
    logger.info("Hungarian method finished in %d steps, total %g", state.step + 1, total)
    return replace(
        state,
        assignments=assignments,
        total_cost=total,
        step=state.step + 1,
        status=Status.COMPLETE,
        phase=Phase.COMPLETE,
        explanation=f"Step {state.step + 1}: Optimal assignment found with total cost {total:g}.",
    )


PHASES: Dict[Phase, Callable[[HungarianState], HungarianState]] = {
    Phase.REDUCE_ROWS: reduce_rows,
    Phase.REDUCE_COLS: reduce_cols,
    Phase.COVER_ZEROS: cover_zeros,
    Phase.ADJUST_MATRIX: adjust_matrix,
    Phase.FIND_ASSIGNMENT: find_optimal_assignment,
}


def perform_hungarian_step(state: HungarianState) -> HungarianState:
    if state.is_terminal or state.phase == Phase.COMPLETE:
        return state
    logger.debug("Hungarian step %d: %s", state.step + 1, state.phase.value)
    return PHASES[state.phase](state)


def solve_hungarian_problem(state: HungarianState, max_steps: int = MAX_STEPS) -> List[HungarianState]:
    return run_trace(state, perform_hungarian_step, lambda s: s.is_terminal, max_steps)
