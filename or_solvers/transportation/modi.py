"""
MODI (u-v) optimisation with stepping-stone reallocation.

One call to ``perform_modi_step`` advances exactly one sub-step:

1. solve the dual variables ``u[i] + v[j] = c[i][j]`` over the basic cells;
2. compute opportunity costs ``c[i][j] - (u[i] + v[j])`` of non-basic cells;
3. stop when none is negative;
4. pick the most negative cell as the entering cell;
5. find the closed loop through it;
6. compute theta, the smallest allocation on a ``-`` cell;
7. shift theta around the loop and start the next round.

The basis holds ``rows + cols - 1`` cells. When the initial solution is
degenerate, zero-valued cells are added to it (cheapest first, only cells
that join two unconnected parts of the basis) so the duals are always
determined.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from ..errors import ClosedLoopError, DegenerateBasisError, InvalidStateError
from ..trace import MAX_STEPS, run_trace
from .common import (
    EPS,
    Allocation,
    Cell,
    Method,
    MODIData,
    Status,
    TransportationState,
    allocation_value,
    calculate_total_cost,
    check_degeneracy,
    is_allocation_complete,
)

logger = logging.getLogger(__name__)

# allocations at or below this value leave the table after reallocation
ZERO_ALLOCATION = 1e-4


# ----------------------------- basis -----------------------------

def complete_basis(allocations: Sequence[Allocation], costs: np.ndarray) -> Tuple[Tuple[Cell, ...], Tuple[Cell, ...]]:
    """Return ``(basis, added)`` where ``added`` are the zero-valued cells needed for a spanning basis."""
    m, n = costs.shape
    parent = list(range(m + n))

    def find(x: int) -> int:
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    basis: List[Cell] = []
    for a in allocations:
        if a.value <= EPS:
            continue
        ra, cb = find(a.row), find(m + a.col)
        if ra == cb:
            raise InvalidStateError(
                f"allocations contain a closed loop through ({a.row}, {a.col}); not a basic feasible solution"
            )
        parent[ra] = cb
        basis.append((a.row, a.col))

    added: List[Cell] = []
    required = m + n - 1
    if len(basis) < required:
        taken = set(basis)
        candidates = sorted((costs[i, j], i, j) for i in range(m) for j in range(n) if (i, j) not in taken)
        for _, i, j in candidates:
            if len(basis) + len(added) >= required:
                break
            ri, cj = find(i), find(m + j)
            if ri != cj:
                parent[ri] = cj
                added.append((i, j))
    return tuple(basis + added), tuple(added)


def initialize_modi(state: TransportationState) -> TransportationState:
    if state.status != Status.COMPLETE or not is_allocation_complete(state):
        raise InvalidStateError(
            f"MODI needs a complete initial solution; got status {state.status.value}"
        )
    if not any(a.value > EPS for a in state.allocations):
        raise InvalidStateError("MODI needs at least one positive allocation")

    rows, cols = state.problem.shape
    basis, added = complete_basis(state.allocations, state.problem.costs)
    explanation = "MODI (Modified Distribution) Method initialized. Starting with u1 = 0."
    if added:
        cells = ", ".join(f"({r + 1},{c + 1})" for r, c in added)
        explanation += f" Degenerate solution: zero-valued basic cells added at {cells}."
        logger.info("Degenerate initial solution, added basic cells %s", added)

    return replace(
        state,
        method=Method.MODI,
        step=0,
        status=Status.INITIAL,
        explanation=explanation,
        is_optimal=None,
        degenerate=check_degeneracy(state),
        basis=basis,
        modi=MODIData.fresh(rows, cols),
    )


# ----------------------------- sub-steps -----------------------------

def _fmt_duals(values: Sequence[Optional[float]]) -> str:
    return ", ".join("?" if x is None else f"{x:g}" for x in values)


def calculate_dual_variables(state: TransportationState) -> TransportationState:
    costs = state.problem.costs
    m, n = costs.shape
    u: List[Optional[float]] = [None] * m
    v: List[Optional[float]] = [None] * n
    u[0] = 0.0

    changed = True
    passes = 0
    while changed and passes < m + n:
        changed = False
        passes += 1
        for r, c in state.basis:
            if u[r] is not None and v[c] is None:
                v[c] = float(costs[r, c]) - u[r]
                changed = True
            elif v[c] is not None and u[r] is None:
                u[r] = float(costs[r, c]) - v[c]
                changed = True

    if any(x is None for x in u) or any(x is None for x in v):
        raise DegenerateBasisError(
            f"dual variables unresolved after {passes} passes: u = [{_fmt_duals(u)}], v = [{_fmt_duals(v)}]"
        )

    logger.debug("Duals u=%s v=%s", u, v)
    return replace(
        state,
        step=state.step + 1,
        status=Status.RUNNING,
        explanation=f"Dual variables calculated: u = [{_fmt_duals(u)}], v = [{_fmt_duals(v)}]",
        modi=replace(state.modi, u=tuple(u), v=tuple(v)),
    )


def calculate_opportunity_costs(state: TransportationState) -> TransportationState:
    costs = state.problem.costs
    m, n = costs.shape
    u = np.array(state.modi.u, dtype=float)
    v = np.array(state.modi.v, dtype=float)
    deltas = costs - u[:, None] - v[None, :]
    basic = set(state.basis)
    most_negative = None
    for i in range(m):
        for j in range(n):
            if (i, j) in basic:
                deltas[i, j] = 0.0
            elif deltas[i, j] < -EPS and (most_negative is None or deltas[i, j] < most_negative[2]):
                most_negative = (i, j, float(deltas[i, j]))
    deltas.flags.writeable = False

    if most_negative is None:
        explanation = "All opportunity costs are non-negative. Current solution is optimal!"
    else:
        r, c, value = most_negative
        explanation = (f"Opportunity costs calculated. Most negative: ({r + 1}, {c + 1}) = {value:.2f}. "
                       "Solution is not optimal.")
    return replace(
        state,
        step=state.step + 1,
        explanation=explanation,
        is_optimal=most_negative is None,
        modi=replace(state.modi, opportunity_costs=deltas, most_negative=most_negative),
    )


def find_entering_variable(state: TransportationState) -> TransportationState:
    r, c, value = state.modi.most_negative
    return replace(
        state,
        step=state.step + 1,
        explanation=f"Entering variable: x({r + 1},{c + 1}) with opportunity cost {value:.2f}",
        modi=replace(state.modi, entering=(r, c)),
    )


def find_loop(start: Cell, basis: Sequence[Cell], rows: int, cols: int) -> Optional[List[Cell]]:
    """Closed path through ``start`` alternating row and column moves over basic cells.

    The returned list begins at ``start`` and does not repeat it at the end;
    even positions carry ``+``, odd positions ``-``.
    """
    nodes: Set[Cell] = set(basis)
    nodes.add(start)
    limit = rows + cols

    def neighbors(cell: Cell, along_row: bool) -> List[Cell]:
        i, j = cell
        if along_row:
            return [(i, jj) for jj in range(cols) if jj != j and (i, jj) in nodes]
        return [(ii, j) for ii in range(rows) if ii != i and (ii, j) in nodes]

    def dfs(path: List[Cell], visited: Set[Cell], along_row: bool) -> bool:
        for nb in neighbors(path[-1], along_row):
            if nb == start:
                if len(path) >= 4 and len(path) % 2 == 0:
                    return True
                continue
            if nb in visited or len(path) >= limit:
                continue
            visited.add(nb)
            path.append(nb)
            if dfs(path, visited, not along_row):
                return True
            path.pop()
            visited.discard(nb)
        return False

    for start_with_row in (True, False):
        path = [start]
        if dfs(path, {start}, start_with_row):
            return path
    return None


def find_closed_loop(state: TransportationState) -> TransportationState:
    entering = state.modi.entering
    rows, cols = state.problem.shape
    loop = find_loop(entering, state.basis, rows, cols)
    if loop is None:
        raise ClosedLoopError(entering, len(state.basis))

    text = " -> ".join(f"{'+' if k % 2 == 0 else '-'}({r + 1},{c + 1})" for k, (r, c) in enumerate(loop))
    logger.debug("Loop for %s: %s", entering, loop)
    return replace(
        state,
        step=state.step + 1,
        explanation=f"Closed loop found: {text}",
        modi=replace(state.modi, loop=tuple(loop)),
    )


def calculate_theta(state: TransportationState) -> TransportationState:
    loop = state.modi.loop
    theta = float("inf")
    exiting = None
    for cell in loop[1::2]:
        value = allocation_value(state.allocations, *cell)
        if value < theta:
            theta, exiting = value, cell
    r, c = exiting
    return replace(
        state,
        step=state.step + 1,
        explanation=f"theta = {theta:g} (minimum value in negative cells). Exiting variable: x({r + 1},{c + 1})",
        modi=replace(state.modi, theta=theta, exiting=exiting),
    )


def update_allocation(state: TransportationState) -> TransportationState:
    modi = state.modi
    values: Dict[Cell, float] = {(a.row, a.col): a.value for a in state.allocations}
    for k, cell in enumerate(modi.loop):
        change = modi.theta if k % 2 == 0 else -modi.theta
        values[cell] = values.get(cell, 0.0) + change

    allocations = tuple(Allocation(r, c, v) for (r, c), v in values.items() if v > ZERO_ALLOCATION)
    basis = tuple(modi.entering if cell == modi.exiting else cell for cell in state.basis)
    total = calculate_total_cost(allocations, state.problem.costs)
    rows, cols = state.problem.shape
    logger.info("MODI reallocation: theta=%g, %s enters, %s exits, cost %g -> %g",
                modi.theta, modi.entering, modi.exiting, state.total_cost, total)

    return replace(
        state,
        step=state.step + 1,
        allocations=allocations,
        total_cost=total,
        basis=basis,
        is_optimal=None,
        explanation=(f"Allocations updated using theta = {modi.theta:g}. New total cost: {total:.2f}. "
                     "Starting new MODI iteration to check optimality..."),
        modi=MODIData.fresh(rows, cols),
    )


# ----------------------------- driver -----------------------------

def perform_modi_step(state: TransportationState) -> TransportationState:
    if state.is_terminal and state.method == Method.MODI:
        return state
    if state.modi is None:
        return initialize_modi(state)

    modi = state.modi
    if not modi.duals_known():
        return calculate_dual_variables(state)
    if state.is_optimal is None:
        return calculate_opportunity_costs(state)
    if state.is_optimal:
        logger.info("MODI optimal, total cost %g", state.total_cost)
        return replace(
            state,
            status=Status.COMPLETE,
            explanation=f"MODI optimization complete - solution is optimal! Total cost: {state.total_cost:.2f}",
        )
    if modi.entering is None:
        return find_entering_variable(state)
    if modi.loop is None:
        return find_closed_loop(state)
    if modi.theta is None:
        return calculate_theta(state)
    return update_allocation(state)


def solve_modi(state: TransportationState, max_steps: int = MAX_STEPS) -> List[TransportationState]:
    return run_trace(state, perform_modi_step,
                     lambda s: s.is_terminal and s.method == Method.MODI, max_steps)
