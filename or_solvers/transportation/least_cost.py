from __future__ import annotations

from typing import List, Optional, Tuple

from ..trace import MAX_STEPS, run_trace
from .common import (
    TransportationState,
    allocate,
    available_cols,
    available_rows,
    finish,
    is_allocation_complete,
)


def _cheapest_cell(state: TransportationState) -> Optional[Tuple[int, int]]:
    # row-major scan, strict < keeps the first of equal costs
    costs = state.problem.costs
    rows = available_rows(state)
    cols = available_cols(state)
    best = None
    best_cost = float("inf")
    for r in range(costs.shape[0]):
        if not rows[r]:
            continue
        for c in range(costs.shape[1]):
            if cols[c] and costs[r, c] < best_cost:
                best_cost = costs[r, c]
                best = (r, c)
    return best


def perform_least_cost_step(state: TransportationState) -> TransportationState:
    if state.is_terminal:
        return state
    if is_allocation_complete(state):
        return finish(state, "Least Cost Method completed. All supply and demand satisfied.")

    cell = _cheapest_cell(state)
    if cell is None:
        return finish(state, "No more allocations possible.")
    r, c = cell
    return allocate(state, r, c, f"Lowest available cost is {state.problem.costs[r, c]:g}.")


def solve_least_cost(state: TransportationState, max_steps: int = MAX_STEPS) -> List[TransportationState]:
    return run_trace(state, perform_least_cost_step, lambda s: s.is_terminal, max_steps)
