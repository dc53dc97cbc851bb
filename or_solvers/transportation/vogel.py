"""Vogel's Approximation Method.

Each step computes a penalty for every row and column that still has
capacity: the gap between its two cheapest available cells (0 when only one
cell is left). The line with the largest penalty receives an allocation in
its cheapest available cell.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from ..trace import MAX_STEPS, run_trace
from .common import (
    TransportationState,
    allocate,
    available_cols,
    available_rows,
    finish,
    is_allocation_complete,
)


@dataclass(frozen=True)
class VAMPenalty:
    kind: str  # "row" or "col"
    index: int
    penalty: float
    costs: Tuple[float, ...]


def _penalty(values: np.ndarray) -> Tuple[float, Tuple[float, ...]]:
    ordered = tuple(sorted(float(v) for v in values))
    if len(ordered) < 2:
        return 0.0, ordered
    return ordered[1] - ordered[0], ordered


def calculate_penalties(state: TransportationState) -> List[VAMPenalty]:
    """Penalties for every open row then every open column, highest first."""
    costs = state.problem.costs
    rows = available_rows(state)
    cols = available_cols(state)
    penalties = []
    for r in np.flatnonzero(rows):
        value, ordered = _penalty(costs[r, cols])
        penalties.append(VAMPenalty("row", int(r), value, ordered))
    for c in np.flatnonzero(cols):
        value, ordered = _penalty(costs[rows, c])
        penalties.append(VAMPenalty("col", int(c), value, ordered))
    # sorted() is stable, so equal penalties keep rows-then-columns order
    return sorted(penalties, key=lambda p: -p.penalty)


def perform_vam_step(state: TransportationState) -> TransportationState:
    if state.is_terminal:
        return state
    if is_allocation_complete(state):
        return finish(state, "Vogel's Approximation Method completed. All supply and demand satisfied.")

    penalties = calculate_penalties(state)
    if not penalties:
        return finish(state, "No more allocations possible.")

    top = penalties[0]
    costs = state.problem.costs
    if top.kind == "row":
        row = top.index
        candidates = np.flatnonzero(available_cols(state))
        if not len(candidates):
            return finish(state, "No more allocations possible.")
        col = int(min(candidates, key=lambda c: costs[row, c]))
        line = state.problem.supply_labels[row]
    else:
        col = top.index
        candidates = np.flatnonzero(available_rows(state))
        if not len(candidates):
            return finish(state, "No more allocations possible.")
        row = int(min(candidates, key=lambda r: costs[r, col]))
        line = state.problem.demand_labels[col]

    kind = "row" if top.kind == "row" else "column"
    return allocate(
        state, row, col,
        f"Highest penalty ({top.penalty:g}) in {kind} {line}; cheapest cell costs {costs[row, col]:g}.",
    )


def solve_vam(state: TransportationState, max_steps: int = MAX_STEPS) -> List[TransportationState]:
    return run_trace(state, perform_vam_step, lambda s: s.is_terminal, max_steps)
