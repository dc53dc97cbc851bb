"""Transportation problem: NWC, LCM and VAM initial solutions, MODI refinement."""

from __future__ import annotations

from typing import Callable, Dict, List

from ..trace import MAX_STEPS
from .common import (
    INITIAL_METHODS,
    Allocation,
    Method,
    MODIData,
    Status,
    TransportationProblem,
    TransportationState,
    balance_problem,
    calculate_total_cost,
    check_degeneracy,
    find_allocation,
    initialize_transportation_problem,
    is_allocation_complete,
    method_name,
    resolve_method,
)
from .least_cost import perform_least_cost_step, solve_least_cost
from .modi import complete_basis, find_loop, initialize_modi, perform_modi_step, solve_modi
from .northwest import perform_northwest_corner_step, solve_northwest_corner
from .vogel import VAMPenalty, calculate_penalties, perform_vam_step, solve_vam

Step = Callable[[TransportationState], TransportationState]

STEP_FUNCTIONS: Dict[Method, Step] = {
    Method.NWC: perform_northwest_corner_step,
    Method.LCM: perform_least_cost_step,
    Method.VAM: perform_vam_step,
    Method.MODI: perform_modi_step,
}

SOLVE_FUNCTIONS: Dict[Method, Callable[..., List[TransportationState]]] = {
    Method.NWC: solve_northwest_corner,
    Method.LCM: solve_least_cost,
    Method.VAM: solve_vam,
    Method.MODI: solve_modi,
}


def perform_transportation_step(state: TransportationState) -> TransportationState:
    return STEP_FUNCTIONS[state.method](state)


def solve_transportation_problem(state: TransportationState, max_steps: int = MAX_STEPS) -> List[TransportationState]:
    return SOLVE_FUNCTIONS[state.method](state, max_steps)


__all__ = [
    "INITIAL_METHODS",
    "Allocation",
    "Method",
    "MODIData",
    "Status",
    "TransportationProblem",
    "TransportationState",
    "VAMPenalty",
    "balance_problem",
    "calculate_penalties",
    "calculate_total_cost",
    "check_degeneracy",
    "complete_basis",
    "find_allocation",
    "find_loop",
    "initialize_modi",
    "initialize_transportation_problem",
    "is_allocation_complete",
    "method_name",
    "perform_transportation_step",
    "resolve_method",
    "solve_transportation_problem",
]
