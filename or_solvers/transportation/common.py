"""State model shared by the transportation solvers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from ..errors import ProblemDefinitionError
from ..trace import readonly

logger = logging.getLogger(__name__)

EPS = 1e-9

Cell = Tuple[int, int]


class Method(str, Enum):
    NWC = "NWC"
    LCM = "LCM"
    VAM = "VAM"
    MODI = "MODI"


INITIAL_METHODS = (Method.NWC, Method.LCM, Method.VAM)

METHOD_NAMES = {
    Method.NWC: "Northwest Corner Method",
    Method.LCM: "Least Cost Method",
    Method.VAM: "Vogel's Approximation Method",
    Method.MODI: "MODI Method",
}

# CLI spellings accepted for each method
METHOD_ALIASES = {
    "nw": Method.NWC, "nwc": Method.NWC, "northwest": Method.NWC,
    "lcm": Method.LCM, "least": Method.LCM, "min": Method.LCM,
    "vam": Method.VAM, "vogel": Method.VAM,
    "modi": Method.MODI,
}


class Status(str, Enum):
    INITIAL = "Initial"
    RUNNING = "Running"
    COMPLETE = "Complete"


def method_name(method: Method) -> str:
    return METHOD_NAMES[Method(method)]


def resolve_method(method) -> Method:
    if isinstance(method, Method):
        return method
    key = str(method).strip()
    if key.upper() in Method.__members__:
        return Method[key.upper()]
    try:
        return METHOD_ALIASES[key.lower()]
    except KeyError:
        raise ProblemDefinitionError(f"unknown transportation method {method!r}") from None


# ----------------------------- records -----------------------------

@dataclass(frozen=True, eq=False)
class TransportationProblem:
    supply: np.ndarray
    demand: np.ndarray
    costs: np.ndarray
    supply_labels: Tuple[str, ...] = ()
    demand_labels: Tuple[str, ...] = ()

    def __post_init__(self):
        supply = readonly(self.supply)
        demand = readonly(self.demand)
        costs = readonly(self.costs)
        if supply.ndim != 1 or demand.ndim != 1 or not len(supply) or not len(demand):
            raise ProblemDefinitionError("supply and demand must be non-empty vectors")
        if costs.shape != (len(supply), len(demand)):
            raise ProblemDefinitionError(
                f"cost matrix shape {costs.shape} does not match {len(supply)} sources x {len(demand)} destinations"
            )
        if (supply < 0).any() or (demand < 0).any():
            raise ProblemDefinitionError("supply and demand must be non-negative")
        supply_labels = tuple(self.supply_labels) or tuple(f"S{i + 1}" for i in range(len(supply)))
        demand_labels = tuple(self.demand_labels) or tuple(f"D{j + 1}" for j in range(len(demand)))
        if len(supply_labels) != len(supply) or len(demand_labels) != len(demand):
            raise ProblemDefinitionError("one label is required per source and per destination")
        object.__setattr__(self, "supply", supply)
        object.__setattr__(self, "demand", demand)
        object.__setattr__(self, "costs", costs)
        object.__setattr__(self, "supply_labels", supply_labels)
        object.__setattr__(self, "demand_labels", demand_labels)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.costs.shape

    def is_balanced(self) -> bool:
        return abs(float(self.supply.sum()) - float(self.demand.sum())) < EPS


@dataclass(frozen=True)
class Allocation:
    row: int
    col: int
    value: float


@dataclass(frozen=True, eq=False)
class MODIData:
    u: Tuple[Optional[float], ...]
    v: Tuple[Optional[float], ...]
    opportunity_costs: Optional[np.ndarray] = None
    most_negative: Optional[Tuple[int, int, float]] = None
    entering: Optional[Cell] = None
    exiting: Optional[Cell] = None
    loop: Optional[Tuple[Cell, ...]] = None
    theta: Optional[float] = None

    @classmethod
    def fresh(cls, rows: int, cols: int) -> "MODIData":
        return cls(u=(None,) * rows, v=(None,) * cols)

    def duals_known(self) -> bool:
        return all(x is not None for x in self.u) and all(x is not None for x in self.v)


@dataclass(frozen=True, eq=False)
class TransportationState:
    problem: TransportationProblem
    allocations: Tuple[Allocation, ...]
    total_cost: float
    step: int
    method: Method
    status: Status
    explanation: str
    remaining_supply: np.ndarray
    remaining_demand: np.ndarray
    is_optimal: Optional[bool] = None
    degenerate: bool = False
    basis: Tuple[Cell, ...] = ()
    modi: Optional[MODIData] = None

    @property
    def is_terminal(self) -> bool:
        return self.status == Status.COMPLETE


# ----------------------------- helpers -----------------------------

def balance_problem(problem: TransportationProblem) -> TransportationProblem:
    if problem.is_balanced():
        return problem
    s_sum = float(problem.supply.sum())
    d_sum = float(problem.demand.sum())
    costs = np.array(problem.costs, dtype=float)
    supply = np.array(problem.supply, dtype=float)
    demand = np.array(problem.demand, dtype=float)
    supply_labels = list(problem.supply_labels)
    demand_labels = list(problem.demand_labels)
    if s_sum > d_sum:
        costs = np.hstack([costs, np.zeros((costs.shape[0], 1), dtype=float)])
        demand = np.append(demand, s_sum - d_sum)
        demand_labels.append("Dummy")
    else:
        costs = np.vstack([costs, np.zeros((1, costs.shape[1]), dtype=float)])
        supply = np.append(supply, d_sum - s_sum)
        supply_labels.append("Dummy")
    logger.info("Balanced problem with a dummy %s (%g units)",
                "column" if s_sum > d_sum else "row", abs(s_sum - d_sum))
    return TransportationProblem(supply, demand, costs, tuple(supply_labels), tuple(demand_labels))


def initialize_transportation_problem(problem: TransportationProblem, method) -> TransportationState:
    method = resolve_method(method)
    if method not in INITIAL_METHODS:
        raise ProblemDefinitionError("MODI starts from a completed initial solution; use initialize_modi")
    balanced = balance_problem(problem)
    return TransportationState(
        problem=balanced,
        allocations=(),
        total_cost=0.0,
        step=0,
        method=method,
        status=Status.INITIAL,
        explanation=f"Starting {method_name(method)} to find initial basic feasible solution.",
        remaining_supply=readonly(balanced.supply),
        remaining_demand=readonly(balanced.demand),
    )


def is_allocation_complete(state: TransportationState) -> bool:
    return bool((np.abs(state.remaining_supply) < EPS).all() and (np.abs(state.remaining_demand) < EPS).all())


def calculate_total_cost(allocations: Iterable[Allocation], costs: np.ndarray) -> float:
    return float(sum(costs[a.row, a.col] * a.value for a in allocations))


def find_allocation(allocations: Sequence[Allocation], row: int, col: int) -> Optional[Allocation]:
    for a in allocations:
        if a.row == row and a.col == col:
            return a
    return None


def allocation_value(allocations: Sequence[Allocation], row: int, col: int) -> float:
    a = find_allocation(allocations, row, col)
    return a.value if a is not None else 0.0


def available_rows(state: TransportationState) -> np.ndarray:
    return state.remaining_supply > EPS


def available_cols(state: TransportationState) -> np.ndarray:
    return state.remaining_demand > EPS


def check_degeneracy(state: TransportationState) -> bool:
    rows, cols = state.problem.shape
    basic = sum(1 for a in state.allocations if a.value > EPS)
    return basic < rows + cols - 1


def finish(state: TransportationState, explanation: str) -> TransportationState:
    return replace(state, status=Status.COMPLETE, explanation=explanation,
                   degenerate=check_degeneracy(state))


def allocate(state: TransportationState, row: int, col: int, explanation: str) -> TransportationState:
    """Ship ``min(remaining supply, remaining demand)`` through one cell."""
    qty = float(min(state.remaining_supply[row], state.remaining_demand[col]))
    allocations = list(state.allocations)
    existing = find_allocation(allocations, row, col)
    if existing is not None:
        allocations[allocations.index(existing)] = Allocation(row, col, existing.value + qty)
    else:
        allocations.append(Allocation(row, col, qty))

    s_vec = np.array(state.remaining_supply, dtype=float)
    d_vec = np.array(state.remaining_demand, dtype=float)
    s_vec[row] -= qty
    d_vec[col] -= qty
    s_vec[np.abs(s_vec) < EPS] = 0.0
    d_vec[np.abs(d_vec) < EPS] = 0.0

    step = state.step + 1
    problem = state.problem
    prefix = f"Step {step}: {explanation} " if explanation else f"Step {step}: "
    text = (
        f"{prefix}Allocate {qty:g} units to cell "
        f"({problem.supply_labels[row]}, {problem.demand_labels[col]}) at cost {problem.costs[row, col]:g}. "
        f"Remaining supply[{row}]: {s_vec[row]:g}, Remaining demand[{col}]: {d_vec[col]:g}"
    )
    logger.debug("%s: allocate %g to (%d, %d)", state.method.value, qty, row, col)

    new_state = replace(
        state,
        allocations=tuple(allocations),
        total_cost=calculate_total_cost(allocations, problem.costs),
        step=step,
        status=Status.RUNNING,
        explanation=text,
        remaining_supply=readonly(s_vec),
        remaining_demand=readonly(d_vec),
    )
    if is_allocation_complete(new_state):
        return replace(new_state, status=Status.COMPLETE, degenerate=check_degeneracy(new_state))
    return new_state
