from dataclasses import replace

import numpy as np
import pytest

from or_solvers.errors import ClosedLoopError, DegenerateBasisError, InvalidStateError
from or_solvers.transportation import (
    Allocation,
    Method,
    Status,
    complete_basis,
    find_loop,
    initialize_modi,
    initialize_transportation_problem,
    solve_transportation_problem,
)
from or_solvers.transportation.modi import (
    calculate_opportunity_costs,
    calculate_theta,
    find_closed_loop,
    perform_modi_step,
    solve_modi,
)

OPTIMUM = {(0, 2): 25, (1, 0): 30, (1, 2): 5, (2, 1): 25, (2, 2): 15}


def _initial(problem, method):
    return solve_transportation_problem(initialize_transportation_problem(problem, method))[-1]


def _cells(state):
    return {(a.row, a.col): a.value for a in state.allocations}


@pytest.mark.parametrize("method", [Method.NWC, Method.LCM, Method.VAM])
def test_every_start_reaches_the_optimum(transport_problem, method):
    initial = _initial(transport_problem, method)
    trace = solve_modi(initialize_modi(initial))
    final = trace[-1]
    assert final.status == Status.COMPLETE
    assert final.method == Method.MODI
    assert final.is_optimal
    assert final.total_cost == pytest.approx(1050)
    assert final.total_cost <= initial.total_cost + 1e-9
    assert _cells(final) == pytest.approx(OPTIMUM)
    matrix = np.zeros((3, 3))
    for a in final.allocations:
        matrix[a.row, a.col] = a.value
    assert np.allclose(matrix.sum(axis=1), [25, 35, 40])
    assert np.allclose(matrix.sum(axis=0), [30, 25, 45])


def test_cost_sequence_from_northwest(transport_problem):
    trace = solve_modi(initialize_modi(_initial(transport_problem, Method.NWC)))
    updates = [s.total_cost for s in trace if s.explanation.startswith("Allocations updated")]
    assert updates == [pytest.approx(1100), pytest.approx(1050)]
    entering = [s.modi.entering for s in trace if s.modi is not None and s.modi.theta is not None]
    assert entering == [(2, 1), (0, 2)]


def test_first_duals_from_northwest(transport_problem):
    state = initialize_modi(_initial(transport_problem, Method.NWC))
    state = perform_modi_step(state)
    assert state.modi.u == (0.0, 1.0, 4.0)
    assert state.modi.v == (8.0, 11.0, 12.0)
    state = perform_modi_step(state)
    assert state.is_optimal is False
    assert state.modi.most_negative == (2, 1, -6.0)


def test_degenerate_start_is_completed(transport_problem):
    initial = _initial(transport_problem, Method.LCM)
    state = initialize_modi(initial)
    assert (0, 0) in state.basis
    assert len(state.basis) == 5
    assert "Degenerate solution" in state.explanation

    trace = solve_modi(state)
    # the first reallocation moves zero units through the added cell
    thetas = [s.modi.theta for s in trace if s.modi is not None and s.modi.theta is not None]
    assert thetas[0] == 0
    assert trace[-1].total_cost == pytest.approx(1050)


def test_optimal_start_is_left_alone(transport_problem):
    initial = _initial(transport_problem, Method.VAM)
    trace = solve_modi(initialize_modi(initial))
    assert len(trace) == 4
    assert _cells(trace[-1]) == _cells(initial)
    final = trace[-1]
    assert perform_modi_step(final) is final


def test_opportunity_costs_of_optimal_solution(transport_problem):
    state = initialize_modi(_initial(transport_problem, Method.VAM))
    state = perform_modi_step(perform_modi_step(state))
    deltas = state.modi.opportunity_costs
    assert deltas[0, 0] == pytest.approx(2)
    assert deltas[1, 1] == pytest.approx(6)
    assert (deltas >= 0).all()
    assert not deltas.flags.writeable


def test_incomplete_solution_is_rejected(transport_problem):
    state = initialize_transportation_problem(transport_problem, Method.NWC)
    with pytest.raises(InvalidStateError, match="complete initial solution"):
        initialize_modi(state)


def test_unresolved_duals_raise(transport_problem):
    state = initialize_modi(_initial(transport_problem, Method.VAM))
    broken = replace(state, basis=((2, 1), (1, 0), (0, 2), (1, 2)))
    with pytest.raises(DegenerateBasisError, match="unresolved"):
        perform_modi_step(broken)


def test_missing_loop_raises(transport_problem):
    state = initialize_modi(_initial(transport_problem, Method.VAM))
    broken = replace(state, basis=((1, 1),), modi=replace(state.modi, entering=(0, 0)))
    with pytest.raises(ClosedLoopError, match="no closed loop"):
        find_closed_loop(broken)


class TestFindLoop:
    def test_rectangle(self):
        loop = find_loop((0, 0), [(0, 1), (1, 1), (1, 0)], 2, 2)
        assert loop[0] == (0, 0)
        assert len(loop) == 4
        assert set(loop) == {(0, 0), (0, 1), (1, 1), (1, 0)}

    def test_moves_alternate(self):
        basis = [(0, 0), (1, 0), (1, 1), (1, 2), (2, 2)]
        loop = find_loop((2, 1), basis, 3, 3)
        assert loop == [(2, 1), (2, 2), (1, 2), (1, 1)]
        for k in range(len(loop)):
            a, b = loop[k], loop[(k + 1) % len(loop)]
            assert a[0] == b[0] or a[1] == b[1]

    def test_no_loop(self):
        assert find_loop((0, 0), [(1, 1)], 2, 2) is None


class TestCompleteBasis:
    def test_spanning_allocations_need_nothing(self):
        costs = np.array([[1.0, 2.0], [3.0, 4.0]])
        allocations = [Allocation(0, 0, 5), Allocation(0, 1, 5), Allocation(1, 1, 5)]
        basis, added = complete_basis(allocations, costs)
        assert added == ()
        assert len(basis) == 3

    def test_cheapest_connecting_cell_is_added(self):
        costs = np.array([[1.0, 2.0], [3.0, 4.0]])
        basis, added = complete_basis([Allocation(0, 0, 5), Allocation(1, 1, 5)], costs)
        assert added == ((0, 1),)

    def test_cycle_is_rejected(self):
        costs = np.ones((2, 2))
        allocations = [Allocation(0, 0, 1), Allocation(0, 1, 1), Allocation(1, 0, 1), Allocation(1, 1, 1)]
        with pytest.raises(InvalidStateError, match="closed loop"):
            complete_basis(allocations, costs)


class TestTies:
    def test_first_most_negative_cell_enters(self, transport_problem):
        state = perform_modi_step(initialize_modi(_initial(transport_problem, Method.NWC)))
        # cells (1,2) and (3,2) both come out at -5 with u3 = 3
        tied = replace(state, modi=replace(state.modi, u=(0.0, 1.0, 3.0)))
        result = calculate_opportunity_costs(tied)
        assert result.modi.opportunity_costs[0, 1] == result.modi.opportunity_costs[2, 1] == -5
        assert result.modi.most_negative == (0, 1, -5.0)

    @pytest.mark.parametrize(
        "loop, exiting",
        [
            (((0, 1), (0, 0), (1, 0), (1, 1)), (0, 0)),
            (((0, 1), (1, 1), (1, 0), (0, 0)), (1, 1)),
        ],
    )
    def test_first_minus_cell_exits_on_equal_theta(self, transport_problem, loop, exiting):
        state = initialize_modi(_initial(transport_problem, Method.NWC))
        # x(1,1) and x(2,2) both hold 25 units
        state = replace(state, modi=replace(state.modi, entering=(0, 1), loop=loop))
        result = calculate_theta(state)
        assert result.modi.theta == 25
        assert result.modi.exiting == exiting

    def test_trace_starts_with_the_input(self, transport_problem):
        state = initialize_modi(_initial(transport_problem, Method.NWC))
        assert solve_modi(state)[0] is state
