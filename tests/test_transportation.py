import numpy as np
import pytest

from or_solvers.errors import ProblemDefinitionError
from or_solvers.report import allocation_matrix
from or_solvers.transportation import (
    Method,
    Status,
    TransportationProblem,
    balance_problem,
    calculate_penalties,
    initialize_modi,
    initialize_transportation_problem,
    perform_transportation_step,
    resolve_method,
    solve_transportation_problem,
)


def _cells(state):
    return {(a.row, a.col): a.value for a in state.allocations}


def _assert_feasible(state):
    matrix = allocation_matrix(state)
    assert np.allclose(matrix.sum(axis=1), state.problem.supply)
    assert np.allclose(matrix.sum(axis=0), state.problem.demand)
    assert all(a.value > 0 for a in state.allocations)


def test_northwest_corner(transport_problem):
    trace = solve_transportation_problem(initialize_transportation_problem(transport_problem, Method.NWC))
    final = trace[-1]
    assert final.status == Status.COMPLETE
    assert len(trace) == 6
    assert _cells(final) == {(0, 0): 25, (1, 0): 5, (1, 1): 25, (1, 2): 5, (2, 2): 40}
    assert final.total_cost == pytest.approx(1250)
    assert not final.degenerate
    _assert_feasible(final)


def test_least_cost(transport_problem):
    final = solve_transportation_problem(initialize_transportation_problem(transport_problem, "lcm"))[-1]
    assert _cells(final) == {(0, 1): 25, (1, 0): 30, (1, 2): 5, (2, 2): 40}
    assert final.total_cost == pytest.approx(1125)
    # supply and demand ran out together in the first step
    assert final.degenerate
    _assert_feasible(final)


def test_vogel(transport_problem):
    trace = solve_transportation_problem(initialize_transportation_problem(transport_problem, Method.VAM))
    final = trace[-1]
    assert _cells(final) == {(2, 1): 25, (1, 0): 30, (0, 2): 25, (1, 2): 5, (2, 2): 15}
    assert final.total_cost == pytest.approx(1050)
    assert "Highest penalty (5)" in trace[1].explanation
    _assert_feasible(final)


def test_first_vam_penalties(transport_problem):
    state = initialize_transportation_problem(transport_problem, Method.VAM)
    penalties = calculate_penalties(state)
    top = penalties[0]
    assert (top.kind, top.index, top.penalty) == ("row", 2, 5.0)
    by_line = {(p.kind, p.index): p.penalty for p in penalties}
    assert by_line[("row", 0)] == 2.0
    assert by_line[("col", 0)] == 1.0


def test_steps_do_not_modify_input(transport_problem):
    state = initialize_transportation_problem(transport_problem, Method.NWC)
    nxt = perform_transportation_step(state)
    assert state.allocations == ()
    assert list(state.remaining_supply) == [25, 35, 40]
    assert nxt.step == 1
    assert nxt.explanation.startswith("Step 1: Allocate 25 units")
    assert not nxt.remaining_supply.flags.writeable


@pytest.mark.parametrize("method", [Method.NWC, Method.LCM, Method.VAM])
def test_terminal_state_is_returned_unchanged(transport_problem, method):
    final = solve_transportation_problem(initialize_transportation_problem(transport_problem, method))[-1]
    assert perform_transportation_step(final) is final


class TestBalancing:
    def test_surplus_supply_adds_dummy_column(self):
        problem = TransportationProblem(np.array([30, 20]), np.array([10, 25]), np.array([[1, 2], [3, 4]]))
        balanced = balance_problem(problem)
        assert balanced.shape == (2, 3)
        assert balanced.demand_labels[-1] == "Dummy"
        assert balanced.demand[-1] == 15
        assert (balanced.costs[:, -1] == 0).all()

    def test_surplus_demand_adds_dummy_row(self):
        problem = TransportationProblem(np.array([10, 5]), np.array([10, 25]), np.array([[1, 2], [3, 4]]))
        balanced = balance_problem(problem)
        assert balanced.shape == (3, 2)
        assert balanced.supply_labels[-1] == "Dummy"
        assert balanced.supply[-1] == 20

    def test_balanced_problem_is_kept(self, transport_problem):
        assert transport_problem.is_balanced()
        assert balance_problem(transport_problem) is transport_problem

    def test_dummy_line_balances_totals(self):
        problem = TransportationProblem(np.array([30, 20]), np.array([10, 25]), np.array([[1, 2], [3, 4]]))
        assert not problem.is_balanced()
        assert balance_problem(problem).is_balanced()

    @pytest.mark.parametrize("method", [Method.NWC, Method.LCM, Method.VAM])
    def test_unbalanced_problem_solves(self, method):
        problem = TransportationProblem(np.array([30, 20]), np.array([10, 25]), np.array([[1, 2], [3, 4]]))
        final = solve_transportation_problem(initialize_transportation_problem(problem, method))[-1]
        assert final.status == Status.COMPLETE
        _assert_feasible(final)


class TestValidation:
    def test_shape_mismatch(self):
        with pytest.raises(ProblemDefinitionError, match="does not match"):
            TransportationProblem(np.array([1, 2]), np.array([3]), np.array([[1, 2]]))

    def test_negative_supply(self):
        with pytest.raises(ProblemDefinitionError, match="non-negative"):
            TransportationProblem(np.array([-1]), np.array([-1]), np.array([[1]]))

    def test_label_count(self):
        with pytest.raises(ProblemDefinitionError, match="one label"):
            TransportationProblem(np.array([1]), np.array([1]), np.array([[1]]), ("A", "B"))

    def test_modi_is_not_an_initial_method(self, transport_problem):
        with pytest.raises(ProblemDefinitionError, match="initialize_modi"):
            initialize_transportation_problem(transport_problem, Method.MODI)


@pytest.mark.parametrize(
    "text, method",
    [("nw", Method.NWC), ("northwest", Method.NWC), ("least", Method.LCM), ("Vogel", Method.VAM),
     ("VAM", Method.VAM), ("modi", Method.MODI)],
)
def test_resolve_method(text, method):
    assert resolve_method(text) is method


def test_resolve_unknown_method():
    with pytest.raises(ProblemDefinitionError, match="unknown transportation method"):
        resolve_method("simplex")


def test_dispatch_follows_method(transport_problem):
    final = solve_transportation_problem(initialize_transportation_problem(transport_problem, Method.VAM))[-1]
    modi_trace = solve_transportation_problem(initialize_modi(final))
    assert all(s.method == Method.MODI for s in modi_trace)
    assert modi_trace[-1].is_optimal


class TestTies:
    def test_least_cost_takes_first_cheapest_cell(self):
        problem = TransportationProblem(np.array([5, 5]), np.array([5, 5]), np.array([[3, 1], [1, 3]]))
        state = perform_transportation_step(initialize_transportation_problem(problem, Method.LCM))
        assert _cells(state) == {(0, 1): 5}

    def test_vogel_prefers_rows_on_equal_penalty(self):
        problem = TransportationProblem(np.array([5, 5]), np.array([5, 5]), np.array([[1, 3], [3, 1]]))
        state = initialize_transportation_problem(problem, Method.VAM)
        penalties = calculate_penalties(state)
        assert [(p.kind, p.index) for p in penalties] == [("row", 0), ("row", 1), ("col", 0), ("col", 1)]
        assert {p.penalty for p in penalties} == {2.0}
        step = perform_transportation_step(state)
        assert _cells(step) == {(0, 0): 5}
        assert "in row S1" in step.explanation

    @pytest.mark.parametrize("method", [Method.NWC, Method.LCM, Method.VAM])
    def test_trace_starts_with_the_input(self, transport_problem, method):
        state = initialize_transportation_problem(transport_problem, method)
        assert solve_transportation_problem(state)[0] is state
