"""Equivalence harness and local executor tests."""

import logging

import pytest

from .field import FieldElement
from .harness import (
    COST_WEIGHTS,
    Computation,
    CostBudgetExceeded,
    EquivalenceError,
    ExecutionResult,
    LocalExecutor,
    check_equivalence,
    default_hashers,
    estimate_cost,
    measure_costs,
    operation_counts,
)
from .parameters import get_parameters
from .poseidon import Hasher, Variant
from .test_vectors import T3_EXPECTED, T3_INPUTS

# Enough for any width-3 schedule under the default weights
BUDGET = 620000


def test_variants_equivalent_on_integration_vector():
    report = check_equivalence(T3_INPUTS, expected=T3_EXPECTED)
    assert report.consistent
    assert set(report.digests) == {"v1", "v2", "t3"}
    assert all(d == FieldElement(T3_EXPECTED) for d in report.digests.values())


def test_default_hashers_skip_t3_off_width():
    assert set(default_hashers(3)) == {"v1", "v2", "t3"}
    assert set(default_hashers(5)) == {"v1", "v2"}


def test_wrong_expectation_raises(caplog):
    with caplog.at_level(logging.ERROR, logger="poseidon_spec.harness"):
        with pytest.raises(EquivalenceError) as exc:
            check_equivalence(T3_INPUTS, expected=T3_EXPECTED + 1)
    assert "expected" in str(exc.value)
    assert any("equivalence check failed" in r.getMessage() for r in caplog.records)


def test_divergent_configurations_raise():
    hashers = {"narrow": Hasher(arity=3), "wide": Hasher(arity=4)}
    with pytest.raises(EquivalenceError):
        check_equivalence([1, 2], hashers)


def test_computation_build():
    computation = Computation.build(T3_INPUTS, variant=Variant.T3)
    assert computation.arity == 3
    assert computation.inputs[1] == FieldElement(0x29)
    assert computation.hasher == Hasher(arity=3, variant=Variant.T3)


class TestLocalExecutor:

    def test_execute(self):
        executor = LocalExecutor()
        outcome = executor.execute(Computation.build(T3_INPUTS), BUDGET)
        assert isinstance(outcome, ExecutionResult)
        assert outcome.result.value == T3_EXPECTED
        assert outcome.cost_used == estimate_cost(get_parameters(3), Variant.V1)
        assert len(executor.history) == 1

    def test_budget_exceeded(self):
        executor = LocalExecutor()
        with pytest.raises(CostBudgetExceeded) as exc:
            executor.execute(Computation.build([1, 2]), cost_budget=100)
        assert exc.value.cost_budget == 100
        assert exc.value.cost_used > 100
        assert executor.history == []

    def test_custom_weights(self):
        executor = LocalExecutor(weights={"round": 1})
        outcome = executor.execute(Computation.build([1, 2]), BUDGET)
        assert outcome.cost_used == get_parameters(3).n_rounds


def test_cost_model_counts():
    params = get_parameters(3)
    v1 = operation_counts(params, Variant.V1)
    assert v1["mulmod"] == 3 * (8 * 3 + 57) + 65 * 9
    assert v1["addmod"] == 65 * (3 + 6)
    assert set(v1) == set(COST_WEIGHTS)
    assert estimate_cost(params, Variant.V1) == 13254
    assert estimate_cost(params, Variant.V2) == 10035
    assert estimate_cost(params, Variant.T3) == 8085


def test_measure_costs_orders_variants():
    computations = [Computation.build(T3_INPUTS, variant=v) for v in Variant]
    costs = measure_costs(LocalExecutor(), computations, BUDGET)
    assert costs[Variant.T3] < costs[Variant.V2] < costs[Variant.V1]


class _LyingExecutor:
    """Executor whose results depend on the variant."""

    def execute(self, computation, cost_budget):
        digest = {Variant.V1: 1, Variant.V2: 2}[computation.variant]
        return ExecutionResult(FieldElement(digest), 1)


def test_measure_costs_detects_divergence():
    computations = [Computation.build([1, 2], variant=v) for v in (Variant.V1, Variant.V2)]
    with pytest.raises(EquivalenceError):
        measure_costs(_LyingExecutor(), computations, BUDGET)
