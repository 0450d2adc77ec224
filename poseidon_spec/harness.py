"""
Equivalence and cost-measurement harness.

The ledger that the hash is ultimately deployed to is an external
collaborator. It is reached only through the narrow LedgerExecutor
interface below; LocalExecutor implements it in-process with an analytic
cost model so the core can be benchmarked and cross-checked without a node.

Cost figures are benchmarking output only. No behaviour of the hash
depends on them.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from .field import FieldElement, FieldLike, to_field_elements
from .parameters import ParameterSet, get_parameters
from .poseidon import T3_WIDTH, Hasher, Variant

logger = logging.getLogger(__name__)


class CostBudgetExceeded(RuntimeError):
    """A computation needed more cost units than its budget allowed."""

    def __init__(self, cost_used: int, cost_budget: int):
        super().__init__(f"cost {cost_used} exceeds budget {cost_budget}")
        self.cost_used = cost_used
        self.cost_budget = cost_budget


class EquivalenceError(AssertionError):
    """Two configurations produced different digests for the same inputs."""


# --- Computations ---

@dataclass(frozen=True)
class Computation:
    """
    One hash invocation, as submitted to an executor.

    Attributes:
        inputs: Field elements to hash
        arity: State width t
        variant: Permutation schedule
    """
    inputs: Tuple[FieldElement, ...]
    arity: int = T3_WIDTH
    variant: Variant = Variant.V1

    @classmethod
    def build(
        cls,
        inputs: Sequence[FieldLike],
        arity: Optional[int] = None,
        variant: Variant = Variant.V1,
    ) -> "Computation":
        elements = tuple(to_field_elements(inputs))
        return cls(elements, len(elements) + 1 if arity is None else arity, variant)

    @property
    def hasher(self) -> Hasher:
        return Hasher(arity=self.arity, variant=self.variant)


@dataclass(frozen=True)
class ExecutionResult:
    result: FieldElement
    cost_used: int


class LedgerExecutor(Protocol):
    """Anything that can run a Computation and report what it cost."""

    def execute(self, computation: Computation, cost_budget: int) -> ExecutionResult:
        ...


# --- Cost model ---

# Unit costs per operation, in the spirit of EVM gas: a modular op costs
# more than a plain one, and every round pays loop/dispatch overhead.
COST_WEIGHTS: Dict[str, int] = {
    "addmod": 8,
    "mulmod": 8,
    "add": 3,
    "mul": 5,
    "mod": 5,
    "round": 30,
}


def operation_counts(params: ParameterSet, variant: Variant) -> Dict[str, int]:
    """Count the operations one permutation performs under a schedule."""
    t = params.t
    full = params.full_rounds
    partial = params.partial_rounds
    sboxes = full * t + partial
    counts = dict.fromkeys(COST_WEIGHTS, 0)

    if variant is Variant.V1:
        counts["addmod"] = params.n_rounds * (t + t * (t - 1))
        counts["mulmod"] = 3 * sboxes + params.n_rounds * t * t
        counts["round"] = params.n_rounds
    else:
        # Lazy reduction: plain adds/muls, one reduction per S-box step and
        # per linear-layer output
        counts["add"] = params.n_rounds * (t + t * (t - 1))
        counts["mul"] = 3 * sboxes + params.n_rounds * t * t
        counts["mod"] = 3 * sboxes + params.n_rounds * t
        # The unrolled schedule has no per-round dispatch
        counts["round"] = 0 if variant is Variant.T3 else params.n_rounds
    return counts


def estimate_cost(params: ParameterSet, variant: Variant) -> int:
    counts = operation_counts(params, variant)
    return sum(COST_WEIGHTS[op] * n for op, n in counts.items())


class LocalExecutor:
    """In-process LedgerExecutor backed by the pure hash functions."""

    def __init__(self, weights: Optional[Dict[str, int]] = None):
        self.weights = dict(COST_WEIGHTS if weights is None else weights)
        self.history: List[Tuple[Computation, ExecutionResult]] = []

    def cost_of(self, computation: Computation) -> int:
        counts = operation_counts(get_parameters(computation.arity), computation.variant)
        return sum(self.weights.get(op, 0) * n for op, n in counts.items())

    def execute(self, computation: Computation, cost_budget: int) -> ExecutionResult:
        cost = self.cost_of(computation)
        if cost > cost_budget:
            raise CostBudgetExceeded(cost, cost_budget)
        result = ExecutionResult(computation.hasher.hash(computation.inputs), cost)
        self.history.append((computation, result))
        return result


# --- Equivalence checks ---

@dataclass
class EquivalenceReport:
    """
    Digests of one input vector under several configurations.

    Attributes:
        inputs: The hashed field elements
        digests: Digest per configuration label
        expected: Reference digest, if one was supplied
    """
    inputs: Tuple[FieldElement, ...]
    digests: Dict[str, FieldElement] = field(default_factory=dict)
    expected: Optional[FieldElement] = None

    @property
    def consistent(self) -> bool:
        values = set(self.digests.values())
        if self.expected is not None:
            values.add(self.expected)
        return len(values) <= 1

    def raise_for_divergence(self) -> None:
        if self.consistent:
            return
        lines = [f"  {label}: {digest}" for label, digest in self.digests.items()]
        if self.expected is not None:
            lines.append(f"  expected: {self.expected}")
        raise EquivalenceError("digests diverge:\n" + "\n".join(lines))


def default_hashers(arity: int) -> Dict[str, Hasher]:
    """Every variant applicable to a width, keyed by variant name."""
    hashers = {}
    for variant in Variant:
        if variant is Variant.T3 and arity != T3_WIDTH:
            continue
        hashers[variant.value] = Hasher(arity=arity, variant=variant)
    return hashers


def check_equivalence(
    inputs: Sequence[FieldLike],
    hashers: Optional[Dict[str, Hasher]] = None,
    expected: Optional[FieldLike] = None,
) -> EquivalenceReport:
    """
    Hash the same inputs under each configuration and compare.

    Args:
        inputs: Field elements to hash
        hashers: Configurations by label; defaults to all variants at
            width len(inputs) + 1
        expected: Optional reference digest every configuration must hit

    Raises:
        EquivalenceError: If any two digests differ, or one misses expected
    """
    elements = tuple(to_field_elements(inputs))
    if hashers is None:
        hashers = default_hashers(len(elements) + 1)
    report = EquivalenceReport(
        inputs=elements,
        expected=None if expected is None else FieldElement.parse(expected),
    )
    for label, hasher in hashers.items():
        report.digests[label] = hasher.hash(elements)

    if not report.consistent:
        logger.error("equivalence check failed for inputs %s", [str(e) for e in elements])
    report.raise_for_divergence()
    return report


def measure_costs(
    executor: LedgerExecutor,
    computations: Iterable[Computation],
    cost_budget: int,
) -> Dict[Variant, int]:
    """
    Benchmarking hook: run each computation and record its cost per variant.

    Digests are cross-checked on the way, since a cheaper schedule that
    changes the output is a bug rather than an optimisation.
    """
    costs: Dict[Variant, int] = {}
    digests: Dict[Variant, FieldElement] = {}
    for computation in computations:
        outcome = executor.execute(computation, cost_budget)
        costs[computation.variant] = outcome.cost_used
        digests[computation.variant] = outcome.result
        logger.info("%s used %d cost units", computation.variant.name, outcome.cost_used)

    if len(set(digests.values())) > 1:
        raise EquivalenceError(
            "digests diverge: " + ", ".join(f"{v.name}={d}" for v, d in digests.items())
        )
    return costs
