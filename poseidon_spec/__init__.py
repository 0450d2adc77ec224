"""
Poseidon hash over the BN254 scalar field.

A pure Python implementation of the Poseidon permutation (x^5 S-box,
8 full rounds, width-dependent partial rounds) that reproduces the iden3
circomlib hash bit for bit.

This package provides:
- BN254 scalar field elements (galois for matrix work)
- Grain LFSR round constants and Cauchy MDS matrices, cached per width
- The permutation under three interchangeable schedules (V1, V2, T3)
- Hash front-ends: generic, fixed width-3, multi-output and sponge
- An equivalence/cost harness for comparing schedules

Usage:
    from poseidon_spec import poseidon, poseidon_t3

    digest = poseidon([1, 2])
    assert digest == poseidon_t3(1, 2)
    print(digest.to_decimal(), digest.to_hex())
"""

# Errors
from .errors import (
    PoseidonError,
    InvalidEncoding,
    ArityMismatch,
    InputTooLarge,
    WeakParameters,
)

# Field arithmetic
from .field import (
    BN254_PRIME,
    GF,
    FieldElement,
    to_field_elements,
)

# Parameters
from .constants import ALPHA, ROUNDS_F, ROUNDS_P
from .parameters import (
    ParameterSet,
    GrainLFSR,
    generate_parameters,
    get_parameters,
    preload,
)

# Permutation and hashing
from .poseidon import (
    Variant,
    Hasher,
    permute,
    poseidon,
    poseidon_t3,
    poseidon_multi,
    poseidon_sponge,
)

# Harness
from .harness import (
    Computation,
    ExecutionResult,
    LedgerExecutor,
    LocalExecutor,
    CostBudgetExceeded,
    EquivalenceError,
    check_equivalence,
    measure_costs,
)

__version__ = "0.1.0"
__all__ = [
    # Errors
    "PoseidonError",
    "InvalidEncoding",
    "ArityMismatch",
    "InputTooLarge",
    "WeakParameters",
    # Field
    "BN254_PRIME",
    "GF",
    "FieldElement",
    "to_field_elements",
    # Parameters
    "ALPHA",
    "ROUNDS_F",
    "ROUNDS_P",
    "ParameterSet",
    "GrainLFSR",
    "generate_parameters",
    "get_parameters",
    "preload",
    # Hash
    "Variant",
    "Hasher",
    "permute",
    "poseidon",
    "poseidon_t3",
    "poseidon_multi",
    "poseidon_sponge",
    # Harness
    "Computation",
    "ExecutionResult",
    "LedgerExecutor",
    "LocalExecutor",
    "CostBudgetExceeded",
    "EquivalenceError",
    "check_equivalence",
    "measure_costs",
]
